from tasktree.models.audit_log import AuditLog
from tasktree.models.auth_magic_link import AuthMagicLink
from tasktree.models.org import Org
from tasktree.models.task import Task
from tasktree.models.user import User

__all__ = ["User", "Org", "Task", "AuditLog", "AuthMagicLink"]
