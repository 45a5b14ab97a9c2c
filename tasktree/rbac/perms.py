from enum import Enum
from types import MappingProxyType
from typing import Mapping

from tasktree.models.enums import Role

class Permission(str, Enum):
    task_create = "task:create"
    task_read = "task:read"
    task_update = "task:update"
    task_delete = "task:delete"
    task_read_all = "task:read:all"
    task_update_any = "task:update:any"
    task_delete_any = "task:delete:any"
    audit_read = "audit:read"
    user_manage = "user:manage"
    org_manage = "org:manage"

# owner > admin > viewer
ROLE_RANK: Mapping[Role, int] = MappingProxyType({
    Role.owner: 3,
    Role.admin: 2,
    Role.viewer: 1,
})

_BASE_TASK_PERMS = frozenset({
    Permission.task_create,
    Permission.task_read,
    Permission.task_update,
    Permission.task_delete,
})

_ELEVATED_TASK_PERMS = frozenset({
    Permission.task_read_all,
    Permission.task_update_any,
    Permission.task_delete_any,
})

# explicit grants, not derived from ROLE_RANK: viewers get only the base task actions
ROLE_PERMISSIONS: Mapping[Role, frozenset[Permission]] = MappingProxyType({
    Role.owner: _BASE_TASK_PERMS | _ELEVATED_TASK_PERMS | {
        Permission.audit_read,
        Permission.user_manage,
        Permission.org_manage,
    },
    Role.admin: _BASE_TASK_PERMS | _ELEVATED_TASK_PERMS | {
        Permission.audit_read,
        Permission.user_manage,
    },
    Role.viewer: _BASE_TASK_PERMS,
})

def _as_role(value: Role | str | None) -> Role | None:
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        return None

def has_role_level(actual: Role | str | None, required: Role | str) -> bool:
    actual_rank = ROLE_RANK.get(_as_role(actual))
    required_rank = ROLE_RANK.get(_as_role(required))
    # unknown roles never satisfy, and are never satisfied
    if actual_rank is None or required_rank is None:
        return False
    return actual_rank >= required_rank

def permissions_for(role: Role | str | None) -> frozenset[Permission]:
    return ROLE_PERMISSIONS.get(_as_role(role), frozenset())

def has_permission(role: Role | str | None, permission: Permission) -> bool:
    return permission in permissions_for(role)
