from enum import Enum

class Role(str, Enum):
    owner = "owner"
    admin = "admin"
    viewer = "viewer"

class TaskStatus(str, Enum):
    todo = "todo"
    in_progress = "in_progress"
    done = "done"

class TaskCategory(str, Enum):
    work = "work"
    personal = "personal"
    other = "other"

class AuditAction(str, Enum):
    create = "CREATE"
    read = "READ"
    update = "UPDATE"
    delete = "DELETE"
    login = "LOGIN"
    logout = "LOGOUT"
    access_denied = "ACCESS_DENIED"
