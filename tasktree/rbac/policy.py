"""Access decisions for task and administrative operations.

Every rule composes three independent checks: the role hierarchy
(``has_role_level``), the explicit permission table (``has_permission``) and
ownership, bounded by organization-tree scope (``in_org_scope``). Decisions
are plain values; nothing here performs I/O or raises for a denial.
"""
from __future__ import annotations

import uuid
from collections.abc import Callable, Hashable, Iterable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from tasktree.models.enums import AuditAction, Role
from tasktree.rbac.orgtree import OrgTree, as_tree
from tasktree.rbac.perms import Permission, has_permission, has_role_level

class Operation(str, Enum):
    task_create = "task.create"
    task_list = "task.list"
    task_read = "task.read"
    task_update = "task.update"
    task_delete = "task.delete"
    org_create = "org.create"
    audit_read = "audit.read"

DENIED_ROLE = "role"
DENIED_OWNERSHIP = "ownership"
DENIED_SCOPE = "scope"

@dataclass(frozen=True)
class Actor:
    user_id: Hashable
    role: Role
    org_id: Hashable

@dataclass(frozen=True)
class TaskRef:
    owner_id: Hashable
    org_id: Hashable
    id: Hashable | None = None

@dataclass(frozen=True)
class ListScope:
    # exactly one of these is set
    org_ids: frozenset[Hashable] | None = None
    owner_id: Hashable | None = None

@dataclass(frozen=True)
class AuditSignal:
    action: AuditAction
    resource: str
    user_id: uuid.UUID | None = None
    resource_id: str | None = None
    details: str | None = None
    ip_address: str | None = None
    success: bool = True

_SUCCESS_ACTIONS: dict[Operation, tuple[AuditAction, str]] = {
    Operation.task_create: (AuditAction.create, "task"),
    Operation.task_list: (AuditAction.read, "task"),
    Operation.task_read: (AuditAction.read, "task"),
    Operation.task_update: (AuditAction.update, "task"),
    Operation.task_delete: (AuditAction.delete, "task"),
    Operation.org_create: (AuditAction.create, "organization"),
    Operation.audit_read: (AuditAction.read, "audit"),
}

@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str
    operation: Operation
    actor: Actor
    resource_id: str | None = None
    denial: str | None = None
    scope: ListScope | None = None
    # access-denied signal the caller must record before rejecting
    audit: AuditSignal | None = None

    def success_signal(
        self,
        details: str | None = None,
        resource_id: str | None = None,
        ip_address: str | None = None,
    ) -> AuditSignal:
        if not self.allowed:
            raise ValueError("success_signal() called on a denied decision")
        action, resource = _SUCCESS_ACTIONS[self.operation]
        return AuditSignal(
            action=action,
            resource=resource,
            user_id=self.actor.user_id,
            resource_id=resource_id or self.resource_id,
            details=details,
            ip_address=ip_address,
            success=True,
        )

# individual axes

def is_task_owner(actor: Actor, task: TaskRef) -> bool:
    return task.owner_id == actor.user_id

def in_org_scope(actor: Actor, org_id: Hashable, tree: OrgTree) -> bool:
    return org_id in tree.reachable(actor.org_id)

# per-operation rules

def _rid(task: TaskRef | None) -> str | None:
    return str(task.id) if task is not None and task.id is not None else None

def _allow(op: Operation, actor: Actor, reason: str, task: TaskRef | None = None, **kw: Any) -> Decision:
    return Decision(allowed=True, reason=reason, operation=op, actor=actor, resource_id=_rid(task), **kw)

def _deny(op: Operation, actor: Actor, reason: str, denial: str, task: TaskRef | None = None, **kw: Any) -> Decision:
    return Decision(
        allowed=False, reason=reason, operation=op, actor=actor, resource_id=_rid(task), denial=denial, **kw
    )

def _create_task(actor: Actor, tree: OrgTree, task: TaskRef | None) -> Decision:
    op = Operation.task_create
    target = actor.org_id if task is None or task.org_id is None else task.org_id

    if target == actor.org_id:
        return _allow(op, actor, "own organization", task)

    if not has_role_level(actor.role, Role.admin):
        return _deny(op, actor, "Cannot create tasks in this organization", DENIED_ROLE, task)

    if not in_org_scope(actor, target, tree):
        return _deny(op, actor, "Cannot create tasks in this organization", DENIED_SCOPE, task)

    return _allow(op, actor, "descendant organization", task)

def _list_tasks(actor: Actor, tree: OrgTree, task: TaskRef | None) -> Decision:
    op = Operation.task_list
    if has_role_level(actor.role, Role.admin):
        scope = ListScope(org_ids=tree.reachable(actor.org_id))
        return _allow(op, actor, "organization tree", scope=scope)
    return _allow(op, actor, "own tasks only", scope=ListScope(owner_id=actor.user_id))

def _read_task(actor: Actor, tree: OrgTree, task: TaskRef) -> Decision:
    op = Operation.task_read
    if has_role_level(actor.role, Role.admin):
        if in_org_scope(actor, task.org_id, tree):
            return _allow(op, actor, "organization tree", task)
        return _deny(op, actor, "Access denied", DENIED_SCOPE, task)

    if is_task_owner(actor, task):
        return _allow(op, actor, "task owner", task)
    return _deny(op, actor, "Access denied: you can only view your own tasks", DENIED_OWNERSHIP, task)

def _modify_task(
    op: Operation,
    any_permission: Permission,
    verb: str,
    own_reason: str,
) -> Callable[[Actor, OrgTree, TaskRef], Decision]:
    def _rule(actor: Actor, tree: OrgTree, task: TaskRef) -> Decision:
        if is_task_owner(actor, task):
            return _allow(op, actor, "task owner", task)

        if not has_permission(actor.role, any_permission):
            signal = AuditSignal(
                action=AuditAction.access_denied,
                resource="task",
                user_id=actor.user_id,
                resource_id=_rid(task),
                details=f"Attempted to {verb} task without permission",
                success=False,
            )
            return _deny(op, actor, own_reason, DENIED_OWNERSHIP, task, audit=signal)

        # holding the any-permission is still bounded by org scope; no audit signal here
        if not in_org_scope(actor, task.org_id, tree):
            return _deny(op, actor, "Task is outside your organization scope", DENIED_SCOPE, task)

        return _allow(op, actor, f"{any_permission.value} within organization tree", task)

    return _rule

def _create_org(actor: Actor, tree: OrgTree, task: TaskRef | None) -> Decision:
    if has_role_level(actor.role, Role.owner):
        return _allow(Operation.org_create, actor, "owner")
    return _deny(Operation.org_create, actor, "Only owners can create organizations", DENIED_ROLE)

def _read_audit(actor: Actor, tree: OrgTree, task: TaskRef | None) -> Decision:
    if has_permission(actor.role, Permission.audit_read):
        return _allow(Operation.audit_read, actor, Permission.audit_read.value)
    return _deny(Operation.audit_read, actor, "Insufficient permissions to read the audit log", DENIED_ROLE)

_RULES: dict[Operation, Callable[[Actor, OrgTree, Any], Decision]] = {
    Operation.task_create: _create_task,
    Operation.task_list: _list_tasks,
    Operation.task_read: _read_task,
    Operation.task_update: _modify_task(
        Operation.task_update, Permission.task_update_any, "update", "You can only edit your own tasks"
    ),
    Operation.task_delete: _modify_task(
        Operation.task_delete, Permission.task_delete_any, "delete", "You can only delete your own tasks"
    ),
    Operation.org_create: _create_org,
    Operation.audit_read: _read_audit,
}

_NEEDS_TASK = {Operation.task_read, Operation.task_update, Operation.task_delete}

def decide(
    operation: Operation | str,
    actor: Actor,
    orgs: OrgTree | Iterable[Any] = (),
    resource: TaskRef | None = None,
) -> Decision:
    op = Operation(operation)
    if op in _NEEDS_TASK and resource is None:
        raise ValueError(f"{op.value} requires a task resource")
    return _RULES[op](actor, as_tree(orgs), resource)

def with_ip(signal: AuditSignal, ip_address: str | None) -> AuditSignal:
    return replace(signal, ip_address=ip_address)
