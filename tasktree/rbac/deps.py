from fastapi import Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from tasktree.auth.deps import get_current_user
from tasktree.db import get_db
from tasktree.models.enums import AuditAction, Role
from tasktree.models.org import Org
from tasktree.models.user import User
from tasktree.ratelimit import client_ip
from tasktree.rbac.orgtree import OrgNode, OrgTree
from tasktree.rbac.perms import has_role_level
from tasktree.rbac.policy import Actor, Decision, with_ip
from tasktree.services.audit import AuditRecorder

def get_audit(db: Session = Depends(get_db)) -> AuditRecorder:
    return AuditRecorder(db)

def get_actor(user: User = Depends(get_current_user)) -> Actor:
    return Actor(user_id=user.id, role=user.role, org_id=user.org_id)

# full snapshot, fetched once per request; reachability needs every org
def load_org_tree(db: Session = Depends(get_db)) -> OrgTree:
    rows = db.execute(select(Org.id, Org.parent_id).order_by(Org.created_at, Org.id)).all()
    return OrgTree(OrgNode(id=r.id, parent_id=r.parent_id) for r in rows)

def require_role(required: Role, resource: str):
    def _checker(
        request: Request,
        user: User = Depends(get_current_user),
        audit: AuditRecorder = Depends(get_audit),
    ) -> User:
        if not has_role_level(user.role, required):
            audit.log(
                action=AuditAction.access_denied,
                resource=resource,
                user_id=user.id,
                details=f"Role {user.role.value} attempted to access route requiring {required.value}",
                ip_address=client_ip(request),
                success=False,
            )
            raise HTTPException(status_code=403, detail=f"Insufficient permissions. Required: {required.value}")
        return user

    return _checker

def enforce(decision: Decision, audit: AuditRecorder, request: Request | None = None) -> Decision:
    if decision.allowed:
        return decision

    if decision.audit is not None:
        audit.record(with_ip(decision.audit, client_ip(request) if request else None))
    raise HTTPException(status_code=403, detail=decision.reason)
