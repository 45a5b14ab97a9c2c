from fastapi import APIRouter, Depends, Query, Request

from tasktree.config import settings
from tasktree.models.enums import Role
from tasktree.models.user import User
from tasktree.rbac.deps import enforce, get_actor, get_audit, require_role
from tasktree.rbac.policy import Actor, Operation, decide
from tasktree.schemas.audit import AuditLogOut, AuditPageOut
from tasktree.services.audit import AuditRecorder

router = APIRouter(prefix="/audit-log", tags=["audit"])

@router.get("", response_model=AuditPageOut)
def list_audit_log(
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.audit_page_size, ge=1, le=settings.audit_max_page_size),
    _: User = Depends(require_role(Role.admin, resource="audit")),
    actor: Actor = Depends(get_actor),
    audit: AuditRecorder = Depends(get_audit),
) -> AuditPageOut:
    enforce(decide(Operation.audit_read, actor), audit, request)

    rows, total = audit.page(page=page, limit=limit)
    data = [
        AuditLogOut(
            id=r.id,
            user_id=r.user_id,
            action=r.action,
            resource=r.resource,
            resource_id=r.resource_id,
            details=r.details,
            ip_address=r.ip_address,
            success=r.success,
            created_at=r.created_at,
        )
        for r in rows
    ]
    return AuditPageOut(data=data, total=total, page=page, limit=limit)
