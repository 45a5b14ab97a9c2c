from __future__ import annotations

import uuid

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from tasktree.models.audit_log import AuditLog
from tasktree.models.enums import AuditAction
from tasktree.rbac.policy import AuditSignal

log = structlog.get_logger(__name__)

class AuditRecorder:
    """Persists audit signals and mirrors them to the operator log.

    ``record`` commits before returning, so a decision and its audit row are
    never detached.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def record(self, signal: AuditSignal) -> AuditLog:
        row = AuditLog(
            user_id=signal.user_id,
            action=signal.action,
            resource=signal.resource,
            resource_id=signal.resource_id,
            details=signal.details,
            ip_address=signal.ip_address,
            success=signal.success,
        )
        self.db.add(row)
        self.db.commit()

        emit = log.info if signal.success else log.warning
        emit(
            "audit.recorded",
            action=signal.action.value,
            resource=signal.resource,
            resource_id=signal.resource_id,
            user_id=str(signal.user_id) if signal.user_id else "anonymous",
            success=signal.success,
            details=signal.details or "",
        )
        return row

    def log(
        self,
        *,
        action: AuditAction,
        resource: str,
        user_id: uuid.UUID | None = None,
        resource_id: str | None = None,
        details: str | None = None,
        ip_address: str | None = None,
        success: bool = True,
    ) -> AuditLog:
        return self.record(
            AuditSignal(
                action=action,
                resource=resource,
                user_id=user_id,
                resource_id=resource_id,
                details=details,
                ip_address=ip_address,
                success=success,
            )
        )

    def page(self, page: int = 1, limit: int = 50) -> tuple[list[AuditLog], int]:
        offset = (max(page, 1) - 1) * limit
        q = (
            select(AuditLog)
            .order_by(AuditLog.created_at.desc(), AuditLog.id)
            .offset(offset)
            .limit(limit)
        )
        rows = list(self.db.scalars(q).all())
        total = self.db.scalar(select(func.count()).select_from(AuditLog)) or 0
        return rows, int(total)
