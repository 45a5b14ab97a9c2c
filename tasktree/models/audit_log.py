import uuid
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from tasktree.models.base import Base
from tasktree.models.enums import AuditAction

class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)

    # null for anonymous actors (failed logins)
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        sa.Uuid, sa.ForeignKey("users.id"), index=True, nullable=True
    )
    action: Mapped[AuditAction] = mapped_column(sa.Enum(AuditAction, name="audit_action"), nullable=False)
    resource: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    resource_id: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    details: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    success: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        # python-side default keeps sub-second ordering on every backend
        default=lambda: datetime.now(timezone.utc),
        server_default=sa.func.now(),
        nullable=False,
        index=True,
    )
