import uuid
from datetime import datetime

from pydantic import BaseModel

from tasktree.models.enums import AuditAction

class AuditLogOut(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID | None
    action: AuditAction
    resource: str
    resource_id: str | None
    details: str | None
    ip_address: str | None
    success: bool
    created_at: datetime

class AuditPageOut(BaseModel):
    data: list[AuditLogOut]
    total: int
    page: int
    limit: int
