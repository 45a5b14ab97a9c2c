import uuid

from pydantic import BaseModel, Field

class OrgCreateIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    parent_id: uuid.UUID | None = None

class OrgOut(BaseModel):
    id: uuid.UUID
    name: str
    parent_id: uuid.UUID | None

class OrgCreatedOut(OrgOut):
    invite_code: str | None
