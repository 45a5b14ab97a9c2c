import uuid

from pydantic import BaseModel, EmailStr, Field

from tasktree.models.enums import Role

class RegisterIn(BaseModel):
    email: EmailStr
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    # owner master code, an org invite code, or blank for a viewer
    invite_code: str | None = None
    organization_name: str | None = None
    organization_id: uuid.UUID | None = None

class UserOut(BaseModel):
    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    role: Role
    org_id: uuid.UUID

class AuthOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut
    # only on owner registration
    org_invite_code: str | None = None

class RequestLinkIn(BaseModel):
    email: EmailStr

class RequestLinkOut(BaseModel):
    sent: bool = True
    # only outside prod
    token: str | None = None

class RedeemIn(BaseModel):
    token: str
