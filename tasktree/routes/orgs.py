import uuid

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from tasktree.auth.deps import get_current_user
from tasktree.auth.tokens import new_invite_code
from tasktree.db import get_db
from tasktree.models.org import Org
from tasktree.models.user import User
from tasktree.ratelimit import client_ip
from tasktree.rbac.deps import enforce, get_actor, get_audit
from tasktree.rbac.policy import Actor, Operation, decide
from tasktree.schemas.orgs import OrgCreatedOut, OrgCreateIn, OrgOut
from tasktree.services.audit import AuditRecorder

router = APIRouter(prefix="/organizations", tags=["organizations"])

def _out(o: Org) -> OrgOut:
    return OrgOut(id=o.id, name=o.name, parent_id=o.parent_id)

@router.post("", response_model=OrgCreatedOut)
def create_org(
    payload: OrgCreateIn,
    request: Request,
    actor: Actor = Depends(get_actor),
    audit: AuditRecorder = Depends(get_audit),
    db: Session = Depends(get_db),
) -> OrgCreatedOut:
    # owner-only; the org tree is not consulted
    decision = enforce(decide(Operation.org_create, actor), audit, request)

    if payload.parent_id is not None and db.get(Org, payload.parent_id) is None:
        raise HTTPException(status_code=404, detail="Parent organization not found")

    name = payload.name.strip()
    if db.scalar(select(Org).where(Org.name == name)) is not None:
        raise HTTPException(status_code=409, detail="An organization with that name already exists")

    org = Org(name=name, parent_id=payload.parent_id, invite_code=new_invite_code())
    db.add(org)
    db.commit()
    db.refresh(org)

    audit.record(
        decision.success_signal(
            details=f"Created organization: {org.name}",
            resource_id=str(org.id),
            ip_address=client_ip(request),
        )
    )
    return OrgCreatedOut(id=org.id, name=org.name, parent_id=org.parent_id, invite_code=org.invite_code)

# public: viewers pick an org at signup
@router.get("", response_model=list[OrgOut])
def list_orgs(db: Session = Depends(get_db)) -> list[OrgOut]:
    orgs = db.scalars(select(Org).order_by(Org.name)).all()
    return [_out(o) for o in orgs]

@router.get("/{org_id}", response_model=OrgOut)
def get_org(
    org_id: uuid.UUID,
    _: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> OrgOut:
    org = db.get(Org, org_id)
    if org is None:
        raise HTTPException(status_code=404, detail="Organization not found")
    return _out(org)
