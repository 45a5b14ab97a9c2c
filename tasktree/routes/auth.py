from __future__ import annotations

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from tasktree.auth.tokens import (
    as_utc,
    hash_magic_token,
    issue_access_token,
    magic_link_expiry,
    new_invite_code,
    new_magic_token,
    now_utc,
)
from tasktree.config import settings
from tasktree.db import get_db
from tasktree.models.auth_magic_link import AuthMagicLink
from tasktree.models.enums import AuditAction, Role
from tasktree.models.org import Org
from tasktree.models.user import User
from tasktree.ratelimit import client_ip, rate_limit
from tasktree.rbac.deps import get_audit
from tasktree.schemas.auth import AuthOut, RedeemIn, RegisterIn, RequestLinkIn, RequestLinkOut, UserOut
from tasktree.services.audit import AuditRecorder

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

# mailer hook; the link is the only copy of the token and never goes back in a response
def deliver_magic_link(user: User, link: str) -> None:
    log.info("auth.magic_link_issued", user_id=str(user.id), email=user.email, link=link)

def _user_out(u: User) -> UserOut:
    return UserOut(
        id=u.id,
        email=u.email,
        first_name=u.first_name,
        last_name=u.last_name,
        role=u.role,
        org_id=u.org_id,
    )

@router.post("/register", response_model=AuthOut)
def register(
    payload: RegisterIn,
    request: Request,
    audit: AuditRecorder = Depends(get_audit),
    db: Session = Depends(get_db),
    _: None = Depends(
        rate_limit(
            "auth:register",
            limit_per_window=settings.rate_limit_auth_register_per_min,
            window_seconds=60,
        )
    ),
) -> AuthOut:
    email = payload.email.lower().strip()
    if db.scalar(select(User).where(User.email == email)) is not None:
        raise HTTPException(status_code=409, detail="Email already registered")

    code = (payload.invite_code or "").strip()
    org_invite_code: str | None = None

    if code == settings.owner_master_code:
        # owner signup creates a brand-new root org
        name = (payload.organization_name or "").strip()
        if not name:
            raise HTTPException(status_code=400, detail="Organization name is required for owner signup")
        if db.scalar(select(Org).where(Org.name == name)) is not None:
            raise HTTPException(status_code=409, detail="An organization with that name already exists")

        org_invite_code = new_invite_code()
        org = Org(name=name, parent_id=None, invite_code=org_invite_code)
        db.add(org)
        db.flush()
        role = Role.owner

    elif code:
        org = db.scalar(select(Org).where(Org.invite_code == code))
        if org is None:
            raise HTTPException(
                status_code=400,
                detail="Invalid invite code. Please check with your organization owner.",
            )
        role = Role.admin

    else:
        if payload.organization_id is None:
            raise HTTPException(status_code=400, detail="Please select an organization to join as a viewer")
        org = db.get(Org, payload.organization_id)
        if org is None:
            raise HTTPException(status_code=404, detail="Organization not found")
        role = Role.viewer

    user = User(
        email=email,
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        role=role,
        org_id=org.id,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    audit.log(
        action=AuditAction.login,
        resource="auth",
        user_id=user.id,
        details=f"User registered as {role.value}",
        ip_address=client_ip(request),
    )

    return AuthOut(
        access_token=issue_access_token(user),
        user=_user_out(user),
        org_invite_code=org_invite_code,
    )

@router.post("/request-link", response_model=RequestLinkOut)
def request_link(
    payload: RequestLinkIn,
    request: Request,
    audit: AuditRecorder = Depends(get_audit),
    db: Session = Depends(get_db),
    _: None = Depends(
        rate_limit(
            "auth:request_link",
            limit_per_window=settings.rate_limit_auth_request_link_per_min,
            window_seconds=60,
        )
    ),
) -> RequestLinkOut:
    email = payload.email.lower().strip()

    # in prod known and unknown emails get the same response; only the audit log tells them apart
    user = db.scalar(select(User).where(User.email == email))
    if user is None:
        audit.log(
            action=AuditAction.login,
            resource="auth",
            details=f"Failed login attempt for: {email}",
            ip_address=client_ip(request),
            success=False,
        )
        return RequestLinkOut(sent=True)

    token = new_magic_token()
    db.add(
        AuthMagicLink(
            token_hash=hash_magic_token(token),
            user_id=user.id,
            expires_at=magic_link_expiry(),
            used_at=None,
        )
    )
    db.commit()

    if settings.app_env == "prod":
        deliver_magic_link(user, f"{settings.base_url}/auth/redeem?token={token}")
        return RequestLinkOut(sent=True)

    # dev and test only: the token comes back so the flow works without a mailer
    return RequestLinkOut(sent=True, token=token)

def _redeem_failure(db: Session, token_hash: str, now: datetime) -> str:
    row = db.get(AuthMagicLink, token_hash)
    if row is None:
        return "invalid token"
    if row.used_at is not None:
        return "token already used"
    if as_utc(row.expires_at) <= now:
        return "token expired"
    return "invalid token"

@router.post("/redeem", response_model=AuthOut)
def redeem(
    payload: RedeemIn,
    request: Request,
    audit: AuditRecorder = Depends(get_audit),
    db: Session = Depends(get_db),
    _: None = Depends(
        rate_limit(
            "auth:redeem",
            limit_per_window=settings.rate_limit_auth_redeem_per_min,
            window_seconds=60,
        )
    ),
) -> AuthOut:
    token_hash = hash_magic_token(payload.token.strip())
    now = now_utc()

    # atomic single-use + expiry gate
    stmt = (
        update(AuthMagicLink)
        .where(AuthMagicLink.token_hash == token_hash)
        .where(AuthMagicLink.used_at.is_(None))
        .where(AuthMagicLink.expires_at > now)
        .values(used_at=now)
        .returning(AuthMagicLink.user_id)
    )

    user_id = db.scalar(stmt)
    user = db.get(User, user_id) if user_id is not None else None
    if user is None:
        reason = _redeem_failure(db, token_hash, now)
        db.rollback()
        audit.log(
            action=AuditAction.login,
            resource="auth",
            details=f"Failed magic link redemption: {reason}",
            ip_address=client_ip(request),
            success=False,
        )
        raise HTTPException(status_code=400, detail=reason)

    db.commit()
    audit.log(
        action=AuditAction.login,
        resource="auth",
        user_id=user.id,
        details="User logged in",
        ip_address=client_ip(request),
    )
    return AuthOut(access_token=issue_access_token(user), user=_user_out(user))
