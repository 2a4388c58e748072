# impersonation.py — Super-admin "view as user" sessions
# A session is an explicit value carried in a signed token
# (X-Impersonation-Token) and resolved per request into a RequestContext.
# Nothing is kept in process memory; ending a session revokes its token id.

import os
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request
from jose import jwt, JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import (
    ALGORITHM, SECRET_KEY, AuthService, CurrentUser, get_current_user, to_current_user,
)
from database import get_db_session
from models import User, UserRole, UserStatus

logger = logging.getLogger("icons-herald.impersonation")

IMPERSONATION_HEADER = "X-Impersonation-Token"
IMPERSONATION_MINUTES = int(os.getenv("IMPERSONATION_MINUTES", "15"))
TOKEN_TYPE = "impersonation"


class ImpersonationError(Exception):
    pass


@dataclass(frozen=True)
class ImpersonationSession:
    original_user_id: str
    target_user_id: str
    target_email: str
    started_at: datetime
    expires_at: datetime
    token_id: str

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at

    def remaining_seconds(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        return max(0, int((self.expires_at - now).total_seconds()))


@dataclass
class RequestContext:
    """Who is acting (actor) and on whose behalf (user)."""
    actor: CurrentUser
    user: CurrentUser
    impersonation: Optional[ImpersonationSession] = None

    @property
    def is_impersonating(self) -> bool:
        return self.impersonation is not None


def check_can_impersonate(actor: CurrentUser, target: User) -> None:
    if UserRole(actor.role) != UserRole.SUPER_ADMIN:
        raise ImpersonationError("Only super admins can impersonate users")
    if target.id == actor.id:
        raise ImpersonationError("Cannot impersonate yourself")
    if target.role == UserRole.SUPER_ADMIN:
        raise ImpersonationError("Cannot impersonate another super admin")


def start_session(actor: CurrentUser, target: User, minutes: int = IMPERSONATION_MINUTES):
    """Returns (token, session) for a new impersonation session."""
    check_can_impersonate(actor, target)
    token = AuthService._create_token(
        {"sub": target.id, "email": target.email, "act": actor.id},
        TOKEN_TYPE,
        timedelta(minutes=minutes),
    )
    return token, decode_session(token)


def decode_session(token: str) -> ImpersonationSession:
    # Expiry is checked by the caller through ImpersonationSession.is_expired
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM], options={"verify_exp": False})
    except JWTError as e:
        raise ImpersonationError("Invalid impersonation token") from e

    if payload.get("type") != TOKEN_TYPE or not payload.get("act") or not payload.get("sub"):
        raise ImpersonationError("Invalid impersonation token")

    return ImpersonationSession(
        original_user_id=payload["act"],
        target_user_id=payload["sub"],
        target_email=payload.get("email", ""),
        started_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        token_id=payload["jti"],
    )


async def resolve_session(token: str, actor: CurrentUser, db: AsyncSession) -> ImpersonationSession:
    """Decode and validate an impersonation token for the acting super admin."""
    try:
        session = decode_session(token)
    except ImpersonationError as e:
        raise HTTPException(status_code=401, detail=str(e))

    if session.original_user_id != actor.id or UserRole(actor.role) != UserRole.SUPER_ADMIN:
        raise HTTPException(status_code=403, detail="Impersonation session does not belong to this user")
    if session.is_expired():
        raise HTTPException(status_code=401, detail="Impersonation session expired")
    if await AuthService.is_token_revoked(session.token_id, db):
        raise HTTPException(status_code=401, detail="Impersonation session ended")
    return session


async def get_request_context(
    request: Request,
    actor: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> RequestContext:
    token = request.headers.get(IMPERSONATION_HEADER)
    if not token:
        return RequestContext(actor=actor, user=actor)

    session = await resolve_session(token, actor, db)
    result = await db.execute(select(User).where(User.id == session.target_user_id))
    target = result.scalar_one_or_none()
    if not target or target.status != UserStatus.ACTIVE:
        raise HTTPException(status_code=404, detail="Impersonated user not found or inactive")

    return RequestContext(actor=actor, user=to_current_user(target), impersonation=session)
