# routers/auth.py — Authentication endpoints with token revocation
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel, field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from audit import record_audit
from auth import (
    AuthService, UserRegister, UserLogin, TokenResponse, RefreshRequest,
    ACCESS_TOKEN_EXPIRE_MINUTES, check_password_policy, get_current_user,
    security, to_current_user, CurrentUser,
)
from database import get_db_session
from models import User, UserStatus, AuditEventType

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        return check_password_policy(v)


def _build_token_response(user_obj: User) -> TokenResponse:
    """Build token response from a user ORM instance"""
    token_data = AuthService.token_payload_for(user_obj)
    return TokenResponse(
        access_token=AuthService.create_access_token(token_data),
        refresh_token=AuthService.create_refresh_token(token_data),
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=to_current_user(user_obj).model_dump(),
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db_session),
):
    """Register a visitor account"""
    user = await AuthService.register_user(user_data, db)
    return _build_token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    request: Request,
    db: AsyncSession = Depends(get_db_session),
):
    """Authenticate and receive tokens"""
    user = await AuthService.authenticate_user(
        credentials.email, credentials.password, db, request
    )
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _build_token_response(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    refresh_req: RefreshRequest,
    db: AsyncSession = Depends(get_db_session),
):
    """Refresh access token using a refresh token"""
    payload = AuthService.verify_token(refresh_req.refresh_token)

    if payload.get("type") != "refresh":
        raise HTTPException(status_code=401, detail="Invalid token type. Expected refresh token.")

    jti = payload.get("jti")
    if jti and await AuthService.is_token_revoked(jti, db):
        raise HTTPException(status_code=401, detail="Refresh token has been revoked")

    result = await db.execute(select(User).where(User.id == payload.get("sub")))
    user = result.scalar_one_or_none()

    if not user or user.status != UserStatus.ACTIVE:
        raise HTTPException(status_code=401, detail="User not found or inactive")

    return _build_token_response(user)


@router.post("/logout")
async def logout(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Logout and revoke current token"""
    payload = AuthService.verify_token(credentials.credentials)
    record_audit(db, AuditEventType.USER_LOGOUT, actor_id=user.id,
                 resource_type="user", resource_id=user.id, request=request)
    await AuthService.revoke_token(
        payload["jti"],
        user.id,
        datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        db,
    )
    return {"status": "logged_out", "message": "Session terminated"}


@router.get("/me")
async def get_current_user_info(user: CurrentUser = Depends(get_current_user)):
    """Current user, including role and assigned tier (drives client routing)"""
    return user.model_dump()


@router.post("/change-password")
async def change_password(
    password_data: ChangePasswordRequest,
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Change current user's password; clears the temporary-credential flag"""
    result = await db.execute(select(User).where(User.id == user.id))
    user_obj = result.scalar_one_or_none()
    if not user_obj:
        raise HTTPException(status_code=404, detail="User not found")

    if not AuthService.verify_password(password_data.current_password, user_obj.password_hash):
        raise HTTPException(status_code=401, detail="Current password is incorrect")

    user_obj.password_hash = AuthService.hash_password(password_data.new_password)
    user_obj.must_reset_password = False
    record_audit(db, AuditEventType.PASSWORD_CHANGED, actor_id=user.id,
                 resource_type="user", resource_id=user.id, request=request)
    await db.commit()

    return {"status": "password_changed", "message": "Password updated successfully"}
