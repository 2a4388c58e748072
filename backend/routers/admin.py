# routers/admin.py — Admin console: dashboard, users, profiles, audit, settings, impersonation
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from audit import record_audit
from auth import CurrentUser, require_admin, require_super_admin
from database import get_db_session
from impersonation import (
    IMPERSONATION_HEADER, ImpersonationError, resolve_session, start_session,
)
from models import (
    AuditEventType, AuditLog, Nomination, Payment, PaymentStatus, Profile,
    ProfileStatus, RevokedToken, SystemSetting, User, UserRole, UserStatus,
)

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])

DEFAULT_SETTINGS: Dict[str, Any] = {
    "nominations_open": True,
    "maintenance_mode": False,
    "support_email": "support@iconsherald.com",
    "featured_profile_slugs": [],
}


# --- Schemas ---

class UserOut(BaseModel):
    id: str
    email: str
    full_name: str
    role: str
    status: str
    tier: Optional[str] = None
    must_reset_password: bool
    last_login_at: Optional[str] = None
    created_at: str


class RoleUpdate(BaseModel):
    role: str = Field(..., description="One of: super_admin, admin, member, applicant, visitor")


class StatusUpdate(BaseModel):
    status: str = Field(..., description="One of: active, suspended, banned")
    reason: Optional[str] = Field(default=None, max_length=1000)


class SettingsUpdate(BaseModel):
    settings: Dict[str, Any] = Field(..., min_length=1)


class ImpersonationStart(BaseModel):
    target_user_id: str


# --- Helpers ---

def _value(v):
    return v.value if hasattr(v, "value") else v


def _user_to_out(u: User) -> UserOut:
    return UserOut(
        id=u.id,
        email=u.email,
        full_name=u.full_name or "",
        role=_value(u.role),
        status=_value(u.status),
        tier=_value(u.tier) if u.tier else None,
        must_reset_password=bool(u.must_reset_password),
        last_login_at=u.last_login_at.isoformat() if u.last_login_at else None,
        created_at=u.created_at.isoformat() if u.created_at else "",
    )


async def _get_user(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    target = result.scalar_one_or_none()
    if not target:
        raise HTTPException(status_code=404, detail="User not found")
    return target


async def _get_profile(db: AsyncSession, profile_id: str) -> Profile:
    result = await db.execute(select(Profile).where(Profile.id == profile_id))
    profile = result.scalar_one_or_none()
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


async def _grouped_counts(db: AsyncSession, column, model) -> Dict[str, int]:
    result = await db.execute(select(column, func.count(model.id)).group_by(column))
    return {_value(key): count for key, count in result.all()}


# --- Dashboard ---

@router.get("/dashboard")
async def dashboard(
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Headline numbers for the admin console"""
    revenue = await db.execute(
        select(Payment.currency, func.coalesce(func.sum(Payment.amount), 0))
        .where(Payment.status == PaymentStatus.CAPTURED)
        .group_by(Payment.currency)
    )
    return {
        "nominations_by_status": await _grouped_counts(db, Nomination.status, Nomination),
        "profiles_by_status": await _grouped_counts(db, Profile.status, Profile),
        "profiles_by_tier": await _grouped_counts(db, Profile.tier, Profile),
        "users_by_role": await _grouped_counts(db, User.role, User),
        "revenue": {currency: int(total) for currency, total in revenue.all()},
    }


# --- Users ---

@router.get("/users", response_model=List[UserOut])
async def list_users(
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
    role: Optional[str] = None,
    status: Optional[str] = None,
    q: Optional[str] = Query(default=None, max_length=100),
    limit: int = Query(default=50, le=200),
    offset: int = Query(default=0, ge=0),
):
    stmt = select(User).order_by(User.created_at.desc()).offset(offset).limit(limit)
    try:
        if role:
            stmt = stmt.where(User.role == UserRole(role))
        if status:
            stmt = stmt.where(User.status == UserStatus(status))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if q and q.strip():
        pattern = f"%{q.strip().lower()}%"
        stmt = stmt.where(func.lower(User.email).like(pattern) | func.lower(User.full_name).like(pattern))

    result = await db.execute(stmt)
    return [_user_to_out(u) for u in result.scalars().all()]


@router.get("/users/{user_id}", response_model=UserOut)
async def get_user(
    user_id: str,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    return _user_to_out(await _get_user(db, user_id))


@router.patch("/users/{user_id}/status", response_model=UserOut)
async def update_user_status(
    user_id: str,
    data: StatusUpdate,
    request: Request,
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Suspend, ban or reactivate an account"""
    try:
        new_status = UserStatus(data.status)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid status: {data.status}")
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot change your own status")

    target = await _get_user(db, user_id)
    if target.role == UserRole.SUPER_ADMIN and current_user.role != UserRole.SUPER_ADMIN.value:
        raise HTTPException(status_code=403, detail="Only super_admin can change a super_admin's status")

    old_status = _value(target.status)
    target.status = new_status
    record_audit(db, AuditEventType.USER_STATUS_CHANGED, actor_id=current_user.id,
                 resource_type="user", resource_id=user_id,
                 details={"old_status": old_status, "new_status": new_status.value, "reason": data.reason},
                 request=request)
    await db.commit()
    await db.refresh(target)
    return _user_to_out(target)


@router.patch("/users/{user_id}/role")
async def update_user_role(
    user_id: str,
    role_update: RoleUpdate,
    request: Request,
    current_user: CurrentUser = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Change a user's role (super_admin only)"""
    try:
        new_role = UserRole(role_update.role)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid role: {role_update.role}")
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot change your own role")

    target = await _get_user(db, user_id)
    old_role = _value(target.role)
    target.role = new_role
    record_audit(db, AuditEventType.USER_ROLE_CHANGED, actor_id=current_user.id,
                 resource_type="user", resource_id=user_id,
                 details={"old_role": old_role, "new_role": new_role.value}, request=request)
    await db.commit()

    return {"user_id": user_id, "old_role": old_role, "new_role": new_role.value}


# --- Profiles ---

@router.get("/profiles")
async def list_profiles(
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
    status: Optional[str] = None,
    limit: int = Query(default=50, le=200),
    offset: int = Query(default=0, ge=0),
):
    stmt = select(Profile).order_by(Profile.updated_at.desc()).offset(offset).limit(limit)
    if status:
        try:
            stmt = stmt.where(Profile.status == ProfileStatus(status))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid status: {status}")
    result = await db.execute(stmt)
    return [
        {
            "id": p.id,
            "user_id": p.user_id,
            "slug": p.slug,
            "tier": _value(p.tier),
            "status": _value(p.status),
            "payment_status": _value(p.payment_status),
            "name": p.meta_title,
            "view_count": p.view_count or 0,
            "published_at": p.published_at.isoformat() if p.published_at else None,
        }
        for p in result.scalars().all()
    ]


@router.post("/profiles/{profile_id}/archive")
async def archive_profile(
    profile_id: str,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Take a published profile off the public site"""
    profile = await _get_profile(db, profile_id)
    if profile.status != ProfileStatus.PUBLISHED:
        raise HTTPException(status_code=409, detail="Only published profiles can be archived")
    profile.status = ProfileStatus.ARCHIVED
    record_audit(db, AuditEventType.PROFILE_ARCHIVED, actor_id=user.id,
                 resource_type="profile", resource_id=profile.id, request=request)
    await db.commit()
    return {"profile_id": profile.id, "status": ProfileStatus.ARCHIVED.value}


@router.post("/profiles/{profile_id}/restore")
async def restore_profile(
    profile_id: str,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    profile = await _get_profile(db, profile_id)
    if profile.status != ProfileStatus.ARCHIVED:
        raise HTTPException(status_code=409, detail="Only archived profiles can be restored")
    profile.status = ProfileStatus.PUBLISHED
    record_audit(db, AuditEventType.PROFILE_RESTORED, actor_id=user.id,
                 resource_type="profile", resource_id=profile.id, request=request)
    await db.commit()
    return {"profile_id": profile.id, "status": ProfileStatus.PUBLISHED.value}


# --- Super admin only ---

@router.get("/audit-logs")
async def list_audit_logs(
    user: CurrentUser = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
    event_type: Optional[str] = None,
    actor_id: Optional[str] = None,
    limit: int = Query(default=100, le=500),
    offset: int = Query(default=0, ge=0),
):
    stmt = select(AuditLog).order_by(AuditLog.timestamp.desc()).offset(offset).limit(limit)
    if event_type:
        try:
            stmt = stmt.where(AuditLog.event_type == AuditEventType(event_type))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid event type: {event_type}")
    if actor_id:
        stmt = stmt.where(AuditLog.actor_id == actor_id)
    result = await db.execute(stmt)
    return [
        {
            "id": a.id,
            "timestamp": a.timestamp.isoformat() if a.timestamp else None,
            "event_type": _value(a.event_type),
            "actor_id": a.actor_id,
            "resource_type": a.resource_type,
            "resource_id": a.resource_id,
            "details": a.details or {},
            "ip_address": a.ip_address,
            "request_id": a.request_id,
        }
        for a in result.scalars().all()
    ]


async def _current_settings(db: AsyncSession) -> Dict[str, Any]:
    result = await db.execute(select(SystemSetting))
    stored = {s.key: s.value for s in result.scalars().all()}
    return {**DEFAULT_SETTINGS, **stored}


@router.get("/settings")
async def get_settings(
    user: CurrentUser = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
):
    return await _current_settings(db)


@router.put("/settings")
async def update_settings(
    data: SettingsUpdate,
    request: Request,
    user: CurrentUser = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
):
    result = await db.execute(select(SystemSetting).where(SystemSetting.key.in_(list(data.settings))))
    existing = {s.key: s for s in result.scalars().all()}
    for key, value in data.settings.items():
        setting = existing.get(key)
        if setting is None:
            db.add(SystemSetting(key=key, value=value, updated_by=user.id))
        else:
            setting.value = value
            setting.updated_by = user.id
    record_audit(db, AuditEventType.SETTINGS_UPDATED, actor_id=user.id,
                 resource_type="settings", details={"keys": sorted(data.settings)}, request=request)
    await db.commit()
    return await _current_settings(db)


# --- Impersonation ---

@router.post("/impersonation", status_code=201)
async def start_impersonation(
    data: ImpersonationStart,
    request: Request,
    user: CurrentUser = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Open a time-boxed session to act as another user"""
    target = await _get_user(db, data.target_user_id)
    if target.status != UserStatus.ACTIVE:
        raise HTTPException(status_code=400, detail="Cannot impersonate an inactive user")
    try:
        token, session = start_session(user, target)
    except ImpersonationError as e:
        raise HTTPException(status_code=403, detail=str(e))

    record_audit(db, AuditEventType.IMPERSONATION_STARTED, actor_id=user.id,
                 resource_type="user", resource_id=target.id,
                 details={"target_email": target.email, "expires_at": session.expires_at.isoformat(),
                          "session_id": session.token_id},
                 request=request)
    await db.commit()
    return {
        "token": token,
        "header": IMPERSONATION_HEADER,
        "target_user": _user_to_out(target).model_dump(),
        "expires_at": session.expires_at.isoformat(),
    }


@router.get("/impersonation")
async def impersonation_status(
    request: Request,
    user: CurrentUser = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
):
    token = request.headers.get(IMPERSONATION_HEADER)
    if not token:
        return {"active": False}
    session = await resolve_session(token, user, db)
    return {
        "active": True,
        "target_user_id": session.target_user_id,
        "target_email": session.target_email,
        "expires_at": session.expires_at.isoformat(),
        "remaining_seconds": session.remaining_seconds(),
    }


@router.delete("/impersonation")
async def end_impersonation(
    request: Request,
    user: CurrentUser = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
):
    token = request.headers.get(IMPERSONATION_HEADER)
    if not token:
        raise HTTPException(status_code=400, detail=f"{IMPERSONATION_HEADER} header is required")
    session = await resolve_session(token, user, db)

    db.add(RevokedToken(jti=session.token_id, user_id=user.id, expires_at=session.expires_at))
    record_audit(db, AuditEventType.IMPERSONATION_ENDED, actor_id=user.id,
                 resource_type="user", resource_id=session.target_user_id,
                 details={"session_id": session.token_id}, request=request)
    await db.commit()
    return {"active": False, "message": "Impersonation ended"}
