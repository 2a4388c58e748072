# routers/nominations.py — Public nomination intake + admin review queue
import logging
from typing import Optional, List, Literal

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from pydantic import BaseModel, EmailStr, Field, HttpUrl, field_validator
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

import tiers
from audit import record_audit
from auth import AuthService, CurrentUser, require_admin
from database import get_db_context, get_db_session
from email_service import get_email_service
from models import (
    Nomination, NominationStatus, SystemSetting, User, UserRole, UserStatus,
    AuditEventType, utcnow,
)
from profile_analytics import NOMINATION_SUBMITTED, record_event
from rate_limit import limit_by_client, nomination_limiter

logger = logging.getLogger("icons-herald.nominations")

router = APIRouter(prefix="/api/v1/nominations", tags=["Nominations"])

PITCH_MAX_LENGTH = 5000
MAX_LINKS = 3
BULK_DEFAULT_TIER = "emerging"
BULK_REJECT_NOTES = "Bulk rejected"
BULK_FLAG_NOTES = "Bulk flagged for review"

REVIEWABLE = {NominationStatus.PENDING, NominationStatus.FLAGGED}

RECEIVED_RESPONSE = {
    "status": "received",
    "message": "Thank you! Your nomination has been received and will be reviewed by our team.",
}


# --- Schemas ---

def _tier_field(v):
    try:
        return tiers.normalize_tier(v)
    except tiers.UnknownTierError as e:
        raise ValueError(str(e))


class NominationCreate(BaseModel):
    nominator_name: str = Field(..., min_length=2, max_length=100)
    nominator_email: EmailStr
    nominee_name: str = Field(..., min_length=2, max_length=100)
    nominee_email: EmailStr
    pitch: str = Field(..., min_length=1, max_length=PITCH_MAX_LENGTH)
    desired_tier: str
    links: List[HttpUrl] = Field(default_factory=list, max_length=MAX_LINKS)
    consent: bool
    # Honeypot: hidden from humans, filled in by bots
    website: Optional[str] = None

    @field_validator("nominator_name", "nominee_name", "pitch", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("links", mode="before")
    @classmethod
    def drop_blank_links(cls, v):
        if isinstance(v, list):
            return [link for link in v if not (isinstance(link, str) and not link.strip())]
        return v

    @field_validator("desired_tier")
    @classmethod
    def validate_tier(cls, v):
        return _tier_field(v).value

    @field_validator("consent")
    @classmethod
    def require_consent(cls, v: bool) -> bool:
        if not v:
            raise ValueError("Consent is required to submit a nomination")
        return v


class NominationOut(BaseModel):
    id: str
    nominator_name: str
    nominator_email: str
    nominee_name: str
    nominee_email: str
    pitch: str
    desired_tier: str
    links: List[str]
    status: str
    assigned_tier: Optional[str] = None
    admin_notes: Optional[str] = None
    flag_reason: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[str] = None
    nominee_user_id: Optional[str] = None
    created_at: str


class NominationPage(BaseModel):
    items: List[NominationOut]
    total: int
    page: int
    limit: int
    pages: int


class ApproveRequest(BaseModel):
    assigned_tier: str
    admin_notes: Optional[str] = Field(default=None, max_length=5000)
    temp_password: Optional[str] = Field(default=None, min_length=8, max_length=128)

    @field_validator("assigned_tier")
    @classmethod
    def validate_tier(cls, v):
        return _tier_field(v).value


class RejectRequest(BaseModel):
    admin_notes: Optional[str] = Field(default=None, max_length=5000)


class FlagRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=5000)


class BulkActionRequest(BaseModel):
    nomination_ids: List[str] = Field(..., min_length=1, max_length=100)
    action: Literal["approve", "reject", "flag"]
    assigned_tier: str = BULK_DEFAULT_TIER
    admin_notes: Optional[str] = None

    @field_validator("assigned_tier")
    @classmethod
    def validate_tier(cls, v):
        return _tier_field(v).value


# --- Helpers ---

def _value(v):
    return v.value if hasattr(v, "value") else v


def _nomination_to_out(n: Nomination) -> NominationOut:
    return NominationOut(
        id=n.id,
        nominator_name=n.nominator_name,
        nominator_email=n.nominator_email,
        nominee_name=n.nominee_name,
        nominee_email=n.nominee_email,
        pitch=n.pitch,
        desired_tier=_value(n.desired_tier),
        links=list(n.links or []),
        status=_value(n.status),
        assigned_tier=_value(n.assigned_tier) if n.assigned_tier else None,
        admin_notes=n.admin_notes,
        flag_reason=n.flag_reason,
        reviewed_by=n.reviewed_by,
        reviewed_at=n.reviewed_at.isoformat() if n.reviewed_at else None,
        nominee_user_id=n.nominee_user_id,
        created_at=n.created_at.isoformat() if n.created_at else "",
    )


async def _get_nomination(db: AsyncSession, nomination_id: str) -> Nomination:
    result = await db.execute(select(Nomination).where(Nomination.id == nomination_id))
    nomination = result.scalar_one_or_none()
    if not nomination:
        raise HTTPException(status_code=404, detail="Nomination not found")
    return nomination


def _ensure_reviewable(nomination: Nomination) -> None:
    if nomination.status not in REVIEWABLE:
        raise HTTPException(
            status_code=409,
            detail=f"Nomination already {_value(nomination.status)}",
        )


async def _approve(
    db: AsyncSession,
    nomination: Nomination,
    tier: str,
    reviewer: CurrentUser,
    admin_notes: Optional[str] = None,
    temp_password: Optional[str] = None,
    request: Optional[Request] = None,
) -> dict:
    """Approve one nomination and provision the nominee. Returns the invitation to send."""
    _ensure_reviewable(nomination)
    tier_enum = tiers.normalize_tier(tier)
    email = nomination.nominee_email.lower()

    result = await db.execute(select(User).where(User.email == email))
    nominee = result.scalar_one_or_none()
    credential = None
    if nominee:
        if nominee.role == UserRole.VISITOR:
            nominee.role = UserRole.APPLICANT
        nominee.tier = tier_enum
    else:
        credential = temp_password or AuthService.generate_temp_password()
        nominee = User(
            email=email,
            full_name=nomination.nominee_name,
            password_hash=AuthService.hash_password(credential),
            role=UserRole.APPLICANT,
            status=UserStatus.ACTIVE,
            tier=tier_enum,
            must_reset_password=True,
        )
        db.add(nominee)
        await db.flush()

    nomination.status = NominationStatus.APPROVED
    nomination.assigned_tier = tier_enum
    nomination.admin_notes = admin_notes
    nomination.reviewed_by = reviewer.id
    nomination.reviewed_at = utcnow()
    nomination.nominee_user_id = nominee.id

    record_audit(
        db, AuditEventType.NOMINATION_APPROVED, actor_id=reviewer.id,
        resource_type="nomination", resource_id=nomination.id,
        details={"assigned_tier": tier_enum.value, "nominee_user_id": nominee.id,
                 "new_account": credential is not None},
        request=request,
    )
    return {
        "nomination_id": nomination.id,
        "email": email,
        "name": nomination.nominee_name,
        "tier": tier_enum.value,
        "temp_password": credential,
    }


def _reject(nomination: Nomination, reviewer: CurrentUser, admin_notes: Optional[str]) -> None:
    _ensure_reviewable(nomination)
    nomination.status = NominationStatus.REJECTED
    nomination.admin_notes = admin_notes
    nomination.reviewed_by = reviewer.id
    nomination.reviewed_at = utcnow()


def _flag(nomination: Nomination, reviewer: CurrentUser, reason: str) -> None:
    _ensure_reviewable(nomination)
    nomination.status = NominationStatus.FLAGGED
    nomination.flag_reason = reason
    nomination.admin_notes = reason
    nomination.reviewed_by = reviewer.id
    nomination.reviewed_at = utcnow()


async def send_invitation(invitation: dict) -> None:
    """Background task: deliver the invitation; failures are logged, never raised."""
    sent = await get_email_service().send_invitation(
        invitation["email"], invitation["name"], invitation["tier"], invitation["temp_password"],
    )
    if sent:
        return
    logger.warning(f"Invitation email to {invitation['email']} failed for nomination {invitation['nomination_id']}")
    try:
        async with get_db_context() as db:
            record_audit(
                db, AuditEventType.INVITATION_FAILED,
                resource_type="nomination", resource_id=invitation["nomination_id"],
                details={"email": invitation["email"]},
            )
    except Exception:
        logger.exception("Could not record invitation failure")


async def send_nomination_receipt(to_email: str, nominator_name: str, nominee_name: str) -> None:
    if not await get_email_service().send_nomination_received(to_email, nominator_name, nominee_name):
        logger.warning(f"Nomination receipt to {to_email} could not be delivered")


# --- Public intake ---

@router.post("", status_code=201, dependencies=[Depends(limit_by_client(nomination_limiter))])
async def submit_nomination(
    data: NominationCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db_session),
):
    """Submit a nomination. The response never reveals the stored record."""
    if data.website and data.website.strip():
        client = request.client.host if request.client else "unknown"
        logger.warning(f"Honeypot triggered on nomination form from {client}; submission discarded")
        return RECEIVED_RESPONSE

    setting = await db.execute(select(SystemSetting.value).where(SystemSetting.key == "nominations_open"))
    if setting.scalar_one_or_none() is False:
        raise HTTPException(status_code=403, detail="Nominations are currently closed")

    nomination = Nomination(
        nominator_name=data.nominator_name,
        nominator_email=data.nominator_email.lower(),
        nominee_name=data.nominee_name,
        nominee_email=data.nominee_email.lower(),
        pitch=data.pitch,
        desired_tier=tiers.normalize_tier(data.desired_tier),
        links=[str(link) for link in data.links],
        status=NominationStatus.PENDING,
    )
    db.add(nomination)
    await db.flush()
    record_event(db, NOMINATION_SUBMITTED, data={"desired_tier": data.desired_tier}, request=request)
    await db.commit()

    logger.info(f"Nomination {nomination.id} received for tier {data.desired_tier}")
    background_tasks.add_task(
        send_nomination_receipt, nomination.nominator_email, data.nominator_name, data.nominee_name,
    )
    return RECEIVED_RESPONSE


# --- Admin review ---

@router.get("", response_model=NominationPage)
async def list_nominations(
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
    status: Optional[str] = Query(default=None, description="pending|approved|rejected|flagged|reviewable"),
    tier: Optional[str] = None,
    q: Optional[str] = Query(default=None, max_length=200),
    sort: Literal["created_at", "nominee_name"] = "created_at",
    order: Literal["asc", "desc"] = "desc",
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
):
    """List nominations with status/tier filters, free-text search and sorting"""
    filters = []
    if status == "reviewable":
        filters.append(Nomination.status.in_(list(REVIEWABLE)))
    elif status:
        try:
            filters.append(Nomination.status == NominationStatus(status))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid status: {status}")
    if tier:
        try:
            filters.append(Nomination.desired_tier == tiers.normalize_tier(tier))
        except tiers.UnknownTierError as e:
            raise HTTPException(status_code=400, detail=str(e))
    if q and q.strip():
        pattern = f"%{q.strip().lower()}%"
        filters.append(or_(
            func.lower(Nomination.nominee_name).like(pattern),
            func.lower(Nomination.nominator_name).like(pattern),
            func.lower(Nomination.nominee_email).like(pattern),
            func.lower(Nomination.nominator_email).like(pattern),
            func.lower(Nomination.pitch).like(pattern),
        ))

    total = (await db.execute(select(func.count(Nomination.id)).where(*filters))).scalar() or 0

    sort_column = Nomination.created_at if sort == "created_at" else Nomination.nominee_name
    sort_clause = sort_column.asc() if order == "asc" else sort_column.desc()
    result = await db.execute(
        select(Nomination)
        .where(*filters)
        .order_by(sort_clause, Nomination.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    items = [_nomination_to_out(n) for n in result.scalars().all()]
    return NominationPage(
        items=items, total=total, page=page, limit=limit,
        pages=(total + limit - 1) // limit if total else 0,
    )


@router.get("/stats")
async def nomination_stats(
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Counts per status plus the approval rate of reviewed nominations"""
    result = await db.execute(
        select(Nomination.status, func.count(Nomination.id)).group_by(Nomination.status)
    )
    by_status = {s.value: 0 for s in NominationStatus}
    for status, count in result.all():
        by_status[_value(status)] = count
    reviewed = by_status["approved"] + by_status["rejected"]
    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "approval_rate": round(by_status["approved"] / reviewed * 100, 1) if reviewed else 0.0,
    }


@router.post("/bulk")
async def bulk_action(
    data: BulkActionRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Apply one action uniformly to several nominations; non-reviewable ones are skipped"""
    result = await db.execute(select(Nomination).where(Nomination.id.in_(data.nomination_ids)))
    found = {n.id: n for n in result.scalars().all()}

    updated, skipped, invitations = [], [], []
    for nomination_id in dict.fromkeys(data.nomination_ids):
        nomination = found.get(nomination_id)
        if nomination is None:
            skipped.append({"id": nomination_id, "reason": "not_found"})
            continue
        if nomination.status not in REVIEWABLE:
            skipped.append({"id": nomination_id, "reason": f"already_{_value(nomination.status)}"})
            continue

        if data.action == "approve":
            invitations.append(await _approve(
                db, nomination, data.assigned_tier, user, data.admin_notes, request=request,
            ))
        elif data.action == "reject":
            _reject(nomination, user, data.admin_notes or BULK_REJECT_NOTES)
            record_audit(db, AuditEventType.NOMINATION_REJECTED, actor_id=user.id,
                         resource_type="nomination", resource_id=nomination.id,
                         details={"bulk": True}, request=request)
        else:
            _flag(nomination, user, data.admin_notes or BULK_FLAG_NOTES)
            record_audit(db, AuditEventType.NOMINATION_FLAGGED, actor_id=user.id,
                         resource_type="nomination", resource_id=nomination.id,
                         details={"bulk": True}, request=request)
        updated.append(nomination_id)

    await db.commit()
    for invitation in invitations:
        background_tasks.add_task(send_invitation, invitation)

    logger.info(f"Bulk {data.action} by {user.id}: {len(updated)} updated, {len(skipped)} skipped")
    return {"action": data.action, "updated": updated, "skipped": skipped}


@router.get("/{nomination_id}", response_model=NominationOut)
async def get_nomination(
    nomination_id: str,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    return _nomination_to_out(await _get_nomination(db, nomination_id))


@router.post("/{nomination_id}/approve", response_model=NominationOut)
async def approve_nomination(
    nomination_id: str,
    data: ApproveRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Approve, assign a tier and invite the nominee to build a profile"""
    nomination = await _get_nomination(db, nomination_id)
    invitation = await _approve(
        db, nomination, data.assigned_tier, user, data.admin_notes, data.temp_password, request,
    )
    await db.commit()
    await db.refresh(nomination)
    background_tasks.add_task(send_invitation, invitation)
    return _nomination_to_out(nomination)


@router.post("/{nomination_id}/reject", response_model=NominationOut)
async def reject_nomination(
    nomination_id: str,
    data: RejectRequest,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    nomination = await _get_nomination(db, nomination_id)
    _reject(nomination, user, data.admin_notes)
    record_audit(db, AuditEventType.NOMINATION_REJECTED, actor_id=user.id,
                 resource_type="nomination", resource_id=nomination.id, request=request)
    await db.commit()
    await db.refresh(nomination)
    return _nomination_to_out(nomination)


@router.post("/{nomination_id}/flag", response_model=NominationOut)
async def flag_nomination(
    nomination_id: str,
    data: FlagRequest,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Flag for further review; the nomination stays in the reviewable pool"""
    nomination = await _get_nomination(db, nomination_id)
    _flag(nomination, user, data.reason)
    record_audit(db, AuditEventType.NOMINATION_FLAGGED, actor_id=user.id,
                 resource_type="nomination", resource_id=nomination.id,
                 details={"reason": data.reason}, request=request)
    await db.commit()
    await db.refresh(nomination)
    return _nomination_to_out(nomination)
