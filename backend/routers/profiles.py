# routers/profiles.py — Draft lifecycle, Publish & Pay, public profile pages
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field
from sqlalchemy import select, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession

import builder
import list_manager
import renderer
import tiers
from auth import PROFILE_OWNER_ROLES
from database import get_db_session
from email_service import PUBLIC_BASE_URL
from impersonation import RequestContext, get_request_context
from models import (
    Payment, PaymentStatus, Profile, ProfilePaymentStatus, ProfileStatus,
    UserRole,
)
from payment_gateway import GatewayError, get_gateway
from profile_analytics import PROFILE_VIEW, record_event

logger = logging.getLogger("icons-herald.profiles")

router = APIRouter(prefix="/api/v1/profiles", tags=["Profiles"])
page_router = APIRouter(tags=["Profile Pages"])

# Slugs that would collide with fixed routes
RESERVED_SLUGS = {"draft", "mine", "new", "admin"}


# --- Schemas ---

class SaveDraftRequest(BaseModel):
    content: Dict[str, Any] = Field(default_factory=dict)
    theme_settings: Optional[Dict[str, Any]] = None
    template: Optional[str] = None
    slug: Optional[str] = Field(default=None, max_length=builder.SLUG_MAX_LENGTH)


class ProfileOut(BaseModel):
    id: str
    user_id: str
    tier: str
    status: str
    slug: str
    content: Dict[str, Any]
    theme_settings: Dict[str, Any]
    template: Optional[str] = None
    payment_status: str
    published_at: Optional[str] = None
    view_count: int
    completion: int
    missing_fields: List[str]
    created_at: str
    updated_at: Optional[str] = None


class PublicProfileOut(BaseModel):
    slug: str
    tier: str
    template: str
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    published_at: Optional[str] = None
    view_count: int
    page: Dict[str, Any]


# --- Helpers ---

def _value(v):
    return v.value if hasattr(v, "value") else v


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def _profile_to_out(p: Profile) -> ProfileOut:
    return ProfileOut(
        id=p.id,
        user_id=p.user_id,
        tier=_value(p.tier),
        status=_value(p.status),
        slug=p.slug,
        content=p.content or {},
        theme_settings=p.theme_settings or {},
        template=p.template,
        payment_status=_value(p.payment_status),
        published_at=_iso(p.published_at),
        view_count=p.view_count or 0,
        completion=builder.completion_percentage(p.tier, p.content),
        missing_fields=builder.missing_fields(p.tier, p.content),
        created_at=_iso(p.created_at) or "",
        updated_at=_iso(p.updated_at),
    )


async def get_owner_context(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    """Profile owners are approved nominees (applicant) or published members."""
    if UserRole(ctx.user.role) not in PROFILE_OWNER_ROLES:
        raise HTTPException(status_code=403, detail="Only approved nominees can build a profile")
    if not ctx.user.tier:
        raise HTTPException(status_code=403, detail="No tier assigned to this account")
    return ctx


async def _owner_profile(db: AsyncSession, user_id: str) -> Optional[Profile]:
    result = await db.execute(select(Profile).where(Profile.user_id == user_id))
    return result.scalar_one_or_none()


async def _require_owner_profile(db: AsyncSession, user_id: str) -> Profile:
    profile = await _owner_profile(db, user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="No profile draft found")
    return profile


async def _slug_taken(db: AsyncSession, slug: str, profile_id: Optional[str]) -> bool:
    stmt = select(Profile.id).where(Profile.slug == slug)
    if profile_id:
        stmt = stmt.where(Profile.id != profile_id)
    return (await db.execute(stmt)).first() is not None


async def unique_slug(db: AsyncSession, name: str, profile_id: Optional[str] = None) -> str:
    base = builder.slugify(name) or "icon"
    candidate, suffix = base, 1
    while candidate in RESERVED_SLUGS or await _slug_taken(db, candidate, profile_id):
        suffix += 1
        tail = f"-{suffix}"
        candidate = f"{base[:builder.SLUG_MAX_LENGTH - len(tail)]}{tail}"
    return candidate


async def _published_by_slug(db: AsyncSession, slug: str) -> Profile:
    result = await db.execute(
        select(Profile).where(Profile.slug == slug, Profile.status == ProfileStatus.PUBLISHED)
    )
    profile = result.scalar_one_or_none()
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


async def _count_view(db: AsyncSession, profile: Profile, request: Request, source: Optional[str]) -> None:
    await db.execute(
        update(Profile).where(Profile.id == profile.id).values(view_count=Profile.view_count + 1)
    )
    record_event(
        db, PROFILE_VIEW, profile_id=profile.id,
        visitor_id=request.headers.get("x-visitor-id"),
        source=source or request.headers.get("referer"),
        request=request,
    )
    await db.commit()
    await db.refresh(profile)


def _render(profile: Profile, variant: Optional[str] = None, preview: bool = False) -> renderer.RenderedPage:
    try:
        return renderer.render_profile(
            profile.tier,
            profile.content,
            variant=variant or profile.template,
            theme=profile.theme_settings,
            preview=preview,
            canonical_url=None if preview else f"{PUBLIC_BASE_URL}/profile/{profile.slug}",
        )
    except renderer.UnknownTemplateError as e:
        raise HTTPException(status_code=400, detail=str(e))


# --- Owner: draft lifecycle ---

@router.get("/draft", response_model=ProfileOut)
async def get_draft(
    ctx: RequestContext = Depends(get_owner_context),
    db: AsyncSession = Depends(get_db_session),
):
    return _profile_to_out(await _require_owner_profile(db, ctx.user.id))


@router.put("/draft", response_model=ProfileOut)
async def save_draft(
    data: SaveDraftRequest,
    ctx: RequestContext = Depends(get_owner_context),
    db: AsyncSession = Depends(get_db_session),
):
    """Create or update the caller's single profile; it stays a draft"""
    profile = await _owner_profile(db, ctx.user.id)
    if profile and profile.status != ProfileStatus.DRAFT:
        raise HTTPException(status_code=409, detail=f"Profile is {_value(profile.status)}; drafts can no longer be saved")

    if data.template:
        try:
            renderer.resolve_template(ctx.user.tier, data.template)
        except renderer.UnknownTemplateError as e:
            raise HTTPException(status_code=400, detail=str(e))

    problems = builder.content_errors(data.content)
    if problems:
        raise HTTPException(status_code=422, detail=problems)

    content = list_manager.normalize_content(data.content)
    profile_id = profile.id if profile else None

    if data.slug:
        slug = builder.slugify(data.slug)
        if not slug or slug in RESERVED_SLUGS:
            raise HTTPException(status_code=400, detail="Invalid slug")
        if await _slug_taken(db, slug, profile_id):
            raise HTTPException(status_code=409, detail="Slug already in use")
    elif profile:
        slug = profile.slug
    else:
        slug = await unique_slug(db, builder.text_of(content.get("name")) or ctx.user.full_name)

    if profile is None:
        profile = Profile(
            user_id=ctx.user.id,
            tier=tiers.normalize_tier(ctx.user.tier),
            status=ProfileStatus.DRAFT,
            payment_status=ProfilePaymentStatus.PENDING,
        )
        db.add(profile)

    profile.tier = tiers.normalize_tier(ctx.user.tier)
    profile.slug = slug
    profile.content = content
    if data.theme_settings is not None:
        profile.theme_settings = dict(data.theme_settings)
    if data.template:
        profile.template = data.template
    profile.meta_title = builder.text_of(content.get("name")) or None
    profile.meta_description = builder.text_of(content.get("tagline"))[:160] or None

    await db.commit()
    await db.refresh(profile)
    if ctx.is_impersonating:
        logger.info(f"Draft {profile.id} saved by {ctx.actor.id} impersonating {ctx.user.id}")
    return _profile_to_out(profile)


@router.delete("/draft")
async def delete_draft(
    ctx: RequestContext = Depends(get_owner_context),
    db: AsyncSession = Depends(get_db_session),
):
    """Discard an unpublished draft together with its unpaid payment attempts"""
    profile = await _require_owner_profile(db, ctx.user.id)
    if profile.status != ProfileStatus.DRAFT:
        raise HTTPException(status_code=409, detail="Only drafts can be deleted")

    result = await db.execute(select(Payment).where(Payment.profile_id == profile.id))
    payments = result.scalars().all()
    if any(p.status in (PaymentStatus.CAPTURED, PaymentStatus.AUTHORIZED) for p in payments):
        raise HTTPException(status_code=409, detail="Draft has a payment in progress")

    for payment in payments:
        await db.delete(payment)
    await db.delete(profile)
    await db.commit()
    return {"status": "deleted", "message": "Draft discarded"}


@router.get("/draft/preview", response_class=HTMLResponse)
async def preview_draft(
    template: Optional[str] = None,
    ctx: RequestContext = Depends(get_owner_context),
    db: AsyncSession = Depends(get_db_session),
):
    profile = await _require_owner_profile(db, ctx.user.id)
    return HTMLResponse(_render(profile, template, preview=True).html)


@router.post("/draft/publish")
async def publish_and_pay(
    ctx: RequestContext = Depends(get_owner_context),
    db: AsyncSession = Depends(get_db_session),
):
    """Gate on completion, then open a payment order for the tier price"""
    profile = await _require_owner_profile(db, ctx.user.id)
    if profile.status != ProfileStatus.DRAFT:
        raise HTTPException(status_code=409, detail=f"Profile is already {_value(profile.status)}")

    captured = await db.execute(
        select(Payment.id).where(Payment.profile_id == profile.id, Payment.status == PaymentStatus.CAPTURED)
    )
    if captured.first() is not None:
        raise HTTPException(status_code=409, detail="Payment already completed for this profile")

    completion = builder.completion_percentage(profile.tier, profile.content)
    if completion < tiers.PUBLISH_THRESHOLD:
        raise HTTPException(status_code=400, detail={
            "message": f"Profile must be at least {tiers.PUBLISH_THRESHOLD}% complete to publish",
            "completion": completion,
            "missing_fields": builder.missing_fields(profile.tier, profile.content),
        })

    amount = tiers.price_for(profile.tier)
    gateway = get_gateway()
    try:
        order = await gateway.create_order(
            amount,
            tiers.PAYMENT_CURRENCY,
            receipt=f"profile_{profile.id[:8]}",
            notes={"profile_id": profile.id, "user_id": ctx.user.id, "tier": _value(profile.tier)},
        )
    except GatewayError as e:
        raise HTTPException(status_code=502, detail=str(e))

    payment = Payment(
        profile_id=profile.id,
        user_id=ctx.user.id,
        tier=profile.tier,
        amount=order.amount,
        currency=order.currency,
        status=PaymentStatus.CREATED,
        gateway_order_id=order.order_id,
    )
    db.add(payment)
    profile.payment_status = ProfilePaymentStatus.PENDING
    await db.commit()

    logger.info(f"Payment order {order.order_id} opened for profile {profile.id} ({amount} {order.currency})")
    return {
        "payment_id": payment.id,
        "order_id": order.order_id,
        "amount": order.amount,
        "currency": order.currency,
        "key_id": gateway.key_id or None,
        "stub": order.stub,
        "profile_id": profile.id,
        "tier": _value(profile.tier),
    }


# --- Public ---

@router.get("")
async def list_published_profiles(
    db: AsyncSession = Depends(get_db_session),
    tier: Optional[str] = None,
    q: Optional[str] = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=12, ge=1, le=50),
):
    """Directory of published profiles"""
    filters = [Profile.status == ProfileStatus.PUBLISHED]
    if tier:
        try:
            filters.append(Profile.tier == tiers.normalize_tier(tier))
        except tiers.UnknownTierError as e:
            raise HTTPException(status_code=400, detail=str(e))
    if q and q.strip():
        pattern = f"%{q.strip().lower()}%"
        filters.append(or_(
            func.lower(Profile.meta_title).like(pattern),
            func.lower(Profile.meta_description).like(pattern),
        ))

    total = (await db.execute(select(func.count(Profile.id)).where(*filters))).scalar() or 0
    result = await db.execute(
        select(Profile).where(*filters)
        .order_by(Profile.published_at.desc(), Profile.id)
        .offset((page - 1) * limit).limit(limit)
    )
    items = [
        {
            "slug": p.slug,
            "tier": _value(p.tier),
            "name": p.meta_title,
            "tagline": p.meta_description,
            "hero_image": (p.content or {}).get("heroImage"),
            "published_at": _iso(p.published_at),
        }
        for p in result.scalars().all()
    ]
    return {"items": items, "total": total, "page": page, "limit": limit}


@router.get("/{slug}", response_model=PublicProfileOut)
async def get_public_profile(
    slug: str,
    request: Request,
    template: Optional[str] = None,
    ref: Optional[str] = Query(default=None, max_length=200),
    db: AsyncSession = Depends(get_db_session),
):
    """Published profile as a render view model; counts a view"""
    profile = await _published_by_slug(db, slug)
    page = _render(profile, template)
    await _count_view(db, profile, request, ref)
    return PublicProfileOut(
        slug=profile.slug,
        tier=_value(profile.tier),
        template=page.template,
        meta_title=profile.meta_title,
        meta_description=profile.meta_description,
        published_at=_iso(profile.published_at),
        view_count=profile.view_count,
        page=renderer.view_model(page),
    )


@page_router.get("/profile/{slug}", response_class=HTMLResponse)
async def profile_page(
    slug: str,
    request: Request,
    template: Optional[str] = None,
    ref: Optional[str] = Query(default=None, max_length=200),
    db: AsyncSession = Depends(get_db_session),
):
    """Server-rendered public profile page"""
    profile = await _published_by_slug(db, slug)
    page = _render(profile, template)
    await _count_view(db, profile, request, ref)
    return HTMLResponse(page.html)
