# routers/analytics.py — Public event tracking + per-profile dashboards
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from auth import ADMIN_ROLES
from database import get_db_session
from impersonation import RequestContext, get_request_context
from models import Profile, ProfileStatus, UserRole
from profile_analytics import (
    DEFAULT_WINDOW_DAYS, PROFILE_VIEW, PUBLIC_EVENT_TYPES, profile_summary, record_event,
)

router = APIRouter(prefix="/api/v1/analytics", tags=["Analytics"])


class TrackEvent(BaseModel):
    event_type: str
    slug: str = Field(..., max_length=100)
    visitor_id: Optional[str] = Field(default=None, max_length=100)
    source: Optional[str] = Field(default=None, max_length=200)
    data: Dict[str, Any] = Field(default_factory=dict)


@router.post("/events", status_code=202)
async def track_event(
    event: TrackEvent,
    request: Request,
    db: AsyncSession = Depends(get_db_session),
):
    """Record an interaction with a published profile"""
    if event.event_type not in PUBLIC_EVENT_TYPES:
        raise HTTPException(status_code=400, detail=f"Unsupported event type: {event.event_type}")

    result = await db.execute(
        select(Profile).where(Profile.slug == event.slug, Profile.status == ProfileStatus.PUBLISHED)
    )
    profile = result.scalar_one_or_none()
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")

    if event.event_type == PROFILE_VIEW:
        await db.execute(
            update(Profile).where(Profile.id == profile.id).values(view_count=Profile.view_count + 1)
        )
    record_event(
        db, event.event_type, profile_id=profile.id, visitor_id=event.visitor_id,
        source=event.source, data=event.data, request=request,
    )
    await db.commit()
    return {"status": "recorded"}


async def _summary_for(db: AsyncSession, profile: Optional[Profile], days: int) -> Dict[str, Any]:
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    summary = await profile_summary(db, profile.id, days)
    summary.update({"profile_id": profile.id, "slug": profile.slug, "lifetime_views": profile.view_count or 0})
    return summary


@router.get("/mine")
async def my_profile_analytics(
    days: int = Query(default=DEFAULT_WINDOW_DAYS, ge=1, le=365),
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db_session),
):
    result = await db.execute(select(Profile).where(Profile.user_id == ctx.user.id))
    return await _summary_for(db, result.scalar_one_or_none(), days)


@router.get("/profiles/{profile_id}")
async def profile_analytics(
    profile_id: str,
    days: int = Query(default=DEFAULT_WINDOW_DAYS, ge=1, le=365),
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db_session),
):
    """Views summary for one profile (its owner or an admin)"""
    result = await db.execute(select(Profile).where(Profile.id == profile_id))
    profile = result.scalar_one_or_none()
    if profile and profile.user_id != ctx.user.id and UserRole(ctx.user.role) not in ADMIN_ROLES:
        raise HTTPException(status_code=403, detail="Not allowed to view these analytics")
    return await _summary_for(db, profile, days)
