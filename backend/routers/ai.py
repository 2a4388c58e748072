# routers/ai.py — AI bio polish for profile owners
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

import bio_polish
import builder
import tiers
from auth import CurrentUser, ROLE_HIERARCHY, get_current_user, require_min_role
from database import get_db_session
from models import AnalyticsEvent, Profile, ProfileStatus, UserRole, utcnow
from profile_analytics import AI_BIO_POLISH, record_event
from rate_limit import ai_polish_limiter, limit_by_user

router = APIRouter(prefix="/api/v1/ai", tags=["AI"])

AI_MIN_ROLE = UserRole.APPLICANT
ai_user = limit_by_user(ai_polish_limiter, require_min_role(AI_MIN_ROLE))


class PolishBioRequest(BaseModel):
    bio: str = Field(..., min_length=bio_polish.BIO_MIN_LENGTH, max_length=bio_polish.BIO_MAX_LENGTH)
    tone: str = "professional"
    tier: Optional[str] = None
    apply_to_draft: bool = False

    @field_validator("tone")
    @classmethod
    def validate_tone(cls, v):
        if v not in bio_polish.TONES:
            raise ValueError(f"Tone must be one of: {', '.join(bio_polish.TONES)}")
        return v

    @field_validator("tier")
    @classmethod
    def validate_tier(cls, v):
        if v is None:
            return v
        try:
            return tiers.normalize_tier(v).value
        except tiers.UnknownTierError as e:
            raise ValueError(str(e))


def _has_access(user: CurrentUser) -> bool:
    return ROLE_HIERARCHY.get(UserRole(user.role), 0) >= ROLE_HIERARCHY[AI_MIN_ROLE]


async def _daily_usage(db: AsyncSession, user_id: str) -> int:
    since = utcnow() - timedelta(hours=24)
    result = await db.execute(
        select(func.count(AnalyticsEvent.id)).where(
            AnalyticsEvent.user_id == user_id,
            AnalyticsEvent.event_type == AI_BIO_POLISH,
            AnalyticsEvent.created_at >= since,
        )
    )
    return result.scalar() or 0


async def _apply_to_draft(db: AsyncSession, user_id: str, original: str, polished: str) -> Profile:
    result = await db.execute(select(Profile).where(Profile.user_id == user_id))
    profile = result.scalar_one_or_none()
    if not profile:
        raise HTTPException(status_code=404, detail="No profile draft found")
    if profile.status != ProfileStatus.DRAFT:
        raise HTTPException(status_code=409, detail="Only drafts can take a polished bio")

    content = dict(profile.content or {})
    bio = content.get("bio")
    bio = dict(bio) if isinstance(bio, dict) else {"original": builder.text_of(bio)}
    if not builder.text_of(bio.get("original")):
        bio["original"] = original
    bio["ai_polished"] = polished
    content["bio"] = bio
    profile.content = content
    return profile


@router.post("/polish-bio")
async def polish_bio(
    data: PolishBioRequest,
    request: Request,
    user: CurrentUser = Depends(ai_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Polish a biography for the caller's tier; optionally store it on their draft"""
    if await _daily_usage(db, user.id) >= bio_polish.DAILY_LIMIT:
        raise HTTPException(status_code=429, detail="AI usage limit exceeded. Please try again later.")

    tier = data.tier or user.tier or tiers.ProfileTier.ACCOMPLISHED.value
    try:
        result = await bio_polish.polish_bio(data.bio, tier, data.tone)
    except bio_polish.PolishError as e:
        if e.kind == "rate_limit":
            raise HTTPException(status_code=503, detail="AI service is currently busy. Please try again in a few minutes.")
        if e.kind == "content_policy":
            raise HTTPException(status_code=400, detail="Content violates AI usage policies. Please revise your bio.")
        raise HTTPException(status_code=500, detail="AI processing failed. Please try again.")

    if data.apply_to_draft:
        await _apply_to_draft(db, user.id, data.bio, result.text)

    record_event(db, AI_BIO_POLISH, user_id=user.id, request=request, data={
        "feature": "bio_polish",
        "input_length": len(data.bio),
        "output_length": len(result.text),
        "tier": tier,
        "tone": data.tone,
        "provider": result.provider,
    })
    await db.commit()

    return {
        "success": True,
        "original_bio": data.bio,
        "polished_bio": result.text,
        "applied": data.apply_to_draft,
        "metadata": {
            "tone": data.tone,
            "tier": tier,
            "provider": result.provider,
            "model": result.model,
            "original_length": len(data.bio),
            "polished_length": len(result.text),
        },
    }


@router.get("/polish-bio")
async def polish_bio_status(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Whether the caller can use bio polish, and how much of today's allowance is left"""
    has_access = _has_access(user)
    daily_limit = bio_polish.DAILY_LIMIT if has_access else 0
    used = await _daily_usage(db, user.id)
    return {
        "has_access": has_access,
        "user_role": user.role,
        "user_tier": user.tier,
        "provider": bio_polish.resolve_provider()[0],
        "usage": {
            "daily": used,
            "daily_limit": daily_limit,
            "remaining": max(0, daily_limit - used),
            "hourly_remaining": ai_polish_limiter.remaining(user.id) if has_access else 0,
        },
        "features": {
            "bio_polish": has_access,
            "tone_options": list(bio_polish.TONES),
            "supported_tiers": [t.value for t in tiers.ProfileTier],
        },
    }
