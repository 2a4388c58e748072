"""
Icons Herald — Profile analytics

Append-only event recording plus the per-profile summary shown on the
owner's dashboard (views, unique visitors, daily series, top sources).
"""

import logging
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import AnalyticsEvent, as_utc

logger = logging.getLogger("icons-herald.analytics")

PROFILE_VIEW = "profile_view"
PROFILE_PUBLISHED = "profile_published"
NOMINATION_SUBMITTED = "nomination_submitted"
PAYMENT_FAILED = "payment_failed"
AI_BIO_POLISH = "ai_bio_polish"

# Events the public tracking endpoint accepts
PUBLIC_EVENT_TYPES = {PROFILE_VIEW, "link_click", "share"}

DEFAULT_WINDOW_DAYS = 30
TOP_SOURCES_LIMIT = 5


def record_event(
    db: AsyncSession,
    event_type: str,
    profile_id: Optional[str] = None,
    user_id: Optional[str] = None,
    visitor_id: Optional[str] = None,
    source: Optional[str] = None,
    data: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> AnalyticsEvent:
    event = AnalyticsEvent(
        event_type=event_type,
        profile_id=profile_id,
        user_id=user_id,
        visitor_id=visitor_id,
        source=source,
        event_data=data or {},
        ip_address=request.client.host if request and request.client else None,
    )
    db.add(event)
    return event


def summarize_views(events: Iterable[AnalyticsEvent], days: int = DEFAULT_WINDOW_DAYS,
                    now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    start = (now - timedelta(days=days - 1)).date()

    daily = defaultdict(int)
    visitors = set()
    sources = Counter()
    total = 0
    for event in events:
        created = as_utc(event.created_at)
        if created is None or created.date() < start:
            continue
        total += 1
        daily[created.date().isoformat()] += 1
        visitor = event.visitor_id or event.ip_address
        if visitor:
            visitors.add(visitor)
        sources[event.source or "direct"] += 1

    series: List[Dict[str, Any]] = []
    for offset in range(days):
        day = (start + timedelta(days=offset)).isoformat()
        series.append({"date": day, "views": daily.get(day, 0)})

    return {
        "days": days,
        "total_views": total,
        "unique_visitors": len(visitors),
        "daily_views": series,
        "top_sources": [
            {"source": s, "views": c} for s, c in sources.most_common(TOP_SOURCES_LIMIT)
        ],
    }


async def profile_summary(db: AsyncSession, profile_id: str, days: int = DEFAULT_WINDOW_DAYS) -> Dict[str, Any]:
    since = datetime.now(timezone.utc) - timedelta(days=days)
    result = await db.execute(
        select(AnalyticsEvent).where(
            AnalyticsEvent.profile_id == profile_id,
            AnalyticsEvent.event_type == PROFILE_VIEW,
            AnalyticsEvent.created_at >= since,
        )
    )
    return summarize_views(result.scalars().all(), days=days)
