# rate_limit.py — In-process sliding-window limits for public and AI endpoints
# Counters live in this process only, like the login lockout in auth.py.

import logging
import os
from collections import defaultdict, deque
from datetime import datetime, timedelta, timezone
from typing import Callable, Deque, Dict, Optional

from fastapi import Depends, HTTPException, Request

from auth import CurrentUser, get_current_user

logger = logging.getLogger("icons-herald.rate_limit")


class SlidingWindowLimiter:
    """At most `max_requests` hits per key within `window`."""

    def __init__(self, name: str, max_requests: int, window: timedelta):
        self.name = name
        self.max_requests = max_requests
        self.window = window
        self._hits: Dict[str, Deque[datetime]] = defaultdict(deque)

    def _prune(self, key: str, now: datetime) -> Deque[datetime]:
        hits = self._hits[key]
        cutoff = now - self.window
        while hits and hits[0] <= cutoff:
            hits.popleft()
        return hits

    def hit(self, key: str, now: Optional[datetime] = None) -> int:
        """Record one request; returns the remaining allowance or raises 429."""
        now = now or datetime.now(timezone.utc)
        hits = self._prune(key, now)
        if len(hits) >= self.max_requests:
            retry_after = int((hits[0] + self.window - now).total_seconds()) + 1
            logger.warning(f"Rate limit '{self.name}' exceeded for {key}")
            raise HTTPException(
                status_code=429,
                detail="Rate limit exceeded. Try again later.",
                headers={
                    "Retry-After": str(max(retry_after, 1)),
                    "X-RateLimit-Limit": str(self.max_requests),
                    "X-RateLimit-Remaining": "0",
                },
            )
        hits.append(now)
        return self.max_requests - len(hits)

    def remaining(self, key: str, now: Optional[datetime] = None) -> int:
        hits = self._prune(key, now or datetime.now(timezone.utc))
        return max(0, self.max_requests - len(hits))

    def reset(self) -> None:
        self._hits.clear()


nomination_limiter = SlidingWindowLimiter(
    "nominations", int(os.getenv("NOMINATION_RATE_LIMIT", "5")), timedelta(hours=1),
)
ai_polish_limiter = SlidingWindowLimiter(
    "ai_polish", int(os.getenv("AI_POLISH_RATE_LIMIT", "5")), timedelta(hours=1),
)

LIMITERS = (nomination_limiter, ai_polish_limiter)


def client_key(request: Request) -> str:
    """First X-Forwarded-For hop when behind a proxy, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "anonymous"


def limit_by_client(limiter: SlidingWindowLimiter) -> Callable:
    async def _check(request: Request) -> None:
        limiter.hit(client_key(request))
    return _check


def limit_by_user(limiter: SlidingWindowLimiter, user_dependency: Callable = get_current_user) -> Callable:
    async def _check(user: CurrentUser = Depends(user_dependency)) -> CurrentUser:
        limiter.hit(user.id)
        return user
    return _check
