# audit.py — Append-only audit trail helper
import uuid
import logging
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from models import AuditLog, AuditEventType

logger = logging.getLogger("icons-herald.audit")


def _request_id(request: Optional[Request]) -> str:
    """Correlation id set by the request middleware; fresh one for background work."""
    rid = getattr(request.state, "request_id", None) if request else None
    return rid or str(uuid.uuid4())


def record_audit(
    db: AsyncSession,
    event_type: AuditEventType,
    actor_id: Optional[str] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> AuditLog:
    """Stage an audit row on the session; the caller's commit persists it."""
    entry = AuditLog(
        event_type=event_type,
        actor_id=actor_id,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details or {},
        ip_address=request.client.host if request and request.client else None,
        user_agent=request.headers.get("user-agent") if request else None,
        request_id=_request_id(request),
    )
    db.add(entry)
    logger.info(f"audit {event_type.value} actor={actor_id} {resource_type}={resource_id}")
    return entry
