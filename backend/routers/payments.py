# routers/payments.py — Checkout verification, gateway webhooks, payment history
import json
import logging
from typing import Optional, List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from audit import record_audit
from auth import CurrentUser, require_admin
from database import get_db_session
from email_service import get_email_service
from impersonation import RequestContext, get_request_context
from models import (
    AuditEventType, Payment, PaymentStatus, Profile, ProfilePaymentStatus,
    ProfileStatus, User, UserRole, utcnow,
)
from payment_gateway import get_gateway, parse_webhook_event
from profile_analytics import PAYMENT_FAILED, PROFILE_PUBLISHED, record_event

logger = logging.getLogger("icons-herald.payments")

router = APIRouter(prefix="/api/v1/payments", tags=["Payments"])

SIGNATURE_HEADER = "X-Razorpay-Signature"

# Allowed forward moves; anything else is a stale or duplicate delivery
_TRANSITIONS = {
    PaymentStatus.CREATED: {PaymentStatus.AUTHORIZED, PaymentStatus.CAPTURED, PaymentStatus.FAILED},
    PaymentStatus.AUTHORIZED: {PaymentStatus.CAPTURED, PaymentStatus.FAILED},
    PaymentStatus.FAILED: {PaymentStatus.AUTHORIZED, PaymentStatus.CAPTURED},
    PaymentStatus.CAPTURED: {PaymentStatus.REFUNDED},
    PaymentStatus.REFUNDED: set(),
}


class VerifyRequest(BaseModel):
    order_id: str
    payment_id: str
    signature: str


class PaymentOut(BaseModel):
    id: str
    profile_id: str
    user_id: str
    tier: str
    amount: int
    currency: str
    status: str
    gateway_order_id: str
    gateway_payment_id: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: str
    updated_at: Optional[str] = None


def _value(v):
    return v.value if hasattr(v, "value") else v


def _payment_to_out(p: Payment) -> PaymentOut:
    return PaymentOut(
        id=p.id,
        profile_id=p.profile_id,
        user_id=p.user_id,
        tier=_value(p.tier),
        amount=p.amount,
        currency=p.currency,
        status=_value(p.status),
        gateway_order_id=p.gateway_order_id,
        gateway_payment_id=p.gateway_payment_id,
        failure_reason=p.failure_reason,
        created_at=p.created_at.isoformat() if p.created_at else "",
        updated_at=p.updated_at.isoformat() if p.updated_at else None,
    )


async def _payment_by_order(db: AsyncSession, order_id: Optional[str]) -> Optional[Payment]:
    if not order_id:
        return None
    result = await db.execute(select(Payment).where(Payment.gateway_order_id == order_id))
    return result.scalar_one_or_none()


async def apply_payment_status(
    db: AsyncSession,
    payment: Payment,
    new_status: PaymentStatus,
    gateway_payment_id: Optional[str] = None,
    signature: Optional[str] = None,
    failure_reason: Optional[str] = None,
    request: Optional[Request] = None,
) -> Optional[dict]:
    """Move a payment forward and apply its side effects. Caller commits.

    Returns the publish notification to send when this call published the profile.
    """
    current = PaymentStatus(payment.status)
    if new_status == current or new_status not in _TRANSITIONS[current]:
        logger.info(f"Ignoring {new_status.value} for payment {payment.id} already {current.value}")
        return None

    payment.status = new_status
    if gateway_payment_id:
        payment.gateway_payment_id = gateway_payment_id
    if signature:
        payment.gateway_signature = signature

    if new_status == PaymentStatus.FAILED:
        payment.failure_reason = failure_reason or "Payment failed"
        record_event(db, PAYMENT_FAILED, profile_id=payment.profile_id, user_id=payment.user_id,
                     data={"reason": payment.failure_reason})
        record_audit(db, AuditEventType.PAYMENT_FAILED, actor_id=payment.user_id,
                     resource_type="payment", resource_id=payment.id,
                     details={"reason": payment.failure_reason}, request=request)
        return None

    if new_status == PaymentStatus.REFUNDED:
        record_audit(db, AuditEventType.PAYMENT_REFUNDED, resource_type="payment",
                     resource_id=payment.id, request=request)
        return None

    if new_status != PaymentStatus.CAPTURED:
        return None

    payment.failure_reason = None
    profile = (await db.execute(select(Profile).where(Profile.id == payment.profile_id))).scalar_one()
    owner = (await db.execute(select(User).where(User.id == payment.user_id))).scalar_one()

    profile.payment_status = ProfilePaymentStatus.COMPLETED
    published_now = profile.status != ProfileStatus.PUBLISHED
    if published_now:
        profile.status = ProfileStatus.PUBLISHED
        profile.published_at = utcnow()
    if owner.role == UserRole.APPLICANT:
        owner.role = UserRole.MEMBER

    record_audit(db, AuditEventType.PAYMENT_CAPTURED, actor_id=payment.user_id,
                 resource_type="payment", resource_id=payment.id,
                 details={"amount": payment.amount, "currency": payment.currency}, request=request)
    if not published_now:
        return None

    record_event(db, PROFILE_PUBLISHED, profile_id=profile.id, user_id=owner.id,
                 data={"tier": _value(profile.tier), "payment_id": payment.id})
    record_audit(db, AuditEventType.PROFILE_PUBLISHED, actor_id=owner.id,
                 resource_type="profile", resource_id=profile.id, request=request)
    logger.info(f"Profile {profile.id} published after payment {payment.id}")
    return {"email": owner.email, "name": owner.full_name or profile.meta_title or "", "slug": profile.slug}


async def send_published_notice(notice: dict) -> None:
    if not await get_email_service().send_profile_published(notice["email"], notice["name"], notice["slug"]):
        logger.warning(f"Publish confirmation to {notice['email']} could not be delivered")


@router.post("/verify", response_model=PaymentOut)
async def verify_payment(
    data: VerifyRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db_session),
):
    """Checkout callback: confirm the gateway signature and capture"""
    payment = await _payment_by_order(db, data.order_id)
    if not payment or payment.user_id != ctx.user.id:
        raise HTTPException(status_code=404, detail="Payment not found")

    if not get_gateway().verify_payment_signature(data.order_id, data.payment_id, data.signature):
        logger.warning(f"Invalid checkout signature for order {data.order_id}")
        raise HTTPException(status_code=400, detail="Invalid payment signature")

    notice = await apply_payment_status(
        db, payment, PaymentStatus.CAPTURED,
        gateway_payment_id=data.payment_id, signature=data.signature, request=request,
    )
    await db.commit()
    await db.refresh(payment)
    if notice:
        background_tasks.add_task(send_published_notice, notice)
    return _payment_to_out(payment)


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db_session),
):
    """Gateway webhook; authenticated by HMAC of the raw body"""
    body = await request.body()
    if not get_gateway().verify_webhook_signature(body, request.headers.get(SIGNATURE_HEADER)):
        logger.warning("Rejected payment webhook with invalid signature")
        raise HTTPException(status_code=400, detail="Invalid webhook signature")

    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Malformed webhook body")

    new_status, info = parse_webhook_event(payload)
    if new_status is None:
        logger.info(f"Unhandled payment webhook event: {info['event']}")
        return {"status": "ignored", "event": info["event"]}

    payment = await _payment_by_order(db, info["order_id"])
    if not payment:
        logger.warning(f"Webhook {info['event']} for unknown order {info['order_id']}")
        return {"status": "ignored", "event": info["event"]}

    notice = await apply_payment_status(
        db, payment, new_status,
        gateway_payment_id=info["payment_id"],
        failure_reason=info["error_description"],
        request=request,
    )
    await db.commit()
    if notice:
        background_tasks.add_task(send_published_notice, notice)
    return {"status": "processed", "event": info["event"], "payment_status": _value(payment.status)}


@router.get("/mine", response_model=List[PaymentOut])
async def my_payments(
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db_session),
):
    result = await db.execute(
        select(Payment).where(Payment.user_id == ctx.user.id).order_by(Payment.created_at.desc())
    )
    return [_payment_to_out(p) for p in result.scalars().all()]


@router.get("", response_model=List[PaymentOut])
async def list_payments(
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
    status: Optional[str] = None,
    limit: int = Query(default=50, le=200),
    offset: int = Query(default=0, ge=0),
):
    """All payment attempts, newest first"""
    stmt = select(Payment).order_by(Payment.created_at.desc()).offset(offset).limit(limit)
    if status:
        try:
            stmt = stmt.where(Payment.status == PaymentStatus(status))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid status: {status}")
    result = await db.execute(stmt)
    return [_payment_to_out(p) for p in result.scalars().all()]
