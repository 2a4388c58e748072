# payment_gateway.py — Razorpay client: orders, signatures, status mapping
# Without RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET the client mints local order
# ids instead of calling the Orders API. Stub mode skips only that call:
# checkout verification still needs RAZORPAY_KEY_SECRET and webhooks still
# need RAZORPAY_WEBHOOK_SECRET, otherwise every signature is rejected.

import os
import hmac
import hashlib
import logging
import secrets
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple

import httpx

from models import PaymentStatus

logger = logging.getLogger("icons-herald.payments")

RAZORPAY_API_URL = os.getenv("RAZORPAY_API_URL", "https://api.razorpay.com/v1")
RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID", "")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET", "")
RAZORPAY_WEBHOOK_SECRET = os.getenv("RAZORPAY_WEBHOOK_SECRET", "")


class GatewayError(Exception):
    pass


@dataclass
class GatewayOrder:
    order_id: str
    amount: int
    currency: str
    receipt: str
    status: str = "created"
    stub: bool = False


# Gateway payment/order states -> internal payment vocabulary
GATEWAY_STATUS_MAP = {
    "created": PaymentStatus.CREATED,
    "attempted": PaymentStatus.CREATED,
    "authorized": PaymentStatus.AUTHORIZED,
    "captured": PaymentStatus.CAPTURED,
    "paid": PaymentStatus.CAPTURED,
    "refunded": PaymentStatus.REFUNDED,
    "failed": PaymentStatus.FAILED,
}

# Webhook events we act on
WEBHOOK_EVENT_MAP = {
    "payment.authorized": PaymentStatus.AUTHORIZED,
    "payment.captured": PaymentStatus.CAPTURED,
    "order.paid": PaymentStatus.CAPTURED,
    "payment.failed": PaymentStatus.FAILED,
    "refund.processed": PaymentStatus.REFUNDED,
}


def map_gateway_status(value: Optional[str]) -> Optional[PaymentStatus]:
    if not value:
        return None
    return GATEWAY_STATUS_MAP.get(value.lower())


def _hmac_sha256(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def parse_webhook_event(payload: Dict[str, Any]) -> Tuple[Optional[PaymentStatus], Dict[str, Any]]:
    """Pull the internal status and the payment/order entities out of a webhook body."""
    event = payload.get("event", "")
    entities = payload.get("payload") or {}
    payment = (entities.get("payment") or {}).get("entity") or {}
    order = (entities.get("order") or {}).get("entity") or {}
    refund = (entities.get("refund") or {}).get("entity") or {}

    info = {
        "event": event,
        "order_id": payment.get("order_id") or order.get("id"),
        "payment_id": payment.get("id") or refund.get("payment_id"),
        "error_description": payment.get("error_description") or payment.get("error_reason"),
    }
    return WEBHOOK_EVENT_MAP.get(event), info


class RazorpayGateway:
    def __init__(
        self,
        key_id: str = RAZORPAY_KEY_ID,
        key_secret: str = RAZORPAY_KEY_SECRET,
        webhook_secret: str = RAZORPAY_WEBHOOK_SECRET,
        api_url: str = RAZORPAY_API_URL,
    ) -> None:
        self.key_id = key_id
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret
        self.api_url = api_url.rstrip("/")

    @property
    def stub_mode(self) -> bool:
        return not (self.key_id and self.key_secret)

    async def create_order(self, amount: int, currency: str, receipt: str, notes: Optional[Dict[str, str]] = None) -> GatewayOrder:
        if self.stub_mode:
            order_id = f"order_stub_{secrets.token_hex(8)}"
            logger.info(f"Stub gateway order {order_id} for {amount} {currency}")
            return GatewayOrder(order_id, amount, currency, receipt, stub=True)

        body = {"amount": amount, "currency": currency, "receipt": receipt[:40], "notes": notes or {}}
        try:
            async with httpx.AsyncClient(timeout=15) as client:
                resp = await client.post(
                    f"{self.api_url}/orders",
                    json=body,
                    auth=(self.key_id, self.key_secret),
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as e:
            logger.error(f"Gateway order creation failed: {str(e)[:200]}")
            raise GatewayError("Payment gateway unavailable") from e

        return GatewayOrder(
            order_id=data["id"],
            amount=data.get("amount", amount),
            currency=data.get("currency", currency),
            receipt=data.get("receipt", receipt),
            status=data.get("status", "created"),
        )

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Checkout callback: HMAC-SHA256 of 'order_id|payment_id' with the key secret."""
        if not self.key_secret or not signature:
            return False
        expected = _hmac_sha256(self.key_secret, f"{order_id}|{payment_id}".encode("utf-8"))
        return hmac.compare_digest(expected, signature)

    def verify_webhook_signature(self, body: bytes, signature: Optional[str]) -> bool:
        """Webhook: HMAC-SHA256 of the raw request body with the webhook secret."""
        if not self.webhook_secret or not signature:
            return False
        expected = _hmac_sha256(self.webhook_secret, body)
        return hmac.compare_digest(expected, signature)


@lru_cache()
def get_gateway() -> RazorpayGateway:
    return RazorpayGateway()
