# tests/test_payments.py — Checkout verification, webhooks, publishing on capture
import json

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from models import AuditEventType, AuditLog
from payment_gateway import RazorpayGateway
from tests.conftest import KEY_SECRET, WEBHOOK_SECRET, get_auth_headers, sign
from tests.test_profiles import open_order, save_draft


async def verify(client: AsyncClient, user, order_id: str, payment_id: str = "pay_test_1", signature=None):
    signature = signature or sign(KEY_SECRET, f"{order_id}|{payment_id}".encode("utf-8"))
    return await client.post("/api/v1/payments/verify", headers=get_auth_headers(user), json={
        "order_id": order_id,
        "payment_id": payment_id,
        "signature": signature,
    })


async def webhook(client: AsyncClient, event: str, order_id: str, secret: str = WEBHOOK_SECRET, **entity):
    body = json.dumps({
        "event": event,
        "payload": {"payment": {"entity": {"id": "pay_hook_1", "order_id": order_id, **entity}}},
    }).encode("utf-8")
    return await client.post(
        "/api/v1/payments/webhook",
        content=body,
        headers={"Content-Type": "application/json", "X-Razorpay-Signature": sign(secret, body)},
    )


async def draft(client: AsyncClient, user) -> dict:
    res = await client.get("/api/v1/profiles/draft", headers=get_auth_headers(user))
    return res.json()


@pytest.mark.asyncio
class TestCheckoutVerify:
    async def test_valid_signature_publishes(self, client: AsyncClient, applicant_user):
        order = await open_order(client, applicant_user)
        res = await verify(client, applicant_user, order["order_id"])
        assert res.status_code == 200
        assert res.json()["status"] == "captured"
        assert res.json()["gateway_payment_id"] == "pay_test_1"

        profile = await draft(client, applicant_user)
        assert profile["status"] == "published"
        assert profile["payment_status"] == "completed"
        assert profile["published_at"]

        me = await client.get("/api/v1/auth/me", headers=get_auth_headers(applicant_user))
        assert me.json()["role"] == "member"

    async def test_invalid_signature(self, client: AsyncClient, applicant_user):
        order = await open_order(client, applicant_user)
        res = await verify(client, applicant_user, order["order_id"], signature="deadbeef")
        assert res.status_code == 400

        profile = await draft(client, applicant_user)
        assert profile["status"] == "draft"

    async def test_other_users_order(self, client: AsyncClient, applicant_user, visitor_user):
        order = await open_order(client, applicant_user)
        res = await verify(client, visitor_user, order["order_id"])
        assert res.status_code == 404

    async def test_verify_is_idempotent(self, client: AsyncClient, applicant_user):
        order = await open_order(client, applicant_user)
        await verify(client, applicant_user, order["order_id"])
        again = await verify(client, applicant_user, order["order_id"])
        assert again.status_code == 200
        assert again.json()["status"] == "captured"

    async def test_published_profile_rejects_further_saves(self, client: AsyncClient, applicant_user):
        order = await open_order(client, applicant_user)
        await verify(client, applicant_user, order["order_id"])
        res = await save_draft(client, applicant_user)
        assert res.status_code == 409
        res = await client.post("/api/v1/profiles/draft/publish", headers=get_auth_headers(applicant_user))
        assert res.status_code == 409


@pytest.mark.asyncio
class TestWebhook:
    async def test_captured_event_publishes(self, client: AsyncClient, applicant_user):
        order = await open_order(client, applicant_user)
        res = await webhook(client, "payment.captured", order["order_id"], status="captured")
        assert res.status_code == 200
        assert res.json()["status"] == "processed"
        assert res.json()["payment_status"] == "captured"
        assert (await draft(client, applicant_user))["status"] == "published"

    async def test_duplicate_delivery_is_harmless(self, client: AsyncClient, db_session, applicant_user):
        order = await open_order(client, applicant_user)
        await webhook(client, "payment.captured", order["order_id"])
        await webhook(client, "order.paid", order["order_id"])

        published = (await db_session.execute(
            select(AuditLog).where(AuditLog.event_type == AuditEventType.PROFILE_PUBLISHED)
        )).scalars().all()
        assert len(published) == 1

    async def test_failure_leaves_profile_draft(self, client: AsyncClient, applicant_user):
        order = await open_order(client, applicant_user)
        res = await webhook(
            client, "payment.failed", order["order_id"], error_description="Card declined",
        )
        assert res.json()["payment_status"] == "failed"

        profile = await draft(client, applicant_user)
        assert profile["status"] == "draft"

        payments = await client.get("/api/v1/payments/mine", headers=get_auth_headers(applicant_user))
        assert payments.json()[0]["failure_reason"] == "Card declined"

    async def test_retry_after_failure_can_capture(self, client: AsyncClient, applicant_user):
        order = await open_order(client, applicant_user)
        await webhook(client, "payment.failed", order["order_id"])
        res = await webhook(client, "payment.captured", order["order_id"])
        assert res.json()["payment_status"] == "captured"

    async def test_late_failure_does_not_undo_capture(self, client: AsyncClient, applicant_user):
        order = await open_order(client, applicant_user)
        await webhook(client, "payment.captured", order["order_id"])
        res = await webhook(client, "payment.failed", order["order_id"])
        assert res.json()["payment_status"] == "captured"
        assert (await draft(client, applicant_user))["status"] == "published"

    async def test_refund_after_capture(self, client: AsyncClient, applicant_user):
        order = await open_order(client, applicant_user)
        await webhook(client, "payment.captured", order["order_id"])
        res = await webhook(client, "refund.processed", order["order_id"])
        assert res.json()["payment_status"] == "refunded"

    async def test_bad_signature(self, client: AsyncClient, applicant_user):
        order = await open_order(client, applicant_user)
        res = await webhook(client, "payment.captured", order["order_id"], secret="wrong-secret")
        assert res.status_code == 400
        assert (await draft(client, applicant_user))["status"] == "draft"

    async def test_unhandled_event_ignored(self, client: AsyncClient, applicant_user):
        order = await open_order(client, applicant_user)
        res = await webhook(client, "payment.dispute.created", order["order_id"])
        assert res.status_code == 200
        assert res.json()["status"] == "ignored"

    async def test_unknown_order_ignored(self, client: AsyncClient):
        res = await webhook(client, "payment.captured", "order_nobody")
        assert res.status_code == 200
        assert res.json()["status"] == "ignored"


@pytest.mark.asyncio
class TestPaymentListing:
    async def test_admin_lists_all(self, client: AsyncClient, applicant_user, admin_user):
        await open_order(client, applicant_user)
        res = await client.get("/api/v1/payments", headers=get_auth_headers(admin_user))
        assert res.status_code == 200
        assert len(res.json()) == 1
        assert res.json()[0]["status"] == "created"

    async def test_owner_cannot_list_all(self, client: AsyncClient, applicant_user):
        res = await client.get("/api/v1/payments", headers=get_auth_headers(applicant_user))
        assert res.status_code == 403


@pytest.mark.asyncio
class TestPublicProfile:
    async def _publish(self, client: AsyncClient, user):
        order = await open_order(client, user)
        await verify(client, user, order["order_id"])

    async def test_public_view_model_counts_views(self, client: AsyncClient, applicant_user):
        await self._publish(client, applicant_user)
        res = await client.get("/api/v1/profiles/asha-rao", params={"ref": "newsletter"})
        assert res.status_code == 200
        data = res.json()
        assert data["tier"] == "emerging"
        assert data["template"] == "emerging"
        assert data["view_count"] == 1
        assert data["page"]["hero"]["name"] == "Asha Rao"

        again = await client.get("/api/v1/profiles/asha-rao")
        assert again.json()["view_count"] == 2

    async def test_html_page(self, client: AsyncClient, applicant_user):
        await self._publish(client, applicant_user)
        res = await client.get("/profile/asha-rao")
        assert res.status_code == 200
        assert "Asha Rao" in res.text
        assert "Preview:" not in res.text

    async def test_directory(self, client: AsyncClient, applicant_user):
        await self._publish(client, applicant_user)
        res = await client.get("/api/v1/profiles", params={"tier": "rising"})
        assert res.json()["total"] == 1
        assert res.json()["items"][0]["slug"] == "asha-rao"


class TestStubGateway:
    def test_stub_mode_still_needs_secrets_to_verify(self):
        gateway = RazorpayGateway(key_id="", key_secret="", webhook_secret="")
        assert gateway.stub_mode is True
        assert gateway.verify_payment_signature("order_1", "pay_1", sign("anything", b"order_1|pay_1")) is False
        assert gateway.verify_webhook_signature(b"{}", sign("anything", b"{}")) is False

    def test_stub_orders_with_secrets_verify(self):
        gateway = RazorpayGateway(key_id="", key_secret=KEY_SECRET, webhook_secret=WEBHOOK_SECRET)
        assert gateway.stub_mode is True
        assert gateway.verify_payment_signature("order_1", "pay_1", sign(KEY_SECRET, b"order_1|pay_1")) is True
        assert gateway.verify_webhook_signature(b"{}", sign(WEBHOOK_SECRET, b"{}")) is True
