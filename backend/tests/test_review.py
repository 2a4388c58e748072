# tests/test_review.py — Admin nomination review: approve, reject, flag, bulk
import pytest
from httpx import AsyncClient
from sqlalchemy import select

from models import AuditEventType, AuditLog, User, UserRole
from tests.conftest import get_auth_headers
from tests.test_nominations import nomination_payload


async def submit(client: AsyncClient, admin, **overrides) -> str:
    payload = nomination_payload(**overrides)
    await client.post("/api/v1/nominations", json=payload)
    res = await client.get(
        "/api/v1/nominations", headers=get_auth_headers(admin),
        params={"q": payload["nominee_email"].lower(), "limit": 1},
    )
    return res.json()["items"][0]["id"]


class RecordingEmailService:
    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.invitations = []
        self.receipts = []

    async def send_invitation(self, to_email, name, tier, temp_password):
        self.invitations.append({"email": to_email, "tier": tier, "temp_password": temp_password})
        return self.succeed

    async def send_nomination_received(self, to_email, nominator_name, nominee_name):
        self.receipts.append({"email": to_email, "nominee": nominee_name})
        return self.succeed


@pytest.fixture
def email_outbox(monkeypatch):
    service = RecordingEmailService()
    monkeypatch.setattr("routers.nominations.get_email_service", lambda: service)
    return service


@pytest.mark.asyncio
class TestApprove:
    async def test_approve_provisions_applicant(self, client: AsyncClient, db_session, admin_user, email_outbox):
        nomination_id = await submit(client, admin_user)
        res = await client.post(
            f"/api/v1/nominations/{nomination_id}/approve",
            headers=get_auth_headers(admin_user),
            json={"assigned_tier": "accomplished", "admin_notes": "Strong record"},
        )
        assert res.status_code == 200
        data = res.json()
        assert data["status"] == "approved"
        assert data["assigned_tier"] == "accomplished"
        assert data["reviewed_by"] == admin_user.id
        assert data["nominee_user_id"]

        nominee = (await db_session.execute(select(User).where(User.email == "asha@example.com"))).scalar_one()
        assert nominee.role == UserRole.APPLICANT
        assert nominee.tier.value == "accomplished"
        assert nominee.must_reset_password is True

        assert len(email_outbox.invitations) == 1
        invitation = email_outbox.invitations[0]
        assert invitation["email"] == "asha@example.com"
        assert invitation["temp_password"]
        assert invitation["tier"] == "accomplished"

    async def test_submission_sends_receipt_to_nominator(self, client: AsyncClient, admin_user, email_outbox):
        payload = nomination_payload()
        await submit(client, admin_user)
        assert email_outbox.receipts == [
            {"email": payload["nominator_email"].lower(), "nominee": payload["nominee_name"]},
        ]

    async def test_invited_nominee_can_log_in(self, client: AsyncClient, admin_user, email_outbox):
        nomination_id = await submit(client, admin_user)
        await client.post(
            f"/api/v1/nominations/{nomination_id}/approve",
            headers=get_auth_headers(admin_user),
            json={"assigned_tier": "emerging", "temp_password": "Welcome2Herald"},
        )
        res = await client.post("/api/v1/auth/login", json={
            "email": "asha@example.com",
            "password": "Welcome2Herald",
        })
        assert res.status_code == 200
        user = res.json()["user"]
        assert user["role"] == "applicant"
        assert user["tier"] == "emerging"
        assert user["must_reset_password"] is True

    async def test_approve_existing_account_keeps_credentials(
        self, client: AsyncClient, db_session, admin_user, visitor_user, email_outbox,
    ):
        nomination_id = await submit(client, admin_user, nominee_email=visitor_user.email)
        res = await client.post(
            f"/api/v1/nominations/{nomination_id}/approve",
            headers=get_auth_headers(admin_user),
            json={"assigned_tier": "legacy"},
        )
        assert res.status_code == 200
        assert res.json()["nominee_user_id"] == visitor_user.id

        await db_session.refresh(visitor_user)
        assert visitor_user.role == UserRole.APPLICANT
        assert visitor_user.tier.value == "legacy"
        assert email_outbox.invitations[0]["temp_password"] is None

    async def test_second_approval_conflicts(self, client: AsyncClient, admin_user, super_admin, email_outbox):
        nomination_id = await submit(client, admin_user)
        first = await client.post(
            f"/api/v1/nominations/{nomination_id}/approve",
            headers=get_auth_headers(admin_user),
            json={"assigned_tier": "emerging"},
        )
        assert first.status_code == 200
        second = await client.post(
            f"/api/v1/nominations/{nomination_id}/approve",
            headers=get_auth_headers(super_admin),
            json={"assigned_tier": "legacy"},
        )
        assert second.status_code == 409

        detail = await client.get(f"/api/v1/nominations/{nomination_id}", headers=get_auth_headers(admin_user))
        assert detail.json()["assigned_tier"] == "emerging"

    async def test_invitation_failure_keeps_approval(self, client: AsyncClient, db_session, admin_user, monkeypatch):
        service = RecordingEmailService(succeed=False)
        monkeypatch.setattr("routers.nominations.get_email_service", lambda: service)

        nomination_id = await submit(client, admin_user)
        res = await client.post(
            f"/api/v1/nominations/{nomination_id}/approve",
            headers=get_auth_headers(admin_user),
            json={"assigned_tier": "emerging"},
        )
        assert res.status_code == 200
        assert res.json()["status"] == "approved"

        failures = (await db_session.execute(
            select(AuditLog).where(AuditLog.event_type == AuditEventType.INVITATION_FAILED)
        )).scalars().all()
        assert len(failures) == 1
        assert failures[0].resource_id == nomination_id

    async def test_unknown_nomination(self, client: AsyncClient, admin_user):
        res = await client.post(
            "/api/v1/nominations/does-not-exist/approve",
            headers=get_auth_headers(admin_user),
            json={"assigned_tier": "emerging"},
        )
        assert res.status_code == 404


@pytest.mark.asyncio
class TestRejectAndFlag:
    async def test_reject(self, client: AsyncClient, admin_user):
        nomination_id = await submit(client, admin_user)
        res = await client.post(
            f"/api/v1/nominations/{nomination_id}/reject",
            headers=get_auth_headers(admin_user),
            json={"admin_notes": "Not enough evidence"},
        )
        assert res.status_code == 200
        assert res.json()["status"] == "rejected"
        assert res.json()["admin_notes"] == "Not enough evidence"

    async def test_rejected_cannot_be_approved(self, client: AsyncClient, admin_user, email_outbox):
        nomination_id = await submit(client, admin_user)
        await client.post(f"/api/v1/nominations/{nomination_id}/reject", headers=get_auth_headers(admin_user), json={})
        res = await client.post(
            f"/api/v1/nominations/{nomination_id}/approve",
            headers=get_auth_headers(admin_user),
            json={"assigned_tier": "emerging"},
        )
        assert res.status_code == 409
        assert email_outbox.invitations == []

    async def test_flag_then_approve(self, client: AsyncClient, admin_user, email_outbox):
        nomination_id = await submit(client, admin_user)
        flagged = await client.post(
            f"/api/v1/nominations/{nomination_id}/flag",
            headers=get_auth_headers(admin_user),
            json={"reason": "Verify press links"},
        )
        assert flagged.status_code == 200
        assert flagged.json()["status"] == "flagged"
        assert flagged.json()["flag_reason"] == "Verify press links"

        reviewable = await client.get(
            "/api/v1/nominations", headers=get_auth_headers(admin_user), params={"status": "reviewable"},
        )
        assert reviewable.json()["total"] == 1

        approved = await client.post(
            f"/api/v1/nominations/{nomination_id}/approve",
            headers=get_auth_headers(admin_user),
            json={"assigned_tier": "emerging"},
        )
        assert approved.status_code == 200

    async def test_flag_requires_reason(self, client: AsyncClient, admin_user):
        nomination_id = await submit(client, admin_user)
        res = await client.post(
            f"/api/v1/nominations/{nomination_id}/flag", headers=get_auth_headers(admin_user), json={"reason": ""},
        )
        assert res.status_code == 422


@pytest.mark.asyncio
class TestBulk:
    async def test_bulk_reject_skips_terminal(self, client: AsyncClient, admin_user, email_outbox):
        first = await submit(client, admin_user, nominee_email="one@example.com")
        second = await submit(client, admin_user, nominee_email="two@example.com")
        await client.post(
            f"/api/v1/nominations/{second}/approve",
            headers=get_auth_headers(admin_user),
            json={"assigned_tier": "emerging"},
        )

        res = await client.post("/api/v1/nominations/bulk", headers=get_auth_headers(admin_user), json={
            "nomination_ids": [first, second, "missing"],
            "action": "reject",
        })
        assert res.status_code == 200
        data = res.json()
        assert data["updated"] == [first]
        assert {"id": second, "reason": "already_approved"} in data["skipped"]
        assert {"id": "missing", "reason": "not_found"} in data["skipped"]

        detail = await client.get(f"/api/v1/nominations/{first}", headers=get_auth_headers(admin_user))
        assert detail.json()["admin_notes"] == "Bulk rejected"

    async def test_bulk_audit_rows_share_request_id(self, client: AsyncClient, db_session, admin_user):
        ids = [
            await submit(client, admin_user, nominee_email="one@example.com"),
            await submit(client, admin_user, nominee_email="two@example.com"),
        ]
        headers = {**get_auth_headers(admin_user), "X-Request-ID": "req-bulk-42"}
        res = await client.post("/api/v1/nominations/bulk", headers=headers, json={
            "nomination_ids": ids,
            "action": "reject",
        })
        assert res.status_code == 200
        assert res.headers["X-Request-ID"] == "req-bulk-42"

        rows = (await db_session.execute(
            select(AuditLog).where(AuditLog.event_type == AuditEventType.NOMINATION_REJECTED)
        )).scalars().all()
        assert sorted(r.resource_id for r in rows) == sorted(ids)
        assert {r.request_id for r in rows} == {"req-bulk-42"}

    async def test_bulk_approve_uses_default_tier(self, client: AsyncClient, admin_user, email_outbox):
        ids = [
            await submit(client, admin_user, nominee_email="a@example.com", desired_tier="legacy"),
            await submit(client, admin_user, nominee_email="b@example.com"),
        ]
        res = await client.post("/api/v1/nominations/bulk", headers=get_auth_headers(admin_user), json={
            "nomination_ids": ids,
            "action": "approve",
        })
        assert sorted(res.json()["updated"]) == sorted(ids)
        assert {i["tier"] for i in email_outbox.invitations} == {"emerging"}

    async def test_bulk_flag_default_note(self, client: AsyncClient, admin_user):
        nomination_id = await submit(client, admin_user)
        await client.post("/api/v1/nominations/bulk", headers=get_auth_headers(admin_user), json={
            "nomination_ids": [nomination_id],
            "action": "flag",
        })
        detail = await client.get(f"/api/v1/nominations/{nomination_id}", headers=get_auth_headers(admin_user))
        assert detail.json()["status"] == "flagged"
        assert detail.json()["admin_notes"] == "Bulk flagged for review"


@pytest.mark.asyncio
async def test_stats(client: AsyncClient, admin_user, email_outbox):
    approved = await submit(client, admin_user, nominee_email="a@example.com")
    rejected = await submit(client, admin_user, nominee_email="b@example.com")
    await submit(client, admin_user, nominee_email="c@example.com")
    headers = get_auth_headers(admin_user)
    await client.post(f"/api/v1/nominations/{approved}/approve", headers=headers, json={"assigned_tier": "emerging"})
    await client.post(f"/api/v1/nominations/{rejected}/reject", headers=headers, json={})

    res = await client.get("/api/v1/nominations/stats", headers=headers)
    data = res.json()
    assert data["total"] == 3
    assert data["by_status"] == {"pending": 1, "approved": 1, "rejected": 1, "flagged": 0}
    assert data["approval_rate"] == 50.0
