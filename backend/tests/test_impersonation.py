# tests/test_impersonation.py — Super admin "view as user" sessions
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from impersonation import IMPERSONATION_HEADER, ImpersonationError, check_can_impersonate, decode_session, start_session
from auth import to_current_user
from tests.conftest import emerging_content, get_auth_headers


async def begin(client: AsyncClient, actor, target) -> dict:
    res = await client.post(
        "/api/v1/admin/impersonation",
        headers=get_auth_headers(actor),
        json={"target_user_id": target.id},
    )
    assert res.status_code == 201
    return res.json()


def as_target(actor, token: str) -> dict:
    return {**get_auth_headers(actor), IMPERSONATION_HEADER: token}


class TestSessionValue:
    def test_round_trip(self, super_admin, applicant_user):
        token, session = start_session(to_current_user(super_admin), applicant_user, minutes=5)
        decoded = decode_session(token)
        assert decoded == session
        assert decoded.original_user_id == super_admin.id
        assert decoded.target_user_id == applicant_user.id
        assert not decoded.is_expired()
        assert 0 < decoded.remaining_seconds() <= 300

    def test_expiry_is_explicit(self, super_admin, applicant_user):
        _, session = start_session(to_current_user(super_admin), applicant_user, minutes=5)
        assert session.is_expired(datetime.now(timezone.utc) + timedelta(minutes=6))
        assert session.remaining_seconds(datetime.now(timezone.utc) + timedelta(minutes=6)) == 0

    def test_rules(self, admin_user, super_admin, applicant_user):
        with pytest.raises(ImpersonationError):
            check_can_impersonate(to_current_user(admin_user), applicant_user)
        with pytest.raises(ImpersonationError):
            check_can_impersonate(to_current_user(super_admin), super_admin)

    def test_garbage_token(self):
        with pytest.raises(ImpersonationError):
            decode_session("not-a-token")


@pytest.mark.asyncio
class TestImpersonationAPI:
    async def test_act_as_nominee(self, client: AsyncClient, super_admin, applicant_user):
        started = await begin(client, super_admin, applicant_user)
        assert started["header"] == IMPERSONATION_HEADER
        assert started["target_user"]["email"] == applicant_user.email

        res = await client.put(
            "/api/v1/profiles/draft",
            headers=as_target(super_admin, started["token"]),
            json={"content": emerging_content()},
        )
        assert res.status_code == 200
        assert res.json()["user_id"] == applicant_user.id

        status = await client.get("/api/v1/admin/impersonation", headers=as_target(super_admin, started["token"]))
        assert status.json()["active"] is True
        assert status.json()["target_user_id"] == applicant_user.id

    async def test_end_session_revokes_token(self, client: AsyncClient, super_admin, applicant_user):
        started = await begin(client, super_admin, applicant_user)
        headers = as_target(super_admin, started["token"])

        res = await client.delete("/api/v1/admin/impersonation", headers=headers)
        assert res.status_code == 200
        assert res.json()["active"] is False

        res = await client.get("/api/v1/profiles/draft", headers=headers)
        assert res.status_code == 401
        assert res.json()["detail"] == "Impersonation session ended"

    async def test_token_bound_to_issuer(self, client: AsyncClient, super_admin, applicant_user, db_session):
        from models import User, UserRole
        from auth import AuthService
        other = User(
            email="other.super@iconsherald.dev",
            full_name="Other Super",
            password_hash=AuthService.hash_password("OtherSuper123!"),
            role=UserRole.SUPER_ADMIN,
        )
        db_session.add(other)
        await db_session.commit()

        started = await begin(client, super_admin, applicant_user)
        res = await client.get("/api/v1/profiles/draft", headers=as_target(other, started["token"]))
        assert res.status_code == 403

    async def test_cannot_impersonate_super_admin(self, client: AsyncClient, super_admin, db_session):
        from models import User, UserRole
        from auth import AuthService
        other = User(
            email="peer@iconsherald.dev",
            full_name="Peer",
            password_hash=AuthService.hash_password("PeerSuper123!!"),
            role=UserRole.SUPER_ADMIN,
        )
        db_session.add(other)
        await db_session.commit()
        res = await client.post(
            "/api/v1/admin/impersonation",
            headers=get_auth_headers(super_admin),
            json={"target_user_id": other.id},
        )
        assert res.status_code == 403

    async def test_expired_token_rejected(self, client: AsyncClient, super_admin, applicant_user):
        token, _ = start_session(to_current_user(super_admin), applicant_user, minutes=-1)
        res = await client.get("/api/v1/auth/me", headers=as_target(super_admin, token))
        assert res.status_code == 200
        res = await client.get("/api/v1/profiles/draft", headers=as_target(super_admin, token))
        assert res.status_code == 401
        assert res.json()["detail"] == "Impersonation session expired"

    async def test_no_header_reports_inactive(self, client: AsyncClient, super_admin):
        res = await client.get("/api/v1/admin/impersonation", headers=get_auth_headers(super_admin))
        assert res.json() == {"active": False}
