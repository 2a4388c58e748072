# tests/test_analytics.py — Profile event tracking and view summaries
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from models import AnalyticsEvent
from profile_analytics import summarize_views
from tests.conftest import get_auth_headers
from tests.test_payments import verify
from tests.test_profiles import open_order


def view(days_ago: int, visitor: str = None, source: str = None, now=None) -> AnalyticsEvent:
    now = now or datetime.now(timezone.utc)
    return AnalyticsEvent(
        event_type="profile_view",
        visitor_id=visitor,
        source=source,
        created_at=now - timedelta(days=days_ago),
    )


class TestSummarize:
    def test_counts_within_window(self):
        now = datetime(2026, 3, 10, 12, tzinfo=timezone.utc)
        events = [
            view(0, "v1", "google", now),
            view(0, "v1", "google", now),
            view(2, "v2", None, now),
            view(40, "v3", "twitter", now),
        ]
        summary = summarize_views(events, days=7, now=now)
        assert summary["total_views"] == 3
        assert summary["unique_visitors"] == 2
        assert len(summary["daily_views"]) == 7
        assert summary["daily_views"][-1] == {"date": "2026-03-10", "views": 2}
        assert summary["top_sources"][0] == {"source": "google", "views": 2}
        assert {"source": "direct", "views": 1} in summary["top_sources"]

    def test_naive_timestamps_treated_as_utc(self):
        now = datetime(2026, 3, 10, 12, tzinfo=timezone.utc)
        event = view(1, "v1", now=now)
        event.created_at = event.created_at.replace(tzinfo=None)
        assert summarize_views([event], days=7, now=now)["total_views"] == 1


@pytest.mark.asyncio
class TestAnalyticsAPI:
    async def _publish(self, client: AsyncClient, user) -> dict:
        order = await open_order(client, user)
        await verify(client, user, order["order_id"])
        return order

    async def test_track_and_summarize(self, client: AsyncClient, applicant_user):
        await self._publish(client, applicant_user)
        for visitor in ("a", "b", "a"):
            res = await client.post("/api/v1/analytics/events", json={
                "event_type": "profile_view", "slug": "asha-rao", "visitor_id": visitor, "source": "newsletter",
            })
            assert res.status_code == 202

        res = await client.get("/api/v1/analytics/mine", headers=get_auth_headers(applicant_user))
        assert res.status_code == 200
        data = res.json()
        assert data["total_views"] == 3
        assert data["unique_visitors"] == 2
        assert data["lifetime_views"] == 3
        assert data["top_sources"] == [{"source": "newsletter", "views": 3}]

    async def test_link_clicks_do_not_count_as_views(self, client: AsyncClient, applicant_user):
        await self._publish(client, applicant_user)
        await client.post("/api/v1/analytics/events", json={"event_type": "link_click", "slug": "asha-rao"})
        res = await client.get("/api/v1/analytics/mine", headers=get_auth_headers(applicant_user))
        assert res.json()["total_views"] == 0

    async def test_unsupported_event(self, client: AsyncClient, applicant_user):
        await self._publish(client, applicant_user)
        res = await client.post("/api/v1/analytics/events", json={"event_type": "payment_failed", "slug": "asha-rao"})
        assert res.status_code == 400

    async def test_unpublished_profile(self, client: AsyncClient, applicant_user):
        await open_order(client, applicant_user)
        res = await client.post("/api/v1/analytics/events", json={"event_type": "profile_view", "slug": "asha-rao"})
        assert res.status_code == 404

    async def test_owner_or_admin_only(self, client: AsyncClient, applicant_user, visitor_user, admin_user):
        order = await self._publish(client, applicant_user)
        path = f"/api/v1/analytics/profiles/{order['profile_id']}"
        assert (await client.get(path, headers=get_auth_headers(visitor_user))).status_code == 403
        assert (await client.get(path, headers=get_auth_headers(admin_user))).status_code == 200
        assert (await client.get(path, headers=get_auth_headers(applicant_user))).status_code == 200
