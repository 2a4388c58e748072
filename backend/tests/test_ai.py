# tests/test_ai.py — AI bio polish: providers, limits, draft updates
import json

import httpx
import pytest
from httpx import AsyncClient

import bio_polish
from rate_limit import ai_polish_limiter
from tests.conftest import emerging_content, get_auth_headers

RAW_BIO = "Asha designs   low-cost water filtration\nfor rural schools across Karnataka and Kerala."
TIDY_BIO = "Asha designs low-cost water filtration for rural schools across Karnataka and Kerala."


async def polish(client: AsyncClient, user, **body):
    body.setdefault("bio", RAW_BIO)
    return await client.post("/api/v1/ai/polish-bio", headers=get_auth_headers(user), json=body)


def use_transport(monkeypatch, handler):
    monkeypatch.setattr(
        bio_polish, "_http_client", lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.mark.asyncio
class TestPolishEndpoint:
    async def test_stub_polish(self, client: AsyncClient, applicant_user):
        res = await polish(client, applicant_user)
        assert res.status_code == 200
        data = res.json()
        assert data["polished_bio"] == TIDY_BIO
        assert data["applied"] is False
        assert data["metadata"]["provider"] == "stub"
        assert data["metadata"]["tier"] == "emerging"
        assert data["metadata"]["tone"] == "professional"

    async def test_tier_alias_accepted(self, client: AsyncClient, applicant_user):
        res = await polish(client, applicant_user, tier="elite", tone="confident")
        assert res.status_code == 200
        assert res.json()["metadata"]["tier"] == "accomplished"

    async def test_admin_without_tier_defaults_to_accomplished(self, client: AsyncClient, admin_user):
        res = await polish(client, admin_user)
        assert res.status_code == 200
        assert res.json()["metadata"]["tier"] == "accomplished"

    async def test_visitor_forbidden(self, client: AsyncClient, visitor_user):
        res = await polish(client, visitor_user)
        assert res.status_code == 403

    async def test_requires_auth(self, client: AsyncClient):
        res = await client.post("/api/v1/ai/polish-bio", json={"bio": RAW_BIO})
        assert res.status_code in (401, 403)

    @pytest.mark.parametrize("body", [
        {"bio": "Too short"},
        {"bio": "x" * 5001},
        {"bio": RAW_BIO, "tone": "sarcastic"},
        {"bio": RAW_BIO, "tier": "platinum"},
    ])
    async def test_invalid_input(self, client: AsyncClient, applicant_user, body):
        res = await client.post("/api/v1/ai/polish-bio", headers=get_auth_headers(applicant_user), json=body)
        assert res.status_code == 422

    async def test_apply_to_draft(self, client: AsyncClient, applicant_user):
        headers = get_auth_headers(applicant_user)
        await client.put("/api/v1/profiles/draft", headers=headers, json={"content": emerging_content()})

        res = await polish(client, applicant_user, apply_to_draft=True)
        assert res.status_code == 200
        assert res.json()["applied"] is True

        draft = (await client.get("/api/v1/profiles/draft", headers=headers)).json()
        assert draft["content"]["bio"]["ai_polished"] == TIDY_BIO
        assert draft["content"]["bio"]["original"] == "Asha designs low-cost filtration for rural schools."

        preview = await client.get("/api/v1/profiles/draft/preview", headers=headers)
        assert TIDY_BIO in preview.text

    async def test_apply_without_draft(self, client: AsyncClient, applicant_user):
        res = await polish(client, applicant_user, apply_to_draft=True)
        assert res.status_code == 404

    async def test_hourly_limit(self, client: AsyncClient, applicant_user, monkeypatch):
        monkeypatch.setattr(ai_polish_limiter, "max_requests", 1)
        assert (await polish(client, applicant_user)).status_code == 200
        blocked = await polish(client, applicant_user)
        assert blocked.status_code == 429
        assert blocked.headers["X-RateLimit-Remaining"] == "0"

    async def test_daily_limit(self, client: AsyncClient, applicant_user, monkeypatch):
        monkeypatch.setattr(bio_polish, "DAILY_LIMIT", 1)
        assert (await polish(client, applicant_user)).status_code == 200
        blocked = await polish(client, applicant_user)
        assert blocked.status_code == 429
        assert blocked.json()["detail"] == "AI usage limit exceeded. Please try again later."

    @pytest.mark.parametrize("kind, status", [("rate_limit", 503), ("content_policy", 400), ("failed", 500)])
    async def test_provider_errors(self, client: AsyncClient, applicant_user, monkeypatch, kind, status):
        async def failing(bio, tier, tone="professional"):
            raise bio_polish.PolishError("provider said no", kind=kind)

        monkeypatch.setattr(bio_polish, "polish_bio", failing)
        res = await polish(client, applicant_user)
        assert res.status_code == status

        usage = (await client.get("/api/v1/ai/polish-bio", headers=get_auth_headers(applicant_user))).json()
        assert usage["usage"]["daily"] == 0


@pytest.mark.asyncio
class TestAvailability:
    async def test_usage_counts_polishes(self, client: AsyncClient, applicant_user):
        await polish(client, applicant_user)
        res = await client.get("/api/v1/ai/polish-bio", headers=get_auth_headers(applicant_user))
        assert res.status_code == 200
        data = res.json()
        assert data["has_access"] is True
        assert data["provider"] == "stub"
        assert data["usage"]["daily"] == 1
        assert data["usage"]["daily_limit"] == 10
        assert data["usage"]["remaining"] == 9
        assert "confident" in data["features"]["tone_options"]

    async def test_visitor_has_no_allowance(self, client: AsyncClient, visitor_user):
        data = (await client.get("/api/v1/ai/polish-bio", headers=get_auth_headers(visitor_user))).json()
        assert data["has_access"] is False
        assert data["usage"]["remaining"] == 0


class TestProviderResolution:
    def test_stub_without_keys(self):
        assert bio_polish.resolve_provider()[0] == "stub"
        assert bio_polish.is_available() is False

    def test_fallback_order(self, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "gsk-test")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")
        assert bio_polish.resolve_provider()[0] == "openai"

    def test_preferred_provider(self, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "gsk-test")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")
        monkeypatch.setenv("LLM_PROVIDER", "groq")
        assert bio_polish.resolve_provider()[0] == "groq"

    def test_preferred_provider_without_key_falls_back(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "anthropic")
        monkeypatch.setenv("GROQ_API_KEY", "gsk-test")
        assert bio_polish.resolve_provider()[0] == "groq"

    def test_tier_prompts_differ(self):
        legacy = bio_polish.system_prompt("legacy", "formal")
        emerging = bio_polish.system_prompt("rising", "casual")
        assert "For Legacy tier profiles" in legacy
        assert "For Emerging tier profiles" in emerging
        assert bio_polish.TONE_GUIDELINES["formal"] in legacy

    def test_clean_output(self):
        assert bio_polish.clean_output("Enhanced Biography: Asha leads.") == "Asha leads."
        assert bio_polish.clean_output("## Asha leads.") == "Asha leads."


@pytest.mark.asyncio
class TestProviderCalls:
    async def test_anthropic_messages_call(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"content": [{"type": "text", "text": "Enhanced Biography: Asha leads."}]})

        use_transport(monkeypatch, handler)
        result = await bio_polish.polish_bio(RAW_BIO, "legacy", "formal")

        assert result.text == "Asha leads."
        assert result.provider == "anthropic"
        assert seen["url"] == "https://api.anthropic.com/v1/messages"
        assert seen["headers"]["x-api-key"] == "sk-ant-test"
        assert seen["headers"]["anthropic-version"] == "2023-06-01"
        assert "For Legacy tier profiles" in seen["body"]["system"]
        assert RAW_BIO in seen["body"]["messages"][0]["content"]

    async def test_chat_completions_call(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            return httpx.Response(200, json={"choices": [{"message": {"content": "Asha leads."}}]})

        use_transport(monkeypatch, handler)
        result = await bio_polish.polish_bio(RAW_BIO, "emerging")

        assert result.text == "Asha leads."
        assert result.model == "gpt-4o-mini"
        assert seen["url"] == "https://api.openai.com/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-openai"

    @pytest.mark.parametrize("status, body, kind", [
        (429, {"error": "slow down"}, "rate_limit"),
        (400, {"error": {"message": "Output blocked by content filtering policy"}}, "content_policy"),
        (500, {"error": "boom"}, "failed"),
    ])
    async def test_provider_failures(self, monkeypatch, status, body, kind):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        use_transport(monkeypatch, lambda request: httpx.Response(status, json=body))
        with pytest.raises(bio_polish.PolishError) as exc:
            await bio_polish.polish_bio(RAW_BIO, "emerging")
        assert exc.value.kind == kind

    async def test_empty_response_fails(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        use_transport(monkeypatch, lambda request: httpx.Response(200, json={"content": []}))
        with pytest.raises(bio_polish.PolishError):
            await bio_polish.polish_bio(RAW_BIO, "emerging")

    async def test_network_error_fails(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")

        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        use_transport(monkeypatch, handler)
        with pytest.raises(bio_polish.PolishError) as exc:
            await bio_polish.polish_bio(RAW_BIO, "emerging")
        assert exc.value.kind == "failed"
