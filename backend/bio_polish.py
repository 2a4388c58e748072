# bio_polish.py — AI polish for profile biographies
# Multi-provider LLM call over httpx. With no provider key configured the
# service runs in stub mode and returns the bio with whitespace tidied.

import logging
import os
import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import httpx

import tiers
from models import ProfileTier

logger = logging.getLogger("icons-herald.ai")

LLM_PROVIDERS = {
    "anthropic": {"base_url": "https://api.anthropic.com/v1", "env_key": "ANTHROPIC_API_KEY", "default_model": "claude-3-5-sonnet-20241022"},
    "openai": {"base_url": "https://api.openai.com/v1", "env_key": "OPENAI_API_KEY", "default_model": "gpt-4o-mini"},
    "groq": {"base_url": "https://api.groq.com/openai/v1", "env_key": "GROQ_API_KEY", "default_model": "llama-3.3-70b-versatile"},
}
FALLBACK_ORDER = ("anthropic", "openai", "groq")

MAX_TOKENS = 2000
TEMPERATURE = 0.3
REQUEST_TIMEOUT = 60

BIO_MIN_LENGTH = 50
BIO_MAX_LENGTH = 5000

# Polished bios recorded per user over a rolling day
DAILY_LIMIT = 10

TONE_GUIDELINES = {
    "professional": "Use formal, business-appropriate language with industry terminology.",
    "casual": "Use approachable, conversational language while maintaining respect.",
    "formal": "Use elevated, academic language with sophisticated vocabulary.",
    "confident": "Use strong, assertive language that emphasizes achievements and capabilities.",
    "compelling": "Use engaging, persuasive language that captures attention and interest.",
    "clear": "Use simple, direct language that is easy to understand and follow.",
}
TONES = tuple(TONE_GUIDELINES)

BASE_PROMPT = """You are an expert biography writer for Icons Herald, a premium digital archive platform. Polish and enhance biographical content while keeping it authentic and factually accurate.

Guidelines:
- Keep every fact from the original bio
- Improve clarity, flow and presentation
- Use active voice
- Keep the enhanced bio between 150 and 500 words
- Never add achievements or exaggerate claims
- Focus on the impact of the person's work"""

TIER_GUIDELINES = {
    ProfileTier.EMERGING: """For Emerging tier profiles:
- Emphasize potential, growth trajectory and emerging impact
- Highlight fresh perspectives and recent achievements
- Use dynamic, forward-looking language""",
    ProfileTier.ACCOMPLISHED: """For Accomplished tier profiles:
- Emphasize established expertise and professional achievements
- Highlight measurable impact, career milestones and recognition
- Use confident, accomplished language""",
    ProfileTier.DISTINGUISHED: """For Distinguished tier profiles:
- Emphasize industry leadership and thought leadership
- Highlight transformative achievements and wide recognition
- Use authoritative, prestigious language""",
    ProfileTier.LEGACY: """For Legacy tier profiles:
- Emphasize historical significance and lasting impact
- Highlight how their work shaped their field or society
- Use reverent, monumental language that honors their legacy""",
}

_LEADING_LABEL = re.compile(r"^(enhanced biography|biography)\s*:\s*", re.IGNORECASE)
_BOLD_HEADER = re.compile(r"^\*\*.*?\*\*\s*")
_MD_HEADER = re.compile(r"^#+\s*", re.MULTILINE)


class PolishError(Exception):
    """LLM call failed; `kind` is rate_limit, content_policy or failed."""

    def __init__(self, message: str, kind: str = "failed"):
        super().__init__(message)
        self.kind = kind


@dataclass
class PolishResult:
    text: str
    provider: str
    model: str


def resolve_provider() -> Tuple[str, Dict, Optional[str]]:
    """(provider, config, api_key); ("stub", {}, None) when nothing is configured."""
    preferred = os.getenv("LLM_PROVIDER", "").lower()
    if preferred in LLM_PROVIDERS:
        config = LLM_PROVIDERS[preferred]
        api_key = os.getenv(config["env_key"])
        if api_key:
            return preferred, config, api_key
    for name in FALLBACK_ORDER:
        config = LLM_PROVIDERS[name]
        api_key = os.getenv(config["env_key"])
        if api_key:
            return name, config, api_key
    return "stub", {}, None


def is_available() -> bool:
    return resolve_provider()[0] != "stub"


def system_prompt(tier, tone: str) -> str:
    tier = tiers.normalize_tier(tier)
    return (
        f"{BASE_PROMPT}\n\n{TIER_GUIDELINES[tier]}\n\nTone: {TONE_GUIDELINES[tone]}\n\n"
        "Return only the polished biography text, without any commentary or formatting."
    )


def user_prompt(bio: str, tier, tone: str) -> str:
    tier = tiers.normalize_tier(tier)
    return (
        f"Please polish the following biography for a {tier.value} tier profile with a {tone} tone:\n\n"
        f"Original Biography:\n{bio}\n\nEnhanced Biography:"
    )


def clean_output(text: str) -> str:
    text = (text or "").strip()
    text = _LEADING_LABEL.sub("", text)
    text = _BOLD_HEADER.sub("", text)
    text = _MD_HEADER.sub("", text)
    return text.strip()


def tidy_whitespace(text: str) -> str:
    paragraphs = re.split(r"\n\s*\n", text.strip())
    return "\n\n".join(" ".join(p.split()) for p in paragraphs if p.strip())


def _http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=REQUEST_TIMEOUT)


def _raise_for_status(provider: str, resp: httpx.Response) -> None:
    if resp.status_code < 400:
        return
    body = resp.text[:300]
    logger.warning(f"LLM provider {provider} returned {resp.status_code}: {body}")
    if resp.status_code == 429:
        raise PolishError("AI service rate limit exceeded", kind="rate_limit")
    if resp.status_code == 400 and "content" in body.lower():
        raise PolishError("Content violates AI usage policies", kind="content_policy")
    raise PolishError(f"AI provider error ({resp.status_code})")


async def _call_provider(provider: str, config: Dict, api_key: str, system: str, prompt: str) -> str:
    model = config["default_model"]
    async with _http_client() as client:
        if provider == "anthropic":
            resp = await client.post(
                f"{config['base_url']}/messages",
                headers={"x-api-key": api_key, "anthropic-version": "2023-06-01", "content-type": "application/json"},
                json={
                    "model": model, "max_tokens": MAX_TOKENS, "temperature": TEMPERATURE,
                    "system": system, "messages": [{"role": "user", "content": prompt}],
                },
            )
            _raise_for_status(provider, resp)
            blocks = resp.json().get("content", [])
            return next((b.get("text", "") for b in blocks if b.get("type") == "text"), "")

        resp = await client.post(
            f"{config['base_url']}/chat/completions",
            headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
            json={
                "model": model, "max_tokens": MAX_TOKENS, "temperature": TEMPERATURE,
                "messages": [{"role": "system", "content": system}, {"role": "user", "content": prompt}],
            },
        )
        _raise_for_status(provider, resp)
        return resp.json().get("choices", [{}])[0].get("message", {}).get("content", "")


async def polish_bio(bio: str, tier, tone: str = "professional") -> PolishResult:
    """Rewrite `bio` for the tier's register; raises PolishError on provider failure."""
    if tone not in TONE_GUIDELINES:
        raise ValueError(f"Unknown tone: {tone}")
    provider, config, api_key = resolve_provider()
    if provider == "stub":
        return PolishResult(text=tidy_whitespace(bio), provider="stub", model="stub-model")

    try:
        raw = await _call_provider(provider, config, api_key, system_prompt(tier, tone), user_prompt(bio, tier, tone))
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"LLM call failed ({provider}): {e}")
        raise PolishError("AI processing failed")

    polished = clean_output(raw)
    if not polished:
        raise PolishError("AI response contained no biography")
    return PolishResult(text=polished, provider=provider, model=config["default_model"])
