# renderer.py — Tier template rendering for public profile pages
# Builds an ordered view model from a profile content document and renders it
# through the Jinja2 template chosen for the tier (or an explicit variant).

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

import tiers
from list_manager import is_http_url

logger = logging.getLogger("icons-herald.renderer")

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

# Sections each template consumes, in page order
TEMPLATE_SECTIONS: Dict[str, List[str]] = {
    "emerging": [
        "bio", "milestones", "achievements", "quotes", "futureVision", "links",
    ],
    "accomplished": [
        "heroVideo", "bio", "impactMetrics", "leadershipHighlights", "achievements",
        "milestones", "gallery", "quotes", "futureVision", "links",
    ],
    "distinguished": [
        "heroVideo", "bio", "impactMetrics", "leadershipHighlights", "featuredPress",
        "timeline", "achievements", "gallery", "quotes", "links",
    ],
    "legacy": [
        "heroVideo", "bio", "enduringContributions", "timeline", "achievements",
        "featuredPress", "gallery", "quotes", "tributes", "archivalNotes", "links",
    ],
    "minimal": [
        "bio", "achievements", "links",
    ],
}

SECTION_TITLES = {
    "heroVideo": "Watch",
    "bio": "About",
    "milestones": "Milestones",
    "achievements": "Achievements",
    "quotes": "Inspirations",
    "futureVision": "Future Vision",
    "impactMetrics": "Impact",
    "leadershipHighlights": "Leadership",
    "featuredPress": "In the Press",
    "timeline": "Timeline",
    "gallery": "Gallery",
    "tributes": "Tributes",
    "enduringContributions": "Enduring Contributions",
    "archivalNotes": "Archival Notes",
    "links": "Links",
}

# Sections stored as {"original": ..., "ai_polished": ...}
RICH_TEXT_SECTIONS = {"bio", "futureVision", "enduringContributions"}
TEXT_SECTIONS = {"archivalNotes"}
MEDIA_SECTIONS = {"heroVideo"}


class UnknownTemplateError(ValueError):
    pass


@dataclass
class SectionView:
    key: str
    title: str
    kind: str
    text: Optional[str] = None
    items: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class RenderedPage:
    template: str
    tier: str
    hero: Dict[str, Any]
    sections: List[SectionView]
    html: str

    @property
    def section_keys(self) -> List[str]:
        return [s.key for s in self.sections]


def has_text(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def has_content(items: Any) -> bool:
    return bool(visible_items(items))


def _safe_item(item: Dict[str, Any]) -> bool:
    url = item.get("url")
    return not url or is_http_url(url)


def visible_items(items: Any) -> List[Dict[str, Any]]:
    if not isinstance(items, list):
        return []
    shown = [
        i for i in items
        if isinstance(i, dict) and i.get("isVisible", True) is not False and _safe_item(i)
    ]
    return sorted(shown, key=lambda i: i.get("order", 0) if isinstance(i.get("order"), int) else 0)


def _rich_text(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        polished = value.get("ai_polished")
        if has_text(polished):
            return polished.strip()
        value = value.get("original")
    return value.strip() if has_text(value) else None


def resolve_template(tier, variant: Optional[str] = None) -> str:
    if variant:
        key = variant.strip().lower()
        # Accept tier names (old or new) as template names too
        try:
            key = tiers.normalize_tier(key).value
        except tiers.UnknownTierError:
            pass
        if key not in TEMPLATE_SECTIONS:
            raise UnknownTemplateError(f"Unknown template: {variant}")
        return key
    return tiers.default_template(tier)


def build_sections(tier, content: Optional[Dict[str, Any]], template: str) -> List[SectionView]:
    content = content or {}
    sections = []
    for key in TEMPLATE_SECTIONS[template]:
        if not tiers.is_section_visible(tier, key):
            continue
        value = content.get(key)
        title = SECTION_TITLES.get(key, key)
        if key in RICH_TEXT_SECTIONS:
            text = _rich_text(value)
            if text:
                sections.append(SectionView(key, title, "text", text=text))
        elif key in TEXT_SECTIONS or key in MEDIA_SECTIONS:
            if has_text(value) and (key not in MEDIA_SECTIONS or is_http_url(value)):
                kind = "media" if key in MEDIA_SECTIONS else "text"
                sections.append(SectionView(key, title, kind, text=value.strip()))
        elif has_content(value):
            sections.append(SectionView(key, title, "list", items=visible_items(value)))
    return sections


def build_hero(tier, content: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    content = content or {}
    name = content.get("name")
    hero = {"name": name.strip() if has_text(name) else ""}
    for key in ("tagline", "heroImage", "location", "currentRole", "era"):
        if has_text(content.get(key)):
            hero[key] = content[key].strip()
    if "heroImage" in hero and not is_http_url(hero["heroImage"]):
        del hero["heroImage"]
    return hero


@lru_cache()
def get_environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(enabled_extensions=("html", "xml")),
    )


def render_profile(
    tier,
    content: Optional[Dict[str, Any]],
    variant: Optional[str] = None,
    theme: Optional[Dict[str, Any]] = None,
    preview: bool = False,
    canonical_url: Optional[str] = None,
) -> RenderedPage:
    tier = tiers.normalize_tier(tier)
    template = resolve_template(tier, variant)
    hero = build_hero(tier, content)
    sections = build_sections(tier, content, template)

    html = get_environment().get_template(f"{template}.html").render(
        tier=tier.value,
        template=template,
        hero=hero,
        sections=sections,
        theme=theme or {},
        preview=preview,
        canonical_url=canonical_url,
    )
    logger.debug(f"Rendered {template} template with {len(sections)} sections")
    return RenderedPage(template=template, tier=tier.value, hero=hero, sections=sections, html=html)


def view_model(page: RenderedPage) -> Dict[str, Any]:
    """JSON-friendly form of a rendered page (without the HTML)."""
    return {
        "template": page.template,
        "tier": page.tier,
        "hero": page.hero,
        "sections": [
            {"key": s.key, "title": s.title, "kind": s.kind, "text": s.text, "items": s.items}
            for s in page.sections
        ],
    }
