# tiers.py — Single source of truth for tier rules
# Visibility, repeating-section caps, required fields, pricing and templates
# for every profile tier. Everything else (builder, renderer, payments) reads
# from here instead of keeping its own copy.

import os
from typing import Any, Dict, List, Optional

from models import ProfileTier

# ============================================================
# TIER NAMES
# ============================================================

# Older clients still send the previous tier names
TIER_ALIASES = {
    "rising": ProfileTier.EMERGING,
    "elite": ProfileTier.ACCOMPLISHED,
}


class UnknownTierError(ValueError):
    pass


def normalize_tier(value) -> ProfileTier:
    """Map any accepted tier spelling onto the canonical enum."""
    if isinstance(value, ProfileTier):
        return value
    if value is None:
        raise UnknownTierError("Tier is required")
    key = str(value).strip().lower()
    if key in TIER_ALIASES:
        return TIER_ALIASES[key]
    try:
        return ProfileTier(key)
    except ValueError:
        raise UnknownTierError(f"Unknown tier: {value}")


# ============================================================
# SECTIONS & LIMITS
# ============================================================

# Content key of every repeating section the list manager can operate on
LIST_SECTIONS = (
    "achievements",
    "links",
    "gallery",
    "milestones",
    "quotes",
    "impactMetrics",
    "leadershipHighlights",
    "featuredPress",
    "timeline",
    "tributes",
)

TIER_LIMITS: Dict[ProfileTier, Dict[str, int]] = {
    ProfileTier.EMERGING: {
        "links": 3,
        "gallery": 0,
        "achievements": 5,
        "milestones": 6,
        "quotes": 3,
        "impactMetrics": 0,
        "leadershipHighlights": 0,
        "featuredPress": 0,
        "timeline": 0,
        "tributes": 0,
    },
    ProfileTier.ACCOMPLISHED: {
        "links": 5,
        "gallery": 4,
        "achievements": 10,
        "milestones": 10,
        "quotes": 5,
        "impactMetrics": 6,
        "leadershipHighlights": 5,
        "featuredPress": 0,
        "timeline": 0,
        "tributes": 0,
    },
    ProfileTier.DISTINGUISHED: {
        "links": 8,
        "gallery": 10,
        "achievements": 20,
        "milestones": 0,
        "quotes": 8,
        "impactMetrics": 12,
        "leadershipHighlights": 10,
        "featuredPress": 10,
        "timeline": 15,
        "tributes": 0,
    },
    ProfileTier.LEGACY: {
        "links": 15,
        "gallery": 25,
        "achievements": 50,
        "milestones": 0,
        "quotes": 15,
        "impactMetrics": 0,
        "leadershipHighlights": 0,
        "featuredPress": 20,
        "timeline": 50,
        "tributes": 50,
    },
}

# Sections every tier gets regardless of visibility rules
COMMON_SECTIONS = ("name", "tagline", "location", "bio", "heroImage", "achievements", "links")

# Optional sections, switched on per tier
TIER_VISIBILITY: Dict[ProfileTier, frozenset] = {
    ProfileTier.EMERGING: frozenset({
        "milestones", "quotes", "futureVision",
    }),
    ProfileTier.ACCOMPLISHED: frozenset({
        "heroVideo", "gallery", "milestones", "quotes", "futureVision",
        "impactMetrics", "leadershipHighlights",
    }),
    ProfileTier.DISTINGUISHED: frozenset({
        "heroVideo", "gallery", "quotes", "impactMetrics",
        "leadershipHighlights", "featuredPress", "timeline",
    }),
    ProfileTier.LEGACY: frozenset({
        "heroVideo", "gallery", "quotes", "featuredPress", "timeline",
        "tributes", "enduringContributions", "archivalNotes",
    }),
}

OPTIONAL_SECTIONS = (
    "heroVideo",
    "gallery",
    "milestones",
    "quotes",
    "futureVision",
    "impactMetrics",
    "leadershipHighlights",
    "featuredPress",
    "timeline",
    "tributes",
    "enduringContributions",
    "archivalNotes",
)

# Dotted paths into the content document; drives completion %
BASE_REQUIRED_FIELDS = ("name", "tagline", "location", "bio.original", "heroImage", "achievements", "links")

TIER_REQUIRED_FIELDS: Dict[ProfileTier, tuple] = {
    ProfileTier.EMERGING: BASE_REQUIRED_FIELDS + ("currentRole", "futureVision.original", "milestones"),
    ProfileTier.ACCOMPLISHED: BASE_REQUIRED_FIELDS + ("currentRole", "impactMetrics", "leadershipHighlights"),
    ProfileTier.DISTINGUISHED: BASE_REQUIRED_FIELDS + ("currentRole", "impactMetrics", "featuredPress", "gallery"),
    ProfileTier.LEGACY: BASE_REQUIRED_FIELDS + ("era", "enduringContributions.original", "timeline", "tributes"),
}

PUBLISH_THRESHOLD = 90

# ============================================================
# PRICING
# ============================================================

PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "INR")

# Smallest currency unit (paise)
TIER_PRICING: Dict[ProfileTier, int] = {
    ProfileTier.EMERGING: 250000,
    ProfileTier.ACCOMPLISHED: 500000,
    ProfileTier.DISTINGUISHED: 1200000,
    ProfileTier.LEGACY: 5000000,
}

# ============================================================
# TEMPLATES
# ============================================================

# First entry is the tier's default template
TIER_TEMPLATES: Dict[ProfileTier, List[str]] = {
    ProfileTier.EMERGING: ["emerging", "minimal"],
    ProfileTier.ACCOMPLISHED: ["accomplished", "minimal"],
    ProfileTier.DISTINGUISHED: ["distinguished", "minimal"],
    ProfileTier.LEGACY: ["legacy", "minimal"],
}


# ============================================================
# LOOKUPS
# ============================================================

def get_limit(tier, section: str) -> int:
    tier = normalize_tier(tier)
    return TIER_LIMITS[tier].get(section, 0)


def is_section_visible(tier, section: str) -> bool:
    tier = normalize_tier(tier)
    if section in COMMON_SECTIONS:
        return True
    return section in TIER_VISIBILITY[tier]


def visible_sections(tier) -> List[str]:
    tier = normalize_tier(tier)
    optional = [s for s in OPTIONAL_SECTIONS if s in TIER_VISIBILITY[tier]]
    return list(COMMON_SECTIONS) + optional


def required_fields(tier) -> tuple:
    return TIER_REQUIRED_FIELDS[normalize_tier(tier)]


def price_for(tier) -> int:
    return TIER_PRICING[normalize_tier(tier)]


def default_template(tier) -> str:
    return TIER_TEMPLATES[normalize_tier(tier)][0]


def tier_config(tier) -> Dict[str, Any]:
    tier = normalize_tier(tier)
    return {
        "tier": tier.value,
        "visible_sections": visible_sections(tier),
        "limits": dict(TIER_LIMITS[tier]),
        "required_fields": list(TIER_REQUIRED_FIELDS[tier]),
        "publish_threshold": PUBLISH_THRESHOLD,
        "price": {"amount": TIER_PRICING[tier], "currency": PAYMENT_CURRENCY},
        "templates": list(TIER_TEMPLATES[tier]),
    }


def get_path(content: Optional[Dict[str, Any]], path: str):
    """Resolve a dotted path like 'bio.original' inside a content document."""
    node: Any = content or {}
    for part in path.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(part)
    return node
