# builder.py — Profile builder wizard rules
# Five fixed steps. Continue only moves forward when the current step's
# predicate holds; Previous is always allowed. The draft itself lives with
# the client until it is saved.

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import list_manager
import tiers


class BuilderStep(str, Enum):
    BASIC_INFO = "basic_info"
    TIER_SECTIONS = "tier_sections"
    ACHIEVEMENTS = "achievements"
    LINKS_MEDIA = "links_media"
    REVIEW = "review"


STEPS: List[BuilderStep] = list(BuilderStep)

STEP_TITLES = {
    BuilderStep.BASIC_INFO: "Basic Info",
    BuilderStep.TIER_SECTIONS: "Tier-Specific Sections",
    BuilderStep.ACHIEVEMENTS: "Achievements",
    BuilderStep.LINKS_MEDIA: "Links & Media",
    BuilderStep.REVIEW: "Review",
}

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
SLUG_MAX_LENGTH = 50


@dataclass
class NavigationResult:
    step: BuilderStep
    moved: bool
    errors: List[str] = field(default_factory=list)


def has_value(value: Any) -> bool:
    """A field counts as filled when it is not null, blank or an empty collection."""
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) > 0
    return True


# ============================================================
# CONTENT SHAPE
# ============================================================

TEXT_FIELDS = ("name", "tagline", "location", "currentRole", "era", "heroImage", "heroVideo", "archivalNotes")
URL_FIELDS = ("heroImage", "heroVideo")
RICH_TEXT_FIELDS = ("bio", "futureVision", "enduringContributions")


def text_of(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _list_of(value: Any) -> list:
    return value if isinstance(value, list) else []


def content_errors(content: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Shape problems in a draft, as loc/msg pairs like request validation errors."""
    content = content or {}
    errors = []

    def fail(loc, msg):
        errors.append({"loc": ["content", *loc], "msg": msg})

    for key in TEXT_FIELDS:
        value = content.get(key)
        if value is not None and not isinstance(value, str):
            fail([key], "must be text")
    for key in URL_FIELDS:
        value = content.get(key)
        if isinstance(value, str) and value.strip() and not list_manager.is_http_url(value):
            fail([key], "must be an http(s) URL")

    for key in RICH_TEXT_FIELDS:
        value = content.get(key)
        if value is None or isinstance(value, str):
            continue
        if not isinstance(value, dict):
            fail([key], "must be an object with 'original' text")
            continue
        for part in ("original", "ai_polished"):
            if value.get(part) is not None and not isinstance(value.get(part), str):
                fail([key, part], "must be text")

    for section in tiers.LIST_SECTIONS:
        items = content.get(section)
        if items is None:
            continue
        if not isinstance(items, list):
            fail([section], "must be a list")
            continue
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                fail([section, index], "must be an object")
                continue
            try:
                list_manager.check_item_urls(item)
            except list_manager.InvalidItemError as e:
                fail([section, index, e.field_name], e.message)
    return errors


# ============================================================
# STEP PREDICATES
# ============================================================

def _basic_info_errors(tier, content: Dict[str, Any]) -> List[str]:
    errors = []
    name = content.get("name")
    if name is not None and not isinstance(name, str):
        errors.append("Name must be text")
    elif len(text_of(name)) < NAME_MIN_LENGTH:
        errors.append("Name is required")
    elif len(text_of(name)) > NAME_MAX_LENGTH:
        errors.append(f"Name must be at most {NAME_MAX_LENGTH} characters")
    if not has_value(tiers.get_path(content, "bio.original")):
        errors.append("Bio is required")
    return errors


def _tier_sections_errors(tier, content: Dict[str, Any]) -> List[str]:
    errors = []
    for section in tiers.LIST_SECTIONS:
        if not tiers.is_section_visible(tier, section):
            continue
        limit = tiers.get_limit(tier, section)
        if len(_list_of(content.get(section))) > limit:
            errors.append(f"{section} exceeds the limit of {limit} for this tier")
    return errors


def _achievements_errors(tier, content: Dict[str, Any]) -> List[str]:
    if not has_value(_list_of(content.get("achievements"))):
        return ["Add at least one achievement"]
    return []


def _links_media_errors(tier, content: Dict[str, Any]) -> List[str]:
    errors = []
    if not has_value(_list_of(content.get("links"))):
        errors.append("Add at least one link")
    for section in ("links", "gallery"):
        items = _list_of(content.get(section))
        limit = tiers.get_limit(tier, section)
        if len(items) > limit:
            errors.append(f"{section} exceeds the limit of {limit} for this tier")
        for index, item in enumerate(items):
            if isinstance(item, dict) and item.get("url") and not list_manager.is_http_url(item["url"]):
                errors.append(f"{section} item {index + 1} needs an http(s) URL")
    for key in URL_FIELDS:
        value = content.get(key)
        if value and not list_manager.is_http_url(value):
            errors.append(f"{key} needs an http(s) URL")
    return errors


STEP_VALIDATORS = {
    BuilderStep.BASIC_INFO: _basic_info_errors,
    BuilderStep.TIER_SECTIONS: _tier_sections_errors,
    BuilderStep.ACHIEVEMENTS: _achievements_errors,
    BuilderStep.LINKS_MEDIA: _links_media_errors,
}


def step_errors(step: BuilderStep, tier, content: Optional[Dict[str, Any]]) -> List[str]:
    validator = STEP_VALIDATORS.get(BuilderStep(step))
    if validator is None:
        return []
    return validator(tiers.normalize_tier(tier), content or {})


def can_advance(step: BuilderStep, tier, content: Optional[Dict[str, Any]]) -> bool:
    step = BuilderStep(step)
    if step == BuilderStep.REVIEW:
        return False
    return not step_errors(step, tier, content)


def go_next(step: BuilderStep, tier, content: Optional[Dict[str, Any]]) -> NavigationResult:
    step = BuilderStep(step)
    if step == BuilderStep.REVIEW:
        return NavigationResult(step, False, ["Review is the final step; publish to continue"])
    errors = step_errors(step, tier, content)
    if errors:
        return NavigationResult(step, False, errors)
    return NavigationResult(STEPS[STEPS.index(step) + 1], True)


def go_previous(step: BuilderStep) -> NavigationResult:
    step = BuilderStep(step)
    index = STEPS.index(step)
    if index == 0:
        return NavigationResult(step, False)
    return NavigationResult(STEPS[index - 1], True)


# ============================================================
# COMPLETION
# ============================================================

def missing_fields(tier, content: Optional[Dict[str, Any]]) -> List[str]:
    return [path for path in tiers.required_fields(tier) if not has_value(tiers.get_path(content, path))]


def completion_percentage(tier, content: Optional[Dict[str, Any]]) -> int:
    required = tiers.required_fields(tier)
    if not required:
        return 100
    filled = len(required) - len(missing_fields(tier, content))
    return filled * 100 // len(required)


def can_publish(tier, content: Optional[Dict[str, Any]]) -> bool:
    return completion_percentage(tier, content) >= tiers.PUBLISH_THRESHOLD


# ============================================================
# SLUGS
# ============================================================

def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (name or "").lower()).strip("-")
    return slug[:SLUG_MAX_LENGTH].strip("-")
