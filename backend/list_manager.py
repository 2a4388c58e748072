# list_manager.py — Ordered, capped collections inside a profile draft
# Every operation is pure: it takes the current list and returns a new one,
# with a dense 0..n-1 `order` and a stable `id` on every item.

import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import tiers

Item = Dict[str, Any]

# Keys the caller may not overwrite through edit()
_PROTECTED_KEYS = {"id", "order"}

# Item keys rendered as href/src
URL_ITEM_KEYS = ("url",)


class ItemNotFoundError(KeyError):
    pass


class InvalidItemError(ValueError):
    def __init__(self, field_name: str, message: str):
        super().__init__(f"{field_name}: {message}")
        self.field_name = field_name
        self.message = message


@dataclass
class ListResult:
    items: List[Item]
    notice: Optional[str] = None
    changed: bool = True


def is_http_url(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    parsed = urlparse(value.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def check_item_urls(item: Item) -> None:
    """Raise InvalidItemError for any URL key that is not an http(s) URL."""
    for key in URL_ITEM_KEYS:
        value = item.get(key)
        if value in (None, ""):
            continue
        if not is_http_url(value):
            raise InvalidItemError(key, "must be an http(s) URL")


def _new_item_id(section: str) -> str:
    return f"{section}-{uuid.uuid4().hex[:12]}"


def _renumber(items: List[Item]) -> List[Item]:
    return [{**item, "order": index} for index, item in enumerate(items)]


def _index_of(items: List[Item], item_id: str) -> int:
    for index, item in enumerate(items):
        if item.get("id") == item_id:
            return index
    raise ItemNotFoundError(item_id)


def _sort_key(pair):
    position, item = pair
    order = item.get("order")
    if isinstance(order, int) and not isinstance(order, bool):
        return (0, order, position)
    return (1, position, 0)


def normalize(items: Optional[List[Item]], section: str = "item") -> List[Item]:
    """Sort by existing order, fill in ids/visibility and renumber densely."""
    items = [dict(i) for i in (items or []) if isinstance(i, dict)]
    # Items without an order keep their position after ordered ones
    indexed = sorted(enumerate(items), key=_sort_key)
    result = []
    for _, item in indexed:
        item.setdefault("id", _new_item_id(section))
        item.setdefault("isVisible", True)
        result.append(item)
    return _renumber(result)


def add(items: List[Item], section: str, tier, fields: Optional[Item] = None) -> ListResult:
    items = normalize(items, section)
    if not tiers.is_section_visible(tier, section):
        return ListResult(items, f"{section} is not available for this tier", changed=False)

    limit = tiers.get_limit(tier, section)
    if len(items) >= limit:
        return ListResult(items, f"Maximum {limit} {section} allowed for this tier", changed=False)

    new_item = {k: v for k, v in (fields or {}).items() if k not in _PROTECTED_KEYS}
    check_item_urls(new_item)
    new_item["id"] = _new_item_id(section)
    new_item["order"] = len(items)
    new_item["isVisible"] = True
    return ListResult(items + [new_item])


def edit(items: List[Item], item_id: str, fields: Item) -> ListResult:
    items = normalize(items)
    index = _index_of(items, item_id)
    updates = {k: v for k, v in fields.items() if k not in _PROTECTED_KEYS}
    check_item_urls(updates)
    items[index] = {**items[index], **updates}
    return ListResult(items)


def delete(items: List[Item], item_id: str) -> ListResult:
    items = normalize(items)
    index = _index_of(items, item_id)
    del items[index]
    return ListResult(_renumber(items))


def reorder(items: List[Item], item_id: str, new_index: int) -> ListResult:
    items = normalize(items)
    index = _index_of(items, item_id)
    new_index = max(0, min(new_index, len(items) - 1))
    moved = items.pop(index)
    items.insert(new_index, moved)
    return ListResult(_renumber(items), changed=index != new_index)


def toggle_visibility(items: List[Item], item_id: str) -> ListResult:
    items = normalize(items)
    index = _index_of(items, item_id)
    item = items[index]
    items[index] = {**item, "isVisible": not item.get("isVisible", True)}
    return ListResult(items)


def normalize_content(content: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Renumber every repeating section of a content document."""
    content = dict(content or {})
    for section in tiers.LIST_SECTIONS:
        if section in content and isinstance(content[section], list):
            content[section] = normalize(content[section], section)
    return content
