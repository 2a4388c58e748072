# tests/test_list_manager.py — Ordered, capped list operations
import pytest

import list_manager


def links(n: int) -> list:
    return [{"id": f"links-{i}", "order": i, "url": f"https://example.com/{i}"} for i in range(n)]


def orders(items) -> list:
    return [i["order"] for i in items]


class TestAdd:
    def test_add_assigns_id_and_next_order(self):
        result = list_manager.add(links(1), "links", "emerging", {"url": "https://new.example.com"})
        assert result.changed
        assert len(result.items) == 2
        new = result.items[-1]
        assert new["order"] == 1
        assert new["id"].startswith("links-")
        assert new["isVisible"] is True

    def test_add_at_cap_is_a_no_op(self):
        result = list_manager.add(links(3), "links", "emerging", {"url": "https://fourth.example.com"})
        assert not result.changed
        assert len(result.items) == 3
        assert result.notice == "Maximum 3 links allowed for this tier"

    def test_add_to_hidden_section(self):
        result = list_manager.add([], "gallery", "emerging", {"url": "https://img.example.com/1.jpg"})
        assert not result.changed
        assert result.items == []
        assert "not available" in result.notice

    def test_add_ignores_caller_id_and_order(self):
        result = list_manager.add([], "achievements", "emerging", {"id": "mine", "order": 9, "title": "Award"})
        assert result.items[0]["id"] != "mine"
        assert result.items[0]["order"] == 0


class TestEditDelete:
    def test_edit_merges_fields(self):
        result = list_manager.edit(links(2), "links-1", {"label": "Blog", "order": 5})
        assert result.items[1]["label"] == "Blog"
        assert orders(result.items) == [0, 1]

    def test_delete_renumbers(self):
        result = list_manager.delete(links(3), "links-0")
        assert [i["id"] for i in result.items] == ["links-1", "links-2"]
        assert orders(result.items) == [0, 1]

    def test_missing_item(self):
        with pytest.raises(list_manager.ItemNotFoundError):
            list_manager.delete(links(2), "links-7")


class TestReorder:
    def test_move_up(self):
        result = list_manager.reorder(links(3), "links-2", 0)
        assert [i["id"] for i in result.items] == ["links-2", "links-0", "links-1"]
        assert orders(result.items) == [0, 1, 2]

    def test_index_is_clamped(self):
        result = list_manager.reorder(links(3), "links-0", 99)
        assert [i["id"] for i in result.items] == ["links-1", "links-2", "links-0"]

    def test_same_position_unchanged(self):
        result = list_manager.reorder(links(3), "links-1", 1)
        assert not result.changed


def test_toggle_visibility_twice_restores():
    once = list_manager.toggle_visibility(links(2), "links-0")
    assert once.items[0]["isVisible"] is False
    twice = list_manager.toggle_visibility(once.items, "links-0")
    assert twice.items[0]["isVisible"] is True


def test_normalize_sorts_and_fills_gaps():
    items = [
        {"id": "b", "order": 7},
        {"id": "a", "order": 2},
        {"title": "no order or id"},
    ]
    result = list_manager.normalize(items, "achievements")
    assert [i.get("id") for i in result][:2] == ["a", "b"]
    assert result[2]["id"].startswith("achievements-")
    assert orders(result) == [0, 1, 2]


def test_normalize_content_touches_only_list_sections():
    content = {"name": "Asha", "links": [{"id": "x", "order": 3}], "bio": {"original": "Hi"}}
    result = list_manager.normalize_content(content)
    assert result["links"][0]["order"] == 0
    assert result["bio"] == {"original": "Hi"}
    assert content["links"][0]["order"] == 3


def test_normalize_appends_unordered_after_high_orders():
    items = [{"id": "b", "order": 7}, {"id": "a", "order": 2}, {"id": "new"}]
    result = list_manager.normalize(items, "links")
    assert [i["id"] for i in result] == ["a", "b", "new"]
    assert orders(result) == [0, 1, 2]


def test_add_always_visible():
    result = list_manager.add([], "links", "emerging", {"url": "https://example.com", "isVisible": False})
    assert result.items[0]["isVisible"] is True


class TestItemUrls:
    @pytest.mark.parametrize("url", [
        "javascript:alert(document.cookie)",
        "data:text/html;base64,PHNjcmlwdD4=",
        "//example.com/no-scheme",
        "ftp://example.com/file",
    ])
    def test_add_rejects_non_http_url(self, url):
        with pytest.raises(list_manager.InvalidItemError) as exc:
            list_manager.add([], "links", "emerging", {"url": url})
        assert exc.value.field_name == "url"

    def test_edit_rejects_non_http_url(self):
        with pytest.raises(list_manager.InvalidItemError):
            list_manager.edit(links(1), "links-0", {"url": "javascript:void(0)"})

    def test_blank_url_is_allowed(self):
        result = list_manager.add([], "achievements", "emerging", {"title": "Award", "url": ""})
        assert result.changed
