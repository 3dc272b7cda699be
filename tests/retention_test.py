"""Test selecting images beyond the retention count."""

import pytest
from conftest import make_image

from tag_reaper.services.retention import is_in_use, select_for_deletion

INVENTORY = [
    make_image("d5", "v5"),
    make_image("d4", "v4"),
    make_image("d3", "v3", "stable"),
    make_image("d2"),
    make_image("d1", "v1"),
]


def _digests(images: list) -> list[str]:
    return [x.digest for x in images]


def test_empty_inventory() -> None:
    assert select_for_deletion([], {"v1"}, 0) == []


def test_keep_none() -> None:
    assert _digests(select_for_deletion(INVENTORY, set(), 0)) == [
        "d5",
        "d4",
        "d3",
        "d2",
        "d1",
    ]


def test_keep_most_recent() -> None:
    selected = select_for_deletion(INVENTORY, set(), 2)
    assert _digests(selected) == ["d3", "d2", "d1"]


def test_keep_surplus() -> None:
    assert select_for_deletion(INVENTORY, set(), 5) == []
    assert select_for_deletion(INVENTORY, set(), 9999) == []


def test_in_use_always_kept() -> None:
    """In-use images neither get deleted nor count against the budget."""
    selected = select_for_deletion(INVENTORY, {"stable", "v1"}, 1)
    assert _digests(selected) == ["d4", "d2"]
    selected = select_for_deletion(INVENTORY, {"stable", "v1"}, 0)
    assert _digests(selected) == ["d5", "d4", "d2"]


def test_order_not_changed() -> None:
    reversed_inventory = list(reversed(INVENTORY))
    selected = select_for_deletion(reversed_inventory, set(), 2)
    assert _digests(selected) == ["d3", "d4", "d5"]


def test_untagged_never_in_use() -> None:
    untagged = make_image("d2")
    assert not is_in_use(untagged, frozenset({"latest", ""}))
    assert is_in_use(untagged, frozenset(), frozenset({"d2"}))


def test_pinned_digests_kept() -> None:
    selected = select_for_deletion(INVENTORY, set(), 0, pinned={"d4", "d2"})
    assert _digests(selected) == ["d5", "d3", "d1"]


def test_negative_max_images() -> None:
    with pytest.raises(ValueError, match="negative"):
        select_for_deletion(INVENTORY, set(), -1)


def test_idempotent() -> None:
    first = select_for_deletion(INVENTORY, {"v4"}, 1)
    second = select_for_deletion(INVENTORY, {"v4"}, 1)
    assert first == second
    assert _digests(first) == ["d3", "d2", "d1"]
