from __future__ import annotations

from collections import Counter
import random

import pytest

from controller.cache import ItemCache
from core import SurveyItem


def _item(item_id: str, category=None, component=None, **extra) -> SurveyItem:
    return SurveyItem(id=item_id, category_id=category, component_key=component, **extra)


def _tally(items) -> dict:
    counts = Counter()
    for item in items:
        if item.category_id:
            counts[item.category_id] += 1
        if item.component_key:
            counts[item.component_key] += 1
    return dict(counts)


def test_upsert_replaces_in_visible_and_full_set() -> None:
    cache = ItemCache()
    cache.replace_visible([_item("a", "hud", title="old")])
    cache.set_all([_item("a", "hud", title="old"), _item("b", "nav")])

    cache.upsert(_item("a", "hud", title="new"))

    assert [item.title for item in cache.visible] == ["new"]
    assert cache.get("a").title == "new"
    assert {item.id for item in cache.all_items} == {"a", "b"}


def test_upsert_only_adds_to_visible_when_asked() -> None:
    cache = ItemCache()
    cache.replace_visible([_item("a")])

    cache.upsert(_item("b"))
    assert [item.id for item in cache.visible] == ["a"]
    assert [item.id for item in cache.all_items] == ["b"]

    cache.upsert(_item("c"), add_to_visible=True)
    assert [item.id for item in cache.visible] == ["c", "a"]
    assert [item.id for item in cache.all_items] == ["c", "b"]


def test_remove_drops_from_both_views() -> None:
    cache = ItemCache()
    cache.replace_visible([_item("a"), _item("b")])
    cache.set_all([_item("a"), _item("b")])

    cache.remove("a")

    assert [item.id for item in cache.visible] == ["b"]
    assert [item.id for item in cache.all_items] == ["b"]
    assert cache.get("a") is None


def test_get_prefers_visible_copy_over_partial_full_set_entry() -> None:
    cache = ItemCache()
    cache.set_all([_item("a", "hud")])
    cache.replace_visible([_item("a", "hud", title="full record")])

    assert cache.get("a").title == "full record"
    assert cache.get(None) is None


def test_counts_cover_both_keys_per_item() -> None:
    cache = ItemCache()
    cache.set_all([_item("a", "hud", "reticle"), _item("b", "hud"), _item("c", None, "reticle"), _item("d")])

    assert cache.counts_by_key() == {"hud": 2, "reticle": 2}


@pytest.mark.parametrize("seed", [1, 7, 42, 2024])
def test_counts_never_drift_from_direct_tally(seed: int) -> None:
    rng = random.Random(seed)
    cache = ItemCache()
    categories = [None, "hud", "nav", "frame"]
    components = [None, "reticle", "compass"]

    for _ in range(200):
        item_id = f"i{rng.randint(0, 15)}"
        roll = rng.random()
        if roll < 0.6:
            cache.upsert(_item(item_id, rng.choice(categories), rng.choice(components)), add_to_visible=rng.random() < 0.5)
        elif roll < 0.9:
            cache.remove(item_id)
        else:
            cache.set_all(rng.sample(cache.all_items, k=len(cache.all_items) // 2))

        assert cache.counts_by_key() == _tally(cache.all_items)
