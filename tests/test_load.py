"""Filtered loading, supersession of loads, counts and the CRUD paths."""

from __future__ import annotations

import asyncio
import random

import pytest

from core import SurveyItem
from fakes import wait_for_calls
from utils.exceptions import RemoteServiceError


@pytest.mark.asyncio
async def test_load_applies_scoped_list_and_counts_from_full_set(make_controller, service, events) -> None:
    controller = make_controller()
    controller._ctx.state.category_id = "hud"

    items = await controller.load_items()

    assert [item.id for item in items] == ["a1", "a2"]
    assert [item.id for item in controller.cache.visible] == ["a1", "a2"]
    assert controller.item_counts == {"hud": 2, "reticle": 1, "nav": 1, "compass": 1}
    assert events.states("loading") == [True, False]
    assert events.states("items")[-1] == ["a1", "a2"]
    assert service.last("list_items") == {"category_id": "hud", "component_key": None}


@pytest.mark.asyncio
async def test_counts_follow_the_returned_full_set(make_controller, service) -> None:
    service.all_items_override = [SurveyItem(id="z", category_id="frame")]
    controller = make_controller()

    await controller.load_items()

    assert controller.item_counts == {"frame": 1}


@pytest.mark.asyncio
async def test_missing_full_set_falls_back_to_visible_items(make_controller, service) -> None:
    service.omit_all_items = True
    controller = make_controller()

    await controller.set_filters("nav", None)

    assert controller.item_counts == {"nav": 1, "compass": 1}


@pytest.mark.asyncio
async def test_load_failure_notifies_and_clears_loading(make_controller, service, events) -> None:
    controller = make_controller()
    await controller.load_items()
    service.failures["list_items"] = RemoteServiceError("Failed to fetch items", status_code=500)

    assert await controller.load_items() is None

    assert events.toasts() == ["Failed to load references"]
    assert controller.state.loading is False
    assert len(controller.cache.visible) == 3


@pytest.mark.asyncio
@pytest.mark.parametrize("abort", [True, False])
async def test_filter_change_discards_slower_previous_load(make_controller, service, events, abort) -> None:
    service.items["ca"] = SurveyItem(id="ca", category_id="A")
    service.items["cb"] = SurveyItem(id="cb", category_id="B")
    controller = make_controller(abort=abort)
    release_a = service.gate("list_items:A")

    first = asyncio.ensure_future(controller.set_category("A"))
    await wait_for_calls(service, "list_items", 1)
    applied = await controller.set_category("B")
    release_a.set()
    stale = await first

    assert stale is None
    assert [item.id for item in applied] == ["cb"]
    assert [item.id for item in controller.cache.visible] == ["cb"]
    assert events.states("items") == [["cb"]]
    assert controller.state.loading is False


@pytest.mark.asyncio
@pytest.mark.parametrize("seed", [3, 11, 29])
async def test_only_last_of_many_loads_applies_in_any_completion_order(make_controller, service, seed) -> None:
    categories = [f"c{index}" for index in range(5)]
    for category in categories:
        service.items[f"item-{category}"] = SurveyItem(id=f"item-{category}", category_id=category)
    gates = {category: service.gate(f"list_items:{category}") for category in categories}
    controller = make_controller(abort=False)

    tasks = []
    for index, category in enumerate(categories):
        tasks.append(asyncio.ensure_future(controller.set_category(category)))
        await wait_for_calls(service, "list_items", index + 1)

    order = list(categories)
    random.Random(seed).shuffle(order)
    for category in order:
        gates[category].set()
        await asyncio.sleep(0)
    results = await asyncio.gather(*tasks)

    assert results[:-1] == [None] * 4
    assert [item.id for item in results[-1]] == ["item-c4"]
    assert [item.id for item in controller.cache.visible] == ["item-c4"]
    assert controller.state.loading is False


@pytest.mark.asyncio
async def test_category_change_resets_component_and_selection(make_controller, service) -> None:
    controller = make_controller()
    await controller.set_filters("hud", "reticle")
    controller.select_item("a1")

    await controller.set_category("nav")

    assert controller.state.category_id == "nav"
    assert controller.state.component_key is None
    assert controller.state.selected_item_id is None
    assert [item.id for item in controller.cache.visible] == ["b1"]


@pytest.mark.asyncio
async def test_unchanged_filters_do_not_reload(make_controller, service) -> None:
    controller = make_controller()
    await controller.set_filters("hud", None)

    assert await controller.set_filters("hud", "") is None
    assert service.count("list_items") == 1

    await controller.set_component("reticle")
    assert service.last("list_items") == {"category_id": "hud", "component_key": "reticle"}


@pytest.mark.asyncio
async def test_update_upserts_and_reports(make_controller, service, events) -> None:
    controller = make_controller()
    await controller.load_items()

    item = await controller.update_item({"id": "a1", "title": "Renamed", "category_id": "nav"})

    assert item.title == "Renamed"
    assert controller.cache.get("a1").title == "Renamed"
    assert controller.item_counts["nav"] == 2
    assert events.states("saving") == [True, False]
    assert events.toasts() == ["Saved"]


@pytest.mark.asyncio
async def test_update_failure_is_reported_not_raised(make_controller, service, events) -> None:
    controller = make_controller()
    service.failures["update_item"] = RemoteServiceError("Failed to update item", status_code=500)

    assert await controller.update_item(SurveyItem(id="a1", title="X")) is None
    assert events.toasts() == ["Failed to save"]
    assert controller.state.saving is False


@pytest.mark.asyncio
async def test_update_without_id_makes_no_call(make_controller, service, events) -> None:
    controller = make_controller()

    assert await controller.update_item({"title": "orphan"}) is None
    assert service.count("update_item") == 0
    assert events.toasts() == ["Missing item id"]
    assert events.states("saving") == []


@pytest.mark.asyncio
async def test_delete_removes_item_and_clears_selection(make_controller, service, events) -> None:
    controller = make_controller()
    await controller.load_items()
    controller.select_item("a1")

    assert await controller.delete_item() is True

    assert service.last("delete_item") == {"item_id": "a1"}
    assert controller.cache.get("a1") is None
    assert controller.state.selected_item_id is None
    assert controller.item_counts == {"hud": 1, "nav": 1, "compass": 1}
    assert events.toasts() == ["Reference deleted"]


@pytest.mark.asyncio
async def test_delete_failure_is_reported_and_raised(make_controller, service, events) -> None:
    controller = make_controller()
    await controller.load_items()
    service.failures["delete_item"] = RemoteServiceError("Failed to delete item", status_code=500)

    with pytest.raises(RemoteServiceError):
        await controller.delete_item("b1")

    assert controller.cache.get("b1") is not None
    assert events.toasts() == ["Failed to delete"]


@pytest.mark.asyncio
async def test_delete_without_target_is_noop(make_controller, service) -> None:
    controller = make_controller()

    assert await controller.delete_item() is False
    assert service.calls == []


@pytest.mark.asyncio
async def test_detail_load_upserts_without_touching_visible(make_controller, service) -> None:
    controller = make_controller()
    await controller.set_filters("nav", None)

    item = await controller.load_item_details("a1")

    assert item.id == "a1"
    assert [entry.id for entry in controller.cache.visible] == ["b1"]
    assert controller.cache.get("a1") is not None


@pytest.mark.asyncio
async def test_newer_detail_load_wins(make_controller, service, events) -> None:
    controller = make_controller()
    release = service.gate("get_item:a1")

    first = asyncio.ensure_future(controller.load_item_details("a1"))
    await wait_for_calls(service, "get_item", 1)
    second = await controller.load_item_details("a2")
    release.set()

    assert await first is None
    assert second.id == "a2"
    assert events.toasts() == []


@pytest.mark.asyncio
async def test_detail_failure_is_reported(make_controller, service, events) -> None:
    controller = make_controller()
    service.failures["get_item"] = RemoteServiceError("Item not found", status_code=404)

    assert await controller.load_item_details("zzz") is None
    assert events.toasts() == ["Failed to load reference details"]


@pytest.mark.asyncio
async def test_context_manager_cancels_tokens_but_keeps_borrowed_service_open(make_controller, service) -> None:
    async with make_controller() as controller:
        token = controller.supersession.begin("load")

    assert not controller.supersession.is_current(token)
    assert service.closed is False


def test_session_values_are_dispatched_and_snapshotted(make_controller, events) -> None:
    controller = make_controller()

    controller.set_search_query("bracket corners")
    controller.select_item("a1")
    controller.select_item("")

    assert events.states("search_query") == ["bracket corners"]
    assert events.states("selected_item_id") == ["a1", None]
    snapshot = controller.state.snapshot()
    assert snapshot["search_query"] == "bracket corners"
    assert snapshot["selected_item_id"] is None
    assert snapshot["pipeline_status"].value == "idle"
