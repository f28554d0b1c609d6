"""Scriptable fakes shared by the controller tests."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Tuple

from config import (
    ControllerSettings,
    LoggingSettings,
    PipelineSettings,
    SearchSettings,
    ServiceSettings,
    Settings,
)
from core import ItemAnalysis, ListItemsResult, SearchResult, SearchSpace, SurveyItem
from remote import BaseSurveyService
from utils.exceptions import BriefingConflictError


def make_settings(
    *,
    stages: Optional[List[str]] = None,
    abort: bool = True,
    max_retries: int = 1,
) -> Settings:
    return Settings(
        service=ServiceSettings(
            base_url="http://survey.test",
            access_token="secret-token",
            max_retries=max_retries,
            retry_min_wait=0,
            retry_max_wait=0,
        ),
        search=SearchSettings(),
        pipeline=PipelineSettings(post_upload_stages=["analyze"] if stages is None else stages),
        controller=ControllerSettings(abort_superseded_requests=abort),
        logging=LoggingSettings(use_rich=False),
    )


class FakeSurveyService(BaseSurveyService):
    """Scriptable service: gates hold calls open, failures make them raise."""

    name = "fake"

    def __init__(self, items: Optional[List[SurveyItem]] = None) -> None:
        self.items: Dict[str, SurveyItem] = {item.id: item for item in items or []}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.gates: Dict[str, asyncio.Event] = {}
        self.failures: Dict[str, Exception] = {}
        self.search_results: List[SurveyItem] = []
        self.all_items_override: Optional[List[SurveyItem]] = None
        self.omit_all_items = False
        self.closed = False
        self._created = 0

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def last(self, method: str) -> Dict[str, Any]:
        return [kwargs for name, kwargs in self.calls if name == method][-1]

    def gate(self, key: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[key] = event
        return event

    async def _enter(self, method: str, key: Optional[str] = None, **kwargs: Any) -> None:
        self.calls.append((method, kwargs))
        gate = self.gates.get(f"{method}:{key}") or self.gates.get(method)
        if gate is not None:
            await gate.wait()
        failure = self.failures.get(f"{method}:{key}") or self.failures.get(method)
        if failure is not None:
            raise failure

    async def list_items(self, *, category_id=None, component_key=None) -> ListItemsResult:
        await self._enter("list_items", category_id, category_id=category_id, component_key=component_key)
        scoped = [
            item
            for item in self.items.values()
            if (not category_id or item.category_id == category_id)
            and (not component_key or item.component_key == component_key)
        ]
        if self.omit_all_items:
            return ListItemsResult(items=scoped)
        every = self.all_items_override if self.all_items_override is not None else list(self.items.values())
        return ListItemsResult(items=scoped, all_items=every)

    async def get_item(self, item_id: str) -> SurveyItem:
        await self._enter("get_item", item_id, item_id=item_id)
        return self.items[item_id]

    async def upload_item(self, file, *, filename=None, content_type=None, category_id=None, component_key=None) -> SurveyItem:
        await self._enter(
            "upload_item",
            filename=filename,
            content_type=content_type,
            category_id=category_id,
            component_key=component_key,
        )
        self._created += 1
        item = SurveyItem(id=f"new-{self._created}", category_id=category_id, component_key=component_key)
        self.items[item.id] = item
        return item

    async def update_item(self, updates: Dict[str, Any]) -> SurveyItem:
        await self._enter("update_item", updates.get("id"), updates=dict(updates))
        merged = {**self.items[updates["id"]].model_dump(), **updates}
        item = SurveyItem.model_validate(merged)
        self.items[item.id] = item
        return item

    async def delete_item(self, item_id: str) -> bool:
        await self._enter("delete_item", item_id, item_id=item_id)
        self.items.pop(item_id, None)
        return True

    async def analyze(self, item_id: str) -> SurveyItem:
        await self._enter("analyze", item_id, item_id=item_id)
        item = self.items[item_id].model_copy(
            update={"analysis": ItemAnalysis(summary="analyzed", transfer_notes="borrow the reticle")}
        )
        self.items[item_id] = item
        return item

    async def embed(self, item_id: str) -> SurveyItem:
        await self._enter("embed", item_id, item_id=item_id)
        return self.items[item_id]

    async def generate_briefing(self, item_id: str, *, force: bool = False) -> SurveyItem:
        await self._enter("generate_briefing", item_id, item_id=item_id, force=force)
        current = self.items[item_id]
        if current.briefing and not force:
            raise BriefingConflictError(existing_briefing=current.briefing)
        item = current.model_copy(update={"briefing": f"briefing v{self.count('generate_briefing')}"})
        self.items[item_id] = item
        return item

    async def search(self, query, *, space, limit, threshold, category_id=None, component_key=None) -> SearchResult:
        await self._enter(
            "search",
            query,
            query=query,
            space=space,
            limit=limit,
            threshold=threshold,
            category_id=category_id,
            component_key=component_key,
        )
        return SearchResult(items=list(self.search_results), space=SearchSpace(space), query=query)

    async def aclose(self) -> None:
        self.closed = True


async def wait_for_calls(service: FakeSurveyService, method: str, count: int) -> None:
    """Yield to the loop until ``count`` calls of ``method`` have started."""
    for _ in range(200):
        if service.count(method) >= count:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"{method} reached {service.count(method)} calls, expected {count}")


