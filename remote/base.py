"""Remote survey service abstraction consumed by the lifecycle controller."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Union

from core import ListItemsResult, SearchResult, SearchSpace, SurveyItem


AssetSource = Union[str, Path, bytes]


class BaseSurveyService:
    """Base boundary that can be replaced by the HTTP client or test doubles.

    Every method is a suspension point for the controller. Implementations
    raise ``RemoteServiceError`` for non-success responses and
    ``BriefingConflictError`` when a briefing exists and ``force`` is false.
    """

    name = "base"

    async def list_items(
        self,
        *,
        category_id: Optional[str] = None,
        component_key: Optional[str] = None,
    ) -> ListItemsResult:
        raise NotImplementedError

    async def get_item(self, item_id: str) -> SurveyItem:
        raise NotImplementedError

    async def upload_item(
        self,
        file: AssetSource,
        *,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
        category_id: Optional[str] = None,
        component_key: Optional[str] = None,
    ) -> SurveyItem:
        raise NotImplementedError

    async def update_item(self, updates: Dict[str, Any]) -> SurveyItem:
        raise NotImplementedError

    async def delete_item(self, item_id: str) -> bool:
        raise NotImplementedError

    async def analyze(self, item_id: str) -> SurveyItem:
        raise NotImplementedError

    async def embed(self, item_id: str) -> SurveyItem:
        raise NotImplementedError

    async def generate_briefing(self, item_id: str, *, force: bool = False) -> SurveyItem:
        raise NotImplementedError

    async def search(
        self,
        query: str,
        *,
        space: SearchSpace,
        limit: int,
        threshold: float,
        category_id: Optional[str] = None,
        component_key: Optional[str] = None,
    ) -> SearchResult:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None
