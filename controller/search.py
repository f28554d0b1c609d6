"""Scoped, cancellable similarity search over one of two embedding spaces."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, List, Optional, Union

from core import SearchMode, SearchSpace, SurveyItem
from utils.exceptions import RemoteServiceError, RequestSupersededError, ValidationError

from .state import ControllerContext
from .supersession import RequestClass


logger = logging.getLogger(__name__)


def build_similar_query(item: SurveyItem) -> str:
    """Synthesize a query from an item: the briefing alone, else its descriptive fields."""
    if item.briefing and item.briefing.strip():
        return item.briefing

    parts: List[str] = []
    if item.title:
        parts.append(item.title)
    if item.notes:
        parts.append(item.notes)
    if item.tags:
        parts.append(", ".join(item.tags))
    if item.analysis is not None and item.analysis.transfer_notes:
        parts.append(item.analysis.transfer_notes)
    return ". ".join(parts)


class SearchSubsystem:
    """Builds the query, then issues a supersedable search under the current filters."""

    def __init__(
        self,
        context: ControllerContext,
        reload_items: Callable[[], Awaitable[None]],
    ) -> None:
        self._ctx = context
        self._reload_items = reload_items

    def build_query(self, query: Optional[str], mode: Union[SearchMode, str]) -> str:
        """Return the query to send, or raise ``ValidationError`` with the user message."""
        if SearchMode(mode) is SearchMode.SIMILAR:
            item = self._ctx.cache.get(self._ctx.resolve_item_id())
            if item is None:
                raise ValidationError("No item selected for similar search")
            text = build_similar_query(item)
            if not text.strip():
                raise ValidationError("Item has no content to search with")
            return text

        text = str(query or "").strip()
        if not text:
            raise ValidationError("Search query is required")
        return text

    async def search(
        self,
        query: Optional[str],
        mode: Union[SearchMode, str] = SearchMode.QUERY,
        space: Optional[Union[SearchSpace, str]] = None,
    ) -> Optional[List[SurveyItem]]:
        """
        执行语义搜索

        Returns:
            应用到可见列表的结果; 校验失败、被取代或请求失败时返回 None
        """
        try:
            search_query = self.build_query(query, mode)
        except ValidationError as exc:
            self._ctx.notifier.toast(exc.message, level="error")
            return None

        ctx = self._ctx
        effective_space = SearchSpace(space) if space else ctx.state.search_space
        search_settings = ctx.settings.search
        token = ctx.supersession.begin(RequestClass.SEARCH)
        ctx.set_state(searching=True, loading=True)
        try:
            result = await ctx.supersession.run(
                token,
                ctx.service.search(
                    search_query,
                    space=effective_space,
                    limit=search_settings.limit,
                    threshold=search_settings.threshold,
                    category_id=ctx.state.category_id,
                    component_key=ctx.state.component_key,
                ),
            )
        except RequestSupersededError:
            logger.debug("search #%s aborted by a newer search", token.generation)
            return None
        except Exception as exc:
            if not ctx.supersession.is_current(token):
                logger.debug("search #%s failed after being superseded: %s", token.generation, exc)
                return None
            logger.error("semantic search failed: %s", exc)
            message = exc.message if isinstance(exc, RemoteServiceError) else "Search failed"
            ctx.notifier.toast(message, level="error")
            await self._reload_items()
            return None
        else:
            if not ctx.supersession.is_current(token):
                logger.debug("discarding stale search #%s", token.generation)
                return None
            items = list(result.items)
            ctx.cache.replace_visible(items)
            ctx.publish_items()
            ctx.notifier.toast(f"Found {len(items)} similar items ({effective_space.value})")
            return items
        finally:
            ctx.set_state(searching=False, loading=False)
