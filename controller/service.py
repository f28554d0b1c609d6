"""Item lifecycle controller: loads, CRUD, enrichment stages and search."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from config import Settings, get_settings
from core import PipelineStatus, SearchMode, SearchSpace, SurveyItem
from remote import AssetSource, BaseSurveyService, SurveyServiceClient
from utils.exceptions import RequestSupersededError

from .cache import ItemCache
from .conflict import ConflictResolver
from .events import ConfirmCallback, Dispatch, Notifier
from .search import SearchSubsystem
from .stages import StageOrchestrator
from .state import ControllerContext, SessionState
from .supersession import RequestClass, SupersessionManager


logger = logging.getLogger(__name__)


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


class ItemLifecycleController:
    """
    Survey 条目生命周期控制器
    所有异步结果先经过 supersession 检查, 再写入 ItemCache
    """

    def __init__(
        self,
        service: Optional[BaseSurveyService] = None,
        *,
        dispatch: Optional[Dispatch] = None,
        confirm: Optional[ConfirmCallback] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._owns_service = service is None
        self.service = service or SurveyServiceClient(settings=self.settings.service)
        self.notifier = Notifier(dispatch)
        self.cache = ItemCache()
        self.supersession = SupersessionManager(
            abort_in_flight=self.settings.controller.abort_superseded_requests,
        )
        self._ctx = ControllerContext(
            service=self.service,
            settings=self.settings,
            state=SessionState(search_space=SearchSpace(self.settings.search.default_space)),
            cache=self.cache,
            notifier=self.notifier,
            supersession=self.supersession,
        )
        self.stages = StageOrchestrator(self._ctx, ConflictResolver(confirm))
        self.searcher = SearchSubsystem(self._ctx, self.load_items)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        self.supersession.cancel_all()
        if self._owns_service:
            await self.service.aclose()

    @property
    def state(self) -> SessionState:
        return self._ctx.state

    @property
    def item_counts(self) -> Dict[str, int]:
        return self.cache.counts_by_key()

    @property
    def pipeline_status(self) -> PipelineStatus:
        return self._ctx.state.pipeline_status

    # ------------------------------------------------------------------
    # selection and filters
    # ------------------------------------------------------------------

    def select_item(self, item_id: Optional[str]) -> None:
        self._ctx.set_state(selected_item_id=item_id or None)

    def set_search_space(self, space: Union[SearchSpace, str]) -> None:
        self._ctx.set_state(search_space=SearchSpace(space))

    def set_search_query(self, text: str) -> None:
        self._ctx.set_state(search_query=str(text or ""))

    async def set_category(self, category_id: Optional[str]) -> Optional[List[SurveyItem]]:
        """Changing the category resets the component filter and the selection."""
        return await self.set_filters(category_id, None)

    async def set_component(self, component_key: Optional[str]) -> Optional[List[SurveyItem]]:
        return await self.set_filters(self._ctx.state.category_id, component_key)

    async def set_filters(
        self,
        category_id: Optional[str],
        component_key: Optional[str],
    ) -> Optional[List[SurveyItem]]:
        state = self._ctx.state
        category_id = category_id or None
        component_key = component_key or None
        if (category_id, component_key) == (state.category_id, state.component_key):
            return None
        self._ctx.set_state(
            category_id=category_id,
            component_key=component_key,
            selected_item_id=None,
        )
        return await self.load_items()

    # ------------------------------------------------------------------
    # loading
    # ------------------------------------------------------------------

    async def load_items(self) -> Optional[List[SurveyItem]]:
        """
        按当前筛选条件加载条目, 新请求会取代仍在进行中的旧请求

        Returns:
            应用到可见列表的条目; 被取代或失败时返回 None
        """
        ctx = self._ctx
        token = self.supersession.begin(RequestClass.LOAD)
        ctx.set_state(loading=True)
        try:
            result = await self.supersession.run(
                token,
                self.service.list_items(
                    category_id=ctx.state.category_id,
                    component_key=ctx.state.component_key,
                ),
            )
        except RequestSupersededError:
            logger.debug("load #%s aborted by a newer load", token.generation)
            return None
        except Exception as exc:
            if not self.supersession.is_current(token):
                logger.debug("load #%s failed after being superseded: %s", token.generation, exc)
                return None
            logger.error("Failed to load survey items: %s", exc)
            ctx.notifier.toast("Failed to load references", level="error")
            ctx.set_state(loading=False)
            return None

        if not self.supersession.is_current(token):
            logger.debug("discarding stale load #%s", token.generation)
            return None

        items = list(result.items)
        self.cache.replace_visible(items)
        self.cache.set_all(result.all_items if result.all_items is not None else items)
        ctx.set_state(loading=False)
        ctx.publish_items()
        return items

    async def load_item_details(self, item_id: Optional[str] = None) -> Optional[SurveyItem]:
        """Fetch the full record (large text fields included) for one item."""
        ctx = self._ctx
        target = ctx.resolve_item_id(item_id)
        if not target:
            return None

        token = self.supersession.begin(RequestClass.DETAIL)
        try:
            item = await self.supersession.run(token, self.service.get_item(target))
        except RequestSupersededError:
            return None
        except Exception as exc:
            if not self.supersession.is_current(token):
                return None
            logger.error("Failed to load item %s: %s", target, exc)
            ctx.notifier.toast("Failed to load reference details", level="error")
            return None

        if not self.supersession.is_current(token):
            logger.debug("discarding stale detail #%s for %s", token.generation, target)
            return None

        self.cache.upsert(item)
        ctx.publish_items()
        return item

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def upload_item(
        self,
        file: AssetSource,
        *,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
        category_id: Optional[str] = UNSET,
        component_key: Optional[str] = UNSET,
    ) -> SurveyItem:
        """
        上传参考素材并运行上传后流水线

        Args:
            file: 文件路径或原始字节
            category_id: 显式分类; 未传入时使用当前筛选条件, 传入 None 表示不设置
            component_key: 显式组件; 规则同上

        Returns:
            新建条目 (流水线失败不影响上传结果)
        """
        ctx = self._ctx
        final_category = ctx.state.category_id if category_id is UNSET else category_id
        final_component = ctx.state.component_key if component_key is UNSET else component_key

        try:
            item = await self.service.upload_item(
                file,
                filename=filename,
                content_type=content_type,
                category_id=final_category,
                component_key=final_component,
            )
        except Exception as exc:
            logger.error("Failed to upload reference: %s", exc)
            ctx.notifier.toast("Failed to upload", level="error")
            raise

        self.cache.upsert(item, add_to_visible=True)
        ctx.set_state(selected_item_id=item.id)
        ctx.publish_items()
        ctx.notifier.toast("Reference uploaded")

        await self.stages.run_post_upload(item.id)
        return item

    async def update_item(self, updates: Union[Dict[str, Any], SurveyItem]) -> Optional[SurveyItem]:
        """Persist a partial item; failures are reported, not raised."""
        ctx = self._ctx
        payload = updates.to_wire() if isinstance(updates, SurveyItem) else dict(updates or {})
        if not str(payload.get("id") or "").strip():
            ctx.notifier.toast("Missing item id", level="error")
            return None

        ctx.set_state(saving=True)
        try:
            item = await self.service.update_item(payload)
        except Exception as exc:
            logger.error("Failed to update item: %s", exc)
            ctx.notifier.toast("Failed to save", level="error")
            return None
        else:
            self.cache.upsert(item)
            ctx.publish_items()
            ctx.notifier.toast("Saved")
            return item
        finally:
            ctx.set_state(saving=False)

    async def delete_item(self, item_id: Optional[str] = None) -> bool:
        ctx = self._ctx
        target = ctx.resolve_item_id(item_id)
        if not target:
            return False

        try:
            await self.service.delete_item(target)
        except Exception as exc:
            logger.error("Failed to delete item %s: %s", target, exc)
            ctx.notifier.toast("Failed to delete", level="error")
            raise

        self.cache.remove(target)
        if ctx.state.selected_item_id == target:
            ctx.set_state(selected_item_id=None)
        ctx.publish_items()
        ctx.notifier.toast("Reference deleted")
        return True

    # ------------------------------------------------------------------
    # enrichment and search
    # ------------------------------------------------------------------

    async def analyze_item(self, item_id: Optional[str] = None) -> Optional[SurveyItem]:
        return await self.stages.analyze(item_id)

    async def embed_item(self, item_id: Optional[str] = None) -> Optional[SurveyItem]:
        return await self.stages.embed(item_id)

    async def generate_briefing(
        self,
        item_id: Optional[str] = None,
        force: bool = False,
    ) -> Optional[SurveyItem]:
        return await self.stages.generate_briefing(item_id, force=force)

    async def search(
        self,
        query: Optional[str],
        mode: Union[SearchMode, str] = SearchMode.QUERY,
        space: Optional[Union[SearchSpace, str]] = None,
    ) -> Optional[List[SurveyItem]]:
        return await self.searcher.search(query, mode, space)
