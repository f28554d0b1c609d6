"""Enrichment stages (analyze, embed, briefing) and the post-upload pipeline."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, Optional, Tuple

from core import PipelineStatus, Stage, SurveyItem
from utils.exceptions import BriefingConflictError

from .conflict import ConflictResolver
from .state import ControllerContext


logger = logging.getLogger(__name__)

_BUSY_FLAGS: Dict[Stage, str] = {
    Stage.ANALYZE: "analyzing",
    Stage.EMBED: "embedding",
    Stage.BRIEFING: "briefing",
}

_MESSAGES: Dict[Stage, Tuple[str, str]] = {
    Stage.ANALYZE: ("Analysis complete", "Failed to analyze"),
    Stage.EMBED: ("Embeddings complete", "Failed to embed"),
    Stage.BRIEFING: ("Briefing generated", "Failed to generate briefing"),
}

_PIPELINE_STATUS: Dict[str, PipelineStatus] = {
    "analyze": PipelineStatus.ANALYZING,
    "briefing": PipelineStatus.BRIEFING,
}


class StageOrchestrator:
    """Runs one remote stage against one item, with an independent busy flag per stage."""

    def __init__(self, context: ControllerContext, resolver: ConflictResolver) -> None:
        self._ctx = context
        self._resolver = resolver

    async def analyze(self, item_id: Optional[str] = None) -> Optional[SurveyItem]:
        return await self._run_stage(Stage.ANALYZE, item_id, self._ctx.service.analyze)

    async def embed(self, item_id: Optional[str] = None) -> Optional[SurveyItem]:
        return await self._run_stage(Stage.EMBED, item_id, self._ctx.service.embed)

    async def generate_briefing(
        self,
        item_id: Optional[str] = None,
        force: bool = False,
    ) -> Optional[SurveyItem]:
        """
        生成 briefing; 服务端返回冲突时请求用户确认

        Returns:
            更新后的条目; 无目标或用户拒绝覆盖时返回 None
        """
        target = self._ctx.resolve_item_id(item_id)
        if not target:
            return None

        success, failure = _MESSAGES[Stage.BRIEFING]
        self._ctx.set_state(briefing=True)
        try:
            item = await self._ctx.service.generate_briefing(target, force=force)
        except BriefingConflictError as conflict:
            if force:
                self._report_failure(Stage.BRIEFING, target, failure, conflict)
                raise
            if not await self._resolver.confirm_overwrite(conflict, target):
                return None
        except Exception as exc:
            self._report_failure(Stage.BRIEFING, target, failure, exc)
            raise
        else:
            self._apply(item, success)
            return item
        finally:
            self._ctx.set_state(briefing=False)

        # confirmed: the retry re-acquires the busy flag released above
        return await self.generate_briefing(target, force=True)

    async def run_post_upload(self, item_id: str) -> PipelineStatus:
        """Run the configured post-upload stages; failures only mark the pipeline."""
        stages = list(self._ctx.settings.pipeline.post_upload_stages)
        if not stages:
            return self._ctx.state.pipeline_status

        try:
            for name in stages:
                self._ctx.set_state(pipeline_status=_PIPELINE_STATUS[name])
                if name == "analyze":
                    await self.analyze(item_id)
                else:
                    await self.generate_briefing(item_id)
        except Exception as exc:
            logger.warning("post-upload pipeline failed item_id=%s: %s", item_id, exc)
            self._ctx.set_state(pipeline_status=PipelineStatus.ERROR)
            return PipelineStatus.ERROR

        self._ctx.set_state(pipeline_status=PipelineStatus.DONE)
        self._ctx.notifier.toast("Enrichment pipeline complete")
        return PipelineStatus.DONE

    async def _run_stage(
        self,
        stage: Stage,
        item_id: Optional[str],
        call: Callable[[str], Awaitable[SurveyItem]],
    ) -> Optional[SurveyItem]:
        target = self._ctx.resolve_item_id(item_id)
        if not target:
            return None

        flag = _BUSY_FLAGS[stage]
        success, failure = _MESSAGES[stage]
        self._ctx.set_state(**{flag: True})
        try:
            item = await call(target)
        except Exception as exc:
            self._report_failure(stage, target, failure, exc)
            raise
        else:
            self._apply(item, success)
            return item
        finally:
            self._ctx.set_state(**{flag: False})

    def _apply(self, item: SurveyItem, message: str) -> None:
        self._ctx.cache.upsert(item)
        self._ctx.publish_items()
        self._ctx.notifier.toast(message)

    def _report_failure(self, stage: Stage, item_id: str, message: str, exc: Exception) -> None:
        logger.error("%s failed item_id=%s: %s", stage.value, item_id, exc)
        self._ctx.notifier.toast(message, level="error")
