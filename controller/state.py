"""Session state and shared wiring for the lifecycle controller."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from config import Settings
from core import PipelineStatus, SearchSpace
from remote import BaseSurveyService

from .cache import ItemCache
from .events import Notifier
from .supersession import SupersessionManager


@dataclass
class SessionState:
    """UI-facing session values; every change is dispatched as a state event."""

    category_id: Optional[str] = None
    component_key: Optional[str] = None
    selected_item_id: Optional[str] = None
    search_query: str = ""
    loading: bool = False
    searching: bool = False
    analyzing: bool = False
    embedding: bool = False
    briefing: bool = False
    saving: bool = False
    pipeline_status: PipelineStatus = PipelineStatus.IDLE
    search_space: SearchSpace = SearchSpace.BRIEFING

    def snapshot(self) -> Dict[str, Any]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


@dataclass
class ControllerContext:
    """Collaborators shared by the load, stage and search paths."""

    service: BaseSurveyService
    settings: Settings
    state: SessionState
    cache: ItemCache
    notifier: Notifier
    supersession: SupersessionManager

    def set_state(self, **changes: Any) -> None:
        for name, value in changes.items():
            if not hasattr(self.state, name):
                raise AttributeError(f"unknown session field: {name}")
            setattr(self.state, name, value)
            self.notifier.state(name, value)

    def publish_items(self) -> None:
        """Emit the visible list and recomputed counts after a cache write."""
        self.notifier.state("items", [item.id for item in self.cache.visible])
        self.notifier.state("item_counts", self.cache.counts_by_key())

    def resolve_item_id(self, explicit_id: Optional[str] = None) -> Optional[str]:
        """Explicit id wins; otherwise read the selection at the moment of need."""
        return explicit_id or self.state.selected_item_id
