"""Item lifecycle controller for survey reference items."""

from .cache import ItemCache
from .conflict import ConflictResolver
from .events import ControllerEvent, Notifier, RecordingDispatcher
from .search import SearchSubsystem, build_similar_query
from .service import UNSET, ItemLifecycleController
from .stages import StageOrchestrator
from .state import ControllerContext, SessionState
from .supersession import CancellationToken, RequestClass, SupersessionManager

__all__ = [
    "CancellationToken",
    "ConflictResolver",
    "ControllerContext",
    "ControllerEvent",
    "ItemCache",
    "ItemLifecycleController",
    "Notifier",
    "RecordingDispatcher",
    "RequestClass",
    "SearchSubsystem",
    "SessionState",
    "StageOrchestrator",
    "SupersessionManager",
    "UNSET",
    "build_similar_query",
]
