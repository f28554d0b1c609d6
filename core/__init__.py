"""Core contracts and shared types for the survey lifecycle controller."""

from .contracts import (
    ItemAnalysis,
    ListItemsResult,
    PipelineStatus,
    SearchMode,
    SearchResult,
    SearchSpace,
    Stage,
    SurveyItem,
)

__all__ = [
    "ItemAnalysis",
    "ListItemsResult",
    "PipelineStatus",
    "SearchMode",
    "SearchResult",
    "SearchSpace",
    "Stage",
    "SurveyItem",
]
