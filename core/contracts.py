"""Canonical data contracts for survey items and the lifecycle controller."""

from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PipelineStatus(str, Enum):
    """Session-level state of the automatic post-upload sequence."""

    IDLE = "idle"
    ANALYZING = "analyzing"
    BRIEFING = "briefing"
    DONE = "done"
    ERROR = "error"


class SearchSpace(str, Enum):
    """Embedding representation a similarity query is matched against."""

    BRIEFING = "briefing"
    FULL = "full"


class SearchMode(str, Enum):
    """How the search query is obtained."""

    QUERY = "query"
    SIMILAR = "similar"


class Stage(str, Enum):
    """Remote enrichment stages applied to a single item."""

    ANALYZE = "analyze"
    EMBED = "embed"
    BRIEFING = "briefing"


class ItemAnalysis(BaseModel):
    """Structured analysis produced by the analyze stage."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    summary: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    transfer_notes: Optional[str] = Field(default=None, alias="transferNotes")


class SurveyItem(BaseModel):
    """An uploaded reference asset and its enrichment results."""

    model_config = ConfigDict(extra="allow")

    id: str
    category_id: Optional[str] = None
    component_key: Optional[str] = None
    title: Optional[str] = None
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    briefing: Optional[str] = None
    analysis: Optional[ItemAnalysis] = None
    annotations: Any = None
    sources: List[Any] = Field(default_factory=list)
    image_path: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    similarity: Optional[float] = None

    @field_validator("id", mode="before")
    @classmethod
    def _non_empty_id(cls, value: Any) -> str:
        text = str(value or "").strip()
        if not text:
            raise ValueError("id is required")
        return text

    @field_validator("tags", "sources", mode="before")
    @classmethod
    def _list_or_empty(cls, value: Any) -> List[Any]:
        return list(value or [])

    @field_validator("analysis", mode="before")
    @classmethod
    def _empty_analysis(cls, value: Any) -> Any:
        # the service stores `{}` for items that were never analyzed
        if isinstance(value, dict) and not value:
            return None
        return value

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ListItemsResult(BaseModel):
    """Scoped listing plus the optional unscoped set used for counts."""

    model_config = ConfigDict(populate_by_name=True)

    items: List[SurveyItem] = Field(default_factory=list)
    all_items: Optional[List[SurveyItem]] = Field(default=None, alias="allItems")


class SearchResult(BaseModel):
    """Similarity search response; each item carries its score."""

    items: List[SurveyItem] = Field(default_factory=list)
    space: Optional[SearchSpace] = None
    query: Optional[str] = None
