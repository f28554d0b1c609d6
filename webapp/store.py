"""In-memory survey item store backing the development service."""

from __future__ import annotations

from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, List, Optional
from uuid import uuid4


UPDATABLE_FIELDS = (
    "category_id",
    "component_key",
    "title",
    "notes",
    "sources",
    "tags",
    "analysis",
    "annotations",
)


def _utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _new_item_id() -> str:
    return f"item_{uuid4().hex[:12]}"


class InMemorySurveyStore:
    """Thread-safe store for survey item records (plain dicts in wire shape)."""

    def __init__(self) -> None:
        self._items: Dict[str, Dict[str, Any]] = {}
        self._lock = Lock()

    def create(
        self,
        *,
        image_path: str,
        image_mime: str,
        category_id: Optional[str] = None,
        component_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        now = _utc_iso()
        record = {
            "id": _new_item_id(),
            "category_id": category_id or None,
            "component_key": component_key or None,
            "image_path": image_path,
            "image_mime": image_mime,
            "title": None,
            "notes": None,
            "tags": [],
            "sources": [],
            "analysis": {},
            "annotations": None,
            "briefing": None,
            "embedding_text": None,
            "briefing_embedding_text": None,
            "created_at": now,
            "updated_at": now,
        }
        with self._lock:
            self._items[record["id"]] = record
            return dict(record)

    def get(self, item_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._items.get(item_id)
            return dict(record) if record else None

    def list(
        self,
        *,
        category_id: Optional[str] = None,
        component_key: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            # newest first
            records = [dict(item) for item in reversed(list(self._items.values()))]
        if category_id:
            records = [item for item in records if item.get("category_id") == category_id]
        if component_key:
            records = [item for item in records if item.get("component_key") == component_key]
        return records

    def update(self, item_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._items.get(item_id)
            if not record:
                return None
            record.update(changes)
            record["updated_at"] = _utc_iso()
            return dict(record)

    def delete(self, item_id: str) -> bool:
        with self._lock:
            return self._items.pop(item_id, None) is not None
