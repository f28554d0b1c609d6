"""FastAPI development service implementing the survey API contract in memory.

Enrichment here is a deterministic placeholder (no model calls); it exists so the
controller and CLI can be exercised end to end without the hosted services.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .store import UPDATABLE_FIELDS, InMemorySurveyStore


ALLOWED_IMAGE_TYPES = {"image/png", "image/jpeg", "image/webp", "image/gif"}
SEARCH_SPACES = {"briefing", "full"}

_WORD_RE = re.compile(r"[a-z0-9]+")


class ItemIdPayload(BaseModel):
    itemId: Optional[str] = None


class BriefingPayload(ItemIdPayload):
    force: bool = False


class SearchPayload(BaseModel):
    query: Optional[str] = None
    categoryId: Optional[str] = None
    componentKey: Optional[str] = None
    limit: int = 10
    threshold: float = 0.3
    space: str = "briefing"


def _words(text: str) -> set:
    return set(_WORD_RE.findall(str(text or "").lower()))


def similarity(query: str, text: str) -> float:
    """Jaccard overlap of word sets; stands in for vector cosine similarity."""
    left, right = _words(query), _words(text)
    if not left or not right:
        return 0.0
    return round(len(left & right) / len(left | right), 4)


def build_embedding_text(item: Dict[str, Any]) -> str:
    parts: List[str] = []
    if item.get("title"):
        parts.append(f"Title: {item['title']}")
    if item.get("category_id"):
        parts.append(f"Category: {item['category_id']}")
    if item.get("component_key"):
        parts.append(f"Component: {item['component_key']}")
    if item.get("tags"):
        parts.append(f"Tags: {', '.join(item['tags'])}")
    if item.get("notes"):
        parts.append(f"Notes: {item['notes']}")
    analysis = item.get("analysis") or {}
    if analysis.get("summary"):
        parts.append(f"AI Summary: {analysis['summary']}")
    if analysis.get("transferNotes"):
        parts.append(f"Transfer Notes: {analysis['transferNotes']}")
    if analysis.get("tags"):
        parts.append(f"AI Tags: {', '.join(analysis['tags'])}")
    return "\n".join(parts)


def _placeholder_analysis(item: Dict[str, Any]) -> Dict[str, Any]:
    label = item.get("title") or str(item.get("image_path") or "reference").rsplit("/", 1)[-1]
    scope = [value for value in (item.get("category_id"), item.get("component_key")) if value]
    return {
        "summary": f"Reference {label}",
        "description": f"Visual inventory of {label}.",
        "tags": sorted(set(list(item.get("tags") or []) + scope)),
        "transferNotes": f"Borrow the framing of {label}.",
        "suggestedCategoryId": item.get("category_id"),
        "suggestedComponentKey": item.get("component_key"),
    }


def _placeholder_briefing(item: Dict[str, Any]) -> str:
    analysis = item.get("analysis") or {}
    lines = ["## Reference Summary", analysis.get("summary") or item.get("title") or "Untitled reference"]
    if analysis.get("transferNotes"):
        lines += ["", "## Implementation Notes", f"- {analysis['transferNotes']}"]
    return "\n".join(lines)


def create_app(
    store: Optional[InMemorySurveyStore] = None,
    *,
    access_token: Optional[str] = None,
) -> FastAPI:
    """Build the app; when ``access_token`` is set, mutating and stage routes require it."""
    items = store or InMemorySurveyStore()
    app = FastAPI(title="Survey development service")

    @app.exception_handler(HTTPException)
    async def _error_body(request: Request, exc: HTTPException) -> JSONResponse:
        body = exc.detail if isinstance(exc.detail, dict) else {"error": str(exc.detail)}
        return JSONResponse(body, status_code=exc.status_code)

    def authorized(request: Request) -> None:
        if not access_token:
            return
        if request.headers.get("authorization", "") != f"Bearer {access_token}":
            raise HTTPException(status_code=401, detail="Unauthorized")

    def _require(item_id: Optional[str]) -> Dict[str, Any]:
        if not item_id:
            raise HTTPException(status_code=400, detail="Missing itemId")
        item = items.get(item_id)
        if not item:
            raise HTTPException(status_code=404, detail="Item not found")
        return item

    @app.get("/api/survey/items")
    def list_items(category_id: Optional[str] = None, component_key: Optional[str] = None) -> Dict[str, Any]:
        scoped = items.list(category_id=(category_id or "").strip() or None, component_key=(component_key or "").strip() or None)
        every = [
            {"id": item["id"], "category_id": item["category_id"], "component_key": item["component_key"]}
            for item in items.list()
        ]
        return {"items": scoped, "allItems": every}

    @app.get("/api/survey/items/{item_id}", dependencies=[Depends(authorized)])
    def get_item(item_id: str) -> Dict[str, Any]:
        return {"item": _require(item_id)}

    @app.post("/api/survey/items", dependencies=[Depends(authorized)])
    async def upload_item(
        file: UploadFile = File(...),
        category_id: Optional[str] = Form(default=None),
        component_key: Optional[str] = Form(default=None),
    ) -> Dict[str, Any]:
        if file.content_type not in ALLOWED_IMAGE_TYPES:
            raise HTTPException(status_code=400, detail="Invalid file type. Allowed: PNG, JPEG, WebP, GIF")
        safe_name = re.sub(r"[^a-zA-Z0-9.-]", "_", file.filename or "upload")[:50]
        item = items.create(
            image_path=f"uploads/{safe_name}",
            image_mime=file.content_type,
            category_id=category_id,
            component_key=component_key,
        )
        return {"item": item}

    @app.patch("/api/survey/items", dependencies=[Depends(authorized)])
    def update_item(body: Dict[str, Any]) -> Dict[str, Any]:
        item_id = body.get("id")
        if not item_id:
            raise HTTPException(status_code=400, detail="Missing item id")
        changes = {key: body[key] for key in UPDATABLE_FIELDS if key in body}
        if not changes:
            raise HTTPException(status_code=400, detail="No valid fields to update")
        item = items.update(item_id, changes)
        if not item:
            raise HTTPException(status_code=500, detail="Failed to update item")
        return {"item": item}

    @app.delete("/api/survey/items", dependencies=[Depends(authorized)])
    def delete_item(id: Optional[str] = None) -> Dict[str, Any]:
        if not id:
            raise HTTPException(status_code=400, detail="Missing item id")
        if not items.delete(id):
            raise HTTPException(status_code=500, detail="Failed to delete item")
        return {"success": True}

    @app.post("/api/survey/analyze", dependencies=[Depends(authorized)])
    def analyze(payload: ItemIdPayload) -> Dict[str, Any]:
        item = _require(payload.itemId)
        analysis = _placeholder_analysis(item)
        changes: Dict[str, Any] = {"analysis": analysis}
        if not item.get("tags"):
            changes["tags"] = list(analysis["tags"])
        return {"item": items.update(item["id"], changes)}

    @app.post("/api/survey/embed", dependencies=[Depends(authorized)])
    def embed(payload: ItemIdPayload) -> Dict[str, Any]:
        item = _require(payload.itemId)
        text = build_embedding_text(item)
        if not text:
            raise HTTPException(status_code=400, detail="No content to embed. Add title, notes, or tags first.")
        changes = {"embedding_text": text, "briefing_embedding_text": item.get("briefing")}
        return {"item": items.update(item["id"], changes)}

    @app.post("/api/survey/briefing", dependencies=[Depends(authorized)])
    def briefing(payload: BriefingPayload) -> Dict[str, Any]:
        item = _require(payload.itemId)
        if item.get("briefing") and not payload.force:
            raise HTTPException(
                status_code=409,
                detail={
                    "error": "Briefing already exists",
                    "requiresConfirmation": True,
                    "existingBriefing": item["briefing"],
                },
            )
        text = _placeholder_briefing(item)
        return {"item": items.update(item["id"], {"briefing": text, "briefing_embedding_text": text})}

    @app.post("/api/survey/search")
    def search(payload: SearchPayload) -> Dict[str, Any]:
        query = (payload.query or "").strip()
        if not query:
            raise HTTPException(status_code=400, detail="Missing query")
        if payload.space not in SEARCH_SPACES:
            raise HTTPException(status_code=400, detail="Invalid space parameter. Use 'briefing' or 'full'.")

        field = "briefing_embedding_text" if payload.space == "briefing" else "embedding_text"
        scored = []
        for item in items.list(category_id=payload.categoryId, component_key=payload.componentKey):
            text = item.get(field)
            if not text:
                continue
            score = similarity(query, text)
            if score >= payload.threshold:
                scored.append({**item, "similarity": score})
        scored.sort(key=lambda item: item["similarity"], reverse=True)
        return {"items": scored[: max(0, payload.limit)], "query": query, "space": payload.space}

    return app


app = create_app()
