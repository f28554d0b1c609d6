"""
Survey Service Client
基于 httpx 的异步 Survey API 客户端
"""
from __future__ import annotations

import asyncio
import logging
import mimetypes
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from config import ServiceSettings, get_service_settings
from core import ListItemsResult, SearchResult, SearchSpace, SurveyItem
from utils.exceptions import BriefingConflictError, ConfigurationError, RemoteServiceError

from .base import AssetSource, BaseSurveyService


logger = logging.getLogger(__name__)

ITEMS_ENDPOINT = "/api/survey/items"
ANALYZE_ENDPOINT = "/api/survey/analyze"
EMBED_ENDPOINT = "/api/survey/embed"
BRIEFING_ENDPOINT = "/api/survey/briefing"
SEARCH_ENDPOINT = "/api/survey/search"

CredentialSource = Union[str, Callable[[], Optional[str]], None]


def _json_or_empty(response: httpx.Response) -> Dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _item_from(payload: Dict[str, Any], endpoint: str) -> SurveyItem:
    raw = payload.get("item")
    if not isinstance(raw, dict):
        raise RemoteServiceError("Response missing item", endpoint=endpoint)
    return SurveyItem.model_validate(raw)


class SurveyServiceClient(BaseSurveyService):
    """
    Survey 服务 HTTP 客户端
    列表与搜索请求不携带凭证, 其余请求附带 Bearer Token
    """

    name = "http"

    def __init__(
        self,
        *,
        settings: Optional[ServiceSettings] = None,
        base_url: Optional[str] = None,
        access_token: CredentialSource = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings or get_service_settings()
        self._credential = access_token if access_token is not None else self._settings.access_token
        root = (base_url or self._settings.base_url or "").strip().rstrip("/")
        if not root:
            raise ConfigurationError("Survey service base_url is not configured")
        self._client = httpx.AsyncClient(
            base_url=root,
            timeout=httpx.Timeout(self._settings.request_timeout),
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self, authorized: bool) -> Dict[str, str]:
        if not authorized:
            return {}
        token = self._credential() if callable(self._credential) else self._credential
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    async def _send(
        self,
        method: str,
        endpoint: str,
        *,
        authorized: bool = True,
        retry_reads: bool = False,
        **kwargs: Any,
    ) -> httpx.Response:
        """发送请求; 只读请求在传输层失败时按配置重试"""
        attempts = max(1, int(self._settings.max_retries)) if retry_reads else 1
        headers = self._headers(authorized)
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(attempts),
                wait=wait_exponential(
                    multiplier=1,
                    min=self._settings.retry_min_wait,
                    max=self._settings.retry_max_wait,
                ),
                retry=retry_if_exception_type(httpx.TransportError),
                reraise=True,
            ):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.warning(
                            "retrying %s %s attempt=%s", method, endpoint, attempt.retry_state.attempt_number
                        )
                    return await self._client.request(method, endpoint, headers=headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise RemoteServiceError(f"{method} {endpoint} timed out", endpoint=endpoint) from exc
        except httpx.RequestError as exc:
            raise RemoteServiceError(f"{method} {endpoint} failed: {exc}", endpoint=endpoint) from exc
        raise RemoteServiceError(f"{method} {endpoint} made no attempt", endpoint=endpoint)

    @staticmethod
    def _checked(response: httpx.Response, endpoint: str) -> Dict[str, Any]:
        payload = _json_or_empty(response)
        if response.is_success:
            return payload
        message = str(payload.get("error") or f"Request failed: {response.status_code}")
        raise RemoteServiceError(message, status_code=response.status_code, endpoint=endpoint)

    async def list_items(
        self,
        *,
        category_id: Optional[str] = None,
        component_key: Optional[str] = None,
    ) -> ListItemsResult:
        params: Dict[str, str] = {}
        if category_id:
            params["category_id"] = category_id
        if component_key:
            params["component_key"] = component_key

        response = await self._send(
            "GET", ITEMS_ENDPOINT, authorized=False, retry_reads=True, params=params
        )
        payload = self._checked(response, ITEMS_ENDPOINT)
        return ListItemsResult.model_validate(
            {"items": payload.get("items") or [], "allItems": payload.get("allItems")}
        )

    async def get_item(self, item_id: str) -> SurveyItem:
        endpoint = f"{ITEMS_ENDPOINT}/{item_id}"
        response = await self._send("GET", endpoint, retry_reads=True)
        return _item_from(self._checked(response, endpoint), endpoint)

    async def upload_item(
        self,
        file: AssetSource,
        *,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
        category_id: Optional[str] = None,
        component_key: Optional[str] = None,
    ) -> SurveyItem:
        name, content, mime = await self._read_asset(file, filename, content_type)
        data: Dict[str, str] = {}
        if category_id:
            data["category_id"] = category_id
        if component_key:
            data["component_key"] = component_key

        response = await self._send(
            "POST",
            ITEMS_ENDPOINT,
            files={"file": (name, content, mime)},
            data=data,
            timeout=self._settings.upload_timeout,
        )
        payload = self._checked(response, ITEMS_ENDPOINT)
        logger.info("uploaded %s (%s bytes)", name, len(content))
        return _item_from(payload, ITEMS_ENDPOINT)

    async def update_item(self, updates: Dict[str, Any]) -> SurveyItem:
        response = await self._send("PATCH", ITEMS_ENDPOINT, json=updates)
        return _item_from(self._checked(response, ITEMS_ENDPOINT), ITEMS_ENDPOINT)

    async def delete_item(self, item_id: str) -> bool:
        response = await self._send("DELETE", ITEMS_ENDPOINT, params={"id": item_id})
        payload = self._checked(response, ITEMS_ENDPOINT)
        return bool(payload.get("success", True))

    async def analyze(self, item_id: str) -> SurveyItem:
        response = await self._send("POST", ANALYZE_ENDPOINT, json={"itemId": item_id})
        return _item_from(self._checked(response, ANALYZE_ENDPOINT), ANALYZE_ENDPOINT)

    async def embed(self, item_id: str) -> SurveyItem:
        response = await self._send("POST", EMBED_ENDPOINT, json={"itemId": item_id})
        return _item_from(self._checked(response, EMBED_ENDPOINT), EMBED_ENDPOINT)

    async def generate_briefing(self, item_id: str, *, force: bool = False) -> SurveyItem:
        response = await self._send(
            "POST", BRIEFING_ENDPOINT, json={"itemId": item_id, "force": bool(force)}
        )
        if response.status_code == 409:
            payload = _json_or_empty(response)
            if payload.get("requiresConfirmation"):
                raise BriefingConflictError(
                    str(payload.get("error") or "Briefing already exists"),
                    existing_briefing=payload.get("existingBriefing"),
                    endpoint=BRIEFING_ENDPOINT,
                )
        return _item_from(self._checked(response, BRIEFING_ENDPOINT), BRIEFING_ENDPOINT)

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
        body: Dict[str, Any] = {
            "query": query,
            "limit": int(limit),
            "threshold": float(threshold),
            "space": SearchSpace(space).value,
        }
        if category_id:
            body["categoryId"] = category_id
        if component_key:
            body["componentKey"] = component_key

        response = await self._send("POST", SEARCH_ENDPOINT, authorized=False, json=body)
        payload = self._checked(response, SEARCH_ENDPOINT)
        return SearchResult.model_validate(
            {
                "items": payload.get("items") or [],
                "space": payload.get("space") or body["space"],
                "query": payload.get("query") or query,
            }
        )

    async def _read_asset(
        self,
        file: AssetSource,
        filename: Optional[str],
        content_type: Optional[str],
    ) -> Tuple[str, bytes, str]:
        if isinstance(file, bytes):
            content = file
            name = filename or "upload.png"
        else:
            path = Path(file)
            content = await asyncio.to_thread(path.read_bytes)
            name = filename or path.name
        mime = content_type or mimetypes.guess_type(name)[0] or "application/octet-stream"
        return name, content, mime
