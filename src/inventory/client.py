"""Async HTTP client for the inventory API.

Usage:
    async with InventoryClient("http://localhost:3001/api/v1") as client:
        page = await client.list_resources(tags="Environment:Production", size=50)

Only GET requests are retried (transport errors and 5xx responses, exponential backoff).
POST/PUT/DELETE are sent once: repeating a create could insert a duplicate resource.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

logger = logging.getLogger("inventory.client")

DEFAULT_TIMEOUT = 10.0
DEFAULT_RETRIES = 3
DEFAULT_BACKOFF = 0.5


class InventoryAPIError(Exception):
    """Raised for any non-2xx answer (after retries for GETs)."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


def _drop_none(params: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in params.items() if v is not None}


class InventoryClient:
    """Thin wrapper over the REST surface returning the decoded ``data`` part of each envelope
    (or the whole envelope for paginated lists)."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
        backoff: float = DEFAULT_BACKOFF,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)
        self.retries = retries
        self.backoff = backoff
        self._sleep = sleep

    async def __aenter__(self) -> "InventoryClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # --- transport ---

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        attempt = 0
        while True:
            try:
                response = await self._client.get(path, params=_drop_none(params or {}))
            except httpx.TransportError as exc:
                if attempt >= self.retries:
                    raise
                logger.warning("GET %s failed (%s); retry %d/%d", path, exc, attempt + 1, self.retries)
            else:
                if response.status_code < 500 or attempt >= self.retries:
                    return response
                logger.warning(
                    "GET %s returned %s; retry %d/%d", path, response.status_code, attempt + 1, self.retries
                )
            await self._sleep(self.backoff * (2 ** attempt))
            attempt += 1

    async def _send(self, method: str, path: str, json: Optional[Dict[str, Any]] = None, params=None) -> httpx.Response:
        return await self._client.request(method, path, json=json, params=_drop_none(params or {}))

    @staticmethod
    def _unwrap(response: httpx.Response, whole: bool = False) -> Any:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if response.is_error or not body.get("success", False):
            raise InventoryAPIError(response.status_code, body.get("message") or response.reason_phrase)
        return body if whole else body.get("data")

    # --- resources ---

    # PUBLIC_INTERFACE
    async def list_resources(self, **filters: Any) -> Dict[str, Any]:
        """Return the paginated envelope: ``{"success", "data", "pagination", ...}``.

        Keyword arguments are passed as query parameters (search, tags, sort_field, page, size, ...).
        """
        return self._unwrap(await self._get("/resources", filters), whole=True)

    async def get_resource(self, resource_id: int) -> Dict[str, Any]:
        return self._unwrap(await self._get(f"/resources/{resource_id}"))

    async def create_resource(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._unwrap(await self._send("POST", "/resources", json=payload))

    async def update_resource(self, resource_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        return self._unwrap(await self._send("PUT", f"/resources/{resource_id}", json=changes))

    async def delete_resource(self, resource_id: int) -> None:
        self._unwrap(await self._send("DELETE", f"/resources/{resource_id}"))

    async def resource_stats(self) -> Dict[str, Any]:
        return self._unwrap(await self._get("/resources/stats"))

    async def link_application(self, resource_id: int, application_id: int, relation_type: str = "uses") -> Dict[str, Any]:
        payload = {"application_id": application_id, "relation_type": relation_type}
        return self._unwrap(await self._send("POST", f"/resources/{resource_id}/applications", json=payload))

    # --- hierarchy ---

    async def list_subscriptions(self) -> list:
        return self._unwrap(await self._get("/subscriptions"))

    async def create_subscription(self, name: str, tenant_id: Optional[str] = None) -> Dict[str, Any]:
        return self._unwrap(await self._send("POST", "/subscriptions", json={"name": name, "tenant_id": tenant_id}))

    async def list_resource_groups(self, subscription_id: Optional[int] = None) -> list:
        return self._unwrap(await self._get("/resource-groups", {"subscription_id": subscription_id}))

    async def create_resource_group(self, name: str, subscription_id: int) -> Dict[str, Any]:
        payload = {"name": name, "subscription_id": subscription_id}
        return self._unwrap(await self._send("POST", "/resource-groups", json=payload))

    async def list_applications(self) -> list:
        return self._unwrap(await self._get("/applications"))

    async def create_application(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._unwrap(await self._send("POST", "/applications", json=payload))

    # --- tags / dashboard ---

    async def tags(self) -> Dict[str, Any]:
        return self._unwrap(await self._get("/tags"))

    async def tag_suggestions(self, q: str) -> list:
        return self._unwrap(await self._get("/tags/suggestions", {"q": q}))

    async def dashboard_summary(self, **filters: Any) -> Dict[str, Any]:
        return self._unwrap(await self._get("/dashboard/summary", filters))
