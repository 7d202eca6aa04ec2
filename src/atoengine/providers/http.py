"""HTTP-backed inventory and control catalog collaborators."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Optional

import httpx

from ..models.control import Control

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = (429, 500, 502, 503, 504)


class HttpServiceClient:
    """Shared GET-with-retry plumbing for the JSON services the engine calls."""

    name = "http"

    def __init__(self, service_config: dict):
        self.config = service_config
        self.endpoint = service_config.get("endpoint", "").rstrip("/")
        self.timeout = service_config.get("timeout_seconds", 30)
        self.max_attempts = max(1, int(service_config.get("retry_attempts", 3)))
        self.retry_delay = service_config.get("retry_delay_seconds", 2)

    def _get_api_key(self) -> Optional[str]:
        env_var = self.config.get("api_key_env")
        return os.environ.get(env_var) if env_var else None

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        api_key = self._get_api_key()
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    async def get_json(self, path: str, params: Optional[dict] = None) -> Any:
        url = f"{self.endpoint}/{path.lstrip('/')}" if path else self.endpoint

        for attempt in range(1, self.max_attempts + 1):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, params=params, headers=self._headers())
                    response.raise_for_status()
                    return response.json()
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status not in RETRYABLE_STATUS or attempt >= self.max_attempts:
                    raise
                logger.warning("%s returned %d (attempt %d/%d)", url, status, attempt, self.max_attempts)
            except httpx.TransportError as e:
                if attempt >= self.max_attempts:
                    raise
                logger.warning(
                    "%s unreachable: %s (attempt %d/%d)", url, e, attempt, self.max_attempts
                )

            await asyncio.sleep(self.retry_delay * min(attempt, 3))

        raise RuntimeError(f"Request to {url} exhausted retries")


def _unwrap(data: Any) -> list:
    # Accept bare lists or {"value": [...]} envelopes
    if isinstance(data, dict):
        data = data.get("value", data.get("items", []))
    return list(data or [])


class HttpInventoryService(HttpServiceClient):
    name = "http-inventory"

    async def list_resource_groups(self, tenant_id: str) -> list[dict]:
        data = await self.get_json(f"tenants/{tenant_id}/resource-groups")
        return [item for item in _unwrap(data) if isinstance(item, dict)]


class HttpControlCatalog(HttpServiceClient):
    name = "http-catalog"

    async def get_controls_by_family(self, family: str) -> list[Control]:
        data = await self.get_json("", params={"family": family})
        controls = []
        for item in _unwrap(data):
            if not isinstance(item, dict):
                continue
            control_id = item.get("id") or item.get("control_id")
            if not control_id:
                continue
            controls.append(Control(
                id=control_id,
                family=item.get("family", family),
                title=item.get("title", ""),
            ))
        return controls


def get_inventory_service(config: dict) -> HttpInventoryService:
    return HttpInventoryService(config.get("inventory", {}))


def get_control_catalog(config: dict) -> HttpControlCatalog:
    return HttpControlCatalog(config.get("catalog", {}))
