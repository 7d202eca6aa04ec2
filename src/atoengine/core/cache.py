"""Time-bounded cache of tenant resource inventories."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from ..providers.base import InventoryService

logger = logging.getLogger(__name__)

RESOURCE_CACHE_TTL_SECONDS = 300
RESOURCE_CACHE_KEY_PREFIX = "resources:"


@dataclass
class _CacheEntry:
    value: Any
    expires_at: float


class ResourceCache:
    """Per-tenant inventory cache with a fixed absolute expiration.

    There is no per-entry invalidation and no single-flight coalescing: two
    callers that miss at the same time both fetch, and the last write wins.
    """

    def __init__(
        self,
        inventory: InventoryService,
        ttl_seconds: float = RESOURCE_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.inventory = inventory
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}

    @staticmethod
    def cache_key(tenant_id: str) -> str:
        return f"{RESOURCE_CACHE_KEY_PREFIX}{tenant_id}"

    async def get_resources(self, tenant_id: str) -> list[dict]:
        key = self.cache_key(tenant_id)
        entry = self._entries.get(key)
        if entry is not None:
            if self._clock() < entry.expires_at:
                logger.debug(
                    "Retrieved %d cached resources for tenant %s", len(entry.value), tenant_id
                )
                return entry.value
            self._evict(key, "Expired")

        logger.debug("Cache miss - fetching resources for tenant %s", tenant_id)
        resources = await self.inventory.list_resource_groups(tenant_id)

        self._entries[key] = _CacheEntry(value=resources, expires_at=self._clock() + self.ttl_seconds)
        logger.info(
            "Cached %d resources for tenant %s (expires in %s minutes)",
            len(resources), tenant_id, round(self.ttl_seconds / 60, 1),
        )
        return resources

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns the number evicted."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            self._evict(key, "Expired")
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)

    def _evict(self, key: str, reason: str) -> None:
        if self._entries.pop(key, None) is not None:
            logger.debug("Cache entry %s evicted. Reason: %s", key, reason)
