"""Shared read/write helpers for snapshot caches."""

from __future__ import annotations

import logging
from typing import TypeVar

from storefront.cache.snapshots import Snapshot
from storefront.cache.store import CacheStore
from storefront.errors import SnapshotDecodeError
from storefront.observability.metrics import record_cache_hit, record_cache_miss

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=Snapshot)


class SnapshotCache:
    """Base for namespace caches storing tagged snapshots in the cache store."""

    namespace: str = ""

    def __init__(self, store: CacheStore, ttl: int):
        self.store = store
        self.ttl = ttl

    async def _load(self, key: str, snapshot_type: type[S]) -> S | None:
        """Get and decode a snapshot. Undecodable payloads are dropped."""
        raw = await self.store.get(key)
        if raw is None:
            record_cache_miss(self.namespace)
            return None

        try:
            snapshot = snapshot_type.from_bytes(raw)
        except SnapshotDecodeError as e:
            logger.warning(f"Dropping corrupt {self.namespace} cache entry {key}: {e}")
            await self.store.delete(key)
            record_cache_miss(self.namespace)
            return None

        record_cache_hit(self.namespace)
        return snapshot

    async def _save(self, key: str, snapshot: Snapshot, ttl: int | None = None) -> bool:
        """Encode and store a snapshot, overwriting any existing entry."""
        return await self.store.set_with_ttl(key, snapshot.to_bytes(), ttl or self.ttl)
