"""Product cache: single-product lookups by id.

Entries are invalidated on product update/delete and on every stock-field
write. A missed invalidation is bounded by the 30 minute TTL.
"""

from __future__ import annotations

from storefront.cache.base import SnapshotCache
from storefront.cache.keys import CacheKeys, CacheTTL
from storefront.cache.snapshots import ProductSnapshot
from storefront.cache.store import CacheStore


class ProductCache(SnapshotCache):
    """Cache of ProductSnapshot under product:{id}."""

    namespace = CacheKeys.PRODUCT

    def __init__(self, store: CacheStore, ttl: int = CacheTTL.PRODUCT):
        super().__init__(store, ttl)

    async def get(self, product_id: str) -> ProductSnapshot | None:
        """Get a cached product, or None on miss."""
        return await self._load(CacheKeys.product(product_id), ProductSnapshot)

    async def put(self, product: ProductSnapshot) -> bool:
        """Cache a product snapshot."""
        return await self._save(CacheKeys.product(product.id), product)

    async def invalidate(self, product_id: str) -> bool:
        """Delete the cached product. True when the store confirmed it."""
        return await self.store.delete(CacheKeys.product(product_id))

    async def invalidate_all(self) -> int | None:
        """Delete every cached product. None when the store was unreachable."""
        return await self.store.delete_by_prefix(CacheKeys.namespace_prefix("product"))
