"""Cart cache: a user's formatted cart.

Dropped on every cart mutation, on any error during a cart mutation, and
when an order built from the cart is finalized.
"""

from __future__ import annotations

from storefront.cache.base import SnapshotCache
from storefront.cache.keys import CacheKeys, CacheTTL
from storefront.cache.snapshots import CartSnapshot
from storefront.cache.store import CacheStore


class CartCache(SnapshotCache):
    """Cache of CartSnapshot under cart:{userId}."""

    namespace = CacheKeys.CART

    def __init__(self, store: CacheStore, ttl: int = CacheTTL.CART):
        super().__init__(store, ttl)

    async def get(self, user_id: str) -> CartSnapshot | None:
        return await self._load(CacheKeys.cart(user_id), CartSnapshot)

    async def put(self, user_id: str, cart: CartSnapshot) -> bool:
        return await self._save(CacheKeys.cart(user_id), cart)

    async def invalidate(self, user_id: str) -> bool:
        return await self.store.delete(CacheKeys.cart(user_id))

    async def invalidate_all(self) -> int | None:
        """Delete every cached cart. None when the store was unreachable."""
        return await self.store.delete_by_prefix(CacheKeys.namespace_prefix("cart"))
