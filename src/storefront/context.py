"""Process-wide cache handle.

Built once at startup and passed to the services and middleware that need
it. Owns the single CacheStore; every cache component shares it.

Example:
    context = CacheContext.from_settings(settings)
    product = await context.products.get("p1")
    ...
    await context.close()
"""

from __future__ import annotations

from dataclasses import dataclass

from storefront.cache.cart import CartCache
from storefront.cache.invalidation import InvalidationDispatcher
from storefront.cache.product import ProductCache
from storefront.cache.search import SearchCache
from storefront.cache.store import CacheStore
from storefront.cache.webhook import WebhookDeduplicator
from storefront.config import Settings
from storefront.ratelimit.limiter import DEFAULT_TIMEOUT, FixedWindowRateLimiter


@dataclass
class CacheContext:
    """The cache store and every component layered on it."""

    store: CacheStore
    products: ProductCache
    search: SearchCache
    carts: CartCache
    webhooks: WebhookDeduplicator
    rate_limiter: FixedWindowRateLimiter
    invalidation: InvalidationDispatcher

    @classmethod
    def create(
        cls,
        store: CacheStore,
        *,
        rate_limit_timeout: float = DEFAULT_TIMEOUT,
    ) -> CacheContext:
        """Wire every component to one store."""
        products = ProductCache(store)
        search = SearchCache(store)
        carts = CartCache(store)
        return cls(
            store=store,
            products=products,
            search=search,
            carts=carts,
            webhooks=WebhookDeduplicator(store),
            rate_limiter=FixedWindowRateLimiter(store, timeout=rate_limit_timeout),
            invalidation=InvalidationDispatcher(products, carts, search),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> CacheContext:
        """Build the context from configuration.

        Raises:
            ConfigurationError: If the cache store connection is not configured.
        """
        return cls.create(
            CacheStore.from_settings(settings),
            rate_limit_timeout=settings.rate_limit_timeout,
        )

    async def close(self) -> None:
        """Close the cache store connection."""
        await self.store.close()
