"""Cache layer for the storefront.

Provides Redis caching with the cache-aside pattern:
- Product, cart and search caches holding tagged snapshots
- Central invalidation driven by record-store change descriptions
- Webhook idempotency marks
- TTL-based expiration bounding staleness per namespace
"""

from storefront.cache.cart import CartCache
from storefront.cache.invalidation import (
    INVALIDATION_TABLE,
    Change,
    ChangeKind,
    InvalidationDispatcher,
    InvalidationReport,
    InvalidationTarget,
)
from storefront.cache.keys import CacheKeys, CacheTTL
from storefront.cache.product import ProductCache
from storefront.cache.search import SearchCache, SearchQuery
from storefront.cache.snapshots import (
    CartItemSnapshot,
    CartSnapshot,
    ProductSnapshot,
    SearchResultPage,
    SuggestionList,
)
from storefront.cache.store import CacheStore
from storefront.cache.webhook import WebhookDeduplicator

__all__ = [
    # Core cache
    "CacheKeys",
    "CacheStore",
    "CacheTTL",
    # Namespace caches
    "CartCache",
    "ProductCache",
    "SearchCache",
    "SearchQuery",
    "WebhookDeduplicator",
    # Snapshots
    "CartItemSnapshot",
    "CartSnapshot",
    "ProductSnapshot",
    "SearchResultPage",
    "SuggestionList",
    # Invalidation
    "Change",
    "ChangeKind",
    "INVALIDATION_TABLE",
    "InvalidationDispatcher",
    "InvalidationReport",
    "InvalidationTarget",
]
