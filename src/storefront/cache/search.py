"""Search cache: result pages and name suggestions.

Keys are built from a normalized query so that equivalent searches
("Gaming  Laptop" and "gaming laptop") share an entry.

Invalidation is coarse. Any write that can change product visibility,
price or stock clears the whole search and suggestions namespaces; the
5 minute TTL bounds staleness for anything a write does not reach.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

import orjson

from storefront.cache.base import SnapshotCache
from storefront.cache.keys import CacheKeys, CacheTTL
from storefront.cache.snapshots import SearchResultPage, SuggestionList
from storefront.cache.store import CacheStore

logger = logging.getLogger(__name__)


def normalize_text(text: str) -> str:
    """Lowercase and collapse whitespace."""
    return " ".join(text.lower().split())


@dataclass(frozen=True)
class SearchQuery:
    """A full-text query with its filters and page window."""

    text: str
    category: str | None = None
    brand: str | None = None
    min_price: int | None = None
    max_price: int | None = None
    page: int = 1
    limit: int = 10

    def normalized(self) -> SearchQuery:
        return replace(
            self,
            text=normalize_text(self.text),
            category=(self.category.strip() or None) if self.category else None,
            brand=(self.brand.strip() or None) if self.brand else None,
        )

    def cache_token(self) -> str:
        """Deterministic serialization of the normalized query."""
        q = self.normalized()
        return orjson.dumps(
            {
                "query": q.text,
                "category": q.category,
                "brand": q.brand,
                "minPrice": q.min_price,
                "maxPrice": q.max_price,
                "page": q.page,
                "limit": q.limit,
            },
            option=orjson.OPT_SORT_KEYS,
        ).decode()


class SearchCache(SnapshotCache):
    """Cache of SearchResultPage and SuggestionList entries."""

    namespace = CacheKeys.SEARCH

    def __init__(
        self,
        store: CacheStore,
        ttl: int = CacheTTL.SEARCH,
        suggestions_ttl: int = CacheTTL.SUGGESTIONS,
    ):
        super().__init__(store, ttl)
        self.suggestions_ttl = suggestions_ttl

    async def get(self, query: SearchQuery) -> SearchResultPage | None:
        """Get a cached result page, or None on miss."""
        return await self._load(CacheKeys.search(query.cache_token()), SearchResultPage)

    async def put(self, query: SearchQuery, page: SearchResultPage) -> bool:
        """Cache a result page."""
        return await self._save(CacheKeys.search(query.cache_token()), page)

    async def get_suggestions(self, prefix: str) -> SuggestionList | None:
        """Get cached suggestions for a prefix, or None on miss."""
        return await self._load(CacheKeys.suggestions(normalize_text(prefix)), SuggestionList)

    async def put_suggestions(self, suggestions: SuggestionList) -> bool:
        """Cache suggestions under their normalized prefix."""
        key = CacheKeys.suggestions(normalize_text(suggestions.prefix))
        return await self._save(key, suggestions, self.suggestions_ttl)

    async def invalidate_all(self) -> int | None:
        """Clear both search namespaces.

        Returns the number of keys deleted, or None if either prefix
        delete could not reach the store.
        """
        pages = await self.store.delete_by_prefix(CacheKeys.namespace_prefix("search"))
        suggestions = await self.store.delete_by_prefix(
            CacheKeys.namespace_prefix("suggestions")
        )
        if pages is None or suggestions is None:
            return None
        logger.debug(f"Cleared search cache ({pages} pages, {suggestions} suggestion sets)")
        return pages + suggestions
