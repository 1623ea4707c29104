"""Full-text product search with facets and name suggestions.

Any query token matching a product's name or description (case-insensitive)
is a hit; category, brand and price filters narrow the hits. Result pages
and suggestion lists are cached under the normalized query.
"""

from __future__ import annotations

import bisect
import re
from collections import Counter
from collections.abc import Iterable
from typing import Any

from storefront.cache.search import SearchCache, SearchQuery, normalize_text
from storefront.cache.snapshots import ProductSnapshot, SearchResultPage, SuggestionList
from storefront.persistence.records import Product
from storefront.persistence.repositories import ProductRepository

PRICE_BUCKET_BOUNDARIES = (0, 5000, 15000, 50000, 100000, 500000)
PRICE_BUCKET_OVERFLOW = "500000+"

MAX_SUGGESTIONS = 5


def _token_pattern(text: str) -> re.Pattern[str]:
    tokens = [re.escape(token) for token in text.split()]
    return re.compile("|".join(tokens), re.IGNORECASE)


def _price_bucket(price: float) -> int | str:
    if price < PRICE_BUCKET_BOUNDARIES[0] or price >= PRICE_BUCKET_BOUNDARIES[-1]:
        return PRICE_BUCKET_OVERFLOW
    return PRICE_BUCKET_BOUNDARIES[bisect.bisect_right(PRICE_BUCKET_BOUNDARIES, price) - 1]


def _count_facet(values: Iterable[str]) -> list[dict[str, Any]]:
    return [{"value": value, "count": count} for value, count in Counter(values).most_common()]


def build_facets(products: list[Product]) -> dict[str, list[dict[str, Any]]]:
    """Category, brand and price-range facets over all hits."""
    buckets: dict[int | str, list[float]] = {}
    for product in products:
        buckets.setdefault(_price_bucket(product.price), []).append(product.price)

    # Numeric buckets ascending, overflow last
    ordered = sorted(
        buckets.items(),
        key=lambda item: (isinstance(item[0], str), item[0] if isinstance(item[0], int) else 0),
    )
    return {
        "categories": _count_facet(p.category for p in products),
        "brands": _count_facet(p.brand for p in products),
        "price_ranges": [
            {
                "value": bucket,
                "count": len(prices),
                "min_price": min(prices),
                "max_price": max(prices),
            }
            for bucket, prices in ordered
        ],
    }


def _matches(product: Product, query: SearchQuery, pattern: re.Pattern[str]) -> bool:
    if not (pattern.search(product.name) or pattern.search(product.description)):
        return False
    if query.category and product.category != query.category:
        return False
    if query.brand and product.brand != query.brand:
        return False
    if query.min_price is not None and product.price < query.min_price:
        return False
    if query.max_price is not None and product.price > query.max_price:
        return False
    return True


class SearchService:
    def __init__(self, repository: ProductRepository, cache: SearchCache):
        self.repository = repository
        self.cache = cache

    async def search(self, query: SearchQuery) -> SearchResultPage:
        """Run a search, serving from the cache when possible."""
        cached = await self.cache.get(query)
        if cached is not None:
            return cached

        normalized = query.normalized()
        pattern = _token_pattern(normalized.text)
        hits = [p for p in await self.repository.list_all() if _matches(p, normalized, pattern)]

        start = (normalized.page - 1) * normalized.limit
        page = SearchResultPage(
            products=[
                ProductSnapshot.from_record(p) for p in hits[start : start + normalized.limit]
            ],
            total_results=len(hits),
            page=normalized.page,
            limit=normalized.limit,
            facets=build_facets(hits),
        )
        await self.cache.put(query, page)
        return page

    async def suggest(self, prefix: str) -> SuggestionList:
        """Up to five product names starting with ``prefix``."""
        cached = await self.cache.get_suggestions(prefix)
        if cached is not None:
            return cached

        wanted = normalize_text(prefix)
        names = [
            p.name for p in await self.repository.list_all() if p.name.lower().startswith(wanted)
        ]
        suggestions = SuggestionList(prefix=prefix, suggestions=names[:MAX_SUGGESTIONS])
        await self.cache.put_suggestions(suggestions)
        return suggestions
