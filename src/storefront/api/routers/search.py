"""Search API router.

- GET /api/search?q=...              - Search products with filters and facets
- GET /api/search?q=...&suggest=true - Up to five name suggestions
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query
from fastapi.responses import ORJSONResponse

from storefront.api.deps import SearchServiceDep
from storefront.api.responses import success_response
from storefront.cache.search import SearchQuery

router = APIRouter(prefix="/api/search", tags=["Search"])


@router.get("")
async def search_products(
    search: SearchServiceDep,
    q: Annotated[str, Query(min_length=1, pattern=r"\S", description="Search text")],
    category: str | None = None,
    brand: str | None = None,
    min_price: Annotated[int | None, Query(alias="minPrice", ge=0)] = None,
    max_price: Annotated[int | None, Query(alias="maxPrice", ge=0)] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    suggest: bool = False,
) -> ORJSONResponse:
    if suggest:
        suggestions = await search.suggest(q)
        return success_response(
            {
                "products": [],
                "total_results": 0,
                "suggestions": suggestions.suggestions,
                "facets": {"categories": [], "brands": [], "price_ranges": []},
            },
            "Suggestions retrieved successfully",
        )

    query = SearchQuery(
        text=q,
        category=category,
        brand=brand,
        min_price=min_price,
        max_price=max_price,
        page=page,
        limit=limit,
    )
    result = await search.search(query)
    return success_response(result.to_dict(), "Search results retrieved successfully")
