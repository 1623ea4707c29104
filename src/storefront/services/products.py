"""Product reads and writes with cache-aside lookups.

Reads probe ProductCache, fall back to the record store on a miss and
populate the cache. Writes go to the record store first; only a confirmed
write is followed by invalidation.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from storefront.cache.invalidation import InvalidationDispatcher
from storefront.cache.product import ProductCache
from storefront.cache.snapshots import ProductSnapshot
from storefront.errors import RecordNotFoundError
from storefront.persistence.records import Product
from storefront.persistence.repositories import ProductRepository

logger = logging.getLogger(__name__)


class ProductService:
    def __init__(
        self,
        repository: ProductRepository,
        cache: ProductCache,
        invalidation: InvalidationDispatcher,
    ):
        self.repository = repository
        self.cache = cache
        self.invalidation = invalidation

    async def get_product(self, product_id: str) -> ProductSnapshot:
        """Get a product by id.

        Raises:
            RecordNotFoundError: If the product does not exist.
        """
        cached = await self.cache.get(product_id)
        if cached is not None:
            return cached

        product = await self.repository.get(product_id)
        if product is None:
            raise RecordNotFoundError("Product", product_id)

        snapshot = ProductSnapshot.from_record(product)
        await self.cache.put(snapshot)
        return snapshot

    async def create_product(self, data: Mapping[str, Any]) -> ProductSnapshot:
        """Create a product.

        Raises:
            pydantic.ValidationError: If the product data is invalid.
            RecordStoreError: If the write was not confirmed.
        """
        result = await self.repository.create(Product.model_validate(data))
        await self.invalidation.dispatch(*result.changes)
        logger.info(f"Created product {result.record.id}")
        return ProductSnapshot.from_record(result.record)

    async def update_product(self, product_id: str, patch: Mapping[str, Any]) -> ProductSnapshot:
        """Apply a partial update to a product."""
        result = await self.repository.update(product_id, patch)
        if result is None:
            raise RecordNotFoundError("Product", product_id)
        await self.invalidation.dispatch(*result.changes)
        return ProductSnapshot.from_record(result.record)

    async def set_stock(self, product_id: str, stock: int) -> ProductSnapshot:
        """Overwrite a product's stock level."""
        result = await self.repository.set_stock(product_id, stock)
        if result is None:
            raise RecordNotFoundError("Product", product_id)
        await self.invalidation.dispatch(*result.changes)
        return ProductSnapshot.from_record(result.record)

    async def delete_product(self, product_id: str) -> None:
        result = await self.repository.delete(product_id)
        if result is None:
            raise RecordNotFoundError("Product", product_id)
        await self.invalidation.dispatch(*result.changes)
        logger.info(f"Deleted product {product_id}")
