"""Persistence layer for the storefront.

This module provides:
- Pydantic record models for products, carts and orders
- The RecordStore contract and an in-memory implementation
- Repositories whose writes report the cache changes they imply
"""

from storefront.persistence.records import (
    Cart,
    CartItem,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    Product,
    ProductCategory,
    Ratings,
    ShippingAddress,
)
from storefront.persistence.repositories import (
    CartRepository,
    OrderRepository,
    ProductRepository,
    WriteResult,
)
from storefront.persistence.store import InMemoryRecordStore, RecordStore

__all__ = [
    # Records
    "Cart",
    "CartItem",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentStatus",
    "Product",
    "ProductCategory",
    "Ratings",
    "ShippingAddress",
    # Store
    "InMemoryRecordStore",
    "RecordStore",
    # Repositories
    "CartRepository",
    "OrderRepository",
    "ProductRepository",
    "WriteResult",
]
