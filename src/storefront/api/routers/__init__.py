"""API routers for the storefront."""

from storefront.api.routers import (
    admin,
    cart,
    health,
    metrics,
    orders,
    products,
    search,
    webhooks,
)

__all__ = [
    "admin",
    "cart",
    "health",
    "metrics",
    "orders",
    "products",
    "search",
    "webhooks",
]
