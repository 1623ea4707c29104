"""Storefront services: record-store operations wrapped with caching."""

from storefront.services.cart import CartService
from storefront.services.orders import OrderService, PlacedOrder
from storefront.services.payments import (
    LocalPaymentIntentProvider,
    PaymentIntent,
    PaymentIntentProvider,
)
from storefront.services.products import ProductService
from storefront.services.search import SearchService
from storefront.services.webhooks import PaymentEvent, PaymentWebhookHandler, WebhookStatus

__all__ = [
    "CartService",
    "LocalPaymentIntentProvider",
    "OrderService",
    "PaymentEvent",
    "PaymentIntent",
    "PaymentIntentProvider",
    "PaymentWebhookHandler",
    "PlacedOrder",
    "ProductService",
    "SearchService",
    "WebhookStatus",
]
