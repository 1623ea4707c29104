"""Shared FastAPI dependencies for storefront routers.

Services and the cache context are built once by the application factory
and stored on ``app.state``; these dependencies hand them to endpoints.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, Request

from storefront.api.errors import ApiError
from storefront.context import CacheContext
from storefront.services import (
    CartService,
    OrderService,
    PaymentWebhookHandler,
    ProductService,
    SearchService,
)


def get_cache_context(request: Request) -> CacheContext:
    return request.app.state.cache


def get_product_service(request: Request) -> ProductService:
    return request.app.state.products


def get_search_service(request: Request) -> SearchService:
    return request.app.state.search


def get_cart_service(request: Request) -> CartService:
    return request.app.state.carts


def get_order_service(request: Request) -> OrderService:
    return request.app.state.orders


def get_webhook_handler(request: Request) -> PaymentWebhookHandler:
    return request.app.state.webhooks


def current_user_id(
    x_user_id: Annotated[str | None, Header(description="Authenticated user id")] = None,
) -> str:
    """User identity forwarded by the authentication layer.

    Raises:
        ApiError: 401 if the header is missing.
    """
    if not x_user_id:
        raise ApiError(401, "Unauthorized", "Not authorized, no user identity")
    return x_user_id


CacheContextDep = Annotated[CacheContext, Depends(get_cache_context)]
ProductServiceDep = Annotated[ProductService, Depends(get_product_service)]
SearchServiceDep = Annotated[SearchService, Depends(get_search_service)]
CartServiceDep = Annotated[CartService, Depends(get_cart_service)]
OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
WebhookHandlerDep = Annotated[PaymentWebhookHandler, Depends(get_webhook_handler)]
UserIdDep = Annotated[str, Depends(current_user_id)]
