"""FastAPI application factory for the storefront.

Creates the application with:
- Product, search, cart, order and webhook routers
- Admin rate limit inspection and reset
- Cache context, record store and services wired onto ``app.state``
- Fixed-window rate limiting and Prometheus metrics
- Consistent JSON error handling
- ORJSON for fast JSON serialization
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from pydantic import ValidationError
from starlette.types import ExceptionHandler

from storefront.api.errors import (
    ApiError,
    api_exception_handler,
    generic_exception_handler,
    model_validation_exception_handler,
    storefront_exception_handler,
    validation_exception_handler,
)
from storefront.api.middleware import CorrelationMiddleware, RateLimitConfig, RateLimitMiddleware
from storefront.api.routers import admin, cart, health, orders, products, search, webhooks
from storefront.api.routers import metrics as metrics_router
from storefront.config import Settings, settings
from storefront.context import CacheContext
from storefront.errors import StorefrontError
from storefront.observability import configure_logging
from storefront.observability.metrics import MetricsMiddleware, get_metrics
from storefront.persistence.repositories import (
    CartRepository,
    OrderRepository,
    ProductRepository,
)
from storefront.persistence.store import InMemoryRecordStore, RecordStore
from storefront.services import (
    CartService,
    LocalPaymentIntentProvider,
    OrderService,
    PaymentIntentProvider,
    PaymentWebhookHandler,
    ProductService,
    SearchService,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle.

    On startup:
    - Configure structured logging
    - Initialize Prometheus metrics
    - Connect to the cache store (the service starts degraded if it is down)

    On shutdown:
    - Close the cache store connection
    """
    config: Settings = app.state.settings
    configure_logging(json_format=config.env != "dev", level=config.log_level)
    get_metrics()

    logger.info(f"Starting {config.app_name} ({config.env})")
    cache: CacheContext = app.state.cache
    if not await cache.store.ensure_connection():
        logger.warning("Cache store unavailable at startup, serving without cache")

    yield

    logger.info(f"Shutting down {config.app_name}")
    await cache.close()


def wire_services(
    app: FastAPI,
    cache: CacheContext,
    record_store: RecordStore,
    payments: PaymentIntentProvider,
    cart_mutation_attempts: int,
) -> None:
    """Build repositories and services on ``app.state``."""
    product_repo = ProductRepository(record_store)
    cart_repo = CartRepository(record_store)
    order_repo = OrderRepository(record_store)

    app.state.cache = cache
    app.state.record_store = record_store
    app.state.products = ProductService(product_repo, cache.products, cache.invalidation)
    app.state.search = SearchService(product_repo, cache.search)
    app.state.carts = CartService(
        cart_repo,
        product_repo,
        cache.carts,
        cache.invalidation,
        max_attempts=cart_mutation_attempts,
    )
    app.state.orders = OrderService(
        record_store, order_repo, cart_repo, product_repo, payments, cache.invalidation
    )
    app.state.webhooks = PaymentWebhookHandler(app.state.orders, cache.webhooks)


def create_app(
    config: Settings | None = None,
    *,
    cache: CacheContext | None = None,
    record_store: RecordStore | None = None,
    payments: PaymentIntentProvider | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Raises:
        ConfigurationError: If no cache store connection is configured and
            no cache context was given.
    """
    config = config or settings
    cache = cache or CacheContext.from_settings(config)

    app = FastAPI(
        title=config.app_name,
        description="Storefront backend with cache-aside reads and rate limiting",
        version="0.1.0",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    app.state.settings = config
    wire_services(
        app,
        cache,
        record_store or InMemoryRecordStore(),
        payments or LocalPaymentIntentProvider(),
        config.cart_mutation_retries,
    )

    # Order: Metrics (outer) -> Correlation -> Rate limiting (inner)
    if config.enable_rate_limiting:
        app.add_middleware(
            RateLimitMiddleware,
            config=RateLimitConfig(
                bypass_prefixes=list(config.rate_limit_bypass_prefixes),
                trust_proxy_headers=config.trust_proxy_headers,
            ),
        )
    app.add_middleware(CorrelationMiddleware)
    if config.enable_metrics:
        app.add_middleware(MetricsMiddleware)

    # Register exception handlers
    app.add_exception_handler(ApiError, cast(ExceptionHandler, api_exception_handler))
    app.add_exception_handler(
        StorefrontError, cast(ExceptionHandler, storefront_exception_handler)
    )
    app.add_exception_handler(
        RequestValidationError, cast(ExceptionHandler, validation_exception_handler)
    )
    app.add_exception_handler(
        ValidationError, cast(ExceptionHandler, model_validation_exception_handler)
    )
    app.add_exception_handler(Exception, cast(ExceptionHandler, generic_exception_handler))

    # Include routers
    app.include_router(health.router)
    if config.enable_metrics:
        app.include_router(metrics_router.router)

    app.include_router(products.router)
    app.include_router(search.router)
    app.include_router(cart.router)
    app.include_router(orders.router)
    app.include_router(webhooks.router)
    app.include_router(admin.router)

    return app
