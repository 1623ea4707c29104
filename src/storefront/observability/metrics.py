"""Prometheus metrics for the storefront.

Provides metrics collection and exposure:
- HTTP request metrics (latency, count)
- Cache metrics (hits, misses per namespace)
- Invalidation metrics (per target and outcome)
- Rate limit decisions (per policy and outcome)

Usage:
    from storefront.observability.metrics import record_cache_hit

    record_cache_hit("product")
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from prometheus_client import REGISTRY, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from storefront.config import settings

if TYPE_CHECKING:
    from starlette.types import ASGIApp

logger = logging.getLogger(__name__)


@dataclass
class MetricsRegistry:
    """Registry for Prometheus metrics."""

    # HTTP metrics
    http_requests_total: Any = None
    http_request_duration_seconds: Any = None

    # Cache metrics
    cache_hits_total: Any = None
    cache_misses_total: Any = None
    cache_invalidations_total: Any = None

    # Rate limiting
    rate_limit_decisions_total: Any = None

    # Internal state
    _initialized: bool = field(default=False, repr=False)
    _registry: Any = field(default=None, repr=False)

    def initialize(self) -> None:
        """Initialize Prometheus metrics."""
        if self._initialized:
            return

        if not settings.enable_metrics:
            logger.info("Metrics are disabled")
            self._initialized = True
            return

        self._registry = REGISTRY

        self.http_requests_total = Counter(
            "storefront_http_requests_total",
            "Total HTTP requests",
            ["method", "path", "status"],
        )

        self.http_request_duration_seconds = Histogram(
            "storefront_http_request_duration_seconds",
            "HTTP request latency in seconds",
            ["method", "path"],
            buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
        )

        self.cache_hits_total = Counter(
            "storefront_cache_hits_total",
            "Cache hits",
            ["namespace"],
        )

        self.cache_misses_total = Counter(
            "storefront_cache_misses_total",
            "Cache misses",
            ["namespace"],
        )

        self.cache_invalidations_total = Counter(
            "storefront_cache_invalidations_total",
            "Cache invalidations",
            ["target", "outcome"],
        )

        self.rate_limit_decisions_total = Counter(
            "storefront_rate_limit_decisions_total",
            "Rate limit decisions",
            ["policy", "outcome"],
        )

        self._initialized = True
        logger.info("Prometheus metrics initialized")

    def generate_latest(self) -> bytes:
        """Generate Prometheus metrics in exposition format."""
        if self._registry is None:
            return b"# Metrics disabled\n"
        return generate_latest(self._registry)


# Global metrics registry
metrics_registry = MetricsRegistry()


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry.

    Initializes metrics on first access.
    """
    if not metrics_registry._initialized:
        metrics_registry.initialize()
    return metrics_registry


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware for HTTP request metrics."""

    def __init__(self, app: "ASGIApp") -> None:
        super().__init__(app)
        self.metrics = get_metrics()

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        """Record metrics for HTTP requests."""
        if request.url.path.startswith(("/health", "/metrics")):
            return await call_next(request)

        method = request.method
        path = self._normalize_path(request)
        start_time = time.perf_counter()
        status_code = 500  # Default in case of exception

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration = time.perf_counter() - start_time
            if self.metrics.http_requests_total:
                self.metrics.http_requests_total.labels(
                    method=method,
                    path=path,
                    status=status_code,
                ).inc()
            if self.metrics.http_request_duration_seconds:
                self.metrics.http_request_duration_seconds.labels(
                    method=method,
                    path=path,
                ).observe(duration)

    def _normalize_path(self, request: Request) -> str:
        """Use the matched route template to keep label cardinality bounded."""
        route = request.scope.get("route")
        template = getattr(route, "path", None)
        return template or "unmatched"


def record_cache_hit(namespace: str) -> None:
    """Record cache hit."""
    metrics = get_metrics()
    if metrics.cache_hits_total:
        metrics.cache_hits_total.labels(namespace=namespace).inc()


def record_cache_miss(namespace: str) -> None:
    """Record cache miss."""
    metrics = get_metrics()
    if metrics.cache_misses_total:
        metrics.cache_misses_total.labels(namespace=namespace).inc()


def record_invalidation(target: str, ok: bool) -> None:
    """Record an invalidation attempt.

    Args:
        target: Invalidation target (product, cart, search)
        ok: Whether the store confirmed the delete
    """
    metrics = get_metrics()
    if metrics.cache_invalidations_total:
        metrics.cache_invalidations_total.labels(
            target=target,
            outcome="ok" if ok else "failed",
        ).inc()


def record_rate_limit_decision(policy: str, allowed: bool, degraded: bool) -> None:
    """Record a rate limit decision.

    Args:
        policy: Policy name (api, auth, search, order)
        allowed: Whether the request was allowed
        degraded: Whether the decision came from the local fallback counter
    """
    metrics = get_metrics()
    if metrics.rate_limit_decisions_total:
        outcome = "allowed" if allowed else "denied"
        if degraded:
            outcome = f"{outcome}_degraded"
        metrics.rate_limit_decisions_total.labels(policy=policy, outcome=outcome).inc()
