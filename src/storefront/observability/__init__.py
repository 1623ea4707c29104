"""Observability module for the storefront.

Provides metrics and structured logging:
- Prometheus metrics (HTTP, cache, invalidation, rate limiting)
- JSON structured logging with correlation IDs
"""

from storefront.observability.logging import (
    LogContext,
    configure_logging,
    correlation_id_var,
    event_id_var,
    request_id_var,
    user_id_var,
)
from storefront.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    metrics_registry,
)

__all__ = [
    # Logging
    "configure_logging",
    "LogContext",
    "request_id_var",
    "correlation_id_var",
    "user_id_var",
    "event_id_var",
    # Metrics
    "metrics_registry",
    "get_metrics",
    "MetricsMiddleware",
]
