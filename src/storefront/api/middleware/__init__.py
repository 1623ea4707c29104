"""Middleware for the storefront API.

- Request rate limiting per client IP
- Correlation context for request tracing
"""

from storefront.api.middleware.correlation import CorrelationMiddleware
from storefront.api.middleware.rate_limit import RateLimitConfig, RateLimitMiddleware

__all__ = [
    "CorrelationMiddleware",
    "RateLimitConfig",
    "RateLimitMiddleware",
]
