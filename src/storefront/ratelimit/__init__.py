"""Fixed-window rate limiting over the shared cache store."""

from storefront.ratelimit.limiter import (
    QUOTA_UNTOUCHED,
    FixedWindowRateLimiter,
    QuotaInfo,
    RateLimitDecision,
)
from storefront.ratelimit.local import LocalWindowCounter
from storefront.ratelimit.policies import (
    API_POLICY,
    AUTH_POLICY,
    ORDER_POLICY,
    POLICIES,
    SEARCH_POLICY,
    RateLimitPolicy,
    get_policy,
)

__all__ = [
    "FixedWindowRateLimiter",
    "LocalWindowCounter",
    "QUOTA_UNTOUCHED",
    "QuotaInfo",
    "RateLimitDecision",
    "RateLimitPolicy",
    "POLICIES",
    "API_POLICY",
    "AUTH_POLICY",
    "SEARCH_POLICY",
    "ORDER_POLICY",
    "get_policy",
]
