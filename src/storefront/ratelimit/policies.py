"""Static rate-limit policies.

Policies are fixed at import time and immutable. Each one owns the
``rl:{key_prefix}:`` counter namespace.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType


@dataclass(frozen=True)
class RateLimitPolicy:
    """Fixed-window limit: at most ``max_requests`` per ``window_seconds``."""

    name: str
    window_seconds: int
    max_requests: int
    key_prefix: str
    message: str


API_POLICY = RateLimitPolicy(
    name="api",
    window_seconds=15 * 60,
    max_requests=100,
    key_prefix="api",
    message="Too many requests from this IP, please try again after 15 minutes",
)

AUTH_POLICY = RateLimitPolicy(
    name="auth",
    window_seconds=15 * 60,
    max_requests=5,
    key_prefix="auth",
    message="Too many login attempts, please try again after 15 minutes",
)

SEARCH_POLICY = RateLimitPolicy(
    name="search",
    window_seconds=60,
    max_requests=30,
    key_prefix="search",
    message="Too many search requests, please try again after a minute",
)

ORDER_POLICY = RateLimitPolicy(
    name="order",
    window_seconds=60 * 60,
    max_requests=10,
    key_prefix="order",
    message="Order creation limit reached, please try again later",
)

POLICIES: Mapping[str, RateLimitPolicy] = MappingProxyType(
    {p.name: p for p in (API_POLICY, AUTH_POLICY, SEARCH_POLICY, ORDER_POLICY)}
)


def get_policy(policy: RateLimitPolicy | str) -> RateLimitPolicy:
    """Resolve a policy instance or name.

    Raises:
        ValueError: If the name is not one of the static policies.
    """
    if isinstance(policy, RateLimitPolicy):
        return policy
    try:
        return POLICIES[policy]
    except KeyError:
        raise ValueError(
            f"Unknown rate limit policy '{policy}' (expected one of {', '.join(POLICIES)})"
        ) from None
