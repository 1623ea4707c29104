"""Fixed-window rate limiter backed by the shared cache store.

Each (policy, client) pair has a counter key ``rl:{prefix}:{client}`` whose
TTL is the policy window, started by the first request of the window. A
request is denied when the incremented count exceeds the policy maximum;
denied requests still count.

Degraded mode: when the store is unhealthy, or a store round trip takes
longer than the limiter's own timeout, the decision is taken from an
in-process ``LocalWindowCounter``. Store health is rechecked on every call,
so shared counting resumes as soon as the store is back.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import TypeVar

from storefront.cache.keys import CacheKeys
from storefront.cache.store import CacheStore
from storefront.observability.metrics import record_rate_limit_decision
from storefront.ratelimit.local import LocalWindowCounter
from storefront.ratelimit.policies import POLICIES, RateLimitPolicy, get_policy

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Returned by get_remaining when no window exists yet (full quota available)
QUOTA_UNTOUCHED = -1

DEFAULT_TIMEOUT = 0.25


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of counting one request."""

    policy: RateLimitPolicy
    allowed: bool
    count: int
    reset_in: int
    degraded: bool = False

    @property
    def remaining(self) -> int:
        return max(0, self.policy.max_requests - self.count)

    def headers(self) -> dict[str, str]:
        """Standard rate limit response headers."""
        headers = {
            "X-RateLimit-Limit": str(self.policy.max_requests),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(time.time()) + self.reset_in),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.reset_in)
        return headers


@dataclass(frozen=True)
class QuotaInfo:
    """Read-only view of a client's quota under one policy."""

    remaining: int
    total: int
    reset_in: int

    def to_dict(self) -> dict[str, int | str]:
        return {
            "remaining": self.remaining,
            "total": self.total,
            "resetIn": f"{self.reset_in}s",
        }


class FixedWindowRateLimiter:
    """Counts requests per policy and client in fixed windows."""

    def __init__(
        self,
        store: CacheStore,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        local: LocalWindowCounter | None = None,
    ):
        self.store = store
        self.timeout = timeout
        self.local = local or LocalWindowCounter()

    async def _bounded(self, operation: str, call: Awaitable[T]) -> T | None:
        """Await a store call within the limiter timeout.

        A timeout is handled exactly like an unhealthy store.
        """
        try:
            return await asyncio.wait_for(call, timeout=self.timeout)
        except asyncio.TimeoutError:
            self.store.mark_unhealthy(f"rate limit {operation} exceeded {self.timeout}s")
            return None

    async def _shared_increment(self, key: str, window_seconds: int) -> tuple[int, int] | None:
        if not await self.store.ensure_connection():
            return None
        return await self.store.increment(key, window_seconds)

    async def check_and_increment(
        self, policy: RateLimitPolicy | str, client_key: str
    ) -> RateLimitDecision:
        """Count a request and decide whether it is allowed. Never raises for store failures."""
        policy = get_policy(policy)
        key = CacheKeys.rate_limit(policy.key_prefix, client_key)

        result = await self._bounded("increment", self._shared_increment(key, policy.window_seconds))
        degraded = result is None
        if result is None:
            count, reset_in = self.local.increment(key, policy.window_seconds)
        else:
            count, reset_in = result

        decision = RateLimitDecision(
            policy=policy,
            allowed=count <= policy.max_requests,
            count=count,
            reset_in=reset_in,
            degraded=degraded,
        )
        record_rate_limit_decision(policy.name, decision.allowed, degraded)
        if not decision.allowed:
            logger.info(
                f"Rate limit '{policy.name}' exceeded for {client_key} "
                f"({count}/{policy.max_requests}{', local' if degraded else ''})"
            )
        return decision

    async def _shared_window(self, key: str) -> tuple[int, int] | None:
        """Read (count, reset_in) from the store; (0, 0) when no window exists."""
        if not await self.store.ensure_connection():
            return None
        raw = await self.store.get(key)
        if not self.store.is_healthy():
            return None
        if raw is None:
            return 0, 0
        remaining_ttl = await self.store.ttl(key)
        return int(raw), max(remaining_ttl or 0, 0)

    async def _window(self, key: str) -> tuple[int, int] | None:
        """Current (count, reset_in) for a key, or None if no window is open."""
        shared = await self._bounded("read", self._shared_window(key))
        if shared is None:
            return self.local.peek(key)
        if shared == (0, 0):
            return None
        return shared

    async def get_remaining(self, client_key: str, policy: RateLimitPolicy | str) -> int:
        """Requests left in the current window.

        Returns ``QUOTA_UNTOUCHED`` (-1) when the client has no open window,
        which means the full quota is available (distinct from 0 remaining).
        """
        policy = get_policy(policy)
        window = await self._window(CacheKeys.rate_limit(policy.key_prefix, client_key))
        if window is None:
            return QUOTA_UNTOUCHED
        return max(0, policy.max_requests - window[0])

    async def quota(self, client_key: str, policy: RateLimitPolicy | str) -> QuotaInfo:
        """Remaining/total/reset view for admin inspection."""
        policy = get_policy(policy)
        window = await self._window(CacheKeys.rate_limit(policy.key_prefix, client_key))
        if window is None:
            return QuotaInfo(
                remaining=policy.max_requests,
                total=policy.max_requests,
                reset_in=policy.window_seconds,
            )
        count, reset_in = window
        return QuotaInfo(
            remaining=max(0, policy.max_requests - count),
            total=policy.max_requests,
            reset_in=reset_in,
        )

    async def quotas(self, client_key: str) -> dict[str, QuotaInfo]:
        """Quota under every static policy."""
        return {name: await self.quota(client_key, policy) for name, policy in POLICIES.items()}

    async def clear_all(self, prefix: str = f"{CacheKeys.RATE_LIMIT}:") -> int | None:
        """Delete every rate-limit counter under ``prefix``.

        Local fallback counters are always cleared. Returns the number of
        shared counters deleted, or None if the store was unreachable.
        """
        if not prefix.startswith(f"{CacheKeys.RATE_LIMIT}:"):
            raise ValueError(f"Refusing to clear keys outside the rate-limit namespace: {prefix}")

        local_cleared = self.local.clear(prefix)
        shared_cleared = await self.store.delete_by_prefix(prefix)
        if shared_cleared is None:
            logger.warning(
                f"Rate limits not cleared in cache store; cleared {local_cleared} local counters"
            )
            return None
        logger.info(f"Cleared {shared_cleared} rate limit counters under {prefix}")
        return shared_cleared
