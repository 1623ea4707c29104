"""Rate limiting middleware for the storefront API.

Every ``/api`` request is counted against the ``api`` policy. Requests that
match a route rule are additionally counted against that rule's policy
(auth, search, order). Counting goes through the process-wide
``FixedWindowRateLimiter``, which falls back to in-process counters while
the cache store is unavailable, so the middleware never fails open.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from storefront.api.errors import RateLimitExceededError
from storefront.ratelimit.limiter import FixedWindowRateLimiter, RateLimitDecision
from storefront.ratelimit.policies import API_POLICY, AUTH_POLICY, ORDER_POLICY, SEARCH_POLICY

API_PREFIX = "/api"


@dataclass(frozen=True)
class RouteRule:
    """Applies a policy to requests whose path starts with ``prefix``."""

    policy: str
    prefix: str
    methods: frozenset[str] = frozenset()

    def matches(self, method: str, path: str) -> bool:
        if self.methods and method not in self.methods:
            return False
        return path == self.prefix or path.startswith(self.prefix.rstrip("/") + "/")


DEFAULT_RULES: tuple[RouteRule, ...] = (
    RouteRule(AUTH_POLICY.name, "/api/auth"),
    RouteRule(SEARCH_POLICY.name, "/api/search", frozenset({"GET"})),
    RouteRule(ORDER_POLICY.name, "/api/orders", frozenset({"POST"})),
)


@dataclass
class RateLimitConfig:
    """Rate limiting configuration."""

    # Path prefixes to bypass (health checks, metrics, payment provider webhooks)
    bypass_prefixes: list[str] = field(
        default_factory=lambda: ["/health", "/metrics", "/api/webhooks"]
    )
    # Honour X-Forwarded-For / X-Real-IP; clients can forge these without a fronting proxy
    trust_proxy_headers: bool = False
    rules: tuple[RouteRule, ...] = DEFAULT_RULES


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-window rate limiting keyed by client IP.

    Features:
    - Global ``api`` policy plus route-specific policies
    - Bypass paths for health checks, metrics and payment webhooks
    - Client keyed by socket address unless proxy headers are trusted
    - Standard rate limit headers on every limited response
    - Limiter looked up from application state at request time
    """

    def __init__(self, app, config: RateLimitConfig | None = None):
        super().__init__(app)
        self.config = config or RateLimitConfig()

    def _get_limiter(self, request: Request) -> FixedWindowRateLimiter | None:
        context = getattr(request.app.state, "cache", None)
        return context.rate_limiter if context is not None else None

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Apply rate limiting to request."""
        path = request.url.path
        if any(path.startswith(prefix) for prefix in self.config.bypass_prefixes):
            return await call_next(request)
        if not path.startswith(API_PREFIX):
            return await call_next(request)

        limiter = self._get_limiter(request)
        if limiter is None:
            return await call_next(request)

        client_ip = self._get_client_ip(request)
        decision = await limiter.check_and_increment(API_POLICY, client_ip)
        if not decision.allowed:
            return self._denied(decision)

        for rule in self.config.rules:
            if rule.matches(request.method, path):
                decision = await limiter.check_and_increment(rule.policy, client_ip)
                if not decision.allowed:
                    return self._denied(decision)
                break

        response = await call_next(request)
        for name, value in decision.headers().items():
            response.headers[name] = value
        return response

    def _denied(self, decision: RateLimitDecision) -> Response:
        error = RateLimitExceededError(decision.policy.message, headers=decision.headers())
        return JSONResponse(
            status_code=error.status_code,
            content=error.to_body().model_dump(exclude_none=True),
            headers=error.headers,
        )

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP, handling proxies when trusted."""
        if self.config.trust_proxy_headers:
            # X-Forwarded-For: first entry is the original client
            forwarded = request.headers.get("x-forwarded-for")
            if forwarded:
                return forwarded.split(",")[0].strip()

            real_ip = request.headers.get("x-real-ip")
            if real_ip:
                return real_ip

        if request.client:
            return request.client.host

        return "unknown"
