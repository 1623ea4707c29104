"""Health check endpoints for the storefront.

Provides Kubernetes-compatible liveness and readiness probes:
- /health/live  - Liveness probe (always returns OK if process is running)
- /health/ready - Readiness probe (reports cache store connectivity)

The service keeps serving without the cache store, so an unreachable cache
makes readiness ``degraded`` but never fails it.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from storefront.api.deps import CacheContextDep
from storefront.cache.store import CacheStore

router = APIRouter(tags=["health"])

CHECK_TIMEOUT = 5.0


class HealthStatus(str, Enum):
    """Health check status."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    """Health status of a single component."""

    name: str
    status: HealthStatus
    latency_ms: float
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON response."""
        result: dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            result["message"] = self.message
        return result


async def check_cache_store(store: CacheStore) -> ComponentHealth:
    """Check cache store connectivity."""
    start = time.monotonic()
    try:
        healthy = await asyncio.wait_for(store.health_check(), timeout=CHECK_TIMEOUT)
        message = None if healthy else "Cache store unreachable, serving from record store"
    except asyncio.TimeoutError:
        healthy = False
        message = "Cache store check timed out"

    return ComponentHealth(
        name="cache",
        status=HealthStatus.HEALTHY if healthy else HealthStatus.DEGRADED,
        latency_ms=(time.monotonic() - start) * 1000,
        message=message,
    )


@router.get("/health/live")
async def live() -> dict[str, str]:
    """Liveness probe.

    Returns OK if the process is running.
    """
    return {"status": "ok"}


@router.get("/health/ready")
async def ready(cache: CacheContextDep) -> JSONResponse:
    """Readiness probe.

    Returns 200 while the service can answer requests, with ``degraded``
    status when the cache store is down.
    """
    components = [await check_cache_store(cache.store)]

    if all(c.status == HealthStatus.HEALTHY for c in components):
        overall_status = HealthStatus.HEALTHY
    elif any(c.status == HealthStatus.UNHEALTHY for c in components):
        overall_status = HealthStatus.UNHEALTHY
    else:
        overall_status = HealthStatus.DEGRADED

    result = {
        "status": overall_status.value,
        "components": [c.to_dict() for c in components],
    }
    status_code = 503 if overall_status == HealthStatus.UNHEALTHY else 200
    return JSONResponse(content=result, status_code=status_code)
