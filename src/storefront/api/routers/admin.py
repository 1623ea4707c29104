"""Admin API router.

Rate limit inspection and reset:
- GET  /api/admin/check-limits?ip=  - Quota of a client under every policy
- POST /api/admin/clear-rate-limits - Reset every rate limit counter
"""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Query

from storefront.api.deps import CacheContextDep
from storefront.api.errors import ApiError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get("/check-limits")
async def check_limits(
    cache: CacheContextDep,
    ip: Annotated[str, Query(min_length=1, description="Client IP to inspect")],
) -> dict[str, Any]:
    """Remaining quota, total and reset time per policy for one client.

    A client without an open window reports the full quota.
    """
    quotas = await cache.rate_limiter.quotas(ip)
    return {"ip": ip, "limits": {name: quota.to_dict() for name, quota in quotas.items()}}


@router.post("/clear-rate-limits")
async def clear_rate_limits(cache: CacheContextDep) -> dict[str, int]:
    """Delete every rate limit counter.

    Returns 503 when the cache store could not be reached; in-process
    fallback counters are cleared either way.
    """
    cleared = await cache.rate_limiter.clear_all()
    if cleared is None:
        raise ApiError(503, "ServiceUnavailable", "Cache store unavailable, counters not cleared")
    logger.info(f"Admin cleared {cleared} rate limit counters")
    return {"cleared": cleared}
