"""Correlation context middleware.

Propagates request, correlation and user ids to logging.
"""

from __future__ import annotations

import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from storefront.observability.logging import (
    correlation_id_var,
    request_id_var,
    user_id_var,
)

USER_ID_HEADER = "x-user-id"


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Middleware for propagating correlation context.

    Extracts or generates correlation IDs and propagates them to:
    - Request state (for use in handlers)
    - Context variables (for logging)
    - Response headers (for client correlation)

    Headers:
    - x-request-id: Unique ID for this request
    - x-correlation-id: ID for tracking across services (passed through)
    - x-user-id: Authenticated user, set by the fronting auth layer
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Extract and propagate correlation context."""
        request_id = (
            request.headers.get("x-request-id")
            or request.headers.get("x-amzn-requestid")  # AWS ALB
            or str(uuid.uuid4())
        )
        correlation_id = request.headers.get("x-correlation-id") or request_id
        user_id = request.headers.get(USER_ID_HEADER, "")

        request_token = request_id_var.set(request_id)
        correlation_token = correlation_id_var.set(correlation_id)
        user_token = user_id_var.set(user_id)

        try:
            request.state.request_id = request_id
            request.state.correlation_id = correlation_id

            response = await call_next(request)

            response.headers["x-request-id"] = request_id
            response.headers["x-correlation-id"] = correlation_id
            return response

        finally:
            request_id_var.reset(request_token)
            correlation_id_var.reset(correlation_token)
            user_id_var.reset(user_token)
