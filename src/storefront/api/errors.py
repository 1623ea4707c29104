"""Error responses for the storefront API.

Every error body has the same shape:

    {"success": false, "code": "NotFound", "message": "...", "errors": [...]}

``errors`` is only present for validation failures. Domain exceptions from
the services are mapped to API errors by ``storefront_exception_handler``.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from storefront.errors import (
    CartItemNotFoundError,
    ConcurrentModificationError,
    EmptyCartError,
    InsufficientStockError,
    RecordNotFoundError,
    RecordStoreError,
    StorefrontError,
)

logger = logging.getLogger(__name__)


class ErrorBody(BaseModel):
    """JSON error response body."""

    success: bool = False
    code: str
    message: str
    errors: list[dict[str, Any]] | None = None


class ApiError(HTTPException):
    """Base exception for storefront API errors."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        headers: dict[str, str] | None = None,
    ):
        self.code = code
        self.message = message
        super().__init__(status_code=status_code, detail=message, headers=headers)

    def to_body(self) -> ErrorBody:
        return ErrorBody(code=self.code, message=self.message)


class NotFoundError(ApiError):
    """Resource not found (404)."""

    def __init__(self, message: str):
        super().__init__(status_code=404, code="NotFound", message=message)


class BadRequestError(ApiError):
    """Invalid request (400)."""

    def __init__(self, message: str):
        super().__init__(status_code=400, code="BadRequest", message=message)


class ConflictError(ApiError):
    """Concurrent modification (409)."""

    def __init__(self, message: str):
        super().__init__(status_code=409, code="Conflict", message=message)


class RateLimitExceededError(ApiError):
    """Request denied by a rate limit policy (429)."""

    def __init__(self, message: str, headers: dict[str, str] | None = None):
        super().__init__(
            status_code=429, code="TooManyRequests", message=message, headers=headers
        )


def to_api_error(exc: StorefrontError) -> ApiError:
    """Map a domain exception to its API error."""
    if isinstance(exc, RecordNotFoundError):
        return NotFoundError(f"{exc.resource_type} not found")
    if isinstance(exc, CartItemNotFoundError):
        return NotFoundError("Product not found in cart")
    if isinstance(exc, InsufficientStockError):
        return BadRequestError(f"Insufficient stock for product: {exc.product_id}")
    if isinstance(exc, EmptyCartError):
        return BadRequestError("Cart is empty")
    if isinstance(exc, ConcurrentModificationError):
        return ConflictError("The resource was modified concurrently, please retry")
    if isinstance(exc, RecordStoreError):
        return ApiError(503, "ServiceUnavailable", "The record store is unavailable")
    return ApiError(500, "InternalServerError", "An unexpected error occurred")


async def api_exception_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Exception handler for API errors."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_body().model_dump(exclude_none=True),
        headers=exc.headers,
    )


async def storefront_exception_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    """Exception handler for domain errors raised by the services."""
    error = to_api_error(exc)
    if error.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.debug(f"{request.method} {request.url.path}: {exc}")
    return await api_exception_handler(request, error)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Exception handler for request validation failures (400)."""
    errors = [
        {"field": ".".join(str(part) for part in err["loc"][1:]), "message": err["msg"]}
        for err in exc.errors()
    ]
    body = ErrorBody(code="ValidationFailed", message="Validation failed", errors=errors)
    return JSONResponse(status_code=400, content=body.model_dump(exclude_none=True))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Exception handler for unexpected errors."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    body = ErrorBody(code="InternalServerError", message="An unexpected error occurred")
    return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))


async def model_validation_exception_handler(
    request: Request, exc: ValidationError
) -> JSONResponse:
    """Exception handler for records that fail validation after a patch (400)."""
    errors = [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]
    body = ErrorBody(code="ValidationFailed", message="Validation failed", errors=errors)
    return JSONResponse(status_code=400, content=body.model_dump(exclude_none=True))
