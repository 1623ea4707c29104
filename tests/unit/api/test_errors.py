"""Tests for API error bodies and domain error mapping."""

from storefront.api.errors import (
    ApiError,
    ConflictError,
    NotFoundError,
    RateLimitExceededError,
    to_api_error,
)
from storefront.errors import (
    CartItemNotFoundError,
    ConcurrentModificationError,
    EmptyCartError,
    InsufficientStockError,
    RecordNotFoundError,
    RecordStoreError,
    SnapshotDecodeError,
)


class TestApiErrors:
    """Error classes carry status, code and message."""

    def test_not_found(self) -> None:
        error = NotFoundError("Order not found")
        assert error.status_code == 404
        assert error.to_body().model_dump(exclude_none=True) == {
            "success": False,
            "code": "NotFound",
            "message": "Order not found",
        }

    def test_conflict(self) -> None:
        assert ConflictError("retry").status_code == 409

    def test_rate_limit_keeps_headers(self) -> None:
        error = RateLimitExceededError("slow down", headers={"Retry-After": "60"})
        assert error.status_code == 429
        assert error.headers == {"Retry-After": "60"}


class TestDomainErrorMapping:
    """Service exceptions become API errors."""

    def test_record_not_found(self) -> None:
        error = to_api_error(RecordNotFoundError("Product", "p1"))
        assert (error.status_code, error.message) == (404, "Product not found")

    def test_cart_item_not_found(self) -> None:
        error = to_api_error(CartItemNotFoundError("p1"))
        assert (error.status_code, error.message) == (404, "Product not found in cart")

    def test_insufficient_stock(self) -> None:
        error = to_api_error(InsufficientStockError("p1", requested=3, available=1))
        assert error.status_code == 400
        assert error.message == "Insufficient stock for product: p1"

    def test_empty_cart(self) -> None:
        error = to_api_error(EmptyCartError("Cart is empty"))
        assert (error.status_code, error.message) == (400, "Cart is empty")

    def test_concurrent_modification(self) -> None:
        error = to_api_error(ConcurrentModificationError("Cart", "u1", 1, 2))
        assert error.status_code == 409

    def test_record_store_unavailable(self) -> None:
        error = to_api_error(RecordStoreError("write not confirmed"))
        assert (error.status_code, error.code) == (503, "ServiceUnavailable")

    def test_unmapped_error_is_internal(self) -> None:
        error = to_api_error(SnapshotDecodeError("bad payload"))
        assert isinstance(error, ApiError)
        assert error.status_code == 500
