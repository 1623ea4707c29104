"""Domain exceptions for the storefront backend.

Cache-layer failures never appear here: the cache store absorbs them.
These are raised by configuration, the record store and the services.
"""

from __future__ import annotations


class StorefrontError(Exception):
    """Base class for storefront errors."""


class ConfigurationError(StorefrontError):
    """Required configuration is missing or invalid. Fatal at startup."""


class RecordStoreError(StorefrontError):
    """A record store write could not be confirmed."""


class RecordNotFoundError(StorefrontError):
    """A record does not exist in the record store."""

    def __init__(self, resource_type: str, identifier: str):
        self.resource_type = resource_type
        self.identifier = identifier
        super().__init__(f"{resource_type} '{identifier}' not found")


class InsufficientStockError(StorefrontError):
    """Requested quantity exceeds the available stock."""

    def __init__(self, product_id: str, requested: int, available: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"requested {requested}, available {available}"
        )


class CartItemNotFoundError(StorefrontError):
    """The product is not in the user's cart."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product '{product_id}' not found in cart")


class EmptyCartError(StorefrontError):
    """An order was requested for an empty cart."""


class ConcurrentModificationError(StorefrontError):
    """A record changed between read and write (version mismatch)."""

    def __init__(self, resource_type: str, identifier: str, expected: int, actual: int):
        self.resource_type = resource_type
        self.identifier = identifier
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{resource_type} '{identifier}' was modified concurrently "
            f"(expected version {expected}, found {actual})"
        )


class SnapshotDecodeError(StorefrontError):
    """A cached payload does not match the expected snapshot kind or schema."""
