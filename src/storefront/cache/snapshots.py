"""Typed cache payloads, one per namespace.

Every snapshot is stored as an orjson envelope:

    {"kind": "product", "v": 1, "data": {...}}

Decoding checks the kind and schema version, so a payload written by one
namespace (or by an older schema) is rejected instead of being returned as
the wrong shape. Caches treat a rejected payload as a miss.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, TypeVar

import orjson

from storefront.errors import SnapshotDecodeError

if TYPE_CHECKING:
    from storefront.persistence.records import Product

S = TypeVar("S", bound="Snapshot")


class Snapshot:
    """Base for tagged cache payloads."""

    KIND: ClassVar[str]
    VERSION: ClassVar[int] = 1

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)  # type: ignore[call-overload]

    @classmethod
    def from_dict(cls: type[S], data: dict[str, Any]) -> S:
        return cls(**data)

    def to_bytes(self) -> bytes:
        """Serialize to the tagged JSON envelope."""
        return orjson.dumps({"kind": self.KIND, "v": self.VERSION, "data": self.to_dict()})

    @classmethod
    def from_bytes(cls: type[S], raw: bytes | str) -> S:
        """Deserialize a tagged envelope.

        Raises:
            SnapshotDecodeError: If the payload is not valid JSON, carries a
                different kind or version, or does not fit the schema.
        """
        try:
            parsed = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise SnapshotDecodeError(f"{cls.KIND} payload is not valid JSON") from e

        if not isinstance(parsed, dict) or parsed.get("kind") != cls.KIND:
            found = parsed.get("kind") if isinstance(parsed, dict) else type(parsed).__name__
            raise SnapshotDecodeError(f"expected {cls.KIND} payload, found {found!r}")
        if parsed.get("v") != cls.VERSION:
            raise SnapshotDecodeError(
                f"{cls.KIND} payload version {parsed.get('v')!r} != {cls.VERSION}"
            )

        try:
            return cls.from_dict(parsed["data"])
        except (KeyError, TypeError, ValueError) as e:
            raise SnapshotDecodeError(f"{cls.KIND} payload does not match schema: {e}") from e


@dataclass
class ProductSnapshot(Snapshot):
    """Plain data copy of a product record."""

    KIND: ClassVar[str] = "product"

    id: str
    name: str
    description: str
    price: float
    category: str
    brand: str
    image_url: str
    stock: int
    specifications: dict[str, str | float] = field(default_factory=dict)
    ratings_average: float = 0.0
    ratings_count: int = 0

    @classmethod
    def from_record(cls, product: Product) -> ProductSnapshot:
        return cls(
            id=product.id,
            name=product.name,
            description=product.description,
            price=product.price,
            category=product.category,
            brand=product.brand,
            image_url=product.image_url,
            stock=product.stock,
            specifications=dict(product.specifications),
            ratings_average=product.ratings.average,
            ratings_count=product.ratings.count,
        )


@dataclass
class CartItemSnapshot:
    """One formatted cart line: product details plus quantity and unit price."""

    product_id: str
    name: str
    image_url: str
    price: float
    stock: int
    quantity: int
    unit_price: float


@dataclass
class CartSnapshot(Snapshot):
    """A user's formatted cart."""

    KIND: ClassVar[str] = "cart"

    cart_id: str
    user_id: str
    items: list[CartItemSnapshot] = field(default_factory=list)
    total_amount: float = 0.0
    total_items: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CartSnapshot:
        data = dict(data)
        items = [CartItemSnapshot(**item) for item in data.pop("items", [])]
        return cls(items=items, **data)


@dataclass
class SearchResultPage(Snapshot):
    """One page of search results with facets."""

    KIND: ClassVar[str] = "search"

    products: list[ProductSnapshot]
    total_results: int
    page: int
    limit: int
    facets: dict[str, list[dict[str, Any]]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SearchResultPage:
        data = dict(data)
        products = [ProductSnapshot.from_dict(p) for p in data.pop("products", [])]
        return cls(products=products, **data)


@dataclass
class SuggestionList(Snapshot):
    """Product name suggestions for a typed prefix."""

    KIND: ClassVar[str] = "suggestions"

    prefix: str
    suggestions: list[str] = field(default_factory=list)
