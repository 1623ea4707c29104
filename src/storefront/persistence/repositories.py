"""Repository pattern for storefront records.

Repositories translate between record models and record-store documents.
Every write returns a ``WriteResult`` carrying the written record and the
``Change`` descriptions the invalidation dispatcher needs:

    result = await products.update(product_id, {"price": 1299.0})
    await dispatcher.dispatch(*result.changes)

Changes are only produced after the record store confirmed the write, so a
failed write never invalidates anything.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from storefront.cache.invalidation import Change
from storefront.errors import (
    ConcurrentModificationError,
    InsufficientStockError,
    RecordNotFoundError,
)
from storefront.persistence.records import Cart, Order, PaymentStatus, Product, utcnow
from storefront.persistence.store import CARTS, ORDERS, PRODUCTS, RecordStore

T = TypeVar("T", bound=BaseModel)
R = TypeVar("R")


@dataclass
class WriteResult(Generic[R]):
    """A confirmed write and the cache changes it implies."""

    record: R
    changes: list[Change] = field(default_factory=list)


class BaseRepository(Generic[T]):
    """Base repository with common document mapping."""

    collection: str
    model: type[T]

    def __init__(self, store: RecordStore):
        self.store = store

    def _to_document(self, record: T) -> dict[str, Any]:
        return record.model_dump(mode="json")

    def _from_document(self, document: Mapping[str, Any]) -> T:
        return self.model.model_validate(document)

    async def get(self, record_id: str) -> T | None:
        document = await self.store.find_by_id(self.collection, record_id)
        if document is None:
            return None
        return self._from_document(document)

    async def require(self, record_id: str) -> T:
        """Get a record or raise RecordNotFoundError."""
        record = await self.get(record_id)
        if record is None:
            raise RecordNotFoundError(self.model.__name__, record_id)
        return record

    async def exists(self, record_id: str) -> bool:
        return await self.store.find_by_id(self.collection, record_id) is not None


class ProductRepository(BaseRepository[Product]):
    """Repository for product records."""

    collection = PRODUCTS
    model = Product

    async def list_all(self) -> list[Product]:
        documents = await self.store.find(self.collection)
        return [self._from_document(doc) for doc in documents]

    async def create(self, product: Product) -> WriteResult[Product]:
        saved = await self.store.save(self.collection, self._to_document(product))
        return WriteResult(self._from_document(saved), [Change.product_created(product.id)])

    async def update(
        self, product_id: str, patch: Mapping[str, Any]
    ) -> WriteResult[Product] | None:
        """Apply a partial update. Returns None if the product does not exist.

        Raises:
            pydantic.ValidationError: If the patched product is invalid.
        """
        current = await self.get(product_id)
        if current is None:
            return None

        updated = self.model.model_validate(
            {**self._to_document(current), **patch, "id": product_id, "updated_at": utcnow()}
        )
        saved = await self.store.save(self.collection, self._to_document(updated))

        changes = [Change.product_updated(product_id)]
        if updated.stock != current.stock:
            changes.append(Change.stock_changed([product_id]))
        return WriteResult(self._from_document(saved), changes)

    async def set_stock(self, product_id: str, stock: int) -> WriteResult[Product] | None:
        """Overwrite the stock level of a product."""
        if stock < 0:
            raise ValueError(f"Stock cannot be negative: {stock}")
        saved = await self.store.update_by_id(
            self.collection, product_id, {"stock": stock, "updated_at": utcnow().isoformat()}
        )
        if saved is None:
            return None
        return WriteResult(self._from_document(saved), [Change.stock_changed([product_id])])

    async def delete(self, product_id: str) -> WriteResult[str] | None:
        if not await self.store.delete_by_id(self.collection, product_id):
            return None
        return WriteResult(product_id, [Change.product_deleted(product_id)])

    async def decrement_stock(
        self, quantities: Iterable[tuple[str, int]]
    ) -> WriteResult[list[Product]]:
        """Take ordered quantities out of stock, all or nothing.

        Call inside a record-store transaction so a shortfall on a later
        product rolls back earlier decrements.

        Raises:
            RecordNotFoundError: If a product no longer exists.
            InsufficientStockError: If a product has less stock than requested.
        """
        updated: list[Product] = []
        async with self.store.transaction():
            for product_id, quantity in quantities:
                product = await self.require(product_id)
                if product.stock < quantity:
                    raise InsufficientStockError(product_id, quantity, product.stock)
                remaining = product.model_copy(
                    update={"stock": product.stock - quantity, "updated_at": utcnow()}
                )
                await self.store.save(self.collection, self._to_document(remaining))
                updated.append(remaining)
        return WriteResult(updated, [Change.stock_changed(p.id for p in updated)])


class CartRepository(BaseRepository[Cart]):
    """Repository for carts, one per user, with optimistic versioning."""

    collection = CARTS
    model = Cart

    async def get_for_user(self, user_id: str) -> Cart | None:
        documents = await self.store.find(self.collection, {"user_id": user_id})
        if not documents:
            return None
        return self._from_document(documents[0])

    async def get_or_create(self, user_id: str) -> Cart:
        """The user's cart, created empty if none exists yet."""
        cart = await self.get_for_user(user_id)
        if cart is not None:
            return cart
        cart = Cart(user_id=user_id)
        saved = await self.store.save(self.collection, self._to_document(cart))
        return self._from_document(saved)

    async def save(self, cart: Cart, touched_product_ids: Iterable[str] = ()) -> WriteResult[Cart]:
        """Persist a cart read at ``cart.version``.

        Raises:
            ConcurrentModificationError: If the stored cart moved past the
                version this cart was read at.
        """
        async with self.store.transaction():
            current = await self.store.find_by_id(self.collection, cart.id)
            actual = current["version"] if current is not None else 0
            if actual != cart.version:
                raise ConcurrentModificationError("Cart", cart.user_id, cart.version, actual)

            updated = cart.model_copy(update={"version": cart.version + 1, "updated_at": utcnow()})
            saved = await self.store.save(self.collection, self._to_document(updated))

        return WriteResult(
            self._from_document(saved),
            [Change.cart_mutated(cart.user_id, touched_product_ids)],
        )


class OrderRepository(BaseRepository[Order]):
    """Repository for orders."""

    collection = ORDERS
    model = Order

    async def create(self, order: Order) -> Order:
        saved = await self.store.save(self.collection, self._to_document(order))
        return self._from_document(saved)

    async def save(self, order: Order) -> Order:
        updated = order.model_copy(update={"updated_at": utcnow()})
        saved = await self.store.save(self.collection, self._to_document(updated))
        return self._from_document(saved)

    async def list_for_user(self, user_id: str) -> list[Order]:
        documents = await self.store.find(self.collection, {"user_id": user_id})
        orders = [self._from_document(doc) for doc in documents]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    async def find_by_payment_intent(self, payment_intent_id: str) -> Order | None:
        documents = await self.store.find(
            self.collection, {"payment_intent_id": payment_intent_id}
        )
        if not documents:
            return None
        return self._from_document(documents[0])

    async def mark_payment_failed(self, order: Order) -> Order:
        return await self.save(order.model_copy(update={"payment_status": PaymentStatus.FAILED}))
