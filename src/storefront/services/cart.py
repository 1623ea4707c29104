"""Cart reads and mutations.

Cart mutations are read-modify-write against the record store. The cart
record carries a version; a save against a stale version is rejected and
the mutation is replayed on a fresh read, up to ``max_attempts`` times.

Every mutation drops the user's cached cart, whether it succeeded or not.
Adding or updating an item also drops the touched product's cache entry,
since the cart just re-read its price and stock. Removing items does not
touch stock and leaves product entries alone.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable

from storefront.cache.cart import CartCache
from storefront.cache.invalidation import Change, InvalidationDispatcher
from storefront.cache.snapshots import CartItemSnapshot, CartSnapshot
from storefront.errors import (
    CartItemNotFoundError,
    ConcurrentModificationError,
    InsufficientStockError,
    RecordNotFoundError,
)
from storefront.persistence.records import Cart, CartItem, Product
from storefront.persistence.repositories import CartRepository, ProductRepository

logger = logging.getLogger(__name__)

# Applies a change to the cart in place and returns the product ids it touched
CartMutation = Callable[[Cart], Awaitable[Iterable[str]]]


class CartService:
    def __init__(
        self,
        carts: CartRepository,
        products: ProductRepository,
        cache: CartCache,
        invalidation: InvalidationDispatcher,
        max_attempts: int = 3,
    ):
        self.carts = carts
        self.products = products
        self.cache = cache
        self.invalidation = invalidation
        self.max_attempts = max(1, max_attempts)

    async def get_cart(self, user_id: str) -> CartSnapshot:
        """The user's formatted cart, created empty if needed.

        A cached cart whose backing record is gone is treated as corrupt:
        the entry is dropped and the cart rebuilt from the record store.
        """
        cached = await self.cache.get(user_id)
        if cached is not None:
            if await self.carts.exists(cached.cart_id):
                return cached
            logger.warning(f"Cached cart {cached.cart_id} for user {user_id} has no record")
            await self.cache.invalidate(user_id)

        cart = await self.carts.get_or_create(user_id)
        snapshot = await self._format(cart)
        await self.cache.put(user_id, snapshot)
        return snapshot

    async def add_item(self, user_id: str, product_id: str, quantity: int) -> CartSnapshot:
        """Add a product to the cart, or raise the quantity if already there."""

        async def mutation(cart: Cart) -> list[str]:
            product = await self._in_stock(product_id, quantity)
            item = cart.find_item(product_id)
            if item is None:
                cart.items.append(
                    CartItem(product_id=product_id, quantity=quantity, price=product.price)
                )
            else:
                item.quantity += quantity
                item.price = product.price
            return [product_id]

        return await self._mutate(user_id, mutation)

    async def update_item(self, user_id: str, product_id: str, quantity: int) -> CartSnapshot:
        """Set the quantity of a product already in the cart."""

        async def mutation(cart: Cart) -> list[str]:
            item = cart.find_item(product_id)
            if item is None:
                raise CartItemNotFoundError(product_id)
            product = await self._in_stock(product_id, quantity)
            item.quantity = quantity
            item.price = product.price
            return [product_id]

        return await self._mutate(user_id, mutation)

    async def remove_item(self, user_id: str, product_id: str) -> CartSnapshot:
        async def mutation(cart: Cart) -> list[str]:
            cart.items = [item for item in cart.items if item.product_id != product_id]
            return []

        return await self._mutate(user_id, mutation)

    async def clear(self, user_id: str) -> CartSnapshot:
        async def mutation(cart: Cart) -> list[str]:
            cart.items = []
            return []

        return await self._mutate(user_id, mutation)

    async def _in_stock(self, product_id: str, quantity: int) -> Product:
        product = await self.products.get(product_id)
        if product is None:
            raise RecordNotFoundError("Product", product_id)
        if product.stock < quantity:
            raise InsufficientStockError(product_id, quantity, product.stock)
        return product

    async def _mutate(self, user_id: str, mutation: CartMutation) -> CartSnapshot:
        attempt = 1
        try:
            while True:
                cart = await self.carts.get_or_create(user_id)
                touched = list(await mutation(cart))
                try:
                    result = await self.carts.save(cart, touched)
                    break
                except ConcurrentModificationError:
                    if attempt >= self.max_attempts:
                        raise
                    logger.info(
                        f"Cart of user {user_id} changed concurrently, "
                        f"retrying ({attempt}/{self.max_attempts})"
                    )
                    attempt += 1

            await self.invalidation.dispatch(*result.changes)
            return await self._format(result.record)
        except Exception:
            await self.invalidation.dispatch(Change.cart_mutation_failed(user_id))
            raise

    async def _format(self, cart: Cart) -> CartSnapshot:
        """Join cart lines with current product details."""
        items: list[CartItemSnapshot] = []
        for line in cart.items:
            product = await self.products.get(line.product_id)
            if product is None:
                logger.warning(f"Cart {cart.id} references missing product {line.product_id}")
                continue
            items.append(
                CartItemSnapshot(
                    product_id=product.id,
                    name=product.name,
                    image_url=product.image_url,
                    price=product.price,
                    stock=product.stock,
                    quantity=line.quantity,
                    unit_price=line.price,
                )
            )
        return CartSnapshot(
            cart_id=cart.id,
            user_id=cart.user_id,
            items=items,
            total_amount=cart.total_amount,
            total_items=len(items),
        )
