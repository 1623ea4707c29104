"""Order placement and payment outcomes.

Placing an order snapshots the cart into an order awaiting payment and
empties the cart in one record-store transaction. Confirming payment checks
the order status, decrements stock and marks the order paid in another
transaction, so a retried confirmation never decrements stock twice.
Caches are invalidated only after the transaction committed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from storefront.cache.invalidation import Change, InvalidationDispatcher
from storefront.errors import EmptyCartError, InsufficientStockError, RecordNotFoundError
from storefront.persistence.records import (
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    ShippingAddress,
)
from storefront.persistence.repositories import (
    CartRepository,
    OrderRepository,
    ProductRepository,
)
from storefront.persistence.store import RecordStore
from storefront.services.payments import PaymentIntentProvider

logger = logging.getLogger(__name__)


@dataclass
class PlacedOrder:
    order: Order
    client_secret: str


class OrderService:
    def __init__(
        self,
        store: RecordStore,
        orders: OrderRepository,
        carts: CartRepository,
        products: ProductRepository,
        payments: PaymentIntentProvider,
        invalidation: InvalidationDispatcher,
    ):
        self.store = store
        self.orders = orders
        self.carts = carts
        self.products = products
        self.payments = payments
        self.invalidation = invalidation

    async def create_order(
        self, user_id: str, shipping_address: ShippingAddress | None = None
    ) -> PlacedOrder:
        """Turn the user's cart into an order awaiting payment.

        Stock is checked here but only taken when payment is confirmed.

        Raises:
            EmptyCartError: If the user has no cart items.
            InsufficientStockError: If a product cannot cover its line.
            ConcurrentModificationError: If the cart changed while ordering.
        """
        cart = await self.carts.get_for_user(user_id)
        if cart is None or not cart.items:
            raise EmptyCartError("Cart is empty")

        items: list[OrderItem] = []
        for line in cart.items:
            product = await self.products.get(line.product_id)
            available = product.stock if product is not None else 0
            if product is None or available < line.quantity:
                raise InsufficientStockError(line.product_id, line.quantity, available)
            items.append(
                OrderItem(
                    product_id=product.id,
                    name=product.name,
                    quantity=line.quantity,
                    price=line.price,
                    image_url=product.image_url,
                )
            )

        intent = await self.payments.create_payment_intent(cart.total_amount)

        try:
            async with self.store.transaction():
                order = await self.orders.create(
                    Order(
                        user_id=user_id,
                        items=items,
                        total_amount=cart.total_amount,
                        shipping_address=shipping_address,
                        payment_intent_id=intent.id,
                    )
                )
                cart.items = []
                await self.carts.save(cart)
        except Exception:
            await self.invalidation.dispatch(Change.cart_mutation_failed(user_id))
            raise

        await self.invalidation.dispatch(Change.order_placed(user_id))
        logger.info(f"Created order {order.id} (payment intent {intent.id}) for user {user_id}")
        return PlacedOrder(order=order, client_secret=intent.client_secret)

    async def get_order(self, user_id: str, order_id: str) -> Order:
        """An order belonging to the user."""
        order = await self.orders.get(order_id)
        if order is None or order.user_id != user_id:
            raise RecordNotFoundError("Order", order_id)
        return order

    async def list_orders(self, user_id: str) -> list[Order]:
        return await self.orders.list_for_user(user_id)

    async def find_order_for_payment(
        self, order_id: str | None, payment_intent_id: str | None
    ) -> Order | None:
        """Locate the order a payment refers to, by order id first."""
        if order_id:
            order = await self.orders.get(order_id)
            if order is not None:
                return order
        if payment_intent_id:
            return await self.orders.find_by_payment_intent(payment_intent_id)
        return None

    async def confirm_payment(self, order_id: str, payment_intent_id: str | None = None) -> bool:
        """Mark an order paid and take its items out of stock.

        Returns:
            True if this call confirmed the payment, False if the order was
            already paid (nothing is changed or invalidated).

        Raises:
            RecordNotFoundError: If the order or one of its products is gone.
            InsufficientStockError: If stock no longer covers the order;
                nothing is written.
        """
        async with self.store.transaction():
            order = await self.orders.require(order_id)
            if order.payment_status == PaymentStatus.PAID:
                logger.info(f"Order {order_id} already paid")
                return False

            await self.products.decrement_stock(
                (item.product_id, item.quantity) for item in order.items
            )
            order = await self.orders.save(
                order.model_copy(
                    update={
                        "payment_status": PaymentStatus.PAID,
                        "order_status": OrderStatus.CONFIRMED,
                        "payment_intent_id": payment_intent_id or order.payment_intent_id,
                    }
                )
            )

        await self.invalidation.dispatch(
            Change.order_finalized(order.user_id, [item.product_id for item in order.items])
        )
        logger.info(f"Payment confirmed for order {order_id}")
        return True

    async def mark_payment_failed(self, order: Order) -> Order:
        """Record a failed payment. A paid order is left as it is."""
        if order.payment_status == PaymentStatus.PAID:
            logger.warning(f"Ignoring payment failure for already paid order {order.id}")
            return order
        failed = await self.orders.mark_payment_failed(order)
        logger.info(f"Payment failed for order {order.id}")
        return failed
