"""Tests for order placement, payment confirmation and payment webhooks."""

from __future__ import annotations

import pytest
import pytest_asyncio

from storefront.cache.keys import CacheKeys
from storefront.cache.search import SearchQuery
from storefront.cache.snapshots import SearchResultPage
from storefront.errors import (
    EmptyCartError,
    InsufficientStockError,
    RecordNotFoundError,
    RecordStoreError,
)
from storefront.persistence.records import ShippingAddress
from storefront.services.webhooks import PaymentEvent, PaymentWebhookHandler, WebhookStatus

ADDRESS = ShippingAddress(street="221B Baker St", city="Pune", state="MH", pincode="411001")


def payment_event(
    event_type: str, payment_intent_id: str, order_id: str | None = None, event_id="evt_123"
) -> PaymentEvent:
    metadata = {"orderId": order_id} if order_id else {}
    return PaymentEvent.model_validate(
        {
            "id": event_id,
            "type": event_type,
            "data": {"object": {"id": payment_intent_id, "metadata": metadata}},
        }
    )


@pytest_asyncio.fixture
async def laptop(product_repo, make_product):
    return (await product_repo.create(make_product(stock=5))).record


@pytest_asyncio.fixture
async def placed(cart_service, order_service, laptop):
    await cart_service.add_item("u1", laptop.id, 2)
    return await order_service.create_order("u1", ADDRESS)


@pytest.fixture
def webhook_handler(order_service, cache_context) -> PaymentWebhookHandler:
    return PaymentWebhookHandler(order_service, cache_context.webhooks)


class TestCreateOrder:
    """Cart to order."""

    @pytest.mark.asyncio
    async def test_order_snapshots_cart_and_empties_it(
        self, placed, cart_service, product_repo, laptop
    ) -> None:
        order = placed.order

        assert order.total_amount == 2 * 1499.0
        assert order.items[0].quantity == 2
        assert order.payment_status == "pending"
        assert order.order_status == "PENDING_PAYMENT"
        assert order.payment_intent_id.startswith("pi_")
        assert placed.client_secret.startswith(order.payment_intent_id)
        assert (await cart_service.get_cart("u1")).items == []
        # Stock is only taken on payment
        assert (await product_repo.require(laptop.id)).stock == 5

    @pytest.mark.asyncio
    async def test_empty_cart(self, order_service) -> None:
        with pytest.raises(EmptyCartError, match="Cart is empty"):
            await order_service.create_order("u1", ADDRESS)

    @pytest.mark.asyncio
    async def test_insufficient_stock(
        self, cart_service, order_service, product_repo, laptop
    ) -> None:
        await cart_service.add_item("u1", laptop.id, 4)
        await product_repo.set_stock(laptop.id, 1)

        with pytest.raises(InsufficientStockError):
            await order_service.create_order("u1", ADDRESS)

        assert len((await cart_service.get_cart("u1")).items) == 1

    @pytest.mark.asyncio
    async def test_failed_write_keeps_cart(
        self, cart_service, order_service, order_repo, record_store, laptop, fake_redis
    ) -> None:
        await cart_service.add_item("u1", laptop.id, 1)
        await cart_service.get_cart("u1")
        record_store.fail_writes = True

        with pytest.raises(RecordStoreError):
            await order_service.create_order("u1", ADDRESS)

        record_store.fail_writes = False
        assert fake_redis.raw(CacheKeys.cart("u1")) is None
        assert await order_repo.list_for_user("u1") == []
        assert len((await cart_service.get_cart("u1")).items) == 1

    @pytest.mark.asyncio
    async def test_orders_are_per_user(self, placed, order_service) -> None:
        assert [o.id for o in await order_service.list_orders("u1")] == [placed.order.id]
        with pytest.raises(RecordNotFoundError):
            await order_service.get_order("u2", placed.order.id)


class TestConfirmPayment:
    """Payment confirmation takes stock exactly once."""

    @pytest.mark.asyncio
    async def test_confirm_decrements_stock_and_invalidates(
        self, placed, order_service, product_service, cache_context, laptop, fake_redis
    ) -> None:
        await product_service.get_product(laptop.id)
        await cache_context.search.put(SearchQuery(text="nebula"), SearchResultPage([], 0, 1, 10))

        assert await order_service.confirm_payment(placed.order.id) is True

        order = await order_service.get_order("u1", placed.order.id)
        assert order.payment_status == "paid"
        assert order.order_status == "CONFIRMED"
        assert (await product_service.get_product(laptop.id)).stock == 3
        assert not [k for k in fake_redis.keys() if k.startswith("search:")]

    @pytest.mark.asyncio
    async def test_second_confirmation_is_a_no_op(
        self, placed, order_service, product_repo, laptop
    ) -> None:
        await order_service.confirm_payment(placed.order.id)

        assert await order_service.confirm_payment(placed.order.id) is False
        assert (await product_repo.require(laptop.id)).stock == 3

    @pytest.mark.asyncio
    async def test_shortfall_rolls_back(
        self, placed, order_service, order_repo, product_repo, laptop
    ) -> None:
        await product_repo.set_stock(laptop.id, 1)

        with pytest.raises(InsufficientStockError):
            await order_service.confirm_payment(placed.order.id)

        assert (await order_repo.require(placed.order.id)).payment_status == "pending"
        assert (await product_repo.require(laptop.id)).stock == 1

    @pytest.mark.asyncio
    async def test_payment_failure_does_not_downgrade_paid_order(
        self, placed, order_service
    ) -> None:
        await order_service.confirm_payment(placed.order.id)

        order = await order_service.mark_payment_failed(
            await order_service.get_order("u1", placed.order.id)
        )

        assert order.payment_status == "paid"


class TestPaymentWebhook:
    """At-least-once deliveries."""

    @pytest.mark.asyncio
    async def test_redelivered_event_is_a_duplicate(
        self, placed, webhook_handler, product_repo, laptop, store
    ) -> None:
        """evt_123 delivered twice: processed once, stock taken once."""
        event = payment_event(
            "payment_intent.succeeded", placed.order.payment_intent_id, placed.order.id
        )

        assert await webhook_handler.handle(event) == WebhookStatus.PROCESSED
        assert await webhook_handler.handle(event) == WebhookStatus.DUPLICATE

        assert (await product_repo.require(laptop.id)).stock == 3
        assert await store.ttl(CacheKeys.webhook("evt_123")) == 24 * 60 * 60

    @pytest.mark.asyncio
    async def test_new_event_for_paid_order(self, placed, webhook_handler) -> None:
        """A different event id for an already paid order changes nothing."""
        intent = placed.order.payment_intent_id
        await webhook_handler.handle(payment_event("payment_intent.succeeded", intent))

        status = await webhook_handler.handle(
            payment_event("payment_intent.succeeded", intent, event_id="evt_456")
        )

        assert status == WebhookStatus.ALREADY_PROCESSED

    @pytest.mark.asyncio
    async def test_dedup_store_down_still_processes_once(
        self, placed, webhook_handler, product_repo, laptop, fake_redis
    ) -> None:
        """Without the cache, the order status stops double processing."""
        fake_redis.down = True
        event = payment_event("payment_intent.succeeded", placed.order.payment_intent_id)

        assert await webhook_handler.handle(event) == WebhookStatus.PROCESSED
        assert await webhook_handler.handle(event) == WebhookStatus.ALREADY_PROCESSED
        assert (await product_repo.require(laptop.id)).stock == 3

    @pytest.mark.asyncio
    async def test_payment_failed(self, placed, webhook_handler, order_repo) -> None:
        event = payment_event(
            "payment_intent.payment_failed", placed.order.payment_intent_id, placed.order.id
        )

        assert await webhook_handler.handle(event) == WebhookStatus.PROCESSED
        assert (await order_repo.require(placed.order.id)).payment_status == "failed"

    @pytest.mark.asyncio
    async def test_unknown_order_is_ignored_and_marked(self, webhook_handler, store) -> None:
        event = payment_event("payment_intent.succeeded", "pi_unknown")

        assert await webhook_handler.handle(event) == WebhookStatus.IGNORED
        assert await store.exists(CacheKeys.webhook("evt_123"))

    @pytest.mark.asyncio
    async def test_unhandled_event_type(self, webhook_handler) -> None:
        event = payment_event("charge.refunded", "pi_1")

        assert await webhook_handler.handle(event) == WebhookStatus.IGNORED

    @pytest.mark.asyncio
    async def test_failed_delivery_is_not_marked(
        self, placed, webhook_handler, product_repo, laptop, store
    ) -> None:
        """A delivery that fails is retried by the provider, so it stays unmarked."""
        await product_repo.set_stock(laptop.id, 0)
        event = payment_event("payment_intent.succeeded", placed.order.payment_intent_id)

        with pytest.raises(InsufficientStockError):
            await webhook_handler.handle(event)

        assert not await store.exists(CacheKeys.webhook("evt_123"))
