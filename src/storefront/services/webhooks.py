"""Payment provider webhook handling.

Deliveries are at-least-once. A delivery whose event id is already marked
is acknowledged as a duplicate without touching any order. Handled events
are marked for 24 hours; a delivery that fails is left unmarked so the
provider's retry gets processed.
"""

from __future__ import annotations

import logging
from enum import Enum

from pydantic import BaseModel, Field

from storefront.cache.webhook import WebhookDeduplicator
from storefront.observability.logging import LogContext
from storefront.services.orders import OrderService

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"


class PaymentEventObject(BaseModel):
    id: str
    metadata: dict[str, str] = Field(default_factory=dict)


class PaymentEventData(BaseModel):
    object: PaymentEventObject


class PaymentEvent(BaseModel):
    """A payment provider event, as delivered to the webhook."""

    id: str | None = None
    type: str
    data: PaymentEventData

    @property
    def payment_intent_id(self) -> str:
        return self.data.object.id

    @property
    def order_id(self) -> str | None:
        return self.data.object.metadata.get("orderId")


class WebhookStatus(str, Enum):
    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    ALREADY_PROCESSED = "already_processed"
    IGNORED = "ignored"


class PaymentWebhookHandler:
    def __init__(self, orders: OrderService, deduplicator: WebhookDeduplicator):
        self.orders = orders
        self.deduplicator = deduplicator

    async def handle(self, event: PaymentEvent) -> WebhookStatus:
        """Apply one delivery.

        Raises:
            StorefrontError: If the event could not be applied; the event
                is not marked and a redelivery will retry it.
        """
        with LogContext(event_id=event.id or ""):
            if event.id and await self.deduplicator.is_processed(event.id):
                logger.info(f"Duplicate webhook delivery {event.id} ({event.type})")
                return WebhookStatus.DUPLICATE

            if event.type == PAYMENT_SUCCEEDED:
                status = await self._payment_succeeded(event)
            elif event.type == PAYMENT_FAILED:
                status = await self._payment_failed(event)
            else:
                logger.debug(f"Ignoring webhook event type {event.type}")
                status = WebhookStatus.IGNORED

            if event.id:
                await self.deduplicator.mark_processed(event.id)
            return status

    async def _payment_succeeded(self, event: PaymentEvent) -> WebhookStatus:
        order = await self.orders.find_order_for_payment(event.order_id, event.payment_intent_id)
        if order is None:
            logger.warning(f"No order found for payment intent {event.payment_intent_id}")
            return WebhookStatus.IGNORED

        if not await self.orders.confirm_payment(order.id, event.payment_intent_id):
            return WebhookStatus.ALREADY_PROCESSED
        return WebhookStatus.PROCESSED

    async def _payment_failed(self, event: PaymentEvent) -> WebhookStatus:
        order = await self.orders.find_order_for_payment(event.order_id, event.payment_intent_id)
        if order is None:
            logger.warning(f"No order found for failed payment {event.payment_intent_id}")
            return WebhookStatus.IGNORED
        await self.orders.mark_payment_failed(order)
        return WebhookStatus.PROCESSED
