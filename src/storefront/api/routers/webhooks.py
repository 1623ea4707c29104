"""Payment provider webhook.

- POST /api/webhooks/payment - Payment intent events
"""

from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import ORJSONResponse

from storefront.api.deps import WebhookHandlerDep
from storefront.errors import StorefrontError
from storefront.services.webhooks import PaymentEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["Webhooks"])


@router.post("/payment")
async def payment_webhook(event: PaymentEvent, handler: WebhookHandlerDep) -> ORJSONResponse:
    """Apply a payment event.

    Failures answer 400 so the provider redelivers the event.
    """
    try:
        status = await handler.handle(event)
    except StorefrontError as e:
        logger.error(f"Webhook {event.id} ({event.type}) failed: {e}")
        return ORJSONResponse(status_code=400, content={"success": False, "message": str(e)})
    return ORJSONResponse(content={"received": True, "status": status.value})
