"""Order API router.

- POST /api/orders                 - Create an order from the cart
- GET  /api/orders                 - List the user's orders
- GET  /api/orders/{order_id}      - Get one order
- POST /api/orders/payment-success - Confirm payment (same path as the webhook)
- POST /api/orders/payment-failed  - Record a failed payment
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import ORJSONResponse

from storefront.api.deps import OrderServiceDep, UserIdDep
from storefront.api.errors import NotFoundError
from storefront.api.responses import success_response
from storefront.api.schemas import CreateOrder, PaymentFailure, PaymentSuccess
from storefront.persistence.records import Order

router = APIRouter(prefix="/api/orders", tags=["Orders"])


def _order_body(order: Order) -> dict[str, Any]:
    return order.model_dump(mode="json")


@router.post("")
async def create_order(
    body: CreateOrder, user_id: UserIdDep, orders: OrderServiceDep
) -> ORJSONResponse:
    placed = await orders.create_order(user_id, body.shipping_address)
    data = _order_body(placed.order) | {"client_secret": placed.client_secret}
    return success_response(data, "Order created successfully", status_code=201)


@router.get("")
async def list_orders(user_id: UserIdDep, orders: OrderServiceDep) -> ORJSONResponse:
    user_orders = await orders.list_orders(user_id)
    return success_response(
        [_order_body(o) for o in user_orders], "Orders retrieved successfully"
    )


@router.post("/payment-success")
async def payment_success(body: PaymentSuccess, orders: OrderServiceDep) -> ORJSONResponse:
    confirmed = await orders.confirm_payment(body.order_id, body.payment_intent_id)
    message = "Payment processed successfully" if confirmed else "Payment already processed"
    return success_response({"confirmed": confirmed}, message)


@router.post("/payment-failed")
async def payment_failed(body: PaymentFailure, orders: OrderServiceDep) -> ORJSONResponse:
    order = await orders.find_order_for_payment(body.order_id, None)
    if order is None:
        raise NotFoundError("Order not found")
    failed = await orders.mark_payment_failed(order)
    return success_response(_order_body(failed), "Payment failure recorded")


@router.get("/{order_id}")
async def get_order(order_id: str, user_id: UserIdDep, orders: OrderServiceDep) -> ORJSONResponse:
    order = await orders.get_order(user_id, order_id)
    return success_response(_order_body(order), "Order retrieved successfully")
