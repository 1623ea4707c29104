"""Cart API router. All endpoints act on the requesting user's cart.

- GET    /api/cart                     - Get cart (cached)
- POST   /api/cart                     - Add product
- PUT    /api/cart/{product_id}        - Set quantity
- DELETE /api/cart/{product_id}        - Remove product
- DELETE /api/cart                     - Clear cart
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import ORJSONResponse

from storefront.api.deps import CartServiceDep, UserIdDep
from storefront.api.responses import success_response
from storefront.api.schemas import AddToCart, UpdateCartItem

router = APIRouter(prefix="/api/cart", tags=["Cart"])


@router.get("")
async def get_cart(user_id: UserIdDep, carts: CartServiceDep) -> ORJSONResponse:
    cart = await carts.get_cart(user_id)
    return success_response(cart.to_dict(), "Cart retrieved successfully")


@router.post("")
async def add_to_cart(body: AddToCart, user_id: UserIdDep, carts: CartServiceDep) -> ORJSONResponse:
    cart = await carts.add_item(user_id, body.product_id, body.quantity)
    return success_response(cart.to_dict(), "Product added to cart successfully")


@router.put("/{product_id}")
async def update_cart_item(
    product_id: str, body: UpdateCartItem, user_id: UserIdDep, carts: CartServiceDep
) -> ORJSONResponse:
    cart = await carts.update_item(user_id, product_id, body.quantity)
    return success_response(cart.to_dict(), "Cart updated successfully")


@router.delete("/{product_id}")
async def remove_from_cart(
    product_id: str, user_id: UserIdDep, carts: CartServiceDep
) -> ORJSONResponse:
    cart = await carts.remove_item(user_id, product_id)
    return success_response(cart.to_dict(), "Product removed from cart successfully")


@router.delete("")
async def clear_cart(user_id: UserIdDep, carts: CartServiceDep) -> ORJSONResponse:
    cart = await carts.clear(user_id)
    return success_response(cart.to_dict(), "Cart cleared successfully")
