"""Product API router.

- GET    /api/products/{product_id}       - Get product (cached)
- POST   /api/products                    - Create product
- PATCH  /api/products/{product_id}       - Update product
- PUT    /api/products/{product_id}/stock - Set stock level
- DELETE /api/products/{product_id}       - Delete product
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import ORJSONResponse

from storefront.api.deps import ProductServiceDep
from storefront.api.responses import success_response
from storefront.api.schemas import ProductCreate, ProductUpdate, StockUpdate

router = APIRouter(prefix="/api/products", tags=["Products"])


@router.get("/{product_id}")
async def get_product(product_id: str, products: ProductServiceDep) -> ORJSONResponse:
    product = await products.get_product(product_id)
    return success_response(product.to_dict(), "Product retrieved successfully")


@router.post("")
async def create_product(body: ProductCreate, products: ProductServiceDep) -> ORJSONResponse:
    product = await products.create_product(body.model_dump(mode="json"))
    return success_response(product.to_dict(), "Product created successfully", status_code=201)


@router.patch("/{product_id}")
async def update_product(
    product_id: str, body: ProductUpdate, products: ProductServiceDep
) -> ORJSONResponse:
    patch = body.model_dump(mode="json", exclude_unset=True, exclude_none=True)
    product = await products.update_product(product_id, patch)
    return success_response(product.to_dict(), "Product updated successfully")


@router.put("/{product_id}/stock")
async def set_stock(
    product_id: str, body: StockUpdate, products: ProductServiceDep
) -> ORJSONResponse:
    product = await products.set_stock(product_id, body.stock)
    return success_response(product.to_dict(), "Stock updated successfully")


@router.delete("/{product_id}")
async def delete_product(product_id: str, products: ProductServiceDep) -> ORJSONResponse:
    await products.delete_product(product_id)
    return success_response(None, "Product deleted successfully")
