"""Request bodies for the storefront API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from storefront.persistence.records import ProductCategory, Ratings, ShippingAddress


class ProductCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    price: float = Field(gt=0)
    category: ProductCategory
    brand: str = Field(min_length=1)
    image_url: str
    stock: int = Field(default=0, ge=0)
    specifications: dict[str, str | float] = Field(default_factory=dict)
    ratings: Ratings = Field(default_factory=Ratings)


class ProductUpdate(BaseModel):
    """Partial product update. Only fields present in the body are applied."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, min_length=1)
    price: float | None = Field(default=None, gt=0)
    category: ProductCategory | None = None
    brand: str | None = Field(default=None, min_length=1)
    image_url: str | None = None
    stock: int | None = Field(default=None, ge=0)
    specifications: dict[str, str | float] | None = None


class StockUpdate(BaseModel):
    stock: int = Field(ge=0)


class AddToCart(BaseModel):
    product_id: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=1)


class UpdateCartItem(BaseModel):
    quantity: int = Field(ge=1)


class CreateOrder(BaseModel):
    shipping_address: ShippingAddress


class PaymentSuccess(BaseModel):
    order_id: str = Field(min_length=1)
    payment_intent_id: str | None = None


class PaymentFailure(BaseModel):
    order_id: str = Field(min_length=1)
