"""Record models stored in the document store."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def new_record_id() -> str:
    """24 hex chars, the shape of a document-store object id."""
    return uuid4().hex[:24]


def utcnow() -> datetime:
    return datetime.now(UTC)


class ProductCategory(str, Enum):
    GAMING_LAPTOP = "GAMING_LAPTOP"
    MOUSE = "MOUSE"
    KEYBOARD = "KEYBOARD"
    MONITOR = "MONITOR"
    HEADSET = "HEADSET"


class OrderStatus(str, Enum):
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PROCESSING = "PROCESSING"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class Ratings(BaseModel):
    average: float = Field(default=0.0, ge=0, le=5)
    count: int = Field(default=0, ge=0)


class Product(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=new_record_id)
    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    price: float = Field(gt=0)
    category: ProductCategory
    brand: str = Field(min_length=1)
    image_url: str
    stock: int = Field(default=0, ge=0)
    specifications: dict[str, str | float] = Field(default_factory=dict)
    ratings: Ratings = Field(default_factory=Ratings)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class CartItem(BaseModel):
    product_id: str
    quantity: int = Field(gt=0)
    # Unit price captured when the item was last added or updated
    price: float = Field(ge=0)


class Cart(BaseModel):
    id: str = Field(default_factory=new_record_id)
    user_id: str
    items: list[CartItem] = Field(default_factory=list)
    # Optimistic concurrency token, bumped on every save
    version: int = 0
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def total_amount(self) -> float:
        return sum(item.price * item.quantity for item in self.items)

    def find_item(self, product_id: str) -> CartItem | None:
        return next((item for item in self.items if item.product_id == product_id), None)


class OrderItem(BaseModel):
    product_id: str
    name: str
    quantity: int = Field(gt=0)
    price: float = Field(ge=0)
    image_url: str = ""


class ShippingAddress(BaseModel):
    street: str
    city: str
    state: str
    pincode: str


class Order(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=new_record_id)
    user_id: str
    items: list[OrderItem]
    total_amount: float = Field(ge=0)
    shipping_address: ShippingAddress | None = None
    order_status: OrderStatus = OrderStatus.PENDING_PAYMENT
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_intent_id: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
