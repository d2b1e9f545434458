# shopstar/schemas/order.py
import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator
from sqlmodel import SQLModel, Field

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
PaymentStatus = Literal["pending", "paid", "failed", "refunded"]


class ShippingAddress(BaseModel):
    """
    Every field is required and must be non-empty after trimming.
    """

    model_config = ConfigDict(extra="forbid")

    street: str
    city: str
    state: str
    zip_code: str
    country: str

    @field_validator("street", "city", "state", "zip_code", "country")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class OrderCreate(SQLModel):
    """
    Payload for creating an order from the current cart.

    User provides:
      - shipping_address
      - notes (optional)

    Backend derives:
      - customer from token
      - items (snapshots) and totals from cart
      - status / payment_status = 'pending'
    """

    model_config = ConfigDict(extra="forbid")

    shipping_address: ShippingAddress
    notes: str | None = None

    @field_validator("notes")
    @classmethod
    def normalize_notes(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class ConfirmPaymentRequest(SQLModel):
    """
    Accepts either the intent id ("pi_...") or its client secret.
    """

    model_config = ConfigDict(extra="forbid")

    payment_intent_id: str = Field(min_length=1)

    @field_validator("payment_intent_id")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Payment intent ID is required")
        return v


class OrderStatusUpdate(SQLModel):
    """
    Admin payload to change order status.
    """

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus
    tracking_number: str | None = None
    cancellation_reason: str | None = None


class OrderItemRead(SQLModel):
    id: uuid.UUID
    product_id: uuid.UUID
    name: str
    price: float
    quantity: int
    variant: dict[str, Any] | None = None
    image: str
    line_total: float


class OrderRead(SQLModel):
    """
    Full order view including items and shipping address.
    """

    id: uuid.UUID
    order_number: str
    customer_id: uuid.UUID
    items: list[OrderItemRead]
    subtotal: float
    tax: float
    shipping: float
    total: float
    status: OrderStatus
    payment_status: PaymentStatus
    payment_intent_id: str | None
    shipping_address: ShippingAddress
    tracking_number: str
    notes: str
    shipped_at: datetime | None
    delivered_at: datetime | None
    cancelled_at: datetime | None
    cancellation_reason: str | None = None
    created_at: datetime
    updated_at: datetime


class OrderCreatedResponse(SQLModel):
    order: OrderRead
    client_secret: str | None
    message: str


class OrderResponse(SQLModel):
    order: OrderRead
    message: str | None = None


class OrderListResponse(SQLModel):
    count: int
    orders: list[OrderRead]


class AdminOrderListResponse(OrderListResponse):
    total: int
    page: int
    pages: int


class MessageResponse(SQLModel):
    message: str
