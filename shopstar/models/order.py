# shopstar/models/order.py
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class Order(SQLModel, table=True):
    """
    Customer order created from a cart at checkout.

    Totals:
      - total = subtotal + tax + shipping (rounded to cents)

    `status` (fulfilment) and `payment_status` move independently:
      - status:         pending | processing | shipped | delivered | cancelled
      - payment_status: pending | paid | failed | refunded
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_number: str = Field(
        unique=True,
        index=True,
        description="Human-readable number, ORD-YYYYMMDD-HHMMSS-NNNN",
    )

    customer_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    subtotal: float = Field(ge=0)
    tax: float = Field(default=0, ge=0)
    shipping: float = Field(default=0, ge=0)
    total: float = Field(ge=0)

    status: str = Field(
        default="pending",
        index=True,
        description="Order status lifecycle",
    )

    payment_status: str = Field(
        default="pending",
        index=True,
        description="Payment lifecycle",
    )

    payment_intent_id: str | None = Field(
        default=None,
        index=True,
        description="Gateway payment intent id (pi_...)",
    )

    # Shipping address
    street: str
    city: str
    state: str
    zip_code: str
    country: str = Field(default="USA")

    tracking_number: str = Field(default="")
    notes: str = Field(default="")

    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
        description="Creation timestamp (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class OrderItem(SQLModel, table=True):
    """
    Line item inside an order.

    name/price/image are snapshots taken at order time so later product
    edits never change historical orders.
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    name: str
    price: float = Field(ge=0, description="Unit price at time of order")
    quantity: int = Field(ge=1, description="Quantity ordered (>=1)")

    variant: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )

    image: str = Field(default="")
