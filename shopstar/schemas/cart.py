# shopstar/schemas/cart.py
import uuid
from datetime import datetime
from typing import Any

from pydantic import ConfigDict
from sqlmodel import SQLModel, Field

from shopstar.schemas.product import InventoryRead


class CartItemCreate(SQLModel):
    """
    Payload for adding to cart.
    """

    model_config = ConfigDict(extra="forbid")

    product_id: uuid.UUID
    quantity: int = Field(default=1, ge=1)
    variant: dict[str, Any] | None = None


class CartItemUpdate(SQLModel):
    """
    Payload for updating quantity of a cart item.
    """

    model_config = ConfigDict(extra="forbid")

    quantity: int = Field(ge=1)


class CartProductSummary(SQLModel):
    id: uuid.UUID
    name: str
    price: float
    images: list[str]
    inventory: InventoryRead
    status: str


class CartItemRead(SQLModel):
    """
    Read model for a single cart line, including line_total.
    """

    id: uuid.UUID
    product: CartProductSummary | None
    quantity: int
    variant: dict[str, Any] | None = None
    line_total: float
    added_at: datetime


class CartSummary(SQLModel):
    """
    Full cart response model with totals.
    """

    items: list[CartItemRead]
    item_count: int
    total: float
