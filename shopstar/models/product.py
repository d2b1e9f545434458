# shopstar/models/product.py
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class Product(SQLModel, table=True):
    """
    Product catalog entry.

    Inventory is stored flat on the row:
      - inventory_quantity     units on hand (never negative)
      - low_stock_threshold    "low stock" warning level
      - track_quantity         when False the product is always in stock

    Lifecycle: draft -> active -> archived. Products are archived,
    never physically deleted, so historical orders keep a valid
    product reference.
    """

    __tablename__ = "products"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(
        max_length=200,
        index=True,
        description="Display name of the product",
    )

    description: str = Field(
        description="Long description",
    )

    price: float = Field(
        ge=0,
        index=True,
        description="Unit price",
    )

    compare_at_price: float | None = Field(
        default=None,
        ge=0,
        description="Optional 'was' price shown struck through",
    )

    sku: str = Field(
        max_length=64,
        unique=True,
        index=True,
        description="Stock keeping unit (unique, upper-case)",
    )

    category_id: uuid.UUID = Field(
        foreign_key="categories.id",
        index=True,
    )

    images: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    # [{"name": "Size", "options": ["S", "M", "L"]}, ...]
    variants: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    inventory_quantity: int = Field(default=0, ge=0)
    low_stock_threshold: int = Field(default=10, ge=0)
    track_quantity: bool = Field(default=True)

    # active | draft | archived
    status: str = Field(default="draft", index=True)

    featured: bool = Field(default=False, index=True)

    tags: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    sales_count: int = Field(default=0, ge=0)
    views: int = Field(default=0, ge=0)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
