# shopstar/schemas/product.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator
from sqlmodel import SQLModel, Field

ProductStatus = Literal["active", "draft", "archived"]


class Variant(BaseModel):
    """A selectable option group, e.g. Size: [S, M, L]."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    options: list[str] = Field(min_length=1)


class InventoryIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    quantity: int = Field(ge=0)
    low_stock_threshold: int = Field(default=10, ge=0)
    track_quantity: bool = True


class InventoryUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    quantity: int | None = Field(default=None, ge=0)
    low_stock_threshold: int | None = Field(default=None, ge=0)
    track_quantity: bool | None = None


class InventoryRead(BaseModel):
    quantity: int
    low_stock_threshold: int
    track_quantity: bool


class ProductCreate(SQLModel):
    """
    Payload for creating a product (admin).

    - sku is trimmed and upper-cased.
    - category_id must reference an existing category.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(max_length=200)
    description: str
    price: float = Field(ge=0)
    compare_at_price: float | None = Field(default=None, ge=0)
    sku: str = Field(max_length=64)
    category_id: uuid.UUID
    images: list[str] = []
    variants: list[Variant] = []
    inventory: InventoryIn
    status: ProductStatus = "draft"
    featured: bool = False
    tags: list[str] = []

    @field_validator("name", "description")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("sku")
    @classmethod
    def normalize_sku(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("SKU is required")
        return v

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: list[str]) -> list[str]:
        return [t.strip() for t in v if t.strip()]


class ProductUpdate(SQLModel):
    """
    Partial update payload for products.
    All fields are optional.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=200)
    description: str | None = None
    price: float | None = Field(default=None, ge=0)
    compare_at_price: float | None = Field(default=None, ge=0)
    sku: str | None = Field(default=None, max_length=64)
    category_id: uuid.UUID | None = None
    images: list[str] | None = None
    variants: list[Variant] | None = None
    inventory: InventoryUpdate | None = None
    status: ProductStatus | None = None
    featured: bool | None = None
    tags: list[str] | None = None

    @field_validator("name", "description")
    @classmethod
    def not_empty(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("sku")
    @classmethod
    def normalize_sku(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip().upper()
        if not v:
            raise ValueError("SKU cannot be empty")
        return v


class ProductRead(SQLModel):
    """
    Product representation for clients, including computed stock flags.
    """

    id: uuid.UUID
    name: str
    description: str
    price: float
    compare_at_price: float | None
    sku: str
    category_id: uuid.UUID
    images: list[str]
    variants: list[Variant]
    inventory: InventoryRead
    status: ProductStatus
    featured: bool
    tags: list[str]
    sales_count: int
    views: int
    in_stock: bool
    is_low_stock: bool
    created_at: datetime
    updated_at: datetime


class ProductListResponse(SQLModel):
    count: int
    total: int
    page: int
    pages: int
    products: list[ProductRead]
