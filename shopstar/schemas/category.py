# shopstar/schemas/category.py
import uuid
from datetime import datetime

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field


class CategoryCreate(SQLModel):
    """
    Payload for creating a category.

    - slug is optional: if omitted, generated from `name`.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(max_length=100)
    slug: str | None = None
    description: str | None = None
    image: str | None = None
    parent_id: uuid.UUID | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Category name is required")
        return v

    @field_validator("slug")
    @classmethod
    def normalize_slug(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip().lower()
        return v or None


class CategoryUpdate(SQLModel):
    """
    Partial update payload. All fields are optional.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=100)
    slug: str | None = None
    description: str | None = None
    image: str | None = None
    parent_id: uuid.UUID | None = None
    is_active: bool | None = None

    @field_validator("name", "slug")
    @classmethod
    def not_empty(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class CategorySummary(SQLModel):
    id: uuid.UUID
    name: str
    slug: str


class CategoryRead(SQLModel):
    id: uuid.UUID
    name: str
    slug: str
    description: str | None
    image: str
    parent: CategorySummary | None = None
    is_active: bool
    created_at: datetime


class CategoryDetail(CategoryRead):
    subcategories: list[CategorySummary] = []


class CategoryListResponse(SQLModel):
    count: int
    categories: list[CategoryRead]
