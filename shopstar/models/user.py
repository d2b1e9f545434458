# shopstar/models/user.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """
    Registered storefront account.

    Role:
      - "customer" | "admin"
      - at least one admin must exist (checked when roles change)

    The password is never stored in clear text; `password_hash` holds
    a bcrypt hash produced by `shopstar.core.auth.hash_password`.
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(
        max_length=50,
        description="Customer display name",
    )

    email: str = Field(
        unique=True,
        index=True,
        description="Login email (stored lower-cased)",
    )

    password_hash: str = Field(
        description="bcrypt hash of the password",
    )

    role: str = Field(
        default="customer",
        index=True,
        description="Application role: customer | admin",
    )

    is_active: bool = Field(
        default=True,
        description="Inactive accounts cannot log in",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
