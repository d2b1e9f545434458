# shopstar/schemas/user.py
import re
import uuid
from datetime import datetime
from typing import Literal

from pydantic import EmailStr, ConfigDict, field_validator
from sqlmodel import SQLModel, Field

Role = Literal["customer", "admin"]

_PASSWORD_RULE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


class RegisterRequest(SQLModel):
    """
    Payload for creating an account.

    Validation rules:
      - name: 2-50 characters after trimming
      - email: valid address, stored lower-cased
      - password: >= 6 characters with upper, lower and digit
    """

    model_config = ConfigDict(extra="forbid")

    name: str
    email: EmailStr
    password: str = Field(min_length=6)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        v = v.strip()
        if not 2 <= len(v) <= 50:
            raise ValueError("Name must be between 2 and 50 characters")
        return v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("password")
    @classmethod
    def check_strength(cls, v: str) -> str:
        if not _PASSWORD_RULE.match(v):
            raise ValueError(
                "Password must contain at least one uppercase letter, "
                "one lowercase letter, and one number"
            )
        return v


class LoginRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class UserRead(SQLModel):
    """Response schema returned to clients. Never includes the hash."""

    id: uuid.UUID
    name: str
    email: str
    role: Role
    is_active: bool
    created_at: datetime


class AuthResponse(SQLModel):
    token: str
    user: UserRead
    message: str


class UserListResponse(SQLModel):
    count: int
    users: list[UserRead]


class UserRoleUpdate(SQLModel):
    """
    Admin-only role update schema.
    """

    model_config = ConfigDict(extra="forbid")
    role: Role


class UserRoleResponse(SQLModel):
    user: UserRead
    message: str
