# shopstar/services/user_service.py
import logging
import uuid

from fastapi import HTTPException, status
from sqlmodel import Session

from shopstar.core.auth import create_access_token, hash_password, verify_password
from shopstar.core.config import Settings
from shopstar.models.user import User
from shopstar.repositories.cart_repo import CartRepository
from shopstar.repositories.user_repo import UserRepository
from shopstar.schemas.user import LoginRequest, RegisterRequest, UserRoleUpdate

logger = logging.getLogger(__name__)


class UserService:
    """
    Business logic for User.

    Responsibilities:
      - registration and credential checks
      - enforce app rules (unique email, at least one admin)
      - orchestrate repository operations
      - map domain errors to HTTP errors
    """

    def __init__(self, repo: UserRepository, cart_repo: CartRepository):
        self.repo = repo
        self.cart_repo = cart_repo

    # ----- Authentication -----

    def register(
        self,
        session: Session,
        settings: Settings,
        payload: RegisterRequest,
    ) -> tuple[User, str]:
        """
        Create a customer account and its empty cart.

        Returns:
            (user, access token)
        """
        if self.repo.get_by_email(session, payload.email):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="User already exists with this email",
            )

        user = User(
            name=payload.name,
            email=payload.email,
            password_hash=hash_password(payload.password),
            role="customer",
        )
        user = self.repo.create(session, user)
        self.cart_repo.create_for_user(session, user.id)
        logger.info(f"Registered user {user.id}")

        return user, create_access_token(user.id, settings)

    def login(
        self,
        session: Session,
        settings: Settings,
        payload: LoginRequest,
    ) -> tuple[User, str]:
        """
        Verify credentials. Unknown email and wrong password produce
        the same 401 so accounts cannot be enumerated.
        """
        user = self.repo.get_by_email(session, payload.email)
        if not user or not verify_password(payload.password, user.password_hash):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password",
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Account is deactivated",
            )

        return user, create_access_token(user.id, settings)

    # ----- Admin operations -----

    def list_users(
        self,
        session: Session,
        search: str | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[User]:
        """List users, newest first (admin only)."""
        return self.repo.list(
            session,
            search=search.strip() if search else None,
            skip=skip,
            limit=limit,
        )

    def get_user(self, session: Session, user_id: uuid.UUID) -> User:
        """
        Get a user by id (admin only).

        Raises:
            HTTPException(404): if not found.
        """
        user = self.repo.get_by_id(session, user_id)
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found",
            )
        return user

    def update_role(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: UserRoleUpdate,
    ) -> User:
        """
        Change user's role (admin only).

        Role validation is enforced by the schema (Literal). Demoting the
        only remaining admin is refused.
        """
        user = self.get_user(session, user_id)

        if (
            user.role == "admin"
            and payload.role != "admin"
            and self.repo.count_admins(session) <= 1
        ):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot remove the last admin user",
            )

        user.role = payload.role
        return self.repo.update(session, user)
