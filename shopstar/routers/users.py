# shopstar/routers/users.py
import uuid

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from shopstar.core.auth import require_admin
from shopstar.database import get_session
from shopstar.repositories.cart_repo import CartRepository
from shopstar.repositories.user_repo import UserRepository
from shopstar.schemas.user import (
    UserListResponse,
    UserRead,
    UserRoleResponse,
    UserRoleUpdate,
)
from shopstar.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])

repo = UserRepository()
service = UserService(repo, CartRepository())


# -------- Admin operations --------


@router.get(
    "/admin/all",
    response_model=UserListResponse,
    dependencies=[Depends(require_admin)],
)
def list_users(
    search: str | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    session: Session = Depends(get_session),
):
    """
    List users, newest first. `search` matches name or email.

    Auth:
      - Admin only.
    """
    users = service.list_users(session, search=search, skip=skip, limit=limit)
    return UserListResponse(
        count=len(users),
        users=[UserRead.model_validate(u) for u in users],
    )


@router.put(
    "/{user_id}/role",
    response_model=UserRoleResponse,
    dependencies=[Depends(require_admin)],
)
def update_user_role(
    user_id: uuid.UUID,
    payload: UserRoleUpdate,
    session: Session = Depends(get_session),
):
    """
    Change a user's role.

    Auth:
      - Admin only. The last admin cannot be demoted.
    """
    user = service.update_role(session, user_id, payload)
    return UserRoleResponse(
        user=UserRead.model_validate(user),
        message="User role updated successfully",
    )
