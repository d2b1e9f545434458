# shopstar/routers/categories.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from shopstar.core.auth import require_admin
from shopstar.database import get_session
from shopstar.repositories.category_repo import CategoryRepository
from shopstar.schemas.category import (
    CategoryCreate,
    CategoryDetail,
    CategoryListResponse,
    CategoryRead,
    CategoryUpdate,
)
from shopstar.services.category_service import CategoryService

router = APIRouter(prefix="/categories", tags=["Categories"])

repo = CategoryRepository()
service = CategoryService(repo)


# -------- Public endpoints --------


@router.get("", response_model=CategoryListResponse)
def list_categories(session: Session = Depends(get_session)):
    """
    Active categories sorted by name.
    """
    categories = service.list_categories(session)
    return CategoryListResponse(count=len(categories), categories=categories)


@router.get("/{category_id}", response_model=CategoryDetail)
def get_category(
    category_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    return service.get_category_detail(session, category_id)


# -------- Admin endpoints --------


@router.post(
    "",
    response_model=CategoryRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_category(
    payload: CategoryCreate,
    session: Session = Depends(get_session),
):
    """
    Create a category (admin only). Slug defaults to the slugified name.
    """
    category = service.create_category(session, payload)
    return service.to_read(session, category)


@router.put(
    "/{category_id}",
    response_model=CategoryRead,
    dependencies=[Depends(require_admin)],
)
def update_category(
    category_id: uuid.UUID,
    payload: CategoryUpdate,
    session: Session = Depends(get_session),
):
    category = service.update_category(session, category_id, payload)
    return service.to_read(session, category)


@router.delete(
    "/{category_id}",
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
def delete_category(
    category_id: uuid.UUID,
    session: Session = Depends(get_session),
) -> dict[str, str]:
    """
    Deactivate a category (admin only).
    """
    service.delete_category(session, category_id)
    return {"message": "Category deleted successfully"}
