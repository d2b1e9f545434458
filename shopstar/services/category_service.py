# shopstar/services/category_service.py
import re
import uuid
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlmodel import Session

from shopstar.models.category import Category
from shopstar.repositories.category_repo import CategoryRepository
from shopstar.schemas.category import (
    CategoryCreate,
    CategoryDetail,
    CategoryRead,
    CategorySummary,
    CategoryUpdate,
)


class CategoryService:
    """
    Business logic for product categories.

    Responsibilities:
      - slug generation and name/slug uniqueness
      - parent validation (must exist, never itself)
      - soft delete via is_active
    """

    def __init__(self, repo: CategoryRepository):
        self.repo = repo

    # ----- Helpers -----

    @staticmethod
    def _slugify(value: str) -> str:
        """
        Very small slugify helper:
          - lowercase
          - replace non-alphanumeric with '-'
          - collapse multiple '-'
          - strip leading/trailing '-'
        """
        value = value.lower()
        value = re.sub(r"[^a-z0-9]+", "-", value)
        value = re.sub(r"-{2,}", "-", value)
        return value.strip("-")

    def _summary(self, session: Session, category_id: uuid.UUID | None) -> CategorySummary | None:
        if category_id is None:
            return None
        parent = self.repo.get_by_id(session, category_id)
        if parent is None:
            return None
        return CategorySummary(id=parent.id, name=parent.name, slug=parent.slug)

    def to_read(self, session: Session, category: Category) -> CategoryRead:
        return CategoryRead(
            id=category.id,
            name=category.name,
            slug=category.slug,
            description=category.description,
            image=category.image,
            parent=self._summary(session, category.parent_id),
            is_active=category.is_active,
            created_at=category.created_at,
        )

    def _ensure_unique(
        self,
        session: Session,
        *,
        name: str | None,
        slug: str | None,
        exclude_id: uuid.UUID | None = None,
    ) -> None:
        if slug is not None:
            existing = self.repo.get_by_slug(session, slug)
            if existing is not None and existing.id != exclude_id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Category with this slug already exists",
                )
        if name is not None:
            existing = self.repo.get_by_name(session, name)
            if existing is not None and existing.id != exclude_id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Category with this name already exists",
                )

    def _ensure_parent(self, session: Session, parent_id: uuid.UUID) -> None:
        if self.repo.get_by_id(session, parent_id) is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Parent category not found",
            )

    # ----- Operations -----

    def list_categories(self, session: Session) -> list[CategoryRead]:
        return [self.to_read(session, c) for c in self.repo.list_active(session)]

    def get_category(self, session: Session, category_id: uuid.UUID) -> Category:
        category = self.repo.get_by_id(session, category_id)
        if not category:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Category not found",
            )
        return category

    def get_category_detail(self, session: Session, category_id: uuid.UUID) -> CategoryDetail:
        category = self.get_category(session, category_id)
        children = self.repo.list_children(session, category.id)
        return CategoryDetail(
            **self.to_read(session, category).model_dump(),
            subcategories=[
                CategorySummary(id=c.id, name=c.name, slug=c.slug) for c in children
            ],
        )

    def create_category(self, session: Session, payload: CategoryCreate) -> Category:
        slug = payload.slug or self._slugify(payload.name)
        if not slug:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Could not derive a slug from the category name",
            )

        self._ensure_unique(session, name=payload.name, slug=slug)
        if payload.parent_id is not None:
            self._ensure_parent(session, payload.parent_id)

        category = Category(
            name=payload.name,
            slug=slug,
            description=payload.description,
            image=payload.image or "",
            parent_id=payload.parent_id,
        )
        return self.repo.create(session, category)

    def update_category(
        self,
        session: Session,
        category_id: uuid.UUID,
        payload: CategoryUpdate,
    ) -> Category:
        """
        Partial update. Same uniqueness rules as create; a category
        cannot become its own parent.
        """
        category = self.get_category(session, category_id)
        data = payload.model_dump(exclude_unset=True)

        if "slug" in data and data["slug"] is not None:
            data["slug"] = self._slugify(data["slug"])

        self._ensure_unique(
            session,
            name=data.get("name"),
            slug=data.get("slug"),
            exclude_id=category.id,
        )

        parent_id = data.get("parent_id")
        if parent_id is not None:
            if parent_id == category.id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Category cannot be its own parent",
                )
            self._ensure_parent(session, parent_id)

        for key, value in data.items():
            if value is None and key in ("name", "slug", "is_active"):
                continue
            if key == "image" and value is None:
                value = ""
            setattr(category, key, value)

        category.updated_at = datetime.now(timezone.utc)
        return self.repo.update(session, category)

    def delete_category(self, session: Session, category_id: uuid.UUID) -> None:
        """
        Soft delete: mark the category inactive.
        """
        category = self.get_category(session, category_id)
        category.is_active = False
        category.updated_at = datetime.now(timezone.utc)
        self.repo.update(session, category)
