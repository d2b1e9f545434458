# shopstar/repositories/category_repo.py
import uuid

from sqlmodel import Session, select

from shopstar.models.category import Category


class CategoryRepository:
    """
    Data access layer for Category.
    """

    def get_by_id(self, session: Session, category_id: uuid.UUID) -> Category | None:
        return session.get(Category, category_id)

    def get_by_slug(self, session: Session, slug: str) -> Category | None:
        stmt = select(Category).where(Category.slug == slug)
        return session.exec(stmt).first()

    def get_by_name(self, session: Session, name: str) -> Category | None:
        stmt = select(Category).where(Category.name == name)
        return session.exec(stmt).first()

    def list_active(self, session: Session) -> list[Category]:
        stmt = (
            select(Category)
            .where(Category.is_active == True)  # noqa: E712
            .order_by(Category.name)
        )
        return list(session.exec(stmt).all())

    def list_children(self, session: Session, parent_id: uuid.UUID) -> list[Category]:
        stmt = (
            select(Category)
            .where(Category.parent_id == parent_id, Category.is_active == True)  # noqa: E712
            .order_by(Category.name)
        )
        return list(session.exec(stmt).all())

    def create(self, session: Session, category: Category) -> Category:
        session.add(category)
        session.commit()
        session.refresh(category)
        return category

    def update(self, session: Session, category: Category) -> Category:
        session.add(category)
        session.commit()
        session.refresh(category)
        return category
