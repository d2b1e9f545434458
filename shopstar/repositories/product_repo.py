# shopstar/repositories/product_repo.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, cast, func, or_, update
from sqlmodel import Session, select

from shopstar.models.product import Product


class ProductRepository:
    """
    Data access layer for Product.

    - Pure DB operations (CRUD + queries).
    - No FastAPI, no business logic.
    """

    def get_by_id(self, session: Session, product_id: uuid.UUID) -> Product | None:
        return session.get(Product, product_id)

    def get_by_sku(self, session: Session, sku: str) -> Product | None:
        stmt = select(Product).where(Product.sku == sku)
        return session.exec(stmt).first()

    @staticmethod
    def _apply_filters(
        stmt,
        *,
        category_id: uuid.UUID | None,
        search: str | None,
        min_price: float | None,
        max_price: float | None,
        status: str | None,
        featured: bool | None,
    ):
        if category_id is not None:
            stmt = stmt.where(Product.category_id == category_id)
        if status:
            stmt = stmt.where(Product.status == status)
        if featured:
            stmt = stmt.where(Product.featured == True)  # noqa: E712
        if min_price is not None:
            stmt = stmt.where(Product.price >= min_price)
        if max_price is not None:
            stmt = stmt.where(Product.price <= max_price)
        if search:
            pattern = f"%{search.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Product.name).like(pattern),
                    func.lower(Product.description).like(pattern),
                    func.lower(cast(Product.tags, String)).like(pattern),
                )
            )
        return stmt

    def search(
        self,
        session: Session,
        *,
        category_id: uuid.UUID | None = None,
        search: str | None = None,
        min_price: float | None = None,
        max_price: float | None = None,
        status: str | None = "active",
        featured: bool | None = None,
        skip: int = 0,
        limit: int = 12,
    ) -> tuple[list[Product], int]:
        """
        Filtered, paginated listing (newest first).

        Returns:
            (page of products, total number of matches)
        """
        filters = dict(
            category_id=category_id,
            search=search,
            min_price=min_price,
            max_price=max_price,
            status=status,
            featured=featured,
        )
        stmt = self._apply_filters(select(Product), **filters)
        stmt = stmt.order_by(Product.created_at.desc()).offset(skip).limit(limit)
        products = list(session.exec(stmt).all())

        count_stmt = self._apply_filters(
            select(func.count()).select_from(Product), **filters
        )
        total = int(session.exec(count_stmt).one() or 0)
        return products, total

    def create(self, session: Session, product: Product) -> Product:
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    def update(self, session: Session, product: Product) -> Product:
        product.updated_at = datetime.now(timezone.utc)
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    # ----- Inventory -----

    def decrement_inventory(
        self,
        session: Session,
        product_id: uuid.UUID,
        quantity: int,
    ) -> bool:
        """
        Atomically take `quantity` units out of stock.

        The UPDATE only matches when the product tracks quantity and has
        enough units, so stock never goes negative. No commit here; the
        caller owns the transaction.

        Returns:
            True if the row was updated.
        """
        stmt = (
            update(Product)
            .where(
                Product.id == product_id,
                Product.track_quantity == True,  # noqa: E712
                Product.inventory_quantity >= quantity,
            )
            .values(
                inventory_quantity=Product.inventory_quantity - quantity,
                updated_at=datetime.now(timezone.utc),
            )
        )
        result = session.exec(stmt)  # type: ignore[call-overload]
        return result.rowcount == 1

    def increment_sales_count(
        self,
        session: Session,
        product_id: uuid.UUID,
        quantity: int,
    ) -> None:
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(sales_count=Product.sales_count + quantity)
        )
        session.exec(stmt)  # type: ignore[call-overload]

    def increment_views(self, session: Session, product_id: uuid.UUID) -> None:
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(views=Product.views + 1)
        )
        session.exec(stmt)  # type: ignore[call-overload]
        session.commit()
