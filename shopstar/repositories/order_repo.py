# shopstar/repositories/order_repo.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import delete, func, update
from sqlmodel import Session, select

from shopstar.models.order import Order, OrderItem


class OrderRepository:
    """
    Data access layer for orders and order_items.

    NOTE:
      - No commits here; order creation and payment confirmation are
        multi-step. The service is responsible for calling session.commit().
    """

    # ---- Orders ----

    def list_for_customer(
        self,
        session: Session,
        customer_id: uuid.UUID,
    ) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.customer_id == customer_id)
            .order_by(Order.created_at.desc())
        )
        return list(session.exec(stmt).all())

    def list_all(
        self,
        session: Session,
        status: str | None = None,
        payment_status: str | None = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[Order], int]:
        stmt = select(Order)
        count_stmt = select(func.count()).select_from(Order)
        if status:
            stmt = stmt.where(Order.status == status)
            count_stmt = count_stmt.where(Order.status == status)
        if payment_status:
            stmt = stmt.where(Order.payment_status == payment_status)
            count_stmt = count_stmt.where(Order.payment_status == payment_status)

        stmt = stmt.order_by(Order.created_at.desc()).offset(skip).limit(limit)
        orders = list(session.exec(stmt).all())
        total = int(session.exec(count_stmt).one() or 0)
        return orders, total

    def get_by_id(self, session: Session, order_id: uuid.UUID) -> Order | None:
        return session.get(Order, order_id)

    def get_by_order_number(self, session: Session, order_number: str) -> Order | None:
        stmt = select(Order).where(Order.order_number == order_number)
        return session.exec(stmt).first()

    def get_by_payment_intent(self, session: Session, intent_id: str) -> Order | None:
        stmt = select(Order).where(Order.payment_intent_id == intent_id)
        return session.exec(stmt).first()

    def create_order(self, session: Session, order: Order) -> Order:
        """
        Insert an Order without committing, but ensure id is populated.
        """
        session.add(order)
        session.flush()  # Assign PK
        session.refresh(order)
        return order

    def update_order(self, session: Session, order: Order) -> Order:
        order.updated_at = datetime.now(timezone.utc)
        session.add(order)
        session.flush()
        session.refresh(order)
        return order

    def delete_order(self, session: Session, order: Order) -> None:
        session.exec(delete(OrderItem).where(OrderItem.order_id == order.id))  # type: ignore[call-overload]
        session.delete(order)
        session.flush()

    # ---- Payment state (compare-and-set) ----

    def transition_payment_status(
        self,
        session: Session,
        order_id: uuid.UUID,
        *,
        expected: str | tuple[str, ...],
        new: str,
        status: str | None = None,
    ) -> bool:
        """
        Move payment_status from `expected` (one value or several) to `new`
        in one UPDATE.

        Only one concurrent caller can win: the WHERE clause re-checks
        the current value inside the database, so a second caller sees
        rowcount 0.

        Returns:
            True if this call performed the transition.
        """
        values: dict = {
            "payment_status": new,
            "updated_at": datetime.now(timezone.utc),
        }
        if status is not None:
            values["status"] = status

        allowed = (expected,) if isinstance(expected, str) else expected

        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.payment_status.in_(allowed))  # type: ignore[attr-defined]
            .values(**values)
        )
        result = session.exec(stmt)  # type: ignore[call-overload]
        return result.rowcount == 1

    # ---- Order items ----

    def list_items_for_order(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[OrderItem]:
        stmt = select(OrderItem).where(OrderItem.order_id == order_id)
        return list(session.exec(stmt).all())

    def create_items(
        self,
        session: Session,
        items: list[OrderItem],
    ) -> list[OrderItem]:
        session.add_all(items)
        session.flush()
        for item in items:
            session.refresh(item)
        return items
