# shopstar/services/order_service.py
import logging
import math
import random
import uuid
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from fastapi import HTTPException, Request, status
from sqlmodel import Session

from shopstar.core.config import Settings
from shopstar.core.payment_gateway import (
    PaymentGateway,
    PaymentGatewayError,
    WebhookEvent,
    normalize_payment_intent_id,
    to_minor_units,
)
from shopstar.models.order import Order, OrderItem
from shopstar.models.user import User
from shopstar.repositories.cart_repo import CartRepository
from shopstar.repositories.order_repo import OrderRepository
from shopstar.repositories.product_repo import ProductRepository
from shopstar.repositories.user_repo import UserRepository
from shopstar.schemas.order import (
    AdminOrderListResponse,
    OrderCreate,
    OrderItemRead,
    OrderListResponse,
    OrderRead,
    OrderStatusUpdate,
    ShippingAddress,
)
from shopstar.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

# Fixed tax rate (8%) and flat shipping fee
TAX_RATE = Decimal("0.08")
SHIPPING_FLAT = Decimal("5.99")

ORDER_NUMBER_ATTEMPTS = 10

# Statuses that notify the customer by email
NOTIFY_STATUSES = {"shipped", "delivered", "cancelled"}

# A declined attempt leaves the intent retryable, so a later success still counts.
PAYABLE_STATUSES = ("pending", "failed")


def _round_money(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def calculate_totals(subtotal: float | Decimal) -> tuple[float, float, float, float]:
    """
    Return (subtotal, tax, shipping, total), each rounded half-up to cents.

    tax   = subtotal * 8%
    total = subtotal + tax + shipping
    """
    sub = _round_money(Decimal(str(subtotal)))
    tax = _round_money(sub * TAX_RATE)
    total = _round_money(sub + tax + SHIPPING_FLAT)
    return float(sub), float(tax), float(SHIPPING_FLAT), float(total)


def generate_order_number(now: datetime | None = None) -> str:
    """
    Human-readable order number: ORD-YYYYMMDD-HHMMSS-NNNN.
    The 4-digit suffix is random; callers retry on collision.
    """
    now = now or datetime.now(timezone.utc)
    suffix = random.randint(0, 9999)
    return f"ORD-{now:%Y%m%d}-{now:%H%M%S}-{suffix:04d}"


def to_order_read(order: Order, items: list[OrderItem]) -> OrderRead:
    return OrderRead(
        id=order.id,
        order_number=order.order_number,
        customer_id=order.customer_id,
        items=[
            OrderItemRead(
                id=it.id,
                product_id=it.product_id,
                name=it.name,
                price=it.price,
                quantity=it.quantity,
                variant=it.variant,
                image=it.image,
                line_total=float(_round_money(Decimal(str(it.price)) * it.quantity)),
            )
            for it in items
        ],
        subtotal=order.subtotal,
        tax=order.tax,
        shipping=order.shipping,
        total=order.total,
        status=order.status,
        payment_status=order.payment_status,
        payment_intent_id=order.payment_intent_id,
        shipping_address=ShippingAddress(
            street=order.street,
            city=order.city,
            state=order.state,
            zip_code=order.zip_code,
            country=order.country,
        ),
        tracking_number=order.tracking_number,
        notes=order.notes,
        shipped_at=order.shipped_at,
        delivered_at=order.delivered_at,
        cancelled_at=order.cancelled_at,
        cancellation_reason=order.cancellation_reason,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


class OrderService:
    """
    Business logic for orders.

    Responsibilities:
      - Create order from cart (validate, snapshot, total, payment intent)
      - Confirm payment (client call or gateway webhook) exactly once
      - Apply paid side effects: inventory, sales count, cart, email
      - Admin status changes with timestamps and notifications
      - Customer cancellation of unpaid orders
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        cart_repo: CartRepository,
        product_repo: ProductRepository,
        user_repo: UserRepository,
        gateway: PaymentGateway | None,
        notifier: NotificationService,
        settings: Settings,
    ):
        self.order_repo = order_repo
        self.cart_repo = cart_repo
        self.product_repo = product_repo
        self.user_repo = user_repo
        self.gateway = gateway
        self.notifier = notifier
        self.settings = settings

    # -------- Helpers --------

    def _read(self, session: Session, order: Order) -> OrderRead:
        return to_order_read(order, self.order_repo.list_items_for_order(session, order.id))

    def _get_order(self, session: Session, order_id: uuid.UUID) -> Order:
        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )
        return order

    def _unique_order_number(self, session: Session) -> str:
        for _ in range(ORDER_NUMBER_ATTEMPTS):
            candidate = generate_order_number()
            if self.order_repo.get_by_order_number(session, candidate) is None:
                return candidate
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not allocate an order number, please retry",
        )

    def _require_gateway(self) -> PaymentGateway:
        if self.gateway is None:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Stripe not configured",
            )
        return self.gateway

    # -------- User-facing operations --------

    def create_order(
        self,
        session: Session,
        user: User,
        payload: OrderCreate,
    ) -> tuple[OrderRead, str | None]:
        """
        Convert the current user's cart into an Order.

        Steps:
          1. Load cart items; error if empty.
          2. For each line: product exists, is active, has stock.
          3. Snapshot lines and compute totals.
          4. Create the payment intent (when a gateway is configured).
          5. Persist Order + OrderItems with a unique order number.
          6. Annotate the intent with the order id (best effort).

        The cart is not touched here; it is cleared once payment succeeds.

        Returns:
            (order, client_secret or None)
        """
        # 1) Load cart
        cart = self.cart_repo.get_for_user(session, user.id)
        cart_items = self.cart_repo.list_items(session, cart.id) if cart else []
        if not cart_items:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cart is empty",
            )

        # 2) + 3) Validate and snapshot
        subtotal = Decimal("0")
        snapshots: list[dict[str, Any]] = []
        for ci in cart_items:
            product = self.product_repo.get_by_id(session, ci.product_id)
            if product is None or product.status != "active":
                name = product.name if product else "Unknown"
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Product {name} is no longer available",
                )

            if product.track_quantity and product.inventory_quantity < ci.quantity:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=(
                        f"Insufficient inventory for {product.name}. "
                        f"Only {product.inventory_quantity} available"
                    ),
                )

            subtotal += Decimal(str(product.price)) * ci.quantity
            snapshots.append(
                {
                    "product_id": product.id,
                    "name": product.name,
                    "price": product.price,
                    "quantity": ci.quantity,
                    "variant": ci.variant,
                    "image": (product.images or [""])[0],
                }
            )

        sub, tax, shipping, total = calculate_totals(subtotal)

        # 4) Payment intent before the order exists
        intent = None
        if self.gateway is not None:
            try:
                intent = self.gateway.create_payment_intent(
                    amount=to_minor_units(total),
                    currency=self.settings.PAYMENT_CURRENCY,
                    metadata={"user_id": str(user.id)},
                )
            except PaymentGatewayError as e:
                logger.error(f"Payment intent creation failed for user {user.id}: {e}")

        # 5) Persist
        address = payload.shipping_address
        order = Order(
            order_number=self._unique_order_number(session),
            customer_id=user.id,
            subtotal=sub,
            tax=tax,
            shipping=shipping,
            total=total,
            status="pending",
            payment_status="pending",
            payment_intent_id=intent.id if intent else None,
            street=address.street,
            city=address.city,
            state=address.state,
            zip_code=address.zip_code,
            country=address.country,
            notes=payload.notes or "",
        )
        order = self.order_repo.create_order(session, order)

        items = self.order_repo.create_items(
            session,
            [OrderItem(order_id=order.id, **snap) for snap in snapshots],
        )

        session.commit()
        session.refresh(order)
        logger.info(f"Created order {order.order_number} for user {user.id}")

        # 6) Link the intent to the order for webhook lookup
        if intent is not None and self.gateway is not None:
            try:
                self.gateway.update_payment_intent_metadata(
                    intent.id,
                    {
                        "order_id": str(order.id),
                        "order_number": order.order_number,
                        "user_id": str(user.id),
                    },
                )
            except PaymentGatewayError as e:
                logger.error(f"Failed to update payment intent metadata for {order.order_number}: {e}")

        return to_order_read(order, items), intent.client_secret if intent else None

    def confirm_payment(
        self,
        session: Session,
        user: User,
        order_id: uuid.UUID,
        payment_reference: str,
    ) -> tuple[OrderRead, str]:
        """
        Client-driven payment confirmation.

        Steps:
          1. Order exists and belongs to the caller.
          2. Gateway configured.
          3. Intent reference (id or client secret) matches this order.
          4. Intent has succeeded.
          5. Apply paid side effects (at most once per order).
        """
        order = self._get_order(session, order_id)
        if order.customer_id != user.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not authorized to access this order",
            )

        gateway = self._require_gateway()
        intent_id = normalize_payment_intent_id(payment_reference)

        if order.payment_intent_id and order.payment_intent_id != intent_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Payment intent does not belong to this order",
            )

        try:
            intent = gateway.retrieve_payment_intent(intent_id)
        except PaymentGatewayError as e:
            logger.error(f"Could not retrieve payment intent {intent_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Could not verify payment with the payment provider",
            )

        metadata_order = intent.metadata.get("order_id")
        if metadata_order and metadata_order != str(order.id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Payment intent does not belong to this order",
            )

        if intent.status != "succeeded":
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Payment not completed. Status: {intent.status}",
            )

        if order.payment_intent_id is None:
            order.payment_intent_id = intent.id
            self.order_repo.update_order(session, order)
            session.commit()

        applied = self._apply_payment_success(session, order)
        session.refresh(order)

        if applied:
            message = "Payment confirmed. Order is being processed."
        elif order.payment_status == "paid":
            message = "Payment already confirmed."
        else:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Payment cannot be confirmed. Status: {order.payment_status}",
            )
        return self._read(session, order), message

    def list_my_orders(self, session: Session, user: User) -> OrderListResponse:
        orders = self.order_repo.list_for_customer(session, user.id)
        return OrderListResponse(
            count=len(orders),
            orders=[self._read(session, o) for o in orders],
        )

    def get_order(self, session: Session, user: User, order_id: uuid.UUID) -> OrderRead:
        """
        Owner or admin only.
        """
        order = self._get_order(session, order_id)
        if order.customer_id != user.id and user.role != "admin":
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not authorized to access this order",
            )
        return self._read(session, order)

    def cancel_order(self, session: Session, user: User, order_id: uuid.UUID) -> None:
        """
        Customer cancellation: hard-deletes an unpaid, unshipped order.
        """
        order = self._get_order(session, order_id)
        if order.customer_id != user.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not authorized to cancel this order",
            )

        if order.payment_status == "paid":
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot cancel paid orders. Please contact support for refunds.",
            )

        if order.status in ("shipped", "delivered"):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot cancel shipped or delivered orders",
            )

        self.order_repo.delete_order(session, order)
        session.commit()
        logger.info(f"Order {order.order_number} cancelled by customer {user.id}")

    # -------- Admin operations --------

    def list_all_orders(
        self,
        session: Session,
        status_filter: str | None = None,
        payment_status: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> AdminOrderListResponse:
        orders, total = self.order_repo.list_all(
            session,
            status=status_filter,
            payment_status=payment_status,
            skip=(page - 1) * limit,
            limit=limit,
        )
        return AdminOrderListResponse(
            count=len(orders),
            total=total,
            page=page,
            pages=math.ceil(total / limit) if limit else 0,
            orders=[self._read(session, o) for o in orders],
        )

    def update_status(
        self,
        session: Session,
        order_id: uuid.UUID,
        payload: OrderStatusUpdate,
    ) -> OrderRead:
        """
        Set fulfilment status; stamps shipped_at / delivered_at /
        cancelled_at and emails the customer for those transitions.
        """
        order = self._get_order(session, order_id)
        now = datetime.now(timezone.utc)

        order.status = payload.status
        if payload.tracking_number:
            order.tracking_number = payload.tracking_number.strip()

        if payload.status == "shipped":
            order.shipped_at = now
        elif payload.status == "delivered":
            order.delivered_at = now
        elif payload.status == "cancelled":
            order.cancelled_at = now
            if payload.cancellation_reason:
                order.cancellation_reason = payload.cancellation_reason.strip()

        self.order_repo.update_order(session, order)
        session.commit()
        session.refresh(order)

        if payload.status in NOTIFY_STATUSES:
            customer = self.user_repo.get_by_id(session, order.customer_id)
            if customer is not None:
                self.notifier.send_order_status_update(order, customer, payload.status)

        return self._read(session, order)

    # -------- Payment events --------

    def handle_webhook_event(self, session: Session, event: WebhookEvent) -> None:
        """
        React to a verified gateway event. Unknown event types are
        acknowledged and ignored.
        """
        intent = event.data
        intent_id = intent.get("id")
        metadata = intent.get("metadata") or {}

        if event.type not in ("payment_intent.succeeded", "payment_intent.payment_failed"):
            logger.info(f"Unhandled webhook event type: {event.type}")
            return

        order = None
        order_ref = metadata.get("order_id")
        if order_ref:
            try:
                order = self.order_repo.get_by_id(session, uuid.UUID(order_ref))
            except ValueError:
                logger.warning(f"Webhook {event.id} carries a malformed order_id: {order_ref}")
        if order is None and intent_id:
            order = self.order_repo.get_by_payment_intent(session, intent_id)

        if order is None:
            logger.warning(f"Webhook {event.id}: no order for payment intent {intent_id}")
            return

        if event.type == "payment_intent.succeeded":
            if self._apply_payment_success(session, order):
                logger.info(f"Order {order.order_number} marked paid via webhook")
        else:
            failed = self.order_repo.transition_payment_status(
                session, order.id, expected="pending", new="failed"
            )
            session.commit()
            if failed:
                logger.info(f"Order {order.order_number} payment failed")

    def _apply_payment_success(self, session: Session, order: Order) -> bool:
        """
        Paid side effects, shared by confirm_payment and the webhook.

        Only the caller whose pending|failed -> paid update hits the row runs
        the rest, so inventory and sales are adjusted once per order. A
        failed attempt can still be retried on the same intent and succeed.

        Returns:
            True if this call performed the transition.
        """
        won = self.order_repo.transition_payment_status(
            session,
            order.id,
            expected=PAYABLE_STATUSES,
            new="paid",
            status="processing",
        )
        if not won:
            session.rollback()
            return False

        items = self.order_repo.list_items_for_order(session, order.id)
        for item in items:
            product = self.product_repo.get_by_id(session, item.product_id)
            if product is None:
                logger.warning(f"Order {order.order_number}: product {item.product_id} no longer exists")
                continue
            if product.track_quantity and not self.product_repo.decrement_inventory(
                session, item.product_id, item.quantity
            ):
                logger.warning(
                    f"Order {order.order_number}: insufficient inventory for "
                    f"{item.name} (requested {item.quantity})"
                )
            self.product_repo.increment_sales_count(session, item.product_id, item.quantity)

        cart = self.cart_repo.get_for_user(session, order.customer_id)
        if cart is not None:
            self.cart_repo.clear_items(session, cart.id)
            self.cart_repo.touch(session, cart)

        session.commit()
        session.refresh(order)

        customer = self.user_repo.get_by_id(session, order.customer_id)
        if customer is not None:
            self.notifier.send_order_confirmation(order, customer, items)

        return True


# -------- Dependency --------

_order_repo = OrderRepository()
_cart_repo = CartRepository()
_product_repo = ProductRepository()
_user_repo = UserRepository()


def get_order_service(request: Request) -> OrderService:
    """
    FastAPI dependency wiring the order workflow to the app's gateway,
    notifier and settings.
    """
    state = request.app.state
    return OrderService(
        _order_repo,
        _cart_repo,
        _product_repo,
        _user_repo,
        gateway=state.payment_gateway,
        notifier=state.notifier,
        settings=state.settings,
    )
