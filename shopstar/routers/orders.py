# shopstar/routers/orders.py
import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from shopstar.core.auth import get_current_user, require_admin
from shopstar.database import get_session
from shopstar.models.user import User
from shopstar.schemas.order import (
    AdminOrderListResponse,
    ConfirmPaymentRequest,
    MessageResponse,
    OrderCreate,
    OrderCreatedResponse,
    OrderListResponse,
    OrderRead,
    OrderResponse,
    OrderStatus,
    OrderStatusUpdate,
    PaymentStatus,
)
from shopstar.services.order_service import OrderService, get_order_service

router = APIRouter(prefix="/orders", tags=["Orders"])


# -------- User-facing endpoints --------


@router.post(
    "",
    response_model=OrderCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_order(
    payload: OrderCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """
    Create an order from the current user's cart.

    Returns the payment client secret when a gateway is configured.
    """
    order, client_secret = service.create_order(session, current_user, payload)
    message = (
        "Order created successfully. Please complete payment."
        if client_secret
        else "Order created successfully. Payment will need to be processed manually."
    )
    return OrderCreatedResponse(order=order, client_secret=client_secret, message=message)


@router.post("/{order_id}/confirm-payment", response_model=OrderResponse)
def confirm_payment(
    order_id: uuid.UUID,
    payload: ConfirmPaymentRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """
    Confirm a completed payment for the caller's order.
    Calling it again after success is harmless.
    """
    order, message = service.confirm_payment(
        session, current_user, order_id, payload.payment_intent_id
    )
    return OrderResponse(order=order, message=message)


@router.get("", response_model=OrderListResponse)
def list_my_orders(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """
    List current user's orders, newest first.
    """
    return service.list_my_orders(session, current_user)


# -------- Admin endpoints --------
# Declared before /{order_id} so "admin" is not parsed as an id.


@router.get(
    "/admin/all",
    response_model=AdminOrderListResponse,
    dependencies=[Depends(require_admin)],
)
def list_all_orders(
    status_filter: OrderStatus | None = Query(None, alias="status"),
    payment_status: PaymentStatus | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: Session = Depends(get_session),
    service: OrderService = Depends(get_order_service),
):
    """
    List all orders (admin only), optionally filtered by status and
    payment status.
    """
    return service.list_all_orders(
        session,
        status_filter=status_filter,
        payment_status=payment_status,
        page=page,
        limit=limit,
    )


@router.put(
    "/{order_id}/status",
    response_model=OrderResponse,
    dependencies=[Depends(require_admin)],
)
def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    session: Session = Depends(get_session),
    service: OrderService = Depends(get_order_service),
):
    """
    Update order status (admin only).
    """
    order = service.update_status(session, order_id, payload)
    return OrderResponse(order=order, message="Order status updated")


# -------- Single order --------


@router.get("/{order_id}", response_model=OrderRead)
def get_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """
    Get a single order. Owner or admin only.
    """
    return service.get_order(session, current_user, order_id)


@router.delete("/{order_id}", response_model=MessageResponse)
def cancel_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """
    Cancel (delete) an unpaid order that has not shipped.
    """
    service.cancel_order(session, current_user, order_id)
    return MessageResponse(message="Order cancelled successfully")
