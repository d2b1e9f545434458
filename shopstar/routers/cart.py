# shopstar/routers/cart.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from shopstar.core.auth import get_current_user
from shopstar.database import get_session
from shopstar.models.user import User
from shopstar.repositories.cart_repo import CartRepository
from shopstar.repositories.product_repo import ProductRepository
from shopstar.schemas.cart import CartSummary, CartItemCreate, CartItemUpdate
from shopstar.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["Cart"])

cart_repo = CartRepository()
product_repo = ProductRepository()
service = CartService(cart_repo, product_repo)


@router.get("", response_model=CartSummary)
def get_my_cart(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """
    Get current user's cart summary (created on first access).
    """
    return service.get_cart_summary(session, current_user.id)


@router.post("", response_model=CartSummary)
def add_to_cart(
    payload: CartItemCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """
    Add product to the current user's cart.

    Returns the updated cart summary.
    """
    return service.add_to_cart(session, current_user.id, payload)


@router.put("/{item_id}", response_model=CartSummary)
def update_cart_item(
    item_id: uuid.UUID,
    payload: CartItemUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """
    Update quantity of a cart line.
    """
    return service.update_quantity(session, current_user.id, item_id, payload)


@router.delete("/{item_id}", response_model=CartSummary)
def remove_cart_item(
    item_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return service.remove_item(session, current_user.id, item_id)


@router.delete("", response_model=CartSummary)
def clear_cart(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """
    Remove every line; the cart itself is kept.
    """
    return service.clear_cart(session, current_user.id)
