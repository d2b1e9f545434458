# shopstar/services/cart_service.py
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException, status
from sqlmodel import Session

from shopstar.models.cart import Cart, CartItem
from shopstar.models.product import Product
from shopstar.repositories.cart_repo import CartRepository
from shopstar.repositories.product_repo import ProductRepository
from shopstar.schemas.cart import (
    CartItemCreate,
    CartItemUpdate,
    CartItemRead,
    CartProductSummary,
    CartSummary,
)
from shopstar.schemas.product import InventoryRead


def _has_stock_for(product: Product, quantity: int) -> bool:
    if not product.track_quantity:
        return True
    return product.inventory_quantity >= quantity


class CartService:
    """
    Business logic for cart operations.

    Responsibilities:
      - lazily create the user's cart
      - validate product existence and active status
      - enforce quantity <= available inventory for tracked products
      - merge repeated adds of the same (product, variant) into one line
      - compute line totals and cart totals from live product prices
    """

    def __init__(self, cart_repo: CartRepository, product_repo: ProductRepository):
        self.cart_repo = cart_repo
        self.product_repo = product_repo

    # ---- internal helpers ----

    def get_or_create_cart(self, session: Session, user_id: uuid.UUID) -> Cart:
        cart = self.cart_repo.get_for_user(session, user_id)
        if cart is None:
            cart = self.cart_repo.create_for_user(session, user_id)
        return cart

    def _get_valid_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.product_repo.get_by_id(session, product_id)
        if not product:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not found",
            )
        if product.status != "active":
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Product is not available",
            )
        return product

    @staticmethod
    def _ensure_stock(product: Product, quantity: int) -> None:
        if not _has_stock_for(product, quantity):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Only {product.inventory_quantity} items available",
            )

    @staticmethod
    def _find_line(
        items: list[CartItem],
        product_id: uuid.UUID,
        variant: dict[str, Any] | None,
    ) -> CartItem | None:
        # Carts are small; a linear scan keeps variant equality simple.
        for item in items:
            if item.product_id == product_id and (item.variant or None) == (variant or None):
                return item
        return None

    def _get_line(self, session: Session, cart: Cart, item_id: uuid.UUID) -> CartItem:
        item = self.cart_repo.get_item(session, cart.id, item_id)
        if not item:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Item not found in cart",
            )
        return item

    # ---- public operations ----

    def get_cart_summary(
        self,
        session: Session,
        user_id: uuid.UUID,
    ) -> CartSummary:
        """
        Return full cart summary:
          - list of CartItemRead (with line_total from the current price)
          - item_count (sum of quantities)
          - total

        Lines whose product no longer exists are returned with
        product=None and contribute nothing to the totals.
        """
        cart = self.get_or_create_cart(session, user_id)
        items = self.cart_repo.list_items(session, cart.id)

        item_reads: list[CartItemRead] = []
        item_count = 0
        total = 0.0

        for it in items:
            product = self.product_repo.get_by_id(session, it.product_id)
            item_count += it.quantity

            summary = None
            line_total = 0.0
            if product is not None:
                line_total = round(product.price * it.quantity, 2)
                total += line_total
                summary = CartProductSummary(
                    id=product.id,
                    name=product.name,
                    price=product.price,
                    images=list(product.images or []),
                    inventory=InventoryRead(
                        quantity=product.inventory_quantity,
                        low_stock_threshold=product.low_stock_threshold,
                        track_quantity=product.track_quantity,
                    ),
                    status=product.status,
                )

            item_reads.append(
                CartItemRead(
                    id=it.id,
                    product=summary,
                    quantity=it.quantity,
                    variant=it.variant,
                    line_total=line_total,
                    added_at=it.added_at,
                )
            )

        return CartSummary(
            items=item_reads,
            item_count=item_count,
            total=round(total, 2),
        )

    def add_to_cart(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: CartItemCreate,
    ) -> CartSummary:
        """
        Add a product to the user's cart.

        Rules:
          - product must exist and be active
          - requested quantity (plus what is already in the line) must be
            available when the product tracks inventory
          - the same product with an equal variant increments one line
        """
        product = self._get_valid_product(session, payload.product_id)
        self._ensure_stock(product, payload.quantity)

        cart = self.get_or_create_cart(session, user_id)
        existing = self._find_line(
            self.cart_repo.list_items(session, cart.id),
            payload.product_id,
            payload.variant,
        )

        if existing:
            new_qty = existing.quantity + payload.quantity
            self._ensure_stock(product, new_qty)
            existing.quantity = new_qty
            existing.added_at = datetime.now(timezone.utc)
            self.cart_repo.touch(session, cart)
            self.cart_repo.update_item(session, existing)
        else:
            item = CartItem(
                cart_id=cart.id,
                product_id=payload.product_id,
                quantity=payload.quantity,
                variant=payload.variant,
            )
            self.cart_repo.touch(session, cart)
            self.cart_repo.create_item(session, item)

        return self.get_cart_summary(session, user_id)

    def update_quantity(
        self,
        session: Session,
        user_id: uuid.UUID,
        item_id: uuid.UUID,
        payload: CartItemUpdate,
    ) -> CartSummary:
        """
        Set the quantity of a cart line.

        If quantity exceeds available inventory => 400.
        """
        cart = self.get_or_create_cart(session, user_id)
        item = self._get_line(session, cart, item_id)

        product = self.product_repo.get_by_id(session, item.product_id)
        if product is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not found",
            )
        self._ensure_stock(product, payload.quantity)

        item.quantity = payload.quantity
        self.cart_repo.touch(session, cart)
        self.cart_repo.update_item(session, item)

        return self.get_cart_summary(session, user_id)

    def remove_item(
        self,
        session: Session,
        user_id: uuid.UUID,
        item_id: uuid.UUID,
    ) -> CartSummary:
        """
        Remove a line from the cart and return the updated summary.
        """
        cart = self.get_or_create_cart(session, user_id)
        item = self._get_line(session, cart, item_id)

        self.cart_repo.touch(session, cart)
        self.cart_repo.delete_item(session, item)
        return self.get_cart_summary(session, user_id)

    def clear_cart(
        self,
        session: Session,
        user_id: uuid.UUID,
    ) -> CartSummary:
        """
        Clear all items from the cart and return an empty summary.
        """
        cart = self.get_or_create_cart(session, user_id)
        self.cart_repo.clear_items(session, cart.id)
        self.cart_repo.touch(session, cart)
        session.commit()
        return CartSummary(items=[], item_count=0, total=0.0)
