# Overview: Service-layer operations for the shopping cart.

"""
Cart Service

One cart per user. Lines capture the product price at the time they are
added; checkout (invoice_service) drains the cart exactly once.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Cart, CartLine, Product
from .concurrency import run_with_retry


class CartError(Exception):
    """Raised for cart operation errors."""
    def __init__(self, message: str, details: dict | None = None, http_status: int = 400):
        super().__init__(message)
        self.details = details or {}
        self.http_status = http_status


def _recalculate_total(cart: Cart) -> None:
    cart.total_cents = sum(line.quantity * line.unit_price_cents for line in cart.lines)


def get_or_create_cart(user_id: int) -> Cart:
    cart = db.session.query(Cart).filter_by(user_id=user_id).first()
    if cart is None:
        cart = Cart(user_id=user_id, total_cents=0)
        db.session.add(cart)
        db.session.flush()
    return cart


def read_cart(owner_id: int) -> Cart | None:
    """Return the user's cart (lines ordered by insertion) without creating one."""
    return db.session.query(Cart).filter_by(user_id=owner_id).first()


def add_item(user_id: int, product_id: int, quantity: int) -> Cart:
    """
    Add a product to the cart, merging with an existing line for it.

    Stock is checked against the merged quantity so the cart never asks for
    more than is currently on hand. The check is advisory: checkout performs
    the authoritative conditional decrement.
    """
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
        raise CartError("quantity must be an integer greater than 0")

    def _op():
        product = db.session.query(Product).filter_by(id=product_id).first()
        if not product or not product.is_active:
            raise CartError("Product not found", http_status=404)

        cart = read_cart(user_id)
        line = None
        if cart is not None:
            line = next((l for l in cart.lines if l.product_id == product_id), None)
        requested = quantity + (line.quantity if line else 0)

        if product.stock < requested:
            raise CartError(
                "Insufficient stock",
                details={
                    "product_id": product_id,
                    "requested_quantity": requested,
                    "available": product.stock,
                },
                http_status=409,
            )

        if cart is None:
            cart = get_or_create_cart(user_id)

        if line is None:
            line = CartLine(product_id=product_id, quantity=quantity, unit_price_cents=product.price_cents)
            cart.lines.append(line)
        else:
            line.quantity = requested
            line.unit_price_cents = product.price_cents

        _recalculate_total(cart)
        db.session.commit()
        return cart

    return run_with_retry(_op)


def remove_item(user_id: int, product_id: int) -> Cart:
    """Remove a product line from the cart entirely."""
    def _op():
        cart = read_cart(user_id)
        line = None
        if cart is not None:
            line = next((l for l in cart.lines if l.product_id == product_id), None)
        if line is None:
            raise CartError("Product not found in cart", http_status=404)

        cart.lines.remove(line)
        _recalculate_total(cart)
        db.session.commit()
        return cart

    return run_with_retry(_op)


def clear_cart(owner_id: int) -> None:
    """
    Empty the cart and zero its total.

    Does not commit: checkout clears the cart inside its own transaction.
    """
    cart = read_cart(owner_id)
    if cart is None:
        return
    cart.lines.clear()
    cart.total_cents = 0
