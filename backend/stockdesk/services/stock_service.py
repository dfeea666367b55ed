# Overview: Service-layer operations for product stock; atomic conditional updates.

"""
Stock adjustment protocol (authoritative)

- A sale decrements stock and increments units_sold by the same quantity in
  ONE conditional UPDATE guarded by `stock >= quantity`. The affected row
  count is the only race-safe answer to "was there enough stock?"; callers
  must never read stock first and write it afterwards.
- A reversal restores stock and lowers units_sold (clamped at zero) in one
  UPDATE. A missing product row is a no-op.
- None of these functions commit. The caller owns the transaction.
"""

from __future__ import annotations

from sqlalchemy import case, inspect, update

from ..extensions import db
from ..models import Product


def _update(product_id: int):
    # Plain UPDATE; in-session Product objects are expired by _expire_cached.
    return update(Product).where(Product.id == product_id).execution_options(synchronize_session=False)


def _expire_cached(product_id: int) -> None:
    for obj in list(db.session.identity_map.values()):
        if isinstance(obj, Product) and inspect(obj).identity == (product_id,):
            db.session.expire(obj)


def conditional_decrement_stock(product_id: int, quantity: int) -> bool:
    """
    Remove `quantity` units from stock if and only if enough are on hand.

    Only active products can be sold. Returns True when the row was updated,
    False when stock was insufficient or the product is missing or inactive
    (use product_exists(..., active_only=True) to tell them apart).
    """
    stmt = (
        _update(product_id)
        .where(Product.is_active.is_(True))
        .where(Product.stock >= quantity)
        .values(
            stock=Product.stock - quantity,
            units_sold=Product.units_sold + quantity,
            version_id=Product.version_id + 1,
        )
    )
    result = db.session.execute(stmt)
    _expire_cached(product_id)
    return result.rowcount == 1


def restore_stock(product_id: int, quantity: int) -> None:
    """Return `quantity` units to stock. No-op if the product is gone."""
    stmt = (
        _update(product_id)
        .values(
            stock=Product.stock + quantity,
            units_sold=case(
                (Product.units_sold >= quantity, Product.units_sold - quantity),
                else_=0,
            ),
            version_id=Product.version_id + 1,
        )
    )
    db.session.execute(stmt)
    _expire_cached(product_id)


def product_exists(product_id: int, active_only: bool = False) -> bool:
    query = db.session.query(Product.id).filter_by(id=product_id)
    if active_only:
        query = query.filter(Product.is_active.is_(True))
    return query.first() is not None


def available_stock(product_id: int) -> int | None:
    """Current stock as stored, or None if the product is missing. Informational only."""
    row = db.session.query(Product.stock).filter_by(id=product_id).first()
    return row[0] if row else None
