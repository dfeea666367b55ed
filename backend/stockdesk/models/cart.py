from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Cart(db.Model):
    """One shopping cart per user. Drained into an invoice at checkout."""
    __tablename__ = "carts"
    __table_args__ = (
        db.UniqueConstraint("user_id", name="uq_carts_user"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    # Always sum(quantity * unit_price_cents) over lines
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    lines = db.relationship(
        "CartLine",
        backref="cart",
        lazy=True,
        order_by="CartLine.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "total_cents": self.total_cents,
            "item_count": sum(line.quantity for line in self.lines),
            "lines": [line.to_dict() for line in self.lines],
            "updated_at": to_utc_z(self.updated_at),
        }


class CartLine(db.Model):
    """A product in a cart, with the unit price captured when it was added."""
    __tablename__ = "cart_lines"
    __table_args__ = (
        db.UniqueConstraint("cart_id", "product_id", name="uq_cart_lines_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(db.Integer, db.ForeignKey("carts.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }
