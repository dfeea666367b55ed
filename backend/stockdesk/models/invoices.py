from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

INVOICE_ACTIVE = "ACTIVE"
INVOICE_VOIDED = "VOIDED"
INVOICE_STATUSES = (INVOICE_ACTIVE, INVOICE_VOIDED)


class Invoice(db.Model):
    """
    Invoice document produced by checkout.

    LIFECYCLE: ACTIVE -> VOIDED (terminal). Only ACTIVE invoices accept line
    replacement; voiding only records void metadata.

    total_cents is derived from lines on every mutation and never taken from
    client input.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_owner_status_created", "owner_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=INVOICE_ACTIVE, index=True)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Void audit trail
    voided_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    void_reason = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    owner = db.relationship("User", foreign_keys=[owner_id], backref=db.backref("invoices", lazy=True))
    lines = db.relationship(
        "InvoiceLine",
        backref="invoice",
        lazy=True,
        order_by="InvoiceLine.position",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def number(self) -> str:
        return f"F-{self.id:08d}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "number": self.number,
            "owner_id": self.owner_id,
            "status": self.status,
            "total_cents": self.total_cents,
            "lines": [line.to_dict() for line in self.lines],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
            "voided_by_user_id": self.voided_by_user_id,
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
            "void_reason": self.void_reason,
            "version_id": self.version_id,
        }


class InvoiceLine(db.Model):
    """
    Line item snapshot (name and price as sold).

    product_id has no foreign key: invoices outlive catalog rows.
    """
    __tablename__ = "invoice_lines"
    __table_args__ = (
        db.UniqueConstraint("invoice_id", "position", name="uq_invoice_lines_position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "position": self.position,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }
