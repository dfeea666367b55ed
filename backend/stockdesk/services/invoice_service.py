# Overview: Service-layer operations for invoices; owns the invoice lifecycle and its stock effects.

"""
Invoice Service - checkout, edit, void and lookup of invoices

LIFECYCLE:
    (none) --CREATE--> ACTIVE --EDIT--> ACTIVE
                       ACTIVE --VOID--> VOIDED (terminal)

STOCK INVARIANTS (authoritative):
- Every unit on an ACTIVE invoice has been removed from Product.stock and
  added to Product.units_sold exactly once; VOID returns it exactly once.
- stock + sum(quantity on ACTIVE invoices) is constant for every product
  not adjusted by hand.
- A CREATE or EDIT that would take any product below zero changes nothing.

TRANSACTIONS:
- Each mutating operation is one database transaction (single_transaction):
  the invoice row, every product row and the cart commit together or not
  at all. EDIT reverses the old lines and reapplies the new ones inside that
  transaction, so no other request can observe the in-between stock.
- Stock deltas are aggregated per product and applied in ascending
  product_id order so two invoices never lock products in opposite order.
- Nothing here retries. Lock timeouts and optimistic-lock conflicts surface
  as StoreUnavailableError; replaying is the caller's decision.

Callers are passed explicitly as (caller_id, caller_role); the service never
reads request globals.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import (
    ADMIN_ROLE,
    INVOICE_ACTIVE,
    INVOICE_STATUSES,
    INVOICE_VOIDED,
    Invoice,
    InvoiceLine,
    Product,
)
from ..time_utils import utcnow
from . import cart_service
from .concurrency import StoreUnavailableError, lock_for_update, single_transaction
from .stock_service import conditional_decrement_stock, product_exists, restore_stock, available_stock

DEFAULT_VOID_REASON = "No reason given"
MAX_PRODUCT_NAME_LENGTH = 255
MAX_VOID_REASON_LENGTH = 255
# Largest value a 64-bit signed INTEGER column accepts.
MAX_DB_INTEGER = 2**63 - 1

__all__ = [
    "InvoiceError", "InvoiceNotFoundError", "InvoiceForbiddenError", "InvoiceStateError",
    "InvalidLineItemsError", "InvalidInputError", "EmptyCartError", "InsufficientStockError", "StoreUnavailableError",
    "create_invoice_from_cart", "edit_invoice", "void_invoice", "get_invoice", "list_invoices",
    "validate_line_items",
]


class InvoiceError(Exception):
    """Raised for invoice operation errors."""
    code = "INVOICE_ERROR"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InvoiceNotFoundError(InvoiceError):
    code = "NOT_FOUND"
    http_status = 404


class InvoiceForbiddenError(InvoiceError):
    code = "FORBIDDEN"
    http_status = 403


class InvoiceStateError(InvoiceError):
    code = "ALREADY_VOIDED"
    http_status = 409


class InvalidLineItemsError(InvoiceError):
    code = "INVALID_LINE_ITEMS"
    http_status = 400


class InvalidInputError(InvoiceError):
    code = "INVALID_INPUT"
    http_status = 400


class EmptyCartError(InvoiceError):
    code = "EMPTY_CART"
    http_status = 400


class InsufficientStockError(InvoiceError):
    code = "INSUFFICIENT_STOCK"
    http_status = 409


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _in_range(value, low: int) -> bool:
    return _is_int(value) and low <= value <= MAX_DB_INTEGER


def validate_line_items(raw_lines) -> list[dict]:
    """
    Validate a replacement line list and return normalized dicts.

    Each entry needs product_id, quantity (>= 1), unit_price_cents (>= 0)
    and a non-blank product_name. Any total supplied by the client is ignored.
    """
    if not isinstance(raw_lines, list) or not raw_lines:
        raise InvalidLineItemsError("Line item list is invalid or empty")

    items = []
    errors = []
    for index, raw in enumerate(raw_lines):
        if not isinstance(raw, dict):
            errors.append({"index": index, "error": "line item must be an object"})
            continue

        product_id = raw.get("product_id")
        quantity = raw.get("quantity")
        unit_price_cents = raw.get("unit_price_cents")
        product_name = raw.get("product_name")

        if not _in_range(product_id, 1):
            errors.append({"index": index, "error": "product_id must be a positive integer"})
        if not _in_range(quantity, 1):
            errors.append({"index": index, "error": "quantity must be an integer >= 1"})
        if not _in_range(unit_price_cents, 0):
            errors.append({"index": index, "error": "unit_price_cents must be an integer >= 0"})
        elif _in_range(quantity, 1) and quantity * unit_price_cents > MAX_DB_INTEGER:
            errors.append({"index": index, "error": "line total is too large"})
        if not isinstance(product_name, str) or not product_name.strip():
            errors.append({"index": index, "error": "product_name is required"})
        elif len(product_name.strip()) > MAX_PRODUCT_NAME_LENGTH:
            errors.append({"index": index, "error": f"product_name exceeds max length {MAX_PRODUCT_NAME_LENGTH}"})

        items.append({
            "product_id": product_id,
            "product_name": product_name.strip() if isinstance(product_name, str) else product_name,
            "quantity": quantity,
            "unit_price_cents": unit_price_cents,
        })

    if errors:
        raise InvalidLineItemsError("All line item fields are required", details={"errors": errors})

    if sum(item["quantity"] * item["unit_price_cents"] for item in items) > MAX_DB_INTEGER:
        raise InvalidLineItemsError("Invoice total is too large")
    if any(quantity > MAX_DB_INTEGER for _, quantity in _quantities_by_product(
        (item["product_id"], item["quantity"]) for item in items
    )):
        raise InvalidLineItemsError("Quantity for a product is too large")

    return items


def _build_lines(items: list[dict]) -> list[InvoiceLine]:
    return [
        InvoiceLine(
            position=position,
            product_id=item["product_id"],
            product_name=item["product_name"],
            quantity=item["quantity"],
            unit_price_cents=item["unit_price_cents"],
            line_total_cents=item["quantity"] * item["unit_price_cents"],
        )
        for position, item in enumerate(items, start=1)
    ]


def _total_cents(lines: list[InvoiceLine]) -> int:
    return sum(line.quantity * line.unit_price_cents for line in lines)


def _quantities_by_product(items) -> list[tuple[int, int]]:
    """Aggregate (product_id, quantity) pairs per product, ordered by product_id."""
    totals: dict[int, int] = {}
    for product_id, quantity in items:
        totals[product_id] = totals.get(product_id, 0) + quantity
    return sorted(totals.items())


def _apply_sale(items: list[tuple[int, int]]) -> None:
    """
    Decrement stock for every product or raise.

    Keeps going after the first shortfall so the error lists every product
    that cannot be served; the enclosing transaction discards the
    decrements that did succeed.
    """
    missing = []
    insufficient = []
    for product_id, quantity in _quantities_by_product(items):
        if conditional_decrement_stock(product_id, quantity):
            continue
        if not product_exists(product_id, active_only=True):
            missing.append(product_id)
        else:
            insufficient.append({
                "product_id": product_id,
                "requested_quantity": quantity,
                "available": available_stock(product_id),
            })

    if missing:
        raise InvoiceNotFoundError("Product not found", details={"product_ids": missing})
    if insufficient:
        raise InsufficientStockError("Insufficient stock", details={"items": insufficient})


def _reverse_sale(items: list[tuple[int, int]]) -> None:
    # Missing products are skipped by restore_stock; reversal never fails on them.
    for product_id, quantity in _quantities_by_product(items):
        restore_stock(product_id, quantity)


def _stock_effect(invoice: Invoice) -> list[tuple[int, int]]:
    return [(line.product_id, line.quantity) for line in invoice.lines]


def _load_invoice(invoice_id: int, *, lock: bool = False) -> Invoice:
    query = db.session.query(Invoice).filter_by(id=invoice_id)
    if lock:
        query = lock_for_update(query)
    invoice = query.first()
    if invoice is None:
        raise InvoiceNotFoundError("Invoice not found")
    return invoice


def _require_access(invoice: Invoice, caller_id: int, caller_role: str, action: str) -> None:
    if caller_role == ADMIN_ROLE or invoice.owner_id == caller_id:
        return
    raise InvoiceForbiddenError(f"Not allowed to {action} this invoice")


def _require_active(invoice: Invoice) -> None:
    if invoice.status == INVOICE_VOIDED:
        raise InvoiceStateError("Invoice already voided")


def create_invoice_from_cart(owner_id: int) -> Invoice:
    """
    Checkout: turn the owner's cart into an ACTIVE invoice.

    Lines snapshot the product name at checkout and the unit price captured
    by the cart. Stock is decremented and the cart emptied in the same
    transaction as the invoice insert.
    """
    with single_transaction():
        cart = cart_service.read_cart(owner_id)
        if cart is None or not cart.lines:
            raise EmptyCartError("Shopping cart is empty")

        items = []
        for cart_line in cart.lines:
            product = db.session.query(Product).filter_by(id=cart_line.product_id).first()
            if product is None or not product.is_active:
                raise InvoiceNotFoundError("Product not found", details={"product_ids": [cart_line.product_id]})
            items.append({
                "product_id": cart_line.product_id,
                "product_name": product.name,
                "quantity": cart_line.quantity,
                "unit_price_cents": cart_line.unit_price_cents,
            })

        invoice = Invoice(owner_id=owner_id, status=INVOICE_ACTIVE)
        invoice.lines = _build_lines(items)
        invoice.total_cents = _total_cents(invoice.lines)
        db.session.add(invoice)
        db.session.flush()

        _apply_sale(_stock_effect(invoice))
        cart_service.clear_cart(owner_id)

        current_app.logger.info(
            "Invoice %s created for user %s (%s lines, total_cents=%s)",
            invoice.id, owner_id, len(items), invoice.total_cents,
        )

    return invoice


def edit_invoice(invoice_id: int, caller_id: int, caller_role: str, new_lines) -> Invoice:
    """
    Replace the lines of an ACTIVE invoice.

    Implemented as full reverse of the current lines followed by reapply of
    the new ones; the net stock change equals the diff between the two lists.
    """
    with single_transaction():
        invoice = _load_invoice(invoice_id, lock=True)
        _require_access(invoice, caller_id, caller_role, "edit")
        _require_active(invoice)
        items = validate_line_items(new_lines)

        _reverse_sale(_stock_effect(invoice))

        # Old rows must be gone before new rows reuse their positions.
        invoice.lines.clear()
        db.session.flush()

        invoice.lines.extend(_build_lines(items))
        invoice.total_cents = _total_cents(invoice.lines)
        invoice.updated_at = utcnow()
        db.session.flush()

        _apply_sale(_stock_effect(invoice))

        current_app.logger.info(
            "Invoice %s edited by user %s (%s lines, total_cents=%s)",
            invoice.id, caller_id, len(items), invoice.total_cents,
        )

    return invoice


def void_invoice(invoice_id: int, caller_id: int, caller_role: str, reason: str | None = None) -> Invoice:
    """Void an ACTIVE invoice and return its units to stock."""
    if reason is not None and not isinstance(reason, str):
        raise InvalidInputError("reason must be a string")
    reason = (reason or "").strip() or DEFAULT_VOID_REASON
    if len(reason) > MAX_VOID_REASON_LENGTH:
        raise InvalidInputError(f"reason exceeds max length {MAX_VOID_REASON_LENGTH}")

    with single_transaction():
        invoice = _load_invoice(invoice_id, lock=True)
        _require_access(invoice, caller_id, caller_role, "void")
        _require_active(invoice)

        _reverse_sale(_stock_effect(invoice))

        now = utcnow()
        invoice.status = INVOICE_VOIDED
        invoice.voided_at = now
        invoice.updated_at = now
        invoice.voided_by_user_id = caller_id
        invoice.void_reason = reason

        current_app.logger.info("Invoice %s voided by user %s: %s", invoice.id, caller_id, invoice.void_reason)

    return invoice


def get_invoice(invoice_id: int, caller_id: int, caller_role: str) -> Invoice:
    invoice = _load_invoice(invoice_id)
    _require_access(invoice, caller_id, caller_role, "view")
    return invoice


def list_invoices(
    caller_id: int,
    caller_role: str,
    status: str | None = None,
    owner_id: int | None = None,
) -> list[Invoice]:
    """
    List invoices, newest first.

    Non-admin callers only ever see their own invoices whatever owner_id
    they pass. Unknown status values are ignored rather than rejected.
    """
    if caller_role != ADMIN_ROLE:
        owner_id = caller_id

    query = db.session.query(Invoice)
    if owner_id is not None:
        query = query.filter(Invoice.owner_id == owner_id)

    if status:
        normalized = str(status).strip().upper()
        if normalized in INVOICE_STATUSES:
            query = query.filter(Invoice.status == normalized)

    return query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()
