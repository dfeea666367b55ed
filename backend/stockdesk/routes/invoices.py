# backend/stockdesk/routes/invoices.py
"""
Invoice API routes.

Every handler passes the caller explicitly as (g.current_user.id,
g.current_user.role); ownership and state rules live in invoice_service.
"""

from flask import Blueprint, request, jsonify, g, current_app, make_response

from ..extensions import db
from ..models import User
from ..services import invoice_service, pdf_service
from ..services.invoice_service import InvalidInputError, InvoiceError, StoreUnavailableError
from ..decorators import require_auth


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _error_response(e):
    return jsonify({"error": str(e), "code": e.code, "details": e.details}), e.http_status


@invoices_bp.post("/checkout")
@require_auth
def checkout_route():
    """Turn the caller's cart into an ACTIVE invoice."""
    try:
        invoice = invoice_service.create_invoice_from_cart(g.current_user.id)
        return jsonify({"invoice": invoice.to_dict()}), 201

    except (InvoiceError, StoreUnavailableError) as e:
        current_app.logger.warning("Checkout rejected for user %s: %s", g.current_user.id, e)
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("")
@require_auth
def list_invoices_route():
    """
    Query params:
    - status: ACTIVE | VOIDED (unknown values are ignored)
    - owner_id: int (admins only; ignored for clients)
    """
    invoices = invoice_service.list_invoices(
        g.current_user.id,
        g.current_user.role,
        status=request.args.get("status"),
        owner_id=request.args.get("owner_id", type=int),
    )
    return jsonify({"items": [i.to_dict() for i in invoices], "count": len(invoices)}), 200


@invoices_bp.get("/<int:invoice_id>")
@require_auth
def get_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(invoice_id, g.current_user.id, g.current_user.role)
        return jsonify({"invoice": invoice.to_dict()}), 200
    except InvoiceError as e:
        return _error_response(e)


@invoices_bp.put("/<int:invoice_id>")
@require_auth
def edit_invoice_route(invoice_id: int):
    """Body: {"lines": [{"product_id", "product_name", "quantity", "unit_price_cents"}, ...]}"""
    try:
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            raise InvalidInputError("Request body must be a JSON object")
        invoice = invoice_service.edit_invoice(
            invoice_id,
            g.current_user.id,
            g.current_user.role,
            data.get("lines"),
        )
        return jsonify({"invoice": invoice.to_dict()}), 200

    except (InvoiceError, StoreUnavailableError) as e:
        current_app.logger.warning("Edit of invoice %s rejected: %s", invoice_id, e)
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to edit invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("/<int:invoice_id>/void")
@require_auth
def void_invoice_route(invoice_id: int):
    """Body (optional): {"reason": str}"""
    try:
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            raise InvalidInputError("Request body must be a JSON object")
        invoice = invoice_service.void_invoice(
            invoice_id,
            g.current_user.id,
            g.current_user.role,
            reason=data.get("reason"),
        )
        return jsonify({"invoice": invoice.to_dict()}), 200

    except (InvoiceError, StoreUnavailableError) as e:
        current_app.logger.warning("Void of invoice %s rejected: %s", invoice_id, e)
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to void invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/<int:invoice_id>/pdf")
@require_auth
def invoice_pdf_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(invoice_id, g.current_user.id, g.current_user.role)
    except InvoiceError as e:
        return _error_response(e)

    owner = db.session.query(User).filter_by(id=invoice.owner_id).first()
    try:
        pdf_bytes = pdf_service.render_invoice_pdf(invoice, owner)
    except Exception:
        current_app.logger.exception("Failed to render invoice PDF")
        return jsonify({"error": "Internal server error"}), 500

    response = make_response(pdf_bytes)
    response.headers["Content-Type"] = "application/pdf"
    response.headers["Content-Disposition"] = f'attachment; filename="Invoice_{invoice.number}.pdf"'
    response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
    response.headers["Pragma"] = "no-cache"
    response.headers["Expires"] = "0"
    return response
