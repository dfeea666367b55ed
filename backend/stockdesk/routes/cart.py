# backend/stockdesk/routes/cart.py
"""Shopping cart routes. Every user works on their own cart only."""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import cart_service
from ..services.cart_service import CartError
from ..services.concurrency import StoreUnavailableError
from ..decorators import require_auth


cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


def _empty_cart(user_id: int) -> dict:
    return {"id": None, "user_id": user_id, "total_cents": 0, "item_count": 0, "lines": [], "updated_at": None}


@cart_bp.get("")
@require_auth
def get_cart_route():
    cart = cart_service.read_cart(g.current_user.id)
    return jsonify({"cart": cart.to_dict() if cart else _empty_cart(g.current_user.id)}), 200


@cart_bp.post("/items")
@require_auth
def add_item_route():
    """Body: {"product_id": int, "quantity": int}"""
    try:
        data = request.get_json(silent=True) or {}
        product_id = data.get("product_id")
        quantity = data.get("quantity")

        if not isinstance(product_id, int) or isinstance(product_id, bool):
            return jsonify({"error": "product_id must be an integer"}), 400

        cart = cart_service.add_item(g.current_user.id, product_id, quantity)
        return jsonify({"cart": cart.to_dict()}), 200

    except CartError as e:
        return jsonify({"error": str(e), "details": e.details}), e.http_status
    except StoreUnavailableError as e:
        return jsonify({"error": str(e), "code": e.code, "details": e.details}), e.http_status
    except Exception:
        current_app.logger.exception("Failed to add cart item")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.delete("/items/<int:product_id>")
@require_auth
def remove_item_route(product_id: int):
    try:
        cart = cart_service.remove_item(g.current_user.id, product_id)
        return jsonify({"cart": cart.to_dict()}), 200

    except CartError as e:
        return jsonify({"error": str(e), "details": e.details}), e.http_status
    except StoreUnavailableError as e:
        return jsonify({"error": str(e), "code": e.code, "details": e.details}), e.http_status
    except Exception:
        current_app.logger.exception("Failed to remove cart item")
        return jsonify({"error": "Internal server error"}), 500
