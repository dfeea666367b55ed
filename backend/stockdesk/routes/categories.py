# backend/stockdesk/routes/categories.py
"""Category routes. Reads for any authenticated user, writes for admins."""

from flask import Blueprint, request, jsonify

from ..models import Category, ADMIN_ROLE
from ..services import category_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth, require_role

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_auth
def list_categories_route():
    items = category_service.list_categories()
    return jsonify({"items": items, "count": len(items)}), 200


@categories_bp.post("")
@require_auth
@require_role(ADMIN_ROLE)
def create_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        created = category_service.create_category(patch=patch)
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409

    return jsonify(created), 201


@categories_bp.put("/<int:category_id>")
@require_auth
@require_role(ADMIN_ROLE)
def update_category_route(category_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        updated = category_service.update_category(category_id=category_id, patch=patch)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409

    return jsonify(updated), 200


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_role(ADMIN_ROLE)
def delete_category_route(category_id: int):
    try:
        moved = category_service.delete_category(category_id=category_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409

    return jsonify({"ok": True, "products_moved": moved}), 200
