# backend/stockdesk/routes/products.py
"""
Product catalog routes.

SECURITY: All routes require authentication.
- Read operations are open to every role
- Write operations and the sold-out report require ADMIN_ROLE
"""
from flask import Blueprint, request, jsonify

from ..services import products_service
from ..services.concurrency import StoreUnavailableError
from ..models import Product, ADMIN_ROLE
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth, require_role

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "price_cents", "stock", "min_stock", "category_id", "is_active"},
    required_on_create={"name", "price_cents"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _parse_is_active(raw: str | None) -> bool | None:
    if raw is None:
        return True
    value = raw.strip().lower()
    if value == "all":
        return None
    if value in ("true", "false"):
        return value == "true"
    raise ValidationError("is_active must be true, false or all")


@products_bp.get("")
@require_auth
def list_products():
    """
    List products with optional filters and pagination.

    Query params:
    - category_id: int (optional)
    - is_active: true (default) | false | all
    - min_price_cents / max_price_cents: int (optional)
    - sort: name | price_cents | stock | units_sold | created_at
    - order: asc | desc
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    try:
        result = products_service.list_products(
            category_id=request.args.get("category_id", type=int),
            is_active=_parse_is_active(request.args.get("is_active")),
            min_price_cents=request.args.get("min_price_cents", type=int),
            max_price_cents=request.args.get("max_price_cents", type=int),
            sort=request.args.get("sort", "name"),
            order=request.args.get("order", "asc"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    return result


@products_bp.get("/sold-out")
@require_auth
@require_role(ADMIN_ROLE)
def sold_out_route():
    items = products_service.list_sold_out()
    return {"items": items, "count": len(items)}


@products_bp.get("/best-sellers")
@require_auth
def best_sellers_route():
    items = products_service.list_best_sellers(limit=request.args.get("limit", 10, type=int))
    return {"items": items, "count": len(items)}


@products_bp.get("/search")
@require_auth
def search_route():
    try:
        items = products_service.search_products(request.args.get("name", ""))
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"items": items, "count": len(items)}


@products_bp.get("/category/<int:category_id>")
@require_auth
def by_category_route(category_id: int):
    try:
        items = products_service.list_by_category(category_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"items": items, "count": len(items)}


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        return products_service.get_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.post("")
@require_auth
@require_role(ADMIN_ROLE)
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = products_service.create_product(patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return created, 201


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role(ADMIN_ROLE)
def delete_product_route(product_id: int):
    try:
        deleted = products_service.delete_product(product_id=product_id)
    except StoreUnavailableError as e:
        return {"error": str(e), "code": e.code, "details": e.details}, e.http_status
    if not deleted:
        return {"error": "Product not found"}, 404

    return {"ok": True}, 200


@products_bp.put("/<int:product_id>")
@require_auth
@require_role(ADMIN_ROLE)
def update_product_route(product_id: int):
    """Update a product. A stock value here is a manual adjustment."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = products_service.update_product(product_id=product_id, patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except StoreUnavailableError as e:
        return {"error": str(e), "code": e.code, "details": e.details}, e.http_status

    return updated, 200
