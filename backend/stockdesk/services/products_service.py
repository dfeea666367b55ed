# backend/stockdesk/services/products_service.py
"""
Products Service

Catalog reads are open to every authenticated user; writes are admin-only
(enforced by the routes). Stock set through update_product is a manual
adjustment; sales and reversals go through stock_service instead.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Category, Product
from ..validation import ConflictError, NotFoundError, ValidationError
from .category_service import ensure_default_category
from .concurrency import run_with_retry

PRODUCT_MUTABLE_FIELDS = {"name", "description", "price_cents", "stock", "min_stock", "category_id", "is_active"}
SORTABLE_FIELDS = {"name", "price_cents", "stock", "units_sold", "created_at"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _resolve_category_id(category_id: int | None) -> int:
    if category_id is None:
        return ensure_default_category().id
    category = db.session.query(Category).filter_by(id=category_id, is_active=True).first()
    if not category:
        raise NotFoundError("Category not found")
    return category.id


def _ensure_unique_name(name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Product).filter(db.func.lower(Product.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("Product name already exists.")


def list_products(
    *,
    category_id: int | None = None,
    is_active: bool | None = True,
    min_price_cents: int | None = None,
    max_price_cents: int | None = None,
    sort: str = "name",
    order: str = "asc",
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Filtered product listing with optional pagination.

    Args:
        category_id: Only products in this category
        is_active: True/False to filter by state, None for all
        min_price_cents / max_price_cents: Inclusive price bounds
        sort: One of SORTABLE_FIELDS
        order: "asc" or "desc"
        page: Page number (1-indexed). If None, returns all items.
        per_page: Items per page (default 20, max 100)

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    if sort not in SORTABLE_FIELDS:
        raise ValidationError(f"sort must be one of: {', '.join(sorted(SORTABLE_FIELDS))}")
    if order not in ("asc", "desc"):
        raise ValidationError("order must be 'asc' or 'desc'")

    base_query = db.session.query(Product)
    if category_id is not None:
        base_query = base_query.filter(Product.category_id == category_id)
    if is_active is not None:
        base_query = base_query.filter(Product.is_active.is_(is_active))
    if min_price_cents is not None:
        base_query = base_query.filter(Product.price_cents >= min_price_cents)
    if max_price_cents is not None:
        base_query = base_query.filter(Product.price_cents <= max_price_cents)

    column = getattr(Product, sort)
    base_query = base_query.order_by(column.desc() if order == "desc" else column.asc(), Product.id.asc())

    # If no pagination requested, return all items
    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)  # Default 20, max 100
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_product(product_id: int) -> dict:
    p = db.session.query(Product).filter_by(id=product_id).first()
    if not p:
        raise NotFoundError("Product not found")
    return p.to_dict()


def create_product(*, patch: dict) -> dict:
    """
    Create product using a validated patch dict.

    Raises:
        NotFoundError: If category_id doesn't exist
        ConflictError: If the product name is taken
    """
    _ensure_unique_name(patch["name"])

    p = Product(stock=0, min_stock=0, units_sold=0)
    apply_product_patch(p, patch)
    p.category_id = _resolve_category_id(patch.get("category_id"))

    db.session.add(p)
    db.session.commit()
    return p.to_dict()


def update_product(*, product_id: int, patch: dict) -> dict:
    """
    Apply a validated patch to a product.

    A sale landing between the read and the commit bumps version_id and
    fails the commit with StaleDataError; the patch is then replayed on a
    fresh read. Repeated conflicts raise StoreUnavailableError.
    """
    def _op():
        p = db.session.query(Product).filter_by(id=product_id).first()
        if not p:
            raise NotFoundError("Product not found")

        changes = patch
        if "name" in changes and changes["name"] != p.name:
            _ensure_unique_name(changes["name"], exclude_id=p.id)
        if "category_id" in changes:
            changes = {**changes, "category_id": _resolve_category_id(changes["category_id"])}

        apply_product_patch(p, changes)
        db.session.commit()
        return p.to_dict()

    return run_with_retry(_op)


def delete_product(*, product_id: int) -> bool:
    """
    Soft-delete a product.

    Invoices keep their snapshots and can still be voided; carts can no
    longer add the product.
    """
    def _op():
        p = db.session.query(Product).filter(Product.id == product_id).first()
        if not p:
            return False

        if p.is_active:
            p.is_active = False
        db.session.commit()
        return True

    return run_with_retry(_op)


def list_sold_out() -> list[dict]:
    products = (
        db.session.query(Product)
        .filter(Product.stock == 0, Product.is_active.is_(True))
        .order_by(Product.name.asc())
        .all()
    )
    return [p.to_dict() for p in products]


def list_low_stock() -> list[dict]:
    products = (
        db.session.query(Product)
        .filter(Product.stock <= Product.min_stock, Product.is_active.is_(True))
        .order_by(Product.stock.asc(), Product.name.asc())
        .all()
    )
    return [p.to_dict() for p in products]


def list_best_sellers(limit: int = 10) -> list[dict]:
    limit = max(1, min(limit, 100))
    products = (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.units_sold > 0)
        .order_by(Product.units_sold.desc(), Product.name.asc())
        .limit(limit)
        .all()
    )
    return [p.to_dict() for p in products]


def search_products(name: str) -> list[dict]:
    term = (name or "").strip()
    if not term:
        raise ValidationError("name is required")
    products = (
        db.session.query(Product)
        .filter(Product.name.ilike(f"%{term}%"), Product.is_active.is_(True))
        .order_by(Product.name.asc())
        .all()
    )
    return [p.to_dict() for p in products]


def list_by_category(category_id: int) -> list[dict]:
    category = db.session.query(Category).filter_by(id=category_id, is_active=True).first()
    if not category:
        raise NotFoundError("Category not found")
    products = (
        db.session.query(Product)
        .filter(Product.category_id == category_id, Product.is_active.is_(True))
        .order_by(Product.name.asc())
        .all()
    )
    return [p.to_dict() for p in products]
