# Overview: Service-layer operations for categories.

from __future__ import annotations

from ..extensions import db
from ..models import Category, Product
from ..validation import ConflictError, NotFoundError

DEFAULT_CATEGORY_NAME = "General"
CATEGORY_MUTABLE_FIELDS = {"name", "description"}


def ensure_default_category() -> Category:
    """
    Return the default category, creating it if needed.

    Safe to call repeatedly (idempotent).
    """
    category = db.session.query(Category).filter_by(is_default=True).first()
    if category:
        return category

    category = db.session.query(Category).filter_by(name=DEFAULT_CATEGORY_NAME).first()
    if category:
        category.is_default = True
        category.is_active = True
    else:
        category = Category(
            name=DEFAULT_CATEGORY_NAME,
            description="Default category for uncategorized products",
            is_default=True,
        )
        db.session.add(category)
    db.session.flush()
    return category


def list_categories(include_inactive: bool = False) -> list[dict]:
    query = db.session.query(Category)
    if not include_inactive:
        query = query.filter(Category.is_active.is_(True))
    return [c.to_dict() for c in query.order_by(Category.name.asc(), Category.id.asc()).all()]


def _require_category(category_id: int) -> Category:
    category = db.session.query(Category).filter_by(id=category_id).first()
    if not category or not category.is_active:
        raise NotFoundError("Category not found")
    return category


def _ensure_unique_name(name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Category).filter(db.func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first():
        raise ConflictError("Category name already exists.")


def create_category(*, patch: dict) -> dict:
    _ensure_unique_name(patch["name"])
    category = Category(name=patch["name"], description=patch.get("description"))
    db.session.add(category)
    db.session.commit()
    return category.to_dict()


def update_category(*, category_id: int, patch: dict) -> dict:
    category = _require_category(category_id)
    if "name" in patch and patch["name"] != category.name:
        _ensure_unique_name(patch["name"], exclude_id=category.id)

    for k, v in patch.items():
        if k in CATEGORY_MUTABLE_FIELDS:
            setattr(category, k, v)

    db.session.commit()
    return category.to_dict()


def delete_category(*, category_id: int) -> int:
    """
    Soft-delete a category and move its products to the default category.

    Returns the number of products moved. The default category itself
    cannot be deleted.
    """
    category = _require_category(category_id)
    if category.is_default:
        raise ConflictError("The default category cannot be deleted.")

    default = ensure_default_category()
    moved = (
        db.session.query(Product)
        .filter(Product.category_id == category.id)
        .update({Product.category_id: default.id}, synchronize_session=False)
    )
    category.is_active = False
    db.session.commit()
    return moved
