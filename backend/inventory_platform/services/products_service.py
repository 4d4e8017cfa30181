# Overview: Service-layer operations for products; encapsulates business logic and database work.

"""
Products Service

Stock only leaves a product through sales_service.record_sale(). Edits made
here go through the ORM, so the product's version_id guards them: an edit
that races a sale's conditional decrement fails with StaleDataError and is
re-run against the fresh row instead of writing back a stale stock count.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, Supplier
from ..validation import MAX_DB_INTEGER, ConflictError, ValidationError
from . import catalog_store
from .concurrency import run_with_retry, unit_of_work

PRODUCT_MUTABLE_FIELDS = {
    "name", "description", "price", "stock_quantity",
    "min_stock_level", "supplier_id", "is_active",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _require_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise ValidationError(f"Supplier {supplier_id} does not exist")
    return supplier


def list_products(
    *,
    keyword: str | None = None,
    supplier_id: int | None = None,
    include_inactive: bool = False,
    page: int | None = 1,
    per_page: int | None = 10,
) -> dict:
    """
    Filtered, paginated product listing sorted by name.

    Args:
        keyword: case-insensitive substring match on name or sku
        supplier_id: only products from this supplier
        include_inactive: include soft-deleted products
        page: page number (1-indexed)
        per_page: items per page (default 10, max 100)

    Returns:
        Dict with 'items', 'count' and 'pagination'.
    """
    base_query = db.session.query(Product)

    if not include_inactive:
        base_query = base_query.filter(Product.is_active.is_(True))
    if supplier_id is not None:
        base_query = base_query.filter(Product.supplier_id == supplier_id)
    if keyword:
        pattern = f"%{keyword.strip()}%"
        base_query = base_query.filter(
            db.or_(Product.name.ilike(pattern), Product.sku.ilike(pattern))
        )

    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    per_page = min(max(per_page or 10, 1), 100)
    page = min(max(page or 1, 1), MAX_DB_INTEGER // per_page)

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


def get_product(product_id: int) -> Product | None:
    return db.session.get(Product, product_id)


def create_product(*, patch: dict, actor_user_id: int) -> dict:
    """
    Create product using a validated patch dict.

    Raises:
        ValidationError: if the supplier does not exist
        ConflictError: if the SKU is already taken (including by inactive products)
    """
    sku = patch.get("sku")
    if not sku:
        raise ValidationError("sku is required")

    _require_supplier(patch["supplier_id"])

    existing = db.session.query(Product).filter(Product.sku == sku).first()
    if existing:
        raise ConflictError("SKU already exists.")

    p = Product(sku=sku, created_by_user_id=actor_user_id)
    apply_product_patch(p, patch)

    db.session.add(p)
    db.session.commit()

    current_app.logger.info("Created product %s sku=%s by user %s", p.id, p.sku, actor_user_id)
    return p.to_dict()


def update_product(*, product_id: int, patch: dict) -> dict | None:
    """
    Apply a partial update.

    Returns the updated product dict, or None if not found. The whole
    read-modify-write is retried when a concurrent sale bumps version_id.
    """
    if "supplier_id" in patch and patch["supplier_id"] is not None:
        _require_supplier(patch["supplier_id"])

    def _op():
        with unit_of_work():
            p = db.session.get(Product, product_id)
            if not p:
                return None
            apply_product_patch(p, patch)
        return p

    p = run_with_retry(
        _op,
        attempts=current_app.config.get("SALE_RETRY_ATTEMPTS", 3),
        backoff_base=current_app.config.get("SALE_RETRY_BACKOFF_SECONDS", 0.1),
    )
    if p is None:
        return None
    return p.to_dict()


def delete_product(*, product_id: int, hard: bool = False) -> bool:
    """
    Soft-delete (is_active=false) by default.

    hard=True removes the row, but only while no sale line references it.

    Returns:
        True if deleted, False if not found

    Raises:
        ConflictError: hard delete of a product that has been sold
    """
    p = db.session.get(Product, product_id)
    if not p:
        return False

    if hard:
        references = catalog_store.count_sale_references(product_id)
        if references:
            raise ConflictError(
                f"Product is referenced by {references} sale line(s); deactivate it instead"
            )
        db.session.delete(p)
        db.session.commit()
        current_app.logger.info("Hard-deleted product %s sku=%s", product_id, p.sku)
        return True

    # Soft-delete only: preserve IDs and historical references.
    if p.is_active:
        p.is_active = False
    db.session.commit()
    return True
