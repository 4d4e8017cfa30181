# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/inventory_platform/routes/products.py
"""
Product management routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_PRODUCTS permission
- Create/update require MANAGE_PRODUCTS permission
- Delete requires DELETE_PRODUCTS permission
"""
from flask import Blueprint, request, g, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..services.products_service import (
    list_products as list_products_service,
    get_product,
    create_product,
    update_product,
    delete_product,
)
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
    db_int,
)
from ..decorators import require_auth, require_permission

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "description", "price", "stock_quantity",
        "min_stock_level", "supplier_id", "is_active",
    },
    required_on_create={"sku", "name", "price", "supplier_id"},
    immutable_fields={"sku"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _flag(name: str) -> bool:
    return (request.args.get(name) or "").strip().lower() in ("1", "true", "yes")


@products_bp.get("")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_products():
    """
    List products with filtering and pagination.

    Query params:
    - keyword: str (optional) - case-insensitive match on name or sku
    - supplier_id: int (optional) - filter by supplier
    - include_inactive: bool (optional) - include soft-deleted products
    - page: int (optional) - page number (1-indexed, default 1)
    - per_page: int (optional) - items per page (default 10, max 100)
    """
    return list_products_service(
        keyword=request.args.get("keyword"),
        supplier_id=request.args.get("supplier_id", type=db_int),
        include_inactive=_flag("include_inactive"),
        page=request.args.get("page", type=db_int),
        per_page=request.args.get("per_page", type=db_int),
    )


@products_bp.get("/<id:product_id>")
@require_auth
@require_permission("VIEW_PRODUCTS")
def get_product_route(product_id: int):
    product = get_product(product_id)
    if not product:
        return {"error": "Product not found"}, 404
    return product.to_dict(), 200


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    """
    Create a new product.

    created_by is always the caller; it cannot be supplied in the body.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)  # Handles price validation including max check
        created = create_product(patch=patch, actor_user_id=g.current_user.id)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400

    return created, 201


@products_bp.put("/<id:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    """Partial update. sku cannot be changed."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = update_product(product_id=product_id, patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except SQLAlchemyError:
        current_app.logger.exception("Failed to update product %s", product_id)
        return {"error": "Internal server error"}, 500

    if not updated:
        return {"error": "Product not found"}, 404

    return updated, 200


@products_bp.delete("/<id:product_id>")
@require_auth
@require_permission("DELETE_PRODUCTS")
def delete_product_route(product_id: int):
    """
    Soft-delete a product; ?hard=true removes it if it was never sold.
    """
    hard = _flag("hard")

    try:
        deleted = delete_product(product_id=product_id, hard=hard)
    except ConflictError as e:
        return {"error": str(e)}, 409

    if not deleted:
        return {"error": "Product not found"}, 404

    return {"ok": True, "hard_deleted": hard}, 200
