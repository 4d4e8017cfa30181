# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/inventory_platform/routes/sales.py
"""
Sales API routes with permission enforcement

Sales are immutable: there is no update or delete route, so PUT/PATCH/DELETE
on a sale answer 405.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import sales_service
from ..services.sales_service import (
    SaleError,
    SaleValidationError,
    ProductNotFoundError,
    InsufficientStockError,
    ConcurrencyConflictError,
    SalePersistenceError,
)
from ..decorators import require_auth, require_permission
from ..validation import db_int


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _sale_error_status(error: SaleError) -> int:
    if isinstance(error, ProductNotFoundError):
        return 404
    if isinstance(error, (SaleValidationError, InsufficientStockError)):
        return 400
    if isinstance(error, ConcurrencyConflictError):
        return 503
    return 500


@sales_bp.post("")
@require_auth
@require_permission("RECORD_SALE")
def record_sale_route():
    """
    Record a sale and decrement stock in one transaction.

    Request body:
    {
        "items": [{"product_id": 1, "quantity": 2}, ...],   // required, non-empty
        "customer_name": "Jane Doe"                         // optional
    }

    Requires: RECORD_SALE permission
    Available to: Admin, Sales
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    customer_name = data.get("customer_name", data.get("customerName"))

    try:
        sale = sales_service.record_sale(
            data.get("items"),
            actor_user_id=g.current_user.id,
            customer_name=customer_name,
        )
    except (SalePersistenceError, ConcurrencyConflictError) as e:
        # Generic message only; the service already logged the cause
        return jsonify({"error": e.message}), _sale_error_status(e)
    except SaleError as e:
        return jsonify({"error": e.message, "details": e.details}), _sale_error_status(e)
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "Sale recorded successfully", "sale": sale.to_dict()}), 201


@sales_bp.get("")
@require_auth
@require_permission("VIEW_SALES")
def list_sales_route():
    """
    List sales, newest first.

    Query params:
    - page: int (default 1)
    - per_page: int (default 10, max 100)
    """
    result = sales_service.list_sales(
        page=request.args.get("page", 1, type=db_int),
        per_page=request.args.get("per_page", 10, type=db_int),
    )
    return jsonify(result), 200


@sales_bp.get("/<id:sale_id>")
@require_auth
@require_permission("VIEW_SALES")
def get_sale_route(sale_id: int):
    sale = sales_service.get_sale(sale_id)
    if not sale:
        return jsonify({"error": "Sale not found"}), 404
    return jsonify({"sale": sale.to_dict()}), 200
