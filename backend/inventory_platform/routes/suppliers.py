# Overview: Flask API routes for supplier operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..models import Supplier
from ..services import supplier_service
from ..services.supplier_service import SupplierNotFoundError, SupplierInUseError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_supplier,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, require_permission

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "contact_name", "phone", "email", "address"},
    required_on_create={"name", "contact_name"},
)

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_auth
@require_permission("VIEW_SUPPLIERS")
def list_suppliers_route():
    """All suppliers sorted by name. ?search= matches name or contact name."""
    suppliers = supplier_service.list_suppliers(search=request.args.get("search"))
    return jsonify({
        "suppliers": [s.to_dict() for s in suppliers],
        "count": len(suppliers),
    }), 200


@suppliers_bp.get("/<id:supplier_id>")
@require_auth
@require_permission("VIEW_SUPPLIERS")
def get_supplier_route(supplier_id: int):
    try:
        supplier = supplier_service.get_supplier(supplier_id)
    except SupplierNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(supplier.to_dict()), 200


@suppliers_bp.post("")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
def create_supplier_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
        enforce_rules_supplier(patch)
        supplier = supplier_service.create_supplier(patch=patch)
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify(supplier.to_dict()), 201


@suppliers_bp.put("/<id:supplier_id>")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
def update_supplier_route(supplier_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)
        enforce_rules_supplier(patch)
        supplier = supplier_service.update_supplier(supplier_id=supplier_id, patch=patch)
    except SupplierNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify(supplier.to_dict()), 200


@suppliers_bp.delete("/<id:supplier_id>")
@require_auth
@require_permission("DELETE_SUPPLIERS")
def delete_supplier_route(supplier_id: int):
    try:
        supplier_service.delete_supplier(supplier_id=supplier_id)
    except SupplierNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except SupplierInUseError as e:
        return jsonify({"error": str(e), "product_count": e.product_count}), 409

    return jsonify({"ok": True}), 200
