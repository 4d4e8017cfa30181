# Overview: Flask API routes for user administration; parses input and returns JSON responses.

# backend/inventory_platform/routes/users.py
"""
User management routes (Admin only).

Users are never physically deleted: products and sales keep pointing at
them, so DELETE deactivates the account instead.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import auth_service
from ..services.auth_service import (
    PasswordValidationError,
    SelfDeactivationError,
    UserConflictError,
    UserNotFoundError,
    UserValidationError,
)
from ..decorators import require_auth, require_permission

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_permission("MANAGE_USERS")
def list_users():
    """
    List users sorted by role, then username.

    Query params:
    - include_inactive: bool (default false) - include deactivated users
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    users = auth_service.list_users(include_inactive=include_inactive)
    return jsonify({"users": [u.to_dict() for u in users], "count": len(users)})


@users_bp.get("/<id:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def get_user(user_id: int):
    try:
        user = auth_service.get_user(user_id)
    except UserNotFoundError:
        return jsonify({"error": "User not found"}), 404
    return jsonify({"user": user.to_dict()})


@users_bp.post("")
@require_auth
@require_permission("MANAGE_USERS")
def create_user():
    """
    Create a new user.

    Request body:
    - username: str (required)
    - email: str (required)
    - password: str (required)
    - role: str (required) - Admin, Inventory or Sales
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    username = data.get("username")
    email = data.get("email")
    password = data.get("password")
    role = data.get("role")

    if not all([username, email, password, role]):
        return jsonify({"error": "username, email, password and role required"}), 400

    try:
        user = auth_service.create_user(username, email, password, role)
    except (PasswordValidationError, UserValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except UserConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info(
        "User %s created user %s with role %s", g.current_user.id, user.id, user.role
    )
    return jsonify({"user": user.to_dict(), "message": "User created successfully"}), 201


@users_bp.put("/<id:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def update_user(user_id: int):
    """
    Update user details.

    Request body (all optional):
    - username, email, role, is_active
    - password: re-hashed only when present
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    try:
        user = auth_service.update_user(user_id, data)
    except UserNotFoundError:
        return jsonify({"error": "User not found"}), 404
    except (PasswordValidationError, UserValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except UserConflictError as e:
        return jsonify({"error": str(e)}), 409

    return jsonify({"user": user.to_dict(), "message": "User updated successfully"})


@users_bp.delete("/<id:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def deactivate_user(user_id: int):
    """Deactivate a user; their existing tokens stop working immediately."""
    try:
        user = auth_service.deactivate_user(user_id, actor_user_id=g.current_user.id)
    except SelfDeactivationError as e:
        return jsonify({"error": str(e)}), 403
    except UserNotFoundError:
        return jsonify({"error": "User not found"}), 404

    return jsonify({"user": user.to_dict(), "message": "User deactivated"})
