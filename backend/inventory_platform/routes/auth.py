# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/inventory_platform/routes/auth.py
"""
Authentication API routes

Tokens are stateless and signed; there is no logout endpoint. Clients drop
the token, and deactivating the user invalidates every token they hold.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service, token_service
from ..permissions import get_role_permissions
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and issue a bearer token.

    Body: {"username": "...", "password": "..."}; username may be the email.
    Token must be included in the Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({"error": "Invalid JSON payload"}), 400

        username = data.get("username") or data.get("email")
        password = data.get("password")

        if not username or not password:
            return jsonify({"error": "username/email and password required"}), 400

        user = auth_service.authenticate(username, password)

        if not user:
            current_app.logger.info("Failed login for %r from %s", username, request.remote_addr)
            return jsonify({"error": "Invalid credentials"}), 401

        token = token_service.issue_token(user)

        return jsonify({
            "user": user.to_dict(),
            "permissions": get_role_permissions(user.role),
            "token": token,
            "message": "Login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """
    Current user plus the capability codes their role grants.

    WHY: Frontend can hide navigation and buttons the user cannot use.
    """
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "permissions": get_role_permissions(user.role),
    }), 200
