# Overview: Signed, time-limited bearer tokens.

"""
Token Service

Tokens are signed with SECRET_KEY using itsdangerous (the signer Flask's own
session cookie uses) and carry {id, username, role}. They expire after
TOKEN_MAX_AGE_SECONDS. Nothing is stored server-side; deactivating a user
invalidates their tokens because require_auth re-loads the user.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from ..models import User

TOKEN_SALT = "inventory-platform-auth"


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    username: str
    role: str


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=TOKEN_SALT)


def issue_token(user: User) -> str:
    """Sign a token for the user's current identity and role."""
    return _serializer().dumps({"id": user.id, "username": user.username, "role": user.role})


def decode_token(token: str) -> TokenClaims | None:
    """
    Verify signature and age.

    Returns None for tampered, expired or malformed tokens.
    """
    max_age = current_app.config.get("TOKEN_MAX_AGE_SECONDS", 86400)
    try:
        payload = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        current_app.logger.info("Rejected expired auth token")
        return None
    except BadSignature:
        return None

    if not isinstance(payload, dict) or not isinstance(payload.get("id"), int):
        return None

    return TokenClaims(
        user_id=payload["id"],
        username=payload.get("username", ""),
        role=payload.get("role", ""),
    )
