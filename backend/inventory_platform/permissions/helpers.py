# Overview: Pure functions for permission lookups and checks.

from .definitions import ALLOWED_ROLES, PERMISSION_DEFINITIONS
from .roles import UserRole


def get_all_permission_codes():
    """Get list of all permission codes."""
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def validate_permission_code(code):
    """Check if a permission code is valid."""
    return code in ALLOWED_ROLES


def has_permission(role, code) -> bool:
    """
    True when `role` may exercise `code`.

    Unknown roles and unknown codes are denied (fail closed).
    """
    allowed = ALLOWED_ROLES.get(code)
    if allowed is None:
        return False
    try:
        return UserRole.parse(role) in allowed
    except ValueError:
        return False


def get_role_permissions(role) -> list[str]:
    """All permission codes granted to a role, in definition order."""
    return [code for code in get_all_permission_codes() if has_permission(role, code)]
