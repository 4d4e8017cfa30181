# Overview: Permission system package.
# Re-exports the role enum, the capability table and the pure check.

from .roles import UserRole, ALL_ROLES
from .definitions import (
    PERMISSION_DEFINITIONS,
    ALLOWED_ROLES,
    CATALOG_PERMISSIONS,
    SALES_PERMISSIONS,
    REPORT_PERMISSIONS,
    USER_PERMISSIONS,
)
from .helpers import (
    get_all_permission_codes,
    get_role_permissions,
    has_permission,
    validate_permission_code,
)

__all__ = [
    "UserRole",
    "ALL_ROLES",
    "PERMISSION_DEFINITIONS",
    "ALLOWED_ROLES",
    "CATALOG_PERMISSIONS",
    "SALES_PERMISSIONS",
    "REPORT_PERMISSIONS",
    "USER_PERMISSIONS",
    "get_all_permission_codes",
    "get_role_permissions",
    "has_permission",
    "validate_permission_code",
]
