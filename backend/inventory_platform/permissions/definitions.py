# Overview: All capability definitions and the roles allowed to exercise them.
# Each capability is defined as: (code, description, allowed roles)

from .roles import UserRole, ALL_ROLES

ADMIN_ONLY = frozenset({UserRole.ADMIN})
INVENTORY_STAFF = frozenset({UserRole.ADMIN, UserRole.INVENTORY})
SALES_STAFF = frozenset({UserRole.ADMIN, UserRole.SALES})


# -- CATALOG --

CATALOG_PERMISSIONS = [
    ("VIEW_PRODUCTS", "List and view products", ALL_ROLES),
    ("MANAGE_PRODUCTS", "Create and edit products", INVENTORY_STAFF),
    ("DELETE_PRODUCTS", "Deactivate or delete products", ADMIN_ONLY),
    ("VIEW_SUPPLIERS", "List and view suppliers", ALL_ROLES),
    ("MANAGE_SUPPLIERS", "Create and edit suppliers", INVENTORY_STAFF),
    ("DELETE_SUPPLIERS", "Delete suppliers with no products", ADMIN_ONLY),
]


# -- SALES --

SALES_PERMISSIONS = [
    ("RECORD_SALE", "Record a sale and decrement stock", SALES_STAFF),
    ("VIEW_SALES", "List and view recorded sales", SALES_STAFF),
]


# -- REPORTS --

REPORT_PERMISSIONS = [
    ("VIEW_LOW_STOCK_REPORT", "View products below their minimum stock level", INVENTORY_STAFF),
    ("VIEW_SALES_REPORTS", "View sales aggregated by product or period", SALES_STAFF),
]


# -- USERS --

USER_PERMISSIONS = [
    ("MANAGE_USERS", "Create, edit and deactivate user accounts", ADMIN_ONLY),
]


PERMISSION_DEFINITIONS = (
    CATALOG_PERMISSIONS
    + SALES_PERMISSIONS
    + REPORT_PERMISSIONS
    + USER_PERMISSIONS
)

# Static capability table: permission code -> roles allowed
ALLOWED_ROLES = {code: roles for code, _desc, roles in PERMISSION_DEFINITIONS}
