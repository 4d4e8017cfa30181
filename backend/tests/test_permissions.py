"""
Capability table tests. Pure functions, no app or database.
"""

import pytest

from inventory_platform.permissions import (
    ALLOWED_ROLES,
    UserRole,
    get_all_permission_codes,
    get_role_permissions,
    has_permission,
    validate_permission_code,
)

EXPECTED = {
    "VIEW_PRODUCTS": {"Admin", "Inventory", "Sales"},
    "MANAGE_PRODUCTS": {"Admin", "Inventory"},
    "DELETE_PRODUCTS": {"Admin"},
    "VIEW_SUPPLIERS": {"Admin", "Inventory", "Sales"},
    "MANAGE_SUPPLIERS": {"Admin", "Inventory"},
    "DELETE_SUPPLIERS": {"Admin"},
    "RECORD_SALE": {"Admin", "Sales"},
    "VIEW_SALES": {"Admin", "Sales"},
    "VIEW_LOW_STOCK_REPORT": {"Admin", "Inventory"},
    "VIEW_SALES_REPORTS": {"Admin", "Sales"},
    "MANAGE_USERS": {"Admin"},
}


@pytest.mark.parametrize("code", sorted(EXPECTED))
@pytest.mark.parametrize("role", ["Admin", "Inventory", "Sales"])
def test_capability_table(role, code):
    assert has_permission(role, code) is (role in EXPECTED[code])


def test_every_code_is_covered():
    assert set(get_all_permission_codes()) == set(EXPECTED)
    assert set(ALLOWED_ROLES) == set(EXPECTED)


def test_enum_and_string_roles_agree():
    assert has_permission(UserRole.INVENTORY, "MANAGE_PRODUCTS")
    assert get_role_permissions(UserRole.SALES) == get_role_permissions("Sales")


@pytest.mark.parametrize("role", ["admin", "Owner", "", None])
def test_unknown_role_denied(role):
    assert has_permission(role, "VIEW_PRODUCTS") is False
    assert get_role_permissions(role) == []


def test_unknown_code_denied():
    assert validate_permission_code("LAUNCH_ROCKETS") is False
    assert has_permission("Admin", "LAUNCH_ROCKETS") is False


def test_admin_holds_everything():
    assert get_role_permissions("Admin") == get_all_permission_codes()


def test_role_parse_message():
    with pytest.raises(ValueError, match="role must be one of: Admin, Inventory, Sales"):
        UserRole.parse("Cashier")
