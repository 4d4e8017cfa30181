# Overview: Closed set of user roles.

from enum import Enum


class UserRole(str, Enum):
    """Every user holds exactly one of these roles."""
    ADMIN = "Admin"
    INVENTORY = "Inventory"
    SALES = "Sales"

    @classmethod
    def parse(cls, value) -> "UserRole":
        """Accept a UserRole or its value ("Admin", "Inventory", "Sales")."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(r.value for r in cls)
            raise ValueError(f"role must be one of: {allowed}")


ALL_ROLES = frozenset(UserRole)
