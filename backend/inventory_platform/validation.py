from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta
from werkzeug.routing import IntegerConverter

from .money import MAX_PRICE, PRICE_SCALE, decimal_places, to_decimal

# Largest value a database INTEGER column (64-bit signed) can hold
MAX_DB_INTEGER = 2**63 - 1


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - immutable_fields: known fields that may be set on create but never changed
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    immutable_fields: set[str] | None = None


@dataclass(frozen=True)
class SaleRequestItem:
    product_id: int
    quantity: int


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


class DatabaseIdConverter(IntegerConverter):
    """<id:...> URL segment; ids outside the INTEGER range never match (404)."""

    def __init__(self, map, *args, **kwargs):
        kwargs.setdefault("max", MAX_DB_INTEGER)
        super().__init__(map, *args, **kwargs)


def db_int(value: str) -> int:
    """
    request.args type for integer query params.

    Raises ValueError for values that do not fit an INTEGER column, so
    request.args.get() falls back to its default.
    """
    number = int(value)
    if abs(number) > MAX_DB_INTEGER:
        raise ValueError(f"{value!r} is out of range")
    return number


def _coerce_int(key: str, value: Any) -> int:
    number = _parse_int(key, value)
    if abs(number) > MAX_DB_INTEGER:
        raise ValidationError(f"{key} is out of range")
    return number


def _parse_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)

    # Numeric -> Decimal, scale enforced against the column definition
    if isinstance(coltype, Numeric):
        try:
            number = to_decimal(value)
        except ValueError:
            raise ValidationError(f"{col.key} must be a number")
        if coltype.scale is not None and decimal_places(number) > coltype.scale:
            raise ValidationError(f"{col.key} allows at most {coltype.scale} decimal places")
        return number

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise ValidationError(f"{col.key} must be a boolean")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length, Numeric scale)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    - immutable_fields (if partial=True)
    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    immutable = policy.immutable_fields or set()
    cols = _columns_by_key(model)

    for k in payload.keys():
        if partial and k in immutable:
            raise ValidationError(f"{k} cannot be changed after creation")
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if patch.get("price") is not None:
        price = patch["price"]
        if price < 0:
            raise ValidationError("price must be >= 0")
        if price > MAX_PRICE:
            raise ValidationError(f"price cannot exceed {MAX_PRICE:,.{PRICE_SCALE}f}")

    for field in ("stock_quantity", "min_stock_level"):
        if patch.get(field) is not None and patch[field] < 0:
            raise ValidationError(f"{field} must be >= 0")


def enforce_rules_supplier(patch: dict) -> None:
    if patch.get("email"):
        email = patch["email"].lower()
        if "@" not in email:
            raise ValidationError("email must be a valid address")
        patch["email"] = email


def _first_present(data: dict, *keys):
    for key in keys:
        if key in data:
            return data[key]
    return None


def validate_sale_request(payload) -> tuple[list[SaleRequestItem], str | None]:
    """
    Normalize a sale request body.

    Accepts {"items": [{"product_id"|"productId", "quantity"}], "customer_name"|"customerName"}.
    Line order is preserved and duplicate products are kept as separate lines.
    Raises ValidationError before anything touches the database.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("A sale must contain at least one item")

    normalized: list[SaleRequestItem] = []
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"Item {idx}: must be an object")

        raw_product_id = _first_present(item, "product_id", "productId")
        if raw_product_id is None or raw_product_id == "":
            raise ValidationError(f"Item {idx}: missing 'product_id'")
        product_id = _coerce_int(f"Item {idx}: product_id", raw_product_id)
        if product_id < 1:
            raise ValidationError(f"Item {idx}: product_id must be a positive integer")

        raw_quantity = item.get("quantity")
        if raw_quantity is None:
            raise ValidationError(f"Item {idx}: missing 'quantity'")
        if isinstance(raw_quantity, bool) or not isinstance(raw_quantity, int) or raw_quantity < 1:
            raise ValidationError(f"Item {idx}: quantity must be a positive integer")
        if raw_quantity > MAX_DB_INTEGER:
            raise ValidationError(f"Item {idx}: quantity is out of range")

        normalized.append(SaleRequestItem(product_id=product_id, quantity=raw_quantity))

    customer_name = _first_present(payload, "customer_name", "customerName")
    if customer_name is not None:
        if not isinstance(customer_name, str):
            raise ValidationError("customer_name must be a string")
        customer_name = customer_name.strip() or None
        if customer_name and len(customer_name) > 120:
            raise ValidationError("customer_name exceeds max length 120")

    return normalized, customer_name
