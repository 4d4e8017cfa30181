# Overview: Decimal helpers for prices and sale totals.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")

# Column scale for unit prices (Numeric(12, 4))
PRICE_SCALE = 4

# Maximum unit price: 9,999,999.9999
MAX_PRICE = Decimal("9999999.9999")


def to_decimal(value) -> Decimal:
    """
    Convert an int, str, float or Decimal into a finite Decimal.

    Floats go through str() so 9.995 stays 9.995 instead of its binary
    expansion. Raises ValueError for anything else.
    """
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"{value!r} is not a number")
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        raise ValueError(f"{value!r} is not a number")

    if not result.is_finite():
        raise ValueError("number must be finite")
    return result


def decimal_places(value: Decimal) -> int:
    exponent = value.normalize().as_tuple().exponent
    return max(0, -exponent) if isinstance(exponent, int) else 0


def round_money(value: Decimal) -> Decimal:
    """Round half away from zero to cents. Applied once, to final sums."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value: Decimal | None) -> str | None:
    """JSON form: at least two decimals, extra precision kept (9.995 -> '9.995')."""
    if value is None:
        return None
    value = Decimal(value)
    if decimal_places(value) <= 2:
        return str(value.quantize(CENT))
    return str(value.normalize())
