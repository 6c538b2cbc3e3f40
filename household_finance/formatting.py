"""
Number formatting helpers.

Amounts leave the system as plain decimal strings ("15", "15.5") or
as US-dollar currency strings ("$1,234.56").
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

Number = Union[Decimal, float, int, str]

_CENTS = Decimal("0.01")


def _to_decimal(value: Number) -> Decimal:
    # str() first so floats keep their shortest representation
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Not a number: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def format_decimal(value: Number) -> str:
    """
    Format a number as a plain decimal string.

    No exponent, no trailing zeros: 15.0 -> "15", 15.50 -> "15.5", 0 -> "0".
    """
    result = _to_decimal(value)
    if result == 0:
        return "0"
    return format(result.normalize(), "f")


def format_currency(amount: Number) -> str:
    """
    Format an amount as US dollars.

    >>> format_currency("1234.5")
    '$1,234.50'
    >>> format_currency(-3)
    '-$3.00'
    """
    value = _to_decimal(amount).quantize(_CENTS, rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"
