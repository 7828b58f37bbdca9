"""
Formatting helpers for JSON responses.

Amounts are rendered as strings so no precision is lost on the wire.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date, datetime
from typing import Union, Optional

Number = Union[int, float, Decimal, str, None]


def _to_decimal(value: Number) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return None


def fmt_amount(value: Number, places: int = 2) -> Optional[str]:
    """
    Format a money amount with a fixed number of decimals.

    Examples:
        fmt_amount(6) -> "6.00"
        fmt_amount(Decimal('1.335')) -> "1.34"
        fmt_amount(None) -> None
    """
    num = _to_decimal(value)
    if num is None:
        return None
    return str(num.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP))


def fmt_unit_cost(value: Number) -> Optional[str]:
    """
    Format a unit cost with 2 to 4 decimals.

    Examples:
        fmt_unit_cost(Decimal('7.0000')) -> "7.00"
        fmt_unit_cost(Decimal('7.1250')) -> "7.125"
    """
    num = _to_decimal(value)
    if num is None:
        return None
    text = str(num.quantize(Decimal('0.0001'), rounding=ROUND_HALF_UP))
    whole, _, decimals = text.partition('.')
    decimals = decimals.rstrip('0').ljust(2, '0')
    return f"{whole}.{decimals}"


def fmt_quantity(value: Number) -> Optional[str]:
    """
    Format a quantity without insignificant decimals.

    Examples:
        fmt_quantity(Decimal('20.000')) -> "20"
        fmt_quantity(Decimal('2.500')) -> "2.5"
    """
    num = _to_decimal(value)
    if num is None:
        return None
    if num == num.to_integral_value():
        return str(num.quantize(Decimal(1)))
    return format(num.normalize(), 'f')


def fmt_date(value: Union[date, datetime, None]) -> Optional[str]:
    """ISO 8601 date/datetime, or None."""
    if value is None:
        return None
    return value.isoformat()
