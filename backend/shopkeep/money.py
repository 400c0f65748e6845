"""
Money and quantity arithmetic.

Money is held in integer minor units (cents) everywhere. Quantities are
Decimals so bulk items can be sold by weight; they are stored with three
decimal places.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

QUANTITY_PLACES = Decimal("0.001")


def to_quantity(value: Any) -> Decimal:
    """Coerce int/float/str/Decimal to a 3-place Decimal quantity."""
    if isinstance(value, bool):
        raise ValueError("quantity must be a number")
    if isinstance(value, Decimal):
        dec = value
    else:
        try:
            # str() first so 0.1 becomes Decimal("0.1"), not its binary expansion
            dec = Decimal(str(value).strip())
        except (InvalidOperation, AttributeError):
            raise ValueError("quantity must be a number")
    if not dec.is_finite():
        raise ValueError("quantity must be a finite number")
    return dec.quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)


def round_cents(value: Decimal | int) -> int:
    """Nearest-cent rounding (half-up)."""
    if isinstance(value, int):
        return value
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_cents(major: Any) -> int:
    """
    Convert a major-unit amount (e.g. 1499.50 as printed on a receipt) to cents.
    """
    if isinstance(major, bool) or major is None:
        raise ValueError("amount must be a number")
    try:
        dec = Decimal(str(major).strip().replace(",", ""))
    except InvalidOperation:
        raise ValueError("amount must be a number")
    if not dec.is_finite():
        raise ValueError("amount must be a finite number")
    return round_cents(dec * 100)


def scale_cents(cents: int, factor: Any) -> int:
    """cents x factor, rounded half-up (used for markups)."""
    return round_cents(Decimal(cents) * Decimal(str(factor)))


def line_amount_cents(unit_price_cents: int, quantity: Decimal) -> int:
    return round_cents(Decimal(unit_price_cents) * quantity)


def quantity_to_json(value: Decimal | None):
    """Integral quantities serialise as int, fractional ones as float."""
    if value is None:
        return None
    dec = Decimal(value)
    if dec == dec.to_integral_value():
        return int(dec)
    return float(dec)
