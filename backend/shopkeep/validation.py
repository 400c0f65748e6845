from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal
from shopkeep.time_utils import parse_iso_datetime, parse_iso_date

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, Integer, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .constants import (
    VALID_CATEGORIES,
    VALID_UNITS,
    VALID_ITEM_TYPES,
    ITEM_TYPE_BULK,
    VALID_PAYMENT_METHODS,
    VALID_CUSTOMER_TYPES,
)
from .money import to_quantity


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

PIN_MIN_LENGTH = 4
PIN_MAX_LENGTH = 6


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
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15") and decimals (e.g., "12.5")
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

    # Quantities (Numeric columns hold Decimals with 3 places)
    if isinstance(coltype, Numeric):
        try:
            return to_quantity(value)
        except ValueError:
            raise ValidationError(f"{col.key} must be a number")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

    # DateTime is checked before Date: it is not a subclass, but keep the order explicit
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, Date):
        if isinstance(value, date):
            return value
        try:
            d = parse_iso_date(value)
        except ValueError:
            raise ValidationError(f"{col.key} must be an ISO-8601 date")
        if d is None:
            raise ValidationError(f"{col.key} must be an ISO-8601 date")
        return d

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
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
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
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

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


# =============================================================================
# FIELD RULES
# =============================================================================

def parse_cents(name: str, value: Any, *, allow_zero: bool = True) -> int:
    """Validate a cents amount: integer, non-negative (or positive), bounded."""
    if value is None:
        raise ValidationError(f"{name} is required")
    cents = _coerce_int(name, value)
    if cents < 0 or (cents == 0 and not allow_zero):
        raise ValidationError(f"{name} must be {'>= 0' if allow_zero else '> 0'}")
    if cents > MAX_PRICE_CENTS:
        raise ValidationError(f"{name} cannot exceed {MAX_PRICE_CENTS}")
    return cents


def parse_signed_cents(name: str, value: Any) -> int:
    if value is None:
        raise ValidationError(f"{name} is required")
    cents = _coerce_int(name, value)
    if cents == 0:
        raise ValidationError(f"{name} must be non-zero")
    if abs(cents) > MAX_PRICE_CENTS:
        raise ValidationError(f"{name} cannot exceed {MAX_PRICE_CENTS} in magnitude")
    return cents


def parse_quantity(name: str, value: Any, *, allow_zero: bool = False) -> Decimal:
    if value is None:
        raise ValidationError(f"{name} is required")
    try:
        qty = to_quantity(value)
    except ValueError:
        raise ValidationError(f"{name} must be a number")
    if qty < 0 or (qty == 0 and not allow_zero):
        raise ValidationError(f"{name} must be {'>= 0' if allow_zero else '> 0'}")
    return qty


def validate_payment_method(method: Any, allowed: list[str] = VALID_PAYMENT_METHODS) -> str:
    if not isinstance(method, str) or method not in allowed:
        raise ValidationError(f"Invalid payment method: {method}. Must be one of {allowed}")
    return method


def validate_pin(pin: Any) -> str:
    """PINs are 4-6 ASCII digits."""
    if not isinstance(pin, str):
        raise ValidationError("PIN must be a string of digits")
    if not (PIN_MIN_LENGTH <= len(pin) <= PIN_MAX_LENGTH) or not pin.isascii() or not pin.isdigit():
        raise ValidationError(f"PIN must be {PIN_MIN_LENGTH}-{PIN_MAX_LENGTH} digits")
    return pin


def validate_credit_limit(value: Any) -> int:
    return parse_cents("credit_limit_cents", value)


def enforce_rules_product(patch: dict, *, creating: bool = False) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for field in ("retail_price_cents", "wholesale_price_cents", "cost_price_cents",
                  "price_per_base_unit_cents", "cost_per_base_unit_cents"):
        if patch.get(field) is not None:
            parse_cents(field, patch[field])

    if "category" in patch and patch["category"] not in VALID_CATEGORIES:
        raise ValidationError(f"category must be one of {VALID_CATEGORIES}")
    if "unit" in patch and patch["unit"] not in VALID_UNITS:
        raise ValidationError(f"unit must be one of {VALID_UNITS}")
    if "item_type" in patch and patch["item_type"] not in VALID_ITEM_TYPES:
        raise ValidationError(f"item_type must be one of {VALID_ITEM_TYPES}")

    if patch.get("reorder_level") is not None and patch["reorder_level"] < 0:
        raise ValidationError("reorder_level must be >= 0")

    if creating and patch.get("item_type") == ITEM_TYPE_BULK:
        if not patch.get("package_size") or patch["package_size"] <= 0:
            raise ValidationError("package_size must be > 0 for bulk items")
        if not patch.get("price_per_base_unit_cents"):
            raise ValidationError("price_per_base_unit_cents must be > 0 for bulk items")


def enforce_rules_customer(patch: dict) -> None:
    if "customer_type" in patch and patch["customer_type"] not in VALID_CUSTOMER_TYPES:
        raise ValidationError(f"customer_type must be one of {VALID_CUSTOMER_TYPES}")
    if "credit_limit_cents" in patch:
        validate_credit_limit(patch["credit_limit_cents"])
    if patch.get("loyalty_points") is not None and patch["loyalty_points"] < 0:
        raise ValidationError("loyalty_points must be >= 0")
