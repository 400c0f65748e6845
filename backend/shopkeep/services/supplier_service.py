# Overview: Service-layer operations for suppliers; encapsulates business logic and database work.

"""
Supplier Service

Suppliers are optional on batches and price records. Receipt imports look
suppliers up by name (case-insensitive) and create them on first sight.
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Supplier


class SupplierNotFoundError(Exception):
    """Raised when a supplier is not found."""
    pass


class SupplierValidationError(Exception):
    """Raised when supplier data fails validation."""
    pass


SUPPLIER_MUTABLE_FIELDS = {
    "name", "contact_person", "phone", "email", "address", "payment_terms", "is_active",
}


def _clean_name(name: str | None) -> str:
    if not name or not name.strip():
        raise SupplierValidationError("Supplier name is required")
    return name.strip()


def get_supplier(supplier_id: int) -> Supplier:
    s = db.session.get(Supplier, supplier_id)
    if s is None:
        raise SupplierNotFoundError("Supplier not found")
    return s


def add_supplier(
    *,
    name: str,
    contact_person: str | None = None,
    phone: str | None = None,
    email: str | None = None,
    address: str | None = None,
    payment_terms: str | None = None,
    commit: bool = True,
) -> Supplier:
    s = Supplier(
        name=_clean_name(name),
        contact_person=contact_person,
        phone=phone,
        email=email,
        address=address,
        payment_terms=payment_terms,
        is_active=True,
    )
    db.session.add(s)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return s


def update_supplier(*, supplier_id: int, patch: dict) -> Supplier:
    s = get_supplier(supplier_id)
    for k, v in patch.items():
        if k not in SUPPLIER_MUTABLE_FIELDS:
            continue
        if k == "name":
            v = _clean_name(v)
        setattr(s, k, v)
    db.session.commit()
    return s


def list_suppliers(*, include_inactive: bool = False) -> list[Supplier]:
    q = db.session.query(Supplier)
    if not include_inactive:
        q = q.filter(Supplier.is_active.is_(True))
    return q.order_by(Supplier.name.asc(), Supplier.id.asc()).all()


def find_supplier_by_name(name: str) -> Supplier | None:
    if not name or not name.strip():
        return None
    return (
        db.session.query(Supplier)
        .filter(func.lower(Supplier.name) == name.strip().lower())
        .order_by(Supplier.id.asc())
        .first()
    )


def get_or_create_supplier(name: str, *, commit: bool = True) -> Supplier:
    existing = find_supplier_by_name(name)
    if existing is not None:
        return existing
    return add_supplier(name=name, commit=commit)
