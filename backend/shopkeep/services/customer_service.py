# Overview: Service-layer operations for customers; profile data only, balances live in the ledger.

"""
Customer Service

current_balance_cents is never written here. Opening a customer starts the
balance at 0; every later change is a ledger entry (ledger_service).
"""

from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Customer
from .concurrency import run_with_retry

CUSTOMER_MUTABLE_FIELDS = {
    "name", "phone", "email", "address", "customer_type",
    "credit_limit_cents", "loyalty_points", "is_active",
}


class CustomerNotFoundError(LookupError):
    """Raised when a customer is not found."""
    pass


def apply_customer_patch(c: Customer, patch: dict) -> None:
    for k, v in patch.items():
        if k not in CUSTOMER_MUTABLE_FIELDS:
            continue
        setattr(c, k, v)


def get_customer(customer_id: int) -> Customer:
    c = db.session.get(Customer, customer_id)
    if c is None:
        raise CustomerNotFoundError("Customer not found")
    return c


def add_customer(*, patch: dict) -> Customer:
    c = Customer(current_balance_cents=0)
    apply_customer_patch(c, patch)
    db.session.add(c)
    db.session.commit()
    return c


def update_customer(*, customer_id: int, patch: dict) -> Customer:
    def _op():
        c = get_customer(customer_id)
        apply_customer_patch(c, patch)
        db.session.commit()
        return c

    return run_with_retry(_op)


def deactivate_customer(*, customer_id: int) -> Customer:
    return update_customer(customer_id=customer_id, patch={"is_active": False})


def list_customers(
    *,
    search: str | None = None,
    customer_type: str | None = None,
    include_inactive: bool = False,
) -> list[Customer]:
    q = db.session.query(Customer)
    if not include_inactive:
        q = q.filter(Customer.is_active.is_(True))
    if customer_type:
        q = q.filter(Customer.customer_type == customer_type)
    if search and search.strip():
        pattern = f"%{search.strip().lower()}%"
        q = q.filter(or_(func.lower(Customer.name).like(pattern), Customer.phone.like(pattern)))
    return q.order_by(Customer.name.asc(), Customer.id.asc()).all()
