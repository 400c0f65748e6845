# Overview: Service-layer operations for the customer credit ledger; records balance events.

from __future__ import annotations

from sqlalchemy import func

from ..constants import CREDIT_ADJUSTMENT, CREDIT_PAYMENT, CREDIT_SALE
from ..extensions import db
from ..models import CreditTransaction, Customer
from shopkeep.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
"""
Credit Ledger Invariants (authoritative)

- Append-only: CreditTransaction rows are never updated or deleted.
- Every change to Customer.current_balance_cents goes through this module and
  appends exactly one entry in the same DB transaction.
- balance_before_cents is the customer's balance read under lock;
  balance_after_cents is the balance written back. Entries therefore chain:
  entry[n].balance_before == entry[n-1].balance_after.
- No business-rule gating. Credit limits and overpayment warnings are the
  caller's concern (see credit_policy); the ledger records what it is told.
"""


class CreditLedgerError(ValueError):
    """Raised for invalid ledger requests (unknown customer, bad amount)."""
    pass


def _get_customer(customer_id: int) -> Customer:
    customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
    if customer is None:
        raise CreditLedgerError(f"Customer {customer_id} not found")
    return customer


def _append_entry(
    customer: Customer,
    *,
    entry_type: str,
    amount_cents: int,
    delta_cents: int,
    transaction_id: int | None = None,
    payment_method: str | None = None,
    reference_number: str | None = None,
    notes: str | None = None,
    user_id: int | None = None,
) -> CreditTransaction:
    before = customer.current_balance_cents
    after = before + delta_cents

    entry = CreditTransaction(
        customer_id=customer.id,
        transaction_id=transaction_id,
        type=entry_type,
        amount_cents=amount_cents,
        balance_before_cents=before,
        balance_after_cents=after,
        payment_method=payment_method,
        reference_number=reference_number,
        notes=notes,
        created_by_user_id=user_id,
        occurred_at=utcnow(),
    )
    customer.current_balance_cents = after

    db.session.add(entry)
    db.session.flush()
    return entry


def _run(op, commit: bool):
    def _op():
        entry = op()
        if commit:
            db.session.commit()
        return entry

    return run_with_retry(_op) if commit else _op()


def record_credit_sale(
    *,
    customer_id: int,
    amount_cents: int,
    transaction_id: int | None,
    user_id: int | None = None,
    commit: bool = True,
) -> CreditTransaction:
    """Raise the customer's balance by a sale taken on account."""
    if amount_cents is None or amount_cents <= 0:
        raise CreditLedgerError("Credit sale amount must be positive")

    return _run(lambda: _append_entry(
        _get_customer(customer_id),
        entry_type=CREDIT_SALE,
        amount_cents=amount_cents,
        delta_cents=amount_cents,
        transaction_id=transaction_id,
        user_id=user_id,
    ), commit)


def record_credit_payment(
    *,
    customer_id: int,
    amount_cents: int,
    payment_method: str,
    reference_number: str | None = None,
    notes: str | None = None,
    user_id: int | None = None,
    commit: bool = True,
) -> CreditTransaction:
    """
    Lower the customer's balance by a payment received.

    Paying more than is owed is recorded as given; the balance goes negative.
    """
    if amount_cents is None or amount_cents <= 0:
        raise CreditLedgerError("Payment amount must be positive")

    return _run(lambda: _append_entry(
        _get_customer(customer_id),
        entry_type=CREDIT_PAYMENT,
        amount_cents=amount_cents,
        delta_cents=-amount_cents,
        payment_method=payment_method,
        reference_number=reference_number,
        notes=notes,
        user_id=user_id,
    ), commit)


def adjust_credit_balance(
    *,
    customer_id: int,
    amount_cents: int,
    reason: str,
    notes: str | None = None,
    user_id: int | None = None,
    commit: bool = True,
) -> CreditTransaction:
    """
    Correct a balance by a signed amount: positive raises the debt, negative
    lowers it. The reason is stored at the start of the entry's notes.
    """
    if not amount_cents:
        raise CreditLedgerError("Adjustment amount must be non-zero")
    if not reason or not reason.strip():
        raise CreditLedgerError("Adjustment reason is required")

    text = reason.strip()
    if notes and notes.strip():
        text = f"{text} - {notes.strip()}"

    return _run(lambda: _append_entry(
        _get_customer(customer_id),
        entry_type=CREDIT_ADJUSTMENT,
        amount_cents=amount_cents,
        delta_cents=amount_cents,
        notes=text,
        user_id=user_id,
    ), commit)


def get_customer_credit_history(customer_id: int, limit: int | None = None) -> list[CreditTransaction]:
    """Ledger entries for one customer, most recent first."""
    q = (
        db.session.query(CreditTransaction)
        .filter(CreditTransaction.customer_id == customer_id)
        .order_by(CreditTransaction.occurred_at.desc(), CreditTransaction.id.desc())
    )
    if limit is not None:
        q = q.limit(limit)
    return q.all()


def get_total_outstanding_debt() -> int:
    """Sum of positive balances across active customers (credit balances excluded)."""
    total = (
        db.session.query(func.coalesce(func.sum(Customer.current_balance_cents), 0))
        .filter(Customer.is_active.is_(True), Customer.current_balance_cents > 0)
        .scalar()
    )
    return int(total or 0)


def get_customers_with_debt() -> list[Customer]:
    return (
        db.session.query(Customer)
        .filter(Customer.is_active.is_(True), Customer.current_balance_cents > 0)
        .order_by(Customer.current_balance_cents.desc(), Customer.id.asc())
        .all()
    )


def verify_ledger_chain(customer_id: int) -> list[str]:
    """
    Check that a customer's entries chain and end at the stored balance.

    Returns a list of problems; empty when the ledger is consistent. The
    first entry's balance_before is taken as the opening balance.
    """
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise CreditLedgerError(f"Customer {customer_id} not found")

    entries = (
        db.session.query(CreditTransaction)
        .filter(CreditTransaction.customer_id == customer_id)
        .order_by(CreditTransaction.occurred_at.asc(), CreditTransaction.id.asc())
        .all()
    )

    problems = []
    previous_after = None
    for entry in entries:
        if previous_after is not None and entry.balance_before_cents != previous_after:
            problems.append(
                f"entry {entry.id}: balance_before {entry.balance_before_cents} != previous balance_after {previous_after}"
            )
        sign = -1 if entry.type == CREDIT_PAYMENT else 1
        expected_after = entry.balance_before_cents + sign * entry.amount_cents
        if entry.balance_after_cents != expected_after:
            problems.append(
                f"entry {entry.id}: balance_after {entry.balance_after_cents} != {expected_after}"
            )
        previous_after = entry.balance_after_cents

    if previous_after is not None and previous_after != customer.current_balance_cents:
        problems.append(
            f"customer balance {customer.current_balance_cents} != last balance_after {previous_after}"
        )
    return problems
