# Overview: Service-layer operations for sales; turns a session cart into a transaction.

"""
Sale Engine

Checkout is one unit of work. Inside a single database transaction it:
  1. persists the Transaction and its line snapshots,
  2. deducts stock for every line through the batch allocator,
  3. posts a credit_sale ledger entry when the payment method is credit.
A failure at any step rolls back all three; the cart and the session history
are only touched after the commit succeeded.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..constants import PAYMENT_CREDIT, PAYMENT_STATUS_COMPLETED
from ..extensions import db
from ..models import Customer, Transaction, TransactionItem
from ..validation import ValidationError, validate_payment_method
from shopkeep.time_utils import utcnow
from . import storage_service
from .concurrency import atomic
from .document_service import DocumentSequenceError, next_transaction_number
from .inventory_service import InsufficientStockError, InventoryError, deduct_stock
from .ledger_service import CreditLedgerError, record_credit_sale
from .session_service import PosSession, SessionClosedError


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class SalePersistenceError(SaleError):
    """The transaction record could not be written."""
    pass


def _resolve_customer(customer_id: int | None) -> Customer | None:
    if customer_id is None:
        return None
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise SaleError("Customer not found", details={"customer_id": customer_id})
    return customer


def _build_transaction(session: PosSession, *, customer, payment_method, discount_cents, notes, reference_number):
    subtotal = session.cart.subtotal_cents()
    txn = Transaction(
        transaction_number=next_transaction_number(),
        customer_id=customer.id if customer else None,
        customer_name=customer.name if customer else None,
        user_id=session.user_id,
        transaction_date=utcnow(),
        subtotal_cents=subtotal,
        discount_cents=discount_cents,
        tax_cents=0,
        total_cents=subtotal - discount_cents,
        payment_method=payment_method,
        payment_status=PAYMENT_STATUS_COMPLETED,
        reference_number=reference_number,
        notes=notes,
    )
    for position, line in enumerate(session.cart.items, start=1):
        txn.items.append(TransactionItem(
            position=position,
            product_id=line.product_id,
            product_name=line.product_name,
            quantity=line.quantity,
            unit_price_cents=line.unit_price_cents,
            discount_cents=line.discount_cents,
            line_total_cents=line.line_total_cents,
            actual_weight=line.actual_weight,
        ))
    return txn


def checkout(
    session: PosSession,
    *,
    payment_method: str,
    customer_id: int | None = None,
    discount_cents: int = 0,
    notes: str | None = None,
    reference_number: str | None = None,
) -> Transaction:
    """
    Complete the session's cart as one sale.

    Raises SaleError for anything that stops the sale (closed session, empty
    cart, bad discount, unknown customer, refused oversell, rejected ledger
    entry) and SalePersistenceError when the record cannot be written or no
    transaction number could be allocated. Nothing is left half-done.
    """
    try:
        session.ensure_open()
    except SessionClosedError as e:
        raise SaleError(str(e)) from e
    cart = session.cart
    if cart.is_empty:
        raise SaleError("Cart is empty")

    try:
        validate_payment_method(payment_method)
    except ValidationError as e:
        raise SaleError(str(e))

    subtotal = cart.subtotal_cents()
    if discount_cents is None or discount_cents < 0:
        raise SaleError("discount must be >= 0")
    if discount_cents > subtotal:
        raise SaleError(
            "discount cannot exceed subtotal",
            details={"subtotal_cents": subtotal, "discount_cents": discount_cents},
        )
    bad_lines = [item.id for item in cart.items if item.line_total_cents < 0]
    if bad_lines:
        raise SaleError("line discount exceeds line amount", details={"items": bad_lines})

    customer = _resolve_customer(customer_id)
    if payment_method == PAYMENT_CREDIT and customer is None:
        raise SaleError("A customer is required for credit sales")

    allow_oversell = current_app.config.get("ALLOW_OVERSELL", True)
    shortfalls = []

    try:
        with atomic():
            txn = _build_transaction(
                session,
                customer=customer,
                payment_method=payment_method,
                discount_cents=discount_cents,
                notes=notes,
                reference_number=reference_number,
            )
            if not storage_service.transactions.add(txn, commit=False):
                raise SalePersistenceError("Failed to save transaction")

            for line in cart.items:
                result = deduct_stock(
                    product_id=line.product_id,
                    quantity=line.stock_quantity,
                    allow_shortfall=allow_oversell,
                    commit=False,
                )
                if not result.fulfilled:
                    shortfalls.append(result)

            if payment_method == PAYMENT_CREDIT and txn.total_cents > 0:
                record_credit_sale(
                    customer_id=customer.id,
                    amount_cents=txn.total_cents,
                    transaction_id=txn.id,
                    user_id=session.user_id,
                    commit=False,
                )
    except InsufficientStockError as e:
        raise SaleError(
            "Insufficient stock to complete sale",
            details={
                "product_id": e.product_id,
                "requested_quantity": str(e.requested),
                "on_hand": str(e.available),
            },
        )
    except InventoryError as e:
        raise SaleError(str(e))
    except CreditLedgerError as e:
        raise SaleError(str(e), details={"customer_id": customer_id}) from e
    except DocumentSequenceError as e:
        current_app.logger.exception("Failed to number sale")
        raise SalePersistenceError(str(e)) from e
    except SQLAlchemyError as e:
        current_app.logger.exception("Failed to complete sale")
        raise SalePersistenceError("Failed to save transaction") from e

    session.record_transaction(txn)
    session.last_shortfalls = shortfalls
    cart.clear()

    if shortfalls:
        current_app.logger.warning(
            "Sale %s completed with stock shortfall on products %s",
            txn.transaction_number,
            [s.product_id for s in shortfalls],
        )
    current_app.logger.info(
        "Sale %s completed: %s cents via %s", txn.transaction_number, txn.total_cents, payment_method
    )
    return txn


def complete_sale(
    session: PosSession,
    payment_method: str,
    customer_id: int | None = None,
    discount_cents: int = 0,
    notes: str | None = None,
) -> Transaction | None:
    """
    Checkout that reports failure as None.

    None for an empty cart or when the sale could not be persisted; other
    validation failures still raise SaleError so the caller can show them.
    """
    if session.cart.is_empty:
        return None
    try:
        return checkout(
            session,
            payment_method=payment_method,
            customer_id=customer_id,
            discount_cents=discount_cents,
            notes=notes,
        )
    except SalePersistenceError:
        return None


def get_transaction(transaction_id: int) -> Transaction | None:
    return db.session.get(Transaction, transaction_id)


def get_transaction_by_number(transaction_number: str) -> Transaction | None:
    return db.session.query(Transaction).filter_by(transaction_number=transaction_number).first()


def list_transactions(
    *,
    limit: int | None = 50,
    customer_id: int | None = None,
    payment_method: str | None = None,
) -> list[Transaction]:
    """Transactions, most recent first."""
    q = db.session.query(Transaction)
    if customer_id is not None:
        q = q.filter(Transaction.customer_id == customer_id)
    if payment_method is not None:
        q = q.filter(Transaction.payment_method == payment_method)
    q = q.order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
    if limit is not None:
        q = q.limit(limit)
    return q.all()
