"""
Checkout: transaction, stock deduction and credit posting as one unit of work.
"""

import re
from decimal import Decimal

import pytest

from shopkeep.models import CreditTransaction, Transaction
from shopkeep.services import sales_service, storage_service
from shopkeep.services.cart_service import FractionalDetails
from shopkeep.services.document_service import DocumentSequenceError
from shopkeep.services.inventory_service import get_stock
from shopkeep.services.ledger_service import CreditLedgerError
from shopkeep.services.sales_service import (
    SaleError,
    SalePersistenceError,
    checkout,
    complete_sale,
    list_transactions,
)
from shopkeep.services.session_service import close_session, open_session


def test_cash_sale_with_discount(db_session, pos_session, product):
    pos_session.cart.add_to_cart(product, 3)

    txn = complete_sale(pos_session, "cash", discount_cents=100)

    assert txn is not None
    assert txn.subtotal_cents == 1500
    assert txn.discount_cents == 100
    assert txn.total_cents == 1400
    assert txn.tax_cents == 0
    assert txn.payment_status == "completed"
    assert txn.user_id == pos_session.user_id
    assert re.fullmatch(r"TXN-\d{8}-[A-Z0-9]{4}", txn.transaction_number)

    assert pos_session.cart.is_empty
    assert pos_session.transactions[0] is txn
    assert get_stock(product.id) == Decimal("7")


def test_line_snapshots(db_session, pos_session, product):
    pos_session.cart.add_to_cart(product, 2, discount_cents=50)
    txn = complete_sale(pos_session, "mpesa")

    assert len(txn.items) == 1
    line = txn.items[0]
    assert line.position == 1
    assert line.product_name == product.name
    assert line.unit_price_cents == 500
    assert line.line_total_cents == 950


def test_history_is_most_recent_first(db_session, pos_session, product):
    pos_session.cart.add_to_cart(product, 1)
    first = complete_sale(pos_session, "cash")
    pos_session.cart.add_to_cart(product, 1)
    second = complete_sale(pos_session, "cash")

    assert pos_session.transactions == [second, first]
    assert [t.id for t in list_transactions()] == [second.id, first.id]


def test_empty_cart_returns_none(db_session, pos_session):
    assert complete_sale(pos_session, "cash") is None
    assert db_session.query(Transaction).count() == 0


def test_checkout_empty_cart_raises(db_session, pos_session):
    with pytest.raises(SaleError):
        checkout(pos_session, payment_method="cash")


def test_guest_sale_has_no_user(db_session, product):
    guest = open_session()
    guest.cart.add_to_cart(product, 1)
    txn = complete_sale(guest, "cash")

    assert txn.user_id is None


def test_weighed_line_deducts_actual_weight(db_session, pos_session, make_product):
    loose = make_product(unit="kg", retail_price_cents=75, stock=20)
    pos_session.cart.add_to_cart(loose, fractional=FractionalDetails.create("2.5", 188))

    txn = complete_sale(pos_session, "cash")

    assert txn.total_cents == 188
    assert txn.items[0].actual_weight == Decimal("2.5")
    assert get_stock(loose.id) == Decimal("17.5")


def test_credit_sale_posts_ledger_entry(db_session, pos_session, product, make_customer):
    customer = make_customer(credit_limit_cents=10000, current_balance_cents=4000)
    pos_session.cart.add_to_cart(product, 3)

    txn = complete_sale(pos_session, "credit", customer_id=customer.id)

    db_session.refresh(customer)
    assert customer.current_balance_cents == 5500
    entries = db_session.query(CreditTransaction).filter_by(customer_id=customer.id).all()
    assert len(entries) == 1
    entry = entries[0]
    assert entry.type == "credit_sale"
    assert entry.transaction_id == txn.id
    assert (entry.balance_before_cents, entry.balance_after_cents) == (4000, 5500)
    assert txn.customer_name == customer.name


def test_credit_sale_requires_customer(db_session, pos_session, product):
    pos_session.cart.add_to_cart(product, 1)

    with pytest.raises(SaleError):
        complete_sale(pos_session, "credit")

    assert len(pos_session.cart) == 1
    assert db_session.query(Transaction).count() == 0


def test_unknown_payment_method(db_session, pos_session, product):
    pos_session.cart.add_to_cart(product, 1)
    with pytest.raises(SaleError):
        complete_sale(pos_session, "cheque")


def test_discount_above_subtotal_rejected(db_session, pos_session, product):
    pos_session.cart.add_to_cart(product, 1)
    with pytest.raises(SaleError):
        complete_sale(pos_session, "cash", discount_cents=600)
    assert get_stock(product.id) == Decimal("10")


def test_oversell_records_shortfall(db_session, pos_session, make_product):
    p = make_product(stock=3)
    pos_session.cart.add_to_cart(p, 5)

    txn = complete_sale(pos_session, "cash")

    assert txn is not None
    assert get_stock(p.id) == Decimal("0")
    assert [s.shortfall for s in pos_session.last_shortfalls] == [Decimal("2")]


def test_oversell_refused_rolls_back_everything(app, db_session, pos_session, make_product, monkeypatch):
    monkeypatch.setitem(app.config, "ALLOW_OVERSELL", False)
    plenty = make_product(name="Plenty", stock=10)
    scarce = make_product(name="Scarce", stock=1)
    pos_session.cart.add_to_cart(plenty, 4)
    pos_session.cart.add_to_cart(scarce, 2)

    with pytest.raises(SaleError) as exc:
        complete_sale(pos_session, "cash")

    assert exc.value.details["product_id"] == scarce.id
    assert db_session.query(Transaction).count() == 0
    assert get_stock(plenty.id) == Decimal("10")
    assert get_stock(scarce.id) == Decimal("1")
    assert len(pos_session.cart) == 2
    assert pos_session.transactions == []


def test_failure_after_deduction_rolls_back(db_session, pos_session, product, customer, monkeypatch):
    def _boom(**kwargs):
        raise RuntimeError("ledger unavailable")

    monkeypatch.setattr(sales_service, "record_credit_sale", _boom)
    pos_session.cart.add_to_cart(product, 2)

    with pytest.raises(RuntimeError):
        checkout(pos_session, payment_method="credit", customer_id=customer.id)

    assert db_session.query(Transaction).count() == 0
    assert get_stock(product.id) == Decimal("10")
    db_session.refresh(customer)
    assert customer.current_balance_cents == 0
    assert len(pos_session.cart) == 1


def test_persistence_failure_returns_none(db_session, pos_session, product, monkeypatch):
    monkeypatch.setattr(storage_service.transactions, "add", lambda *a, **k: False)
    pos_session.cart.add_to_cart(product, 2)

    assert complete_sale(pos_session, "cash") is None
    assert get_stock(product.id) == Decimal("10")
    assert len(pos_session.cart) == 1


def test_closed_session_cannot_sell(db_session, pos_session, product):
    close_session(pos_session)
    pos_session.cart.add_to_cart(product, 1)
    with pytest.raises(SaleError):
        checkout(pos_session, payment_method="cash")
    with pytest.raises(SaleError):
        complete_sale(pos_session, "cash")
    assert db_session.query(Transaction).count() == 0


def test_rejected_ledger_entry_is_a_sale_error(db_session, pos_session, product, customer, monkeypatch):
    def _reject(**kwargs):
        raise CreditLedgerError("Credit sale amount must be positive")

    monkeypatch.setattr(sales_service, "record_credit_sale", _reject)
    pos_session.cart.add_to_cart(product, 2)

    with pytest.raises(SaleError) as exc:
        complete_sale(pos_session, "credit", customer_id=customer.id)

    assert exc.value.details["customer_id"] == customer.id
    assert db_session.query(Transaction).count() == 0
    assert get_stock(product.id) == Decimal("10")
    assert len(pos_session.cart) == 1


def test_unnumbered_sale_is_not_persisted(db_session, pos_session, product, monkeypatch):
    def _exhausted():
        raise DocumentSequenceError("could not allocate a unique transaction_number")

    monkeypatch.setattr(sales_service, "next_transaction_number", _exhausted)
    pos_session.cart.add_to_cart(product, 1)

    with pytest.raises(SalePersistenceError):
        checkout(pos_session, payment_method="cash")
    assert complete_sale(pos_session, "cash") is None
    assert db_session.query(Transaction).count() == 0
    assert len(pos_session.cart) == 1


def test_transactions_are_append_only(db_session, pos_session, product):
    pos_session.cart.add_to_cart(product, 1)
    txn = complete_sale(pos_session, "cash")

    txn.notes = "edited"
    with pytest.raises(ValueError):
        db_session.commit()
    db_session.rollback()
