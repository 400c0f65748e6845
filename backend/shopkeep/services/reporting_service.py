# Overview: Service-layer operations for reporting; daily sales figures from transactions.

from __future__ import annotations

from datetime import date

from sqlalchemy import func

from shopkeep.extensions import db
from shopkeep.models import Transaction, TransactionItem
from shopkeep.money import quantity_to_json, to_quantity
from shopkeep.time_utils import day_bounds, to_iso_date, utcnow


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def _day_filter(query, day: date):
    start, end = day_bounds(day)
    return query.filter(Transaction.transaction_date >= start, Transaction.transaction_date < end)


def get_today_sales(today: date | None = None) -> int:
    """Sum of transaction totals (cents) for today."""
    day = today or utcnow().date()
    total = _day_filter(
        db.session.query(func.coalesce(func.sum(Transaction.total_cents), 0)), day
    ).scalar()
    return int(total or 0)


def get_today_transaction_count(today: date | None = None) -> int:
    day = today or utcnow().date()
    return _day_filter(db.session.query(func.count(Transaction.id)), day).scalar() or 0


def get_daily_summary(day: date | None = None, *, top_limit: int = 5) -> dict:
    """
    Totals for one calendar day (UTC).

    top_products ranks by revenue; payment_breakdown maps payment method to
    transaction count and amount.
    """
    if top_limit <= 0:
        raise ReportError("top_limit must be > 0")
    day = day or utcnow().date()

    totals = _day_filter(
        db.session.query(
            func.count(Transaction.id),
            func.coalesce(func.sum(Transaction.subtotal_cents), 0),
            func.coalesce(func.sum(Transaction.discount_cents), 0),
            func.coalesce(func.sum(Transaction.total_cents), 0),
        ),
        day,
    ).one()
    count, subtotal, discount, total = totals

    payment_rows = _day_filter(
        db.session.query(
            Transaction.payment_method,
            func.count(Transaction.id),
            func.coalesce(func.sum(Transaction.total_cents), 0),
        ),
        day,
    ).group_by(Transaction.payment_method).order_by(Transaction.payment_method.asc()).all()

    revenue = func.coalesce(func.sum(TransactionItem.line_total_cents), 0)
    product_rows = _day_filter(
        db.session.query(
            TransactionItem.product_id,
            func.min(TransactionItem.product_name),
            func.coalesce(func.sum(TransactionItem.quantity), 0),
            revenue.label("revenue_cents"),
        ).join(Transaction, TransactionItem.transaction_id == Transaction.id),
        day,
    ).group_by(TransactionItem.product_id).order_by(
        revenue.desc(), TransactionItem.product_id.asc()
    ).limit(top_limit).all()

    return {
        "date": to_iso_date(day),
        "transaction_count": int(count or 0),
        "subtotal_cents": int(subtotal or 0),
        "discount_cents": int(discount or 0),
        "total_sales_cents": int(total or 0),
        "payment_breakdown": {
            method: {"count": int(n), "total_cents": int(amount or 0)}
            for method, n, amount in payment_rows
        },
        "top_products": [
            {
                "product_id": product_id,
                "product_name": name,
                "quantity": quantity_to_json(to_quantity(qty)),
                "revenue_cents": int(rev or 0),
            }
            for product_id, name, qty, rev in product_rows
        ],
    }
