# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/shopkeep/routes/sales.py
"""
Sales routes.

POST /checkout rings up a cart posted in one request:

    {
      "items": [
        {"product_id": 1, "quantity": 3},
        {"product_id": 2, "weight": 2.5, "total_price_cents": 37500}
      ],
      "payment_method": "cash",
      "customer_id": null,
      "discount_cents": 0,
      "user_id": null,
      "override_credit_limit": false
    }

A line with weight is a weighed (fractional) sale. Credit sales consult the
credit policy first; a sale over the limit needs override_credit_limit=true.
"""
from flask import Blueprint, current_app, request

from ..constants import PAYMENT_CREDIT
from ..extensions import db
from ..models import Customer, Product, User
from shopkeep.time_utils import parse_iso_date
from ..services import reporting_service, sales_service
from ..services.cart_service import CartError, FractionalDetails
from ..services.credit_policy import check_credit_sale
from ..services.sales_service import SaleError, SalePersistenceError
from ..services.session_service import close_session, open_session
from ..validation import ValidationError, parse_cents, parse_quantity

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _build_session(payload: dict):
    user = None
    user_id = payload.get("user_id")
    if user_id is not None:
        user = db.session.get(User, user_id)
        if user is None or not user.is_active:
            raise ValidationError("User not found")

    session = open_session(user)
    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    for i, raw in enumerate(items):
        if not isinstance(raw, dict) or raw.get("product_id") is None:
            raise ValidationError(f"items[{i}].product_id is required")
        product = db.session.get(Product, raw["product_id"])
        if product is None:
            raise ValidationError(f"items[{i}]: product not found")

        discount = parse_cents(f"items[{i}].discount_cents", raw.get("discount_cents", 0))
        if raw.get("weight") is not None:
            fractional = FractionalDetails.create(
                parse_quantity(f"items[{i}].weight", raw["weight"]),
                parse_cents(f"items[{i}].total_price_cents", raw.get("total_price_cents")),
            )
            session.cart.add_to_cart(product, fractional=fractional, discount_cents=discount)
        else:
            quantity = parse_quantity(f"items[{i}].quantity", raw.get("quantity", 1))
            session.cart.add_to_cart(product, quantity, discount_cents=discount)
    return session


@sales_bp.post("/checkout")
def checkout_route():
    payload = request.get_json(silent=True) or {}

    try:
        session = _build_session(payload)
        discount = parse_cents("discount_cents", payload.get("discount_cents", 0))
    except (ValidationError, CartError) as e:
        return {"success": False, "error": str(e)}, 400

    payment_method = payload.get("payment_method")
    customer_id = payload.get("customer_id")

    if payment_method == PAYMENT_CREDIT:
        customer = db.session.get(Customer, customer_id) if customer_id is not None else None
        check = check_credit_sale(customer, session.cart.total_cents(discount))
        if customer is None:
            return {"success": False, "error": check.reason}, 400
        if check.requires_override and not payload.get("override_credit_limit"):
            return {
                "success": False,
                "error": check.reason,
                "requires_override": True,
                "credit_check": check.to_dict(),
            }, 409

    try:
        txn = sales_service.checkout(
            session,
            payment_method=payment_method,
            customer_id=customer_id,
            discount_cents=discount,
            notes=payload.get("notes"),
            reference_number=payload.get("reference_number"),
        )
    except SalePersistenceError:
        return {"success": False, "error": "Failed to save transaction"}, 500
    except SaleError as e:
        return {"success": False, "error": str(e), "details": e.details}, 400
    except Exception:
        current_app.logger.exception("Failed to complete sale")
        return {"error": "Internal server error"}, 500

    shortfalls = [s.to_dict() for s in session.last_shortfalls]
    close_session(session)
    return {
        "success": True,
        "transaction": txn.to_dict(),
        "shortfalls": shortfalls,
    }, 201


@sales_bp.get("")
def list_transactions_route():
    limit = request.args.get("limit", default=50, type=int)
    limit = max(1, min(limit, 500))
    customer_id = request.args.get("customer_id", type=int)
    payment_method = request.args.get("payment_method")

    rows = sales_service.list_transactions(
        limit=limit, customer_id=customer_id, payment_method=payment_method
    )
    return {"items": [t.to_dict(include_items=False) for t in rows], "count": len(rows)}


@sales_bp.get("/<int:transaction_id>")
def get_transaction_route(transaction_id: int):
    txn = sales_service.get_transaction(transaction_id)
    if txn is None:
        return {"success": False, "error": "Transaction not found"}, 404
    return txn.to_dict()


@sales_bp.get("/today")
def today_route():
    return {
        "total_sales_cents": reporting_service.get_today_sales(),
        "transaction_count": reporting_service.get_today_transaction_count(),
    }


@sales_bp.get("/daily-summary")
def daily_summary_route():
    try:
        day = parse_iso_date(request.args.get("date"))
    except ValueError:
        return {"success": False, "error": "date must be an ISO-8601 date"}, 400
    return reporting_service.get_daily_summary(day)
