# Overview: Flask API routes for customers and their credit; parses input and returns JSON responses.

"""
Customer and credit routes.

The ledger endpoints (payment, adjustment) always record what they are
given. Overpayment is checked by the credit policy first and needs
confirm_overpayment=true, mirroring the till's confirmation dialog.
"""
from flask import Blueprint, current_app, request

from ..constants import VALID_CREDIT_PAYMENT_METHODS
from ..extensions import db
from ..models import Customer, User
from ..services import customer_service, ledger_service
from ..services.credit_policy import check_credit_payment, check_credit_sale
from ..services.customer_service import CustomerNotFoundError
from ..services.ledger_service import CreditLedgerError
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_customer,
    parse_cents,
    parse_signed_cents,
    validate_payload,
    validate_payment_method,
)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields=set(customer_service.CUSTOMER_MUTABLE_FIELDS),
    required_on_create={"name", "phone"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


def _not_found():
    return {"success": False, "error": "Customer not found"}, 404


def _acting_user_id(payload: dict) -> int | None:
    user_id = payload.get("user_id")
    if user_id is None:
        return None
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise ValidationError("User not found")
    return user.id


@customers_bp.get("")
def list_customers():
    rows = customer_service.list_customers(
        search=request.args.get("q"),
        customer_type=request.args.get("customer_type"),
        include_inactive=request.args.get("include_inactive") in ("1", "true"),
    )
    return {"items": [c.to_dict() for c in rows], "count": len(rows)}


@customers_bp.post("")
def create_customer():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        enforce_rules_customer(patch)
    except ValidationError as e:
        return {"success": False, "error": str(e)}, 400

    c = customer_service.add_customer(patch=patch)
    return c.to_dict(), 201


@customers_bp.get("/debtors")
def debtors():
    rows = ledger_service.get_customers_with_debt()
    return {
        "items": [c.to_dict() for c in rows],
        "count": len(rows),
        "total_outstanding_cents": ledger_service.get_total_outstanding_debt(),
    }


@customers_bp.get("/<int:customer_id>")
def get_customer(customer_id: int):
    try:
        return customer_service.get_customer(customer_id).to_dict()
    except CustomerNotFoundError:
        return _not_found()


@customers_bp.put("/<int:customer_id>")
def update_customer(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        enforce_rules_customer(patch)
    except ValidationError as e:
        return {"success": False, "error": str(e)}, 400

    try:
        c = customer_service.update_customer(customer_id=customer_id, patch=patch)
    except CustomerNotFoundError:
        return _not_found()
    return c.to_dict()


@customers_bp.get("/<int:customer_id>/credit-history")
def credit_history(customer_id: int):
    try:
        customer_service.get_customer(customer_id)
    except CustomerNotFoundError:
        return _not_found()

    limit = request.args.get("limit", type=int)
    rows = ledger_service.get_customer_credit_history(customer_id, limit=limit)
    return {"items": [r.to_dict() for r in rows], "count": len(rows)}


@customers_bp.get("/<int:customer_id>/credit-check")
def credit_check(customer_id: int):
    """Advisory: would a credit sale of ?amount_cents= exceed the limit?"""
    try:
        customer = customer_service.get_customer(customer_id)
        amount = parse_cents("amount_cents", request.args.get("amount_cents"))
    except CustomerNotFoundError:
        return _not_found()
    except ValidationError as e:
        return {"success": False, "error": str(e)}, 400
    return check_credit_sale(customer, amount).to_dict()


@customers_bp.post("/<int:customer_id>/payments")
def record_payment(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        customer = customer_service.get_customer(customer_id)
        amount = parse_cents("amount_cents", payload.get("amount_cents"), allow_zero=False)
        method = validate_payment_method(payload.get("payment_method"), VALID_CREDIT_PAYMENT_METHODS)
        user_id = _acting_user_id(payload)
    except CustomerNotFoundError:
        return _not_found()
    except ValidationError as e:
        return {"success": False, "error": str(e)}, 400

    check = check_credit_payment(customer, amount)
    if check.requires_override and not payload.get("confirm_overpayment"):
        return {
            "success": False,
            "error": check.reason,
            "requires_override": True,
            "credit_check": check.to_dict(),
        }, 409

    try:
        entry = ledger_service.record_credit_payment(
            customer_id=customer_id,
            amount_cents=amount,
            payment_method=method,
            reference_number=payload.get("reference_number"),
            notes=payload.get("notes"),
            user_id=user_id,
        )
    except CreditLedgerError as e:
        return {"success": False, "error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to record credit payment")
        return {"error": "Internal server error"}, 500

    return {"success": True, "entry": entry.to_dict(), "customer": entry.customer.to_dict()}, 201


@customers_bp.post("/<int:customer_id>/adjustments")
def adjust_balance(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        customer_service.get_customer(customer_id)
        amount = parse_signed_cents("amount_cents", payload.get("amount_cents"))
        user_id = _acting_user_id(payload)
    except CustomerNotFoundError:
        return _not_found()
    except ValidationError as e:
        return {"success": False, "error": str(e)}, 400

    try:
        entry = ledger_service.adjust_credit_balance(
            customer_id=customer_id,
            amount_cents=amount,
            reason=payload.get("reason") or "",
            notes=payload.get("notes"),
            user_id=user_id,
        )
    except CreditLedgerError as e:
        return {"success": False, "error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to adjust credit balance")
        return {"error": "Internal server error"}, 500

    return {"success": True, "entry": entry.to_dict(), "customer": entry.customer.to_dict()}, 201
