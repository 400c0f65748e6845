# backend/shopkeep/routes/inventory.py
"""
Inventory batch routes.

Stock is received through POST /products/<id>/stock (merge-or-split by unit
cost). Sales deduct stock through checkout only; deduct-preview shows which
batches a sale of the given quantity would draw from without writing.

Dates: purchase_date and expiry_date are ISO-8601 calendar dates.
"""
from flask import Blueprint, current_app, request

from ..constants import PRICE_SOURCE_RESTOCK
from ..models import InventoryBatch
from ..money import quantity_to_json
from shopkeep.time_utils import parse_iso_date
from ..services import inventory_service
from ..services.inventory_service import InventoryError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    parse_cents,
    parse_quantity,
)


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

STOCK_RECEIVE_POLICY = ModelValidationPolicy(
    writable_fields={"quantity", "cost_per_unit_cents", "purchase_date", "expiry_date", "supplier_id"},
    required_on_create={"quantity", "cost_per_unit_cents"},
)


@inventory_bp.get("/stock-levels")
def stock_levels():
    levels = inventory_service.get_stock_levels()
    return {"items": [
        {"product_id": product_id, "stock": quantity_to_json(qty)}
        for product_id, qty in sorted(levels.items())
    ]}


@inventory_bp.get("/products/<int:product_id>/summary")
def inventory_summary(product_id: int):
    try:
        return inventory_service.get_inventory_summary(product_id=product_id)
    except InventoryError as e:
        return {"success": False, "error": str(e)}, 404


@inventory_bp.get("/products/<int:product_id>/batches")
def list_batches(product_id: int):
    include_empty = request.args.get("include_empty", "1") not in ("0", "false")
    batches = inventory_service.list_batches(product_id, include_empty=include_empty)
    return {"items": [b.to_dict() for b in batches], "count": len(batches)}


@inventory_bp.post("/products/<int:product_id>/stock")
def add_stock_route(product_id: int):
    """
    Receive stock.

    Body: quantity, cost_per_unit_cents, optional purchase_date,
    expiry_date, supplier_id. Responds with merged=true when the stock went
    into an existing batch of the same cost.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=InventoryBatch, payload=payload, policy=STOCK_RECEIVE_POLICY, partial=False
        )
        quantity = parse_quantity("quantity", patch["quantity"])
        unit_cost = parse_cents("cost_per_unit_cents", patch["cost_per_unit_cents"])
    except ValidationError as e:
        return {"success": False, "error": str(e)}, 400

    try:
        result = inventory_service.add_stock(
            product_id=product_id,
            quantity=quantity,
            unit_cost_cents=unit_cost,
            expiry_date=patch.get("expiry_date"),
            purchase_date=patch.get("purchase_date"),
            supplier_id=patch.get("supplier_id"),
            price_source=PRICE_SOURCE_RESTOCK,
        )
    except InventoryError as e:
        return {"success": False, "error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to add stock")
        return {"error": "Internal server error"}, 500

    return {"success": True, **result.to_dict()}, 201


@inventory_bp.get("/products/<int:product_id>/deduct-preview")
def deduct_preview(product_id: int):
    raw = request.args.get("quantity")
    try:
        quantity = parse_quantity("quantity", raw)
    except ValidationError as e:
        return {"success": False, "error": str(e)}, 400

    try:
        result = inventory_service.preview_deduction(product_id=product_id, quantity=quantity)
    except InventoryError as e:
        return {"success": False, "error": str(e)}, 404
    return result.to_dict()


@inventory_bp.get("/batches/expiring")
def expiring_batches():
    """Open batches expiring on or before ?before=YYYY-MM-DD."""
    try:
        before = parse_iso_date(request.args.get("before"))
    except ValueError:
        return {"success": False, "error": "before must be an ISO-8601 date"}, 400
    if before is None:
        return {"success": False, "error": "before is required"}, 400

    batches = inventory_service.list_expiring_batches(before)
    return {"items": [b.to_dict() for b in batches], "count": len(batches)}
