# Overview: Flask API routes for receipt import; applies OCR output posted by the client.

"""
POST /api/receipts/apply

    {"mode": "price_history" | "current_stock", "receipt": {...OCR output...}}

The OCR call itself happens on the client; this endpoint only applies the
structured result.
"""
from flask import Blueprint, current_app, request

from ..constants import RECEIPT_MODE_PRICE_HISTORY
from ..services.inventory_service import InventoryError
from ..services.receipt_service import ReceiptDataError, parse_extracted_receipt, process_receipt_data

receipts_bp = Blueprint("receipts", __name__, url_prefix="/api/receipts")


@receipts_bp.post("/apply")
def apply_receipt():
    payload = request.get_json(silent=True) or {}
    mode = payload.get("mode") or RECEIPT_MODE_PRICE_HISTORY

    try:
        receipt = parse_extracted_receipt(payload.get("receipt"))
        result = process_receipt_data(receipt, mode)
    except (ReceiptDataError, InventoryError) as e:
        return {"success": False, "error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to apply receipt")
        return {"error": "Internal server error"}, 500

    return {"success": True, **result.to_dict()}, 201
