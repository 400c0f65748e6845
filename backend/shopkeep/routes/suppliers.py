# Overview: Flask API routes for suppliers; parses input and returns JSON responses.

from flask import Blueprint, request

from ..services import supplier_service
from ..services.supplier_service import SupplierNotFoundError, SupplierValidationError

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
def list_suppliers():
    include_inactive = request.args.get("include_inactive") in ("1", "true")
    rows = supplier_service.list_suppliers(include_inactive=include_inactive)
    return {"items": [s.to_dict() for s in rows], "count": len(rows)}


@suppliers_bp.post("")
def create_supplier():
    payload = request.get_json(silent=True) or {}
    try:
        s = supplier_service.add_supplier(
            name=payload.get("name"),
            contact_person=payload.get("contact_person"),
            phone=payload.get("phone"),
            email=payload.get("email"),
            address=payload.get("address"),
            payment_terms=payload.get("payment_terms"),
        )
    except SupplierValidationError as e:
        return {"success": False, "error": str(e)}, 400
    return s.to_dict(), 201


@suppliers_bp.get("/<int:supplier_id>")
def get_supplier(supplier_id: int):
    try:
        return supplier_service.get_supplier(supplier_id).to_dict()
    except SupplierNotFoundError:
        return {"success": False, "error": "Supplier not found"}, 404


@suppliers_bp.put("/<int:supplier_id>")
def update_supplier(supplier_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        s = supplier_service.update_supplier(supplier_id=supplier_id, patch=payload)
    except SupplierNotFoundError:
        return {"success": False, "error": "Supplier not found"}, 404
    except SupplierValidationError as e:
        return {"success": False, "error": str(e)}, 400
    return s.to_dict()
