# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/shopkeep/routes/products.py
"""
Product catalog routes.

Products are never deleted; POST /<id>/deactivate hides a product from sale.
Stock figures in responses come from the product's batches.
"""
from flask import Blueprint, current_app, request
from ..services import products_service
from ..services.inventory_service import InventoryError
from ..services.products_service import ProductNotFoundError, product_to_dict
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    parse_quantity,
    ValidationError,
    ConflictError,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=set(products_service.PRODUCT_MUTABLE_FIELDS),
    required_on_create={"name", "category", "unit", "retail_price_cents"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    Query params:
    - include_inactive: "1" to include deactivated products
    - category: filter by category id
    """
    include_inactive = request.args.get("include_inactive") in ("1", "true")
    category = request.args.get("category")
    items = products_service.list_products(include_inactive=include_inactive, category=category)
    return {"items": items, "count": len(items)}


@products_bp.get("/search")
def search_products():
    q = request.args.get("q", "")
    products = products_service.search_products(q)
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/low-stock")
def low_stock():
    items = products_service.get_low_stock_products()
    return {"items": items, "count": len(items)}


@products_bp.get("/<int:product_id>")
def get_product(product_id: int):
    try:
        p = products_service.get_product(product_id)
    except ProductNotFoundError:
        return {"success": False, "error": "Product not found"}, 404
    return product_to_dict(p)


@products_bp.post("")
def create_product_route():
    """
    Create a product. Optional non-model fields:
    - initial_stock: opening quantity, received at cost_price_cents
    - supplier_id: supplier of the opening stock
    """
    payload = dict(request.get_json(silent=True) or {})
    initial_stock = payload.pop("initial_stock", None)
    supplier_id = payload.pop("supplier_id", None)

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch, creating=True)
        if initial_stock is not None:
            initial_stock = parse_quantity("initial_stock", initial_stock, allow_zero=True)
    except ValidationError as e:
        return {"success": False, "error": str(e)}, 400

    try:
        created = products_service.add_product(
            patch=patch, initial_stock=initial_stock, supplier_id=supplier_id
        )
    except ConflictError as e:
        return {"success": False, "error": str(e)}, 409
    except (InventoryError, ValueError) as e:
        return {"success": False, "error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return product_to_dict(created), 201


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"success": False, "error": str(e)}, 400

    try:
        updated = products_service.update_product(product_id=product_id, patch=patch)
    except ProductNotFoundError:
        return {"success": False, "error": "Product not found"}, 404
    except ConflictError as e:
        return {"success": False, "error": str(e)}, 409

    return product_to_dict(updated)


@products_bp.post("/<int:product_id>/deactivate")
def deactivate_product_route(product_id: int):
    try:
        p = products_service.deactivate_product(product_id=product_id)
    except ProductNotFoundError:
        return {"success": False, "error": "Product not found"}, 404
    return {"success": True, "product": p.to_dict()}


@products_bp.get("/<int:product_id>/price-history")
def price_history(product_id: int):
    try:
        products_service.get_product(product_id)
    except ProductNotFoundError:
        return {"success": False, "error": "Product not found"}, 404

    limit = request.args.get("limit", type=int)
    records = products_service.get_price_history(product_id, limit=limit)
    return {"items": [r.to_dict() for r in records], "count": len(records)}
