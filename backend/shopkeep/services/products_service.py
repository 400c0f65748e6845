# backend/shopkeep/services/products_service.py
"""
Products Service

Catalog maintenance around the batch allocator:
- add_product may receive opening stock; it goes through add_stock so the
  first batch and the first price record are created the normal way.
- Products are never deleted. deactivate_product hides them from the till.
- Stock figures always come from batches (inventory_service.get_stock).
"""
from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import func, or_

from ..constants import PRICE_SOURCE_INITIAL
from ..extensions import db
from ..models import Product, PurchasePriceRecord
from ..money import quantity_to_json, to_quantity
from ..validation import ConflictError
from .concurrency import run_with_retry
from .document_service import next_sku
from .inventory_service import add_stock, get_stock, get_stock_levels

PRODUCT_MUTABLE_FIELDS = {
    "sku", "name", "description", "barcode", "category", "unit", "item_type",
    "retail_price_cents", "wholesale_price_cents", "cost_price_cents",
    "reorder_level", "package_size", "bulk_unit",
    "price_per_base_unit_cents", "cost_per_base_unit_cents",
    "image_url", "is_active",
}


class ProductNotFoundError(LookupError):
    pass


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def product_to_dict(p: Product, stock: Decimal | None = None) -> dict:
    """Product payload with stock on hand and the low-stock flag."""
    if stock is None:
        stock = get_stock(p.id)
    data = p.to_dict()
    data["stock"] = quantity_to_json(stock)
    data["is_low_stock"] = stock <= (p.reorder_level or 0)
    return data


def get_product(product_id: int) -> Product:
    p = db.session.get(Product, product_id)
    if p is None:
        raise ProductNotFoundError("Product not found")
    return p


def list_products(*, include_inactive: bool = False, category: str | None = None) -> list[dict]:
    q = db.session.query(Product)
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))
    if category:
        q = q.filter(Product.category == category)
    products = q.order_by(Product.name.asc(), Product.id.asc()).all()

    levels = get_stock_levels(p.id for p in products)
    return [product_to_dict(p, levels.get(p.id, Decimal("0"))) for p in products]


def add_product(*, patch: dict, initial_stock=None, supplier_id: int | None = None) -> Product:
    """
    Create a product from a validated patch.

    A missing SKU is generated. initial_stock > 0 opens the first batch at
    the product's cost price.
    """
    sku = patch.get("sku") or None
    if sku is not None:
        existing = db.session.query(Product).filter(Product.sku == sku).first()
        if existing:
            raise ConflictError("SKU already exists.")

    qty = to_quantity(initial_stock) if initial_stock is not None else None
    if qty is not None and qty < 0:
        raise ValueError("initial_stock must be >= 0")

    def _op():
        p = Product(sku=sku or next_sku())
        apply_product_patch(p, {k: v for k, v in patch.items() if k != "sku"})
        if p.reorder_level is None:
            p.reorder_level = to_quantity(current_app.config.get("DEFAULT_REORDER_LEVEL", 10))
        if p.wholesale_price_cents is None:
            p.wholesale_price_cents = p.retail_price_cents
        if p.cost_price_cents is None:
            p.cost_price_cents = 0

        db.session.add(p)
        db.session.flush()

        if qty:
            add_stock(
                product_id=p.id,
                quantity=qty,
                unit_cost_cents=p.cost_price_cents,
                supplier_id=supplier_id,
                price_source=PRICE_SOURCE_INITIAL,
                commit=False,
            )

        db.session.commit()
        return p

    p = run_with_retry(_op)
    current_app.logger.info("Created product %s (%s)", p.sku, p.name)
    return p


def update_product(*, product_id: int, patch: dict) -> Product:
    def _op():
        p = get_product(product_id)
        new_sku = patch.get("sku")
        if new_sku and new_sku != p.sku:
            clash = db.session.query(Product).filter(Product.sku == new_sku, Product.id != p.id).first()
            if clash:
                raise ConflictError("SKU already exists.")
        apply_product_patch(p, patch)
        db.session.commit()
        return p

    return run_with_retry(_op)


def deactivate_product(*, product_id: int) -> Product:
    """Hide a product from sale; its batches and history stay."""
    def _op():
        p = get_product(product_id)
        p.is_active = False
        db.session.commit()
        return p

    return run_with_retry(_op)


def search_products(query: str, *, include_inactive: bool = False, limit: int = 50) -> list[Product]:
    """Case-insensitive match on name, SKU or barcode."""
    text = (query or "").strip().lower()
    if not text:
        return []
    pattern = f"%{text}%"
    q = db.session.query(Product).filter(
        or_(
            func.lower(Product.name).like(pattern),
            func.lower(Product.sku).like(pattern),
            func.lower(Product.barcode).like(pattern),
        )
    )
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))
    return q.order_by(Product.name.asc(), Product.id.asc()).limit(limit).all()


def get_low_stock_products() -> list[dict]:
    """Active products whose stock on hand is at or below the reorder level."""
    products = (
        db.session.query(Product)
        .filter(Product.is_active.is_(True))
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )
    levels = get_stock_levels(p.id for p in products)
    low = []
    for p in products:
        stock = levels.get(p.id, Decimal("0"))
        if stock <= (p.reorder_level or 0):
            low.append(product_to_dict(p, stock))
    return low


def find_matching_product(name: str) -> Product | None:
    """
    Match a free-text product name (e.g. a receipt line) to an active product.

    Exact case-insensitive name first, then a name containing the text, then
    a name contained in the text. Ties go to the lowest id.
    """
    needle = (name or "").strip().lower()
    if not needle:
        return None

    products = (
        db.session.query(Product)
        .filter(Product.is_active.is_(True))
        .order_by(Product.id.asc())
        .all()
    )
    for p in products:
        if p.name.strip().lower() == needle:
            return p
    for p in products:
        candidate = p.name.strip().lower()
        if needle in candidate or candidate in needle:
            return p
    return None


def get_price_history(product_id: int, *, limit: int | None = None) -> list[PurchasePriceRecord]:
    """Cost observations for a product, newest first."""
    q = (
        db.session.query(PurchasePriceRecord)
        .filter(PurchasePriceRecord.product_id == product_id)
        .order_by(PurchasePriceRecord.purchase_date.desc(), PurchasePriceRecord.id.desc())
    )
    if limit is not None:
        q = q.limit(limit)
    return q.all()
