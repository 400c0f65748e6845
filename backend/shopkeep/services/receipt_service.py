# Overview: Service-layer operations for supplier receipts; applies OCR-extracted data to the catalog.

"""
Receipt Import

Input is the structured output of an external OCR service:

    {
      "supplierName": "Unga Feeds Ltd",      (optional)
      "receiptNumber": "R-0042",             (optional)
      "date": "2026-10-18",                  (optional, defaults to today)
      "items": [
        {"name": "Layers Mash 70kg", "quantity": 2, "unitPrice": 3450,
         "totalPrice": 6900, "unit": "bags"}
      ],
      "subtotal": 6900, "tax": 0, "total": 6900   (optional)
    }

Prices are major currency units as printed on the receipt and are converted
to cents. snake_case keys are accepted as well.

Per item:
- match an active product (find_matching_product) or create one with
  generated SKU and markup prices;
- an existing product whose cost differs gets the receipt cost;
- one PurchasePriceRecord (source=receipt);
- mode current_stock: the quantity is received through add_stock.
The whole receipt is one unit of work.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from flask import current_app

from ..constants import (
    ITEM_TYPE_UNIT,
    PRICE_SOURCE_RECEIPT,
    RECEIPT_MODE_CURRENT_STOCK,
    VALID_RECEIPT_MODES,
    VALID_UNITS,
)
from ..extensions import db
from ..models import Product
from ..money import quantity_to_json, scale_cents, to_cents, to_quantity
from shopkeep.time_utils import parse_iso_date, utcnow
from .concurrency import atomic
from .document_service import next_sku
from .inventory_service import add_stock, record_purchase_price
from .products_service import find_matching_product
from .supplier_service import get_or_create_supplier


class ReceiptDataError(ValueError):
    """Raised when extracted receipt data is unusable."""
    pass


@dataclass(frozen=True)
class ExtractedReceiptItem:
    name: str
    quantity: Decimal
    unit_price_cents: int
    total_price_cents: int
    unit: str | None = None


@dataclass(frozen=True)
class ExtractedReceipt:
    items: list[ExtractedReceiptItem]
    supplier_name: str | None = None
    receipt_number: str | None = None
    receipt_date: date | None = None
    subtotal_cents: int | None = None
    tax_cents: int | None = None
    total_cents: int | None = None


@dataclass
class ProcessedReceiptResult:
    mode: str
    new_products_created: int = 0
    existing_products_updated: int = 0
    price_records_added: int = 0
    stock_added: Decimal = Decimal("0")
    product_ids: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "new_products_created": self.new_products_created,
            "existing_products_updated": self.existing_products_updated,
            "price_records_added": self.price_records_added,
            "stock_added": quantity_to_json(self.stock_added),
            "product_ids": list(self.product_ids),
        }


def _pick(data: dict, *keys):
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _optional_cents(data: dict, *keys) -> int | None:
    raw = _pick(data, *keys)
    if raw is None:
        return None
    try:
        return to_cents(raw)
    except ValueError:
        raise ReceiptDataError(f"{keys[0]} must be a number")


def _parse_item(index: int, raw) -> ExtractedReceiptItem:
    if not isinstance(raw, dict):
        raise ReceiptDataError(f"items[{index}] must be an object")

    name = _pick(raw, "name")
    if not isinstance(name, str) or not name.strip():
        raise ReceiptDataError(f"items[{index}].name is required")

    raw_quantity = _pick(raw, "quantity")
    try:
        quantity = to_quantity(1 if raw_quantity is None else raw_quantity)
    except ValueError:
        raise ReceiptDataError(f"items[{index}].quantity must be a number")
    if quantity <= 0:
        raise ReceiptDataError(f"items[{index}].quantity must be > 0")

    unit_price = _optional_cents(raw, "unitPrice", "unit_price")
    total_price = _optional_cents(raw, "totalPrice", "total_price")
    if unit_price is None and total_price is None:
        raise ReceiptDataError(f"items[{index}] needs unitPrice or totalPrice")
    if unit_price is None:
        unit_price = scale_cents(total_price, Decimal(1) / quantity)
    if total_price is None:
        total_price = scale_cents(unit_price, quantity)
    if unit_price < 0 or total_price < 0:
        raise ReceiptDataError(f"items[{index}] prices must be >= 0")

    unit = _pick(raw, "unit")
    return ExtractedReceiptItem(
        name=name.strip(),
        quantity=quantity,
        unit_price_cents=unit_price,
        total_price_cents=total_price,
        unit=unit.strip().lower() if isinstance(unit, str) and unit.strip() else None,
    )


def parse_extracted_receipt(payload) -> ExtractedReceipt:
    """Validate and normalise OCR output. Raises ReceiptDataError."""
    if not isinstance(payload, dict):
        raise ReceiptDataError("Receipt data must be an object")

    raw_items = payload.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ReceiptDataError("Receipt has no items")

    raw_date = _pick(payload, "date", "receipt_date")
    receipt_date = None
    if raw_date:
        try:
            receipt_date = parse_iso_date(str(raw_date))
        except ValueError:
            raise ReceiptDataError("date must be an ISO-8601 date")

    supplier = _pick(payload, "supplierName", "supplier_name")
    number = _pick(payload, "receiptNumber", "receipt_number")

    return ExtractedReceipt(
        items=[_parse_item(i, raw) for i, raw in enumerate(raw_items)],
        supplier_name=supplier.strip() if isinstance(supplier, str) and supplier.strip() else None,
        receipt_number=str(number).strip() if number not in (None, "") else None,
        receipt_date=receipt_date,
        subtotal_cents=_optional_cents(payload, "subtotal"),
        tax_cents=_optional_cents(payload, "tax"),
        total_cents=_optional_cents(payload, "total"),
    )


def _normalize_unit(unit: str | None) -> str:
    if unit in VALID_UNITS:
        return unit
    if unit and f"{unit}s" in VALID_UNITS:
        return f"{unit}s"
    return current_app.config.get("RECEIPT_DEFAULT_UNIT", "pieces")


def _create_product_from_item(item: ExtractedReceiptItem) -> Product:
    config = current_app.config
    p = Product(
        sku=next_sku(),
        name=item.name,
        description="Imported from receipt",
        category=config.get("RECEIPT_DEFAULT_CATEGORY", "feeds"),
        unit=_normalize_unit(item.unit),
        item_type=ITEM_TYPE_UNIT,
        retail_price_cents=scale_cents(item.unit_price_cents, config.get("RECEIPT_RETAIL_MARKUP", "1.30")),
        wholesale_price_cents=scale_cents(item.unit_price_cents, config.get("RECEIPT_WHOLESALE_MARKUP", "1.15")),
        cost_price_cents=item.unit_price_cents,
        reorder_level=to_quantity(config.get("DEFAULT_REORDER_LEVEL", 10)),
        is_active=True,
    )
    db.session.add(p)
    db.session.flush()
    return p


def process_receipt_data(receipt: ExtractedReceipt, mode: str) -> ProcessedReceiptResult:
    if mode not in VALID_RECEIPT_MODES:
        raise ReceiptDataError(f"mode must be one of {VALID_RECEIPT_MODES}")

    result = ProcessedReceiptResult(mode=mode)
    purchase_date = receipt.receipt_date or utcnow().date()

    with atomic():
        supplier = (
            get_or_create_supplier(receipt.supplier_name, commit=False)
            if receipt.supplier_name else None
        )
        supplier_id = supplier.id if supplier else None

        for item in receipt.items:
            product = find_matching_product(item.name)
            if product is None:
                product = _create_product_from_item(item)
                result.new_products_created += 1
            elif product.cost_price_cents != item.unit_price_cents:
                product.cost_price_cents = item.unit_price_cents
                db.session.flush()
                result.existing_products_updated += 1

            record_purchase_price(
                product_id=product.id,
                unit_cost_cents=item.unit_price_cents,
                quantity=item.quantity,
                source=PRICE_SOURCE_RECEIPT,
                purchase_date=purchase_date,
                supplier_id=supplier_id,
                supplier_name=receipt.supplier_name,
                receipt_number=receipt.receipt_number,
            )
            result.price_records_added += 1

            if mode == RECEIPT_MODE_CURRENT_STOCK:
                add_stock(
                    product_id=product.id,
                    quantity=item.quantity,
                    unit_cost_cents=item.unit_price_cents,
                    purchase_date=purchase_date,
                    supplier_id=supplier_id,
                    record_price=False,
                    commit=False,
                )
                result.stock_added += item.quantity

            if product.id not in result.product_ids:
                result.product_ids.append(product.id)

    current_app.logger.info(
        "Applied receipt %s (%s): %s new, %s updated, %s price records",
        receipt.receipt_number or "-",
        mode,
        result.new_products_created,
        result.existing_products_updated,
        result.price_records_added,
    )
    return result
