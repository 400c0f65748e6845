# Overview: Service-layer operations for inventory batches; stock allocation on restock and sale.

# backend/shopkeep/services/inventory_service.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from flask import current_app
from sqlalchemy import case, func

from ..extensions import db
from ..models import InventoryBatch, Product, PurchasePriceRecord
from ..money import line_amount_cents, quantity_to_json, round_cents, to_quantity
from shopkeep.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_batch_number
"""
Stock Batch Invariants (authoritative)

Stock model:
- Stock on hand for a product is SUM(quantity) over its InventoryBatch rows.
- A batch has one immutable cost_per_unit_cents. quantity >= 0 always.
- Batches that reach 0 are kept; they carry the product's cost history.

Restock (merge-or-split):
- Stock arriving at the exact cost (and expiry) of a batch that still holds
  stock is merged into that batch.
- Otherwise a new batch is opened with a fresh batch number, purchase date
  today.

Sale deduction order (deterministic):
- earliest expiry first, batches without expiry after all dated ones,
  then earliest purchase date, then lowest id.
- each batch gives min(batch.quantity, remaining); a request larger than
  stock on hand leaves every batch at 0 and reports the shortfall.
"""


ZERO = Decimal("0")


class InventoryError(ValueError):
    """Raised for invalid stock operations (unknown product, bad quantity)."""


class InsufficientStockError(InventoryError):
    """Raised when a deduction is refused because stock on hand is too low."""

    def __init__(self, product_id: int, requested: Decimal, available: Decimal):
        super().__init__(
            f"insufficient stock for product {product_id}: requested {requested}, available {available}"
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


@dataclass
class AddStockResult:
    batch: InventoryBatch
    merged: bool
    quantity_added: Decimal

    def to_dict(self) -> dict:
        return {
            "merged": self.merged,
            "quantity_added": quantity_to_json(self.quantity_added),
            "batch": self.batch.to_dict(),
        }


@dataclass
class BatchAllocation:
    batch_id: int
    batch_number: str
    quantity: Decimal
    cost_per_unit_cents: int


@dataclass
class DeductionResult:
    product_id: int
    requested: Decimal
    deducted: Decimal
    allocations: list[BatchAllocation] = field(default_factory=list)

    @property
    def shortfall(self) -> Decimal:
        return self.requested - self.deducted

    @property
    def fulfilled(self) -> bool:
        return self.shortfall == ZERO

    @property
    def cost_cents(self) -> int:
        """Cost of the goods actually taken out of the batches."""
        return sum(line_amount_cents(a.cost_per_unit_cents, a.quantity) for a in self.allocations)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "requested": quantity_to_json(self.requested),
            "deducted": quantity_to_json(self.deducted),
            "shortfall": quantity_to_json(self.shortfall),
            "cost_cents": self.cost_cents,
            "allocations": [
                {
                    "batch_id": a.batch_id,
                    "batch_number": a.batch_number,
                    "quantity": quantity_to_json(a.quantity),
                    "cost_per_unit_cents": a.cost_per_unit_cents,
                }
                for a in self.allocations
            ],
        }


def _get_product(product_id: int, *, require_active: bool = False, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise InventoryError("product not found")
    if require_active and not product.is_active:
        raise InventoryError("product is inactive")
    return product


def _deduction_order():
    return (
        case((InventoryBatch.expiry_date.is_(None), 1), else_=0).asc(),
        InventoryBatch.expiry_date.asc(),
        InventoryBatch.purchase_date.asc(),
        InventoryBatch.id.asc(),
    )


def get_stock(product_id: int) -> Decimal:
    """Stock on hand: sum over every batch of the product (empty batches add 0)."""
    total = (
        db.session.query(func.coalesce(func.sum(InventoryBatch.quantity), 0))
        .filter(InventoryBatch.product_id == product_id)
        .scalar()
    )
    return to_quantity(total or 0)


def get_stock_levels(product_ids=None) -> dict[int, Decimal]:
    """Stock on hand for many products in one query. Products without batches map to 0."""
    q = db.session.query(
        InventoryBatch.product_id,
        func.coalesce(func.sum(InventoryBatch.quantity), 0),
    ).group_by(InventoryBatch.product_id)
    if product_ids is not None:
        q = q.filter(InventoryBatch.product_id.in_(list(product_ids)))
    return {product_id: to_quantity(qty or 0) for product_id, qty in q.all()}


def list_batches(product_id: int, *, include_empty: bool = True) -> list[InventoryBatch]:
    """Batches of a product in deduction order."""
    q = db.session.query(InventoryBatch).filter(InventoryBatch.product_id == product_id)
    if not include_empty:
        q = q.filter(InventoryBatch.quantity > 0)
    return q.order_by(*_deduction_order()).all()


def find_mergeable_batch(
    product_id: int,
    unit_cost_cents: int,
    expiry_date: date | None = None,
) -> InventoryBatch | None:
    """The batch that stock at this exact cost would merge into, if any."""
    q = db.session.query(InventoryBatch).filter(
        InventoryBatch.product_id == product_id,
        InventoryBatch.cost_per_unit_cents == unit_cost_cents,
        InventoryBatch.quantity > 0,
    )
    if expiry_date is None:
        q = q.filter(InventoryBatch.expiry_date.is_(None))
    else:
        q = q.filter(InventoryBatch.expiry_date == expiry_date)
    return q.order_by(InventoryBatch.id.asc()).first()


def record_purchase_price(
    *,
    product_id: int,
    unit_cost_cents: int,
    quantity,
    source: str,
    purchase_date: date | None = None,
    supplier_id: int | None = None,
    supplier_name: str | None = None,
    receipt_number: str | None = None,
) -> PurchasePriceRecord:
    """Append one cost observation to the product's price history (flush only)."""
    record = PurchasePriceRecord(
        product_id=product_id,
        supplier_id=supplier_id,
        supplier_name=supplier_name,
        purchase_date=purchase_date or utcnow().date(),
        unit_cost_cents=unit_cost_cents,
        quantity=to_quantity(quantity),
        receipt_number=receipt_number,
        source=source,
    )
    db.session.add(record)
    db.session.flush()
    return record


def add_stock(
    *,
    product_id: int,
    quantity,
    unit_cost_cents: int,
    expiry_date: date | None = None,
    purchase_date: date | None = None,
    supplier_id: int | None = None,
    record_price: bool = True,
    price_source: str = "restock",
    commit: bool = True,
) -> AddStockResult:
    """
    Receive stock into a batch, merging by exact unit cost.

    Returns which path was taken (merged into an existing batch, or a new
    batch) for caller feedback. With record_price=True a PurchasePriceRecord
    is appended in the same unit of work.
    """
    qty = to_quantity(quantity)
    if qty <= 0:
        raise InventoryError("quantity must be > 0")
    if unit_cost_cents is None or unit_cost_cents < 0:
        raise InventoryError("unit_cost_cents must be >= 0")

    def _op():
        _get_product(product_id, require_active=True, lock=True)

        batch = find_mergeable_batch(product_id, unit_cost_cents, expiry_date)
        merged = batch is not None
        if merged:
            batch.quantity = to_quantity(batch.quantity + qty)
        else:
            batch = InventoryBatch(
                product_id=product_id,
                supplier_id=supplier_id,
                batch_number=next_batch_number(),
                quantity=qty,
                cost_per_unit_cents=unit_cost_cents,
                purchase_date=purchase_date or utcnow().date(),
                expiry_date=expiry_date,
            )
            db.session.add(batch)
        db.session.flush()

        if record_price:
            record_purchase_price(
                product_id=product_id,
                unit_cost_cents=unit_cost_cents,
                quantity=qty,
                source=price_source,
                purchase_date=purchase_date,
                supplier_id=supplier_id,
            )

        if commit:
            db.session.commit()
        return AddStockResult(batch=batch, merged=merged, quantity_added=qty)

    return run_with_retry(_op) if commit else _op()


def deduct_stock(
    *,
    product_id: int,
    quantity,
    allow_shortfall: bool = True,
    commit: bool = True,
) -> DeductionResult:
    """
    Take quantity out of the product's batches in deduction order.

    allow_shortfall=True: a request above stock on hand empties every batch
    and the unmet remainder is reported as DeductionResult.shortfall.
    allow_shortfall=False: the request is refused with InsufficientStockError
    before any batch is touched.
    """
    qty = to_quantity(quantity)
    if qty <= 0:
        raise InventoryError("quantity must be > 0")

    def _op():
        _get_product(product_id, lock=True)

        batches = lock_for_update(
            db.session.query(InventoryBatch)
            .filter(InventoryBatch.product_id == product_id, InventoryBatch.quantity > 0)
            .order_by(*_deduction_order())
        ).all()

        if not allow_shortfall:
            available = sum((b.quantity for b in batches), ZERO)
            if available < qty:
                raise InsufficientStockError(product_id, qty, to_quantity(available))

        result = DeductionResult(product_id=product_id, requested=qty, deducted=ZERO)
        remaining = qty
        for batch in batches:
            if remaining <= 0:
                break
            take = min(batch.quantity, remaining)
            batch.quantity = to_quantity(batch.quantity - take)
            remaining -= take
            result.deducted += take
            result.allocations.append(BatchAllocation(
                batch_id=batch.id,
                batch_number=batch.batch_number,
                quantity=to_quantity(take),
                cost_per_unit_cents=batch.cost_per_unit_cents,
            ))
        db.session.flush()

        if not result.fulfilled:
            current_app.logger.warning(
                "Stock shortfall on product %s: requested %s, deducted %s",
                product_id, result.requested, result.deducted,
            )

        if commit:
            db.session.commit()
        return result

    return run_with_retry(_op) if commit else _op()


def get_inventory_summary(*, product_id: int) -> dict:
    product = _get_product(product_id)
    batches = list_batches(product_id)

    stock = sum((b.quantity for b in batches), ZERO)
    value_cents = sum(line_amount_cents(b.cost_per_unit_cents, b.quantity) for b in batches)
    latest = max(batches, key=lambda b: (b.purchase_date, b.id), default=None)

    return {
        "product_id": product.id,
        "stock": quantity_to_json(stock),
        "reorder_level": quantity_to_json(product.reorder_level or ZERO),
        "is_low_stock": stock <= (product.reorder_level or 0),
        "batch_count": len(batches),
        "open_batch_count": sum(1 for b in batches if b.quantity > 0),
        "inventory_value_cents": value_cents,
        "weighted_average_cost_cents": (
            round_cents(Decimal(value_cents) / stock) if stock > 0 else None
        ),
        "recent_unit_cost_cents": latest.cost_per_unit_cents if latest else None,
    }


def preview_deduction(*, product_id: int, quantity) -> DeductionResult:
    """What deduct_stock would take from each batch right now. Nothing is written."""
    qty = to_quantity(quantity)
    if qty <= 0:
        raise InventoryError("quantity must be > 0")
    _get_product(product_id)

    result = DeductionResult(product_id=product_id, requested=qty, deducted=ZERO)
    remaining = qty
    for batch in list_batches(product_id, include_empty=False):
        if remaining <= 0:
            break
        take = min(batch.quantity, remaining)
        remaining -= take
        result.deducted += take
        result.allocations.append(BatchAllocation(
            batch_id=batch.id,
            batch_number=batch.batch_number,
            quantity=to_quantity(take),
            cost_per_unit_cents=batch.cost_per_unit_cents,
        ))
    return result


def list_expiring_batches(before: date) -> list[InventoryBatch]:
    """Open batches with an expiry date on or before the given day, soonest first."""
    return (
        db.session.query(InventoryBatch)
        .filter(
            InventoryBatch.quantity > 0,
            InventoryBatch.expiry_date.isnot(None),
            InventoryBatch.expiry_date <= before,
        )
        .order_by(InventoryBatch.expiry_date.asc(), InventoryBatch.id.asc())
        .all()
    )
