"""
Stock batch allocation: merge-or-split on restock, ordered deduction on sale.
"""

import re
from datetime import date
from decimal import Decimal

import pytest

from shopkeep.models import InventoryBatch, PurchasePriceRecord
from shopkeep.services.inventory_service import (
    InsufficientStockError,
    InventoryError,
    add_stock,
    deduct_stock,
    get_inventory_summary,
    get_stock,
    list_batches,
    preview_deduction,
)


def _batches(db_session, product_id):
    return (
        db_session.query(InventoryBatch)
        .filter_by(product_id=product_id)
        .order_by(InventoryBatch.id.asc())
        .all()
    )


def test_same_cost_restocks_merge_into_one_batch(db_session, make_product):
    p = make_product()

    first = add_stock(product_id=p.id, quantity=5, unit_cost_cents=100)
    second = add_stock(product_id=p.id, quantity=3, unit_cost_cents=100)
    third = add_stock(product_id=p.id, quantity=4, unit_cost_cents=100)

    assert first.merged is False
    assert second.merged is True and third.merged is True
    assert second.batch.id == first.batch.id

    batches = _batches(db_session, p.id)
    assert len(batches) == 1
    assert batches[0].quantity == Decimal("12")
    assert get_stock(p.id) == Decimal("12")


def test_different_costs_open_distinct_batches(db_session, make_product):
    p = make_product()

    for cost in (100, 120, 95, 120):
        add_stock(product_id=p.id, quantity=2, unit_cost_cents=cost)

    batches = _batches(db_session, p.id)
    assert sorted(b.cost_per_unit_cents for b in batches) == [95, 100, 120]
    assert get_stock(p.id) == Decimal("8")


def test_restock_merges_into_matching_cost_batch_not_a_third(db_session, make_product):
    p = make_product()
    add_stock(product_id=p.id, quantity=5, unit_cost_cents=100)
    add_stock(product_id=p.id, quantity=5, unit_cost_cents=120)

    result = add_stock(product_id=p.id, quantity=3, unit_cost_cents=100)

    assert result.merged is True
    batches = _batches(db_session, p.id)
    assert len(batches) == 2
    by_cost = {b.cost_per_unit_cents: b.quantity for b in batches}
    assert by_cost == {100: Decimal("8"), 120: Decimal("5")}


def test_empty_batch_is_not_a_merge_target(db_session, make_product):
    p = make_product()
    add_stock(product_id=p.id, quantity=2, unit_cost_cents=100)
    deduct_stock(product_id=p.id, quantity=2)

    result = add_stock(product_id=p.id, quantity=4, unit_cost_cents=100)

    assert result.merged is False
    batches = _batches(db_session, p.id)
    assert [b.quantity for b in batches] == [Decimal("0"), Decimal("4")]


def test_new_batch_number_format(db_session, make_product):
    p = make_product()
    result = add_stock(product_id=p.id, quantity=1, unit_cost_cents=100)
    assert re.fullmatch(r"BATCH-\d+-[A-Z0-9]{4}", result.batch.batch_number)
    assert result.batch.purchase_date is not None


def test_restock_appends_price_record(db_session, make_product):
    p = make_product()
    add_stock(product_id=p.id, quantity=5, unit_cost_cents=100)
    add_stock(product_id=p.id, quantity=5, unit_cost_cents=100)

    records = db_session.query(PurchasePriceRecord).filter_by(product_id=p.id).all()
    assert len(records) == 2
    assert {r.source for r in records} == {"restock"}


def test_deducting_more_than_stock_stops_at_zero(db_session, make_product):
    p = make_product()
    add_stock(product_id=p.id, quantity=20, unit_cost_cents=100)
    add_stock(product_id=p.id, quantity=10, unit_cost_cents=120)

    result = deduct_stock(product_id=p.id, quantity=50)

    # 30 on hand, 50 asked: stock ends at 0 (not -20), 20 reported short
    assert get_stock(p.id) == Decimal("0")
    assert result.deducted == Decimal("30")
    assert result.shortfall == Decimal("20")
    assert result.fulfilled is False
    assert all(b.quantity >= 0 for b in _batches(db_session, p.id))
    # Empty batches stay for cost history
    assert len(_batches(db_session, p.id)) == 2


def test_refused_deduction_leaves_batches_untouched(db_session, make_product):
    p = make_product()
    add_stock(product_id=p.id, quantity=3, unit_cost_cents=100)

    with pytest.raises(InsufficientStockError) as exc:
        deduct_stock(product_id=p.id, quantity=5, allow_shortfall=False)

    assert exc.value.available == Decimal("3")
    assert get_stock(p.id) == Decimal("3")


def test_deduction_order_earliest_expiry_first_undated_last(db_session, make_product):
    p = make_product()
    undated = add_stock(
        product_id=p.id, quantity=5, unit_cost_cents=90, purchase_date=date(2026, 1, 1)
    ).batch
    late = add_stock(
        product_id=p.id, quantity=5, unit_cost_cents=100,
        purchase_date=date(2026, 2, 1), expiry_date=date(2027, 6, 30),
    ).batch
    early = add_stock(
        product_id=p.id, quantity=5, unit_cost_cents=110,
        purchase_date=date(2026, 3, 1), expiry_date=date(2026, 12, 31),
    ).batch

    assert [b.id for b in list_batches(p.id)] == [early.id, late.id, undated.id]

    result = deduct_stock(product_id=p.id, quantity=7)

    assert [(a.batch_id, a.quantity) for a in result.allocations] == [
        (early.id, Decimal("5")),
        (late.id, Decimal("2")),
    ]
    assert result.cost_cents == 5 * 110 + 2 * 100


def test_undated_batches_go_by_purchase_date(db_session, make_product):
    p = make_product()
    newer = add_stock(
        product_id=p.id, quantity=5, unit_cost_cents=100, purchase_date=date(2026, 5, 1)
    ).batch
    older = add_stock(
        product_id=p.id, quantity=5, unit_cost_cents=120, purchase_date=date(2026, 4, 1)
    ).batch

    result = deduct_stock(product_id=p.id, quantity=6)

    assert result.allocations[0].batch_id == older.id
    assert result.allocations[1].batch_id == newer.id
    assert newer.quantity == Decimal("4")


def test_fractional_quantities(db_session, make_product):
    p = make_product(unit="kg")
    add_stock(product_id=p.id, quantity="10.5", unit_cost_cents=60)

    deduct_stock(product_id=p.id, quantity=Decimal("2.25"))

    assert get_stock(p.id) == Decimal("8.25")


def test_preview_does_not_write(db_session, make_product):
    p = make_product()
    add_stock(product_id=p.id, quantity=4, unit_cost_cents=100)

    preview = preview_deduction(product_id=p.id, quantity=6)

    assert preview.deducted == Decimal("4")
    assert preview.shortfall == Decimal("2")
    assert get_stock(p.id) == Decimal("4")


def test_invalid_requests(db_session, make_product):
    p = make_product()
    with pytest.raises(InventoryError):
        add_stock(product_id=p.id, quantity=0, unit_cost_cents=100)
    with pytest.raises(InventoryError):
        add_stock(product_id=p.id, quantity=1, unit_cost_cents=-1)
    with pytest.raises(InventoryError):
        deduct_stock(product_id=p.id, quantity=-2)
    with pytest.raises(InventoryError):
        add_stock(product_id=999999, quantity=1, unit_cost_cents=100)


def test_inventory_summary(db_session, make_product):
    p = make_product(reorder_level=10)
    add_stock(product_id=p.id, quantity=4, unit_cost_cents=100)
    add_stock(product_id=p.id, quantity=4, unit_cost_cents=200)

    summary = get_inventory_summary(product_id=p.id)

    assert summary["stock"] == 8
    assert summary["is_low_stock"] is True
    assert summary["batch_count"] == 2
    assert summary["inventory_value_cents"] == 1200
    assert summary["weighted_average_cost_cents"] == 150
