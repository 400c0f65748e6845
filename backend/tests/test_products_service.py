from decimal import Decimal

import pytest

from shopkeep.models import InventoryBatch
from shopkeep.services.inventory_service import get_stock
from shopkeep.services.products_service import (
    ProductNotFoundError,
    add_product,
    deactivate_product,
    find_matching_product,
    get_low_stock_products,
    get_price_history,
    list_products,
    search_products,
    update_product,
)
from shopkeep.validation import ConflictError


def _patch(**overrides):
    base = {
        "name": "Chick Mash 50kg",
        "category": "feeds",
        "unit": "bags",
        "retail_price_cents": 310000,
        "cost_price_cents": 270000,
    }
    base.update(overrides)
    return base


def test_add_product_with_opening_stock(db_session):
    p = add_product(patch=_patch(), initial_stock=15)

    assert p.sku.startswith("SKU-")
    assert p.wholesale_price_cents == 310000
    assert p.reorder_level == Decimal("10")
    assert get_stock(p.id) == Decimal("15")

    batch = db_session.query(InventoryBatch).filter_by(product_id=p.id).one()
    assert batch.cost_per_unit_cents == 270000
    history = get_price_history(p.id)
    assert [(r.source, r.unit_cost_cents) for r in history] == [("initial", 270000)]


def test_add_product_without_stock_has_no_batches(db_session):
    p = add_product(patch=_patch(sku="CM-50"))
    assert p.sku == "CM-50"
    assert db_session.query(InventoryBatch).filter_by(product_id=p.id).count() == 0


def test_duplicate_sku_conflicts(db_session):
    add_product(patch=_patch(sku="CM-50"))
    with pytest.raises(ConflictError):
        add_product(patch=_patch(sku="CM-50", name="Other"))


def test_update_product_sku_clash(db_session):
    add_product(patch=_patch(sku="A-1"))
    other = add_product(patch=_patch(sku="B-1", name="Other"))
    with pytest.raises(ConflictError):
        update_product(product_id=other.id, patch={"sku": "A-1"})

    updated = update_product(product_id=other.id, patch={"retail_price_cents": 320000})
    assert updated.retail_price_cents == 320000


def test_deactivated_products_leave_listing_and_matching(db_session, make_product):
    p = make_product(name="Maize Germ")
    deactivate_product(product_id=p.id)

    assert list_products() == []
    assert [d["id"] for d in list_products(include_inactive=True)] == [p.id]
    assert find_matching_product("Maize Germ") is None
    with pytest.raises(ProductNotFoundError):
        deactivate_product(product_id=987654)


def test_search_by_name_sku_and_barcode(db_session, make_product):
    a = make_product(name="Newcastle Vaccine", sku="VAC-NC", barcode="6001234")
    make_product(name="Dairy Meal", sku="DM-70")

    assert [p.id for p in search_products("newcastle")] == [a.id]
    assert [p.id for p in search_products("vac-")] == [a.id]
    assert [p.id for p in search_products("600123")] == [a.id]
    assert search_products("   ") == []


def test_low_stock_report(db_session, make_product):
    low = make_product(name="A low", reorder_level=5, stock=5)
    make_product(name="B fine", reorder_level=5, stock=6)
    empty = make_product(name="C empty", reorder_level=0)

    rows = get_low_stock_products()
    assert [r["id"] for r in rows] == [low.id, empty.id]
    assert rows[0]["is_low_stock"] is True
    assert rows[0]["stock"] == 5


def test_find_matching_prefers_exact_name(db_session, make_product):
    make_product(name="Layers Mash 70kg Premium")
    exact = make_product(name="Layers Mash 70kg")

    assert find_matching_product("  LAYERS MASH 70KG ").id == exact.id
    assert find_matching_product("Unrelated") is None
