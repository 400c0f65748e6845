from decimal import Decimal

import pytest

from shopkeep.services.cart_service import Cart, CartError, FractionalDetails
from shopkeep.services.inventory_service import get_stock


def test_adding_same_product_increments_line(db_session, product):
    cart = Cart()
    first = cart.add_to_cart(product, 2)
    second = cart.add_to_cart(product, 3)

    assert first is second
    assert len(cart) == 1
    assert cart.items[0].quantity == Decimal("5")
    assert cart.subtotal_cents() == 2500


def test_merged_line_keeps_both_discounts(db_session, product):
    cart = Cart()
    cart.add_to_cart(product, 1, discount_cents=50)
    line = cart.add_to_cart(product, 1, discount_cents=50)

    assert len(cart) == 1
    assert line.quantity == Decimal("2")
    assert line.discount_cents == 100
    assert cart.subtotal_cents() == 900


def test_weighed_portions_are_never_merged(db_session, make_product):
    loose = make_product(name="Dairy Meal (loose)", unit="kg", retail_price_cents=75, stock=50)
    cart = Cart()

    cart.add_to_cart(loose, fractional=FractionalDetails.create("2.5", 188))
    cart.add_to_cart(loose, fractional=FractionalDetails.create("1.2", 90))
    cart.add_to_cart(loose, 1)

    assert len(cart) == 3
    weighed = [i for i in cart.items if i.is_fractional]
    assert [i.quantity for i in weighed] == [Decimal("1"), Decimal("1")]
    assert [i.unit_price_cents for i in weighed] == [188, 90]
    assert weighed[0].stock_quantity == Decimal("2.5")
    assert cart.subtotal_cents() == 188 + 90 + 75


def test_counted_add_merges_past_weighed_line(db_session, make_product):
    loose = make_product(unit="kg", retail_price_cents=75)
    cart = Cart()
    cart.add_to_cart(loose, fractional=FractionalDetails.create(3, 225))
    cart.add_to_cart(loose, 1)
    cart.add_to_cart(loose, 2)

    counted = [i for i in cart.items if not i.is_fractional]
    assert len(cart) == 2
    assert counted[0].quantity == Decimal("3")


def test_update_to_zero_or_less_removes_line(db_session, product):
    cart = Cart()
    item = cart.add_to_cart(product, 2)

    assert cart.update_cart_quantity(item.id, 0) is None
    assert cart.is_empty

    item = cart.add_to_cart(product, 2)
    cart.update_cart_quantity(item.id, -1)
    assert cart.is_empty


def test_update_replaces_quantity(db_session, product):
    cart = Cart()
    item = cart.add_to_cart(product, 2)

    cart.update_cart_quantity(item.id, 7)

    assert cart.items[0].quantity == Decimal("7")
    assert cart.subtotal_cents() == 3500


def test_update_unknown_line_raises(db_session):
    with pytest.raises(CartError):
        Cart().update_cart_quantity("missing", 2)


def test_subtotal_does_not_depend_on_order(db_session, make_product):
    a = make_product(name="Chick Mash", retail_price_cents=310)
    b = make_product(name="Newcastle Vaccine", retail_price_cents=450)

    one = Cart()
    one.add_to_cart(a, 2)
    one.add_to_cart(b, 1, discount_cents=50)
    two = Cart()
    two.add_to_cart(b, 1, discount_cents=50)
    two.add_to_cart(a, 2)

    assert one.subtotal_cents() == two.subtotal_cents() == 2 * 310 + 450 - 50


def test_cart_edits_do_not_touch_stock(db_session, product):
    cart = Cart()
    item = cart.add_to_cart(product, 4)
    cart.remove_from_cart(item.id)

    assert get_stock(product.id) == Decimal("10")
    assert cart.remove_from_cart(item.id) is False


def test_inactive_product_rejected(db_session, make_product):
    retired = make_product(is_active=False)
    with pytest.raises(CartError):
        Cart().add_to_cart(retired, 1)


def test_invalid_weighed_details():
    with pytest.raises(CartError):
        FractionalDetails.create(0, 100)
    with pytest.raises(CartError):
        FractionalDetails.create("1.5", -1)


def test_total_applies_transaction_discount(db_session, product):
    cart = Cart()
    cart.add_to_cart(product, 3)
    assert cart.total_cents(100) == 1400
