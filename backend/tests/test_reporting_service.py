from datetime import timedelta

from shopkeep.services.reporting_service import (
    get_daily_summary,
    get_today_sales,
    get_today_transaction_count,
)
from shopkeep.services.sales_service import complete_sale
from shopkeep.time_utils import utcnow


def test_today_figures(db_session, pos_session, product, customer):
    pos_session.cart.add_to_cart(product, 3)
    complete_sale(pos_session, "cash", discount_cents=100)
    pos_session.cart.add_to_cart(product, 1)
    complete_sale(pos_session, "credit", customer_id=customer.id)

    assert get_today_sales() == 1900
    assert get_today_transaction_count() == 2


def test_daily_summary(db_session, pos_session, make_product):
    feed = make_product(name="Layers Mash", retail_price_cents=500, stock=20)
    vaccine = make_product(name="Vaccine", retail_price_cents=2000, stock=5)

    pos_session.cart.add_to_cart(feed, 2)
    pos_session.cart.add_to_cart(vaccine, 1)
    complete_sale(pos_session, "mpesa", discount_cents=200)
    pos_session.cart.add_to_cart(feed, 1)
    complete_sale(pos_session, "cash")

    summary = get_daily_summary()

    assert summary["transaction_count"] == 2
    assert summary["subtotal_cents"] == 3500
    assert summary["discount_cents"] == 200
    assert summary["total_sales_cents"] == 3300
    assert summary["payment_breakdown"] == {
        "cash": {"count": 1, "total_cents": 500},
        "mpesa": {"count": 1, "total_cents": 2800},
    }
    assert [row["product_id"] for row in summary["top_products"]] == [vaccine.id, feed.id]
    assert summary["top_products"][1]["quantity"] == 3


def test_other_days_are_empty(db_session, pos_session, product):
    pos_session.cart.add_to_cart(product, 1)
    complete_sale(pos_session, "cash")

    yesterday = utcnow().date() - timedelta(days=1)
    assert get_today_sales(yesterday) == 0
    assert get_daily_summary(yesterday)["transaction_count"] == 0
