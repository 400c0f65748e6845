"""
Pytest fixtures for shopkeep backend tests.

Provides test database setup, catalog/customer factories, and test client.
"""

import itertools

import pytest
from shopkeep import create_app
from shopkeep.extensions import db
from shopkeep.models import Customer, Product
from shopkeep.services.auth_service import create_user
from shopkeep.services.inventory_service import add_stock
from shopkeep.services.session_service import open_session


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'ALLOW_OVERSELL': True,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


_sku_counter = itertools.count(1)


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: active unit product. Prices in cents."""
    def _make(
        name="Layers Mash 70kg",
        retail_price_cents=500,
        cost_price_cents=300,
        reorder_level=5,
        stock=None,
        **extra,
    ):
        product = Product(
            sku=extra.pop("sku", f"TEST-{next(_sku_counter):05d}"),
            name=name,
            category=extra.pop("category", "feeds"),
            unit=extra.pop("unit", "bags"),
            item_type=extra.pop("item_type", "unit"),
            retail_price_cents=retail_price_cents,
            wholesale_price_cents=extra.pop("wholesale_price_cents", retail_price_cents),
            cost_price_cents=cost_price_cents,
            reorder_level=reorder_level,
            is_active=extra.pop("is_active", True),
            **extra,
        )
        db_session.add(product)
        db_session.commit()
        if stock:
            add_stock(product_id=product.id, quantity=stock, unit_cost_cents=cost_price_cents)
        return product

    return _make


@pytest.fixture(scope='function')
def product(make_product):
    """Product priced 500 with 10 in stock at cost 300."""
    return make_product(stock=10)


@pytest.fixture(scope='function')
def make_customer(db_session):
    def _make(name="Wanjiku Kamau", credit_limit_cents=5000, current_balance_cents=0, **extra):
        customer = Customer(
            name=name,
            phone=extra.pop("phone", "0712345678"),
            customer_type=extra.pop("customer_type", "retail"),
            credit_limit_cents=credit_limit_cents,
            current_balance_cents=current_balance_cents,
            **extra,
        )
        db_session.add(customer)
        db_session.commit()
        return customer

    return _make


@pytest.fixture(scope='function')
def customer(make_customer):
    return make_customer()


@pytest.fixture(scope='function')
def cashier(db_session):
    return create_user(
        email="cashier@shop.local",
        full_name="Cashier",
        password="Password123!",
        role="cashier",
        pin="1234",
    )


@pytest.fixture(scope='function')
def pos_session(cashier):
    return open_session(cashier)
