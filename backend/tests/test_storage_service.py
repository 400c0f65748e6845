from shopkeep.models import Customer, Supplier
from shopkeep.services import storage_service
from shopkeep.services.sales_service import complete_sale


def test_crud_verbs(db_session):
    supplier = Supplier(name="Bidco Feeds")
    assert storage_service.suppliers.add(supplier) is True
    assert [s.name for s in storage_service.suppliers.get_all()] == ["Bidco Feeds"]

    supplier.phone = "0700111222"
    assert storage_service.suppliers.update(supplier) is True
    assert storage_service.suppliers.get(supplier.id).phone == "0700111222"

    assert storage_service.suppliers.delete(supplier.id) is True
    assert storage_service.suppliers.get_all() == []
    assert storage_service.suppliers.delete(supplier.id) is False


def test_failed_write_reports_false(db_session):
    # phone is NOT NULL
    assert storage_service.customers.add(Customer(name="No phone")) is False
    assert storage_service.customers.get_all() == []


def test_append_only_stores_refuse_edits(db_session, pos_session, product):
    pos_session.cart.add_to_cart(product, 1)
    txn = complete_sale(pos_session, "cash")

    assert storage_service.transactions.append_only is True
    assert storage_service.transactions.update(txn) is False
    assert storage_service.transactions.delete(txn.id) is False
    assert [t.id for t in storage_service.transactions.get_all()] == [txn.id]


def test_delete_blocked_by_append_only_children(db_session, make_product):
    # receiving stock wrote a price record that cannot be detached
    p = make_product(stock=5)

    assert storage_service.products.delete(p.id) is False
    assert storage_service.products.get(p.id) is not None
    assert [x.id for x in storage_service.products.get_all()] == [p.id]
    assert storage_service.price_records.get_all() != []
