"""
HTTP surface: status codes and payload shapes of the JSON API.
"""


def _create_product(client, **overrides):
    body = {
        "name": "Layers Mash 70kg",
        "category": "feeds",
        "unit": "bags",
        "retail_price_cents": 500,
        "cost_price_cents": 300,
        "initial_stock": 10,
    }
    body.update(overrides)
    return client.post("/api/products", json=body)


def test_health(client, db_session):
    res = client.get("/api/system/health")
    assert res.status_code == 200
    assert res.get_json()["status"] == "healthy"


def test_create_and_fetch_product(client, db_session):
    res = _create_product(client)
    assert res.status_code == 201
    created = res.get_json()
    assert created["stock"] == 10

    res = client.get(f"/api/products/{created['id']}")
    assert res.status_code == 200
    assert res.get_json()["name"] == "Layers Mash 70kg"

    assert client.get("/api/products/999999").status_code == 404


def test_create_product_validation(client, db_session):
    res = client.post("/api/products", json={"name": "No price"})
    assert res.status_code == 400
    assert res.get_json()["success"] is False

    res = _create_product(client, category="furniture")
    assert res.status_code == 400

    _create_product(client, sku="DUP-1")
    assert _create_product(client, sku="DUP-1").status_code == 409


def test_receive_stock_reports_merge(client, db_session):
    product_id = _create_product(client).get_json()["id"]

    res = client.post(
        f"/api/inventory/products/{product_id}/stock",
        json={"quantity": 5, "cost_per_unit_cents": 300},
    )
    assert res.status_code == 201
    assert res.get_json()["merged"] is True

    res = client.post(
        f"/api/inventory/products/{product_id}/stock",
        json={"quantity": 5, "cost_per_unit_cents": 320},
    )
    assert res.get_json()["merged"] is False

    batches = client.get(f"/api/inventory/products/{product_id}/batches").get_json()
    assert batches["count"] == 2

    res = client.post(f"/api/inventory/products/{product_id}/stock", json={"quantity": 0, "cost_per_unit_cents": 1})
    assert res.status_code == 400


def test_checkout(client, db_session):
    product_id = _create_product(client).get_json()["id"]

    res = client.post("/api/sales/checkout", json={
        "items": [{"product_id": product_id, "quantity": 3}],
        "payment_method": "cash",
        "discount_cents": 100,
    })

    assert res.status_code == 201
    body = res.get_json()
    assert body["transaction"]["total_cents"] == 1400
    assert body["shortfalls"] == []
    assert client.get(f"/api/products/{product_id}").get_json()["stock"] == 7
    assert client.get("/api/sales/today").get_json()["total_sales_cents"] == 1400


def test_checkout_rejects_empty_and_unknown_method(client, db_session):
    product_id = _create_product(client).get_json()["id"]

    assert client.post("/api/sales/checkout", json={"items": [], "payment_method": "cash"}).status_code == 400
    res = client.post("/api/sales/checkout", json={
        "items": [{"product_id": product_id, "quantity": 1}],
        "payment_method": "barter",
    })
    assert res.status_code == 400


def test_credit_checkout_over_limit_needs_override(client, db_session, make_customer):
    customer = make_customer(credit_limit_cents=5000, current_balance_cents=4000)
    product_id = _create_product(client).get_json()["id"]
    body = {
        "items": [{"product_id": product_id, "quantity": 3}],
        "payment_method": "credit",
        "customer_id": customer.id,
    }

    res = client.post("/api/sales/checkout", json=body)
    assert res.status_code == 409
    assert res.get_json()["requires_override"] is True

    res = client.post("/api/sales/checkout", json={**body, "override_credit_limit": True})
    assert res.status_code == 201

    fetched = client.get(f"/api/customers/{customer.id}").get_json()
    assert fetched["current_balance_cents"] == 5500


def test_credit_checkout_without_customer(client, db_session):
    product_id = _create_product(client).get_json()["id"]
    res = client.post("/api/sales/checkout", json={
        "items": [{"product_id": product_id, "quantity": 1}],
        "payment_method": "credit",
    })
    assert res.status_code == 400


def test_customer_payments_and_history(client, db_session):
    res = client.post("/api/customers", json={"name": "Achieng", "phone": "0733000000", "credit_limit_cents": 10000})
    assert res.status_code == 201
    customer_id = res.get_json()["id"]

    res = client.post(f"/api/customers/{customer_id}/adjustments", json={"amount_cents": 3000, "reason": "Opening balance"})
    assert res.status_code == 201

    res = client.post(f"/api/customers/{customer_id}/payments", json={"amount_cents": 4000, "payment_method": "cash"})
    assert res.status_code == 409

    res = client.post(
        f"/api/customers/{customer_id}/payments",
        json={"amount_cents": 4000, "payment_method": "cash", "confirm_overpayment": True},
    )
    assert res.status_code == 201
    assert res.get_json()["customer"]["current_balance_cents"] == -1000

    history = client.get(f"/api/customers/{customer_id}/credit-history").get_json()
    assert [e["type"] for e in history["items"]] == ["payment", "adjustment"]

    check = client.get(f"/api/customers/{customer_id}/credit-check?amount_cents=2000").get_json()
    assert check["allowed"] is True


def test_customer_requires_phone(client, db_session):
    res = client.post("/api/customers", json={"name": "No phone"})
    assert res.status_code == 400


def test_apply_receipt(client, db_session):
    res = client.post("/api/receipts/apply", json={
        "mode": "current_stock",
        "receipt": {
            "supplierName": "Unga Feeds Ltd",
            "items": [{"name": "Broiler Starter", "quantity": 3, "unitPrice": 20}],
        },
    })
    assert res.status_code == 201
    body = res.get_json()
    assert body["new_products_created"] == 1
    assert body["stock_added"] == 3

    res = client.post("/api/receipts/apply", json={"mode": "current_stock", "receipt": {"items": []}})
    assert res.status_code == 400


def test_checkout_repeated_lines_keep_their_discounts(client, db_session):
    product_id = _create_product(client).get_json()["id"]
    line = {"product_id": product_id, "quantity": 1, "discount_cents": 50}

    res = client.post("/api/sales/checkout", json={"items": [line, line], "payment_method": "cash"})

    assert res.status_code == 201
    txn = res.get_json()["transaction"]
    assert txn["subtotal_cents"] == 900
    assert txn["total_cents"] == 900


def test_credit_entries_require_a_known_user(client, db_session, customer, cashier):
    payments = f"/api/customers/{customer.id}/payments"
    adjustments = f"/api/customers/{customer.id}/adjustments"

    res = client.post(adjustments, json={"amount_cents": 1000, "reason": "Opening balance", "user_id": 999999})
    assert res.status_code == 400
    res = client.post(payments, json={"amount_cents": 500, "payment_method": "cash", "user_id": 999999})
    assert res.status_code == 400
    assert client.get(f"/api/customers/{customer.id}/credit-history").get_json()["items"] == []

    res = client.post(adjustments, json={"amount_cents": 1000, "reason": "Opening balance", "user_id": cashier.id})
    assert res.status_code == 201
    res = client.post(payments, json={"amount_cents": 500, "payment_method": "cash", "user_id": cashier.id})
    assert res.status_code == 201
    assert res.get_json()["entry"]["created_by_user_id"] == cashier.id
