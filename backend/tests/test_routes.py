"""
HTTP API Tests

Request/response shape and error-class status codes of the JSON transport.
"""

from decimal import Decimal


def _create_product(client, **overrides):
    body = {"sku": "R-1", "name": "Tea", "price_cents": 10000, "qty": 5}
    body.update(overrides)
    response = client.post("/api/products", json=body)
    assert response.status_code == 201, response.get_json()
    return response.get_json()["product"]


class TestSystemRoutes:
    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "healthy"
        assert data["store_name"] == "Test Do'kon"
        assert "schema_revision" in data


class TestProductRoutes:
    def test_create_list_and_find(self, client):
        product = _create_product(client)
        assert product["barcode"]

        listed = client.get("/api/products").get_json()["items"]
        assert [p["id"] for p in listed] == [product["id"]]

        found = client.get(f"/api/products/find?code={product['barcode']}")
        assert found.status_code == 200
        assert found.get_json()["product"]["id"] == product["id"]

        assert client.get("/api/products/find?code=missing").status_code == 404

    def test_validation_error(self, client):
        response = client.post("/api/products", json={"sku": "X", "name": "Bad", "price_cents": 1.5})

        assert response.status_code == 400
        assert response.get_json()["code"] == "validation"

    def test_duplicate_sku_conflict(self, client):
        _create_product(client)
        response = client.post("/api/products", json={"sku": "R-1", "name": "Again", "price_cents": 1})

        assert response.status_code == 409
        assert response.get_json()["code"] == "conflict"

    def test_update(self, client):
        product = _create_product(client)

        response = client.patch(f"/api/products/{product['id']}", json={"price_cents": 12000})

        assert response.status_code == 200
        assert response.get_json()["product"]["price_cents"] == 12000

    def test_set_cost(self, client):
        product = _create_product(client, cost_cents=7000)

        response = client.post(f"/api/products/{product['id']}/cost", json={"cost_cents": 4200})

        assert response.status_code == 200
        assert response.get_json()["product"]["cost_cents"] == 4200

    def test_set_cost_rejects_fractional_cents(self, client):
        product = _create_product(client, cost_cents=7000)

        response = client.post(f"/api/products/{product['id']}/cost", json={"cost_cents": 42.5})

        assert response.status_code == 400
        assert response.get_json()["code"] == "validation"
        assert client.post("/api/products/999999/cost", json={"cost_cents": 1}).status_code == 404

    def test_deactivate_requires_confirmation(self, client):
        product = _create_product(client)

        first = client.post(f"/api/products/{product['id']}/deactivate", json={})
        assert first.status_code == 409
        assert first.get_json()["requires_confirmation"] is True

        forced = client.post(f"/api/products/{product['id']}/deactivate", json={"force": True})
        assert forced.status_code == 200
        assert forced.get_json()["success"] is True

        assert client.post("/api/products/999999/deactivate", json={}).status_code == 404


class TestInventoryRoutes:
    def test_set_stock_receive_and_movements(self, client):
        product = _create_product(client)

        adjusted = client.post(f"/api/inventory/{product['id']}/set-stock", json={"qty": 2})
        assert adjusted.status_code == 200
        assert Decimal(adjusted.get_json()["movement"]["new_qty"]) == Decimal("2")

        received = client.post(f"/api/inventory/{product['id']}/receive", json={"qty": 3, "cost_cents": 50})
        assert received.status_code == 201

        movements = client.get(f"/api/inventory/{product['id']}/movements").get_json()["items"]
        assert [m["movement_type"] for m in movements] == ["receive", "adjustment", "initial"]

    def test_negative_stock_rejected(self, client):
        product = _create_product(client)
        response = client.post(f"/api/inventory/{product['id']}/set-stock", json={"qty": -1})
        assert response.status_code == 400


class TestSaleRoutes:
    def test_create_and_read_sale(self, client):
        product = _create_product(client)

        response = client.post("/api/sales", json={
            "items": [{"product_id": product["id"], "qty": 2}],
            "payment_method": "cash",
        })

        assert response.status_code == 201
        created = response.get_json()
        assert created["total_cents"] == 20000

        sale = client.get(f"/api/sales/{created['sale_id']}").get_json()["sale"]
        assert len(sale["items"]) == 1
        assert [p["amount_cents"] for p in sale["payments"]] == [20000]

        listed = client.get("/api/sales").get_json()["items"]
        assert listed[0]["id"] == created["sale_id"]

    def test_error_codes(self, client):
        product = _create_product(client)

        empty = client.post("/api/sales", json={"items": [], "payment_method": "cash"})
        assert empty.status_code == 400
        assert empty.get_json()["code"] == "empty_cart"

        short = client.post("/api/sales", json={
            "items": [{"product_id": product["id"], "qty": 6}],
            "payment_method": "cash",
        })
        assert short.status_code == 409
        assert short.get_json()["code"] == "insufficient_stock"
        assert short.get_json()["details"]["product_id"] == product["id"]

        no_customer = client.post("/api/sales", json={
            "items": [{"product_id": product["id"], "qty": 1}],
            "payment_method": "debt",
        })
        assert no_customer.status_code == 400
        assert no_customer.get_json()["code"] == "missing_customer"

        assert client.get("/api/sales/424242").status_code == 404


class TestReturnAndDebtRoutes:
    def test_debt_sale_return_and_payment(self, client):
        product = _create_product(client)
        sale = client.post("/api/sales", json={
            "items": [{"product_id": product["id"], "qty": 2}],
            "payment_method": "debt",
            "customer": {"name": "Ali", "phone": "900000000"},
        }).get_json()
        item = client.get(f"/api/sales/{sale['sale_id']}/items").get_json()["items"][0]

        returned = client.post("/api/returns", json={
            "sale_id": sale["sale_id"],
            "lines": [{"sale_item_id": item["id"], "qty": 1}],
        })
        assert returned.status_code == 201
        summary = returned.get_json()["return"]
        assert summary["debt_reduced_cents"] == 10000
        assert summary["refund_cents"] == 0

        over = client.post("/api/returns", json={
            "sale_id": sale["sale_id"],
            "lines": [{"sale_item_id": item["id"], "qty": 2}],
        })
        assert over.status_code == 409
        assert over.get_json()["code"] == "over_return"

        debts = client.get("/api/debts?include_paid=0").get_json()["items"]
        assert len(debts) == 1
        customer_id = debts[0]["customer_id"]

        paid = client.post(f"/api/debts/customers/{customer_id}/pay", json={"amount_cents": 10000})
        assert paid.status_code == 200
        assert paid.get_json()["balance_cents"] == 0

        history = client.get(f"/api/debts/customers/{customer_id}/transactions").get_json()["items"]
        assert len(history) == 3

        assert client.get("/api/debts?include_paid=0").get_json()["items"] == []
        assert len(client.get("/api/returns").get_json()["items"]) == 1

    def test_unknown_return(self, client):
        response = client.get("/api/returns/31337")
        assert response.status_code == 404
        assert response.get_json()["code"] == "return_not_found"


class TestPrintRoutes:
    def test_missing_executable_reports_failed_job(self, client, app, bin_dir, monkeypatch):
        monkeypatch.setitem(app.config, "LABEL_BINARIES", ["no-such-printer"])
        product = _create_product(client)

        response = client.post("/api/print/label", json={"product_id": product["id"]})

        assert response.status_code == 500
        body = response.get_json()
        assert body["code"] == "binary_not_found"
        job_id = body["details"]["job_id"]

        jobs = client.get("/api/print/jobs?status=failed").get_json()["items"]
        assert [job["id"] for job in jobs] == [job_id]
