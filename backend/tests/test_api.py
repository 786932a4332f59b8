# Overview: Pytest coverage for the JSON API; request parsing, status codes and response shapes.

"""
API Tests

End-to-end through the Flask test client with an ADMIN (or role-specific)
bearer token. Business rules are covered in the service tests; these check
the HTTP surface: payload parsing, status codes, JSON shapes and error bodies.
"""

import io

from storedesk.services import order_service


class TestHealth:

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "ok"
        assert resp.json["checks"]["database"]["status"] == "healthy"

    def test_cors_allowed_origin(self, client, db_session):
        resp = client.get("/health", headers={"Origin": "http://localhost:5173"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

        resp = client.get("/health", headers={"Origin": "http://evil.test"})
        assert "Access-Control-Allow-Origin" not in resp.headers


class TestProductsApi:

    def test_crud(self, client, admin_headers):
        resp = client.post("/api/products", json={
            "name": "Tea",
            "quantity": 12,
            "buy_price_cents": 90,
            "sell_price_cents": 180,
            "category": "Drinks",
        }, headers=admin_headers)
        assert resp.status_code == 201
        product = resp.json
        assert product["quantity"] == 12
        assert product["low_stock"] is False

        resp = client.put(f"/api/products/{product['id']}", json={"sell_price_cents": 200}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["sell_price_cents"] == 200

        resp = client.get("/api/products?q=te", headers=admin_headers)
        assert [p["name"] for p in resp.json["items"]] == ["Tea"]

        categories = client.get("/api/products/categories", headers=admin_headers)
        assert [c["name"] for c in categories.json["items"]] == ["Drinks"]

        assert client.delete(f"/api/products/{product['id']}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/products/{product['id']}", headers=admin_headers).status_code == 404

    def test_validation_error_body(self, client, admin_headers):
        resp = client.post("/api/products", json={"name": "", "sell_price_cents": -1}, headers=admin_headers)
        assert resp.status_code == 400
        assert "error" in resp.json

    def test_quantity_not_writable(self, client, admin_headers, product_p1):
        resp = client.put(f"/api/products/{product_p1.id}", json={"quantity": 999}, headers=admin_headers)
        assert resp.status_code == 400

    def test_adjust(self, client, admin_headers, product_p1):
        resp = client.post(
            f"/api/products/{product_p1.id}/adjust",
            json={"delta": 20, "type": "restock", "note": "Weekly delivery"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json["entry"]["balance"] == 70
        assert resp.json["entry"]["note"] == "Weekly delivery"
        assert resp.json["product"]["quantity"] == 70

    def test_adjust_rejects_zero(self, client, admin_headers, product_p1):
        resp = client.post(f"/api/products/{product_p1.id}/adjust", json={"delta": 0}, headers=admin_headers)
        assert resp.status_code == 400

    def test_low_stock(self, client, admin_headers, product_p1):
        assert client.get("/api/products/low-stock", headers=admin_headers).json["count"] == 0
        resp = client.get("/api/products/low-stock?threshold=60", headers=admin_headers)
        assert [p["name"] for p in resp.json["items"]] == ["P1"]
        assert resp.json["items"][0]["low_stock"] is True


class TestImportApi:

    CSV = "name,qty,cost,price\nSoap,5,0.50,1.20\nSoap,2,0.50,1.20\n"

    def test_preview_then_confirm(self, client, admin_headers):
        preview = client.post("/api/products/import", json={"csv": self.CSV}, headers=admin_headers)
        assert preview.status_code == 200
        assert preview.json["committed"] is False
        assert len(preview.json["preview"]["staged"]) == 1
        assert preview.json["duplicates_skipped"] == 1

        done = client.post("/api/products/import", json={"csv": self.CSV, "confirm": True}, headers=admin_headers)
        assert done.status_code == 201
        assert done.json["imported"] == 1
        assert done.json["products"][0]["quantity"] == 5

    def test_multipart_upload(self, client, admin_headers):
        resp = client.post(
            "/api/products/import",
            data={"file": (io.BytesIO(self.CSV.encode("utf-8")), "products.csv"), "confirm": "true"},
            headers=admin_headers,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 201
        assert resp.json["imported"] == 1

    def test_rows_payload(self, client, admin_headers):
        resp = client.post(
            "/api/products/import",
            json={"rows": [{"Name": "Brush", "Price": "2"}], "confirm": True},
            headers=admin_headers,
        )
        assert resp.status_code == 201

    def test_missing_source(self, client, admin_headers):
        assert client.post("/api/products/import", json={}, headers=admin_headers).status_code == 400

    def test_template(self, client, admin_headers):
        resp = client.get("/api/products/import/template", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.mimetype == "text/csv"
        assert resp.get_data(as_text=True).splitlines()[0].lower().startswith("name")


class TestStockApi:

    def test_logs_and_as_of(self, client, admin_headers, product_p1):
        client.post(f"/api/products/{product_p1.id}/adjust", json={"delta": -4}, headers=admin_headers)

        logs = client.get(f"/api/stock/logs?product_id={product_p1.id}", headers=admin_headers)
        assert [e["change"] for e in logs.json["items"]] == [-4, 50]

        now = client.get(f"/api/stock/{product_p1.id}/as-of", headers=admin_headers)
        assert now.json["quantity"] == 46

        before = client.get(f"/api/stock/{product_p1.id}/as-of?at=2000-01-01T00:00:00", headers=admin_headers)
        assert before.json["quantity"] == 0

    def test_bad_timestamp(self, client, admin_headers, product_p1):
        resp = client.get(f"/api/stock/{product_p1.id}/as-of?at=soon", headers=admin_headers)
        assert resp.status_code == 400

    def test_verify(self, client, admin_headers, product_p1):
        one = client.get(f"/api/stock/{product_p1.id}/verify", headers=admin_headers)
        assert one.json["consistent"] is True

        every = client.get("/api/stock/verify", headers=admin_headers)
        assert every.json == {"products_checked": 1, "consistent": True, "inconsistent": []}


class TestOrdersApi:

    def test_entry_to_completion(self, client, sales_headers, cashier_headers, product_p1, customer_a):
        created = client.post("/api/orders", json={
            "items": [{"product_id": product_p1.id, "quantity": 5, "unit_price_cents": 250}],
            "customer_id": customer_a.id,
        }, headers=sales_headers)
        assert created.status_code == 201
        assert created.json["status"] == "Pending"
        assert created.json["ticket_id"] == "CUST-00001"
        assert created.json["total_cents"] == 1250
        sale_id = created.json["id"]

        queue = client.get("/api/orders/pending", headers=cashier_headers)
        assert [s["id"] for s in queue.json["items"]] == [sale_id]

        done = client.post(f"/api/orders/{sale_id}/complete", json={"payment_method": "Cash"}, headers=cashier_headers)
        assert done.status_code == 200
        assert done.json["sale"]["status"] == "Completed"
        assert done.json["stock_entries"][0]["balance"] == 45
        assert done.json["skipped_items"] == []

        again = client.post(f"/api/orders/{sale_id}/complete", json={"payment_method": "Cash"}, headers=cashier_headers)
        assert again.status_code == 409

        receipts = client.get("/api/orders", headers=cashier_headers)
        assert receipts.json["count"] == 1

    def test_insufficient_stock(self, client, sales_headers, product_p1):
        resp = client.post(
            "/api/orders",
            json={"items": [{"product_id": product_p1.id, "quantity": 51}]},
            headers=sales_headers,
        )
        assert resp.status_code == 400
        assert resp.json["details"]["items"][0]["on_hand"] == 50

    def test_missing_payment_method(self, client, business_a, cashier_headers, product_p1):
        sale = order_service.create_pending_order(business_a.id, [{"product_id": product_p1.id, "quantity": 1}])
        resp = client.post(f"/api/orders/{sale.id}/complete", json={}, headers=cashier_headers)
        assert resp.status_code == 400


class TestPeopleApi:

    def test_customer_crud(self, client, manager_headers):
        created = client.post(
            "/api/people/customers",
            json={"first_name": "Luis", "last_name": "Mora", "phone": "555-0101"},
            headers=manager_headers,
        )
        assert created.status_code == 201
        customer_id = created.json["id"]

        updated = client.put(f"/api/people/customers/{customer_id}", json={"phone": "555-0199"}, headers=manager_headers)
        assert updated.json["phone"] == "555-0199"

        listed = client.get("/api/people/customers", headers=manager_headers)
        assert listed.json["count"] == 1

        assert client.delete(f"/api/people/customers/{customer_id}", headers=manager_headers).status_code == 200
        assert client.get("/api/people/customers", headers=manager_headers).json["count"] == 0

    def test_supplier_requires_name(self, client, manager_headers):
        assert client.post("/api/people/suppliers", json={"phone": "1"}, headers=manager_headers).status_code == 400

    def test_employee(self, client, manager_headers):
        resp = client.post(
            "/api/people/employees",
            json={"first_name": "Eva", "last_name": "Ruiz", "job_role": "Stocker"},
            headers=manager_headers,
        )
        assert resp.status_code == 201


class TestFinanceApi:

    def test_expenses(self, client, admin_headers):
        created = client.post(
            "/api/finance/expenses",
            json={"name": "Rent", "amount_cents": 50000, "occurred_on": "2024-02-01", "category": "Premises"},
            headers=admin_headers,
        )
        assert created.status_code == 201
        client.post(
            "/api/finance/expenses",
            json={"name": "Power", "amount_cents": 7000, "occurred_on": "2024-03-01"},
            headers=admin_headers,
        )

        february = client.get("/api/finance/expenses?start=2024-02-01&end=2024-02-29", headers=admin_headers)
        assert february.json["count"] == 1
        assert february.json["total_cents"] == 50000

        resp = client.put(
            f"/api/finance/expenses/{created.json['id']}",
            json={"amount_cents": 52000},
            headers=admin_headers,
        )
        assert resp.json["amount_cents"] == 52000

    def test_negative_amount(self, client, admin_headers):
        resp = client.post("/api/finance/expenses", json={"name": "Refund", "amount_cents": -5}, headers=admin_headers)
        assert resp.status_code == 400

    def test_categories(self, client, admin_headers):
        assert client.post("/api/finance/categories", json={"name": "Utilities"}, headers=admin_headers).status_code == 201
        assert client.post("/api/finance/categories", json={"name": "utilities"}, headers=admin_headers).status_code == 409


class TestReportsApi:

    def test_gross_income(self, client, business_a, admin_headers, product_p1):
        sale = order_service.create_pending_order(business_a.id, [{"product_id": product_p1.id, "quantity": 5}])
        order_service.complete_order(business_a.id, sale.id, "Cash")

        resp = client.get("/api/reports/gross-income", headers=admin_headers)
        assert resp.json["gross_income_cents"] == 500

    def test_cash_flow_requires_range(self, client, admin_headers):
        assert client.get("/api/reports/cash-flow", headers=admin_headers).status_code == 400

    def test_daily_revenue(self, client, admin_headers):
        resp = client.get("/api/reports/daily-revenue?days=3&today=2024-05-07", headers=admin_headers)
        assert [r["date"] for r in resp.json["items"]] == ["2024-05-05", "2024-05-06", "2024-05-07"]

    def test_dashboard_advisory_once_per_session(self, client, business_a, admin_headers, product_p1):
        order_service.create_pending_order(business_a.id, [{"product_id": product_p1.id, "quantity": 1}])
        client.post(f"/api/products/{product_p1.id}/adjust", json={"delta": -45}, headers=admin_headers)

        first = client.get("/api/reports/dashboard", headers=admin_headers)
        assert first.status_code == 200
        assert first.json["restricted"] is False
        assert first.json["low_stock_names"] == ["P1"]
        assert first.json["advisory"]["type"] == "warning"

        second = client.get("/api/reports/dashboard", headers=admin_headers)
        assert second.json["advisory"] is None

        notes = client.get("/api/notifications", headers=admin_headers)
        assert len(notes.json["items"]) == 1
        assert notes.json["unread_count"] == 1

        note_id = notes.json["items"][0]["id"]
        assert client.post(f"/api/notifications/{note_id}/read", headers=admin_headers).json["read"] is True
        assert client.get("/api/notifications?unread=true", headers=admin_headers).json["items"] == []


class TestSettingsApi:

    def test_read_and_update(self, client, admin_headers, cashier_headers):
        assert client.get("/api/settings", headers=cashier_headers).json["currency"] == "USD"

        resp = client.put("/api/settings", json={"currency": "eur", "currency_symbol": "€"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["currency"] == "EUR"
        assert client.get("/api/settings", headers=cashier_headers).json["currency_symbol"] == "€"

    def test_notifications_create_and_read_all(self, client, admin_headers):
        resp = client.post("/api/notifications", json={"title": "Hi", "message": "Welcome"}, headers=admin_headers)
        assert resp.status_code == 201
        assert client.post("/api/notifications/read-all", headers=admin_headers).json["updated"] == 1
