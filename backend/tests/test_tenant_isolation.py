# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

SECURITY TESTS: Prove that cross-tenant access is denied for core resources.

Two businesses are created, each with its own admin. These tests verify:
1. Services given business A's id never see business B's rows
2. A foreign id is reported as NotFound (existence is not revealed)
3. API requests are scoped by the token's business, not by anything in the URL
"""

import pytest
from flask import g

from storedesk.errors import AuthError, NotFoundError
from storedesk.services import (
    finance_service,
    ledger_service,
    order_service,
    people_service,
    products_service,
    reporting_service,
    tenant_service,
)
from tests.conftest import login_headers


@pytest.fixture
def product_b(business_b):
    return products_service.create_product(business_b.id, {
        "name": "Product B",
        "quantity": 20,
        "buy_price_cents": 500,
        "sell_price_cents": 900,
    })


class TestTenantServiceHelpers:

    def test_current_business_requires_context(self, app):
        with app.test_request_context():
            with pytest.raises(AuthError):
                tenant_service.get_current_business_id()

    def test_current_business_from_g(self, app, business_a):
        with app.test_request_context():
            g.business_id = business_a.id
            assert tenant_service.get_current_business_id() == business_a.id

    def test_require_active_business(self, db_session, business_a):
        assert tenant_service.require_active_business(business_a.id).id == business_a.id

        business_a.is_active = False
        db_session.commit()
        with pytest.raises(NotFoundError):
            tenant_service.require_active_business(business_a.id)


class TestServiceScoping:

    def test_products(self, business_a, business_b, product_p1, product_b):
        assert [p.id for p in products_service.list_products(business_a.id)] == [product_p1.id]
        with pytest.raises(NotFoundError):
            products_service.get_product(business_a.id, product_b.id)
        with pytest.raises(NotFoundError):
            products_service.update_product(business_a.id, product_b.id, {"name": "Hijacked"})
        with pytest.raises(NotFoundError):
            products_service.delete_product(business_a.id, product_b.id)

    def test_stock(self, business_a, business_b, product_p1, product_b):
        with pytest.raises(NotFoundError):
            ledger_service.adjust_stock(business_id=business_a.id, product_id=product_b.id, delta=5)
        assert {e.product_id for e in ledger_service.list_stock_logs(business_a.id)} == {product_p1.id}
        with pytest.raises(NotFoundError):
            ledger_service.derive_stock_at(business_a.id, product_b.id, "2024-01-01")

    def test_orders(self, business_a, business_b, product_p1, product_b):
        with pytest.raises(NotFoundError):
            order_service.create_pending_order(business_a.id, [{"product_id": product_b.id, "quantity": 1}])

        sale_b = order_service.create_pending_order(business_b.id, [{"product_id": product_b.id, "quantity": 1}])
        assert order_service.list_pending_orders(business_a.id) == []
        with pytest.raises(NotFoundError):
            order_service.get_sale(business_a.id, sale_b.id)
        with pytest.raises(NotFoundError):
            order_service.find_by_ticket(business_a.id, sale_b.ticket_id)

    def test_reports(self, business_a, business_b, product_b):
        sale_b = order_service.create_pending_order(business_b.id, [{"product_id": product_b.id, "quantity": 2}])
        order_service.complete_order(business_b.id, sale_b.id, "Card")

        assert reporting_service.gross_income(business_a.id) == 0
        assert reporting_service.gross_income(business_b.id) == 800
        assert reporting_service.dashboard_stats(business_a.id)["sale_count"] == 0

    def test_people_and_expenses(self, business_a, business_b):
        customer_b = people_service.create_customer(business_b.id, {"first_name": "Bo", "last_name": "Berg"})
        expense_b = finance_service.create_expense(business_b.id, {"name": "Rent", "amount_cents": 1000})

        assert people_service.list_customers(business_a.id) == []
        assert finance_service.list_expenses(business_a.id) == []
        with pytest.raises(NotFoundError):
            people_service.update_customer(business_a.id, customer_b.id, {"phone": "0"})
        with pytest.raises(NotFoundError):
            finance_service.delete_expense(business_a.id, expense_b.id)

    def test_customer_from_other_business_rejected_on_order(self, business_a, business_b, product_p1):
        customer_b = people_service.create_customer(business_b.id, {"first_name": "Bo", "last_name": "Berg"})
        with pytest.raises(NotFoundError):
            order_service.create_pending_order(
                business_a.id,
                [{"product_id": product_p1.id, "quantity": 1}],
                customer_id=customer_b.id,
            )


class TestApiScoping:

    def test_foreign_product_is_404(self, client, admin_headers, product_b):
        resp = client.get(f"/api/products/{product_b.id}", headers=admin_headers)
        assert resp.status_code == 404
        assert resp.json["error"] == "Product not found"

    def test_foreign_sale_cannot_be_completed(self, client, business_b, cashier_headers, product_b):
        sale_b = order_service.create_pending_order(business_b.id, [{"product_id": product_b.id, "quantity": 1}])
        resp = client.post(
            f"/api/orders/{sale_b.id}/complete",
            json={"payment_method": "Cash"},
            headers=cashier_headers,
        )
        assert resp.status_code == 404
        assert order_service.get_sale(business_b.id, sale_b.id).status == "Pending"

    def test_lists_only_own_rows(self, client, business_b, product_p1, product_b):
        admin_b = next(u for u in business_b.users if u.role == "ADMIN")
        resp = client.get("/api/products", headers=login_headers(admin_b))
        assert resp.status_code == 200
        assert [p["name"] for p in resp.json["items"]] == ["Product B"]
