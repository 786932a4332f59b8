# Overview: Pytest coverage for the Pending -> Completed sale ticket workflow.

"""
Order Workflow Tests

Covers:
- Pending ticket creation: totals, ticket ids, customer snapshot, no stock effect
- Entry-time stock check and cart validation
- Completion: one ledger entry per line, quantity decremented exactly once
- Double completion rejected, payment method validated
- Deleted product on completion: partial result + PartialCompletionWarning
"""

import pytest

from storedesk.errors import InvalidStateError, NotFoundError, PartialCompletionWarning, ValidationError
from storedesk.extensions import db
from storedesk.models import Product, Sale, StockLogEntry
from storedesk.services import order_service, products_service, reporting_service


def _entries_for(product_id, entry_type=None):
    query = db.session.query(StockLogEntry).filter_by(product_id=product_id)
    if entry_type:
        query = query.filter_by(type=entry_type)
    return query.order_by(StockLogEntry.id.asc()).all()


class TestCreatePendingOrder:

    def test_total_is_sum_of_lines(self, business_a, product_p1):
        sale = order_service.create_pending_order(
            business_a.id,
            [{"product_id": product_p1.id, "quantity": 5, "unit_price_cents": 250}],
        )
        assert sale.status == "Pending"
        assert sale.total_cents == 1250
        assert len(sale.items) == 1
        assert sale.items[0].line_total_cents == 1250

    def test_unit_price_defaults_to_sell_price(self, business_a, product_p1):
        sale = order_service.create_pending_order(business_a.id, [{"product_id": product_p1.id, "quantity": 2}])
        assert sale.items[0].unit_price_cents == 250
        assert sale.total_cents == 500

    def test_snapshots_buy_price_on_item(self, business_a, product_p1):
        sale = order_service.create_pending_order(business_a.id, [{"product_id": product_p1.id, "quantity": 1}])
        assert sale.items[0].unit_cost_cents == 150

    def test_does_not_touch_stock(self, business_a, product_p1):
        order_service.create_pending_order(business_a.id, [{"product_id": product_p1.id, "quantity": 5}])
        db.session.refresh(product_p1)
        assert product_p1.quantity == 50
        assert _entries_for(product_p1.id, "sale") == []

    def test_ticket_ids_are_sequential_per_business(self, business_a, business_b, product_p1):
        first = order_service.create_pending_order(business_a.id, [{"product_id": product_p1.id, "quantity": 1}])
        second = order_service.create_pending_order(business_a.id, [{"product_id": product_p1.id, "quantity": 1}])
        assert first.ticket_id == "CUST-00001"
        assert second.ticket_id == "CUST-00002"

        other = products_service.create_product(business_b.id, {"name": "B1", "quantity": 3, "sell_price_cents": 100})
        sale_b = order_service.create_pending_order(business_b.id, [{"product_id": other.id, "quantity": 1}])
        assert sale_b.ticket_id == "CUST-00001"

    def test_walk_in_customer_by_default(self, business_a, product_p1):
        sale = order_service.create_pending_order(business_a.id, [{"product_id": product_p1.id, "quantity": 1}])
        assert sale.customer_id is None
        assert sale.customer_name == order_service.WALK_IN_CUSTOMER

    def test_customer_name_from_record(self, business_a, product_p1, customer_a):
        sale = order_service.create_pending_order(
            business_a.id,
            [{"product_id": product_p1.id, "quantity": 1}],
            customer_id=customer_a.id,
        )
        assert sale.customer_id == customer_a.id
        assert sale.customer_name == "Ana Diaz"

    def test_insufficient_stock_is_rejected(self, business_a, product_p1):
        with pytest.raises(ValidationError) as exc:
            order_service.create_pending_order(
                business_a.id,
                [
                    {"product_id": product_p1.id, "quantity": 30},
                    {"product_id": product_p1.id, "quantity": 30},
                ],
            )
        items = exc.value.details["items"]
        assert items[0]["requested_quantity"] == 60
        assert items[0]["on_hand"] == 50
        assert db.session.query(Sale).count() == 0

    def test_unknown_product_is_not_found(self, business_a):
        with pytest.raises(NotFoundError) as exc:
            order_service.create_pending_order(business_a.id, [{"product_id": 99999, "quantity": 1}])
        assert exc.value.details["product_ids"] == [99999]

    @pytest.mark.parametrize(
        "cart",
        [
            [],
            None,
            [{"quantity": 1}],
            [{"product_id": 1, "quantity": 0}],
            [{"product_id": 1, "quantity": -2}],
            [{"product_id": 1, "quantity": "many"}],
            [{"product_id": 1, "quantity": 1.5}],
            [{"product_id": 1, "quantity": 1, "unit_price_cents": -5}],
        ],
    )
    def test_malformed_cart(self, business_a, cart):
        with pytest.raises(ValidationError):
            order_service.create_pending_order(business_a.id, cart)


class TestCompleteOrder:

    def test_example_scenario(self, business_a, product_p1):
        sale = order_service.create_pending_order(
            business_a.id,
            [{"product_id": product_p1.id, "quantity": 5, "unit_price_cents": 250}],
        )
        result = order_service.complete_order(business_a.id, sale.id, "Cash")

        assert result.sale.status == "Completed"
        assert result.sale.payment_method == "Cash"
        assert result.sale.completed_at is not None
        assert not result.partial

        product = db.session.get(Product, product_p1.id)
        assert product.quantity == 45

        sale_entries = _entries_for(product_p1.id, "sale")
        assert len(sale_entries) == 1
        assert sale_entries[0].change == -5
        assert sale_entries[0].balance == 45
        assert sale_entries[0].sale_id == sale.id

        assert reporting_service.gross_income(business_a.id) == 500

    def test_one_entry_per_line_item(self, business_a, product_p1):
        p2 = products_service.create_product(business_a.id, {
            "name": "P2", "quantity": 10, "buy_price_cents": 50, "sell_price_cents": 100,
        })
        sale = order_service.create_pending_order(business_a.id, [
            {"product_id": product_p1.id, "quantity": 2},
            {"product_id": p2.id, "quantity": 3},
            {"product_id": product_p1.id, "quantity": 1},
        ])
        result = order_service.complete_order(business_a.id, sale.id, "Card")

        assert len(result.applied) == 3
        assert db.session.get(Product, product_p1.id).quantity == 47
        assert db.session.get(Product, p2.id).quantity == 7
        balances = [e.balance for e in _entries_for(product_p1.id, "sale")]
        assert balances == [48, 47]

    def test_second_completion_is_rejected(self, business_a, product_p1):
        sale = order_service.create_pending_order(business_a.id, [{"product_id": product_p1.id, "quantity": 5}])
        order_service.complete_order(business_a.id, sale.id, "Cash")

        with pytest.raises(InvalidStateError):
            order_service.complete_order(business_a.id, sale.id, "Cash")

        assert db.session.get(Product, product_p1.id).quantity == 45
        assert len(_entries_for(product_p1.id, "sale")) == 1

    def test_unknown_sale(self, business_a):
        with pytest.raises(NotFoundError):
            order_service.complete_order(business_a.id, 424242, "Cash")

    def test_bad_payment_method_leaves_sale_pending(self, business_a, product_p1):
        sale = order_service.create_pending_order(business_a.id, [{"product_id": product_p1.id, "quantity": 5}])
        with pytest.raises(ValidationError):
            order_service.complete_order(business_a.id, sale.id, "Bitcoin")

        assert db.session.get(Sale, sale.id).status == "Pending"
        assert db.session.get(Product, product_p1.id).quantity == 50

    def test_completion_may_drive_stock_negative(self, business_a, product_p1):
        sale = order_service.create_pending_order(business_a.id, [{"product_id": product_p1.id, "quantity": 40}])
        other = order_service.create_pending_order(business_a.id, [{"product_id": product_p1.id, "quantity": 40}])
        order_service.complete_order(business_a.id, sale.id, "Cash")
        order_service.complete_order(business_a.id, other.id, "Cash")
        assert db.session.get(Product, product_p1.id).quantity == -30

    def test_negative_stock_rejected_when_disallowed(self, app, business_a, product_p1):
        sale = order_service.create_pending_order(business_a.id, [{"product_id": product_p1.id, "quantity": 40}])
        other = order_service.create_pending_order(business_a.id, [{"product_id": product_p1.id, "quantity": 40}])
        order_service.complete_order(business_a.id, sale.id, "Cash")

        app.config["ALLOW_NEGATIVE_STOCK"] = False
        try:
            with pytest.raises(ValidationError):
                order_service.complete_order(business_a.id, other.id, "Cash")
        finally:
            app.config["ALLOW_NEGATIVE_STOCK"] = True

        assert db.session.get(Sale, other.id).status == "Pending"
        assert db.session.get(Product, product_p1.id).quantity == 10

    def test_deleted_product_is_skipped_with_warning(self, business_a, product_p1):
        p2 = products_service.create_product(business_a.id, {"name": "Gone", "quantity": 5, "sell_price_cents": 100})
        sale = order_service.create_pending_order(business_a.id, [
            {"product_id": product_p1.id, "quantity": 5},
            {"product_id": p2.id, "quantity": 2},
        ])
        products_service.delete_product(business_a.id, p2.id)

        with pytest.warns(PartialCompletionWarning, match="Gone"):
            result = order_service.complete_order(business_a.id, sale.id, "Cash")

        assert result.partial
        assert result.sale.status == "Completed"
        assert [s["product_id"] for s in result.skipped] == [p2.id]
        assert len(result.applied) == 1
        assert db.session.get(Product, product_p1.id).quantity == 45
        assert result.to_dict()["skipped_items"][0]["quantity"] == 2

    def test_other_business_cannot_complete(self, business_a, business_b, product_p1):
        sale = order_service.create_pending_order(business_a.id, [{"product_id": product_p1.id, "quantity": 5}])
        with pytest.raises(NotFoundError):
            order_service.complete_order(business_b.id, sale.id, "Cash")
        assert db.session.get(Sale, sale.id).status == "Pending"


class TestQueues:

    def test_pending_queue_and_search(self, business_a, product_p1):
        first = order_service.create_pending_order(business_a.id, [{"product_id": product_p1.id, "quantity": 1}])
        second = order_service.create_pending_order(business_a.id, [{"product_id": product_p1.id, "quantity": 1}])

        newest = order_service.list_pending_orders(business_a.id)
        assert [s.id for s in newest] == [second.id, first.id]
        oldest = order_service.list_pending_orders(business_a.id, newest_first=False)
        assert [s.id for s in oldest] == [first.id, second.id]

        found = order_service.list_pending_orders(business_a.id, search="00002")
        assert [s.id for s in found] == [second.id]

    def test_completed_leaves_pending_queue(self, business_a, product_p1):
        sale = order_service.create_pending_order(business_a.id, [{"product_id": product_p1.id, "quantity": 1}])
        order_service.complete_order(business_a.id, sale.id, "Transfer")

        assert order_service.list_pending_orders(business_a.id) == []
        assert [s.id for s in order_service.list_completed_sales(business_a.id)] == [sale.id]

    def test_find_by_ticket_is_case_insensitive(self, business_a, product_p1):
        sale = order_service.create_pending_order(business_a.id, [{"product_id": product_p1.id, "quantity": 1}])
        assert order_service.find_by_ticket(business_a.id, "cust-00001").id == sale.id
        with pytest.raises(NotFoundError):
            order_service.find_by_ticket(business_a.id, "CUST-99999")
