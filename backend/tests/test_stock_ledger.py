# Overview: Pytest coverage for stock ledger writes, point-in-time stock and replay checks.

"""
Stock Ledger Tests

Covers:
- Restock / adjustment append exactly one entry with balance = new quantity
- Input rules: zero delta, unknown type, backdated and future timestamps
- Negative stock policy (ALLOW_NEGATIVE_STOCK)
- derive_stock_at replay property over arbitrary T1 < T2
- verify_ledger on consistent and tampered histories
"""

from datetime import datetime, timedelta
from itertools import combinations

import pytest

from storedesk.errors import NotFoundError, ValidationError
from storedesk.extensions import db
from storedesk.models import Product, StockLogEntry
from storedesk.services import ledger_service, products_service
from storedesk.time_utils import utcnow


T1 = datetime(2024, 1, 1, 10, 0)
T2 = datetime(2024, 1, 2, 10, 0)
T3 = datetime(2024, 1, 3, 10, 0)


@pytest.fixture
def backdated_history(business_a, empty_product):
    """+10 at T1, -3 at T2, +5 at T3 -> quantity 12."""
    for when, delta, kind in ((T1, 10, "restock"), (T2, -3, "adjustment"), (T3, 5, "restock")):
        ledger_service.adjust_stock(
            business_id=business_a.id,
            product_id=empty_product.id,
            delta=delta,
            entry_type=kind,
            occurred_at=when.isoformat(),
        )
    return empty_product


class TestAdjustStock:

    def test_restock_example(self, business_a, product_p1):
        product_p1_id = product_p1.id
        ledger_service.adjust_stock(business_id=business_a.id, product_id=product_p1_id, delta=-5)
        entry = ledger_service.adjust_stock(
            business_id=business_a.id,
            product_id=product_p1_id,
            delta=20,
            entry_type="restock",
        )
        assert entry.change == 20
        assert entry.balance == 65
        assert entry.type == "restock"
        assert db.session.get(Product, product_p1_id).quantity == 65

    def test_opening_stock_is_logged(self, business_a, product_p1):
        entries = db.session.query(StockLogEntry).filter_by(product_id=product_p1.id).all()
        assert len(entries) == 1
        assert entries[0].type == "restock"
        assert entries[0].change == 50
        assert entries[0].balance == 50

    def test_zero_delta_rejected(self, business_a, product_p1):
        with pytest.raises(ValidationError):
            ledger_service.adjust_stock(business_id=business_a.id, product_id=product_p1.id, delta=0)

    @pytest.mark.parametrize("delta", ["5", 2.5, True, None])
    def test_non_integer_delta_rejected(self, business_a, product_p1, delta):
        with pytest.raises(ValidationError):
            ledger_service.adjust_stock(business_id=business_a.id, product_id=product_p1.id, delta=delta)

    def test_sale_type_is_not_manual(self, business_a, product_p1):
        with pytest.raises(ValidationError):
            ledger_service.adjust_stock(
                business_id=business_a.id, product_id=product_p1.id, delta=-1, entry_type="sale",
            )

    def test_unknown_product(self, business_a):
        with pytest.raises(NotFoundError):
            ledger_service.adjust_stock(business_id=business_a.id, product_id=99999, delta=1)

    def test_backdated_entry_rejected(self, business_a, product_p1):
        earlier = (utcnow() - timedelta(days=1)).isoformat()
        with pytest.raises(ValidationError):
            ledger_service.adjust_stock(
                business_id=business_a.id, product_id=product_p1.id, delta=1, occurred_at=earlier,
            )
        assert db.session.get(Product, product_p1.id).quantity == 50

    def test_future_entry_rejected(self, business_a, product_p1):
        later = (utcnow() + timedelta(days=1)).isoformat()
        with pytest.raises(ValidationError):
            ledger_service.adjust_stock(
                business_id=business_a.id, product_id=product_p1.id, delta=1, occurred_at=later,
            )

    def test_negative_allowed_by_default(self, business_a, product_p1):
        entry = ledger_service.adjust_stock(business_id=business_a.id, product_id=product_p1.id, delta=-60)
        assert entry.balance == -10

    def test_negative_rejected_when_disallowed(self, app, business_a, product_p1):
        app.config["ALLOW_NEGATIVE_STOCK"] = False
        try:
            with pytest.raises(ValidationError):
                ledger_service.adjust_stock(business_id=business_a.id, product_id=product_p1.id, delta=-60)
            entry = ledger_service.adjust_stock(business_id=business_a.id, product_id=product_p1.id, delta=-50)
            assert entry.balance == 0
        finally:
            app.config["ALLOW_NEGATIVE_STOCK"] = True

    def test_quantity_not_editable_directly(self, business_a, product_p1):
        with pytest.raises(ValidationError):
            products_service.update_product(business_a.id, product_p1.id, {"quantity": 99})


class TestLogs:

    def test_newest_first(self, business_a, backdated_history):
        entries = ledger_service.list_stock_logs(business_a.id, product_id=backdated_history.id)
        assert [e.occurred_at for e in entries] == [T3, T2, T1]

    def test_range_filter(self, business_a, backdated_history):
        entries = ledger_service.list_stock_logs(
            business_a.id,
            product_id=backdated_history.id,
            start="2024-01-02T00:00:00",
            end="2024-01-02T23:59:59",
        )
        assert [e.change for e in entries] == [-3]

    def test_logs_survive_product_deletion(self, business_a, product_p1):
        products_service.delete_product(business_a.id, product_p1.id)
        entries = ledger_service.list_stock_logs(business_a.id)
        assert [e.product_name for e in entries] == ["P1"]


class TestDeriveStock:

    @pytest.mark.parametrize(
        "as_of,inclusive,expected",
        [
            (datetime(2023, 12, 31), True, 0),
            (T1, True, 10),
            (T1, False, 0),
            (T2 + timedelta(hours=2), True, 7),
            (T3, False, 7),
            (T3, True, 12),
        ],
    )
    def test_point_in_time(self, business_a, backdated_history, as_of, inclusive, expected):
        assert ledger_service.derive_stock_at(
            business_a.id, backdated_history.id, as_of, inclusive=inclusive,
        ) == expected

    def test_now_equals_current_quantity(self, business_a, backdated_history):
        assert ledger_service.derive_stock_at(business_a.id, backdated_history.id, utcnow()) == 12

    def test_replay_property(self, business_a, backdated_history):
        entries = ledger_service.list_stock_logs(business_a.id, product_id=backdated_history.id)
        instants = [
            datetime(2023, 12, 1),
            T1,
            T1 + timedelta(minutes=1),
            T2,
            datetime(2024, 1, 2, 23, 0),
            T3,
            utcnow(),
        ]
        for t_a, t_b in combinations(instants, 2):
            delta = ledger_service.derive_stock_at(business_a.id, backdated_history.id, t_b) - \
                ledger_service.derive_stock_at(business_a.id, backdated_history.id, t_a)
            expected = sum(e.change for e in entries if t_a < e.occurred_at <= t_b)
            assert delta == expected, (t_a, t_b)

    def test_requires_timestamp(self, business_a, product_p1):
        with pytest.raises(ValidationError):
            ledger_service.derive_stock_at(business_a.id, product_p1.id, None)

    def test_bad_timestamp(self, business_a, product_p1):
        with pytest.raises(ValidationError):
            ledger_service.derive_stock_at(business_a.id, product_p1.id, "yesterday")


class TestVerifyLedger:

    def test_consistent_history(self, business_a, backdated_history, product_p1):
        check = ledger_service.verify_ledger(business_a.id, backdated_history.id)
        assert check.consistent
        assert check.entries_checked == 3
        assert check.last_balance == 12

        checks = ledger_service.verify_business_ledger(business_a.id)
        assert len(checks) == 2
        assert all(c.consistent for c in checks)

    def test_detects_out_of_band_quantity_change(self, db_session, business_a, product_p1):
        # bypass the ledger on purpose
        product = db_session.get(Product, product_p1.id)
        product.quantity = 7
        db_session.commit()

        check = ledger_service.verify_ledger(business_a.id, product_p1.id)
        assert not check.consistent
        assert check.mismatches[-1]["expected_balance"] == 7
        assert check.mismatches[-1]["recorded_balance"] == 50

    def test_detects_broken_balance(self, db_session, business_a, backdated_history):
        entry = db_session.query(StockLogEntry).filter_by(
            product_id=backdated_history.id, occurred_at=T2,
        ).one()
        entry.balance = 99
        db_session.commit()

        check = ledger_service.verify_ledger(business_a.id, backdated_history.id)
        assert not check.consistent
        assert check.mismatches[0]["entry_id"] == entry.id
        assert check.mismatches[0]["expected_balance"] == 7
