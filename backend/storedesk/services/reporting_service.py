# Overview: Read-only reports; point-in-time stock, profit aggregates and dashboard numbers.

from __future__ import annotations

from collections import OrderedDict
from datetime import date, datetime, timedelta

from flask import current_app

from ..extensions import db
from ..errors import ValidationError
from ..models import Customer, Product, Sale, SALE_COMPLETED, SALE_PENDING
from ..validation import parse_date_param, parse_datetime_param
from storedesk.time_utils import end_of_day, to_utc_z, utcnow
from . import data_access
from .ledger_service import derive_stock_at


COST_BASES = ("current", "at_sale")


def _cost_basis() -> str:
    basis = current_app.config.get("MARGIN_COST_BASIS", "current")
    if basis not in COST_BASES:
        raise ValidationError(f"MARGIN_COST_BASIS must be one of: {', '.join(COST_BASES)}")
    return basis


def _low_stock_threshold() -> int:
    return int(current_app.config.get("LOW_STOCK_THRESHOLD", 10))


def _is_date_only(raw) -> bool:
    if isinstance(raw, date) and not isinstance(raw, datetime):
        return True
    return isinstance(raw, str) and len(raw.strip()) == 10


def _parse_range(
    start, end, *, required: bool, start_exclusive: bool = False,
) -> tuple[datetime | None, datetime | None]:
    """
    Report range, inclusive on both ends.

    A date-only end ("2024-03-31") means the whole of that day. With
    start_exclusive a date-only start means "after that day", so (B, C]
    picks up exactly where [A, B] stopped.
    """
    start_dt = parse_datetime_param(start, field="start")
    end_dt = parse_datetime_param(end, field="end")
    if start_dt is not None and start_exclusive and _is_date_only(start):
        start_dt = end_of_day(start_dt.date())
    if end_dt is not None and _is_date_only(end):
        end_dt = end_of_day(end_dt.date())
    if required and (start_dt is None or end_dt is None):
        raise ValidationError("start and end are required")
    if start_dt is not None and end_dt is not None and start_dt > end_dt:
        raise ValidationError("start must be before end")
    return start_dt, end_dt


def _products_by_id(business_id: int) -> dict[int, Product]:
    return {p.id: p for p in data_access.list_products(business_id)}


def _unit_cost(item, product: Product | None, basis: str) -> int | None:
    if basis == "at_sale" and item.unit_cost_cents is not None:
        return item.unit_cost_cents
    if product is None:
        return None
    return product.buy_price_cents


def _completed_items(business_id: int, start, end, *, start_exclusive: bool = False):
    sales = data_access.list_sales(
        business_id,
        SALE_COMPLETED,
        start=start,
        end=end,
        start_exclusive=start_exclusive,
        newest_first=False,
    )
    for sale in sales:
        for item in sale.items:
            yield sale, item


def _expenses_total(business_id: int, start: datetime | None, end: datetime | None) -> int:
    expenses = data_access.list_expenses(
        business_id,
        start=start.date() if start else None,
        end=end.date() if end else None,
    )
    return sum(e.amount_cents for e in expenses)


def cash_flow_report(business_id: int, start, end) -> dict:
    """
    Per-product profit for completed sales created in [start, end].

    Rows only for products that sold something in the range, profit
    descending. Items whose product has since been deleted are left out and
    counted in `unmatched_items`.
    """
    start_dt, end_dt = _parse_range(start, end, required=True)
    basis = _cost_basis()
    products = _products_by_id(business_id)

    rows: dict[int, dict] = {}
    unmatched = 0
    for _sale, item in _completed_items(business_id, start_dt, end_dt):
        product = products.get(item.product_id)
        if product is None:
            unmatched += 1
            continue
        row = rows.get(product.id)
        if row is None:
            row = rows[product.id] = {
                "product_id": product.id,
                "product_name": product.name,
                "quantity_sold": 0,
                "revenue_cents": 0,
                "cost_cents": 0,
            }
        row["quantity_sold"] += item.quantity
        row["revenue_cents"] += item.unit_price_cents * item.quantity
        row["cost_cents"] += _unit_cost(item, product, basis) * item.quantity

    result_rows = []
    for pid, row in rows.items():
        if row["quantity_sold"] == 0:
            continue
        product = products[pid]
        row["profit_cents"] = row["revenue_cents"] - row["cost_cents"]
        row["opening_stock"] = derive_stock_at(business_id, pid, start_dt, inclusive=False, product=product)
        row["closing_stock"] = derive_stock_at(business_id, pid, end_dt, product=product)
        result_rows.append(row)

    result_rows.sort(key=lambda r: (-r["profit_cents"], r["product_name"].lower()))

    revenue = sum(r["revenue_cents"] for r in result_rows)
    cost = sum(r["cost_cents"] for r in result_rows)
    expenses = _expenses_total(business_id, start_dt, end_dt)
    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "cost_basis": basis,
        "rows": result_rows,
        "totals": {
            "quantity_sold": sum(r["quantity_sold"] for r in result_rows),
            "revenue_cents": revenue,
            "cost_cents": cost,
            "profit_cents": revenue - cost,
            "expenses_cents": expenses,
            "net_profit_cents": revenue - cost - expenses,
        },
        "unmatched_items": unmatched,
    }


def gross_income(business_id: int, start=None, end=None, *, start_exclusive: bool = False) -> int:
    """
    Sum of (unit sell price - unit cost) * quantity over completed sale items.

    The range filters Sale.created_at, inclusive unless start_exclusive, which
    makes consecutive ranges [A, B] and (B, C] add up to [A, C].
    Items whose product has been deleted only count under the at_sale cost
    basis, which does not need the product row.
    """
    start_dt, end_dt = _parse_range(start, end, required=False, start_exclusive=start_exclusive)
    basis = _cost_basis()
    products = _products_by_id(business_id)

    total = 0
    for _sale, item in _completed_items(business_id, start_dt, end_dt, start_exclusive=start_exclusive):
        unit_cost = _unit_cost(item, products.get(item.product_id), basis)
        if unit_cost is None:
            continue
        total += (item.unit_price_cents - unit_cost) * item.quantity
    return total


def stock_movement_report(business_id: int, start, end, product_id: int | None = None) -> dict:
    """Ledger entries in [start, end] grouped by product with opening/closing stock."""
    start_dt, end_dt = _parse_range(start, end, required=True)
    if product_id is not None:
        data_access.get_product(business_id, product_id)

    entries = data_access.list_stock_logs(
        business_id,
        product_id=product_id,
        start=start_dt,
        end=end_dt,
        newest_first=False,
    )
    products = _products_by_id(business_id)

    groups: "OrderedDict[int, list]" = OrderedDict()
    for entry in entries:
        groups.setdefault(entry.product_id, []).append(entry)

    rows = []
    for pid, group in groups.items():
        product = products.get(pid)
        if product is not None:
            opening = derive_stock_at(business_id, pid, start_dt, inclusive=False, product=product)
            closing = derive_stock_at(business_id, pid, end_dt, product=product)
        else:
            # Deleted product: the ledger itself carries the balances.
            opening = group[0].balance - group[0].change
            closing = group[-1].balance
        rows.append({
            "product_id": pid,
            "product_name": product.name if product is not None else group[-1].product_name,
            "entries": [e.to_dict() for e in group],
            "quantity_sold": sum(-e.change for e in group if e.type == "sale"),
            "restocked": sum(e.change for e in group if e.type == "restock"),
            "adjusted": sum(e.change for e in group if e.type == "adjustment"),
            "opening_stock": opening,
            "closing_stock": closing,
        })

    rows.sort(key=lambda r: (r["product_name"].lower(), r["product_id"]))
    return {"start": to_utc_z(start_dt), "end": to_utc_z(end_dt), "rows": rows}


def is_low_stock(product: Product, threshold: int | None = None) -> bool:
    if threshold is None:
        threshold = _low_stock_threshold()
    return product.quantity < threshold


def low_stock_products(business_id: int, threshold: int | None = None) -> list[Product]:
    if threshold is None:
        threshold = _low_stock_threshold()
    products = [p for p in data_access.list_products(business_id) if is_low_stock(p, threshold)]
    products.sort(key=lambda p: (p.quantity, p.name.lower()))
    return products


def dashboard_stats(business_id: int) -> dict:
    products = data_access.list_products(business_id)
    completed = data_access.list_sales(business_id, SALE_COMPLETED)
    customer_count = db.session.query(Customer).filter(Customer.business_id == business_id).count()
    pending_count = db.session.query(Sale).filter(
        Sale.business_id == business_id,
        Sale.status == SALE_PENDING,
    ).count()

    threshold = _low_stock_threshold()
    low = [p for p in products if is_low_stock(p, threshold)]

    gross_profit = gross_income(business_id)
    total_expenses = _expenses_total(business_id, None, None)
    return {
        "product_count": len(products),
        "customer_count": customer_count,
        "sale_count": len(completed),
        "pending_count": pending_count,
        "total_revenue_cents": sum(s.total_cents for s in completed),
        "total_expenses_cents": total_expenses,
        "gross_profit_cents": gross_profit,
        "net_profit_cents": gross_profit - total_expenses,
        "low_stock_threshold": threshold,
        "low_stock_count": len(low),
        "low_stock_names": [p.name for p in low],
    }


def daily_revenue(business_id: int, days: int = 7, today=None) -> list[dict]:
    """Completed-sale revenue per calendar day (UTC) for the last `days` days, oldest first."""
    if isinstance(days, bool) or not isinstance(days, int) or days < 1 or days > 366:
        raise ValidationError("days must be between 1 and 366")
    today_d = parse_date_param(today, field="today") or utcnow().date()
    first = today_d - timedelta(days=days - 1)

    buckets: "OrderedDict[date, int]" = OrderedDict(
        (first + timedelta(days=i), 0) for i in range(days)
    )
    sales = data_access.list_sales(
        business_id,
        SALE_COMPLETED,
        start=datetime.combine(first, datetime.min.time()),
        end=end_of_day(today_d),
        newest_first=False,
    )
    for sale in sales:
        day = sale.created_at.date()
        if day in buckets:
            buckets[day] += sale.total_cents

    return [
        {"date": d.isoformat(), "day": d.strftime("%a"), "revenue_cents": cents}
        for d, cents in buckets.items()
    ]
