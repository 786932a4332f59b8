# Overview: Sale ticket workflow; order entry creates Pending tickets, the cashier completes them.

"""
Order workflow.

States: Pending -> Completed (terminal). There is no cancel state.

Stock is only touched at completion. Completion is one transaction: the
status flip, every product decrement and every ledger entry commit together
or not at all. Sale and Product both carry version_id, so two cashiers
completing concurrently cannot lose an update; the loser's unit of work is
re-run and then fails the Pending check.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field

from flask import current_app

from ..extensions import db
from ..errors import InvalidStateError, NotFoundError, PartialCompletionWarning, ValidationError
from ..models import (
    Customer,
    PAYMENT_METHODS,
    SALE_COMPLETED,
    SALE_PENDING,
    Sale,
    SaleItem,
    StockLogEntry,
)
from ..validation import parse_datetime_param
from storedesk.time_utils import utcnow
from . import data_access, ledger_service
from .concurrency import run_with_retry
from .document_service import next_ticket_id

WALK_IN_CUSTOMER = "Walk-in Customer"


@dataclass
class CompletionResult:
    sale: Sale
    applied: list[StockLogEntry] = field(default_factory=list)
    skipped: list[dict] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.skipped)

    def to_dict(self) -> dict:
        return {
            "sale": self.sale.to_dict(),
            "stock_entries": [e.to_dict() for e in self.applied],
            "skipped_items": self.skipped,
        }


def _coerce_int(raw, *, field: str, index: int) -> int:
    if isinstance(raw, bool) or raw is None:
        raise ValidationError(f"items[{index}].{field} must be an integer")
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"items[{index}].{field} must be an integer")
    if isinstance(raw, float) and raw != value:
        raise ValidationError(f"items[{index}].{field} must be an integer")
    return value


def _normalize_cart(cart) -> list[dict]:
    if not isinstance(cart, list) or not cart:
        raise ValidationError("Cart must contain at least one item")

    lines = []
    for i, raw in enumerate(cart):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{i}] must be an object")
        product_id = _coerce_int(raw.get("product_id"), field="product_id", index=i)
        quantity = _coerce_int(raw.get("quantity"), field="quantity", index=i)
        if quantity <= 0:
            raise ValidationError(f"items[{i}].quantity must be > 0")

        unit_price = raw.get("unit_price_cents")
        if unit_price is not None:
            unit_price = _coerce_int(unit_price, field="unit_price_cents", index=i)
            if unit_price < 0:
                raise ValidationError(f"items[{i}].unit_price_cents must be >= 0")

        lines.append({"product_id": product_id, "quantity": quantity, "unit_price_cents": unit_price})
    return lines


def _resolve_customer(business_id: int, customer_id, customer_name) -> tuple[int | None, str]:
    name = (customer_name or "").strip() or None
    if customer_id is None:
        return None, name or WALK_IN_CUSTOMER
    customer = data_access.get_scoped(Customer, business_id, customer_id, label="Customer")
    return customer.id, name or customer.full_name


def create_pending_order(
    business_id: int,
    cart: list[dict],
    *,
    customer_id: int | None = None,
    customer_name: str | None = None,
    user_id: int | None = None,
) -> Sale:
    """
    Persist a Pending sale ticket from a cart. Stock is not touched.

    Each cart line is {product_id, quantity, unit_price_cents?}; the unit price
    defaults to the product's current sell price. Requested quantities are
    checked against on-hand at entry time (advisory; completion does not
    re-check).
    """
    lines = _normalize_cart(cart)

    def _op():
        cust_id, cust_name = _resolve_customer(business_id, customer_id, customer_name)

        missing = []
        products = {}
        for line in lines:
            pid = line["product_id"]
            if pid in products:
                continue
            product = data_access.find_product(business_id, pid)
            if product is None:
                missing.append(pid)
            products[pid] = product
        if missing:
            raise NotFoundError("Product not found", details={"product_ids": missing})

        requested: dict[int, int] = {}
        for line in lines:
            requested[line["product_id"]] = requested.get(line["product_id"], 0) + line["quantity"]

        insufficient = []
        for pid, qty in requested.items():
            on_hand = products[pid].quantity
            if qty > on_hand:
                insufficient.append({
                    "product_id": pid,
                    "product_name": products[pid].name,
                    "requested_quantity": qty,
                    "on_hand": on_hand,
                })
        if insufficient:
            raise ValidationError("Insufficient stock for order", details={"items": insufficient})

        sale = Sale(
            business_id=business_id,
            ticket_id=next_ticket_id(business_id),
            customer_id=cust_id,
            customer_name=cust_name,
            status=SALE_PENDING,
            created_at=utcnow(),
            created_by_user_id=user_id,
        )

        total = 0
        for position, line in enumerate(lines, start=1):
            product = products[line["product_id"]]
            unit_price = line["unit_price_cents"]
            if unit_price is None:
                unit_price = product.sell_price_cents
            line_total = unit_price * line["quantity"]
            total += line_total
            sale.items.append(SaleItem(
                position=position,
                product_id=product.id,
                product_name=product.name,
                quantity=line["quantity"],
                unit_price_cents=unit_price,
                unit_cost_cents=product.buy_price_cents,
                line_total_cents=line_total,
            ))
        sale.total_cents = total

        data_access.create_sale(sale)
        db.session.commit()
        current_app.logger.info(
            "Order created: business=%s ticket=%s items=%d total_cents=%d",
            business_id, sale.ticket_id, len(lines), total,
        )
        return sale

    return run_with_retry(_op)


def list_pending_orders(
    business_id: int,
    *,
    newest_first: bool = True,
    search: str | None = None,
) -> list[Sale]:
    """Pending tickets for the cashier queue; search matches ticket id substrings."""
    sales = data_access.list_sales(business_id, SALE_PENDING, newest_first=newest_first)
    needle = (search or "").strip().lower()
    if needle:
        sales = [s for s in sales if needle in s.ticket_id.lower()]
    return sales


def list_completed_sales(business_id: int, *, start=None, end=None) -> list[Sale]:
    return data_access.list_sales(
        business_id,
        SALE_COMPLETED,
        start=parse_datetime_param(start, field="start"),
        end=parse_datetime_param(end, field="end"),
    )


def get_sale(business_id: int, sale_id: int) -> Sale:
    return data_access.get_sale(business_id, sale_id)


def find_by_ticket(business_id: int, ticket_id: str) -> Sale:
    sale = data_access.find_sale_by_ticket(business_id, ticket_id)
    if sale is None:
        raise NotFoundError("Sale not found", details={"ticket_id": ticket_id})
    return sale


def complete_order(
    business_id: int,
    sale_id: int,
    payment_method: str,
    *,
    user_id: int | None = None,
) -> CompletionResult:
    """
    Confirm payment for a Pending ticket and post its stock movements.

    Raises NotFoundError for an unknown sale, InvalidStateError when the sale
    is not Pending, ValidationError for an unknown payment method. Line items
    whose product was deleted since order entry are skipped, listed in
    CompletionResult.skipped, and reported with PartialCompletionWarning.
    """
    def _op():
        sale = data_access.get_sale(business_id, sale_id, lock=True)
        if sale.status != SALE_PENDING:
            raise InvalidStateError(
                f"Sale {sale.ticket_id} is already {sale.status}",
                details={"sale_id": sale.id, "status": sale.status},
            )
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(
                f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}",
                details={"payment_method": payment_method},
            )

        now = utcnow()
        sale.status = SALE_COMPLETED
        sale.payment_method = payment_method
        sale.completed_at = now
        sale.completed_by_user_id = user_id

        result = CompletionResult(sale=sale)
        for item in sale.items:
            product = data_access.find_product(business_id, item.product_id, lock=True)
            if product is None:
                result.skipped.append({
                    "sale_item_id": item.id,
                    "product_id": item.product_id,
                    "product_name": item.product_name,
                    "quantity": item.quantity,
                })
                continue
            entry = ledger_service.append_stock_log(
                product,
                -item.quantity,
                "sale",
                occurred_at=now,
                sale_id=sale.id,
                note=f"Sale {sale.ticket_id}",
            )
            result.applied.append(entry)

        data_access.update_sale(sale)
        db.session.commit()
        return result

    result = run_with_retry(_op)

    current_app.logger.info(
        "Order completed: business=%s ticket=%s payment=%s applied=%d skipped=%d",
        business_id, result.sale.ticket_id, payment_method, len(result.applied), len(result.skipped),
    )
    if result.skipped:
        names = ", ".join(s["product_name"] for s in result.skipped)
        message = f"Sale {result.sale.ticket_id} completed without stock update for: {names}"
        current_app.logger.warning(message)
        warnings.warn(message, PartialCompletionWarning, stacklevel=2)
    return result
