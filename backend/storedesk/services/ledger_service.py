# Overview: Stock ledger operations; the only code path that changes Product.quantity.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import ValidationError
from ..validation import parse_datetime_param
from ..models import Product, StockLogEntry
from storedesk.time_utils import utcnow
from . import data_access
from .concurrency import run_with_retry

"""
Stock Ledger Invariants (authoritative)

- Product.quantity is the trusted current balance.
- Every quantity change appends exactly one StockLogEntry in the same DB
  transaction, with balance = quantity after the change.
- Entries are appended in time order per product; a backdated entry is
  rejected because it would break the running balance.
- Past balances are derived backward from the current quantity:
      stock(T) = quantity - SUM(change WHERE occurred_at > T)
  so for T1 < T2: stock(T2) - stock(T1) = SUM(change, T1 < occurred_at <= T2).
- Negative on-hand is allowed unless ALLOW_NEGATIVE_STOCK is False.
"""

MANUAL_TYPES = ("restock", "adjustment")


def negative_stock_allowed() -> bool:
    return bool(current_app.config.get("ALLOW_NEGATIVE_STOCK", True))


def _latest_entry_time(business_id: int, product_id: int) -> datetime | None:
    return db.session.query(func.max(StockLogEntry.occurred_at)).filter(
        StockLogEntry.business_id == business_id,
        StockLogEntry.product_id == product_id,
    ).scalar()


def _resolve_occurred_at(product: Product, occurred_at) -> datetime:
    occurred_dt = parse_datetime_param(occurred_at, field="occurred_at")
    if occurred_dt is None:
        return utcnow()

    if occurred_dt > utcnow():
        raise ValidationError("occurred_at cannot be in the future")

    latest = _latest_entry_time(product.business_id, product.id)
    if latest is not None and occurred_dt < latest:
        raise ValidationError(
            "occurred_at precedes the latest stock entry for this product",
            details={"product_id": product.id},
        )
    return occurred_dt


def append_stock_log(
    product: Product,
    change: int,
    entry_type: str,
    *,
    occurred_at=None,
    sale_id: int | None = None,
    note: str | None = None,
) -> StockLogEntry:
    """
    The single ledger write path, without commit: mutate quantity, append the entry.

    Called by adjust_stock(), order completion and catalog/import creation so
    all of them share one definition of "balance".
    """
    occurred_dt = _resolve_occurred_at(product, occurred_at)

    new_quantity = (product.quantity or 0) + change
    if new_quantity < 0 and not negative_stock_allowed():
        raise ValidationError(
            "change would make on-hand negative",
            details={
                "product_id": product.id,
                "on_hand": product.quantity,
                "change": change,
            },
        )

    product.quantity = new_quantity
    product.updated_at = utcnow()
    data_access.save_product(product)

    entry = StockLogEntry(
        business_id=product.business_id,
        product_id=product.id,
        product_name=product.name,
        change=change,
        type=entry_type,
        balance=new_quantity,
        occurred_at=occurred_dt,
        sale_id=sale_id,
        note=note,
    )
    return data_access.append_stock_log(entry)


def adjust_stock(
    *,
    business_id: int,
    product_id: int,
    delta: int,
    entry_type: str = "adjustment",
    note: str | None = None,
    occurred_at=None,
) -> StockLogEntry:
    """
    Restock or manually adjust a product's on-hand quantity.

    delta is signed; zero is rejected. Returns the appended ledger entry.
    """
    if entry_type not in MANUAL_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(MANUAL_TYPES)}")
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("delta must be an integer")
    if delta == 0:
        raise ValidationError("delta must be non-zero")

    def _op():
        product = data_access.get_product(business_id, product_id, lock=True)
        entry = append_stock_log(product, delta, entry_type, occurred_at=occurred_at, note=note)
        db.session.commit()
        current_app.logger.info(
            "Stock %s: business=%s product=%s change=%+d balance=%d",
            entry_type, business_id, product_id, delta, entry.balance,
        )
        return entry

    return run_with_retry(_op)


def list_stock_logs(
    business_id: int,
    *,
    product_id: int | None = None,
    start=None,
    end=None,
) -> list[StockLogEntry]:
    """Full audit history, newest first. No pagination at this layer."""
    return data_access.list_stock_logs(
        business_id,
        product_id=product_id,
        start=parse_datetime_param(start, field="start"),
        end=parse_datetime_param(end, field="end"),
        newest_first=True,
    )


def _sum_changes_after(business_id: int, product_id: int, as_of: datetime, *, inclusive: bool) -> int:
    q = db.session.query(func.coalesce(func.sum(StockLogEntry.change), 0)).filter(
        StockLogEntry.business_id == business_id,
        StockLogEntry.product_id == product_id,
    )
    if inclusive:
        q = q.filter(StockLogEntry.occurred_at > as_of)
    else:
        q = q.filter(StockLogEntry.occurred_at >= as_of)
    return int(q.scalar() or 0)


def derive_stock_at(
    business_id: int,
    product_id: int,
    as_of,
    *,
    inclusive: bool = True,
    product: Product | None = None,
) -> int:
    """
    Stock level of a product at `as_of`, worked backward from current quantity.

    inclusive=True counts entries stamped exactly at as_of (balance "at" T);
    inclusive=False gives the balance just before T, used for opening stock.
    """
    as_of_dt = parse_datetime_param(as_of, field="as_of")
    if as_of_dt is None:
        raise ValidationError("as_of is required")
    if product is None:
        product = data_access.get_product(business_id, product_id)
    later = _sum_changes_after(business_id, product_id, as_of_dt, inclusive=inclusive)
    return (product.quantity or 0) - later


@dataclass
class LedgerCheck:
    product_id: int
    current_quantity: int
    entries_checked: int = 0
    last_balance: int | None = None
    mismatches: list[dict] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return not self.mismatches

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "current_quantity": self.current_quantity,
            "entries_checked": self.entries_checked,
            "last_balance": self.last_balance,
            "consistent": self.consistent,
            "mismatches": self.mismatches,
        }


def verify_ledger(business_id: int, product_id: int) -> LedgerCheck:
    """
    Replay a product's ledger forward and report broken balances.

    Read-only. A mismatch is either an entry whose balance is not the previous
    balance plus its change, or a final balance that differs from the current
    quantity.
    """
    product = data_access.get_product(business_id, product_id)
    entries = data_access.list_stock_logs(business_id, product_id=product_id, newest_first=False)

    check = LedgerCheck(product_id=product_id, current_quantity=product.quantity)
    previous = None
    for entry in entries:
        # products are created at zero, so the first entry starts from 0
        expected = (previous or 0) + entry.change
        if expected != entry.balance:
            check.mismatches.append({
                "entry_id": entry.id,
                "expected_balance": expected,
                "recorded_balance": entry.balance,
            })
        previous = entry.balance
        check.entries_checked += 1

    check.last_balance = previous
    if (previous or 0) != product.quantity:
        check.mismatches.append({
            "entry_id": None,
            "expected_balance": product.quantity,
            "recorded_balance": previous,
        })
    return check


def verify_business_ledger(business_id: int) -> list[LedgerCheck]:
    products = data_access.list_products(business_id)
    return [verify_ledger(business_id, p.id) for p in products]
