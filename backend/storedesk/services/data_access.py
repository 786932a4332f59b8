# Overview: Tenant-scoped persistence contract used by the workflow and reporting services.

"""
Data access layer.

Every function takes business_id first and filters by it; a row owned by a
different business is indistinguishable from a missing row (NotFoundError),
so existence in another tenant is never revealed.

Write helpers add + flush only. The calling service owns the transaction and
commits (or rolls back) the whole unit of work.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..errors import NotFoundError
from ..models import Expense, Product, Sale, StockLogEntry
from .concurrency import lock_for_update


def get_scoped(model, business_id: int, entity_id: int, *, label: str | None = None, lock: bool = False):
    """Fetch one tenant-owned row or raise NotFoundError."""
    query = db.session.query(model).filter_by(id=entity_id, business_id=business_id)
    if lock:
        query = lock_for_update(query)
    row = query.first()
    if row is None:
        raise NotFoundError(f"{label or model.__name__} not found", details={"id": entity_id})
    return row


def find_product(business_id: int, product_id: int, *, lock: bool = False) -> Product | None:
    query = db.session.query(Product).filter_by(id=product_id, business_id=business_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_product(business_id: int, product_id: int, *, lock: bool = False) -> Product:
    return get_scoped(Product, business_id, product_id, label="Product", lock=lock)


def list_products(
    business_id: int,
    *,
    category: str | None = None,
    supplier_id: int | None = None,
    search: str | None = None,
) -> list[Product]:
    query = db.session.query(Product).filter(Product.business_id == business_id)
    if category:
        query = query.filter(Product.category == category)
    if supplier_id is not None:
        query = query.filter(Product.supplier_id == supplier_id)
    if search:
        query = query.filter(Product.name.ilike(f"%{search.strip()}%"))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def save_product(product: Product) -> Product:
    db.session.add(product)
    db.session.flush()
    return product


def delete_product(product: Product) -> None:
    db.session.delete(product)
    db.session.flush()


def append_stock_log(entry: StockLogEntry) -> StockLogEntry:
    """Append-only; entries are never updated or deleted."""
    db.session.add(entry)
    db.session.flush()
    return entry


def list_stock_logs(
    business_id: int,
    *,
    product_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    newest_first: bool = True,
) -> list[StockLogEntry]:
    query = db.session.query(StockLogEntry).filter(StockLogEntry.business_id == business_id)
    if product_id is not None:
        query = query.filter(StockLogEntry.product_id == product_id)
    if start is not None:
        query = query.filter(StockLogEntry.occurred_at >= start)
    if end is not None:
        query = query.filter(StockLogEntry.occurred_at <= end)

    if newest_first:
        query = query.order_by(StockLogEntry.occurred_at.desc(), StockLogEntry.id.desc())
    else:
        query = query.order_by(StockLogEntry.occurred_at.asc(), StockLogEntry.id.asc())
    return query.all()


def create_sale(sale: Sale) -> Sale:
    db.session.add(sale)
    db.session.flush()
    return sale


def get_sale(business_id: int, sale_id: int, *, lock: bool = False) -> Sale:
    return get_scoped(Sale, business_id, sale_id, label="Sale", lock=lock)


def update_sale(sale: Sale) -> Sale:
    db.session.add(sale)
    db.session.flush()
    return sale


def list_sales(
    business_id: int,
    status: str | None = None,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    start_exclusive: bool = False,
    newest_first: bool = True,
) -> list[Sale]:
    """
    Sales for a business, optionally filtered by status and created_at range.

    Range is inclusive on both ends unless start_exclusive is set, which turns
    the lower bound into created_at > start.
    """
    query = db.session.query(Sale).filter(Sale.business_id == business_id)
    if status is not None:
        query = query.filter(Sale.status == status)
    if start is not None:
        if start_exclusive:
            query = query.filter(Sale.created_at > start)
        else:
            query = query.filter(Sale.created_at >= start)
    if end is not None:
        query = query.filter(Sale.created_at <= end)

    if newest_first:
        query = query.order_by(Sale.created_at.desc(), Sale.id.desc())
    else:
        query = query.order_by(Sale.created_at.asc(), Sale.id.asc())
    return query.all()


def list_expenses(business_id: int, *, start=None, end=None) -> list[Expense]:
    query = db.session.query(Expense).filter(Expense.business_id == business_id)
    if start is not None:
        query = query.filter(Expense.occurred_on >= start)
    if end is not None:
        query = query.filter(Expense.occurred_on <= end)
    return query.order_by(Expense.occurred_on.desc(), Expense.id.desc()).all()


def find_sale_by_ticket(business_id: int, ticket_id: str) -> Sale | None:
    """Case-insensitive ticket lookup (receipt search)."""
    needle = (ticket_id or "").strip().upper()
    if not needle:
        return None
    return (
        db.session.query(Sale)
        .filter(Sale.business_id == business_id, func.upper(Sale.ticket_id) == needle)
        .first()
    )
