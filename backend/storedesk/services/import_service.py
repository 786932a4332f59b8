# Overview: CSV catalog import; header aliasing, row validation and duplicate detection before bulk insert.

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from typing import Any, Iterable

from flask import current_app

from ..extensions import db
from ..errors import ValidationError
from ..models import Product, Supplier
from ..validation import normalize, parse_money_to_cents, parse_quantity
from . import data_access, ledger_service
from .concurrency import run_with_retry
from .products_service import DEFAULT_CATEGORY, ensure_category

__all__ = [
    "HEADER_ALIASES",
    "ImportPlan",
    "ImportResult",
    "ImportRow",
    "import_products",
    "normalize",
    "parse_csv",
    "plan_import",
    "resolve_columns",
    "template_csv",
]


# Canonical field -> accepted header spellings (compared after normalize()
# with "_" and "-" treated as spaces).
HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("name", "product", "product name", "productname", "item", "item name"),
    "description": ("description", "desc", "details"),
    "quantity": ("quantity", "qty", "stock", "on hand", "onhand"),
    "buy_price": ("buyprice", "buy price", "cost", "cost price", "costprice", "purchase price"),
    "sell_price": ("sellprice", "sell price", "price", "selling price", "sale price", "retail price"),
    "category": ("category", "cat", "group"),
    "supplier": ("supplier", "supplierid", "supplier id"),
}

TEMPLATE_HEADERS = ("Name", "Description", "Quantity", "BuyPrice", "SellPrice", "Category", "SupplierId")

_ALIAS_LOOKUP = {alias: canonical for canonical, aliases in HEADER_ALIASES.items() for alias in aliases}


def _header_key(header: Any) -> str:
    return normalize(str(header or "").replace("_", " ").replace("-", " ").lstrip("\ufeff"))


def canonical_field(header: Any) -> str | None:
    return _ALIAS_LOOKUP.get(_header_key(header))


def resolve_columns(headers: Iterable[Any]) -> dict[str, int]:
    """
    Map canonical field -> column index. First matching column wins;
    unrecognized headers are ignored.
    """
    columns: dict[str, int] = {}
    for index, header in enumerate(headers):
        field_name = canonical_field(header)
        if field_name and field_name not in columns:
            columns[field_name] = index
    if "name" not in columns:
        raise ValidationError("CSV is missing a name column", details={"headers": list(headers)})
    return columns


def parse_csv(text: str) -> list[dict]:
    """
    Parse CSV text into dicts keyed by canonical field. Each dict also carries
    `_line`, the 1-based line number in the source, for error reporting.
    """
    if text is None:
        raise ValidationError("CSV content is required")
    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")))

    headers = None
    for headers in reader:
        if any(cell.strip() for cell in headers):
            break
    else:
        raise ValidationError("CSV has no header row")

    columns = resolve_columns(headers)
    rows = []
    for cells in reader:
        if not any(cell.strip() for cell in cells):
            continue
        row = {"_line": reader.line_num}
        for field_name, index in columns.items():
            row[field_name] = cells[index] if index < len(cells) else ""
        rows.append(row)
    return rows


def template_csv() -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(TEMPLATE_HEADERS)
    writer.writerow(("Sample Product", "A great item", 100, "5.00", "10.00", DEFAULT_CATEGORY, ""))
    return buf.getvalue()


@dataclass
class ImportRow:
    line: int
    name: str
    description: str | None
    quantity: int
    buy_price_cents: int
    sell_price_cents: int
    category: str
    supplier_id: int | None = None

    @property
    def key(self) -> tuple[str, str]:
        return normalize(self.name), normalize(self.category)

    def to_dict(self) -> dict:
        return {
            "line": self.line,
            "name": self.name,
            "description": self.description,
            "quantity": self.quantity,
            "buy_price_cents": self.buy_price_cents,
            "sell_price_cents": self.sell_price_cents,
            "category": self.category,
            "supplier_id": self.supplier_id,
        }


@dataclass
class ImportPlan:
    staged: list[ImportRow] = field(default_factory=list)
    duplicates: list[dict] = field(default_factory=list)
    invalid: list[dict] = field(default_factory=list)
    warnings: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "staged": [r.to_dict() for r in self.staged],
            "duplicates": self.duplicates,
            "invalid": self.invalid,
            "warnings": self.warnings,
        }


@dataclass
class ImportResult:
    imported: int
    duplicates_skipped: int
    invalid: list[dict]
    committed: bool
    plan: ImportPlan
    products: list[Product] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "imported": self.imported,
            "duplicates_skipped": self.duplicates_skipped,
            "invalid": self.invalid,
            "committed": self.committed,
            "preview": self.plan.to_dict(),
            "products": [p.to_dict() for p in self.products],
        }


def _canonicalize(raw: dict, index: int) -> dict:
    if "_line" in raw:
        return raw
    row = {"_line": index + 1}
    for key, value in raw.items():
        field_name = canonical_field(key)
        if field_name and field_name not in row:
            row[field_name] = value
    return row


def _cents(raw: Any, field_name: str) -> int:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return 0
    return parse_money_to_cents(raw, field=field_name)


def _supplier_lookup(business_id: int) -> dict[str, int]:
    lookup: dict[str, int] = {}
    for supplier in db.session.query(Supplier).filter(Supplier.business_id == business_id).all():
        lookup[str(supplier.id)] = supplier.id
        lookup.setdefault(normalize(supplier.name), supplier.id)
    return lookup


def _build_row(raw: dict) -> ImportRow:
    name = " ".join(str(raw.get("name") or "").split())
    if not name:
        raise ValidationError("name is required")
    description = str(raw.get("description") or "").strip() or None
    category = " ".join(str(raw.get("category") or "").split()) or DEFAULT_CATEGORY
    return ImportRow(
        line=raw["_line"],
        name=name,
        description=description,
        quantity=parse_quantity(raw.get("quantity")),
        buy_price_cents=_cents(raw.get("buy_price"), "buy_price"),
        sell_price_cents=_cents(raw.get("sell_price"), "sell_price"),
        category=category,
    )


def plan_import(business_id: int, rows: Iterable[dict]) -> ImportPlan:
    """
    Stage incoming rows without writing anything.

    A row is a duplicate when an existing product, or a row staged earlier in
    the same batch, has the same normalized (name, category). Invalid rows
    (missing name, bad or negative numbers) are reported with a reason.
    """
    plan = ImportPlan()
    seen = {(normalize(p.name), normalize(p.category)) for p in data_access.list_products(business_id)}
    suppliers = _supplier_lookup(business_id)

    for index, raw in enumerate(rows):
        if not isinstance(raw, dict):
            plan.invalid.append({"line": index + 1, "reason": "row must be an object"})
            continue
        raw = _canonicalize(raw, index)
        try:
            row = _build_row(raw)
        except ValidationError as exc:
            plan.invalid.append({"line": raw["_line"], "name": raw.get("name"), "reason": str(exc)})
            continue

        supplier_raw = str(raw.get("supplier") or "").strip()
        if supplier_raw:
            row.supplier_id = suppliers.get(supplier_raw) or suppliers.get(normalize(supplier_raw))
            if row.supplier_id is None:
                plan.warnings.append({
                    "line": row.line,
                    "name": row.name,
                    "reason": f"unknown supplier {supplier_raw!r}; imported without supplier",
                })

        if row.key in seen:
            plan.duplicates.append({"line": row.line, "name": row.name, "category": row.category})
            continue
        seen.add(row.key)
        plan.staged.append(row)

    return plan


def import_products(business_id: int, source, *, confirm: bool = False) -> ImportResult:
    """
    Import catalog rows from CSV text or a list of row dicts.

    Without confirm this is a preview and nothing is written. With confirm
    every staged row is inserted in one transaction; rows with an opening
    quantity get a `restock` ledger entry. Re-running the same file after a
    commit imports nothing (every row is then a duplicate).
    """
    rows = parse_csv(source) if isinstance(source, str) else list(source or [])

    if not confirm:
        plan = plan_import(business_id, rows)
        return ImportResult(
            imported=0,
            duplicates_skipped=len(plan.duplicates),
            invalid=plan.invalid,
            committed=False,
            plan=plan,
        )

    def _op():
        plan = plan_import(business_id, rows)
        products = []
        for row in plan.staged:
            product = Product(
                business_id=business_id,
                name=row.name,
                description=row.description,
                quantity=0,
                buy_price_cents=row.buy_price_cents,
                sell_price_cents=row.sell_price_cents,
                category=ensure_category(business_id, row.category),
                supplier_id=row.supplier_id,
            )
            data_access.save_product(product)
            if row.quantity > 0:
                ledger_service.append_stock_log(product, row.quantity, "restock", note="Opening stock (import)")
            products.append(product)
        db.session.commit()
        return plan, products

    plan, products = run_with_retry(_op)
    current_app.logger.info(
        "Catalog import committed: business=%s imported=%d duplicates=%d invalid=%d",
        business_id, len(products), len(plan.duplicates), len(plan.invalid),
    )
    return ImportResult(
        imported=len(products),
        duplicates_skipped=len(plan.duplicates),
        invalid=plan.invalid,
        committed=bool(products),
        plan=plan,
        products=products,
    )
