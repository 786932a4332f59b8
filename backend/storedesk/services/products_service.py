# Overview: Catalog operations; products and their category labels, tenant-scoped.

"""
Products Service

MULTI-TENANT: every function takes business_id and only sees that business's
rows.

Quantity is not a writable product field after creation. Creating a product
with an initial quantity records it as an opening `restock` ledger entry;
later changes go through ledger_service.adjust_stock or order completion.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import ConflictError, ValidationError
from ..models import Category, Product, Supplier
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_product,
    normalize,
    validate_payload,
)
from . import data_access, ledger_service
from .concurrency import run_with_retry

DEFAULT_CATEGORY = "General"

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "description",
        "quantity",
        "buy_price_cents",
        "sell_price_cents",
        "category",
        "supplier_id",
    },
    required_on_create={"name", "sell_price_cents"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_CREATE_POLICY.writable_fields - {"quantity"},
)


def list_products(
    business_id: int,
    *,
    category: str | None = None,
    supplier_id: int | None = None,
    search: str | None = None,
) -> list[Product]:
    return data_access.list_products(business_id, category=category, supplier_id=supplier_id, search=search)


def get_product(business_id: int, product_id: int) -> Product:
    return data_access.get_product(business_id, product_id)


def _check_supplier(business_id: int, supplier_id: int | None) -> None:
    if supplier_id is not None:
        data_access.get_scoped(Supplier, business_id, supplier_id, label="Supplier")


def ensure_category(business_id: int, name: str | None) -> str:
    """
    Return the stored spelling of a category label, creating it if new.

    Matching is by normalized name, so "  cold drinks" reuses "Cold Drinks".
    No commit.
    """
    label = " ".join((name or "").split()) or DEFAULT_CATEGORY
    key = normalize(label)
    for existing in db.session.query(Category).filter(Category.business_id == business_id).all():
        if normalize(existing.name) == key:
            return existing.name
    db.session.add(Category(business_id=business_id, name=label))
    db.session.flush()
    return label


def create_product(business_id: int, payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
    enforce_rules_product(patch)
    opening_quantity = patch.pop("quantity", None) or 0

    def _op():
        _check_supplier(business_id, patch.get("supplier_id"))
        product = Product(business_id=business_id, quantity=0)
        for key, value in patch.items():
            setattr(product, key, value)
        product.category = ensure_category(business_id, patch.get("category"))
        data_access.save_product(product)

        if opening_quantity > 0:
            ledger_service.append_stock_log(product, opening_quantity, "restock", note="Opening stock")

        db.session.commit()
        current_app.logger.info("Product created: business=%s product=%s name=%r", business_id, product.id, product.name)
        return product

    return run_with_retry(_op)


def update_product(business_id: int, product_id: int, payload: dict) -> Product:
    if isinstance(payload, dict) and "quantity" in payload:
        raise ValidationError("quantity cannot be edited directly; use a stock adjustment")
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
    enforce_rules_product(patch)

    def _op():
        product = data_access.get_product(business_id, product_id, lock=True)
        if "supplier_id" in patch:
            _check_supplier(business_id, patch["supplier_id"])
        for key, value in patch.items():
            setattr(product, key, value)
        if "category" in patch:
            product.category = ensure_category(business_id, patch["category"])
        data_access.save_product(product)
        db.session.commit()
        return product

    return run_with_retry(_op)


def delete_product(business_id: int, product_id: int) -> None:
    """
    Remove a product. Its ledger history stays; Pending tickets that still
    reference it complete without a stock update for that line.
    """
    def _op():
        product = data_access.get_product(business_id, product_id, lock=True)
        data_access.delete_product(product)
        db.session.commit()
        current_app.logger.info("Product deleted: business=%s product=%s", business_id, product_id)

    run_with_retry(_op)


def list_categories(business_id: int) -> list[Category]:
    return (
        db.session.query(Category)
        .filter(Category.business_id == business_id)
        .order_by(Category.name.asc())
        .all()
    )


def create_category(business_id: int, name: str) -> Category:
    label = " ".join((name or "").split())
    if not label:
        raise ValidationError("name is required")
    if len(label) > 128:
        raise ValidationError("name exceeds max length 128")

    def _op():
        key = normalize(label)
        if any(normalize(c.name) == key for c in list_categories(business_id)):
            raise ConflictError("Category already exists", details={"name": label})
        category = Category(business_id=business_id, name=label)
        db.session.add(category)
        db.session.commit()
        return category

    return run_with_retry(_op)


def delete_category(business_id: int, category_id: int) -> None:
    """Products keep their label; only the picklist entry goes away."""
    def _op():
        category = data_access.get_scoped(Category, business_id, category_id, label="Category")
        db.session.delete(category)
        db.session.commit()

    run_with_retry(_op)
