# Overview: Operating expenses and their category picklist.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import ConflictError, ValidationError
from ..models import Expense, ExpenseCategory
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_expense,
    normalize,
    parse_date_param,
    validate_payload,
)
from storedesk.time_utils import utcnow
from . import data_access
from .concurrency import run_with_retry

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "amount_cents", "occurred_on", "category"},
    required_on_create={"name", "amount_cents"},
)


def list_expenses(business_id: int, *, start=None, end=None) -> list[Expense]:
    return data_access.list_expenses(
        business_id,
        start=parse_date_param(start, field="start"),
        end=parse_date_param(end, field="end"),
    )


def create_expense(business_id: int, payload: dict) -> Expense:
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
    enforce_rules_expense(patch)
    patch.setdefault("occurred_on", utcnow().date())
    if not patch.get("category"):
        patch["category"] = "General"

    def _op():
        expense = Expense(business_id=business_id, **patch)
        db.session.add(expense)
        db.session.commit()
        current_app.logger.info("Expense recorded: business=%s amount_cents=%d", business_id, expense.amount_cents)
        return expense

    return run_with_retry(_op)


def update_expense(business_id: int, expense_id: int, payload: dict) -> Expense:
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=True)
    enforce_rules_expense(patch)

    def _op():
        expense = data_access.get_scoped(Expense, business_id, expense_id, label="Expense")
        for key, value in patch.items():
            setattr(expense, key, value)
        db.session.commit()
        return expense

    return run_with_retry(_op)


def delete_expense(business_id: int, expense_id: int) -> None:
    def _op():
        db.session.delete(data_access.get_scoped(Expense, business_id, expense_id, label="Expense"))
        db.session.commit()

    run_with_retry(_op)


def list_expense_categories(business_id: int) -> list[ExpenseCategory]:
    return (
        db.session.query(ExpenseCategory)
        .filter(ExpenseCategory.business_id == business_id)
        .order_by(ExpenseCategory.name.asc())
        .all()
    )


def create_expense_category(business_id: int, name: str) -> ExpenseCategory:
    label = " ".join((name or "").split())
    if not label:
        raise ValidationError("name is required")

    def _op():
        key = normalize(label)
        if any(normalize(c.name) == key for c in list_expense_categories(business_id)):
            raise ConflictError("Expense category already exists", details={"name": label})
        category = ExpenseCategory(business_id=business_id, name=label)
        db.session.add(category)
        db.session.commit()
        return category

    return run_with_retry(_op)


def delete_expense_category(business_id: int, category_id: int) -> None:
    def _op():
        db.session.delete(data_access.get_scoped(ExpenseCategory, business_id, category_id, label="Expense category"))
        db.session.commit()

    run_with_retry(_op)
