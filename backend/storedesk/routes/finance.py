# Overview: Flask API routes for expenses (ADMIN only).

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..services import finance_service


finance_bp = Blueprint("finance", __name__, url_prefix="/api/finance")


@finance_bp.get("/expenses")
@require_auth
@require_role("finance")
def list_expenses_route():
    """Query params: start, end (ISO dates, inclusive)."""
    expenses = finance_service.list_expenses(
        g.business_id,
        start=request.args.get("start"),
        end=request.args.get("end"),
    )
    return jsonify({
        "items": [e.to_dict() for e in expenses],
        "count": len(expenses),
        "total_cents": sum(e.amount_cents for e in expenses),
    }), 200


@finance_bp.post("/expenses")
@require_auth
@require_role("finance")
def create_expense_route():
    expense = finance_service.create_expense(g.business_id, request.get_json(silent=True) or {})
    return jsonify(expense.to_dict()), 201


@finance_bp.put("/expenses/<int:expense_id>")
@require_auth
@require_role("finance")
def update_expense_route(expense_id: int):
    expense = finance_service.update_expense(g.business_id, expense_id, request.get_json(silent=True) or {})
    return jsonify(expense.to_dict()), 200


@finance_bp.delete("/expenses/<int:expense_id>")
@require_auth
@require_role("finance")
def delete_expense_route(expense_id: int):
    finance_service.delete_expense(g.business_id, expense_id)
    return jsonify({"ok": True}), 200


@finance_bp.get("/categories")
@require_auth
@require_role("finance")
def list_expense_categories_route():
    categories = finance_service.list_expense_categories(g.business_id)
    return jsonify({"items": [c.to_dict() for c in categories]}), 200


@finance_bp.post("/categories")
@require_auth
@require_role("finance")
def create_expense_category_route():
    data = request.get_json(silent=True) or {}
    category = finance_service.create_expense_category(g.business_id, data.get("name"))
    return jsonify(category.to_dict()), 201


@finance_bp.delete("/categories/<int:category_id>")
@require_auth
@require_role("finance")
def delete_expense_category_route(category_id: int):
    finance_service.delete_expense_category(g.business_id, category_id)
    return jsonify({"ok": True}), 200
