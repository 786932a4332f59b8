# Overview: Flask API routes for customers, employees and suppliers.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..services import people_service


people_bp = Blueprint("people", __name__, url_prefix="/api/people")


def _register_crud(kind: str, *, list_fn, create_fn, update_fn, delete_fn):
    """Wire the four CRUD endpoints for one record kind under /api/people/<kind>."""

    @require_auth
    @require_role("people")
    def list_view():
        rows = list_fn(g.business_id)
        return jsonify({"items": [r.to_dict() for r in rows], "count": len(rows)}), 200

    @require_auth
    @require_role("people")
    def create_view():
        row = create_fn(g.business_id, request.get_json(silent=True) or {})
        return jsonify(row.to_dict()), 201

    @require_auth
    @require_role("people")
    def update_view(entity_id: int):
        row = update_fn(g.business_id, entity_id, request.get_json(silent=True) or {})
        return jsonify(row.to_dict()), 200

    @require_auth
    @require_role("people")
    def delete_view(entity_id: int):
        delete_fn(g.business_id, entity_id)
        return jsonify({"ok": True}), 200

    people_bp.add_url_rule(f"/{kind}", f"list_{kind}", list_view, methods=["GET"])
    people_bp.add_url_rule(f"/{kind}", f"create_{kind}", create_view, methods=["POST"])
    people_bp.add_url_rule(f"/{kind}/<int:entity_id>", f"update_{kind}", update_view, methods=["PUT"])
    people_bp.add_url_rule(f"/{kind}/<int:entity_id>", f"delete_{kind}", delete_view, methods=["DELETE"])


_register_crud(
    "customers",
    list_fn=people_service.list_customers,
    create_fn=people_service.create_customer,
    update_fn=people_service.update_customer,
    delete_fn=people_service.delete_customer,
)
_register_crud(
    "employees",
    list_fn=people_service.list_employees,
    create_fn=people_service.create_employee,
    update_fn=people_service.update_employee,
    delete_fn=people_service.delete_employee,
)
_register_crud(
    "suppliers",
    list_fn=people_service.list_suppliers,
    create_fn=people_service.create_supplier,
    update_fn=people_service.update_supplier,
    delete_fn=people_service.delete_supplier,
)
