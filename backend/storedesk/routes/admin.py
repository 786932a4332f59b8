# Overview: Flask API routes for staff account administration (ADMIN only).

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..services import auth_service


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/users")
@require_auth
@require_role("admin")
def list_users_route():
    users = auth_service.list_users(g.business_id)
    return jsonify({"items": [u.to_dict() for u in users], "count": len(users)}), 200


@admin_bp.post("/users")
@require_auth
@require_role("admin")
def create_user_route():
    """Body: {"username", "email", "password", "role"}"""
    data = request.get_json(silent=True) or {}
    user = auth_service.create_user(
        g.business_id,
        username=data.get("username"),
        email=data.get("email"),
        password=data.get("password"),
        role=data.get("role") or "SALES",
    )
    return jsonify(user.to_dict()), 201


@admin_bp.put("/users/<int:user_id>")
@require_auth
@require_role("admin")
def update_user_route(user_id: int):
    user = auth_service.update_user(
        g.business_id,
        user_id,
        request.get_json(silent=True) or {},
        actor_user_id=g.current_user.id,
    )
    return jsonify(user.to_dict()), 200


@admin_bp.delete("/users/<int:user_id>")
@require_auth
@require_role("admin")
def delete_user_route(user_id: int):
    auth_service.delete_user(g.business_id, user_id, actor_user_id=g.current_user.id)
    return jsonify({"ok": True}), 200
