# Overview: Flask API routes for business settings and in-app notifications.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..services import notification_service, settings_service


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")
notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@settings_bp.get("")
@require_auth
def get_settings_route():
    return jsonify(settings_service.get_settings(g.business_id)), 200


@settings_bp.put("")
@require_auth
@require_role("admin")
def update_settings_route():
    return jsonify(settings_service.update_settings(g.business_id, request.get_json(silent=True) or {})), 200


@notifications_bp.get("")
@require_auth
def list_notifications_route():
    unread_only = request.args.get("unread", "false").lower() == "true"
    items = notification_service.list_notifications(g.business_id, unread_only=unread_only)
    return jsonify({
        "items": [n.to_dict() for n in items],
        "unread_count": sum(1 for n in items if not n.read),
    }), 200


@notifications_bp.post("")
@require_auth
def create_notification_route():
    data = request.get_json(silent=True) or {}
    notification = notification_service.create_notification(
        g.business_id,
        title=data.get("title"),
        message=data.get("message"),
        type=data.get("type") or "info",
    )
    return jsonify(notification.to_dict()), 201


@notifications_bp.post("/<int:notification_id>/read")
@require_auth
def mark_read_route(notification_id: int):
    return jsonify(notification_service.mark_read(g.business_id, notification_id).to_dict()), 200


@notifications_bp.post("/read-all")
@require_auth
def mark_all_read_route():
    return jsonify({"updated": notification_service.mark_all_read(g.business_id)}), 200
