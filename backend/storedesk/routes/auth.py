# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

Signup registers a new business with its first ADMIN user and logs them in.
Login returns a bearer token; send it as `Authorization: Bearer <token>`.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import AuthError
from ..permissions import allowed_capabilities, allowed_sections
from ..services import auth_service, session_service, settings_service
from storedesk.time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, session, token: str) -> dict:
    return {
        "token": token,
        "expires_at": to_utc_z(session.expires_at),
        "user": user.to_dict(),
        "business": user.business.to_dict(),
        "sections": allowed_sections(user.role),
        "capabilities": allowed_capabilities(user.role),
    }


@auth_bp.post("/signup")
def signup_route():
    data = request.get_json(silent=True) or {}
    business, user = auth_service.signup(
        business_name=data.get("business_name"),
        username=data.get("username"),
        email=data.get("email"),
        password=data.get("password"),
    )
    session, token = session_service.create_session(user)
    current_app.logger.info("Signup: business=%s user=%s", business.id, user.id)
    return jsonify(_session_payload(user, session, token)), 201


@auth_bp.post("/login")
def login_route():
    data = request.get_json(silent=True) or {}
    email = data.get("email") or data.get("username")
    password = data.get("password")
    if not email or not password:
        return jsonify({"error": "email and password required"}), 400

    user = auth_service.authenticate(email, password)
    if user is None:
        raise AuthError("Invalid credentials")

    session, token = session_service.create_session(user)
    return jsonify(_session_payload(user, session, token)), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.auth_token)
    return jsonify({"ok": True}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "business": user.business.to_dict(),
        "settings": settings_service.get_settings(g.business_id),
        "sections": allowed_sections(user.role),
        "capabilities": allowed_capabilities(user.role),
    }), 200
