# Overview: Request decorators for API routes; bearer authentication and role gating.

from functools import wraps

from flask import current_app, g, jsonify, request

from .permissions import can_access
from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid session and establish tenant context.

    Sets on flask.g:
    - g.current_user: the authenticated User
    - g.business_id: tenant every query in the request is scoped to
    - g.session_context: the full SessionContext

    Returns 401 for a missing, unknown, expired or revoked token, and for a
    deactivated user or business.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if token is None:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if context is None:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.business_id = context.business_id
        g.session_context = context
        g.auth_token = token
        return f(*args, **kwargs)

    return decorated_function


def require_role(*areas: str):
    """
    Require the current user's role to reach any of the given sections or
    sales capabilities (see permissions.py). Must sit under @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({"error": "Authentication required"}), 401

            if not any(can_access(user.role, area) for area in areas):
                current_app.logger.info(
                    "Permission denied: user=%s role=%s path=%s needs=%s",
                    user.id, user.role, request.path, ",".join(areas),
                )
                return jsonify({
                    "error": "Permission denied",
                    "required": list(areas),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
