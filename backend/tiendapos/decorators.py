# Overview: Request and capability decorators for API routes.

from functools import wraps

from flask import current_app, g, jsonify, request

from .extensions import db
from .models import User


def require_actor(f):
    """
    Resolve the acting user from the X-User-Id header.

    Login and session handling live in front of this service; the header
    names an existing, active user. Sets g.current_user.

    Returns 401 when the header is missing, malformed, or names an unknown
    or inactive user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get("X-User-Id", "").strip()
        if not raw.isdigit():
            return jsonify({"error": "Authentication required"}), 401

        user = db.session.get(User, int(raw))
        if user is None or not user.is_active:
            return jsonify({"error": "Unknown or inactive user"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_capability(capability: str):
    """Require a capability string on g.current_user (admins hold all)."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({"error": "Authentication required"}), 401

            if not user.has_capability(capability):
                current_app.logger.warning(
                    "User %s denied %s on %s %s", user.id, capability, request.method, request.path,
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": capability,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
