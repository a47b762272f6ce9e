# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g


def require_user(f):
    """
    Establish the acting user for a request.

    Authentication happens upstream; the auth layer forwards the user id in
    the X-User-Id header. Sets g.user_id. Returns 401 when the header is
    missing or not an integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get("X-User-Id", "").strip()
        if not raw:
            return jsonify({"error": "Authentication required"}), 401
        try:
            g.user_id = int(raw)
        except ValueError:
            return jsonify({"error": "Invalid X-User-Id header"}), 401
        return f(*args, **kwargs)

    return decorated_function


def current_user_id() -> int | None:
    return getattr(g, "user_id", None)
