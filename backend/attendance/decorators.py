# Overview: Request decorators for API routes (authentication and admin role).

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


def require_auth(f):
    """
    Require a valid session token.

    Sets g.current_employee (the authenticated Employee) and g.token.
    Returns 401 if the header is missing or the token is invalid/expired.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        employee = session_service.validate_session(token)
        if not employee:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_employee = employee
        g.token = token
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """
    Require the admin role. Must be stacked under @require_auth.

    The override service re-checks the role; this rejects early with 403.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        employee = getattr(g, "current_employee", None)
        if employee is None:
            return jsonify({"error": "Authentication required"}), 401
        if not employee.is_admin:
            return jsonify({"error": "Admin role required"}), 403
        return f(*args, **kwargs)

    return decorated_function
