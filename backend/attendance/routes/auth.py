# Overview: Flask API routes for login/logout; issues and revokes session tokens.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..services import auth_service, session_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate by email/password and return a bearer token.

    Expects: {"email": "...", "password": "..."}
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not email or not password:
            return jsonify({"error": "email and password required"}), 400

        employee = auth_service.authenticate(email, password)
        if not employee:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            employee_id=employee.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "employee": employee.to_dict(),
            "token": token,
            "session": session.to_dict(),
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login employee")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the caller's session token."""
    session_service.revoke_session(g.token)
    return jsonify({"message": "Logged out"})


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"employee": g.current_employee.to_dict()})
