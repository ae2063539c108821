# Overview: Flask API routes for unlocking and locking the counting app.

# backend/stockcount/routes/auth.py
"""
Unlock-code authentication routes.

The client unlocks with username + code, keeps the bearer token for the
rest of the shift, and locks (revokes the token) when done.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/unlock")
def unlock_route():
    """
    Request body:
    {
        "username": str,
        "unlock_code": str
    }

    Returns:
        200: {"token": str, "user": {...}}
        400: Missing fields
        401: Wrong username or code
    """
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    unlock_code = data.get("unlock_code")

    if not username or not unlock_code:
        return jsonify({"error": "username and unlock_code required"}), 400

    try:
        user = auth_service.authenticate(str(username), str(unlock_code))
        if not user:
            db.session.rollback()
            current_app.logger.warning("Failed unlock attempt for %r from %s", username, request.remote_addr)
            return jsonify({"error": "Invalid credentials"}), 401

        _, token = session_service.create_session(user.id)
        db.session.commit()

        return jsonify({"token": token, "user": user.to_dict()}), 200

    except Exception:
        db.session.rollback()
        current_app.logger.exception("Unlock failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/lock")
@require_auth
def lock_route():
    """Revoke the current token."""
    try:
        session_service.revoke_session(g.token)
        db.session.commit()
        return jsonify({"success": True}), 200
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Lock failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200
