# Overview: Request decorators for API routes.

from functools import wraps
from flask import current_app, g, jsonify, request

from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid unlock session and establish the tenant context.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.user_id: Its id; every count and history operation is scoped by it
    - g.token: The bearer token of the request

    Returns 401 if the header is missing, or the token is invalid, expired,
    revoked, or belongs to a deactivated user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        user = session_service.validate_session(token)
        if not user:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        g.user_id = user.id
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_catalog_owner(f):
    """Only the configured master catalog owner may change the catalog."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not hasattr(g, "current_user"):
            return jsonify({"error": "Authentication required"}), 401
        if g.user_id != int(current_app.config["CATALOG_OWNER_USER_ID"]):
            current_app.logger.warning(
                "User %s denied catalog owner action %s %s", g.user_id, request.method, request.path
            )
            return jsonify({"error": "Catalog owner access required"}), 403
        return f(*args, **kwargs)
    return decorated_function
