# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a live operator session.

    Sets on Flask g:
    - g.admin_session: the AdminSession record
    - g.username: the operator name

    Returns 401 if the Authorization header is missing or the token is
    unknown, expired, idle too long or revoked.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if token is None:
            return jsonify({"error": "Authentication required"}), 401

        session = session_service.validate_session(token)
        if session is None:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.admin_session = session
        g.username = session.username

        return f(*args, **kwargs)

    return decorated_function
