# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_auth(f):
    """
    Require a valid bearer token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.auth_token: The plaintext token of this request (used by logout)

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1].strip()

        user = session_service.validate_session(token)

        if not user:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        g.auth_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require the authenticated user to hold one of the given roles.

    Must be stacked below @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            user = g.current_user
            if user.role not in roles:
                current_app.logger.warning(
                    "Role check failed: user %s (%s) on %s %s",
                    user.id, user.role, request.method, request.path,
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
