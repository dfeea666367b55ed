# backend/stockdesk/routes/auth.py
"""
Authentication API routes

- Self-registration creates CLIENT_ROLE accounts only
- Login accepts username or email
- Session management with bearer tokens (see session_service.py)
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..models import User, CLIENT_ROLE
from ..services import auth_service
from ..services import session_service
from ..services.auth_service import PasswordValidationError
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_user, ValidationError
from ..decorators import require_auth


REGISTER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "surname", "username", "email", "phone"},
    required_on_create={"name", "surname", "username", "email"},
)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Create a CLIENT_ROLE account.

    Body: name, surname, username, email, password, phone (optional).
    Role is never taken from the payload.
    """
    data = request.get_json(silent=True) or {}
    password = data.pop("password", None) if isinstance(data, dict) else None

    try:
        patch = validate_payload(model=User, payload=data, policy=REGISTER_POLICY, partial=False)
        enforce_rules_user(patch)
        if not password:
            raise ValidationError("password is required")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        user = auth_service.create_user(password=password, role=CLIENT_ROLE, **patch)
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ValueError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("User %s registered", user.id)
    return jsonify({"user": user.to_dict()}), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        identifier = data.get("username") or data.get("email") or data.get("identifier")
        password = data.get("password")

        if not all([identifier, password]):
            return jsonify({"error": "username/email and password required"}), 400

        user = auth_service.authenticate(identifier, password)

        if not user:
            current_app.logger.warning("Failed login for %s from %s", identifier, request.remote_addr)
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the token used for this request."""
    try:
        session_service.revoke_session(g.auth_token)
        return jsonify({"message": "Logout successful"}), 200
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200
