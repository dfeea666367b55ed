# backend/stockdesk/routes/users.py
"""User account routes: profile, password, role and deactivation."""

from flask import Blueprint, request, jsonify, g, current_app

from ..models import User, ADMIN_ROLE
from ..services import user_service
from ..services.auth_service import PasswordValidationError
from ..services.user_service import UserForbiddenError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_user,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth, require_role

USER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "surname", "username", "email", "phone"},
)

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_role(ADMIN_ROLE)
def list_users_route():
    include_inactive = request.args.get("include_inactive", "").lower() == "true"
    users = user_service.list_users(include_inactive=include_inactive)
    return jsonify({"items": users, "count": len(users)}), 200


@users_bp.get("/<int:user_id>")
@require_auth
def get_user_route(user_id: int):
    try:
        return jsonify({"user": user_service.get_user(user_id, g.current_user)}), 200
    except UserForbiddenError as e:
        return jsonify({"error": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@users_bp.put("/<int:user_id>")
@require_auth
def update_user_route(user_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=User, payload=payload, policy=USER_POLICY, partial=True)
        enforce_rules_user(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        user = user_service.update_user(user_id, g.current_user, patch)
    except UserForbiddenError as e:
        return jsonify({"error": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409

    return jsonify({"user": user}), 200


@users_bp.patch("/<int:user_id>/password")
@require_auth
def change_password_route(user_id: int):
    """
    Body: {"new_password": ..., "current_password": ...}

    current_password is required when changing your own password.
    """
    data = request.get_json(silent=True) or {}
    new_password = data.get("new_password")
    if not new_password:
        return jsonify({"error": "new_password required"}), 400

    try:
        user_service.change_password(
            user_id,
            g.current_user,
            new_password,
            current_password=data.get("current_password"),
        )
    except UserForbiddenError as e:
        return jsonify({"error": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (ValidationError, PasswordValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to change password")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "Password changed"}), 200


@users_bp.patch("/<int:user_id>/role")
@require_auth
@require_role(ADMIN_ROLE)
def change_role_route(user_id: int):
    data = request.get_json(silent=True) or {}
    try:
        user = user_service.change_role(user_id, data.get("role"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    current_app.logger.info("User %s role set to %s by %s", user_id, user["role"], g.current_user.id)
    return jsonify({"user": user}), 200


@users_bp.delete("/<int:user_id>")
@require_auth
@require_role(ADMIN_ROLE)
def deactivate_user_route(user_id: int):
    try:
        user = user_service.deactivate_user(user_id, g.current_user)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409

    current_app.logger.info("User %s deactivated by %s", user_id, g.current_user.id)
    return jsonify({"user": user}), 200


@users_bp.delete("/me")
@require_auth
def delete_own_account_route():
    """Body: {"password": ...}"""
    data = request.get_json(silent=True) or {}
    try:
        user_service.delete_own_account(g.current_user, data.get("password"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    current_app.logger.info("User %s deleted their account", g.current_user.id)
    return jsonify({"message": "Account deactivated"}), 200
