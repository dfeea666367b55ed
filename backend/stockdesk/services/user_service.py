# Overview: Service-layer operations for user accounts.

"""
User Management Service

Profile changes, password changes, role changes and account removal.
Users are never hard-deleted: invoices keep an owner_id that must keep
resolving, so removal deactivates the account and revokes its sessions.
"""

from __future__ import annotations

from ..extensions import db
from ..models import ADMIN_ROLE, ROLES, User
from ..validation import ConflictError, NotFoundError, ValidationError
from . import auth_service, session_service

USER_MUTABLE_FIELDS = {"name", "surname", "username", "email", "phone"}


class UserForbiddenError(Exception):
    """Caller may not act on the target account."""


def _require_user(user_id: int) -> User:
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def _require_self_or_admin(target_id: int, caller: User) -> None:
    if caller.id != target_id and caller.role != ADMIN_ROLE:
        raise UserForbiddenError("Not allowed to access another user's account")


def list_users(include_inactive: bool = False) -> list[dict]:
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return [u.to_dict() for u in query.order_by(User.id.asc()).all()]


def get_user(user_id: int, caller: User) -> dict:
    _require_self_or_admin(user_id, caller)
    return _require_user(user_id).to_dict()


def update_user(user_id: int, caller: User, patch: dict) -> dict:
    """
    Update profile fields.

    Raises:
        ConflictError: If the new username or email belongs to another user
    """
    _require_self_or_admin(user_id, caller)
    user = _require_user(user_id)

    for field in ("username", "email"):
        if field in patch and patch[field] != getattr(user, field):
            taken = (
                db.session.query(User)
                .filter(getattr(User, field) == patch[field], User.id != user.id)
                .first()
            )
            if taken:
                raise ConflictError(f"{field} already exists")

    for k, v in patch.items():
        if k in USER_MUTABLE_FIELDS:
            setattr(user, k, v)

    db.session.commit()
    return user.to_dict()


def change_password(
    user_id: int,
    caller: User,
    new_password: str,
    current_password: str | None = None,
    *,
    rounds: int = 12,
) -> None:
    """
    Replace a user's password.

    Users changing their own password must supply the current one; admins
    resetting another account may skip it. Every session of the target
    account is revoked, so the user has to log in again.
    """
    _require_self_or_admin(user_id, caller)
    user = _require_user(user_id)

    if caller.id == user.id and not auth_service.verify_password(current_password or "", user.password_hash):
        raise ValidationError("Current password is incorrect")

    user.password_hash = auth_service.hash_password(new_password, rounds=rounds)
    session_service.revoke_all_user_sessions(user.id)
    db.session.commit()


def change_role(user_id: int, role: str) -> dict:
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")
    user = _require_user(user_id)
    user.role = role
    db.session.commit()
    return user.to_dict()


def deactivate_user(user_id: int, caller: User) -> dict:
    _require_self_or_admin(user_id, caller)
    user = _require_user(user_id)
    if not user.is_active:
        raise ConflictError("User is already inactive")

    user.is_active = False
    session_service.revoke_all_user_sessions(user.id)
    db.session.commit()
    return user.to_dict()


def delete_own_account(caller: User, password: str) -> None:
    """Deactivate the caller's own account after confirming the password."""
    if not auth_service.verify_password(password or "", caller.password_hash):
        raise ValidationError("Password is incorrect")
    deactivate_user(caller.id, caller)
