# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every invoice and cart action must be attributable to a user. Uses
bcrypt for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper, lower, digit and special char required
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt

from ..extensions import db
from ..models import User, CLIENT_ROLE, ROLES
from ..time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str, *, rounds: int = 12) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against bcrypt hash (timing-safe)."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def create_user(
    *,
    name: str,
    surname: str,
    username: str,
    email: str,
    password: str,
    phone: str | None = None,
    role: str = CLIENT_ROLE,
    rounds: int = 12,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValueError: If username/email already taken or role unknown
        PasswordValidationError: If password doesn't meet requirements
    """
    if role not in ROLES:
        raise ValueError(f"Role {role} not found")

    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ValueError("Username or email already exists")

    user = User(
        name=name,
        surname=surname,
        username=username,
        email=email,
        phone=phone,
        role=role,
        password_hash=hash_password(password, rounds=rounds),
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(identifier: str, password: str) -> User | None:
    """
    Authenticate with username or email plus password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter(
        db.or_(User.username == identifier, User.email == identifier),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
