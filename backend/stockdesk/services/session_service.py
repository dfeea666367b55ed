# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service

WHY: Secure session management with timeout and revocation.
Tokens are cryptographically secure, hashed in database, and time-limited.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Absolute timeout from SESSION_TTL_HOURS
- Revocable on logout and when the user is deactivated
"""

import hashlib
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import utcnow


def generate_token() -> str:
    """Return a 64-character hex token (32 bytes of entropy)."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 is enough here: tokens are already high-entropy."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.
    """
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise ValueError("User not found")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + timedelta(hours=current_app.config["SESSION_TTL_HOURS"]),
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
        is_revoked=False,
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str) -> User | None:
    """
    Resolve a bearer token to its active user.

    Returns None if the token is unknown, expired or revoked, or the user
    was deactivated. Updates last_used_at and commits, so callers start
    their own work from a clean transaction.
    """
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not session or session.is_revoked:
        return None

    now = utcnow()
    if session.expires_at <= now:
        return None

    user = db.session.query(User).filter_by(id=session.user_id).first()
    if not user or not user.is_active:
        return None

    session.last_used_at = now
    db.session.commit()
    return user


def revoke_session(token: str) -> bool:
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not session or session.is_revoked:
        return False
    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int) -> int:
    """Revoke every live session for a user. Does not commit."""
    now = utcnow()
    count = 0
    for session in db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False).all():
        session.is_revoked = True
        session.revoked_at = now
        count += 1
    return count
