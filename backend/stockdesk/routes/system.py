# backend/stockdesk/routes/system.py
"""
System liveness and health endpoints.

/api/ping answers without touching the database; /api/health checks the
store and reports per-component status for deployment debugging.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import ADMIN_ROLE, Category, SessionToken, User
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
        category_count = db.session.query(Category).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "users": user_count,
                "categories": category_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_session_service_health() -> dict:
    start_time = time.time()
    try:
        active_sessions = db.session.query(SessionToken).filter_by(is_revoked=False).count()

        # Expired but never revoked; harmless, reported for cleanup
        expired_sessions = db.session.query(SessionToken).filter(
            SessionToken.expires_at < utcnow(),
            SessionToken.is_revoked.is_(False),
        ).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "active_sessions": active_sessions,
                "expired_pending_cleanup": expired_sessions,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Session service health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Session service error"
        }


def check_setup_health() -> dict:
    """Degraded until `flask system init` has seeded an admin and the default category."""
    start_time = time.time()
    try:
        has_admin = db.session.query(User).filter_by(role=ADMIN_ROLE, is_active=True).first() is not None
        has_default_category = db.session.query(Category).filter_by(is_default=True).first() is not None
        elapsed_ms = (time.time() - start_time) * 1000

        missing = []
        if not has_admin:
            missing.append("admin user")
        if not has_default_category:
            missing.append("default category")

        if missing:
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": f"Missing: {', '.join(missing)}",
            }
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Setup health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Setup check error"
        }


@system_bp.get("/ping")
def ping():
    return {"ok": True, "timestamp": utcnow().isoformat() + "Z"}


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    checks = {
        "database": check_database_health(),
        "session_service": check_session_service_health(),
        "setup": check_setup_health(),
    }

    statuses = [check["status"] for check in checks.values()]
    if "unhealthy" in statuses:
        overall_status, http_status = "unhealthy", 503
    elif "degraded" in statuses:
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": checks,
    }, http_status
