# Overview: Health and version endpoints for deployment checks.

"""
System health and version endpoints.

Checks the database, the session table, the default organisation used by
public registration and the document storage backend.
"""

import sys
import time

from flask import Blueprint, current_app

from ..errors import UpstreamFailure
from ..extensions import db
from ..models import Contribuable, Organisation, SessionToken, User
from ..services import storage_service
from taxcontrib.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def _elapsed_ms(start_time: float) -> float:
    return round((time.time() - start_time) * 1000, 2)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        details = {
            "organisations": db.session.query(Organisation).count(),
            "users": db.session.query(User).count(),
            "contribuables": db.session.query(Contribuable).count(),
        }
        return {"status": "healthy", "latency_ms": _elapsed_ms(start_time), "details": details}
    except Exception:
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Database error"}


def check_session_service_health() -> dict:
    start_time = time.time()
    try:
        active_sessions = db.session.query(SessionToken).filter_by(is_revoked=False).count()
        expired_sessions = db.session.query(SessionToken).filter(
            SessionToken.expires_at < utcnow(),
            SessionToken.is_revoked.is_(False)
        ).count()
        return {
            "status": "healthy",
            "latency_ms": _elapsed_ms(start_time),
            "details": {
                "active_sessions": active_sessions,
                "expired_pending_cleanup": expired_sessions,
            }
        }
    except Exception:
        current_app.logger.exception("Session service health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Session service error"}


def check_public_registration_health() -> dict:
    """Public submissions need the default organisation to exist."""
    start_time = time.time()
    org_id = current_app.config["DEFAULT_ORGANISATION_ID"]
    try:
        org = db.session.get(Organisation, org_id)
    except Exception:
        current_app.logger.exception("Default organisation lookup failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Database error"}

    if org is None:
        return {
            "status": "degraded",
            "latency_ms": _elapsed_ms(start_time),
            "warning": f"Default organisation {org_id} missing (run: flask system init)",
        }
    return {"status": "healthy", "latency_ms": _elapsed_ms(start_time), "details": {"organisation": org.nom}}


def check_storage_health() -> dict:
    start_time = time.time()
    backend = storage_service.get_storage_backend()
    try:
        storage_service.list_keys(prefix="__health__/")
    except UpstreamFailure as e:
        current_app.logger.warning("Storage health check failed: %s", e)
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Storage error"}
    return {"status": "healthy", "latency_ms": _elapsed_ms(start_time), "details": {"backend": backend}}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    checks = {
        "database": check_database_health(),
        "session_service": check_session_service_health(),
        "public_registration": check_public_registration_health(),
        "storage": check_storage_health(),
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
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": _elapsed_ms(start_time),
        "checks": checks,
    }, http_status


@system_bp.get("/version")
def version():
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
