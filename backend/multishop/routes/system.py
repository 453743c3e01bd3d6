# Overview: System health and version endpoints.

import os
import sys
import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import Account, SessionToken, Shop
from ..services.app_state import get_registry
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)

API_VERSION = "1.0.0"


def check_database_health() -> dict:
    start_time = time.time()
    try:
        shop_count = db.session.query(Shop).count()
        account_count = db.session.query(Account).count()
        active_sessions = db.session.query(SessionToken).filter(
            SessionToken.is_revoked.is_(False),
            SessionToken.expires_at >= utcnow(),
        ).count()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Database error",
        }

    return {
        "status": "healthy",
        "latency_ms": round((time.time() - start_time) * 1000, 2),
        "details": {
            "shops": shop_count,
            "accounts": account_count,
            "active_sessions": active_sessions,
        },
    }


def check_cache_health() -> dict:
    """The blob cache is optional; an unwritable directory only degrades warm starts."""
    root = get_registry().cache.root
    if os.path.isdir(root) and os.access(root, os.W_OK):
        return {"status": "healthy", "details": {"path_writable": True}}
    if not os.path.exists(root):
        return {"status": "healthy", "details": {"path_writable": None}}
    return {"status": "degraded", "warning": "Cache directory is not writable"}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()
    database_health = check_database_health()
    cache_health = check_cache_health()

    checks = [database_health, cache_health]
    if any(c["status"] == "unhealthy" for c in checks):
        overall_status, http_status = "unhealthy", 503
    elif any(c["status"] == "degraded" for c in checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "blob_cache": cache_health,
        },
    }, http_status


@system_bp.get("/version")
def version():
    env = "production" if not current_app.debug else "development"
    return {
        "api_version": API_VERSION,
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
