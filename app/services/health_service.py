"""
health_service.py — Deep health check for monitoring

Business Rules:
- Database: SELECT 1; above 1000ms is degraded, an exception is down
- Email: degraded when no Resend API key is configured
- Overall: critical if the database is down, degraded if any service is
  degraded, otherwise healthy
- Memory is the process peak RSS (ru_maxrss) against physical memory

Called by: routers/health.py
Depends on: database, services/analytics_service
"""

import logging
import os
import resource
import sys
import time
from datetime import datetime, timezone

from sqlalchemy import func, text
from sqlalchemy.orm import Session

from ..config import APP_VERSION, settings
from ..models import NotificationQueue
from . import analytics_service

log = logging.getLogger(__name__)

DB_DEGRADED_MS = 1000
STARTED_AT = time.monotonic()


def _service(status: str, checked: str, latency: int | None = None, message: str | None = None) -> dict:
    entry = {"status": status, "last_check": checked}
    if latency is not None:
        entry["latency"] = latency
    if message:
        entry["message"] = message
    return entry


def memory_usage() -> dict:
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is bytes on macOS, kilobytes on Linux
    used_bytes = peak if sys.platform == "darwin" else peak * 1024
    try:
        total_bytes = os.sysconf("SC_PAGE_SIZE") * os.sysconf("SC_PHYS_PAGES")
    except (ValueError, OSError, AttributeError):
        total_bytes = 0
    used_mb = round(used_bytes / 1024 / 1024)
    total_mb = round(total_bytes / 1024 / 1024)
    return {
        "used": used_mb,
        "total": total_mb,
        "percentage": round(used_mb / total_mb * 100) if total_mb else 0,
    }


def check_health(db: Session, started: float | None = None) -> dict:
    started = started if started is not None else time.monotonic()
    now = datetime.now(timezone.utc)
    checked = now.isoformat()

    metrics = {
        "active_passes": 0,
        "expiring_soon": 0,
        "today_violations": 0,
        "pending_notifications": 0,
    }
    try:
        db_start = time.monotonic()
        db.execute(text("SELECT 1"))
        db_latency = int((time.monotonic() - db_start) * 1000)
        if db_latency > DB_DEGRADED_MS:
            database = _service("degraded", checked, db_latency, "High latency detected")
        else:
            database = _service("operational", checked, db_latency)

        stats = analytics_service.get_dashboard_stats(db, now)
        metrics["active_passes"] = stats["active_passes"]
        metrics["expiring_soon"] = stats["expiring_soon"]
        metrics["today_violations"] = stats["today_violations"]
        metrics["pending_notifications"] = (
            db.query(func.count(NotificationQueue.id))
            .filter(NotificationQueue.status == "PENDING")
            .scalar()
        )
    except Exception:
        log.exception("Health check database error")
        db.rollback()
        database = _service("down", checked, message="Database connection failed")

    if settings.resend_api_key:
        email = _service("operational", checked)
    else:
        email = _service("degraded", checked, message="Email service not configured")

    api_latency = int((time.monotonic() - started) * 1000)
    api = _service("operational", checked, api_latency)
    metrics["avg_response_time"] = api_latency

    services = {"database": database, "api": api, "email": email}
    if database["status"] == "down":
        status = "critical"
    elif any(s["status"] == "degraded" for s in services.values()):
        status = "degraded"
    else:
        status = "healthy"

    return {
        "status": status,
        "timestamp": checked,
        "version": APP_VERSION,
        "environment": settings.environment,
        "uptime": round(time.monotonic() - STARTED_AT, 1),
        "services": services,
        "metrics": metrics,
        "resources": {"memory": memory_usage()},
    }
