"""Background scheduler — pass lifecycle and notification jobs.

APScheduler AsyncIOScheduler, started from the main.py lifespan:
  - Expire passes: every 5 min — live passes past their end time become EXPIRED
  - Expiration warnings: every 5 min — email visitors whose pass ends soon
  - Notification retry: every 15 min — resend FAILED emails under the attempt cap

Each job opens its own SessionLocal and never lets an exception escape,
so one bad run doesn't kill the schedule.
"""

import logging
from datetime import timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler

log = logging.getLogger(__name__)

scheduler = AsyncIOScheduler(timezone="UTC")


def _utc(dt):
    """Make a naive datetime UTC-aware (no-op if already aware)."""
    if dt is None:
        return None
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def configure_scheduler() -> None:
    """Register all jobs. Call once before scheduler.start()."""
    from .config import settings

    scheduler.add_job(
        _job_expire_passes,
        "interval",
        minutes=settings.expire_passes_interval_min,
        id="expire_passes",
        replace_existing=True,
        max_instances=1,
    )
    scheduler.add_job(
        _job_expiration_warnings,
        "interval",
        minutes=settings.expire_passes_interval_min,
        id="expiration_warnings",
        replace_existing=True,
        max_instances=1,
    )
    if settings.resend_api_key:
        scheduler.add_job(
            _job_retry_notifications,
            "interval",
            minutes=settings.notification_retry_interval_min,
            id="retry_notifications",
            replace_existing=True,
            max_instances=1,
        )
    log.info("Scheduler configured with %d jobs", len(scheduler.get_jobs()))


# ── Jobs ─────────────────────────────────────────────────────────────


async def _job_expire_passes() -> None:
    from .database import SessionLocal
    from .services.pass_service import expire_passes

    db = SessionLocal()
    try:
        expire_passes(db)
    except Exception:
        log.exception("Expire passes job failed")
        db.rollback()
    finally:
        db.close()


async def _job_expiration_warnings() -> None:
    from .config import settings
    from .database import SessionLocal
    from .services.notification_service import send_pass_expiration_warning
    from .services.pass_service import passes_needing_expiration_warning

    db = SessionLocal()
    try:
        due = passes_needing_expiration_warning(db, settings.expiration_warning_minutes)
        sent = 0
        for parking_pass in due:
            if await send_pass_expiration_warning(db, parking_pass):
                sent += 1
        if due:
            log.info("Expiration warnings: %d/%d sent", sent, len(due))
    except Exception:
        log.exception("Expiration warning job failed")
        db.rollback()
    finally:
        db.close()


async def _job_retry_notifications() -> None:
    from .database import SessionLocal
    from .services.notification_service import retry_failed_notifications

    db = SessionLocal()
    try:
        resent = await retry_failed_notifications(db)
        if resent:
            log.info("Retried %d failed notifications", resent)
    except Exception:
        log.exception("Notification retry job failed")
        db.rollback()
    finally:
        db.close()
