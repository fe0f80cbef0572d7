"""
startup.py — Database startup tasks (idempotent)

Tables, columns, and indexes are defined in the ORM models and created via
Base.metadata.create_all(checkfirst=True). After that, any building that
lacks a ParkingRule row gets one with the default limits.

Called by: main.py lifespan
Depends on: database.py (engine, SessionLocal), models, services/settings_service
"""

import logging
import os

from .database import SessionLocal, engine

log = logging.getLogger(__name__)


def run_startup_migrations() -> None:
    """Execute all idempotent startup operations. Safe to call on every app boot."""
    if os.environ.get("TESTING"):
        log.info("TESTING mode — skipping startup migrations")
        return

    from .models import Base

    Base.metadata.create_all(bind=engine, checkfirst=True)
    log.info("ORM schema sync complete (create_all checkfirst=True)")

    _seed_default_rules()
    log.info("Startup migrations complete")


def _seed_default_rules() -> None:
    from .services.settings_service import ensure_default_rules

    db = SessionLocal()
    try:
        ensure_default_rules(db)
    finally:
        db.close()
