"""
cache.py — Offline cache for patrol devices

Patrol officers keep working in parking structures with no signal. The
device keeps a local SQLite file with recent lookup answers plus a bulk
snapshot of vehicles, passes and violations pulled from /api/patrol/sync.

Business Rules:
- Lookup results are keyed by normalized plate and live for
  settings.patrol_cache_ttl_minutes (default 30)
- An expired cache entry is treated as a miss
- sync_patrol_data replaces each snapshot table wholesale
- Reads and lookup writes never raise; a broken cache is a cache miss.
  Sync and clear failures propagate so the caller can report them

Called by: patrol/scanner.py
Depends on: database.UTCDateTime, utils/license_plate
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import JSON, Boolean, Column, Integer, String, create_engine, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import settings
from ..database import UTCDateTime
from ..utils.license_plate import normalize_license_plate

log = logging.getLogger(__name__)

CacheBase = declarative_base()


class CachedLookup(CacheBase):
    __tablename__ = "lookup_cache"
    normalized_plate = Column(String(20), primary_key=True)
    result = Column(JSON, nullable=False)
    cached_at = Column(UTCDateTime, nullable=False)
    expires_at = Column(UTCDateTime, nullable=False, index=True)


class CachedVehicle(CacheBase):
    __tablename__ = "vehicles"
    id = Column(Integer, primary_key=True)
    normalized_plate = Column(String(20), index=True)
    is_blacklisted = Column(Boolean, default=False)
    data = Column(JSON, nullable=False)


class CachedPass(CacheBase):
    __tablename__ = "passes"
    id = Column(Integer, primary_key=True)
    vehicle_id = Column(Integer, index=True)
    data = Column(JSON, nullable=False)


class CachedViolation(CacheBase):
    __tablename__ = "violations"
    id = Column(Integer, primary_key=True)
    vehicle_id = Column(Integer, index=True)
    data = Column(JSON, nullable=False)


class SyncStatus(CacheBase):
    __tablename__ = "sync_status"
    data_type = Column(String(20), primary_key=True)
    last_sync_at = Column(UTCDateTime, nullable=False)
    item_count = Column(Integer, default=0)


_SNAPSHOT_TABLES = {
    "vehicles": CachedVehicle,
    "passes": CachedPass,
    "violations": CachedViolation,
}


class OfflineCache:
    def __init__(self, path: str | None = None, ttl_minutes: int | None = None):
        path = path or settings.patrol_cache_path
        url = "sqlite://" if path == ":memory:" else f"sqlite:///{path}"
        kwargs = {"connect_args": {"check_same_thread": False}}
        if path == ":memory:":
            kwargs["poolclass"] = StaticPool
        self.engine = create_engine(url, **kwargs)
        CacheBase.metadata.create_all(self.engine)
        self._session = sessionmaker(bind=self.engine, expire_on_commit=False)
        self.ttl = timedelta(minutes=ttl_minutes or settings.patrol_cache_ttl_minutes)

    @staticmethod
    def _now(now: datetime | None) -> datetime:
        return now or datetime.now(timezone.utc)

    # ── Lookup cache ─────────────────────────────────────────────────

    def cache_lookup_result(self, plate: str, result: dict, now: datetime | None = None) -> None:
        now = self._now(now)
        key = normalize_license_plate(plate)
        try:
            with self._session() as db:
                db.merge(CachedLookup(
                    normalized_plate=key,
                    result=result,
                    cached_at=now,
                    expires_at=now + self.ttl,
                ))
                vehicle = result.get("vehicle")
                if vehicle and vehicle.get("id"):
                    db.merge(CachedVehicle(
                        id=vehicle["id"],
                        normalized_plate=key,
                        is_blacklisted=bool(vehicle.get("is_blacklisted")),
                        data=vehicle,
                    ))
                db.commit()
        except SQLAlchemyError:
            log.warning("Failed to cache lookup for %s", key, exc_info=True)

    def get_cached_lookup(self, plate: str, now: datetime | None = None) -> dict | None:
        now = self._now(now)
        key = normalize_license_plate(plate)
        try:
            with self._session() as db:
                row = db.get(CachedLookup, key)
                if not row:
                    return None
                if row.expires_at <= now:
                    db.delete(row)
                    db.commit()
                    return None
                return row.result
        except SQLAlchemyError:
            log.warning("Failed to read cached lookup for %s", key, exc_info=True)
            return None

    # ── Snapshot ─────────────────────────────────────────────────────

    def sync_patrol_data(self, snapshot: dict, now: datetime | None = None) -> dict:
        """Replace local vehicles/passes/violations with a server snapshot.

        Returns item counts per table.
        """
        now = self._now(now)
        counts = {}
        with self._session() as db:
            for data_type, model in _SNAPSHOT_TABLES.items():
                items = snapshot.get(data_type) or []
                db.query(model).delete()
                for item in items:
                    if model is CachedVehicle:
                        row = CachedVehicle(
                            id=item["id"],
                            normalized_plate=item.get("normalized_plate")
                            or normalize_license_plate(item.get("license_plate", "")),
                            is_blacklisted=bool(item.get("is_blacklisted")),
                            data=item,
                        )
                    else:
                        row = model(id=item["id"], vehicle_id=item.get("vehicle_id"), data=item)
                    db.add(row)
                db.merge(SyncStatus(data_type=data_type, last_sync_at=now, item_count=len(items)))
                counts[data_type] = len(items)
            db.commit()
        log.info("Patrol cache synced: %s", counts)
        return counts

    def get_sync_status(self) -> dict:
        try:
            with self._session() as db:
                return {
                    s.data_type: {
                        "last_sync_at": s.last_sync_at.isoformat(),
                        "item_count": s.item_count,
                    }
                    for s in db.query(SyncStatus).all()
                }
        except SQLAlchemyError:
            log.warning("Failed to read sync status", exc_info=True)
            return {}

    # ── Maintenance ──────────────────────────────────────────────────

    def clear_cache(self) -> None:
        with self._session() as db:
            for model in (CachedLookup, CachedVehicle, CachedPass, CachedViolation, SyncStatus):
                db.query(model).delete()
            db.commit()

    def clean_expired_cache(self, now: datetime | None = None) -> int:
        now = self._now(now)
        try:
            with self._session() as db:
                removed = db.query(CachedLookup).filter(CachedLookup.expires_at <= now).delete()
                db.commit()
                return removed
        except SQLAlchemyError:
            log.warning("Failed to clean expired lookups", exc_info=True)
            return 0

    def get_cache_stats(self) -> dict:
        try:
            with self._session() as db:
                last_sync = db.query(func.max(SyncStatus.last_sync_at)).scalar()
                return {
                    "vehicle_count": db.query(CachedVehicle).count(),
                    "pass_count": db.query(CachedPass).count(),
                    "violation_count": db.query(CachedViolation).count(),
                    "lookup_cache_count": db.query(CachedLookup).count(),
                    "last_sync_at": last_sync.isoformat() if last_sync else None,
                }
        except SQLAlchemyError:
            log.warning("Failed to read cache stats", exc_info=True)
            return {
                "vehicle_count": 0,
                "pass_count": 0,
                "violation_count": 0,
                "lookup_cache_count": 0,
                "last_sync_at": None,
            }
