"""
patrol_service.py — Plate lookup for patrol officers

Answers "may this car be parked here right now?" for a scanned or typed
plate, and builds the bulk snapshot patrol devices preload for offline use.

Business Rules:
- Status precedence: NOT_FOUND, BLACKLISTED, then VALID / EXPIRING_SOON
  (live pass with start <= now < end), then EXPIRED (ended within the
  last hour), else UNREGISTERED
- A pass is EXPIRING_SOON when it ends within 30 minutes
- Lookups considers the 10 most recent passes (by end time) and the 5 most
  recent violations; recent_passes in the response is capped at 5
- Every lookup of a known vehicle writes a READ audit entry

Called by: routers/patrol.py
Depends on: models, services/audit_service, utils/date_time
"""

import logging
from datetime import datetime, timedelta, timezone

from fastapi import Request
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ..constants import LIVE_PASS_STATUSES
from ..models import ParkingPass, Unit, User, Vehicle, Violation
from ..utils.date_time import ensure_utc, format_time
from ..utils.license_plate import normalize_license_plate
from .audit_service import log_action

log = logging.getLogger(__name__)

EXPIRING_SOON_MINUTES = 30
RECENTLY_EXPIRED_MINUTES = 60
PASS_HISTORY_LIMIT = 10
VIOLATION_HISTORY_LIMIT = 5
RECENT_PASSES_SHOWN = 5

SYNC_PASS_WINDOW_HOURS = 24
SYNC_VIOLATION_WINDOW_DAYS = 30


def vehicle_info(v: Vehicle) -> dict:
    return {
        "id": v.id,
        "license_plate": v.license_plate,
        "normalized_plate": v.normalized_plate,
        "make": v.make,
        "model": v.model,
        "color": v.color,
        "is_blacklisted": v.is_blacklisted,
        "blacklist_reason": v.blacklist_reason,
        "violation_count": v.violation_count,
        "risk_score": v.risk_score,
    }


def pass_info(p: ParkingPass) -> dict:
    return {
        "id": p.id,
        "vehicle_id": p.vehicle_id,
        "status": p.status,
        "start_time": p.start_time.isoformat(),
        "end_time": p.end_time.isoformat(),
        "visitor_name": p.visitor_name,
        "unit_number": p.unit.unit_number,
        "building_name": p.unit.building.name,
        "pass_type": p.pass_type,
        "is_emergency": p.is_emergency,
        "confirmation_code": p.confirmation_code,
    }


def violation_info(v: Violation) -> dict:
    return {
        "id": v.id,
        "vehicle_id": v.vehicle_id,
        "type": v.type,
        "severity": v.severity,
        "created_at": v.created_at.isoformat() if v.created_at else None,
        "is_resolved": v.is_resolved,
        "location": v.location,
    }


def _recent_passes(db: Session, vehicle_id: int) -> list[ParkingPass]:
    return (
        db.query(ParkingPass)
        .options(joinedload(ParkingPass.unit).joinedload(Unit.building))
        .filter(ParkingPass.vehicle_id == vehicle_id, ParkingPass.deleted_at.is_(None))
        .order_by(ParkingPass.end_time.desc())
        .limit(PASS_HISTORY_LIMIT)
        .all()
    )


def _recent_violations(db: Session, vehicle_id: int) -> list[Violation]:
    return (
        db.query(Violation)
        .filter(Violation.vehicle_id == vehicle_id, Violation.deleted_at.is_(None))
        .order_by(Violation.created_at.desc())
        .limit(VIOLATION_HISTORY_LIMIT)
        .all()
    )


def classify(passes: list[ParkingPass], now: datetime) -> tuple[str, str, ParkingPass | None]:
    """Work out (status, message, active_pass) for a non-blacklisted vehicle."""
    active = next(
        (
            p for p in passes
            if p.status in LIVE_PASS_STATUSES
            and ensure_utc(p.start_time) <= now < ensure_utc(p.end_time)
        ),
        None,
    )
    if active:
        end = ensure_utc(active.end_time)
        if end <= now + timedelta(minutes=EXPIRING_SOON_MINUTES):
            minutes_left = round((end - now).total_seconds() / 60)
            return "EXPIRING_SOON", f"Pass expires in {minutes_left} minutes", active
        tz = active.unit.building.timezone if active.unit and active.unit.building else None
        until = format_time(end, tz) if tz else format_time(end)
        return "VALID", f"Valid pass until {until}", active

    recent_cutoff = now - timedelta(minutes=RECENTLY_EXPIRED_MINUTES)
    expired = next(
        (
            p for p in passes
            if p.status in ("EXPIRED",) + LIVE_PASS_STATUSES
            and recent_cutoff < ensure_utc(p.end_time) <= now
        ),
        None,
    )
    if expired:
        minutes_ago = round((now - ensure_utc(expired.end_time)).total_seconds() / 60)
        return "EXPIRED", f"Pass expired {minutes_ago} minutes ago", None

    return "UNREGISTERED", "Vehicle has no active parking pass", None


def lookup_plate(
    db: Session,
    license_plate: str,
    user: User,
    request: Request | None = None,
    now: datetime | None = None,
) -> dict:
    now = ensure_utc(now) if now else datetime.now(timezone.utc)
    normalized = normalize_license_plate(license_plate)

    vehicle = (
        db.query(Vehicle)
        .filter(Vehicle.normalized_plate == normalized, Vehicle.deleted_at.is_(None))
        .first()
    )
    if not vehicle:
        return {
            "status": "NOT_FOUND",
            "status_message": "No vehicle record found for this license plate",
            "vehicle": None,
            "active_pass": None,
            "recent_passes": [],
            "violations": [],
            "lookup_time": now.isoformat(),
        }

    passes = _recent_passes(db, vehicle.id)
    violations = [violation_info(v) for v in _recent_violations(db, vehicle.id)]

    if vehicle.is_blacklisted:
        status = "BLACKLISTED"
        message = f"Vehicle is BLACKLISTED: {vehicle.blacklist_reason or 'No reason provided'}"
        active = None
        recent = [pass_info(p) for p in passes]
    else:
        status, message, active = classify(passes, now)
        recent = [pass_info(p) for p in passes[:RECENT_PASSES_SHOWN]]

    log_action(
        db, "READ", "Vehicle", vehicle.id, user_id=user.id,
        details={
            "action": "patrol_lookup",
            "license_plate": vehicle.license_plate,
            "status": status,
        },
        data_accessed=["vehicle", "passes", "violations"],
        request=request,
    )
    db.commit()
    log.info("Patrol lookup %s by %s -> %s", normalized, user.email, status)

    return {
        "status": status,
        "status_message": message,
        "vehicle": vehicle_info(vehicle),
        "active_pass": pass_info(active) if active else None,
        "recent_passes": recent,
        "violations": violations,
        "lookup_time": now.isoformat(),
    }


def sync_snapshot(db: Session, now: datetime | None = None) -> dict:
    """Vehicles, passes and violations a patrol device needs offline.

    Passes: live or ended within the last 24h. Violations: last 30 days.
    Vehicles: every vehicle referenced by those, plus all blacklisted ones.
    """
    now = ensure_utc(now) if now else datetime.now(timezone.utc)
    passes = (
        db.query(ParkingPass)
        .options(joinedload(ParkingPass.unit).joinedload(Unit.building))
        .filter(
            ParkingPass.deleted_at.is_(None),
            ParkingPass.end_time > now - timedelta(hours=SYNC_PASS_WINDOW_HOURS),
        )
        .order_by(ParkingPass.end_time.desc())
        .all()
    )
    violations = (
        db.query(Violation)
        .filter(
            Violation.deleted_at.is_(None),
            Violation.created_at > now - timedelta(days=SYNC_VIOLATION_WINDOW_DAYS),
        )
        .order_by(Violation.created_at.desc())
        .all()
    )
    vehicle_ids = {p.vehicle_id for p in passes} | {v.vehicle_id for v in violations}
    vehicles = (
        db.query(Vehicle)
        .filter(
            Vehicle.deleted_at.is_(None),
            or_(Vehicle.id.in_(vehicle_ids), Vehicle.is_blacklisted.is_(True)),
        )
        .all()
    )
    return {
        "vehicles": [vehicle_info(v) for v in vehicles],
        "passes": [pass_info(p) for p in passes],
        "violations": [violation_info(v) for v in violations],
        "generated_at": now.isoformat(),
    }
