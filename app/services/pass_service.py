"""
pass_service.py — Parking pass lifecycle

Business Rules:
- Visitors self-register without an account; building and unit must be
  active and not deleted
- Every new pass runs validate_pass_request first; any error blocks creation
- The plate is format-checked before anything else (400 with the message)
- Vehicles are found by normalized plate and created on first registration
- Registering with a zone code is recorded as a QR scan
- Passes are never hard-deleted: DELETE sets deleted_at and CANCELLED
- Extensions push end_time forward, bump extension_count, set EXTENDED
- Residents (passes:view_own only) see passes for their own unit

Called by: routers/passes.py, scheduler.py
Depends on: models, services/validation_service, services/audit_service
"""

import logging
import math
from datetime import datetime, timedelta, timezone

from fastapi import Request
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from ..authorization import has_permission
from ..constants import LIVE_PASS_STATUSES
from ..database import utcnow
from ..models import (
    Building,
    ParkingPass,
    ParkingZone,
    QRCodeScan,
    Resident,
    Unit,
    User,
    Vehicle,
)
from ..utils.date_time import calculate_end_time, ensure_utc, extend_pass_end_time
from ..utils.license_plate import normalize_license_plate, validate_license_plate
from .audit_service import client_ip, log_action, user_agent
from .validation_service import validate_pass_extension, validate_pass_request

log = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


# ── Serialization ────────────────────────────────────────────────────


def vehicle_summary(v: Vehicle | None) -> dict | None:
    if v is None:
        return None
    return {
        "id": v.id,
        "license_plate": v.license_plate,
        "normalized_plate": v.normalized_plate,
        "make": v.make,
        "model": v.model,
        "color": v.color,
        "state": v.state,
        "is_blacklisted": v.is_blacklisted,
        "violation_count": v.violation_count,
        "risk_score": v.risk_score,
    }


def serialize_pass(p: ParkingPass) -> dict:
    unit = p.unit
    building = unit.building if unit else None
    zone = p.parking_zone
    return {
        "id": p.id,
        "status": p.status,
        "pass_type": p.pass_type,
        "is_emergency": p.is_emergency,
        "start_time": _iso(p.start_time),
        "end_time": _iso(p.end_time),
        "original_end_time": _iso(p.original_end_time),
        "duration": p.duration,
        "visitor_name": p.visitor_name,
        "visitor_phone": p.visitor_phone,
        "visitor_email": p.visitor_email,
        "confirmation_code": p.confirmation_code,
        "registered_via": p.registered_via,
        "extension_count": p.extension_count,
        "last_extended_at": _iso(p.last_extended_at),
        "view_count": p.view_count,
        "created_at": _iso(p.created_at),
        "vehicle": vehicle_summary(p.vehicle),
        "unit": {
            "id": unit.id,
            "unit_number": unit.unit_number,
            "floor": unit.floor,
            "section": unit.section,
            "building": {
                "id": building.id,
                "name": building.name,
                "slug": building.slug,
                "timezone": building.timezone,
            } if building else None,
        } if unit else None,
        "parking_zone": {
            "id": zone.id, "name": zone.name, "code": zone.code,
        } if zone else None,
    }


def short_code(confirmation_code: str) -> str:
    """Human-facing code shown to visitors: first 8 chars, upper-case."""
    return (confirmation_code or "")[:8].upper()


# ── Vehicles ─────────────────────────────────────────────────────────


def find_or_create_vehicle(
    db: Session,
    license_plate: str,
    make: str | None = None,
    model: str | None = None,
    color: str | None = None,
    state: str | None = None,
) -> Vehicle:
    """Look up by normalized plate; create or fill in details as needed."""
    normalized = normalize_license_plate(license_plate)
    vehicle = db.query(Vehicle).filter(Vehicle.normalized_plate == normalized).first()
    if vehicle is None:
        vehicle = Vehicle(
            license_plate=license_plate.strip().upper(),
            normalized_plate=normalized,
            make=make,
            model=model,
            color=color,
            state=state,
        )
        db.add(vehicle)
        db.flush()
        log.info("New vehicle %s registered", normalized)
    elif make or model or color:
        vehicle.make = make or vehicle.make
        vehicle.model = model or vehicle.model
        vehicle.color = color or vehicle.color
        vehicle.state = state or vehicle.state
    return vehicle


# ── Registration ─────────────────────────────────────────────────────


def register_pass(db: Session, data: dict, request: Request | None = None) -> dict:
    """Create a pass for a visitor. Returns the pass or an error dict."""
    ok, message = validate_license_plate(data["license_plate"])
    if not ok:
        return {"error": message, "status": 400}

    building = (
        db.query(Building)
        .filter(
            Building.slug == data["building_slug"],
            Building.is_active.is_(True),
            Building.deleted_at.is_(None),
        )
        .first()
    )
    if not building:
        return {"error": "Building not found", "status": 404}

    unit = (
        db.query(Unit)
        .filter(
            Unit.building_id == building.id,
            Unit.unit_number == data["unit_number"].strip(),
            Unit.is_active.is_(True),
            Unit.deleted_at.is_(None),
        )
        .first()
    )
    if not unit:
        return {"error": "Unit not found", "status": 404}

    zone = None
    if data.get("parking_zone_code"):
        zone = (
            db.query(ParkingZone)
            .filter(
                ParkingZone.building_id == building.id,
                ParkingZone.code == data["parking_zone_code"].strip().upper(),
                ParkingZone.is_active.is_(True),
                ParkingZone.deleted_at.is_(None),
            )
            .first()
        )

    is_emergency = bool(data.get("is_emergency"))
    result = validate_pass_request(
        db,
        building_id=building.id,
        license_plate=data["license_plate"],
        unit_id=unit.id,
        duration_hours=data["duration"],
        is_emergency=is_emergency,
    )
    if not result.is_valid:
        body = result.to_dict()
        return {
            "error": "Validation failed",
            "errors": body["errors"],
            "warnings": body["warnings"],
            "status": 400,
        }

    vehicle = find_or_create_vehicle(
        db,
        data["license_plate"],
        make=data.get("vehicle_make"),
        model=data.get("vehicle_model"),
        color=data.get("vehicle_color"),
        state=data.get("vehicle_state"),
    )

    start = utcnow()
    end = calculate_end_time(start, data["duration"])
    ip, agent = client_ip(request), user_agent(request)
    parking_pass = ParkingPass(
        vehicle_id=vehicle.id,
        unit_id=unit.id,
        parking_zone_id=zone.id if zone else None,
        start_time=start,
        end_time=end,
        original_end_time=end,
        duration=data["duration"],
        status="ACTIVE",
        pass_type=data.get("pass_type") or ("EMERGENCY" if is_emergency else "VISITOR"),
        is_emergency=is_emergency,
        visitor_name=data.get("visitor_name"),
        visitor_phone=data.get("visitor_phone"),
        visitor_email=data.get("visitor_email"),
        registered_via="QR_SCAN" if zone else "WEB_FORM",
        ip_address=ip,
        user_agent=agent,
    )
    db.add(parking_pass)
    db.flush()

    if zone:
        db.add(QRCodeScan(
            parking_zone_id=zone.id,
            building_id=building.id,
            resulted_in_pass=True,
            pass_id=parking_pass.id,
            ip_address=ip,
            user_agent=agent,
        ))

    db.commit()
    db.refresh(parking_pass)
    log.info(
        "Pass %s created: %s -> unit %s for %dh",
        parking_pass.id, vehicle.normalized_plate, unit.unit_number, parking_pass.duration,
    )

    return {
        "pass": serialize_pass(parking_pass),
        "confirmation_code": parking_pass.confirmation_code,
        "warnings": result.to_dict()["warnings"],
    }


# ── Queries ──────────────────────────────────────────────────────────


def _base_query(db: Session):
    return (
        db.query(ParkingPass)
        .options(
            joinedload(ParkingPass.vehicle),
            joinedload(ParkingPass.unit).joinedload(Unit.building),
            joinedload(ParkingPass.parking_zone),
        )
        .filter(ParkingPass.deleted_at.is_(None))
    )


def _resident_unit_ids(db: Session, user: User) -> list[int]:
    return [
        r.unit_id
        for r in db.query(Resident).filter(
            Resident.user_id == user.id, Resident.is_active.is_(True)
        )
    ]


def list_passes(
    db: Session,
    user: User,
    status: str | None = None,
    building_id: int | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> dict:
    page = max(1, page)
    limit = max(1, min(limit, MAX_PAGE_SIZE))

    q = _base_query(db)
    if not has_permission(user.role, "passes:view_all"):
        q = q.filter(ParkingPass.unit_id.in_(_resident_unit_ids(db, user)))
    if status:
        q = q.filter(ParkingPass.status == status)
    if building_id:
        q = q.filter(ParkingPass.unit.has(Unit.building_id == building_id))
    if search:
        term = search.strip()
        q = q.filter(
            or_(
                ParkingPass.vehicle.has(
                    Vehicle.normalized_plate.contains(normalize_license_plate(term))
                ),
                func.lower(ParkingPass.visitor_name).contains(term.lower()),
                ParkingPass.confirmation_code.contains(term.lower()),
            )
        )

    total = q.count()
    passes = (
        q.order_by(ParkingPass.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "passes": [serialize_pass(p) for p in passes],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit) if total else 0,
        },
    }


def get_pass(db: Session, pass_id: int) -> ParkingPass | None:
    """Load a live pass and record the view."""
    parking_pass = _base_query(db).filter(ParkingPass.id == pass_id).first()
    if not parking_pass:
        return None
    parking_pass.view_count = (parking_pass.view_count or 0) + 1
    parking_pass.last_viewed_at = utcnow()
    db.commit()
    return parking_pass


def lookup_pass(db: Session, confirmation_code: str, license_plate: str) -> ParkingPass | None:
    """Public self-service lookup: code prefix AND plate must both match."""
    code = (confirmation_code or "").strip().lower()
    normalized = normalize_license_plate(license_plate)
    if len(code) < 6 or not normalized:
        return None
    return (
        _base_query(db)
        .filter(
            ParkingPass.confirmation_code.startswith(code),
            ParkingPass.vehicle.has(Vehicle.normalized_plate == normalized),
        )
        .order_by(ParkingPass.end_time.desc())
        .first()
    )


# ── Mutations ────────────────────────────────────────────────────────


def update_pass(
    db: Session, pass_id: int, changes: dict, user: User, request: Request | None = None
) -> dict:
    parking_pass = _base_query(db).filter(ParkingPass.id == pass_id).first()
    if not parking_pass:
        return {"error": "Pass not found", "status": 404}

    for key in ("status", "visitor_name", "visitor_phone", "visitor_email"):
        if key in changes:
            setattr(parking_pass, key, changes[key])

    log_action(
        db, "UPDATE", "ParkingPass", pass_id, user_id=user.id,
        details={"changes": changes}, request=request,
    )
    db.commit()
    db.refresh(parking_pass)
    log.info("Pass %s updated by %s: %s", pass_id, user.email, sorted(changes))
    return {"pass": serialize_pass(parking_pass)}


def delete_pass(
    db: Session, pass_id: int, reason: str | None, user: User, request: Request | None = None
) -> dict:
    parking_pass = _base_query(db).filter(ParkingPass.id == pass_id).first()
    if not parking_pass:
        return {"error": "Pass not found", "status": 404}

    reason = reason or "Deleted by administrator"
    parking_pass.deleted_at = utcnow()
    parking_pass.deleted_by = user.id
    parking_pass.deletion_reason = reason
    parking_pass.status = "CANCELLED"
    log_action(
        db, "DELETE", "ParkingPass", pass_id, user_id=user.id,
        details={"reason": reason}, request=request,
    )
    db.commit()
    log.info("Pass %s soft-deleted by %s (%s)", pass_id, user.email, reason)
    return {"success": True}


def extend_pass(
    db: Session,
    pass_id: int,
    additional_hours: int,
    user: User | None = None,
    request: Request | None = None,
    now: datetime | None = None,
) -> dict:
    parking_pass = _base_query(db).filter(ParkingPass.id == pass_id).first()
    if not parking_pass:
        return {"error": "Pass not found", "status": 404}

    result = validate_pass_extension(db, pass_id, additional_hours, now=now)
    if not result.is_valid:
        body = result.to_dict()
        return {
            "error": "Extension validation failed",
            "errors": body["errors"],
            "warnings": body["warnings"],
            "status": 400,
        }

    previous_end = ensure_utc(parking_pass.end_time)
    new_end = extend_pass_end_time(previous_end, additional_hours)
    parking_pass.end_time = new_end
    parking_pass.extension_count = (parking_pass.extension_count or 0) + 1
    parking_pass.last_extended_at = now or utcnow()
    parking_pass.status = "EXTENDED"
    parking_pass.expiration_warning_sent = False

    log_action(
        db, "EXTEND_PASS", "ParkingPass", pass_id,
        user_id=user.id if user else None,
        details={
            "previous_end_time": previous_end.isoformat(),
            "new_end_time": new_end.isoformat(),
            "additional_hours": additional_hours,
            "extension_count": parking_pass.extension_count,
        },
        request=request,
    )
    db.commit()
    db.refresh(parking_pass)
    log.info("Pass %s extended by %dh to %s", pass_id, additional_hours, new_end.isoformat())
    return {
        "pass": serialize_pass(parking_pass),
        "previous_end_time": previous_end.isoformat(),
        "new_end_time": new_end.isoformat(),
        "warnings": result.to_dict()["warnings"],
    }


# ── Background sweeps ────────────────────────────────────────────────


def expire_passes(db: Session, now: datetime | None = None) -> int:
    """Mark ACTIVE/EXTENDED passes whose end time has passed as EXPIRED."""
    now = ensure_utc(now) if now else datetime.now(timezone.utc)
    stale = (
        db.query(ParkingPass)
        .filter(
            ParkingPass.status.in_(LIVE_PASS_STATUSES),
            ParkingPass.end_time <= now,
            ParkingPass.deleted_at.is_(None),
        )
        .all()
    )
    for p in stale:
        p.status = "EXPIRED"
    if stale:
        db.commit()
        log.info("Expired %d parking passes", len(stale))
    return len(stale)


def passes_needing_expiration_warning(
    db: Session, warning_minutes: int, now: datetime | None = None
) -> list[ParkingPass]:
    now = ensure_utc(now) if now else datetime.now(timezone.utc)
    return (
        _base_query(db)
        .filter(
            ParkingPass.status.in_(LIVE_PASS_STATUSES),
            ParkingPass.end_time > now,
            ParkingPass.end_time <= now + timedelta(minutes=warning_minutes),
            ParkingPass.expiration_warning_sent.is_(False),
            ParkingPass.visitor_email.isnot(None),
        )
        .all()
    )
