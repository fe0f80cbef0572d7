"""
violation_service.py — Violation logging and resolution

Business Rules:
- The plate must pass format validation (400 otherwise); violations attach
  to a vehicle found (or created) by normalized plate
- Severity defaults to MEDIUM when the officer doesn't pick one
- Each logged violation bumps the vehicle's violation_count and adds to
  risk_score by severity (CRITICAL 25, HIGH 15, MEDIUM 10, LOW 5), capped at 100
- Resolving stamps resolved_at/resolved_by; audit action is
  RESOLVE_VIOLATION when resolving, UPDATE otherwise
- Un-resolving clears resolved_at/resolved_by

Called by: routers/violations.py
Depends on: models, services/pass_service (vehicle lookup), services/audit_service
"""

import logging
import math
from decimal import Decimal

from fastapi import Request
from sqlalchemy.orm import Session, joinedload

from ..constants import MAX_RISK_SCORE, RISK_SCORE_INCREMENTS
from ..database import utcnow
from ..models import User, Violation
from ..utils.license_plate import validate_license_plate
from .audit_service import log_action
from .pass_service import find_or_create_vehicle

log = logging.getLogger(__name__)


def _iso(dt):
    return dt.isoformat() if dt else None


def serialize_violation(v: Violation) -> dict:
    vehicle = v.vehicle
    logger_user = v.logged_by
    return {
        "id": v.id,
        "type": v.type,
        "severity": v.severity,
        "description": v.description,
        "location": v.location,
        "parking_zone_id": v.parking_zone_id,
        "photo_urls": v.photo_urls or [],
        "evidence_notes": v.evidence_notes,
        "citation_number": v.citation_number,
        "fine_amount": float(v.fine_amount) if v.fine_amount is not None else None,
        "is_paid": v.is_paid,
        "is_resolved": v.is_resolved,
        "resolution": v.resolution,
        "resolved_at": _iso(v.resolved_at),
        "resolved_by": v.resolved_by,
        "created_at": _iso(v.created_at),
        "vehicle": {
            "id": vehicle.id,
            "license_plate": vehicle.license_plate,
            "make": vehicle.make,
            "model": vehicle.model,
            "color": vehicle.color,
            "is_blacklisted": vehicle.is_blacklisted,
        } if vehicle else None,
        "logged_by": {
            "id": logger_user.id, "name": logger_user.name, "email": logger_user.email,
        } if logger_user else None,
    }


def list_violations(
    db: Session,
    resolved: bool | None = None,
    type: str | None = None,
    severity: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    q = (
        db.query(Violation)
        .options(joinedload(Violation.vehicle), joinedload(Violation.logged_by))
        .filter(Violation.deleted_at.is_(None))
    )
    if resolved is not None:
        q = q.filter(Violation.is_resolved.is_(resolved))
    if type:
        q = q.filter(Violation.type == type)
    if severity:
        q = q.filter(Violation.severity == severity)

    total = q.count()
    rows = (
        q.order_by(Violation.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "violations": [serialize_violation(v) for v in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit) if total else 0,
        },
    }


def log_violation(db: Session, data: dict, user: User, request: Request | None = None) -> dict:
    ok, message = validate_license_plate(data["license_plate"])
    if not ok:
        return {"error": message, "status": 400}

    vehicle = find_or_create_vehicle(db, data["license_plate"])
    severity = data.get("severity") or "MEDIUM"
    fine = data.get("fine_amount")

    violation = Violation(
        vehicle_id=vehicle.id,
        type=data["type"],
        severity=severity,
        description=data.get("description"),
        location=data.get("location"),
        parking_zone_id=data.get("parking_zone_id"),
        photo_urls=data.get("photo_urls") or [],
        evidence_notes=data.get("evidence_notes"),
        fine_amount=Decimal(str(fine)) if fine is not None else None,
        logged_by_id=user.id,
    )
    db.add(violation)

    vehicle.violation_count = (vehicle.violation_count or 0) + 1
    vehicle.risk_score = min(
        MAX_RISK_SCORE, (vehicle.risk_score or 0) + RISK_SCORE_INCREMENTS[severity]
    )
    db.flush()

    log_action(
        db, "LOG_VIOLATION", "Violation", violation.id, user_id=user.id,
        details={
            "vehicle_id": vehicle.id,
            "license_plate": vehicle.license_plate,
            "type": violation.type,
            "severity": severity,
        },
        request=request,
    )
    db.commit()
    db.refresh(violation)
    log.info(
        "Violation %s logged: %s %s on %s by %s",
        violation.id, severity, violation.type, vehicle.normalized_plate, user.email,
    )
    return {"violation": serialize_violation(violation)}


def update_violation(
    db: Session, violation_id: int, changes: dict, user: User, request: Request | None = None
) -> dict:
    violation = (
        db.query(Violation)
        .filter(Violation.id == violation_id, Violation.deleted_at.is_(None))
        .first()
    )
    if not violation:
        return {"error": "Violation not found", "status": 404}

    if "is_resolved" in changes:
        violation.is_resolved = changes["is_resolved"]
        if changes["is_resolved"]:
            violation.resolved_at = utcnow()
            violation.resolved_by = user.id
        else:
            violation.resolved_at = None
            violation.resolved_by = None
    for key in ("resolution", "is_paid", "severity"):
        if key in changes:
            setattr(violation, key, changes[key])

    action = "RESOLVE_VIOLATION" if changes.get("is_resolved") else "UPDATE"
    log_action(
        db, action, "Violation", violation_id, user_id=user.id,
        details={"changes": changes}, request=request,
    )
    db.commit()
    db.refresh(violation)
    return {"violation": serialize_violation(violation)}
