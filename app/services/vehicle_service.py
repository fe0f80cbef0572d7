"""
vehicle_service.py — Vehicle search and blacklist management

Business Rules:
- Search matches a substring of the normalized plate
- Results are ordered by most recently updated and carry pass/violation counts
- Blacklisting stamps blacklisted_at/by and a reason (default
  "Blacklisted by administrator"); un-blacklisting clears all three
- Only blacklist changes are audited (BLACKLIST_VEHICLE)

Called by: routers/vehicles.py
Depends on: models, services/audit_service, utils/license_plate
"""

import logging
import math

from fastapi import Request
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..database import utcnow
from ..models import ParkingPass, User, Vehicle, Violation
from ..utils.license_plate import normalize_license_plate
from .audit_service import log_action

log = logging.getLogger(__name__)


def serialize_vehicle(v: Vehicle, pass_count: int = 0, violation_total: int = 0) -> dict:
    return {
        "id": v.id,
        "license_plate": v.license_plate,
        "normalized_plate": v.normalized_plate,
        "make": v.make,
        "model": v.model,
        "color": v.color,
        "state": v.state,
        "is_blacklisted": v.is_blacklisted,
        "blacklist_reason": v.blacklist_reason,
        "blacklisted_at": v.blacklisted_at.isoformat() if v.blacklisted_at else None,
        "violation_count": v.violation_count,
        "risk_score": v.risk_score,
        "updated_at": v.updated_at.isoformat() if v.updated_at else None,
        "counts": {"passes": pass_count, "violations": violation_total},
    }


def _counts(db: Session, model, ids: list[int]) -> dict[int, int]:
    if not ids:
        return {}
    rows = (
        db.query(model.vehicle_id, func.count(model.id))
        .filter(model.vehicle_id.in_(ids))
        .group_by(model.vehicle_id)
        .all()
    )
    return dict(rows)


def list_vehicles(
    db: Session,
    search: str | None = None,
    blacklisted: bool | None = None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    q = db.query(Vehicle).filter(Vehicle.deleted_at.is_(None))
    if search:
        q = q.filter(Vehicle.normalized_plate.contains(normalize_license_plate(search)))
    if blacklisted is not None:
        q = q.filter(Vehicle.is_blacklisted.is_(blacklisted))

    total = q.count()
    vehicles = (
        q.order_by(Vehicle.updated_at.desc(), Vehicle.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    ids = [v.id for v in vehicles]
    pass_counts = _counts(db, ParkingPass, ids)
    violation_counts = _counts(db, Violation, ids)
    return {
        "vehicles": [
            serialize_vehicle(v, pass_counts.get(v.id, 0), violation_counts.get(v.id, 0))
            for v in vehicles
        ],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit) if total else 0,
        },
    }


def update_vehicle(
    db: Session, vehicle_id: int, changes: dict, user: User, request: Request | None = None
) -> dict:
    vehicle = (
        db.query(Vehicle)
        .filter(Vehicle.id == vehicle_id, Vehicle.deleted_at.is_(None))
        .first()
    )
    if not vehicle:
        return {"error": "Vehicle not found", "status": 404}

    if "is_blacklisted" in changes and changes["is_blacklisted"] is not None:
        if changes["is_blacklisted"]:
            vehicle.is_blacklisted = True
            vehicle.blacklisted_at = utcnow()
            vehicle.blacklisted_by = user.id
            vehicle.blacklist_reason = (
                changes.get("blacklist_reason") or "Blacklisted by administrator"
            )
        else:
            vehicle.is_blacklisted = False
            vehicle.blacklisted_at = None
            vehicle.blacklisted_by = None
            vehicle.blacklist_reason = None
        log_action(
            db, "BLACKLIST_VEHICLE", "Vehicle", vehicle_id, user_id=user.id,
            details={
                "is_blacklisted": changes["is_blacklisted"],
                "reason": changes.get("blacklist_reason"),
            },
            request=request,
        )
        log.info(
            "Vehicle %s %s by %s",
            vehicle.normalized_plate,
            "blacklisted" if changes["is_blacklisted"] else "un-blacklisted",
            user.email,
        )

    for key in ("make", "model", "color", "state"):
        if key in changes:
            setattr(vehicle, key, changes[key])

    db.commit()
    db.refresh(vehicle)
    return {"vehicle": serialize_vehicle(vehicle)}
