"""
settings_service.py — Building, parking-rule, and zone configuration

Business Rules:
- Parking rules are one row per building; PATCH upserts
- Unset fields keep their current (or column default) values
- Zone codes are stored upper-case and unique per building
- Every change is audited as SETTING_CHANGE

Called by: routers/settings.py, startup.py
Depends on: models, services/audit_service
"""

import logging

from fastapi import Request
from sqlalchemy.orm import Session

from ..models import Building, ParkingRule, ParkingZone, User
from ..models.building import DEFAULT_ALLOWED_DURATIONS
from .audit_service import log_action

log = logging.getLogger(__name__)

RULE_FIELDS = (
    "max_vehicles_per_unit",
    "max_consecutive_hours",
    "cooldown_hours",
    "max_extensions",
    "extension_max_hours",
    "require_unit_confirmation",
    "operating_start_hour",
    "operating_end_hour",
    "allowed_durations",
    "grace_period_minutes",
    "allow_emergency_override",
)


def _iso(dt):
    return dt.isoformat() if dt else None


def serialize_building(b: Building) -> dict:
    return {
        "id": b.id,
        "name": b.name,
        "slug": b.slug,
        "address": b.address,
        "city": b.city,
        "state": b.state,
        "zip_code": b.zip_code,
        "contact_email": b.contact_email,
        "contact_phone": b.contact_phone,
        "emergency_phone": b.emergency_phone,
        "timezone": b.timezone,
        "is_active": b.is_active,
        "created_at": _iso(b.created_at),
    }


def serialize_rules(r: ParkingRule | None) -> dict | None:
    if r is None:
        return None
    data = {"id": r.id, "building_id": r.building_id}
    data.update({f: getattr(r, f) for f in RULE_FIELDS})
    return data


def serialize_zone(z: ParkingZone) -> dict:
    return {
        "id": z.id,
        "building_id": z.building_id,
        "name": z.name,
        "code": z.code,
        "description": z.description,
        "total_spots": z.total_spots,
        "is_emergency_zone": z.is_emergency_zone,
        "requires_approval": z.requires_approval,
        "is_active": z.is_active,
    }


def _live_building(db: Session, building_id: int) -> Building | None:
    return (
        db.query(Building)
        .filter(Building.id == building_id, Building.deleted_at.is_(None))
        .first()
    )


# ── Buildings ────────────────────────────────────────────────────────


def list_buildings(db: Session) -> dict:
    buildings = (
        db.query(Building).filter(Building.deleted_at.is_(None)).order_by(Building.name).all()
    )
    return {"buildings": [serialize_building(b) for b in buildings]}


def get_building(db: Session, building_id: int) -> dict:
    building = _live_building(db, building_id)
    if not building:
        return {"error": "Building not found", "status": 404}
    return {
        "building": serialize_building(building),
        "parking_rules": serialize_rules(building.parking_rules),
    }


def update_building(
    db: Session, building_id: int, changes: dict, user: User, request: Request | None = None
) -> dict:
    building = _live_building(db, building_id)
    if not building:
        return {"error": "Building not found", "status": 404}

    if changes.get("slug") and changes["slug"] != building.slug:
        taken = db.query(Building).filter(Building.slug == changes["slug"]).first()
        if taken:
            return {"error": "Slug already in use", "status": 409}

    for key, value in changes.items():
        setattr(building, key, value)
    log_action(
        db, "SETTING_CHANGE", "Building", building.id, user_id=user.id,
        details=changes, request=request,
    )
    db.commit()
    db.refresh(building)
    log.info("Building %s updated by %s: %s", building.slug, user.email, sorted(changes))
    return {"building": serialize_building(building)}


# ── Parking rules ────────────────────────────────────────────────────


def get_parking_rules(db: Session, building_id: int) -> dict:
    rules = db.query(ParkingRule).filter(ParkingRule.building_id == building_id).first()
    return {"parking_rules": serialize_rules(rules)}


def upsert_parking_rules(
    db: Session, building_id: int, changes: dict, user: User, request: Request | None = None
) -> dict:
    if not _live_building(db, building_id):
        return {"error": "Building not found", "status": 404}

    rules = db.query(ParkingRule).filter(ParkingRule.building_id == building_id).first()
    if rules is None:
        rules = ParkingRule(building_id=building_id)
        db.add(rules)
    for key, value in changes.items():
        setattr(rules, key, value)
    db.flush()

    log_action(
        db, "SETTING_CHANGE", "ParkingRule", rules.id, user_id=user.id,
        details={"building_id": building_id, "changes": changes}, request=request,
    )
    db.commit()
    db.refresh(rules)
    log.info("Parking rules for building %s updated by %s", building_id, user.email)
    return {"parking_rules": serialize_rules(rules)}


def ensure_default_rules(db: Session) -> int:
    """Create default parking rules for any building that has none."""
    missing = (
        db.query(Building)
        .outerjoin(ParkingRule, ParkingRule.building_id == Building.id)
        .filter(ParkingRule.id.is_(None), Building.deleted_at.is_(None))
        .all()
    )
    for building in missing:
        db.add(ParkingRule(
            building_id=building.id, allowed_durations=list(DEFAULT_ALLOWED_DURATIONS)
        ))
    if missing:
        db.commit()
        log.info("Created default parking rules for %d buildings", len(missing))
    return len(missing)


# ── Zones ────────────────────────────────────────────────────────────


def list_zones(db: Session, building_id: int) -> dict:
    zones = (
        db.query(ParkingZone)
        .filter(ParkingZone.building_id == building_id, ParkingZone.deleted_at.is_(None))
        .order_by(ParkingZone.code)
        .all()
    )
    return {"zones": [serialize_zone(z) for z in zones]}


def create_zone(db: Session, data: dict, user: User, request: Request | None = None) -> dict:
    if not _live_building(db, data["building_id"]):
        return {"error": "Building not found", "status": 404}
    code = data["code"].strip().upper()
    exists = (
        db.query(ParkingZone)
        .filter(ParkingZone.building_id == data["building_id"], ParkingZone.code == code)
        .first()
    )
    if exists:
        return {"error": "A zone with this code already exists in the building", "status": 409}

    zone = ParkingZone(**{**data, "code": code})
    db.add(zone)
    db.flush()
    log_action(
        db, "SETTING_CHANGE", "ParkingZone", zone.id, user_id=user.id,
        details={"building_id": zone.building_id, "code": code, "name": zone.name},
        request=request,
    )
    db.commit()
    db.refresh(zone)
    return {"zone": serialize_zone(zone)}
