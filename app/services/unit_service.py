"""
unit_service.py — Units (apartments / wings) per building

Business Rules:
- Public listing only shows active units of an active building, ordered
  by floor then unit number
- Unit numbers are unique per building (soft-deleted rows still count)
- Delete is soft (deleted_at)
- Every write is audited: CREATE / UPDATE / DELETE on entity "Unit"

Called by: routers/units.py
Depends on: models, services/audit_service
"""

import logging

from fastapi import Request
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from ..database import utcnow
from ..models import Building, ParkingPass, Resident, Unit, User
from .audit_service import log_action

log = logging.getLogger(__name__)

DUPLICATE_UNIT = "A unit with this number already exists in the building"


def public_units(db: Session, building_slug: str) -> dict:
    building = (
        db.query(Building)
        .filter(
            Building.slug == building_slug,
            Building.is_active.is_(True),
            Building.deleted_at.is_(None),
        )
        .first()
    )
    if not building:
        return {"error": "Building not found", "status": 404}

    units = (
        db.query(Unit)
        .filter(
            Unit.building_id == building.id,
            Unit.is_active.is_(True),
            Unit.deleted_at.is_(None),
        )
        .order_by(Unit.floor.asc(), Unit.unit_number.asc())
        .all()
    )
    return {
        "units": [
            {"id": u.id, "unit_number": u.unit_number, "floor": u.floor, "section": u.section}
            for u in units
        ],
        "building": {"id": building.id, "name": building.name},
    }


def serialize_unit(u: Unit, pass_count: int | None = None, resident_count: int | None = None) -> dict:
    data = {
        "id": u.id,
        "unit_number": u.unit_number,
        "floor": u.floor,
        "section": u.section,
        "primary_phone": u.primary_phone,
        "primary_email": u.primary_email,
        "is_occupied": u.is_occupied,
        "is_active": u.is_active,
        "building": {"id": u.building.id, "name": u.building.name} if u.building else None,
    }
    if pass_count is not None:
        data["counts"] = {"passes": pass_count, "residents": resident_count or 0}
    return data


def list_units(db: Session, building_id: int | None = None, search: str | None = None) -> dict:
    q = (
        db.query(Unit)
        .options(joinedload(Unit.building))
        .join(Building, Unit.building_id == Building.id)
        .filter(Unit.deleted_at.is_(None))
    )
    if building_id:
        q = q.filter(Unit.building_id == building_id)
    if search:
        term = f"%{search.strip().lower()}%"
        q = q.filter(
            or_(
                func.lower(Unit.unit_number).like(term),
                func.lower(Unit.section).like(term),
                func.lower(Unit.primary_email).like(term),
            )
        )
    units = q.order_by(Building.name.asc(), Unit.unit_number.asc()).all()

    ids = [u.id for u in units]
    pass_counts, resident_counts = {}, {}
    if ids:
        pass_counts = dict(
            db.query(ParkingPass.unit_id, func.count(ParkingPass.id))
            .filter(ParkingPass.unit_id.in_(ids))
            .group_by(ParkingPass.unit_id)
            .all()
        )
        resident_counts = dict(
            db.query(Resident.unit_id, func.count(Resident.id))
            .filter(Resident.unit_id.in_(ids))
            .group_by(Resident.unit_id)
            .all()
        )

    buildings = (
        db.query(Building)
        .filter(Building.deleted_at.is_(None), Building.is_active.is_(True))
        .order_by(Building.name)
        .all()
    )
    return {
        "units": [
            serialize_unit(u, pass_counts.get(u.id, 0), resident_counts.get(u.id, 0))
            for u in units
        ],
        "buildings": [{"id": b.id, "name": b.name, "slug": b.slug} for b in buildings],
    }


def _unit_number_taken(db: Session, building_id: int, unit_number: str, exclude_id: int | None = None) -> bool:
    q = db.query(Unit).filter(Unit.building_id == building_id, Unit.unit_number == unit_number)
    if exclude_id:
        q = q.filter(Unit.id != exclude_id)
    return db.query(q.exists()).scalar()


def create_unit(db: Session, data: dict, user: User, request: Request | None = None) -> dict:
    building = db.get(Building, data["building_id"])
    if not building or building.deleted_at is not None:
        return {"error": "Building not found", "status": 404}
    if _unit_number_taken(db, building.id, data["unit_number"]):
        return {"error": DUPLICATE_UNIT, "status": 400}

    unit = Unit(
        building_id=building.id,
        unit_number=data["unit_number"],
        floor=data.get("floor"),
        section=data.get("section"),
        primary_phone=data.get("primary_phone"),
        primary_email=data.get("primary_email") or None,
        is_occupied=data.get("is_occupied", True),
        is_active=data.get("is_active", True),
    )
    db.add(unit)
    db.flush()
    log_action(
        db, "CREATE", "Unit", unit.id, user_id=user.id,
        details={"unit_number": unit.unit_number, "building_id": building.id},
        request=request,
    )
    db.commit()
    db.refresh(unit)
    log.info("Unit %s created in building %s by %s", unit.unit_number, building.slug, user.email)
    return {"unit": serialize_unit(unit)}


def update_unit(
    db: Session, unit_id: int, changes: dict, user: User, request: Request | None = None
) -> dict:
    unit = db.query(Unit).filter(Unit.id == unit_id, Unit.deleted_at.is_(None)).first()
    if not unit:
        return {"error": "Unit not found", "status": 404}

    building_id = changes.get("building_id") or unit.building_id
    new_number = changes.get("unit_number")
    if (new_number and new_number != unit.unit_number) or building_id != unit.building_id:
        if _unit_number_taken(db, building_id, new_number or unit.unit_number, exclude_id=unit.id):
            return {"error": DUPLICATE_UNIT, "status": 400}

    if "primary_email" in changes:
        changes["primary_email"] = changes["primary_email"] or None
    required = ("unit_number", "building_id", "is_occupied", "is_active")
    changes = {k: v for k, v in changes.items() if v is not None or k not in required}
    for key, value in changes.items():
        setattr(unit, key, value)

    log_action(
        db, "UPDATE", "Unit", unit.id, user_id=user.id,
        details={"changes": changes}, request=request,
    )
    db.commit()
    db.refresh(unit)
    return {"unit": serialize_unit(unit)}


def delete_unit(db: Session, unit_id: int, user: User, request: Request | None = None) -> dict:
    unit = db.query(Unit).filter(Unit.id == unit_id, Unit.deleted_at.is_(None)).first()
    if not unit:
        return {"error": "Unit not found", "status": 404}
    unit.deleted_at = utcnow()
    log_action(
        db, "DELETE", "Unit", unit.id, user_id=user.id,
        details={"unit_number": unit.unit_number}, request=request,
    )
    db.commit()
    log.info("Unit %s soft-deleted by %s", unit.unit_number, user.email)
    return {"success": True}
