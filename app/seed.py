"""
seed.py — Demo data for a fresh install (idempotent)

Creates the hospital building, its parking rules and zones, 30 units, an
admin / manager / resident login, and one vehicle with an active pass.
Every step looks the row up first, so re-running changes nothing.

Called by: scripts/seed_db.py
Depends on: models, services/auth_service (password hashing)
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from .models import (
    Base,
    Building,
    BuildingManager,
    ParkingPass,
    ParkingRule,
    ParkingZone,
    Resident,
    Unit,
    User,
    Vehicle,
)
from .services.auth_service import hash_password
from .utils.license_plate import normalize_license_plate

log = logging.getLogger(__name__)

BUILDING_SLUG = "alina-visitor-parking"
SEED_DURATIONS = [2, 4, 8, 12, 24, 48, 72]

ZONES = [
    ("MAIN", "Main Visitor Lot", "Primary visitor parking area", 50, False),
    ("EMERG", "Emergency Parking", "Emergency vehicle parking only", 10, True),
    ("NORTH", "North Wing Visitor Parking", "Visitor parking for North Wing", 30, False),
]

FLOOR_SECTIONS = {1: "Ground", 2: "Second", 3: "Third"}

USERS = [
    ("admin@alinahospital.com", "System Administrator", "SUPER_ADMIN", "Admin@123!"),
    ("manager@alinahospital.com", "Parking Manager", "MANAGER", "Manager@123!"),
    ("resident@example.com", "John Doe", "RESIDENT", "Resident@123!"),
]


def _get_or_create(db: Session, model, defaults: dict | None = None, **lookup):
    row = db.query(model).filter_by(**lookup).first()
    if row:
        return row, False
    row = model(**lookup, **(defaults or {}))
    db.add(row)
    db.flush()
    return row, True


def seed_database(db: Session, now: datetime | None = None) -> dict:
    now = now or datetime.now(timezone.utc)
    created: dict[str, int] = {}

    def _count(key: str, was_created: bool) -> None:
        if was_created:
            created[key] = created.get(key, 0) + 1

    building, new = _get_or_create(
        db, Building, slug=BUILDING_SLUG,
        defaults={
            "name": "Alina Visitor Parking",
            "address": "123 Hospital Drive, Healthcare City, HC 12345",
            "contact_email": "parking@alinahospital.com",
            "contact_phone": "(555) 123-4567",
            "emergency_phone": "(555) 911-0000",
            "timezone": "America/New_York",
        },
    )
    _count("buildings", new)

    _, new = _get_or_create(
        db, ParkingRule, building_id=building.id,
        defaults={"allowed_durations": list(SEED_DURATIONS)},
    )
    _count("parking_rules", new)

    for code, name, description, spots, emergency in ZONES:
        _, new = _get_or_create(
            db, ParkingZone, building_id=building.id, code=code,
            defaults={
                "name": name,
                "description": description,
                "total_spots": spots,
                "is_emergency_zone": emergency,
            },
        )
        _count("zones", new)

    units = {}
    for floor, section in FLOOR_SECTIONS.items():
        for num in range(1, 11):
            unit_number = f"{floor}{num:02d}"
            unit, new = _get_or_create(
                db, Unit, building_id=building.id, unit_number=unit_number,
                defaults={"floor": floor, "section": section},
            )
            units[unit_number] = unit
            _count("units", new)

    users = {}
    for email, name, role, password in USERS:
        user, new = _get_or_create(
            db, User, email=email,
            defaults={"name": name, "role": role, "password_hash": hash_password(password)},
        )
        users[role] = user
        _count("users", new)

    _get_or_create(db, BuildingManager, user_id=users["MANAGER"].id, building_id=building.id)

    resident_user = users["RESIDENT"]
    _get_or_create(
        db, Resident, user_id=resident_user.id,
        defaults={
            "unit_id": units["101"].id,
            "name": resident_user.name,
            "email": resident_user.email,
            "is_primary": True,
        },
    )

    vehicle, new = _get_or_create(
        db, Vehicle, normalized_plate=normalize_license_plate("ABC 123"),
        defaults={
            "license_plate": "ABC 123",
            "make": "Toyota",
            "model": "Camry",
            "color": "Silver",
            "state": "NY",
        },
    )
    _count("vehicles", new)
    if new:
        end_time = now + timedelta(hours=4)
        db.add(ParkingPass(
            vehicle_id=vehicle.id,
            unit_id=units["101"].id,
            start_time=now,
            end_time=end_time,
            original_end_time=end_time,
            duration=4,
            status="ACTIVE",
            visitor_name="Jane Smith",
            visitor_phone="(555) 345-6789",
            registered_via="ADMIN",
        ))
        _count("passes", True)

    db.commit()
    log.info("Seed complete: %s", created or "nothing new")
    return created


def reset_database(engine) -> None:
    """Drop and recreate every table. Destroys all data."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    log.warning("Database reset: all tables dropped and recreated")
