"""Settings API — buildings, parking rules, zones. Reads need login, writes need admin."""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_admin, require_user
from ..models import User
from ..services import settings_service

router = APIRouter(tags=["settings"])


# ── Schemas ──────────────────────────────────────────────────────────


class BuildingUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    slug: str | None = Field(None, min_length=1, max_length=100, pattern=r"^[a-z0-9-]+$")
    address: str | None = Field(None, min_length=1, max_length=255)
    contact_email: EmailStr | None = None
    contact_phone: str | None = Field(None, max_length=50)
    emergency_phone: str | None = Field(None, max_length=50)
    timezone: str | None = Field(None, max_length=64)
    is_active: bool | None = None

    @field_validator("timezone")
    @classmethod
    def known_timezone(cls, v: str | None) -> str | None:
        if v is None:
            return v
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v


class ParkingRulesUpdate(BaseModel):
    max_vehicles_per_unit: int | None = Field(None, ge=1, le=10)
    max_consecutive_hours: int | None = Field(None, ge=1, le=168)
    cooldown_hours: int | None = Field(None, ge=0, le=48)
    max_extensions: int | None = Field(None, ge=0, le=5)
    extension_max_hours: int | None = Field(None, ge=1, le=24)
    require_unit_confirmation: bool | None = None
    operating_start_hour: int | None = Field(None, ge=0, le=23)
    operating_end_hour: int | None = Field(None, ge=0, le=23)
    allowed_durations: list[int] | None = Field(None, min_length=1)
    grace_period_minutes: int | None = Field(None, ge=0, le=60)
    allow_emergency_override: bool | None = None

    @field_validator("allowed_durations")
    @classmethod
    def positive_durations(cls, v: list[int] | None) -> list[int] | None:
        if v is None:
            return v
        if any(d < 1 for d in v):
            raise ValueError("Durations must be positive hours")
        return sorted(set(v))


class ZoneCreate(BaseModel):
    building_id: int
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=20)
    description: str | None = None
    total_spots: int | None = Field(None, ge=0)
    is_emergency_zone: bool = False
    requires_approval: bool = False


def _unwrap(result: dict) -> dict:
    if "error" in result:
        raise HTTPException(result["status"], result["error"])
    return result


# ── Buildings ────────────────────────────────────────────────────────


@router.get("/api/settings/buildings")
def get_buildings(
    id: int | None = None,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    if id is not None:
        return _unwrap(settings_service.get_building(db, id))
    return settings_service.list_buildings(db)


@router.patch("/api/settings/buildings/{building_id}")
def update_building(
    building_id: int,
    body: BuildingUpdate,
    request: Request,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    # Nulls on required columns mean "leave alone"
    changes = {
        k: v for k, v in body.model_dump(exclude_unset=True).items()
        if v is not None or k in ("contact_email", "contact_phone", "emergency_phone")
    }
    if not changes:
        raise HTTPException(400, "No changes provided")
    return _unwrap(settings_service.update_building(db, building_id, changes, user, request))


# ── Parking rules ────────────────────────────────────────────────────


@router.get("/api/settings/parking-rules")
def get_parking_rules(
    building_id: int = Query(...),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    return settings_service.get_parking_rules(db, building_id)


@router.patch("/api/settings/parking-rules")
def update_parking_rules(
    body: ParkingRulesUpdate,
    request: Request,
    building_id: int = Query(...),
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    changes = {
        k: v for k, v in body.model_dump(exclude_unset=True).items()
        if v is not None or k in ("operating_start_hour", "operating_end_hour")
    }
    return _unwrap(
        settings_service.upsert_parking_rules(db, building_id, changes, user, request)
    )


# ── Zones ────────────────────────────────────────────────────────────


@router.get("/api/settings/zones")
def list_zones(
    building_id: int = Query(...),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    return settings_service.list_zones(db, building_id)


@router.post("/api/settings/zones", status_code=201)
def create_zone(
    body: ZoneCreate,
    request: Request,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _unwrap(settings_service.create_zone(db, body.model_dump(), user, request))
