"""
routers/units.py — Unit listing (public) and management

Business Rules:
- GET /api/units is public so the registration form can list units
- /api/units/manage reads need units:view, writes need units:manage

Called by: main.py (router mount)
Depends on: services/unit_service, dependencies
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_permission
from ..models import User
from ..services import unit_service

router = APIRouter(tags=["units"])


# ── Schemas ──────────────────────────────────────────────────────────


class UnitCreate(BaseModel):
    unit_number: str = Field(..., min_length=1, max_length=20)
    building_id: int
    floor: int | None = None
    section: str | None = Field(None, max_length=50)
    primary_phone: str | None = Field(None, max_length=50)
    primary_email: EmailStr | None = None
    is_occupied: bool = True
    is_active: bool = True

    @field_validator("primary_email", mode="before")
    @classmethod
    def blank_email_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("unit_number")
    @classmethod
    def strip_number(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Unit number is required")
        return v


class UnitUpdate(BaseModel):
    unit_number: str | None = Field(None, min_length=1, max_length=20)
    building_id: int | None = None
    floor: int | None = None
    section: str | None = Field(None, max_length=50)
    primary_phone: str | None = Field(None, max_length=50)
    primary_email: EmailStr | None = None
    is_occupied: bool | None = None
    is_active: bool | None = None

    @field_validator("primary_email", mode="before")
    @classmethod
    def blank_email_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


# ── Public ───────────────────────────────────────────────────────────


@router.get("/api/units")
def public_units(
    building_slug: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
):
    result = unit_service.public_units(db, building_slug)
    if "error" in result:
        raise HTTPException(result["status"], result["error"])
    return result


# ── Management ───────────────────────────────────────────────────────


@router.get("/api/units/manage")
def list_units(
    building_id: int | None = None,
    search: str | None = None,
    user: User = Depends(require_permission("units:view")),
    db: Session = Depends(get_db),
):
    return unit_service.list_units(db, building_id=building_id, search=search)


@router.post("/api/units/manage", status_code=201)
def create_unit(
    body: UnitCreate,
    request: Request,
    user: User = Depends(require_permission("units:manage")),
    db: Session = Depends(get_db),
):
    result = unit_service.create_unit(db, body.model_dump(), user, request)
    if "error" in result:
        raise HTTPException(result["status"], result["error"])
    return result


@router.patch("/api/units/manage/{unit_id}")
def update_unit(
    unit_id: int,
    body: UnitUpdate,
    request: Request,
    user: User = Depends(require_permission("units:manage")),
    db: Session = Depends(get_db),
):
    changes = body.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(400, "No changes provided")
    result = unit_service.update_unit(db, unit_id, changes, user, request)
    if "error" in result:
        raise HTTPException(result["status"], result["error"])
    return result


@router.delete("/api/units/manage/{unit_id}")
def delete_unit(
    unit_id: int,
    request: Request,
    user: User = Depends(require_permission("units:manage")),
    db: Session = Depends(get_db),
):
    result = unit_service.delete_unit(db, unit_id, user, request)
    if "error" in result:
        raise HTTPException(result["status"], result["error"])
    return result
