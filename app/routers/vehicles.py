"""Vehicles API — search, blacklist toggle, detail edits."""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_permission
from ..models import User
from ..schemas.violations import VehicleUpdate
from ..services import vehicle_service

router = APIRouter(tags=["vehicles"])


@router.get("/api/vehicles")
def list_vehicles(
    search: str | None = None,
    blacklisted: bool | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(require_permission("vehicles:view")),
    db: Session = Depends(get_db),
):
    return vehicle_service.list_vehicles(
        db, search=search, blacklisted=blacklisted, page=page, limit=limit
    )


@router.patch("/api/vehicles/{vehicle_id}")
def update_vehicle(
    vehicle_id: int,
    body: VehicleUpdate,
    request: Request,
    user: User = Depends(require_permission("vehicles:blacklist")),
    db: Session = Depends(get_db),
):
    changes = body.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(400, "No changes provided")
    result = vehicle_service.update_vehicle(db, vehicle_id, changes, user, request)
    if "error" in result:
        raise HTTPException(result["status"], result["error"])
    return result
