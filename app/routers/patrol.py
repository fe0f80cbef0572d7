"""Patrol API — plate lookup and offline snapshot for patrol devices."""

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_permission
from ..models import User
from ..services import patrol_service

router = APIRouter(tags=["patrol"])


class LookupRequest(BaseModel):
    license_plate: str = Field(..., min_length=2, max_length=10)


@router.post("/api/patrol/lookup")
def lookup(
    body: LookupRequest,
    request: Request,
    user: User = Depends(require_permission("passes:view_all")),
    db: Session = Depends(get_db),
):
    return patrol_service.lookup_plate(db, body.license_plate, user, request)


@router.get("/api/patrol/sync")
def sync(
    user: User = Depends(require_permission("passes:view_all")),
    db: Session = Depends(get_db),
):
    return patrol_service.sync_snapshot(db)
