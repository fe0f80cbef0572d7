"""
routers/violations.py — Violation logging API

Business Rules:
- Listing needs violations:view; logging needs violations:create
- Editing needs violations:update OR violations:resolve
- The type catalog is readable by anyone who can view violations

Called by: main.py (router mount)
Depends on: services/violation_service, dependencies, constants
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from ..constants import SEVERITIES, VIOLATION_TYPES
from ..database import get_db
from ..dependencies import require_permission
from ..models import User
from ..schemas.violations import ViolationCreate, ViolationUpdate
from ..services import violation_service

router = APIRouter(tags=["violations"])


@router.get("/api/violations")
def list_violations(
    resolved: bool | None = None,
    type: str | None = None,
    severity: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(require_permission("violations:view")),
    db: Session = Depends(get_db),
):
    return violation_service.list_violations(
        db, resolved=resolved, type=type, severity=severity, page=page, limit=limit
    )


@router.get("/api/violations/types")
def violation_types(user: User = Depends(require_permission("violations:view"))):
    return {
        "types": [{"value": key, **meta} for key, meta in VIOLATION_TYPES.items()],
        "severities": list(SEVERITIES),
    }


@router.post("/api/violations", status_code=201)
def create_violation(
    body: ViolationCreate,
    request: Request,
    user: User = Depends(require_permission("violations:create")),
    db: Session = Depends(get_db),
):
    result = violation_service.log_violation(db, body.model_dump(), user, request)
    if "error" in result:
        raise HTTPException(result["status"], result["error"])
    return result


@router.patch("/api/violations/{violation_id}")
def update_violation(
    violation_id: int,
    body: ViolationUpdate,
    request: Request,
    user: User = Depends(require_permission("violations:update", "violations:resolve")),
    db: Session = Depends(get_db),
):
    # Nulls on required columns mean "leave alone"
    changes = {
        k: v for k, v in body.model_dump(exclude_unset=True).items()
        if v is not None or k == "resolution"
    }
    if not changes:
        raise HTTPException(400, "No changes provided")
    result = violation_service.update_violation(db, violation_id, changes, user, request)
    if "error" in result:
        raise HTTPException(result["status"], result["error"])
    return result
