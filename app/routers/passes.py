"""
routers/passes.py — Parking pass API

Public: registration, self-service lookup, pass detail, extension.
Staff: listing (view_all or view_own), edit, soft delete.

Business Rules:
- Registration and lookup are rate limited per client IP
- Validation failures return 400 with the RuleViolationResponse body
- Confirmation email goes out as a background task after the response
- Residents listing passes see only their own unit's passes

Called by: main.py (router mount)
Depends on: services/pass_service, services/notification_service, dependencies
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..dependencies import get_user, require_permission
from ..models import User
from ..rate_limit import limiter
from ..schemas.errors import RuleViolationResponse
from ..schemas.passes import PassCreate, PassExtend, PassUpdate
from ..services import pass_service
from ..services.notification_service import notify_pass_created

router = APIRouter(tags=["passes"])
log = logging.getLogger(__name__)


def _error_response(result: dict, request: Request):
    """Business-rule failures carry errors/warnings; plain ones raise."""
    if "errors" in result:
        body = RuleViolationResponse(
            error=result["error"],
            status_code=result["status"],
            request_id=getattr(request.state, "request_id", ""),
            errors=result["errors"],
            warnings=result["warnings"],
        )
        return JSONResponse(body.model_dump(exclude_none=True), status_code=result["status"])
    raise HTTPException(result["status"], result["error"])


@router.post("/api/passes", status_code=201)
@limiter.limit(settings.rate_limit_registration)
def create_pass(
    request: Request,
    body: PassCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    result = pass_service.register_pass(db, body.model_dump(), request)
    if "error" in result:
        return _error_response(result, request)
    if body.visitor_email:
        background_tasks.add_task(notify_pass_created, result["pass"]["id"])
    return result


@router.get("/api/passes")
def list_passes(
    status: str | None = None,
    building_id: int | None = None,
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(pass_service.DEFAULT_PAGE_SIZE, ge=1, le=pass_service.MAX_PAGE_SIZE),
    user: User = Depends(require_permission("passes:view_all", "passes:view_own")),
    db: Session = Depends(get_db),
):
    return pass_service.list_passes(
        db, user, status=status, building_id=building_id, search=search,
        page=page, limit=limit,
    )


@router.get("/api/passes/lookup")
@limiter.limit(settings.rate_limit_pass_lookup)
def lookup_pass(
    request: Request,
    confirmation_code: str = Query(..., min_length=6, max_length=40),
    license_plate: str = Query(..., min_length=2, max_length=12),
    db: Session = Depends(get_db),
):
    parking_pass = pass_service.lookup_pass(db, confirmation_code, license_plate)
    if not parking_pass:
        raise HTTPException(404, "Pass not found")
    data = pass_service.serialize_pass(parking_pass)
    data["confirmation_code"] = pass_service.short_code(parking_pass.confirmation_code)
    return {"pass": data}


@router.post("/api/passes/extend")
def extend_pass(body: PassExtend, request: Request, db: Session = Depends(get_db)):
    user = get_user(request, db)
    result = pass_service.extend_pass(
        db, body.pass_id, body.additional_hours, user=user, request=request
    )
    if "error" in result:
        return _error_response(result, request)
    return result


@router.get("/api/passes/{pass_id}")
def get_pass(pass_id: int, db: Session = Depends(get_db)):
    parking_pass = pass_service.get_pass(db, pass_id)
    if not parking_pass:
        raise HTTPException(404, "Pass not found")
    return {"pass": pass_service.serialize_pass(parking_pass)}


@router.patch("/api/passes/{pass_id}")
def update_pass(
    pass_id: int,
    body: PassUpdate,
    request: Request,
    user: User = Depends(require_permission("passes:update")),
    db: Session = Depends(get_db),
):
    # status is required; the visitor contact fields may be cleared
    changes = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None or k != "status"}
    if not changes:
        raise HTTPException(400, "No changes provided")
    result = pass_service.update_pass(db, pass_id, changes, user, request)
    if "error" in result:
        return _error_response(result, request)
    return result


@router.delete("/api/passes/{pass_id}")
def delete_pass(
    pass_id: int,
    request: Request,
    reason: str | None = Query(None, max_length=500),
    user: User = Depends(require_permission("passes:delete")),
    db: Session = Depends(get_db),
):
    result = pass_service.delete_pass(db, pass_id, reason, user, request)
    if "error" in result:
        return _error_response(result, request)
    return result
