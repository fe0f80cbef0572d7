"""Export API — download passes, violations, vehicles, analytics or audit logs."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ..authorization import is_admin
from ..database import get_db
from ..dependencies import require_user
from ..models import User
from ..services.export_service import EXPORT_FORMATS, EXPORT_TYPES, generate_export, log_export
from ..utils.date_time import ensure_utc

router = APIRouter(tags=["export"])


@router.get("/api/export")
def export(
    request: Request,
    type: str | None = None,
    format: str = "csv",
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    building_id: int | None = None,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    if type not in EXPORT_TYPES:
        raise HTTPException(400, f"Invalid export type. Valid types: {', '.join(EXPORT_TYPES)}")
    if format not in EXPORT_FORMATS:
        raise HTTPException(400, f"Invalid export format. Valid formats: {', '.join(EXPORT_FORMATS)}")
    if type == "audit-logs" and not is_admin(user.role):
        raise HTTPException(403, "Forbidden")

    result = generate_export(
        db,
        type,
        format,
        start=ensure_utc(start_date),
        end=ensure_utc(end_date),
        building_id=building_id,
    )
    log_export(
        db, user, type,
        {
            "format": format,
            "start_date": start_date.isoformat() if start_date else None,
            "end_date": end_date.isoformat() if end_date else None,
            "building_id": building_id,
        },
        request,
    )
    return Response(
        content=result.data,
        media_type=result.mime_type,
        headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
    )
