"""Health API — deep status check for uptime monitors and the admin health page."""

import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..database import get_db
from ..services.health_service import check_health

router = APIRouter(tags=["health"])


@router.get("/api/health")
def health(db: Session = Depends(get_db)):
    started = time.monotonic()
    result = check_health(db, started)
    return JSONResponse(result, status_code=503 if result["status"] == "critical" else 200)
