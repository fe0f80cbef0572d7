"""
routers/dashboard.py — Dashboard stats, analytics, and server-rendered pages

Pages are plain Jinja2 shells (no styling): the login form, the public
visitor registration form, and the nav-aware dashboard. Access control
for /login and /dashboard* happens in the route guard middleware.

Called by: main.py (router mount)
Depends on: services/analytics_service, services/unit_service, navigation
"""

from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from ..authorization import can_access_route
from ..config import settings
from ..database import get_db
from ..dependencies import get_user, require_permission, require_user
from ..models import Building, ParkingRule, ParkingZone, User
from ..models.building import DEFAULT_ALLOWED_DURATIONS
from ..navigation import get_nav_items_for_role
from ..services import analytics_service
from ..services.unit_service import public_units

router = APIRouter(tags=["dashboard"])
templates = Jinja2Templates(directory=Path(__file__).resolve().parent.parent / "templates" / "pages")

# Section -> API endpoint the page loads its data from
SECTION_ENDPOINTS = {
    "passes": "/api/passes",
    "violations": "/api/violations",
    "units": "/api/units/manage",
    "analytics": "/api/analytics",
    "health": "/api/health",
    "users": "/api/users",
    "settings": "/api/settings/buildings",
}


# ── API ───────────────────────────────────────────────────────────────


@router.get("/api/dashboard/stats")
def dashboard_stats(user: User = Depends(require_user), db: Session = Depends(get_db)):
    return analytics_service.get_dashboard_stats(db)


@router.get("/api/analytics")
def analytics(
    user: User = Depends(require_permission("analytics:view")),
    db: Session = Depends(get_db),
):
    return analytics_service.get_analytics(db)


# ── Pages ─────────────────────────────────────────────────────────────


@router.get("/login", response_class=HTMLResponse)
def login_page(request: Request, callbackUrl: str = "/dashboard"):
    # Only same-site paths are honored as post-login targets
    target = callbackUrl if callbackUrl.startswith("/") and not callbackUrl.startswith("//") else "/dashboard"
    return templates.TemplateResponse(
        request, "login.html", {"app_name": settings.app_name, "callback_url": target}
    )


@router.get("/register/{slug}", response_class=HTMLResponse)
def register_page(request: Request, slug: str, zone: str | None = None, db: Session = Depends(get_db)):
    result = public_units(db, slug)
    if "error" in result:
        raise HTTPException(result["status"], result["error"])
    building = db.get(Building, result["building"]["id"])
    rules = db.query(ParkingRule).filter(ParkingRule.building_id == building.id).first()
    parking_zone = None
    if zone:
        parking_zone = (
            db.query(ParkingZone)
            .filter(
                ParkingZone.building_id == building.id,
                ParkingZone.code == zone.upper(),
                ParkingZone.is_active.is_(True),
                ParkingZone.deleted_at.is_(None),
            )
            .first()
        )
    return templates.TemplateResponse(
        request,
        "register.html",
        {
            "app_name": settings.app_name,
            "building": building,
            "zone": parking_zone,
            "units": result["units"],
            "durations": (rules.allowed_durations if rules else None) or DEFAULT_ALLOWED_DURATIONS,
        },
    )


@router.get("/dashboard", response_class=HTMLResponse)
@router.get("/dashboard/{section}", response_class=HTMLResponse)
def dashboard_page(request: Request, section: str | None = None, error: str | None = None, db: Session = Depends(get_db)):
    user = get_user(request, db)
    if not user:
        raise HTTPException(401, "Unauthorized")
    if section and section not in SECTION_ENDPOINTS:
        raise HTTPException(404, "Page not found")
    path = f"/dashboard/{section}" if section else "/dashboard"
    if not can_access_route(user.role, path):
        raise HTTPException(403, "Forbidden")

    context = {
        "app_name": settings.app_name,
        "user": user,
        "nav_items": get_nav_items_for_role(user.role),
        "current_path": path,
        "section": section,
        "endpoint": SECTION_ENDPOINTS.get(section),
        "error": error,
    }
    if section is None:
        context["stats"] = analytics_service.get_dashboard_stats(db)
    elif section == "analytics":
        context["analytics"] = analytics_service.get_analytics(db)
    return templates.TemplateResponse(request, "dashboard.html", context)
