"""QR code API — PNG/SVG/printable codes for building and zone registration links."""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse, Response
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_permission
from ..models import Building, ParkingZone, User
from ..utils.qr_code import (
    build_registration_url,
    generate_printable_qr_code,
    generate_qr_code_png,
    generate_qr_code_svg,
)

router = APIRouter(tags=["qr"])


def _resolve(db: Session, slug: str, zone: str | None) -> tuple[Building, ParkingZone | None]:
    building = (
        db.query(Building)
        .filter(Building.slug == slug, Building.deleted_at.is_(None))
        .first()
    )
    if not building:
        raise HTTPException(404, "Building not found")
    parking_zone = None
    if zone:
        parking_zone = (
            db.query(ParkingZone)
            .filter(
                ParkingZone.building_id == building.id,
                ParkingZone.code == zone.upper(),
                ParkingZone.deleted_at.is_(None),
            )
            .first()
        )
        if not parking_zone:
            raise HTTPException(404, "Zone not found")
    return building, parking_zone


@router.get("/api/qr/{slug}.png")
def qr_png(
    slug: str,
    zone: str | None = None,
    size: int | None = None,
    user: User = Depends(require_permission("settings:view")),
    db: Session = Depends(get_db),
):
    building, parking_zone = _resolve(db, slug, zone)
    url = build_registration_url(building.slug, parking_zone.code if parking_zone else None)
    options = {"width": max(100, min(size, 2000))} if size else None
    return Response(content=generate_qr_code_png(url, options), media_type="image/png")


@router.get("/api/qr/{slug}.svg")
def qr_svg(
    slug: str,
    zone: str | None = None,
    user: User = Depends(require_permission("settings:view")),
    db: Session = Depends(get_db),
):
    building, parking_zone = _resolve(db, slug, zone)
    url = build_registration_url(building.slug, parking_zone.code if parking_zone else None)
    return Response(content=generate_qr_code_svg(url), media_type="image/svg+xml")


@router.get("/api/qr/{slug}/printable", response_class=HTMLResponse)
def qr_printable(
    slug: str,
    zone: str,
    user: User = Depends(require_permission("settings:view")),
    db: Session = Depends(get_db),
):
    building, parking_zone = _resolve(db, slug, zone)
    return HTMLResponse(
        generate_printable_qr_code(building.name, parking_zone.name, building.slug, parking_zone.code)
    )
