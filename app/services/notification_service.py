"""
notification_service.py — Outbound email via the Resend HTTP API

Every message is written to notification_queue first, then sent. The row
records the outcome so failed sends can be retried by the scheduler.

Business Rules:
- Row starts PENDING; success -> SENT + sent_at, failure -> FAILED +
  failed_at + error_message; attempts increments either way
- Retries pick up to 10 FAILED email rows with attempts below the cap and
  resend them in place (same row)
- Confirmation codes are shown to visitors as their first 8 chars, upper-case
- Email bodies are Jinja2 templates with autoescaping on
- SMS rows can be queued but nothing delivers them

Called by: routers/passes.py (background task), scheduler.py
Depends on: http_client, models.NotificationQueue, templates/email/*
"""

from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape
from loguru import logger
from sqlalchemy.orm import Session

from ..config import settings
from ..constants import EMAIL_TEMPLATES
from ..database import utcnow
from ..http_client import http
from ..models import NotificationQueue, ParkingPass
from ..utils.date_time import format_display_date
from .pass_service import short_code

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
RETRY_BATCH_SIZE = 10

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)


def render_email(template_key: str, **context) -> str:
    return _env.get_template(EMAIL_TEMPLATES[template_key]).render(**context)


async def _deliver(to: str, subject: str, html: str, text: str | None = None) -> str | None:
    """POST one message to Resend. Returns an error message, or None on success."""
    if not settings.resend_api_key:
        return "Email service not configured"
    payload = {
        "from": settings.notification_from,
        "to": [to],
        "subject": subject,
        "html": html,
    }
    if text:
        payload["text"] = text
    try:
        resp = await http.post(
            settings.resend_api_url,
            json=payload,
            headers={"Authorization": f"Bearer {settings.resend_api_key}"},
            timeout=15,
        )
    except Exception as e:
        return str(e) or e.__class__.__name__
    if resp.status_code >= 400:
        try:
            return resp.json().get("message") or f"HTTP {resp.status_code}"
        except ValueError:
            return f"HTTP {resp.status_code}"
    return None


async def _send_row(db: Session, row: NotificationQueue, text: str | None = None) -> bool:
    error = await _deliver(row.recipient, row.subject or "Notification", row.body, text)
    row.attempts = (row.attempts or 0) + 1
    if error:
        row.status = "FAILED"
        row.failed_at = utcnow()
        row.error_message = error
        db.commit()
        logger.warning("Email to {} failed: {}", row.recipient, error)
        return False
    row.status = "SENT"
    row.sent_at = utcnow()
    row.error_message = None
    db.commit()
    logger.info("Email sent to {}: {}", row.recipient, row.subject)
    return True


async def send_email(
    db: Session,
    to: str,
    subject: str,
    html: str,
    text: str | None = None,
    entity_type: str | None = None,
    entity_id=None,
) -> bool:
    row = NotificationQueue(
        type="EMAIL",
        recipient=to,
        subject=subject,
        body=html,
        status="PENDING",
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
    )
    db.add(row)
    db.commit()
    return await _send_row(db, row, text)


def _pass_context(parking_pass: ParkingPass) -> dict:
    unit = parking_pass.unit
    building = unit.building
    tz = building.timezone
    return {
        "visitor_name": parking_pass.visitor_name or "Visitor",
        "license_plate": parking_pass.vehicle.license_plate,
        "unit_number": unit.unit_number,
        "building_name": building.name,
        "start_time": format_display_date(parking_pass.start_time, tz),
        "end_time": format_display_date(parking_pass.end_time, tz),
        "confirmation_code": short_code(parking_pass.confirmation_code),
    }


async def send_pass_confirmation(db: Session, parking_pass: ParkingPass) -> bool:
    ctx = _pass_context(parking_pass)
    text = (
        "Parking Pass Confirmed\n\n"
        f"Hi {ctx['visitor_name']},\n\n"
        "Your visitor parking pass has been registered successfully.\n\n"
        f"Confirmation Code: {ctx['confirmation_code']}\n\n"
        "Details:\n"
        f"- Vehicle: {ctx['license_plate']}\n"
        f"- Building: {ctx['building_name']}\n"
        f"- Visiting Unit: {ctx['unit_number']}\n"
        f"- Valid From: {ctx['start_time']}\n"
        f"- Valid Until: {ctx['end_time']}\n"
    )
    ok = await send_email(
        db,
        to=parking_pass.visitor_email,
        subject=f"Parking Pass Confirmed - {ctx['license_plate']}",
        html=render_email("PASS_CONFIRMATION", **ctx),
        text=text,
        entity_type="ParkingPass",
        entity_id=parking_pass.id,
    )
    if ok:
        parking_pass.confirmation_sent = True
        db.commit()
    return ok


async def send_pass_expiration_warning(db: Session, parking_pass: ParkingPass) -> bool:
    ctx = _pass_context(parking_pass)
    ok = await send_email(
        db,
        to=parking_pass.visitor_email,
        subject=f"Parking Pass Expiring Soon - {ctx['license_plate']}",
        html=render_email("PASS_EXPIRING", **ctx),
        entity_type="ParkingPass",
        entity_id=parking_pass.id,
    )
    # Mark regardless of outcome; the retry job owns redelivery.
    parking_pass.expiration_warning_sent = True
    db.commit()
    return ok


async def notify_pass_created(pass_id: int) -> None:
    """Background task: send the confirmation email for a new pass."""
    from ..database import SessionLocal

    db = SessionLocal()
    try:
        parking_pass = db.get(ParkingPass, pass_id)
        if parking_pass and parking_pass.visitor_email:
            await send_pass_confirmation(db, parking_pass)
    except Exception:
        logger.exception("Confirmation email for pass {} failed", pass_id)
        db.rollback()
    finally:
        db.close()


async def retry_failed_notifications(db: Session) -> int:
    rows = (
        db.query(NotificationQueue)
        .filter(
            NotificationQueue.status == "FAILED",
            NotificationQueue.type == "EMAIL",
            NotificationQueue.attempts < settings.notification_max_attempts,
        )
        .order_by(NotificationQueue.created_at)
        .limit(RETRY_BATCH_SIZE)
        .all()
    )
    sent = 0
    for row in rows:
        if await _send_row(db, row):
            sent += 1
    if rows:
        logger.info("Notification retry: {}/{} delivered", sent, len(rows))
    return sent
