"""
export_service.py — CSV / JSON / Excel exports of parking data

Business Rules:
- Export kinds: passes, violations, vehicles, analytics, audit-logs
- start_date / end_date filter on created_at (inclusive); building_id
  narrows passes to one building
- Audit log exports are capped at 10,000 rows, newest first
- Analytics defaults to the last 30 days
- Filenames: <kind>-YYYY-MM-DD-HHMMSS.<ext>
- Every export writes an EXPORT_DATA audit entry

Called by: routers/export.py
Depends on: models, openpyxl, services/audit_service
"""

import csv
import io
import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from loguru import logger
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ..models import AuditLog, ParkingPass, Unit, User, Vehicle, Violation
from .audit_service import log_action

EXPORT_TYPES = ("passes", "violations", "vehicles", "analytics", "audit-logs")
EXPORT_FORMATS = ("csv", "json", "xlsx")
AUDIT_LOG_EXPORT_LIMIT = 10000
ANALYTICS_DEFAULT_DAYS = 30

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_FILENAME_PREFIX = {
    "passes": "parking-passes",
    "violations": "violations",
    "vehicles": "vehicles",
    "analytics": "analytics",
    "audit-logs": "audit-logs",
}

_MIME_TYPES = {
    "csv": "text/csv",
    "json": "application/json",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


@dataclass
class ExportResult:
    data: bytes
    filename: str
    mime_type: str


def _ts(value: datetime | None) -> str:
    return value.strftime(TIMESTAMP_FORMAT) if value else ""


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def _created_between(query, column, start: datetime | None, end: datetime | None):
    if start:
        query = query.filter(column >= start)
    if end:
        query = query.filter(column <= end)
    return query


# ── Row builders ──────────────────────────────────────────────────────


def export_passes(db: Session, start=None, end=None, building_id: int | None = None):
    q = (
        db.query(ParkingPass)
        .options(
            joinedload(ParkingPass.vehicle),
            joinedload(ParkingPass.unit).joinedload(Unit.building),
        )
        .filter(ParkingPass.deleted_at.is_(None))
    )
    q = _created_between(q, ParkingPass.created_at, start, end)
    if building_id:
        q = q.join(Unit, ParkingPass.unit_id == Unit.id).filter(Unit.building_id == building_id)
    passes = q.order_by(ParkingPass.created_at.desc()).all()

    headers = [
        "Confirmation Code", "License Plate", "Vehicle Make", "Vehicle Model",
        "Vehicle Color", "Unit Number", "Building", "Visitor Name", "Visitor Email",
        "Visitor Phone", "Duration (hours)", "Status", "Start Time", "End Time",
        "Created At",
    ]
    rows = [
        [
            p.confirmation_code,
            p.vehicle.license_plate,
            p.vehicle.make,
            p.vehicle.model,
            p.vehicle.color,
            p.unit.unit_number,
            p.unit.building.name,
            p.visitor_name,
            p.visitor_email,
            p.visitor_phone,
            p.duration,
            p.status,
            _ts(p.start_time),
            _ts(p.end_time),
            _ts(p.created_at),
        ]
        for p in passes
    ]
    return headers, rows


def export_violations(db: Session, start=None, end=None, building_id: int | None = None):
    q = (
        db.query(Violation)
        .options(joinedload(Violation.vehicle), joinedload(Violation.logged_by))
        .filter(Violation.deleted_at.is_(None))
    )
    q = _created_between(q, Violation.created_at, start, end)
    violations = q.order_by(Violation.created_at.desc()).all()

    headers = [
        "ID", "License Plate", "Type", "Severity", "Description", "Location",
        "Is Resolved", "Resolution", "Resolved At", "Citation Number",
        "Fine Amount", "Is Paid", "Logged By", "Created At",
    ]
    rows = [
        [
            v.id,
            v.vehicle.license_plate,
            v.type,
            v.severity,
            v.description,
            v.location,
            _yes_no(v.is_resolved),
            v.resolution,
            _ts(v.resolved_at),
            v.citation_number,
            str(v.fine_amount) if v.fine_amount is not None else None,
            _yes_no(v.is_paid),
            (v.logged_by.name or v.logged_by.email) if v.logged_by else None,
            _ts(v.created_at),
        ]
        for v in violations
    ]
    return headers, rows


def export_vehicles(db: Session, start=None, end=None, building_id: int | None = None):
    pass_counts = dict(
        db.query(ParkingPass.vehicle_id, func.count(ParkingPass.id))
        .group_by(ParkingPass.vehicle_id)
        .all()
    )
    violation_counts = dict(
        db.query(Violation.vehicle_id, func.count(Violation.id))
        .group_by(Violation.vehicle_id)
        .all()
    )
    vehicles = (
        db.query(Vehicle)
        .filter(Vehicle.deleted_at.is_(None))
        .order_by(Vehicle.created_at.desc())
        .all()
    )

    headers = [
        "License Plate", "Make", "Model", "Color", "State", "Is Blacklisted",
        "Blacklist Reason", "Violation Count", "Risk Score", "Total Passes",
        "Total Violations", "Created At",
    ]
    rows = [
        [
            v.license_plate,
            v.make,
            v.model,
            v.color,
            v.state,
            _yes_no(v.is_blacklisted),
            v.blacklist_reason,
            v.violation_count,
            v.risk_score,
            pass_counts.get(v.id, 0),
            violation_counts.get(v.id, 0),
            _ts(v.created_at),
        ]
        for v in vehicles
    ]
    return headers, rows


def export_audit_logs(db: Session, start=None, end=None, building_id: int | None = None):
    q = db.query(AuditLog).options(joinedload(AuditLog.user))
    q = _created_between(q, AuditLog.created_at, start, end)
    logs = q.order_by(AuditLog.created_at.desc()).limit(AUDIT_LOG_EXPORT_LIMIT).all()

    headers = [
        "ID", "Action", "Entity Type", "Entity ID", "User", "IP Address",
        "User Agent", "Details", "Created At",
    ]
    rows = [
        [
            entry.id,
            entry.action,
            entry.entity_type,
            entry.entity_id,
            (entry.user.name or entry.user.email) if entry.user else "System",
            entry.ip_address,
            entry.user_agent,
            json.dumps(entry.details) if entry.details is not None else None,
            _ts(entry.created_at),
        ]
        for entry in logs
    ]
    return headers, rows


def export_analytics(db: Session, start=None, end=None, building_id: int | None = None):
    end = end or datetime.now(timezone.utc)
    start = start or end - timedelta(days=ANALYTICS_DEFAULT_DAYS)

    pass_count = (
        db.query(func.count(ParkingPass.id))
        .filter(
            ParkingPass.deleted_at.is_(None),
            ParkingPass.created_at >= start,
            ParkingPass.created_at <= end,
        )
        .scalar()
    )
    violation_count = (
        db.query(func.count(Violation.id))
        .filter(
            Violation.deleted_at.is_(None),
            Violation.created_at >= start,
            Violation.created_at <= end,
        )
        .scalar()
    )
    vehicle_count = db.query(func.count(Vehicle.id)).filter(Vehicle.deleted_at.is_(None)).scalar()
    unit_count = (
        db.query(func.count(Unit.id))
        .filter(Unit.deleted_at.is_(None), Unit.is_active.is_(True))
        .scalar()
    )

    period = f"{start:%Y-%m-%d} to {end:%Y-%m-%d}"
    headers = ["Metric", "Value", "Period"]
    rows = [
        ["Total Passes", pass_count, period],
        ["Total Violations", violation_count, period],
        ["Total Vehicles", vehicle_count, "All time"],
        ["Active Units", unit_count, "Current"],
    ]
    return headers, rows


_BUILDERS = {
    "passes": export_passes,
    "violations": export_violations,
    "vehicles": export_vehicles,
    "analytics": export_analytics,
    "audit-logs": export_audit_logs,
}


# ── Serializers ───────────────────────────────────────────────────────


def to_csv(headers: list[str], rows: list[list]) -> str:
    """Fields containing a comma, quote or newline are quoted; quotes doubled."""
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows([["" if value is None else value for value in row] for row in rows])
    return buf.getvalue().rstrip("\n")


def to_json(headers: list[str], rows: list[list]) -> str:
    return json.dumps([dict(zip(headers, row)) for row in rows], indent=2, default=str)


def to_xlsx(headers: list[str], rows: list[list], title: str) -> bytes:
    from openpyxl import Workbook

    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]
    ws.append(headers)
    for row in rows:
        ws.append(["" if value is None else value for value in row])
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


# ── Entry points ──────────────────────────────────────────────────────


def generate_export(
    db: Session,
    export_type: str,
    fmt: str = "csv",
    start: datetime | None = None,
    end: datetime | None = None,
    building_id: int | None = None,
    now: datetime | None = None,
) -> ExportResult:
    if export_type not in _BUILDERS:
        raise ValueError(f"Invalid export type: {export_type}")
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Invalid export format: {fmt}")

    headers, rows = _BUILDERS[export_type](db, start, end, building_id)
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%d-%H%M%S")
    filename = f"{_FILENAME_PREFIX[export_type]}-{stamp}.{fmt}"

    if fmt == "json":
        data = to_json(headers, rows).encode()
    elif fmt == "xlsx":
        data = to_xlsx(headers, rows, _FILENAME_PREFIX[export_type])
    else:
        data = to_csv(headers, rows).encode()

    logger.info("Export {} ({}): {} rows", export_type, fmt, len(rows))
    return ExportResult(data=data, filename=filename, mime_type=_MIME_TYPES[fmt])


def log_export(db: Session, user: User, export_type: str, details: dict, request=None) -> None:
    log_action(
        db, "EXPORT_DATA", export_type, "export", user_id=user.id,
        details=details, request=request,
    )
    db.commit()
