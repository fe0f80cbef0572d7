"""
analytics_service.py — Dashboard counters and the analytics report

Business Rules:
- Day and month boundaries ("today", the 7-day chart, this/last month)
  use settings.default_timezone
- Active passes are live (ACTIVE or EXTENDED) with end_time in the future;
  expiring soon means ending within the next hour
- Monthly change % = round((this - last) / last * 100); 100 when last month
  was 0 and this month is not, 0 when both are 0
- Breakdowns (duration, type, peak hours, top units) cover the last month
  and keep the top 5

Called by: routers/dashboard.py, services/health_service.py
Depends on: models, services/pass_service, services/violation_service
"""

import calendar
from collections import Counter
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ..config import settings
from ..constants import LIVE_PASS_STATUSES
from ..models import ParkingPass, Unit, Vehicle, Violation
from ..utils.date_time import ensure_utc
from .pass_service import serialize_pass
from .violation_service import serialize_violation

TOP_N = 5


def _local_day_start(now: datetime, days_back: int = 0) -> datetime:
    """Midnight (local) `days_back` days before now, returned in UTC."""
    tz = ZoneInfo(settings.default_timezone)
    local = now.astimezone(tz) - timedelta(days=days_back)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc)


def _month_start(dt: datetime) -> datetime:
    """First of the local month containing dt, as UTC."""
    local = dt.astimezone(ZoneInfo(settings.default_timezone))
    first = local.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return first.astimezone(timezone.utc)


def _months_back(dt: datetime, months: int = 1) -> datetime:
    local = dt.astimezone(ZoneInfo(settings.default_timezone))
    year, month = local.year, local.month - months
    while month < 1:
        month += 12
        year -= 1
    last_day = calendar.monthrange(year, month)[1]
    shifted = local.replace(year=year, month=month, day=min(local.day, last_day))
    return shifted.astimezone(timezone.utc)


def monthly_change(this_month: int, last_month: int) -> int:
    if last_month > 0:
        return round((this_month - last_month) / last_month * 100)
    return 100 if this_month > 0 else 0


def count_active_passes(db: Session, now: datetime) -> int:
    return (
        db.query(func.count(ParkingPass.id))
        .filter(
            ParkingPass.deleted_at.is_(None),
            ParkingPass.status.in_(LIVE_PASS_STATUSES),
            ParkingPass.end_time > now,
        )
        .scalar()
    )


def count_expiring_soon(db: Session, now: datetime, within: timedelta = timedelta(hours=1)) -> int:
    return (
        db.query(func.count(ParkingPass.id))
        .filter(
            ParkingPass.deleted_at.is_(None),
            ParkingPass.status.in_(LIVE_PASS_STATUSES),
            ParkingPass.end_time > now,
            ParkingPass.end_time <= now + within,
        )
        .scalar()
    )


def _count_created(db: Session, model, start: datetime, end: datetime | None = None) -> int:
    q = db.query(func.count(model.id)).filter(model.deleted_at.is_(None), model.created_at >= start)
    if end is not None:
        q = q.filter(model.created_at < end)
    return q.scalar()


def get_dashboard_stats(db: Session, now: datetime | None = None) -> dict:
    now = ensure_utc(now) if now else datetime.now(timezone.utc)
    recent_passes = (
        db.query(ParkingPass)
        .options(
            joinedload(ParkingPass.vehicle),
            joinedload(ParkingPass.unit).joinedload(Unit.building),
            joinedload(ParkingPass.parking_zone),
        )
        .filter(ParkingPass.deleted_at.is_(None))
        .order_by(ParkingPass.created_at.desc())
        .limit(TOP_N)
        .all()
    )
    recent_violations = (
        db.query(Violation)
        .options(joinedload(Violation.vehicle), joinedload(Violation.logged_by))
        .filter(Violation.deleted_at.is_(None))
        .order_by(Violation.created_at.desc())
        .limit(TOP_N)
        .all()
    )
    return {
        "active_passes": count_active_passes(db, now),
        "expiring_soon": count_expiring_soon(db, now),
        "today_violations": _count_created(db, Violation, _local_day_start(now)),
        "total_vehicles": db.query(func.count(Vehicle.id)).filter(Vehicle.deleted_at.is_(None)).scalar(),
        "recent_passes": [serialize_pass(p) for p in recent_passes],
        "recent_violations": [serialize_violation(v) for v in recent_violations],
    }


def _period_counts(db: Session, model, now: datetime) -> dict:
    today_start = _local_day_start(now)
    month_ago = _months_back(now)
    this_month_start = _month_start(now)
    last_month_start = _month_start(month_ago)

    this_month = _count_created(db, model, this_month_start)
    last_month = _count_created(db, model, last_month_start, this_month_start)
    return {
        "today": _count_created(db, model, today_start),
        "week": _count_created(db, model, now - timedelta(days=7)),
        "this_month": this_month,
        "last_month": last_month,
        "monthly_change": monthly_change(this_month, last_month),
    }


def _last_7_days(db: Session, model, now: datetime) -> list[dict]:
    days = []
    for days_back in range(6, -1, -1):
        start = _local_day_start(now, days_back)
        end = _local_day_start(now, days_back - 1) if days_back else None
        label = start.astimezone(ZoneInfo(settings.default_timezone)).strftime("%a")
        days.append({"date": label, "count": _count_created(db, model, start, end)})
    return days


def get_analytics(db: Session, now: datetime | None = None) -> dict:
    now = ensure_utc(now) if now else datetime.now(timezone.utc)
    month_ago = _months_back(now)

    by_duration = (
        db.query(ParkingPass.duration, func.count(ParkingPass.id))
        .filter(ParkingPass.deleted_at.is_(None), ParkingPass.created_at >= month_ago)
        .group_by(ParkingPass.duration)
        .order_by(func.count(ParkingPass.id).desc())
        .limit(TOP_N)
        .all()
    )
    by_type = (
        db.query(Violation.type, func.count(Violation.id))
        .filter(Violation.deleted_at.is_(None), Violation.created_at >= month_ago)
        .group_by(Violation.type)
        .order_by(func.count(Violation.id).desc())
        .limit(TOP_N)
        .all()
    )

    # Hour extraction differs between SQLite and PostgreSQL; bucket in Python.
    created = (
        db.query(ParkingPass.created_at)
        .filter(ParkingPass.deleted_at.is_(None), ParkingPass.created_at >= month_ago)
        .all()
    )
    hours = Counter(ensure_utc(c).hour for (c,) in created if c)

    top_units = (
        db.query(Unit.unit_number, func.count(ParkingPass.id))
        .join(ParkingPass, ParkingPass.unit_id == Unit.id)
        .filter(ParkingPass.deleted_at.is_(None), ParkingPass.created_at >= month_ago)
        .group_by(Unit.id, Unit.unit_number)
        .order_by(func.count(ParkingPass.id).desc())
        .limit(TOP_N)
        .all()
    )

    return {
        "passes": _period_counts(db, ParkingPass, now),
        "violations": _period_counts(db, Violation, now),
        "vehicles": {
            "total": db.query(func.count(Vehicle.id)).filter(Vehicle.deleted_at.is_(None)).scalar(),
            "blacklisted": (
                db.query(func.count(Vehicle.id))
                .filter(Vehicle.deleted_at.is_(None), Vehicle.is_blacklisted.is_(True))
                .scalar()
            ),
        },
        "units": {
            "active": (
                db.query(func.count(Unit.id))
                .filter(Unit.deleted_at.is_(None), Unit.is_active.is_(True))
                .scalar()
            ),
            "total": db.query(func.count(Unit.id)).filter(Unit.deleted_at.is_(None)).scalar(),
        },
        "passes_by_duration": [{"duration": d, "count": c} for d, c in by_duration],
        "violations_by_type": [{"type": t, "count": c} for t, c in by_type],
        "passes_last_7_days": _last_7_days(db, ParkingPass, now),
        "violations_last_7_days": _last_7_days(db, Violation, now),
        "peak_hours": [{"hour": h, "count": c} for h, c in hours.most_common(TOP_N)],
        "top_units": [{"unit_number": u, "count": c} for u, c in top_units],
    }
