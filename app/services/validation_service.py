"""
validation_service.py — Business-rule checks for pass creation and extension

The gatekeeper for every new pass. Returns a ValidationResult instead of
raising so the caller can show all problems at once (plus non-blocking
warnings) in a single 400 response.

Business Rules (checked in this order):
1. Emergency passes skip all checks when the building allows override
2. Blacklisted vehicles are rejected (ERR_4000)
3. A unit may hold at most max_vehicles_per_unit live (ACTIVE or EXTENDED), unexpired passes (ERR_4001)
4. A plate may not exceed max_consecutive_hours of back-to-back parking (ERR_4002)
5. After a pass ends the plate must wait cooldown_hours (ERR_4003)
6. Duration must be one of the building's allowed durations (ERR_4004)
7. Registration only inside the building's operating hours (ERR_4005)

Warnings: LONG_DURATION, VIOLATION_HISTORY, HIGH_RISK_VEHICLE,
APPROACHING_VEHICLE_LIMIT.

Called by: services/pass_service.py
Depends on: models, utils/license_plate, utils/date_time, constants
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from sqlalchemy.orm import Session

from ..constants import (
    ERROR_CODES,
    LIVE_PASS_STATUSES,
    RECENT_PASS_LOOKBACK_HOURS,
    VALIDATION_MESSAGES,
)
from ..models import Building, ParkingPass, ParkingRule, Vehicle
from ..models.building import DEFAULT_ALLOWED_DURATIONS
from ..utils.date_time import (
    ensure_utc,
    calculate_consecutive_hours,
    format_hour,
    get_hours_until_cooldown_ends,
    is_cooldown_period_over,
    is_within_operating_hours,
    ordinal_suffix,
    to_timezone,
)
from ..utils.license_plate import normalize_license_plate

log = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "An error occurred during validation. Please try again."


@dataclass
class ValidationIssue:
    code: str
    message: str
    field: str | None = None
    metadata: dict | None = None


@dataclass
class ValidationResult:
    is_valid: bool
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "errors": [_issue_dict(e) for e in self.errors],
            "warnings": [_issue_dict(w) for w in self.warnings],
        }


def _issue_dict(issue: ValidationIssue) -> dict:
    data = asdict(issue)
    if data.get("metadata"):
        data["metadata"] = {
            k: (v.isoformat() if isinstance(v, datetime) else v)
            for k, v in data["metadata"].items()
        }
    return {k: v for k, v in data.items() if v is not None}


def _s(n: int) -> str:
    return "" if n == 1 else "s"


# ── Data loading ─────────────────────────────────────────────────────


def default_rules(building_id: int | None = None) -> SimpleNamespace:
    """Rules used when a building has no ParkingRule row yet."""
    return SimpleNamespace(
        building_id=building_id,
        max_vehicles_per_unit=2,
        max_consecutive_hours=24,
        cooldown_hours=2,
        max_extensions=1,
        extension_max_hours=4,
        require_unit_confirmation=False,
        operating_start_hour=None,
        operating_end_hour=None,
        allowed_durations=list(DEFAULT_ALLOWED_DURATIONS),
        grace_period_minutes=15,
        allow_emergency_override=True,
    )


def get_building_rules(db: Session, building_id: int):
    rules = db.query(ParkingRule).filter(ParkingRule.building_id == building_id).first()
    return rules or default_rules(building_id)


def count_active_passes_for_unit(db: Session, unit_id: int, now: datetime) -> int:
    return (
        db.query(ParkingPass)
        .filter(
            ParkingPass.unit_id == unit_id,
            ParkingPass.status.in_(LIVE_PASS_STATUSES),
            ParkingPass.end_time > now,
            ParkingPass.deleted_at.is_(None),
        )
        .count()
    )


def recent_passes_for_plate(db: Session, normalized_plate: str, now: datetime) -> list[ParkingPass]:
    """Passes created for this plate in the lookback window, latest end first."""
    since = now - timedelta(hours=RECENT_PASS_LOOKBACK_HOURS)
    return (
        db.query(ParkingPass)
        .join(Vehicle, ParkingPass.vehicle_id == Vehicle.id)
        .filter(
            Vehicle.normalized_plate == normalized_plate,
            ParkingPass.created_at >= since,
            ParkingPass.deleted_at.is_(None),
        )
        .order_by(ParkingPass.end_time.desc())
        .all()
    )


# ── Pass request ─────────────────────────────────────────────────────


def validate_pass_request(
    db: Session,
    building_id: int,
    license_plate: str,
    unit_id: int,
    duration_hours: int,
    is_emergency: bool = False,
    now: datetime | None = None,
) -> ValidationResult:
    """Run every creation rule and collect errors and warnings."""
    now = ensure_utc(now) if now else datetime.now(timezone.utc)
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []

    try:
        rules = get_building_rules(db, building_id)
        normalized = normalize_license_plate(license_plate)
        vehicle = db.query(Vehicle).filter(Vehicle.normalized_plate == normalized).first()
        active_count = count_active_passes_for_unit(db, unit_id, now)
        recent = recent_passes_for_plate(db, normalized, now)

        if is_emergency and rules.allow_emergency_override:
            warnings.append(ValidationIssue(
                code="EMERGENCY_OVERRIDE",
                message="Emergency pass - standard restrictions bypassed",
            ))
            return ValidationResult(is_valid=True, errors=errors, warnings=warnings)

        # 1. Blacklist
        if vehicle and vehicle.is_blacklisted:
            errors.append(ValidationIssue(
                code=ERROR_CODES["BLACKLISTED"],
                message=vehicle.blacklist_reason or VALIDATION_MESSAGES["plate_blacklisted"],
                field="license_plate",
                metadata={
                    "blacklisted_at": vehicle.blacklisted_at,
                    "blacklisted_by": vehicle.blacklisted_by,
                },
            ))

        # 2. Vehicles per unit
        max_vehicles = rules.max_vehicles_per_unit
        if active_count >= max_vehicles:
            errors.append(ValidationIssue(
                code=ERROR_CODES["MAX_VEHICLES_EXCEEDED"],
                message=(
                    f"Maximum {max_vehicles} vehicle{_s(max_vehicles)} allowed per unit "
                    f"at one time. Currently {active_count} registered."
                ),
                field="unit_number",
                metadata={"max_allowed": max_vehicles, "current_count": active_count},
            ))

        # 3. Consecutive hours
        if recent:
            consecutive = calculate_consecutive_hours(recent)
            if consecutive + duration_hours > rules.max_consecutive_hours:
                errors.append(ValidationIssue(
                    code=ERROR_CODES["MAX_CONSECUTIVE_HOURS"],
                    message=(
                        f"Vehicle has {consecutive} consecutive hours. Maximum "
                        f"{rules.max_consecutive_hours} hours allowed. Adding "
                        f"{duration_hours} hours would exceed limit."
                    ),
                    field="duration",
                    metadata={
                        "current_consecutive_hours": consecutive,
                        "requested_hours": duration_hours,
                        "max_allowed": rules.max_consecutive_hours,
                    },
                ))

        # 4. Cooldown after the most recent pass
        if recent:
            last_end = recent[0].end_time
            cooldown = rules.cooldown_hours
            if not is_cooldown_period_over(last_end, cooldown, now):
                remaining = get_hours_until_cooldown_ends(last_end, cooldown, now)
                errors.append(ValidationIssue(
                    code=ERROR_CODES["COOLDOWN_PERIOD"],
                    message=(
                        f"Vehicle must wait {cooldown} hour{_s(cooldown)} after last pass "
                        f"expires. {remaining} hour{_s(remaining)} remaining."
                    ),
                    field="license_plate",
                    metadata={
                        "cooldown_hours": cooldown,
                        "hours_remaining": remaining,
                        "last_pass_end_time": last_end,
                    },
                ))

        # 5. Allowed durations
        allowed = list(rules.allowed_durations or DEFAULT_ALLOWED_DURATIONS)
        if duration_hours not in allowed:
            errors.append(ValidationIssue(
                code=ERROR_CODES["INVALID_DURATION"],
                message=(
                    f"{duration_hours} hour{_s(duration_hours)} is not an available duration. "
                    f"Allowed: {', '.join(str(d) for d in allowed)} hours."
                ),
                field="duration",
                metadata={"requested_duration": duration_hours, "allowed_durations": allowed},
            ))

        # 6. Operating hours, evaluated on the building's local clock
        building = db.get(Building, building_id)
        local_now = to_timezone(now, building.timezone) if building and building.timezone else now
        start_hour, end_hour = rules.operating_start_hour, rules.operating_end_hour
        if not is_within_operating_hours(start_hour, end_hour, local_now):
            start_hour = start_hour if start_hour is not None else 0
            end_hour = end_hour if end_hour is not None else 24
            errors.append(ValidationIssue(
                code=ERROR_CODES["OUTSIDE_OPERATING_HOURS"],
                message=(
                    f"Visitor parking is only available between {format_hour(start_hour)} "
                    f"and {format_hour(end_hour)}."
                ),
                metadata={"operating_hours": {"start": start_hour, "end": end_hour}},
            ))

        # ── Warnings (non-blocking) ──
        if duration_hours >= 24:
            warnings.append(ValidationIssue(
                code="LONG_DURATION",
                message=f"Pass duration is {duration_hours} hours. Ensure this is intentional.",
                metadata={"duration_hours": duration_hours},
            ))

        if vehicle and vehicle.violation_count > 0:
            warnings.append(ValidationIssue(
                code="VIOLATION_HISTORY",
                message=(
                    f"This vehicle has {vehicle.violation_count} previous "
                    f"violation{_s(vehicle.violation_count)}."
                ),
                metadata={
                    "violation_count": vehicle.violation_count,
                    "risk_score": vehicle.risk_score,
                },
            ))

        if vehicle and vehicle.risk_score >= 50:
            warnings.append(ValidationIssue(
                code="HIGH_RISK_VEHICLE",
                message=(
                    f"This vehicle has a risk score of {vehicle.risk_score}/100. "
                    "Consider additional verification."
                ),
                metadata={"risk_score": vehicle.risk_score},
            ))

        if active_count == max_vehicles - 1:
            nth = active_count + 1
            warnings.append(ValidationIssue(
                code="APPROACHING_VEHICLE_LIMIT",
                message=(
                    f"This will be the {nth}{ordinal_suffix(nth)} vehicle for this unit "
                    f"(limit: {max_vehicles})."
                ),
                metadata={"current_count": active_count, "max_allowed": max_vehicles},
            ))

        return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)

    except Exception:
        log.exception("Pass validation failed for plate %s", license_plate)
        return ValidationResult(
            is_valid=False,
            errors=[ValidationIssue(code=ERROR_CODES["INTERNAL_ERROR"], message=INTERNAL_ERROR_MESSAGE)],
        )


# ── Extension ────────────────────────────────────────────────────────


def validate_pass_extension(
    db: Session, pass_id: int, extension_hours: int, now: datetime | None = None
) -> ValidationResult:
    """Check extension count, length, grace window and status."""
    now = ensure_utc(now) if now else datetime.now(timezone.utc)
    errors: list[ValidationIssue] = []

    try:
        parking_pass = db.get(ParkingPass, pass_id)
        if not parking_pass or parking_pass.deleted_at is not None:
            return ValidationResult(
                is_valid=False,
                errors=[ValidationIssue(code=ERROR_CODES["NOT_FOUND"], message="Parking pass not found")],
            )

        rules = get_building_rules(db, parking_pass.unit.building_id)

        count, max_ext = parking_pass.extension_count, rules.max_extensions
        if count >= max_ext:
            errors.append(ValidationIssue(
                code="MAX_EXTENSIONS_EXCEEDED",
                message=(
                    f"Maximum {max_ext} extension{_s(max_ext)} allowed. This pass has "
                    f"already been extended {count} time{_s(count)}."
                ),
                metadata={"current_extensions": count, "max_allowed": max_ext},
            ))

        max_hours = rules.extension_max_hours
        if extension_hours > max_hours:
            errors.append(ValidationIssue(
                code="EXTENSION_TOO_LONG",
                message=(
                    f"Extension cannot exceed {max_hours} hour{_s(max_hours)}. "
                    f"Requested: {extension_hours} hour{_s(extension_hours)}."
                ),
                metadata={"requested_hours": extension_hours, "max_allowed": max_hours},
            ))

        grace = rules.grace_period_minutes
        if now > ensure_utc(parking_pass.end_time) + timedelta(minutes=grace):
            errors.append(ValidationIssue(
                code="PASS_EXPIRED",
                message=f"Pass expired more than {grace} minutes ago and cannot be extended.",
                metadata={"expired_at": parking_pass.end_time, "grace_period_minutes": grace},
            ))

        if parking_pass.status in ("CANCELLED", "SUSPENDED"):
            errors.append(ValidationIssue(
                code="INVALID_STATUS",
                message=f"Cannot extend a {parking_pass.status.lower()} pass.",
                metadata={"status": parking_pass.status},
            ))

        return ValidationResult(is_valid=not errors, errors=errors)

    except Exception:
        log.exception("Extension validation failed for pass %s", pass_id)
        return ValidationResult(
            is_valid=False,
            errors=[ValidationIssue(code=ERROR_CODES["INTERNAL_ERROR"], message=INTERNAL_ERROR_MESSAGE)],
        )
