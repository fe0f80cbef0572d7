"""
test_validation_service.py — Tests for services/validation_service.py

Covers every pass-creation rule (blacklist, vehicles per unit, consecutive
hours, cooldown, allowed durations, operating hours), the emergency
override, non-blocking warnings, and extension checks.

Called by: pytest
Depends on: app/services/validation_service.py, conftest.py
"""

from datetime import datetime, timedelta, timezone

from app.database import utcnow
from app.models import ParkingRule, Unit, Vehicle
from app.services.validation_service import (
    default_rules,
    get_building_rules,
    validate_pass_extension,
    validate_pass_request,
)


def _codes(issues):
    return [i.code for i in issues]


def _validate(db, building, unit, plate="XYZ789", duration=4, **kw):
    return validate_pass_request(
        db, building_id=building.id, license_plate=plate, unit_id=unit.id,
        duration_hours=duration, **kw,
    )


def _rules(db, building) -> ParkingRule:
    return db.query(ParkingRule).filter(ParkingRule.building_id == building.id).one()


class TestRules:
    def test_defaults_when_no_row(self, db_session):
        rules = get_building_rules(db_session, 9999)
        assert rules.max_vehicles_per_unit == 2
        assert rules.allowed_durations == [2, 4, 8, 12, 24]

    def test_row_wins(self, db_session, building):
        assert get_building_rules(db_session, building.id).id is not None

    def test_default_rules_is_fresh_copy(self):
        a, b = default_rules(), default_rules()
        a.allowed_durations.append(99)
        assert 99 not in b.allowed_durations


class TestPassRequest:
    def test_clean_request_is_valid(self, db_session, building, unit):
        result = _validate(db_session, building, unit)
        assert result.is_valid
        assert result.errors == []

    def test_blacklisted_vehicle(self, db_session, building, unit, vehicle):
        vehicle.is_blacklisted = True
        vehicle.blacklist_reason = "Repeated fraud"
        vehicle.blacklisted_at = utcnow()
        db_session.commit()
        result = _validate(db_session, building, unit, plate="abc-123")
        assert not result.is_valid
        err = result.errors[0]
        assert err.code == "ERR_4000"
        assert err.message == "Repeated fraud"
        assert err.field == "license_plate"

    def test_unit_vehicle_limit(self, db_session, building, unit, make_pass):
        for plate in ("CAR1", "CAR2"):
            v = Vehicle(license_plate=plate, normalized_plate=plate)
            db_session.add(v)
            db_session.commit()
            make_pass(v)
        result = _validate(db_session, building, unit)
        assert "ERR_4001" in _codes(result.errors)
        meta = result.errors[0].metadata
        assert meta == {"max_allowed": 2, "current_count": 2}

    def test_expired_and_cancelled_passes_do_not_count(self, db_session, building, unit, make_pass):
        for plate, status in (("CAR1", "EXPIRED"), ("CAR2", "CANCELLED")):
            v = Vehicle(license_plate=plate, normalized_plate=plate)
            db_session.add(v)
            db_session.commit()
            make_pass(v, status=status)
        assert _validate(db_session, building, unit).is_valid

    def test_extended_pass_counts_toward_limit(self, db_session, building, unit, make_pass):
        for plate, status in (("CAR1", "ACTIVE"), ("CAR2", "EXTENDED")):
            v = Vehicle(license_plate=plate, normalized_plate=plate)
            db_session.add(v)
            db_session.commit()
            make_pass(v, status=status)
        assert "ERR_4001" in _codes(_validate(db_session, building, unit).errors)

    def test_approaching_limit_warning(self, db_session, building, unit, make_pass):
        v = Vehicle(license_plate="CAR1", normalized_plate="CAR1")
        db_session.add(v)
        db_session.commit()
        make_pass(v)
        result = _validate(db_session, building, unit)
        assert result.is_valid
        warning = next(w for w in result.warnings if w.code == "APPROACHING_VEHICLE_LIMIT")
        assert "2nd vehicle" in warning.message

    def test_consecutive_hours(self, db_session, building, unit, vehicle, make_pass):
        other = db_session.query(Unit).filter(Unit.unit_number == "102").one()
        now = datetime.now(timezone.utc)
        make_pass(vehicle, start=now - timedelta(hours=23), hours=22, status="EXPIRED", target_unit=other)
        rules = _rules(db_session, building)
        rules.cooldown_hours = 0
        db_session.commit()
        result = _validate(db_session, building, unit, plate="ABC123", duration=4)
        assert "ERR_4002" in _codes(result.errors)

    def test_cooldown(self, db_session, building, unit, vehicle, make_pass):
        now = datetime.now(timezone.utc)
        make_pass(vehicle, start=now - timedelta(hours=3), hours=2, status="EXPIRED")
        result = _validate(db_session, building, unit, plate="ABC123", duration=2)
        err = next(e for e in result.errors if e.code == "ERR_4003")
        assert err.metadata["hours_remaining"] == 1

    def test_duration_not_allowed(self, db_session, building, unit):
        result = _validate(db_session, building, unit, duration=3)
        err = result.errors[0]
        assert err.code == "ERR_4004"
        assert "Allowed: 2, 4, 8, 12, 24 hours" in err.message

    def test_outside_operating_hours(self, db_session, building, unit):
        rules = _rules(db_session, building)
        rules.operating_start_hour = 9
        rules.operating_end_hour = 17
        db_session.commit()
        # 03:00 UTC is 11pm the previous evening in New York
        now = datetime(2026, 3, 10, 3, 0, tzinfo=timezone.utc)
        result = _validate(db_session, building, unit, now=now)
        err = next(e for e in result.errors if e.code == "ERR_4005")
        assert err.message == "Visitor parking is only available between 9:00 AM and 5:00 PM."

    def test_emergency_override_skips_checks(self, db_session, building, unit, vehicle):
        vehicle.is_blacklisted = True
        db_session.commit()
        result = _validate(db_session, building, unit, plate="ABC123", duration=3, is_emergency=True)
        assert result.is_valid
        assert _codes(result.warnings) == ["EMERGENCY_OVERRIDE"]

    def test_emergency_without_override_is_checked(self, db_session, building, unit, vehicle):
        _rules(db_session, building).allow_emergency_override = False
        vehicle.is_blacklisted = True
        db_session.commit()
        result = _validate(db_session, building, unit, plate="ABC123", is_emergency=True)
        assert "ERR_4000" in _codes(result.errors)

    def test_warnings(self, db_session, building, unit, vehicle):
        vehicle.violation_count = 2
        vehicle.risk_score = 60
        db_session.commit()
        result = _validate(db_session, building, unit, plate="ABC123", duration=24)
        codes = _codes(result.warnings)
        assert {"LONG_DURATION", "VIOLATION_HISTORY", "HIGH_RISK_VEHICLE"} <= set(codes)
        assert result.is_valid

    def test_to_dict_serializes_datetimes(self, db_session, building, unit, vehicle):
        vehicle.is_blacklisted = True
        vehicle.blacklisted_at = datetime(2026, 1, 1, tzinfo=timezone.utc)
        db_session.commit()
        body = _validate(db_session, building, unit, plate="ABC123").to_dict()
        assert body["is_valid"] is False
        assert body["errors"][0]["metadata"]["blacklisted_at"] == "2026-01-01T00:00:00+00:00"

    def test_internal_error_is_reported(self, db_session, building, unit, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("db gone")

        monkeypatch.setattr("app.services.validation_service.get_building_rules", boom)
        result = _validate(db_session, building, unit)
        assert not result.is_valid
        assert _codes(result.errors) == ["ERR_5100"]


class TestExtension:
    def test_valid(self, db_session, active_pass):
        assert validate_pass_extension(db_session, active_pass.id, 2).is_valid

    def test_not_found(self, db_session):
        result = validate_pass_extension(db_session, 12345, 2)
        assert _codes(result.errors) == ["ERR_5001"]

    def test_max_extensions(self, db_session, active_pass):
        active_pass.extension_count = 1
        db_session.commit()
        result = validate_pass_extension(db_session, active_pass.id, 2)
        assert "MAX_EXTENSIONS_EXCEEDED" in _codes(result.errors)

    def test_too_long(self, db_session, active_pass):
        result = validate_pass_extension(db_session, active_pass.id, 6)
        assert "EXTENSION_TOO_LONG" in _codes(result.errors)

    def test_grace_period(self, db_session, active_pass):
        late = active_pass.end_time + timedelta(minutes=16)
        result = validate_pass_extension(db_session, active_pass.id, 2, now=late)
        assert "PASS_EXPIRED" in _codes(result.errors)
        within = active_pass.end_time + timedelta(minutes=14)
        assert validate_pass_extension(db_session, active_pass.id, 2, now=within).is_valid

    def test_cancelled_pass(self, db_session, active_pass):
        active_pass.status = "CANCELLED"
        db_session.commit()
        result = validate_pass_extension(db_session, active_pass.id, 2)
        assert "INVALID_STATUS" in _codes(result.errors)
