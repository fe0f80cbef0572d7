"""
tests/test_routers_passes.py — Tests for routers/passes.py

Covers: public visitor registration (validation errors, QR-zone source,
confirmation email background task), self-service lookup, pass detail
view counting, public extension, staff listing and resident scoping,
edit, and soft delete.

Called by: pytest
Depends on: app/routers/passes.py, app/services/pass_service.py, conftest.py
"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

from app.models import AuditLog, NotificationQueue, ParkingPass, QRCodeScan, Unit, Vehicle


def _registration(**overrides):
    body = {
        "license_plate": "xyz-789",
        "unit_number": "101",
        "building_slug": "alina-hospital",
        "duration": 4,
        "visitor_name": "John Doe",
    }
    body.update(overrides)
    return body


# ── Registration ─────────────────────────────────────────────────────


class TestCreatePass:
    def test_creates_pass_and_vehicle(self, client, db_session, building):
        resp = client.post("/api/passes", json=_registration())
        assert resp.status_code == 201
        data = resp.json()
        assert data["pass"]["status"] == "ACTIVE"
        assert data["pass"]["duration"] == 4
        assert data["pass"]["registered_via"] == "WEB_FORM"
        assert data["pass"]["vehicle"]["normalized_plate"] == "XYZ789"
        assert len(data["confirmation_code"]) == 32

        vehicle = db_session.query(Vehicle).filter_by(normalized_plate="XYZ789").one()
        assert vehicle.license_plate == "XYZ-789"

    def test_end_time_is_start_plus_duration(self, client, db_session, building):
        pass_id = client.post("/api/passes", json=_registration(duration=8)).json()["pass"]["id"]
        p = db_session.get(ParkingPass, pass_id)
        assert p.end_time - p.start_time == timedelta(hours=8)
        assert p.original_end_time == p.end_time

    def test_zone_code_records_qr_scan(self, client, db_session, building):
        resp = client.post("/api/passes", json=_registration(parking_zone_code="main"))
        assert resp.status_code == 201
        assert resp.json()["pass"]["registered_via"] == "QR_SCAN"
        assert resp.json()["pass"]["parking_zone"]["code"] == "MAIN"
        scan = db_session.query(QRCodeScan).one()
        assert scan.resulted_in_pass is True
        assert scan.pass_id == resp.json()["pass"]["id"]

    def test_unknown_building_is_404(self, client, building):
        resp = client.post("/api/passes", json=_registration(building_slug="nowhere"))
        assert resp.status_code == 404
        assert resp.json()["error"] == "Building not found"

    def test_unknown_unit_is_404(self, client, building):
        resp = client.post("/api/passes", json=_registration(unit_number="999"))
        assert resp.status_code == 404
        assert resp.json()["error"] == "Unit not found"

    def test_inactive_unit_is_404(self, client, db_session, building, unit):
        unit.is_active = False
        db_session.commit()
        assert client.post("/api/passes", json=_registration()).status_code == 404

    def test_business_rule_failure_is_400_with_errors(self, client, building):
        resp = client.post("/api/passes", json=_registration(duration=3))
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "Validation failed"
        assert body["errors"][0]["code"] == "ERR_4004"
        assert "warnings" in body

    def test_blacklisted_vehicle_rejected(self, client, vehicle, building, db_session):
        vehicle.is_blacklisted = True
        db_session.commit()
        resp = client.post("/api/passes", json=_registration(license_plate="ABC 123"))
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["code"] == "ERR_4000"

    def test_same_plate_twice_hits_cooldown(self, client, building):
        assert client.post("/api/passes", json=_registration()).status_code == 201
        resp = client.post("/api/passes", json=_registration(unit_number="102"))
        assert resp.status_code == 400
        assert "ERR_4003" in [e["code"] for e in resp.json()["errors"]]

    def test_schema_validation(self, client, building):
        resp = client.post("/api/passes", json=_registration(duration=100))
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid request data"

        resp = client.post("/api/passes", json=_registration(license_plate="A"))
        assert resp.status_code == 400

        resp = client.post("/api/passes", json=_registration(visitor_email="not-an-email"))
        assert resp.status_code == 400

    def test_symbol_only_plate_is_400(self, client, db_session, building):
        resp = client.post("/api/passes", json=_registration(license_plate="--"))
        assert resp.status_code == 400
        assert resp.json()["error"] == "License plate must be at least 2 characters"
        assert db_session.query(Vehicle).count() == 0
        assert db_session.query(ParkingPass).count() == 0

    def test_blank_email_is_accepted(self, client, building):
        resp = client.post("/api/passes", json=_registration(visitor_email="  "))
        assert resp.status_code == 201
        assert resp.json()["pass"]["visitor_email"] is None

    def test_emergency_pass(self, client, building):
        resp = client.post("/api/passes", json=_registration(is_emergency=True, duration=3))
        assert resp.status_code == 201
        assert resp.json()["pass"]["pass_type"] == "EMERGENCY"
        assert resp.json()["warnings"][0]["code"] == "EMERGENCY_OVERRIDE"

    def test_confirmation_email_queued(self, client, db_session, building):
        with patch(
            "app.services.notification_service._deliver",
            new_callable=AsyncMock,
            return_value=None,
        ) as deliver:
            resp = client.post("/api/passes", json=_registration(visitor_email="john@example.com"))
        assert resp.status_code == 201
        deliver.assert_awaited_once()
        assert deliver.await_args.args[0] == "john@example.com"

        row = db_session.query(NotificationQueue).one()
        assert row.status == "SENT"
        assert row.entity_type == "ParkingPass"
        assert db_session.get(ParkingPass, resp.json()["pass"]["id"]).confirmation_sent is True

    def test_no_email_no_notification(self, client, db_session, building):
        client.post("/api/passes", json=_registration())
        assert db_session.query(NotificationQueue).count() == 0


# ── Public lookup & detail ───────────────────────────────────────────


class TestLookup:
    def test_lookup_by_short_code_and_plate(self, client, active_pass):
        code = active_pass.confirmation_code[:8].upper()
        resp = client.get("/api/passes/lookup", params={"confirmation_code": code, "license_plate": "abc-123"})
        assert resp.status_code == 200
        data = resp.json()["pass"]
        assert data["id"] == active_pass.id
        assert data["confirmation_code"] == code

    def test_wrong_plate_is_404(self, client, active_pass):
        resp = client.get(
            "/api/passes/lookup",
            params={"confirmation_code": active_pass.confirmation_code[:8], "license_plate": "ZZZ999"},
        )
        assert resp.status_code == 404

    def test_code_too_short_is_400(self, client, active_pass):
        resp = client.get("/api/passes/lookup", params={"confirmation_code": "abc", "license_plate": "ABC123"})
        assert resp.status_code == 400


class TestGetPass:
    def test_detail_counts_views(self, client, db_session, active_pass):
        assert client.get(f"/api/passes/{active_pass.id}").status_code == 200
        resp = client.get(f"/api/passes/{active_pass.id}")
        assert resp.json()["pass"]["view_count"] == 2
        db_session.refresh(active_pass)
        assert active_pass.last_viewed_at is not None

    def test_missing_is_404(self, client, building):
        assert client.get("/api/passes/999").status_code == 404

    def test_deleted_is_404(self, client, db_session, active_pass):
        active_pass.deleted_at = active_pass.start_time
        db_session.commit()
        assert client.get(f"/api/passes/{active_pass.id}").status_code == 404


# ── Extension ────────────────────────────────────────────────────────


class TestExtend:
    def test_public_extension(self, client, db_session, active_pass):
        old_end = active_pass.end_time
        resp = client.post("/api/passes/extend", json={"pass_id": active_pass.id, "additional_hours": 2})
        assert resp.status_code == 200
        data = resp.json()
        assert data["pass"]["status"] == "EXTENDED"
        assert data["pass"]["extension_count"] == 1
        assert data["previous_end_time"] == old_end.isoformat()

        db_session.refresh(active_pass)
        assert active_pass.end_time == old_end + timedelta(hours=2)
        entry = db_session.query(AuditLog).filter_by(action="EXTEND_PASS").one()
        assert entry.user_id is None
        assert entry.details["additional_hours"] == 2

    def test_second_extension_rejected(self, client, active_pass):
        client.post("/api/passes/extend", json={"pass_id": active_pass.id, "additional_hours": 1})
        resp = client.post("/api/passes/extend", json={"pass_id": active_pass.id, "additional_hours": 1})
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["code"] == "MAX_EXTENSIONS_EXCEEDED"

    def test_logged_in_extension_is_attributed(self, resident_client, db_session, resident_user, active_pass):
        resp = resident_client.post("/api/passes/extend", json={"pass_id": active_pass.id, "additional_hours": 1})
        assert resp.status_code == 200
        entry = db_session.query(AuditLog).filter_by(action="EXTEND_PASS").one()
        assert entry.user_id == resident_user.id

    def test_over_four_hours_is_schema_error(self, client, active_pass):
        resp = client.post("/api/passes/extend", json={"pass_id": active_pass.id, "additional_hours": 5})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid request data"

    def test_missing_pass_is_404(self, client, building):
        resp = client.post("/api/passes/extend", json={"pass_id": 999, "additional_hours": 1})
        assert resp.status_code == 404


# ── Staff listing ────────────────────────────────────────────────────


class TestListPasses:
    def test_anonymous_is_401(self, client, active_pass):
        assert client.get("/api/passes").status_code == 401

    def test_manager_sees_all(self, manager_client, db_session, active_pass, make_pass, building):
        other_unit = db_session.query(Unit).filter_by(unit_number="201").one()
        v = Vehicle(license_plate="OTHER1", normalized_plate="OTHER1")
        db_session.add(v)
        db_session.commit()
        make_pass(v, target_unit=other_unit)

        resp = manager_client.get("/api/passes")
        assert resp.status_code == 200
        data = resp.json()
        assert data["pagination"]["total"] == 2
        assert data["pagination"]["total_pages"] == 1

    def test_resident_sees_own_unit_only(self, resident_client, db_session, active_pass, make_pass):
        other_unit = db_session.query(Unit).filter_by(unit_number="201").one()
        v = Vehicle(license_plate="OTHER1", normalized_plate="OTHER1")
        db_session.add(v)
        db_session.commit()
        make_pass(v, target_unit=other_unit)

        passes = resident_client.get("/api/passes").json()["passes"]
        assert [p["id"] for p in passes] == [active_pass.id]

    def test_filters_and_search(self, manager_client, active_pass):
        assert manager_client.get("/api/passes", params={"status": "EXPIRED"}).json()["passes"] == []
        found = manager_client.get("/api/passes", params={"search": "abc 1"}).json()["passes"]
        assert [p["id"] for p in found] == [active_pass.id]
        by_name = manager_client.get("/api/passes", params={"search": "jane"}).json()["passes"]
        assert len(by_name) == 1

    def test_pagination(self, manager_client, active_pass):
        data = manager_client.get("/api/passes", params={"page": 2, "limit": 1}).json()
        assert data["passes"] == []
        assert data["pagination"] == {"page": 2, "limit": 1, "total": 1, "total_pages": 1}


# ── Edit & delete ────────────────────────────────────────────────────


class TestUpdateDelete:
    def test_manager_updates_status(self, manager_client, db_session, active_pass):
        resp = manager_client.patch(f"/api/passes/{active_pass.id}", json={"status": "SUSPENDED"})
        assert resp.status_code == 200
        assert resp.json()["pass"]["status"] == "SUSPENDED"
        assert db_session.query(AuditLog).filter_by(action="UPDATE", entity_type="ParkingPass").count() == 1

    def test_empty_update_is_400(self, manager_client, active_pass):
        assert manager_client.patch(f"/api/passes/{active_pass.id}", json={}).status_code == 400

    def test_null_status_is_ignored(self, manager_client, db_session, active_pass):
        resp = manager_client.patch(f"/api/passes/{active_pass.id}", json={"status": None})
        assert resp.status_code == 400
        assert resp.json()["error"] == "No changes provided"

        resp = manager_client.patch(
            f"/api/passes/{active_pass.id}", json={"status": None, "visitor_name": None}
        )
        assert resp.status_code == 200
        db_session.refresh(active_pass)
        assert active_pass.status == "ACTIVE"
        assert active_pass.visitor_name is None

    def test_security_cannot_update(self, security_client, active_pass):
        resp = security_client.patch(f"/api/passes/{active_pass.id}", json={"status": "CANCELLED"})
        assert resp.status_code == 403

    def test_soft_delete(self, manager_client, db_session, active_pass):
        resp = manager_client.delete(f"/api/passes/{active_pass.id}", params={"reason": "Duplicate"})
        assert resp.status_code == 200
        assert resp.json() == {"success": True}
        db_session.refresh(active_pass)
        assert active_pass.status == "CANCELLED"
        assert active_pass.deleted_at is not None
        assert active_pass.deletion_reason == "Duplicate"
        assert manager_client.get(f"/api/passes/{active_pass.id}").status_code == 404

    def test_resident_cannot_delete(self, resident_client, active_pass):
        assert resident_client.delete(f"/api/passes/{active_pass.id}").status_code == 403
