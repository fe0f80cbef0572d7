"""
test_routers_settings.py — Tests for routers/settings.py

Covers: building read/update (slug conflicts, timezone validation),
parking rule upsert, zone listing and creation.

Called by: pytest
Depends on: app/routers/settings.py, app/services/settings_service.py, conftest.py
"""

from app.models import AuditLog, Building, ParkingRule
from app.services.settings_service import ensure_default_rules


class TestBuildings:
    def test_list_requires_login(self, client):
        assert client.get("/api/settings/buildings").status_code == 401

    def test_list(self, security_client, building):
        data = security_client.get("/api/settings/buildings").json()
        assert [b["slug"] for b in data["buildings"]] == ["alina-hospital"]

    def test_single_with_rules(self, security_client, building):
        data = security_client.get(f"/api/settings/buildings?id={building.id}").json()
        assert data["building"]["timezone"] == "America/New_York"
        assert data["parking_rules"]["allowed_durations"] == [2, 4, 8, 12, 24]

    def test_single_missing(self, security_client):
        assert security_client.get("/api/settings/buildings?id=999").status_code == 404

    def test_update(self, admin_client, db_session, building):
        resp = admin_client.patch(
            f"/api/settings/buildings/{building.id}",
            json={"name": "Alina Medical Center", "contact_phone": "555-0100"},
        )
        assert resp.status_code == 200
        assert resp.json()["building"]["name"] == "Alina Medical Center"
        assert db_session.query(AuditLog).filter_by(action="SETTING_CHANGE").count() == 1

    def test_slug_conflict(self, admin_client, db_session, building):
        db_session.add(Building(name="Annex", slug="annex", address="2 Main St"))
        db_session.commit()
        resp = admin_client.patch(f"/api/settings/buildings/{building.id}", json={"slug": "annex"})
        assert resp.status_code == 409

    def test_bad_slug_pattern(self, admin_client, building):
        resp = admin_client.patch(f"/api/settings/buildings/{building.id}", json={"slug": "Not Valid"})
        assert resp.status_code == 400

    def test_unknown_timezone(self, admin_client, building):
        resp = admin_client.patch(
            f"/api/settings/buildings/{building.id}", json={"timezone": "Mars/Olympus"}
        )
        assert resp.status_code == 400

    def test_manager_cannot_update(self, manager_client, building):
        resp = manager_client.patch(f"/api/settings/buildings/{building.id}", json={"name": "X"})
        assert resp.status_code == 403


class TestParkingRules:
    def test_get(self, manager_client, building):
        data = manager_client.get(f"/api/settings/parking-rules?building_id={building.id}").json()
        assert data["parking_rules"]["max_vehicles_per_unit"] == 2

    def test_update_normalizes_durations(self, admin_client, building):
        resp = admin_client.patch(
            f"/api/settings/parking-rules?building_id={building.id}",
            json={"allowed_durations": [8, 2, 8, 4], "cooldown_hours": 0},
        )
        assert resp.status_code == 200
        rules = resp.json()["parking_rules"]
        assert rules["allowed_durations"] == [2, 4, 8]
        assert rules["cooldown_hours"] == 0

    def test_clear_operating_hours(self, admin_client, db_session, building):
        rules = db_session.query(ParkingRule).filter_by(building_id=building.id).one()
        rules.operating_start_hour = 8
        rules.operating_end_hour = 20
        db_session.commit()
        resp = admin_client.patch(
            f"/api/settings/parking-rules?building_id={building.id}",
            json={"operating_start_hour": None, "operating_end_hour": None},
        )
        assert resp.json()["parking_rules"]["operating_start_hour"] is None

    def test_upsert_creates_row(self, admin_client, db_session):
        annex = Building(name="Annex", slug="annex", address="2 Main St")
        db_session.add(annex)
        db_session.commit()
        resp = admin_client.patch(
            f"/api/settings/parking-rules?building_id={annex.id}", json={"max_extensions": 3}
        )
        assert resp.status_code == 200
        assert db_session.query(ParkingRule).filter_by(building_id=annex.id).one().max_extensions == 3

    def test_out_of_range(self, admin_client, building):
        resp = admin_client.patch(
            f"/api/settings/parking-rules?building_id={building.id}", json={"max_vehicles_per_unit": 50}
        )
        assert resp.status_code == 400

    def test_zero_duration_rejected(self, admin_client, building):
        resp = admin_client.patch(
            f"/api/settings/parking-rules?building_id={building.id}", json={"allowed_durations": [0, 2]}
        )
        assert resp.status_code == 400

    def test_missing_building(self, admin_client):
        resp = admin_client.patch("/api/settings/parking-rules?building_id=999", json={"max_extensions": 1})
        assert resp.status_code == 404


def test_ensure_default_rules(db_session, building):
    db_session.add(Building(name="Annex", slug="annex", address="2 Main St"))
    db_session.commit()
    assert ensure_default_rules(db_session) == 1
    assert ensure_default_rules(db_session) == 0


class TestZones:
    def test_list(self, security_client, building):
        data = security_client.get(f"/api/settings/zones?building_id={building.id}").json()
        assert [z["code"] for z in data["zones"]] == ["MAIN"]

    def test_create_uppercases_code(self, admin_client, building):
        resp = admin_client.post(
            "/api/settings/zones",
            json={"building_id": building.id, "name": "Emergency Bay", "code": "er", "is_emergency_zone": True},
        )
        assert resp.status_code == 201
        zone = resp.json()["zone"]
        assert zone["code"] == "ER"
        assert zone["is_emergency_zone"] is True

    def test_duplicate_code(self, admin_client, building):
        resp = admin_client.post(
            "/api/settings/zones", json={"building_id": building.id, "name": "Again", "code": "main"}
        )
        assert resp.status_code == 409
