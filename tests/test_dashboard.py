"""
test_dashboard.py — Tests for routers/dashboard.py, analytics and health

Covers: dashboard counters, analytics report, local-time month boundaries
and monthly change math, deep health check statuses, and the
server-rendered pages (login, visitor registration, dashboard sections).

Called by: pytest
Depends on: app/routers/dashboard.py, app/routers/health.py,
            app/services/analytics_service.py, app/services/health_service.py
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from app.config import settings
from app.models import Violation
from app.services.analytics_service import (
    get_analytics,
    get_dashboard_stats,
    monthly_change,
)
from app.services.health_service import check_health


# ── Analytics ───────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "this_month, last_month, expected",
    [(15, 10, 50), (5, 10, -50), (3, 0, 100), (0, 0, 0), (10, 10, 0)],
)
def test_monthly_change(this_month, last_month, expected):
    assert monthly_change(this_month, last_month) == expected


def test_dashboard_stats(db_session, vehicle, make_pass, security_user):
    now = datetime.now(timezone.utc)
    make_pass(vehicle, start=now - timedelta(hours=1), hours=4)
    make_pass(vehicle, start=now - timedelta(minutes=90), hours=2)
    make_pass(vehicle, start=now - timedelta(hours=6), hours=2, status="EXPIRED")
    db_session.add(Violation(vehicle_id=vehicle.id, type="OVERSTAY", logged_by_id=security_user.id))
    db_session.commit()

    stats = get_dashboard_stats(db_session, now)
    assert stats["active_passes"] == 2
    assert stats["expiring_soon"] == 1
    assert stats["today_violations"] == 1
    assert stats["total_vehicles"] == 1
    assert len(stats["recent_passes"]) == 3
    assert stats["recent_violations"][0]["type"] == "OVERSTAY"


def test_analytics_report(db_session, vehicle, make_pass):
    make_pass(vehicle, hours=4)
    make_pass(vehicle, hours=4)
    make_pass(vehicle, hours=2)
    report = get_analytics(db_session)
    assert report["passes"]["this_month"] == 3
    assert report["passes_by_duration"][0] == {"duration": 4, "count": 2}
    assert report["top_units"] == [{"unit_number": "101", "count": 3}]
    assert len(report["passes_last_7_days"]) == 7
    assert report["passes_last_7_days"][-1]["count"] == 3
    assert report["units"] == {"active": 3, "total": 3}


def test_month_boundaries_follow_local_time(db_session, vehicle, make_pass, monkeypatch):
    monkeypatch.setattr(settings, "default_timezone", "America/New_York")
    # 2026-03-01 03:00 UTC is still Feb 28 in New York
    now = datetime(2026, 3, 1, 3, 0, tzinfo=timezone.utc)
    make_pass(vehicle, created_at=datetime(2026, 3, 1, 1, 0, tzinfo=timezone.utc))
    make_pass(vehicle, created_at=datetime(2026, 2, 1, 3, 0, tzinfo=timezone.utc))
    make_pass(vehicle, created_at=datetime(2026, 2, 1, 6, 0, tzinfo=timezone.utc))

    passes = get_analytics(db_session, now)["passes"]
    assert passes["this_month"] == 2
    assert passes["last_month"] == 1


class TestStatsEndpoints:
    def test_stats_requires_login(self, client):
        assert client.get("/api/dashboard/stats").status_code == 401

    def test_stats(self, security_client, active_pass):
        assert security_client.get("/api/dashboard/stats").json()["active_passes"] == 1

    def test_analytics_permission(self, manager_client, security_client):
        assert manager_client.get("/api/analytics").status_code == 200
        assert security_client.get("/api/analytics").status_code == 403


# ── Health ──────────────────────────────────────────────────────────


class TestHealth:
    def test_degraded_without_email(self, client, monkeypatch):
        monkeypatch.setattr(settings, "resend_api_key", "")
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "degraded"
        assert body["services"]["database"]["status"] == "operational"
        assert body["services"]["email"]["message"] == "Email service not configured"
        assert set(body["metrics"]) >= {"active_passes", "pending_notifications", "avg_response_time"}

    def test_healthy(self, db_session, monkeypatch):
        monkeypatch.setattr(settings, "resend_api_key", "re_123")
        result = check_health(db_session)
        assert result["status"] == "healthy"
        assert result["resources"]["memory"]["used"] > 0

    def test_database_down_is_critical(self):
        db = MagicMock()
        db.execute.side_effect = RuntimeError("connection refused")
        result = check_health(db)
        assert result["status"] == "critical"
        assert result["services"]["database"]["status"] == "down"
        db.rollback.assert_called_once()

    def test_critical_returns_503(self, client):
        with patch("app.routers.health.check_health", return_value={"status": "critical"}):
            assert client.get("/api/health").status_code == 503


# ── Pages ───────────────────────────────────────────────────────────


class TestPages:
    def test_login_page(self, client):
        resp = client.get("/login?callbackUrl=/dashboard/passes")
        assert resp.status_code == 200
        assert "/dashboard/passes" in resp.text

    def test_login_page_ignores_offsite_callback(self, client):
        resp = client.get("/login?callbackUrl=//evil.example.com")
        assert "evil.example.com" not in resp.text

    def test_register_page(self, client, building):
        resp = client.get("/register/alina-hospital?zone=main")
        assert resp.status_code == 200
        assert "Alina Hospital" in resp.text
        assert "Main Lot" in resp.text
        assert 'value="201"' in resp.text
        assert "24 hours" in resp.text

    def test_register_unknown_building(self, client):
        assert client.get("/register/nowhere").status_code == 404

    def test_dashboard_overview(self, manager_client, active_pass):
        resp = manager_client.get("/dashboard")
        assert resp.status_code == 200
        assert "ABC 123" in resp.text
        assert 'href="/dashboard/analytics"' in resp.text

    def test_dashboard_analytics_section(self, manager_client):
        resp = manager_client.get("/dashboard/analytics")
        assert resp.status_code == 200
        assert "Top units" in resp.text

    def test_dashboard_section_loads_endpoint(self, security_client):
        resp = security_client.get("/dashboard/violations")
        assert 'data-endpoint="/api/violations"' in resp.text

    def test_access_denied_banner(self, resident_client):
        resp = resident_client.get("/dashboard?error=access_denied")
        assert "You do not have access to that page." in resp.text

    def test_unknown_section(self, admin_client):
        assert admin_client.get("/dashboard/unknown").status_code == 404
