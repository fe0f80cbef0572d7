"""
test_qr_code.py — Tests for utils/qr_code.py and routers/qr.py

Covers: registration URL building, PNG/SVG/data-URL rendering, URL
validation and parsing, printable page escaping, QR endpoints.

Called by: pytest
Depends on: app/utils/qr_code.py, app/routers/qr.py, conftest.py
"""

import base64
import io

import pytest
from PIL import Image

from app.config import settings
from app.utils.qr_code import (
    build_registration_url,
    generate_parking_qr_code,
    generate_printable_qr_code,
    generate_qr_code_png,
    generate_qr_code_svg,
    parse_qr_code_url,
    validate_qr_code_url,
)

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


@pytest.fixture(autouse=True)
def _app_url(monkeypatch):
    monkeypatch.setattr(settings, "app_url", "https://parking.alinahospital.com/")


# ── URLs ────────────────────────────────────────────────────────────


def test_registration_url():
    assert build_registration_url("alina-hospital") == "https://parking.alinahospital.com/register/alina-hospital"
    assert (
        build_registration_url("alina-hospital", "MAIN")
        == "https://parking.alinahospital.com/register/alina-hospital?zone=MAIN"
    )


def test_registration_url_quotes_zone():
    assert build_registration_url("alina", "A B").endswith("?zone=A%20B")


@pytest.mark.parametrize(
    "url, valid",
    [
        ("https://parking.alinahospital.com/register/alina-hospital", True),
        ("https://parking.alinahospital.com/register/alina-hospital?zone=MAIN", True),
        ("https://parking.alinahospital.com/register/Alina_Hospital", False),
        ("https://parking.alinahospital.com/dashboard", False),
        ("/register/alina-hospital", False),
        ("not a url", False),
    ],
)
def test_validate_url(url, valid):
    assert validate_qr_code_url(url) is valid


def test_parse_url():
    assert parse_qr_code_url("https://x.com/register/alina-hospital?zone=MAIN") == ("alina-hospital", "MAIN")
    assert parse_qr_code_url("https://x.com/register/alina-hospital") == ("alina-hospital", None)
    assert parse_qr_code_url("https://x.com/login") == (None, None)
    assert parse_qr_code_url("garbage") == (None, None)


# ── Rendering ───────────────────────────────────────────────────────


def test_png_fits_requested_width():
    data = generate_qr_code_png("https://x.com/register/a", {"width": 300})
    assert data.startswith(PNG_MAGIC)
    width, height = Image.open(io.BytesIO(data)).size
    assert width == height
    assert 200 <= width <= 300


def test_unknown_error_level():
    with pytest.raises(ValueError):
        generate_qr_code_png("https://x.com", {"error_correction": "Z"})


def test_parking_data_url():
    data_url = generate_parking_qr_code("alina-hospital", "MAIN")
    assert data_url.startswith("data:image/png;base64,")
    assert base64.b64decode(data_url.split(",", 1)[1]).startswith(PNG_MAGIC)


def test_svg():
    svg = generate_qr_code_svg("https://x.com/register/a")
    assert "<svg" in svg
    assert "path" in svg


def test_printable_escapes_names():
    page = generate_printable_qr_code("Alina <Hospital>", "Main & Lot", "alina-hospital", "MAIN")
    assert "Alina &lt;Hospital&gt;" in page
    assert "Main &amp; Lot" in page
    assert "Zone Code: MAIN" in page
    assert "data:image/png;base64," in page


# ── Endpoints ───────────────────────────────────────────────────────


class TestQREndpoints:
    def test_png(self, admin_client, building):
        resp = admin_client.get("/api/qr/alina-hospital.png?zone=main&size=250")
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/png"
        assert resp.content.startswith(PNG_MAGIC)

    def test_svg(self, admin_client, building):
        resp = admin_client.get("/api/qr/alina-hospital.svg")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("image/svg+xml")

    def test_printable(self, admin_client, building):
        resp = admin_client.get("/api/qr/alina-hospital/printable?zone=MAIN")
        assert resp.status_code == 200
        assert "Main Lot" in resp.text

    def test_unknown_zone(self, admin_client, building):
        assert admin_client.get("/api/qr/alina-hospital.png?zone=NOPE").status_code == 404

    def test_unknown_building(self, admin_client):
        assert admin_client.get("/api/qr/nowhere.svg").status_code == 404

    def test_needs_settings_permission(self, security_client, building):
        assert security_client.get("/api/qr/alina-hospital.png").status_code == 403
