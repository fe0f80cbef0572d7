"""
test_patrol_scanner.py — Tests for patrol/client.py and patrol/scanner.py

The client talks to an httpx.MockTransport; the scanner gets a real
in-memory OfflineCache and a stub on-device OCR function.

Called by: pytest
Depends on: app/patrol/client.py, app/patrol/scanner.py, app/patrol/cache.py
"""

import json

import httpx
import pytest

from app.patrol import OfflineCache, PatrolApiClient, PatrolApiError, PatrolScanError, PatrolScanner
from app.services.ocr_service import OCREngineError, OCRResult

LOOKUP = {"status": "VALID", "vehicle": {"id": 1, "normalized_plate": "ABC123"}}


def _ocr_result(plate="ABC123", success=True, error=None):
    return OCRResult(
        success=success, license_plate=plate, normalized_plate=plate,
        confidence=0.9 if success else 0.0, raw_text=plate or "", error=error,
    )


def _client(handler) -> PatrolApiClient:
    return PatrolApiClient("https://parking.test/", transport=httpx.MockTransport(handler))


def _server(routes: dict, calls: list | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        status, body = routes.get(request.url.path, (404, {"error": "Not found"}))
        return httpx.Response(status, json=body)

    return handler


def _offline(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("no signal", request=request)


@pytest.fixture()
def cache():
    return OfflineCache(":memory:")


# ── Client ──────────────────────────────────────────────────────────


class TestClient:
    def test_recognize_sends_data_url(self):
        calls = []
        client = _client(_server({"/api/ocr/recognize": (200, {"success": True})}, calls))
        assert client.recognize(b"jpeg-bytes")["success"]
        sent = json.loads(calls[0].content)
        assert sent["image"].startswith("data:image/jpeg;base64,")

    def test_error_carries_server_message(self):
        client = _client(_server({"/api/patrol/lookup": (403, {"error": "Insufficient permissions"})}))
        with pytest.raises(PatrolApiError) as exc:
            client.lookup("ABC123")
        assert exc.value.status_code == 403
        assert exc.value.message == "Insufficient permissions"

    def test_error_without_json(self):
        client = _client(lambda request: httpx.Response(502, text="Bad gateway"))
        with pytest.raises(PatrolApiError) as exc:
            client.fetch_sync_snapshot()
        assert exc.value.message == "Sync failed: 502"

    def test_is_online(self):
        assert _client(_server({"/health": (200, {"status": "ok"})})).is_online()
        assert not _client(_offline).is_online()

    def test_context_manager_closes(self):
        with _client(_server({})) as client:
            pass
        assert client.http.is_closed


# ── Scanner ─────────────────────────────────────────────────────────


class TestScanner:
    def test_scan_uses_local_ocr_then_server_lookup(self, cache):
        calls = []
        ocr_calls = []

        def local_ocr(image, source):
            ocr_calls.append(source)
            return _ocr_result()

        client = _client(_server({"/api/patrol/lookup": (200, LOOKUP)}, calls))
        scanner = PatrolScanner(client, cache, local_ocr=local_ocr)
        assert scanner.scan(b"img") == LOOKUP
        assert scanner.scan_state == "complete"
        assert ocr_calls == ["client"]
        assert [c.url.path for c in calls] == ["/api/patrol/lookup"]
        assert cache.get_cached_lookup("ABC123") == LOOKUP

    def test_prefer_server_ocr(self, cache):
        client = _client(_server({
            "/api/ocr/recognize": (200, {"success": True, "license_plate": "ABC123"}),
            "/api/patrol/lookup": (200, LOOKUP),
        }))
        scanner = PatrolScanner(client, cache, prefer_server=True, local_ocr=None)
        assert scanner.scan(b"img")["status"] == "VALID"

    def test_server_ocr_error_falls_back_to_device(self, cache):
        client = _client(_server({
            "/api/ocr/recognize": (500, {"error": "Failed to process image"}),
            "/api/patrol/lookup": (200, LOOKUP),
        }))
        scanner = PatrolScanner(client, cache, prefer_server=True, local_ocr=lambda img, source: _ocr_result())
        assert scanner.scan(b"img") == LOOKUP

    def test_unreadable_image(self, cache):
        scanner = PatrolScanner(
            _client(_server({})), cache,
            local_ocr=lambda img, source: _ocr_result(None, False, "No license plate pattern detected in image"),
        )
        assert scanner.scan(b"img") is None
        assert scanner.scan_state == "error"
        assert scanner.error == "No license plate pattern detected in image"

    def test_ocr_engine_failure(self, cache):
        def broken(img, source):
            raise OCREngineError("OCR engine unavailable")

        scanner = PatrolScanner(_client(_server({})), cache, local_ocr=broken)
        assert scanner.scan(b"img") is None
        assert scanner.error == "OCR engine unavailable"

    def test_offline_lookup_served_from_cache(self, cache):
        cache.cache_lookup_result("ABC123", LOOKUP)
        scanner = PatrolScanner(_client(_offline), cache)
        result = scanner.manual_lookup("abc 123")
        assert result["from_cache"] is True
        assert scanner.is_offline

    def test_offline_cache_miss_raises(self, cache):
        scanner = PatrolScanner(_client(_offline), cache)
        with pytest.raises(PatrolScanError):
            scanner.manual_lookup("ABC123")
        assert scanner.scan_state == "error"

    def test_connectivity_check_skips_server(self, cache):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            if request.url.path == "/health":
                return httpx.Response(503, json={"status": "critical"})
            return httpx.Response(200, json=LOOKUP)

        cache.cache_lookup_result("ABC123", LOOKUP)
        scanner = PatrolScanner(_client(handler), cache)
        assert scanner.check_connectivity() is False
        assert scanner.manual_lookup("ABC123")["from_cache"]
        assert calls == ["/health", "/health"]

    def test_server_error_raises(self, cache):
        scanner = PatrolScanner(_client(_server({"/api/patrol/lookup": (403, {"error": "Insufficient permissions"})})), cache)
        with pytest.raises(PatrolScanError, match="Insufficient permissions"):
            scanner.manual_lookup("ABC123")

    def test_manual_lookup_too_short(self, cache):
        scanner = PatrolScanner(_client(_server({})), cache)
        assert scanner.manual_lookup("A") is None
        assert scanner.error == "Please enter a valid license plate"

    def test_sync(self, cache):
        snapshot = {"vehicles": [{"id": 1, "normalized_plate": "ABC123"}], "passes": [], "violations": []}
        scanner = PatrolScanner(_client(_server({"/api/patrol/sync": (200, snapshot)})), cache)
        scanner.is_offline = True
        assert scanner.sync() == {"vehicles": 1, "passes": 0, "violations": 0}
        assert scanner.is_offline is False

    def test_back_online_after_signal_returns(self, cache):
        calls = []
        signal = {"up": False}
        server = _server({"/health": (200, {"status": "ok"}), "/api/patrol/lookup": (200, LOOKUP)}, calls)

        def handler(request):
            if not signal["up"]:
                raise httpx.ConnectError("no signal", request=request)
            return server(request)

        cache.cache_lookup_result("ABC123", LOOKUP)
        scanner = PatrolScanner(_client(handler), cache)
        assert scanner.manual_lookup("ABC123")["from_cache"] is True
        assert scanner.is_offline

        signal["up"] = True
        result = scanner.manual_lookup("XYZ789")
        assert result == LOOKUP
        assert scanner.is_offline is False
        assert [c.url.path for c in calls] == ["/health", "/api/patrol/lookup"]
        assert cache.get_cached_lookup("XYZ789") == LOOKUP

    def test_still_offline_when_health_unreachable(self, cache):
        cache.cache_lookup_result("ABC123", LOOKUP)
        scanner = PatrolScanner(_client(_offline), cache)
        scanner.manual_lookup("ABC123")
        assert scanner.manual_lookup("ABC123")["from_cache"] is True
        assert scanner.is_offline
