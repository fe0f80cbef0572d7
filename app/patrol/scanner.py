"""
scanner.py — Scan workflow for a patrol device

photo -> OCR -> plate -> lookup, with state a UI can render between steps.

Business Rules:
- OCR runs on-device unless prefer_server is set and the server is reachable
- Lookups go to the server when online; every server answer is cached
- A transport failure marks the device offline; while offline, each scan or
  manual lookup re-checks /health first and goes back online when it answers.
  Offline lookups are answered from cache; a miss raises PatrolScanError,
  as does an HTTP error from the server
- Manual entry needs at least 2 characters

Called by: patrol device UI
Depends on: patrol/client.py, patrol/cache.py, services/ocr_service
"""

import httpx
from loguru import logger

from ..services.ocr_service import OCREngineError, recognize_plate
from ..utils.license_plate import normalize_license_plate
from .cache import OfflineCache
from .client import PatrolApiClient, PatrolApiError

IDLE = "idle"
PROCESSING = "processing"
LOOKING_UP = "looking_up"
COMPLETE = "complete"
ERROR = "error"


class PatrolScanError(Exception):
    """A lookup could not be answered, online or from cache."""


class PatrolScanner:
    def __init__(
        self,
        client: PatrolApiClient,
        cache: OfflineCache,
        prefer_server: bool = False,
        local_ocr=recognize_plate,
    ):
        self.client = client
        self.cache = cache
        self.prefer_server = prefer_server
        self.local_ocr = local_ocr
        self.is_offline = False
        self.reset()

    def reset(self) -> None:
        self.scan_state = IDLE
        self.ocr_result: dict | None = None
        self.lookup_result: dict | None = None
        self.current_image: bytes | None = None
        self.error: str | None = None

    def _fail(self, message: str) -> None:
        self.error = message
        self.scan_state = ERROR

    def check_connectivity(self) -> bool:
        self.is_offline = not self.client.is_online()
        return not self.is_offline

    def _recheck_if_offline(self) -> None:
        if self.is_offline and self.check_connectivity():
            logger.info("Patrol server reachable again")

    # ── OCR ──────────────────────────────────────────────────────────

    def _recognize(self, image_bytes: bytes) -> dict:
        if self.prefer_server and not self.is_offline:
            try:
                result = self.client.recognize(image_bytes)
                self.is_offline = False
                return result
            except httpx.TransportError:
                logger.info("Server OCR unreachable, reading plate on device")
                self.is_offline = True
            except PatrolApiError as e:
                logger.warning("Server OCR failed ({}), reading plate on device", e.message)
        return self.local_ocr(image_bytes, source="client").to_dict()

    def scan(self, image_bytes: bytes) -> dict | None:
        self.reset()
        self._recheck_if_offline()
        self.current_image = image_bytes
        self.scan_state = PROCESSING
        try:
            ocr = self._recognize(image_bytes)
        except OCREngineError as e:
            self._fail(str(e))
            return None
        self.ocr_result = ocr
        if not ocr.get("success") or not ocr.get("license_plate"):
            self._fail(ocr.get("error") or "Could not read license plate from image")
            return None
        return self._lookup(ocr["license_plate"])

    # ── Lookup ───────────────────────────────────────────────────────

    def manual_lookup(self, license_plate: str) -> dict | None:
        self.reset()
        if len(normalize_license_plate(license_plate or "")) < 2:
            self._fail("Please enter a valid license plate")
            return None
        self._recheck_if_offline()
        return self._lookup(license_plate)

    def _from_cache(self, plate: str) -> dict | None:
        cached = self.cache.get_cached_lookup(plate)
        if cached is None:
            self._fail("Offline and no cached data available for this plate")
            raise PatrolScanError(self.error)
        self.lookup_result = {**cached, "from_cache": True}
        self.scan_state = COMPLETE
        return self.lookup_result

    def _lookup(self, plate: str) -> dict | None:
        self.scan_state = LOOKING_UP
        plate = normalize_license_plate(plate)
        if self.is_offline:
            return self._from_cache(plate)
        try:
            result = self.client.lookup(plate)
        except httpx.TransportError:
            logger.info("Lookup for {} failed in transit, using offline cache", plate)
            self.is_offline = True
            return self._from_cache(plate)
        except PatrolApiError as e:
            self._fail(e.message or f"Lookup failed: {e.status_code}")
            raise PatrolScanError(self.error) from e

        self.is_offline = False
        self.cache.cache_lookup_result(plate, result)
        self.lookup_result = result
        self.scan_state = COMPLETE
        return result

    # ── Sync ─────────────────────────────────────────────────────────

    def sync(self) -> dict:
        """Pull the server snapshot into the offline cache."""
        snapshot = self.client.fetch_sync_snapshot()
        counts = self.cache.sync_patrol_data(snapshot)
        self.cache.clean_expired_cache()
        self.is_offline = False
        return counts
