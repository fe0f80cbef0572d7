"""
client.py — HTTP client a patrol device uses to talk to the server

Wraps the OCR, lookup and sync endpoints with a cookie-keeping
httpx.Client. Transport failures (no signal) surface as httpx.TransportError
so the scanner can fall back to the offline cache; HTTP error responses
surface as PatrolApiError carrying the server's message.

Called by: patrol/scanner.py
Depends on: httpx
"""

import base64

import httpx
from loguru import logger


class PatrolApiError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _error_message(resp: httpx.Response) -> str | None:
    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("error") or body.get("detail")
    return None


class PatrolApiClient:
    def __init__(self, base_url: str, timeout: float = 15, transport: httpx.BaseTransport | None = None):
        self.http = httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    def close(self) -> None:
        self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _post(self, path: str, payload: dict, failure: str = "Request failed") -> dict:
        resp = self.http.post(path, json=payload)
        if resp.status_code >= 400:
            raise PatrolApiError(resp.status_code, _error_message(resp) or f"{failure}: {resp.status_code}")
        return resp.json()

    def login(self, email: str, password: str) -> dict:
        """Sign in; the session cookie is kept on the client for later calls."""
        return self._post("/api/auth/login", {"email": email, "password": password}, "Login failed")

    def recognize(self, image_bytes: bytes, mime_type: str = "image/jpeg") -> dict:
        data_url = f"data:{mime_type};base64,{base64.b64encode(image_bytes).decode()}"
        return self._post("/api/ocr/recognize", {"image": data_url}, "Recognition failed")

    def lookup(self, license_plate: str) -> dict:
        return self._post("/api/patrol/lookup", {"license_plate": license_plate}, "Lookup failed")

    def fetch_sync_snapshot(self) -> dict:
        resp = self.http.get("/api/patrol/sync")
        if resp.status_code >= 400:
            raise PatrolApiError(resp.status_code, _error_message(resp) or f"Sync failed: {resp.status_code}")
        return resp.json()

    def is_online(self) -> bool:
        try:
            resp = self.http.get("/health", timeout=5)
        except httpx.TransportError as e:
            logger.debug("Patrol server unreachable: {}", e)
            return False
        return resp.status_code == 200
