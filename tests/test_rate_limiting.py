"""
tests/test_rate_limiting.py — Tests for rate limiting behavior

Covers: slowapi rate limiter configuration, per-IP limiting on the public
login and lookup endpoints, and the disabled-in-tests default.

Called by: pytest
Depends on: app.rate_limit, routers/auth.py, routers/passes.py
"""

import os

import pytest

from app.rate_limit import limiter


@pytest.fixture()
def limits_on():
    """Turn the limiter on for one test, with a clean counter store."""
    limiter.reset()
    limiter.enabled = True
    yield limiter
    limiter.enabled = False
    limiter.reset()


def test_limiter_is_configured():
    """Rate limiter module exports a Limiter with key_func."""
    assert limiter is not None
    assert limiter._key_func is not None


def test_limiter_uses_remote_address():
    """Key function is get_remote_address (IP-based limiting)."""
    from slowapi.util import get_remote_address
    assert limiter._key_func is get_remote_address


def test_rate_limit_disabled_in_test_mode(client, manager_user):
    """conftest sets RATE_LIMIT_ENABLED=false, so repeated logins never 429."""
    assert os.environ.get("RATE_LIMIT_ENABLED") == "false"
    for _ in range(8):
        resp = client.post("/api/auth/login", json={"email": manager_user.email, "password": "wrong-pass"})
        assert resp.status_code == 401


def test_login_rate_limited(client, manager_user, limits_on):
    """Login allows 5 attempts per window, then 429."""
    statuses = [
        client.post("/api/auth/login", json={"email": manager_user.email, "password": "wrong-pass"}).status_code
        for _ in range(6)
    ]
    assert statuses[:5] == [401] * 5
    assert statuses[5] == 429


def test_lookup_rate_limited(client, limits_on):
    """Public pass lookup allows 20 requests per window."""
    url = "/api/passes/lookup?confirmation_code=abcdef&license_plate=ABC123"
    statuses = [client.get(url).status_code for _ in range(21)]
    assert set(statuses[:20]) == {404}
    assert statuses[20] == 429
