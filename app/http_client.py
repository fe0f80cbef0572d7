"""Shared outbound HTTP client (email provider calls).

One module-level httpx.AsyncClient with pooled connections. Callers pass a
per-request timeout: `await http.post(url, json=payload, timeout=15)`.
Closed by the app lifespan on shutdown.
"""

import httpx

from .config import APP_VERSION

http = httpx.AsyncClient(
    timeout=30,
    limits=httpx.Limits(max_connections=10, max_keepalive_connections=5, keepalive_expiry=30),
    headers={"User-Agent": f"AlinaVisitorParking/{APP_VERSION}"},
    follow_redirects=False,
)


async def close_clients():
    try:
        await http.aclose()
    except RuntimeError:
        # Event loop already gone (test teardown)
        pass
