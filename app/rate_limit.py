"""Shared rate limiter, keyed by client IP.

Public endpoints (visitor registration, pass lookup, login) carry their own
tighter limits from settings; everything else falls under the default.
Storage is in-memory, so limits are per worker process.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit_default],
    enabled=settings.rate_limit_enabled,
)
