"""Patrol device client: server API wrapper, offline cache and scan workflow."""

from .cache import OfflineCache
from .client import PatrolApiClient, PatrolApiError
from .scanner import PatrolScanError, PatrolScanner

__all__ = ["OfflineCache", "PatrolApiClient", "PatrolApiError", "PatrolScanError", "PatrolScanner"]
