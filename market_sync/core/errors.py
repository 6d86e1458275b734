"""Exception hierarchy for market data sync, enrichment and analytics.

Callers catch the specific subclass they can handle (rate limits, storage
failures) and let the rest propagate as ``MarketSyncError``.
"""

from __future__ import annotations

from typing import Optional


class MarketSyncError(Exception):
    """Base exception for all market_sync errors."""


class UpstreamError(MarketSyncError):
    """Network error or non-2xx response from the market data API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(UpstreamError):
    """The market data API answered 429 Too Many Requests."""

    def __init__(self, message: str = "Rate limit reached"):
        super().__init__(message, status_code=429)


class ResponseValidationError(MarketSyncError):
    """Upstream response did not match the expected shape."""


class StorageError(MarketSyncError):
    """A store transaction failed and was rolled back."""


class SyncCycleError(MarketSyncError):
    """A sync cycle exhausted its retry budget."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


class MissingDependencyError(MarketSyncError):
    """A required credential or service is not available at startup."""


class ReadinessTimeoutError(MarketSyncError):
    """Timed out waiting for an upstream service to become ready."""
