"""
Error taxonomy for the alert evaluation subsystem
"""
from typing import List, Optional


class AlertServiceError(Exception):
    """Base class for alert service errors"""


class DataUnavailable(AlertServiceError):
    """Every configured market data provider failed for an asset."""

    def __init__(self, asset: str, failures: Optional[List[str]] = None):
        self.asset = asset
        self.failures = list(failures or [])
        detail = "; ".join(self.failures) if self.failures else "no providers configured"
        super().__init__(f"Market data unavailable for {asset}: {detail}")


class StoreUnavailable(AlertServiceError):
    """The alert store could not be read or written."""


class NotificationFailed(AlertServiceError):
    """The notification transport failed after all retry attempts."""

    def __init__(self, message: str, attempts: int = 0):
        self.attempts = attempts
        super().__init__(message)


class AlertValidationError(AlertServiceError, ValueError):
    """An alert creation payload is inconsistent with its kind."""
