"""
Domain-specific exception hierarchy for the commontime application.
"""

from typing import Optional


class CommonTimeError(Exception):
    """Base class for all application-level errors."""


class SessionError(CommonTimeError):
    """Raised when the local session lacks what an operation needs."""


class StoreError(CommonTimeError):
    """Raised when the event store cannot complete a request."""


class NotFoundError(StoreError):
    """Raised when the requested event does not exist."""


class ExpiredError(StoreError):
    """Raised when the event has passed its expiry time."""


class LockedError(StoreError):
    """Raised when the event is locked and no longer accepts changes."""


class NicknameConflictError(StoreError):
    """Raised when another participant already owns the nickname."""


class ForbiddenError(StoreError):
    """Raised when the creator token does not match the event."""


class ValidationError(StoreError):
    """Raised when a request is rejected as invalid input."""


class MalformedPayloadError(StoreError):
    """Raised when a payload from the store does not match its schema."""


class RateLimitedError(StoreError):
    """Raised when too many passcode attempts were made."""

    def __init__(self, message: str, retry_after: Optional[int] = None):
        super().__init__(message)
        self.retry_after = retry_after
