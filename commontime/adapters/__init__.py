"""
Adapters layer - Event store integrations (REST backend, local store).
"""

from .http_client import ApiClient
from .memory_store import InMemoryEventStore
from .rate_limiter import PasscodeRateLimiter

__all__ = ["ApiClient", "InMemoryEventStore", "PasscodeRateLimiter"]
