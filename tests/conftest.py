"""
Shared fixtures.
"""

import pendulum
import pytest

from commontime.adapters.memory_store import InMemoryEventStore
from commontime.adapters.rate_limiter import PasscodeRateLimiter
from commontime.domain.models import SlotType, TimeSlot


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start=None):
        self.now = start or pendulum.datetime(2024, 1, 10, 12, 0, tz="UTC")

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now.add(**kwargs)


def cell(date: str, slot: str) -> TimeSlot:
    return TimeSlot(date=date, slot=SlotType(slot))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryEventStore(
        ttl_days=30,
        rate_limiter=PasscodeRateLimiter(attempts=5, window_seconds=60, clock=clock),
        clock=clock,
    )
