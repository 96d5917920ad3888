"""
Fixed-window throttling for passcode attempts.

State lives in process memory only, so limits reset when the process
restarts. This is best-effort throttling, not a durable guarantee.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import pendulum
from pendulum import DateTime

from ..domain.exceptions import RateLimitedError

logger = logging.getLogger(__name__)

Clock = Callable[[], DateTime]


@dataclass
class _Window:
    started_at: DateTime
    attempts: int = 0


class PasscodeRateLimiter:
    """Allows ``attempts`` tries per (caller, event) within each window."""

    def __init__(
        self,
        attempts: int = 5,
        window_seconds: int = 60,
        clock: Optional[Clock] = None
    ):
        self.attempts = attempts
        self.window_seconds = window_seconds
        self._clock = clock or (lambda: pendulum.now("UTC"))
        self._windows: Dict[Tuple[str, str], _Window] = {}
        self._last_sweep: Optional[DateTime] = None

    def hit(self, caller_id: str, event_id: str) -> int:
        """
        Record one attempt.

        Returns:
            Attempts left in the current window

        Raises:
            RateLimitedError: If the window is already exhausted
        """
        now = self._clock()
        self._sweep(now)
        key = (caller_id, event_id)
        window = self._windows.get(key)

        if window is None or self._elapsed(window, now) >= self.window_seconds:
            window = _Window(started_at=now)
            self._windows[key] = window

        if window.attempts >= self.attempts:
            retry_after = max(1, math.ceil(self.window_seconds - self._elapsed(window, now)))
            logger.warning(
                "Passcode attempts exhausted for event %s (caller %s), retry in %ss",
                event_id, caller_id, retry_after
            )
            raise RateLimitedError(
                f"Too many passcode attempts, try again in {retry_after} seconds",
                retry_after=retry_after,
            )

        window.attempts += 1
        return self.attempts - window.attempts

    @property
    def window_count(self) -> int:
        """Number of (caller, event) windows currently tracked."""
        return len(self._windows)

    def reset(self, caller_id: str, event_id: str) -> None:
        self._windows.pop((caller_id, event_id), None)

    def _sweep(self, now: DateTime) -> None:
        """Drop expired windows, at most once per window length."""
        if self._last_sweep is not None and self._elapsed_since(self._last_sweep, now) < self.window_seconds:
            return
        self._last_sweep = now
        expired = [
            key for key, window in self._windows.items()
            if self._elapsed(window, now) >= self.window_seconds
        ]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug("Evicted %d expired passcode window(s)", len(expired))

    @staticmethod
    def _elapsed_since(start: DateTime, now: DateTime) -> float:
        return (now - start).total_seconds()

    @staticmethod
    def _elapsed(window: _Window, now: DateTime) -> float:
        return PasscodeRateLimiter._elapsed_since(window.started_at, now)
