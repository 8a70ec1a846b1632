"""
Wall-clock deadline passed down the enrichment call chain.

The batch owns one Deadline; every stage asks it how long it may wait
(``clamp``) instead of racing its own timer against the batch timer.
"""

from __future__ import annotations

import time
from typing import Callable, Optional


class BatchTimeoutError(Exception):
    """The overall batch deadline passed before every item finished."""


class Deadline:
    def __init__(
        self,
        seconds: Optional[float],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self.started = clock()
        self.seconds = seconds
        self.expires_at = None if seconds is None else self.started + seconds

    @classmethod
    def unbounded(cls) -> "Deadline":
        return cls(None)

    def elapsed(self) -> float:
        return self._clock() - self.started

    def remaining(self) -> Optional[float]:
        """Seconds left, never negative. None when there is no deadline."""
        if self.expires_at is None:
            return None
        return max(self.expires_at - self._clock(), 0.0)

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def clamp(self, timeout: float) -> float:
        """The smaller of a stage's own timeout and the time left in the batch."""
        remaining = self.remaining()
        if remaining is None:
            return timeout
        return min(timeout, remaining)

    def check(self, operation: str = "operation") -> None:
        if self.expired:
            minutes = (self.seconds or 0) / 60
            raise BatchTimeoutError(f"{operation} timed out: exceeded {minutes:g} minutes")
