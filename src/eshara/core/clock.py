"""Wall-clock wrappers so scheduling can be driven deterministically."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone


class Clock:
    """Source of the current UTC time."""

    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    """Clock backed by the operating system time."""

    def now(self) -> datetime:
        """Return the current timezone-aware UTC time."""
        return datetime.now(timezone.utc)


class ManualClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        if start is None:
            start = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)
        if start.tzinfo is None:
            raise ValueError("ManualClock requires a timezone-aware start time.")
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float = 0, **kwargs: float) -> datetime:
        """Move the clock forward and return the new time."""
        delta = timedelta(seconds=seconds, **kwargs)
        if delta < timedelta(0):
            raise ValueError("ManualClock cannot move backwards.")
        self._now = self._now + delta
        return self._now

    def sleep(self, seconds: float) -> None:
        """Drop-in replacement for time.sleep that advances the clock instead."""
        self.advance(seconds)
