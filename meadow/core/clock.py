"""
Time sources for the engine.

Every operation that depends on "now" takes its time from a `Clock` so that
sweeps and scenarios can be driven deterministically in tests. Times are
always timezone-aware UTC.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol, Union


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class VirtualClock:
    """
    Manually advanced clock.

    Example:
        >>> clock = VirtualClock(datetime(2025, 1, 1, tzinfo=timezone.utc))
        >>> clock.advance(minutes=10).minute
        10
    """

    def __init__(self, start: Optional[datetime] = None) -> None:
        start = start or datetime(2025, 1, 1, tzinfo=timezone.utc)
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(
        self,
        delta: Union[timedelta, None] = None,
        *,
        ms: int = 0,
        seconds: float = 0,
        minutes: float = 0,
        hours: float = 0,
    ) -> datetime:
        step = (delta or timedelta()) + timedelta(
            milliseconds=ms, seconds=seconds, minutes=minutes, hours=hours
        )
        if step < timedelta():
            raise ValueError("VirtualClock cannot move backwards")
        self._now += step
        return self._now

    def set(self, moment: datetime) -> None:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        if moment < self._now:
            raise ValueError("VirtualClock cannot move backwards")
        self._now = moment

