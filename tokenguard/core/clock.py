"""Clock abstraction for time-dependent token logic.

Token expiry checks and the cleanup scheduler read the current time through
a ``Clock`` passed in at construction, so tests can drive time explicitly.
"""

from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Source of the current UTC time."""

    def now(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""
        ...


class SystemClock:
    """Wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class ManualClock:
    """Clock that only moves when told to.

    Args:
        start: Initial time. Naive datetimes are interpreted as UTC.
            Defaults to the current wall-clock time.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._now = _as_utc(start or datetime.now(UTC))

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        """Jump to an absolute time."""
        self._now = _as_utc(value)

    def advance(self, delta: timedelta | float) -> datetime:
        """Move forward by a timedelta or a number of seconds.

        Returns:
            The new current time.
        """
        if not isinstance(delta, timedelta):
            delta = timedelta(seconds=delta)
        self._now = self._now + delta
        return self._now


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
