"""
Clock -- injectable time source.

Responsibility:
    File selection compares file modification times against "now"; the
    pipeline never calls ``datetime.now()`` directly so that age gating is
    deterministic under test.

Failure modes:
    None. ``SystemClock`` is the one sanctioned I/O boundary for time.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Guarantees:
        ``now()`` returns a timezone-aware UTC ``datetime``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...


class SystemClock(Clock):
    """Production clock that returns actual system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` returns the same value on repeated calls until ``advance()``
    or ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(
            2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )
        self._advance = timedelta(0)

    def now(self) -> datetime:
        return self._fixed_time + self._advance

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        self._fixed_time = time
        self._advance = timedelta(0)

    def advance(self, milliseconds: int = 1000) -> None:
        """Advance the clock by the given number of milliseconds."""
        self._advance += timedelta(milliseconds=milliseconds)
