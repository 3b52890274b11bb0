"""
Clock -- Deterministic time abstraction.

Responsibility:
    Provides an injectable clock so that domain and service code never call
    ``time.time()`` or ``datetime.now()`` directly.  Ledger timestamps
    (start_time, rent_due_date, end_time) are integer UNIX seconds, the
    same resolution a block timestamp carries.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O (except SystemClock,
    which is the one sanctioned I/O boundary for time).

Failure modes:
    - DeterministicClock.advance raises ValueError for negative steps;
      ledger time never moves backwards.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone

SECONDS_PER_DAY = 24 * 60 * 60


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        All services that need the current time receive a Clock via
        constructor injection.

    Guarantees:
        - ``now()`` returns a timezone-aware UTC ``datetime``.
        - ``timestamp()`` returns whole UNIX seconds derived from ``now()``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current UTC time."""
        ...

    def timestamp(self) -> int:
        """Get the current time as whole UNIX seconds."""
        return int(self.now().timestamp())


class SystemClock(Clock):
    """Production clock that returns actual system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test and demo clock with controlled time.

    Contract:
        Stands in for block-time manipulation in tests and simulations.

    Guarantees:
        - ``now()`` returns the same value on repeated calls until
          ``advance()``, ``advance_days()`` or ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        """
        Args:
            fixed_time: Starting time. Defaults to 2024-01-01T12:00:00Z.
        """
        start = fixed_time or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        if start.tzinfo is None:
            raise ValueError("DeterministicClock requires a timezone-aware datetime")
        self._epoch_seconds = int(start.timestamp())

    @classmethod
    def at_timestamp(cls, seconds: int) -> "DeterministicClock":
        """Create a clock positioned at a UNIX timestamp."""
        return cls(datetime.fromtimestamp(seconds, tz=timezone.utc))

    def now(self) -> datetime:
        return datetime.fromtimestamp(self._epoch_seconds, tz=timezone.utc)

    def timestamp(self) -> int:
        return self._epoch_seconds

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        self._epoch_seconds = int(time.timestamp())

    def advance(self, seconds: int = 1) -> int:
        """Advance the clock by ``seconds`` and return the new timestamp."""
        if seconds < 0:
            raise ValueError("DeterministicClock cannot move backwards")
        self._epoch_seconds += seconds
        return self._epoch_seconds

    def advance_days(self, days: int) -> int:
        """Advance the clock by whole days and return the new timestamp."""
        return self.advance(days * SECONDS_PER_DAY)
