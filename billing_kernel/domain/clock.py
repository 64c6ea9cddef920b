"""
Clock -- Deterministic time abstraction.

Responsibility:
    Provides an injectable clock so that document-number generation and
    any other time-dependent helper never call ``datetime.now()`` directly.

Architecture position:
    Kernel > Domain -- pure functional core. SystemClock is the one
    sanctioned I/O boundary for time.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        Helpers that need the current time receive a Clock instance.
        ``now()`` returns a timezone-aware ``datetime``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...


class SystemClock(Clock):
    """Production clock returning local wall-clock time (timezone-aware)."""

    def now(self) -> datetime:
        return datetime.now().astimezone()


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Guarantees:
        - ``now()`` returns the same value on repeated calls until
          ``advance()`` or ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(
            2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )
        self._advance = timedelta(0)

    def now(self) -> datetime:
        return self._fixed_time + self._advance

    def set_time(self, time: datetime) -> None:
        self._fixed_time = time
        self._advance = timedelta(0)

    def advance(self, seconds: float = 1) -> None:
        self._advance += timedelta(seconds=seconds)
