"""
Core Module - Clock.

============================================================
RESPONSIBILITY
============================================================
Provides a testable clock abstraction.

- Session expiry and window resolution read time from a clock
- Clocks are injected, never looked up from a global
- UTC only

============================================================
STORAGE CONVENTION
============================================================
Timestamps are stored as naive UTC datetimes. Use
to_naive_utc() before comparing anything against a column.

============================================================
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from typing import Generator, Optional
import threading


# ============================================================
# CLOCK PROTOCOL
# ============================================================

class ClockProtocol(ABC):
    """Abstract interface for the clock."""

    @abstractmethod
    def now(self) -> datetime:
        """Get current UTC datetime."""
        pass

    def today(self) -> date:
        """Get current UTC date."""
        return self.now().date()


class SystemClock(ClockProtocol):
    """Production clock using actual system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class MockClock(ClockProtocol):
    """
    Mock clock for testing.

    Allows time manipulation for deterministic tests.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        self._time = _as_aware(initial_time or datetime.now(timezone.utc))
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._time

    def set_time(self, new_time: datetime) -> None:
        with self._lock:
            self._time = _as_aware(new_time)

    def advance(self, seconds: float = 0, **kwargs) -> None:
        """
        Advance time by the specified amount.

        Args:
            seconds: Number of seconds to advance
            **kwargs: Passed to timedelta (hours, minutes, days, etc.)
        """
        with self._lock:
            self._time = self._time + timedelta(seconds=seconds, **kwargs)

    @contextmanager
    def freeze(self, at_time: datetime) -> Generator[None, None, None]:
        """Temporarily pin the clock to at_time."""
        with self._lock:
            original_time = self._time
            self._time = _as_aware(at_time)
        try:
            yield
        finally:
            with self._lock:
                self._time = original_time


# ============================================================
# TIMESTAMP UTILITIES
# ============================================================

def _as_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert any datetime to the naive-UTC storage convention."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utcnow_naive() -> datetime:
    """Current time in the storage convention."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_iso8601(dt: datetime) -> str:
    """Convert datetime to ISO 8601 string (UTC)."""
    return _as_aware(dt).isoformat()


__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "to_naive_utc",
    "utcnow_naive",
    "to_iso8601",
]
