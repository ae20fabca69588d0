"""
Core Module - Sync Clock.

============================================================
RESPONSIBILITY
============================================================
Single source of "now" for the transfer sync pipeline.

- Time-window pagination never issues a window past now()
- Run duration budgets are measured against now()
- Tests swap in MockClock for deterministic windows

============================================================
DESIGN PRINCIPLES
============================================================
- UTC only, every datetime returned is timezone-aware
- Mockable for testing
- Thread-safe

============================================================
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional
import threading


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ============================================================
# CLOCK PROTOCOL
# ============================================================

class ClockProtocol(ABC):
    """Abstract interface for the pipeline clock."""

    @abstractmethod
    def now(self) -> datetime:
        """Get current UTC datetime."""
        pass

    def timestamp(self) -> float:
        """Get current Unix timestamp."""
        return self.now().timestamp()

    def deadline(self, seconds: float) -> datetime:
        """Return the instant `seconds` from now."""
        return self.now() + timedelta(seconds=seconds)

    def is_past(self, instant: datetime) -> bool:
        """True once `instant` has been reached."""
        return self.now() >= instant


# ============================================================
# SYSTEM CLOCK (PRODUCTION)
# ============================================================

class SystemClock(ClockProtocol):
    """Production clock backed by the system time, always UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


# ============================================================
# MOCK CLOCK (TESTING)
# ============================================================

class MockClock(ClockProtocol):
    """
    Mock clock for testing.

    Time only moves when set_time() or advance() is called.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        self._time = ensure_utc(initial_time or datetime.now(timezone.utc))
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._time

    def set_time(self, new_time: datetime) -> None:
        """Jump to an absolute time."""
        with self._lock:
            self._time = ensure_utc(new_time)

    def advance(self, seconds: float = 0, **kwargs) -> None:
        """
        Advance time by the specified amount.

        Args:
            seconds: Number of seconds to advance
            **kwargs: Passed to timedelta (hours, minutes, days, etc.)
        """
        with self._lock:
            self._time = self._time + timedelta(seconds=seconds, **kwargs)


_clock: Optional[ClockProtocol] = None


def get_clock() -> ClockProtocol:
    """Get the process-wide clock, a SystemClock unless overridden."""
    global _clock
    if _clock is None:
        _clock = SystemClock()
    return _clock


def set_clock(clock: Optional[ClockProtocol]) -> None:
    """Override the process-wide clock (None restores SystemClock)."""
    global _clock
    _clock = clock
