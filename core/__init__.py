"""
Core Module Package.

Infrastructure shared by every part of the transfer sync pipeline.

Components:
- clock: Unified UTC time abstraction
"""

from .clock import ClockProtocol, MockClock, SystemClock, ensure_utc, get_clock, set_clock

__all__ = [
    "ClockProtocol",
    "MockClock",
    "SystemClock",
    "ensure_utc",
    "get_clock",
    "set_clock",
]
