"""
Tests for Pagination Strategies.

Tests cover:
- Offset paging over the ascending stream
- Fixed-span windows that never end after now
- Cursor kind checks
- The three-day backfill walk-through
"""

from datetime import datetime, timedelta, timezone

import pytest

from transfer_sync.exceptions import CursorModeMismatchError
from transfer_sync.facilitators import USDC_BASE_TOKEN
from transfer_sync.models import (
    Chain,
    FacilitatorConfig,
    OffsetCursor,
    PageRequest,
    PaginationMode,
    PaginationSettings,
    TimestampCursor,
)
from transfer_sync.pagination import (
    OffsetPagination,
    TimeWindowPagination,
    build_strategy,
)


T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)

CONFIG = FacilitatorConfig(
    chain=Chain.BASE,
    address="0x" + "a" * 40,
    token=USDC_BASE_TOKEN,
    sync_start_date=T0,
)


# =============================================================
# TEST: OffsetPagination
# =============================================================

class TestOffsetPagination:
    """Offset strategy behavior."""

    def test_new_key_starts_at_zero(self):
        strategy = OffsetPagination(limit=100)
        now = T0 + timedelta(days=1)

        page = strategy.next_page(None, CONFIG, now)

        assert page == PageRequest(since=T0, until=now, offset=0, limit=100)

    def test_resumes_at_persisted_offset(self):
        strategy = OffsetPagination(limit=100)
        page = strategy.next_page(OffsetCursor(250), CONFIG, T0 + timedelta(days=1))

        assert page.offset == 250

    def test_full_page_is_not_exhausted(self):
        strategy = OffsetPagination(limit=100)
        page = PageRequest(since=T0, until=T0 + timedelta(days=1), offset=200, limit=100)

        cursor, exhausted = strategy.advance(OffsetCursor(200), page, 100, page.until)

        assert cursor == OffsetCursor(300)
        assert exhausted is False

    def test_short_page_exhausts(self):
        strategy = OffsetPagination(limit=100)
        page = PageRequest(since=T0, until=T0 + timedelta(days=1), offset=0, limit=100)

        cursor, exhausted = strategy.advance(None, page, 42, page.until)

        assert cursor == OffsetCursor(42)
        assert exhausted is True

    def test_never_requests_below_cursor(self):
        strategy = OffsetPagination(limit=10)
        now = T0 + timedelta(days=3)
        cursor = OffsetCursor(0)

        for _ in range(5):
            page = strategy.next_page(cursor, CONFIG, now)
            assert page.offset >= cursor.offset
            cursor, _ = strategy.advance(cursor, page, 10, now)

        assert cursor == OffsetCursor(50)

    def test_start_date_in_future_yields_nothing(self):
        strategy = OffsetPagination(limit=10)
        assert strategy.next_page(None, CONFIG, T0 - timedelta(hours=1)) is None

    def test_rejects_timestamp_cursor(self):
        strategy = OffsetPagination(limit=10)
        with pytest.raises(CursorModeMismatchError) as exc_info:
            strategy.next_page(TimestampCursor(T0), CONFIG, T0 + timedelta(days=1))

        assert exc_info.value.expected_kind == "offset"
        assert exc_info.value.actual_kind == "timestamp"

    def test_rejects_non_positive_limit(self):
        with pytest.raises(ValueError):
            OffsetPagination(limit=0)


# =============================================================
# TEST: TimeWindowPagination
# =============================================================

class TestTimeWindowPagination:
    """Time-window strategy behavior."""

    def test_new_key_starts_at_sync_start_date(self):
        strategy = TimeWindowPagination(limit=100, window_span=timedelta(days=1))

        page = strategy.next_page(None, CONFIG, T0 + timedelta(days=5))

        assert page.since == T0
        assert page.until == T0 + timedelta(days=1)
        assert page.offset == 0

    def test_window_is_clamped_to_now(self):
        strategy = TimeWindowPagination(limit=100, window_span=timedelta(days=7))
        now = T0 + timedelta(hours=5)

        page = strategy.next_page(TimestampCursor(T0), CONFIG, now)

        assert page.until == now

    def test_caught_up_cursor_yields_nothing(self):
        strategy = TimeWindowPagination(limit=100, window_span=timedelta(days=1))
        now = T0 + timedelta(days=2)

        assert strategy.next_page(TimestampCursor(now), CONFIG, now) is None

    def test_advance_moves_cursor_to_window_end(self):
        strategy = TimeWindowPagination(limit=100, window_span=timedelta(days=1))
        now = T0 + timedelta(days=3)
        page = strategy.next_page(None, CONFIG, now)

        cursor, exhausted = strategy.advance(None, page, 0, now)

        assert cursor == TimestampCursor(T0 + timedelta(days=1))
        assert exhausted is False

    def test_rejects_offset_cursor(self):
        strategy = TimeWindowPagination(limit=100, window_span=timedelta(days=1))
        with pytest.raises(CursorModeMismatchError):
            strategy.advance(OffsetCursor(3), PageRequest(T0, T0, 0, 100), 0, T0)

    def test_windows_never_exceed_now(self):
        strategy = TimeWindowPagination(limit=100, window_span=timedelta(hours=7))
        now = T0 + timedelta(days=2, minutes=13)
        cursor = None
        exhausted = False

        while not exhausted:
            page = strategy.next_page(cursor, CONFIG, now)
            assert page.until <= now
            assert page.since < page.until
            cursor, exhausted = strategy.advance(cursor, page, 0, now)

        assert cursor == TimestampCursor(now)

    def test_three_day_backfill_then_partial_window(self):
        """Backfill from T0 in day windows, then one partial window an hour later."""
        strategy = TimeWindowPagination(limit=10_000, window_span=timedelta(days=1))
        now = T0 + timedelta(days=3)

        windows = []
        cursor = None
        exhausted = False
        while not exhausted:
            page = strategy.next_page(cursor, CONFIG, now)
            windows.append((page.since, page.until))
            cursor, exhausted = strategy.advance(cursor, page, 0, now)

        assert windows == [
            (T0, T0 + timedelta(days=1)),
            (T0 + timedelta(days=1), T0 + timedelta(days=2)),
            (T0 + timedelta(days=2), T0 + timedelta(days=3)),
        ]
        assert cursor == TimestampCursor(T0 + timedelta(days=3))

        later = now + timedelta(hours=1)
        page = strategy.next_page(cursor, CONFIG, later)
        assert (page.since, page.until) == (T0 + timedelta(days=3), later)

        cursor, exhausted = strategy.advance(cursor, page, 0, later)
        assert cursor == TimestampCursor(later)
        assert exhausted is True


# =============================================================
# TEST: build_strategy
# =============================================================

class TestBuildStrategy:
    """Strategy selection from PaginationSettings."""

    def test_offset_settings(self):
        strategy = build_strategy(PaginationSettings(mode=PaginationMode.OFFSET, limit=500))
        assert isinstance(strategy, OffsetPagination)
        assert strategy.limit == 500

    def test_time_window_settings(self):
        strategy = build_strategy(PaginationSettings(
            mode=PaginationMode.TIME_WINDOW,
            limit=50,
            window_span=timedelta(days=7),
        ))
        assert isinstance(strategy, TimeWindowPagination)
        assert strategy.window_span == timedelta(days=7)

    def test_time_window_requires_span(self):
        with pytest.raises(ValueError):
            PaginationSettings(mode=PaginationMode.TIME_WINDOW, limit=50)
