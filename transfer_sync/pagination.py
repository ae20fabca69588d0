"""
Pagination Strategies - How a sync window advances.

============================================================
RESPONSIBILITY
============================================================
Given a cursor, compute the next page to request and, once the
page has been persisted, the cursor that follows it.

- OffsetPagination: numeric offset into the ascending row stream
  [sync_start_date, now), exhausted by a short page
- TimeWindowPagination: fixed-span [since, until) windows up to
  now, exhausted when a window reaches now

============================================================
DESIGN PRINCIPLES
============================================================
- Pure: no network, no database, no clock reads (now is passed in)
- A window never ends after now
- Cursor kinds are never mixed for one strategy

============================================================
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Optional

from core.clock import ensure_utc
from transfer_sync.exceptions import CursorModeMismatchError
from transfer_sync.models import (
    Cursor,
    FacilitatorConfig,
    OffsetCursor,
    PageRequest,
    PaginationMode,
    PaginationSettings,
    TimestampCursor,
)


class PaginationStrategy(ABC):
    """Abstract pagination strategy."""

    mode: PaginationMode
    cursor_type: type

    def __init__(self, limit: int) -> None:
        if limit <= 0:
            raise ValueError("limit must be positive")
        self.limit = limit

    @abstractmethod
    def initial_cursor(self, facilitator_config: FacilitatorConfig) -> Cursor:
        """Cursor for a key that has never been synced."""
        pass

    @abstractmethod
    def next_page(
        self,
        cursor: Optional[Cursor],
        facilitator_config: FacilitatorConfig,
        now: datetime,
    ) -> Optional[PageRequest]:
        """
        Next page to request, or None when there is nothing left before now.

        Args:
            cursor: Persisted cursor (None for a new key)
            facilitator_config: Address/token being synced
            now: Run reference time, upper bound of every page
        """
        pass

    @abstractmethod
    def advance(
        self,
        cursor: Optional[Cursor],
        page: PageRequest,
        rows_returned: int,
        now: datetime,
    ) -> tuple[Cursor, bool]:
        """
        Cursor after `page` committed, plus whether the key is exhausted.

        Args:
            cursor: Cursor the page was computed from
            page: Page that was fetched and persisted
            rows_returned: Raw upstream rows the page returned
            now: Run reference time
        """
        pass

    def _check(self, cursor: Optional[Cursor]) -> None:
        if cursor is not None and not isinstance(cursor, self.cursor_type):
            raise CursorModeMismatchError(
                f"{self.mode.value} pagination cannot use a {cursor.kind} cursor",
                expected_kind=self.cursor_type.kind,
                actual_kind=cursor.kind,
            )


class OffsetPagination(PaginationStrategy):
    """
    Offset into the ascending stream of rows since sync_start_date.

    New rows only ever append to the tail of that stream, so a
    persisted offset stays valid across runs.
    """

    mode = PaginationMode.OFFSET
    cursor_type = OffsetCursor

    def initial_cursor(self, facilitator_config: FacilitatorConfig) -> OffsetCursor:
        return OffsetCursor(0)

    def next_page(
        self,
        cursor: Optional[Cursor],
        facilitator_config: FacilitatorConfig,
        now: datetime,
    ) -> Optional[PageRequest]:
        self._check(cursor)
        cursor = cursor or self.initial_cursor(facilitator_config)
        since = ensure_utc(facilitator_config.sync_start_date)
        if since >= now:
            return None
        return PageRequest(since=since, until=now, offset=cursor.offset, limit=self.limit)

    def advance(
        self,
        cursor: Optional[Cursor],
        page: PageRequest,
        rows_returned: int,
        now: datetime,
    ) -> tuple[OffsetCursor, bool]:
        self._check(cursor)
        return OffsetCursor(page.offset + rows_returned), rows_returned < page.limit


class TimeWindowPagination(PaginationStrategy):
    """Fixed-span wall-clock windows from the last processed timestamp to now."""

    mode = PaginationMode.TIME_WINDOW
    cursor_type = TimestampCursor

    def __init__(self, limit: int, window_span: timedelta) -> None:
        super().__init__(limit)
        if window_span <= timedelta(0):
            raise ValueError("window_span must be positive")
        self.window_span = window_span

    def initial_cursor(self, facilitator_config: FacilitatorConfig) -> TimestampCursor:
        return TimestampCursor(ensure_utc(facilitator_config.sync_start_date))

    def next_page(
        self,
        cursor: Optional[Cursor],
        facilitator_config: FacilitatorConfig,
        now: datetime,
    ) -> Optional[PageRequest]:
        self._check(cursor)
        cursor = cursor or self.initial_cursor(facilitator_config)
        since = ensure_utc(cursor.timestamp)
        if since >= now:
            return None
        until = min(since + self.window_span, now)
        return PageRequest(since=since, until=until, offset=0, limit=self.limit)

    def advance(
        self,
        cursor: Optional[Cursor],
        page: PageRequest,
        rows_returned: int,
        now: datetime,
    ) -> tuple[TimestampCursor, bool]:
        self._check(cursor)
        return TimestampCursor(page.until), page.until >= now


def build_strategy(settings: PaginationSettings) -> PaginationStrategy:
    """Strategy for a SyncConfig's pagination settings."""
    if settings.mode == PaginationMode.OFFSET:
        return OffsetPagination(settings.limit)
    return TimeWindowPagination(settings.limit, settings.window_span)
