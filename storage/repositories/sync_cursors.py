"""
Sync Cursor Repository.

============================================================
PURPOSE
============================================================
Load and advance the per-key resume points of the sync
pipeline.

============================================================
INVARIANTS
============================================================
- A cursor only moves forward; advance() refuses regressions
- A key keeps one cursor kind for its whole life
- Rewinding is an explicit operator action (reset())

============================================================
"""

from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.clock import ensure_utc
from storage.models.transfers import SyncCursor
from storage.repositories.base import BaseRepository
from storage.repositories.exceptions import CursorRegressionError
from transfer_sync.exceptions import CursorModeMismatchError
from transfer_sync.models import Cursor, CursorKey, OffsetCursor, TimestampCursor


class SyncCursorRepository(BaseRepository[SyncCursor]):
    """Repository for the sync_cursors table."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, SyncCursor, "SyncCursorRepository")

    def _load_row(self, key: CursorKey) -> Optional[SyncCursor]:
        stmt = select(SyncCursor).where(
            SyncCursor.chain == key.chain.value,
            SyncCursor.provider == key.provider.value,
            SyncCursor.facilitator_address == key.facilitator_address,
            SyncCursor.token_address == key.token_address,
        )
        return self._execute_scalar(stmt)

    @staticmethod
    def _to_cursor(row: SyncCursor) -> Cursor:
        if row.cursor_kind == OffsetCursor.kind:
            return OffsetCursor(int(row.offset_value or 0))
        return TimestampCursor(ensure_utc(row.timestamp_value))

    def get(self, key: CursorKey) -> Optional[Cursor]:
        """Persisted cursor for `key`, or None if the key was never synced."""
        row = self._load_row(key)
        return self._to_cursor(row) if row is not None else None

    def advance(self, key: CursorKey, cursor: Cursor) -> Cursor:
        """
        Store `cursor` for `key`.

        Writing the current value again is allowed and changes nothing.

        Raises:
            CursorRegressionError: `cursor` is behind the stored one
            CursorModeMismatchError: `cursor` is not the stored kind
        """
        row = self._load_row(key)

        if row is None:
            row = SyncCursor(
                chain=key.chain.value,
                provider=key.provider.value,
                facilitator_address=key.facilitator_address,
                token_address=key.token_address,
                cursor_kind=cursor.kind,
            )
            self._apply(row, cursor)
            self._session.add(row)
            self._flush("advance")
            self._logger.debug(f"Created cursor {key} at {cursor}")
            return cursor

        current = self._to_cursor(row)
        if current.kind != cursor.kind:
            raise CursorModeMismatchError(
                f"Cursor for {key} is {current.kind}, refusing {cursor.kind}",
                expected_kind=current.kind,
                actual_kind=cursor.kind,
            )
        if cursor < current:
            raise CursorRegressionError(
                repository_name=self.repository_name,
                key=key,
                current=current,
                proposed=cursor,
            )

        if cursor != current:
            self._apply(row, cursor)
            self._flush("advance")
            self._logger.debug(f"Advanced cursor {key}: {current} -> {cursor}")
        return cursor

    def reset(self, key: CursorKey) -> bool:
        """
        Forget the cursor for `key` so the next run starts from scratch.

        Returns:
            True if a cursor was removed
        """
        stmt = delete(SyncCursor).where(
            SyncCursor.chain == key.chain.value,
            SyncCursor.provider == key.provider.value,
            SyncCursor.facilitator_address == key.facilitator_address,
            SyncCursor.token_address == key.token_address,
        )
        result = self._execute(stmt, "reset")
        removed = (result.rowcount or 0) > 0
        if removed:
            self._logger.warning(f"Cursor reset for {key}")
        return removed

    def list_all(self) -> list[SyncCursor]:
        return self._execute_query(select(SyncCursor).order_by(
            SyncCursor.chain, SyncCursor.provider, SyncCursor.facilitator_address,
        ))

    @staticmethod
    def _apply(row: SyncCursor, cursor: Cursor) -> None:
        if isinstance(cursor, OffsetCursor):
            row.offset_value = cursor.offset
            row.timestamp_value = None
        else:
            row.offset_value = None
            row.timestamp_value = ensure_utc(cursor.timestamp)

    def _flush(self, operation: str) -> None:
        try:
            self._session.flush()
        except SQLAlchemyError as e:
            self._handle_db_error(e, operation)
            raise
