"""
Persistence Sink - Idempotent event writes and cursor advancement.

============================================================
RESPONSIBILITY
============================================================
The orchestrator's only door to the transfer store.

- upsert(): insert new events, skip known identities
- commit_page(): events and cursor advance in ONE transaction
- load_cursor() / latest_event_timestamp(): resume state
- reset_cursor(): explicit operator rewind
- cursor_status() / event_counts(): operator view of the store

============================================================
DESIGN PRINCIPLES
============================================================
- Synchronous; the orchestrator calls it through asyncio.to_thread
- A failed commit rolls back both the events and the cursor
- Calls are serialized, SQLite admits a single writer

============================================================
"""

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

from sqlalchemy.orm import Session

from core.clock import ensure_utc
from database.engine import transaction_scope
from storage.models.transfers import SyncCursor
from storage.repositories.sync_cursors import SyncCursorRepository
from storage.repositories.transfer_events import TransferEventRepository
from transfer_sync.models import Chain, Cursor, CursorKey, OffsetCursor, Provider, TransferEventData


logger = logging.getLogger(__name__)


class PersistenceSink:
    """
    Transfer store facade used by the sync orchestrator.

    Usage:
        sink = PersistenceSink()
        saved = sink.commit_page(events, key, TimestampCursor(page.until))
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None) -> None:
        self._session_factory = session_factory
        self._lock = threading.Lock()

    def upsert(self, events: Sequence[TransferEventData]) -> int:
        """Insert `events`, returning how many were new."""
        if not events:
            return 0
        with self._lock, transaction_scope(self._session_factory) as session:
            return TransferEventRepository(session).upsert_many(events)

    def commit_page(
        self,
        events: Sequence[TransferEventData],
        key: CursorKey,
        cursor: Cursor,
    ) -> int:
        """
        Persist one page: upsert its events and advance its cursor atomically.

        Returns:
            Number of newly inserted events

        Raises:
            DatabasePersistenceError: Nothing was written (cursor regression
                and kind mismatch included)
        """
        with self._lock, transaction_scope(self._session_factory) as session:
            saved = TransferEventRepository(session).upsert_many(events) if events else 0
            SyncCursorRepository(session).advance(key, cursor)
        return saved

    def load_cursor(self, key: CursorKey) -> Optional[Cursor]:
        with self._lock, transaction_scope(self._session_factory) as session:
            return SyncCursorRepository(session).get(key)

    def latest_event_timestamp(
        self,
        chain: Chain,
        provider: Provider,
        transaction_from: str,
        token_address: str,
    ) -> Optional[datetime]:
        """Newest stored block_timestamp for one facilitator address and token."""
        with self._lock, transaction_scope(self._session_factory) as session:
            return TransferEventRepository(session).latest_block_timestamp(
                chain, provider, transaction_from, token_address,
            )

    def reset_cursor(self, key: CursorKey) -> bool:
        """Delete the cursor for `key`; True if one existed."""
        with self._lock, transaction_scope(self._session_factory) as session:
            removed = SyncCursorRepository(session).reset(key)
        if removed:
            logger.warning(f"Cursor for {key} reset by operator")
        else:
            logger.info(f"No cursor stored for {key}")
        return removed

    def cursor_status(self) -> list[dict[str, Any]]:
        """Every stored cursor with its last update, for staleness checks."""
        with self._lock, transaction_scope(self._session_factory) as session:
            return [_cursor_entry(row) for row in SyncCursorRepository(session).list_all()]

    def event_counts(self, chain: Optional[Chain] = None) -> dict[str, int]:
        """Stored transfers per facilitator id."""
        with self._lock, transaction_scope(self._session_factory) as session:
            return TransferEventRepository(session).count_by_facilitator(chain)


def _cursor_entry(row: SyncCursor) -> dict[str, Any]:
    if row.cursor_kind == OffsetCursor.kind:
        value = row.offset_value
    else:
        value = ensure_utc(row.timestamp_value)
    return {
        "chain": row.chain,
        "provider": row.provider,
        "facilitator_address": row.facilitator_address,
        "token_address": row.token_address,
        "kind": row.cursor_kind,
        "value": value,
        "updated_at": ensure_utc(row.updated_at) if row.updated_at else None,
    }
