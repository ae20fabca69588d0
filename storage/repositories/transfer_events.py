"""
Transfer Event Repository.

============================================================
PURPOSE
============================================================
Idempotent storage of canonical transfer events.

============================================================
DATA LIFECYCLE
============================================================
- Mutability: APPEND-ONLY
- Identity: (chain, tx_hash, log_index)
- Re-ingesting an event is a no-op, the existing row wins

============================================================
"""

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from core.clock import ensure_utc
from storage.models.transfers import TransferEvent
from storage.repositories.base import BaseRepository
from transfer_sync.models import Chain, Provider, TransferEventData


IDENTITY_COLUMNS = ["chain", "tx_hash", "log_index"]

# SQLite caps bound variables per statement; 13 columns x 500 rows stays under it
INSERT_BATCH_SIZE = 500


class TransferEventRepository(BaseRepository[TransferEvent]):
    """
    Repository for the transfer_events table.

    ============================================================
    SCOPE
    ============================================================
    - Batch insert with duplicate skipping
    - Resume-point lookup (latest stored block timestamp)
    - Simple counts for operators and tests

    ============================================================
    """

    def __init__(self, session: Session) -> None:
        super().__init__(session, TransferEvent, "TransferEventRepository")

    # =========================================================
    # WRITE OPERATIONS
    # =========================================================

    def upsert_many(self, events: Iterable[TransferEventData]) -> int:
        """
        Insert events, skipping any whose identity already exists.

        Duplicates inside the batch collapse to their first occurrence.

        Args:
            events: Canonical events to store

        Returns:
            Number of rows actually inserted
        """
        records = []
        seen: set[tuple[str, str, int]] = set()
        for event in events:
            if event.identity in seen:
                continue
            seen.add(event.identity)
            records.append(event.to_record())

        if not records:
            return 0

        insert = pg_insert if self.dialect_name == "postgresql" else sqlite_insert

        inserted = 0
        for start in range(0, len(records), INSERT_BATCH_SIZE):
            batch = records[start:start + INSERT_BATCH_SIZE]
            stmt = insert(TransferEvent).values(batch)
            stmt = stmt.on_conflict_do_nothing(index_elements=IDENTITY_COLUMNS)
            result = self._execute(stmt, "upsert_many")
            inserted += max(result.rowcount or 0, 0)

        self._logger.debug(f"Inserted {inserted}/{len(records)} transfer events")
        return inserted

    # =========================================================
    # READ OPERATIONS
    # =========================================================

    def latest_block_timestamp(
        self,
        chain: Chain,
        provider: Provider,
        transaction_from: str,
        token_address: str,
    ) -> Optional[datetime]:
        """Newest stored block_timestamp for one facilitator address and token."""
        stmt = select(func.max(TransferEvent.block_timestamp)).where(
            TransferEvent.chain == chain.value,
            TransferEvent.provider == provider.value,
            TransferEvent.transaction_from == transaction_from,
            TransferEvent.address == token_address,
        )
        value = self._execute_scalar(stmt)
        return ensure_utc(value) if value is not None else None

    def count(
        self,
        chain: Optional[Chain] = None,
        facilitator_id: Optional[str] = None,
    ) -> int:
        """Number of stored events, optionally narrowed to a chain or facilitator."""
        stmt = select(func.count()).select_from(TransferEvent)
        if chain is not None:
            stmt = stmt.where(TransferEvent.chain == chain.value)
        if facilitator_id is not None:
            stmt = stmt.where(TransferEvent.facilitator_id == facilitator_id)
        return int(self._execute_scalar(stmt) or 0)

    def count_by_facilitator(self, chain: Optional[Chain] = None) -> dict[str, int]:
        """Event counts keyed by facilitator id."""
        stmt = select(TransferEvent.facilitator_id, func.count()).group_by(TransferEvent.facilitator_id)
        if chain is not None:
            stmt = stmt.where(TransferEvent.chain == chain.value)
        rows = self._execute(stmt, "count_by_facilitator").all()
        return {facilitator_id: int(total) for facilitator_id, total in rows}
