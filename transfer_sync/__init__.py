"""
Transfer Sync Package.

Polls on-chain payment transfers submitted by known facilitators,
normalizes them into one canonical record and stores them idempotently
with resumable cursors.

Modules:
- models: Canonical records, configs, cursors, run results
- registry / facilitators: Static facilitator roster
- pagination: Offset and time-window strategies
- providers/: BitQuery, CDP SQL and warehouse adapters
- retry: Bounded backoff around provider calls
- sink: Transactional event + cursor persistence
- orchestrator: Per-task runner
- scheduler / cli: Cron wiring and entry point

Only the dependency-free modules are re-exported here; the storage layer
imports transfer_sync.models, so this package must not import it back.
"""

from transfer_sync.exceptions import TransferSyncError
from transfer_sync.models import (
    Chain,
    CursorKey,
    OffsetCursor,
    Provider,
    RunStatus,
    SyncConfig,
    SyncRunResult,
    SyncTask,
    TimestampCursor,
    TransferEventData,
)

__version__ = "1.0.0"

__all__ = [
    "Chain",
    "CursorKey",
    "OffsetCursor",
    "Provider",
    "RunStatus",
    "SyncConfig",
    "SyncRunResult",
    "SyncTask",
    "TimestampCursor",
    "TransferEventData",
    "TransferSyncError",
]
