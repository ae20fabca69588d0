"""
Repository Layer Package.

============================================================
PURPOSE
============================================================
The Repository Layer is the ONLY gateway to the transfer
store. All database access goes through these classes.

============================================================
ARCHITECTURE PRINCIPLES
============================================================
1. Session Injection: Sessions are injected, not created internally
2. No commits: the caller's transaction_scope() owns the commit
3. Exception Handling: All DB errors wrapped in repository exceptions

============================================================
REPOSITORIES
============================================================
- TransferEventRepository: Idempotent transfer event storage
- SyncCursorRepository: Monotonic per-key resume points

============================================================
USAGE
============================================================

    from database import transaction_scope
    from storage.repositories import SyncCursorRepository, TransferEventRepository

    with transaction_scope() as session:
        saved = TransferEventRepository(session).upsert_many(events)
        SyncCursorRepository(session).advance(key, cursor)

============================================================
"""

from storage.repositories.exceptions import (
    RepositoryException,
    IntegrityError,
    ConnectionError,
    QueryError,
    CursorRegressionError,
)
from storage.repositories.base import BaseRepository
from storage.repositories.transfer_events import TransferEventRepository
from storage.repositories.sync_cursors import SyncCursorRepository

__all__ = [
    # Exceptions
    "RepositoryException",
    "IntegrityError",
    "ConnectionError",
    "QueryError",
    "CursorRegressionError",

    # Base
    "BaseRepository",

    # Repositories
    "TransferEventRepository",
    "SyncCursorRepository",
]
