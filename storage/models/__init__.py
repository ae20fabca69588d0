"""
Storage Models Package.

ORM models for the transfer store.

============================================================
MODEL ORGANIZATION
============================================================
- Base, TimestampMixin, BaseUnitAmount (base.py)
- TransferEvent, SyncCursor (transfers.py)

============================================================
"""

from storage.models.base import Base, BaseUnitAmount, TimestampMixin
from storage.models.transfers import SyncCursor, TransferEvent

__all__ = [
    "Base",
    "TimestampMixin",
    "BaseUnitAmount",
    "SyncCursor",
    "TransferEvent",
]
