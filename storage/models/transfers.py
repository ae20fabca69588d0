"""
Transfer Store ORM Models.

============================================================
PURPOSE
============================================================
Persistence targets for the transfer sync pipeline.

============================================================
DATA LIFECYCLE ROLE
============================================================
- TransferEvent: canonical on-chain transfer, append-only,
  unique on (chain, tx_hash, log_index)
- SyncCursor: resume point per (chain, provider, facilitator
  address, token address), advanced in the same transaction
  as the page it describes

============================================================
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, BaseUnitAmount, TimestampMixin


class TransferEvent(Base, TimestampMixin):
    """
    One token transfer submitted by a facilitator.

    ============================================================
    IDENTITY
    ============================================================
    (chain, tx_hash, log_index) identifies the event. Inserts
    that collide on it are skipped, so re-ingesting a window
    never creates duplicates.

    ============================================================
    """

    __tablename__ = "transfer_events"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    chain: Mapped[str] = mapped_column(String(32), nullable=False)

    tx_hash: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        comment="Transaction hash or signature"
    )

    log_index: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Intra-transaction ordering key"
    )

    address: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Token contract / mint address"
    )

    transaction_from: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Facilitator address that submitted the transaction"
    )

    sender: Mapped[str] = mapped_column(String(64), nullable=False)

    recipient: Mapped[str] = mapped_column(String(64), nullable=False)

    amount: Mapped[int] = mapped_column(
        BaseUnitAmount(),
        nullable=False,
        comment="Raw integer amount in token base units"
    )

    decimals: Mapped[int] = mapped_column(Integer, nullable=False)

    block_timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    provider: Mapped[str] = mapped_column(String(32), nullable=False)

    facilitator_id: Mapped[str] = mapped_column(String(64), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "chain", "tx_hash", "log_index",
            name="uq_transfer_events_identity",
        ),
        Index(
            "ix_transfer_events_resume",
            "chain", "provider", "transaction_from", "address", "block_timestamp",
        ),
        Index("ix_transfer_events_facilitator", "facilitator_id", "block_timestamp"),
    )

    def __repr__(self) -> str:
        return (
            f"<TransferEvent {self.chain}:{self.tx_hash}:{self.log_index} "
            f"amount={self.amount}>"
        )


class SyncCursor(Base, TimestampMixin):
    """
    Persisted resume point for one facilitator address and token.

    Exactly one of offset_value / timestamp_value is set, chosen
    by cursor_kind. The kind never changes for a key.
    """

    __tablename__ = "sync_cursors"

    chain: Mapped[str] = mapped_column(String(32), primary_key=True)

    provider: Mapped[str] = mapped_column(String(32), primary_key=True)

    facilitator_address: Mapped[str] = mapped_column(String(64), primary_key=True)

    token_address: Mapped[str] = mapped_column(String(64), primary_key=True)

    cursor_kind: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="offset | timestamp"
    )

    offset_value: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    timestamp_value: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        value = self.offset_value if self.cursor_kind == "offset" else self.timestamp_value
        return (
            f"<SyncCursor {self.chain}/{self.provider}/{self.facilitator_address}/"
            f"{self.token_address} {self.cursor_kind}={value}>"
        )
