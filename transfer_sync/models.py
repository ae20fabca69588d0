"""
Transfer Sync Data Models - Canonical records, configs and cursors.

All configuration types are frozen. They are built once from the static
roster at process start and never mutated.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional, Union


class Chain(Enum):
    """Supported blockchain networks."""
    BASE = "base"
    POLYGON = "polygon"
    SOLANA = "solana"

    @property
    def is_evm(self) -> bool:
        """EVM addresses are hex and compare case-insensitively."""
        return self in (Chain.BASE, Chain.POLYGON)


class Provider(Enum):
    """Upstream data source kinds."""
    BIGQUERY = "bigquery"
    CDP = "cdp"
    BITQUERY = "bitquery"


# Largest page a provider answers; bigger requests fail upstream
PROVIDER_MAX_PAGE_SIZE = {
    Provider.BITQUERY: 10_000,
}


class PaginationMode(Enum):
    """How a sync advances through upstream data."""
    OFFSET = "offset"
    TIME_WINDOW = "time_window"


class RunStatus(Enum):
    """Terminal state of one task invocation."""
    COMPLETED = "completed"
    ABORTED = "aborted"  # duration budget spent, not an error
    FAILED = "failed"


# Compute-class hint -> bounded worker count per run
COMPUTE_CLASS_WORKERS = {
    "micro": 1,
    "small-1x": 2,
    "small-2x": 3,
    "medium-1x": 4,
    "medium-2x": 6,
    "large-1x": 8,
    "large-2x": 12,
}
DEFAULT_WORKERS = 2


def workers_for_machine(machine: str) -> int:
    """Worker bound for a compute-class hint."""
    return COMPUTE_CLASS_WORKERS.get(machine, DEFAULT_WORKERS)


# ─────────────────────────────────────────────────────────────
# Registry types
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Token:
    """A token accepted by facilitators on one chain."""
    address: str
    symbol: str
    decimals: int


@dataclass(frozen=True)
class FacilitatorConfig:
    """One (address, token) pair a facilitator settles with on a chain."""
    chain: Chain
    address: str
    token: Token
    sync_start_date: datetime
    enabled: bool = True


@dataclass(frozen=True)
class Facilitator:
    """A logical payment-settlement actor."""
    id: str
    name: str
    addresses: tuple[FacilitatorConfig, ...] = ()
    image: str = ""
    link: str = ""
    color: str = ""

    def configs_for(self, chain: Chain, enabled_only: bool = True) -> tuple[FacilitatorConfig, ...]:
        """Configs on `chain`, optionally only the enabled ones."""
        return tuple(
            c for c in self.addresses
            if c.chain == chain and (c.enabled or not enabled_only)
        )


# ─────────────────────────────────────────────────────────────
# Cursors
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True, order=True)
class OffsetCursor:
    """Number of upstream rows already consumed for a key."""
    offset: int

    kind = "offset"

    def __str__(self) -> str:
        return f"offset={self.offset}"


@dataclass(frozen=True, order=True)
class TimestampCursor:
    """Exclusive upper bound of the last committed window."""
    timestamp: datetime

    kind = "timestamp"

    def __str__(self) -> str:
        return f"timestamp={self.timestamp.isoformat()}"


Cursor = Union[OffsetCursor, TimestampCursor]


@dataclass(frozen=True)
class CursorKey:
    """Identity of a persisted cursor."""
    chain: Chain
    provider: Provider
    facilitator_address: str
    token_address: str

    @classmethod
    def for_config(
        cls,
        sync_config: "SyncConfig",
        facilitator_config: FacilitatorConfig,
    ) -> "CursorKey":
        return cls(
            chain=sync_config.chain,
            provider=sync_config.provider,
            facilitator_address=facilitator_config.address,
            token_address=facilitator_config.token.address,
        )

    def __str__(self) -> str:
        return (
            f"{self.chain.value}/{self.provider.value}/"
            f"{self.facilitator_address}/{self.token_address}"
        )


# ─────────────────────────────────────────────────────────────
# Sync configuration
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PaginationSettings:
    """Strategy selection plus its parameters."""
    mode: PaginationMode
    limit: int
    window_span: Optional[timedelta] = None

    def __post_init__(self) -> None:
        if self.limit <= 0:
            raise ValueError("pagination limit must be positive")
        if self.mode == PaginationMode.TIME_WINDOW:
            if self.window_span is None or self.window_span <= timedelta(0):
                raise ValueError("time-window pagination needs a positive window_span")


@dataclass(frozen=True)
class SyncConfig:
    """
    The unit of schedulable work for one (chain, provider) pair.

    facilitator_ids=None covers every facilitator the registry has
    on the chain.
    """
    chain: Chain
    provider: Provider
    cron: str
    max_duration_seconds: int
    pagination: PaginationSettings
    machine: str = "small-1x"
    enabled: bool = True
    facilitator_ids: Optional[tuple[str, ...]] = None
    api_url: Optional[str] = None
    split_by_facilitator: bool = False

    def __post_init__(self) -> None:
        max_page = PROVIDER_MAX_PAGE_SIZE.get(self.provider)
        if max_page is not None and self.pagination.limit > max_page:
            raise ValueError(
                f"{self.provider.value} pages are capped at {max_page} rows, "
                f"got limit={self.pagination.limit}"
            )

    @property
    def task_id(self) -> str:
        return f"{self.chain.value}-sync-transfers-{self.provider.value}"

    def task_id_for(self, facilitator_id: str) -> str:
        """Job id of the split task for one facilitator."""
        return f"{self.task_id}-{facilitator_id}"

    @property
    def max_workers(self) -> int:
        return workers_for_machine(self.machine)


@dataclass(frozen=True)
class SyncTask:
    """A scheduled job: a SyncConfig optionally narrowed to some facilitators."""
    task_id: str
    sync_config: SyncConfig
    facilitator_ids: Optional[tuple[str, ...]] = None


# ─────────────────────────────────────────────────────────────
# Provider boundary
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PageRequest:
    """
    One page to fetch: rows in [since, until) starting at offset.

    Time-window pages normally use offset 0; the orchestrator only
    raises it to continue a window whose response filled the limit.
    """
    since: datetime
    until: datetime
    offset: int
    limit: int


@dataclass(frozen=True)
class ProviderRequest:
    """A provider-specific query ready to execute."""
    provider: Provider
    query: str
    url: Optional[str] = None
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TransferEventData:
    """
    Canonical, provider-agnostic transfer event.

    (chain, tx_hash, log_index) is the identity.
    """
    address: str
    transaction_from: str
    sender: str
    recipient: str
    amount: int
    decimals: int
    block_timestamp: datetime
    tx_hash: str
    log_index: int
    chain: Chain
    provider: Provider
    facilitator_id: str

    @property
    def identity(self) -> tuple[str, str, int]:
        return (self.chain.value, self.tx_hash, self.log_index)

    def to_record(self) -> dict[str, Any]:
        """Column mapping for the transfer_events table."""
        return {
            "address": self.address,
            "transaction_from": self.transaction_from,
            "sender": self.sender,
            "recipient": self.recipient,
            "amount": self.amount,
            "decimals": self.decimals,
            "block_timestamp": self.block_timestamp,
            "tx_hash": self.tx_hash,
            "log_index": self.log_index,
            "chain": self.chain.value,
            "provider": self.provider.value,
            "facilitator_id": self.facilitator_id,
        }


# ─────────────────────────────────────────────────────────────
# Run results
# ─────────────────────────────────────────────────────────────

@dataclass
class LaneResult:
    """Outcome of one FacilitatorConfig within a run."""
    facilitator_id: str
    address: str
    token_address: str
    pages: int = 0
    fetched: int = 0
    saved: int = 0
    exhausted: bool = False
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "facilitator_id": self.facilitator_id,
            "address": self.address,
            "token_address": self.token_address,
            "pages": self.pages,
            "fetched": self.fetched,
            "saved": self.saved,
            "exhausted": self.exhausted,
            "error": self.error,
        }


@dataclass
class SyncRunResult:
    """Completion status plus counts for one task invocation."""
    task_id: str
    status: RunStatus
    started_at: datetime
    finished_at: datetime
    lanes: list[LaneResult] = field(default_factory=list)

    @property
    def events_fetched(self) -> int:
        return sum(lane.fetched for lane in self.lanes)

    @property
    def events_saved(self) -> int:
        return sum(lane.saved for lane in self.lanes)

    @property
    def pages_processed(self) -> int:
        return sum(lane.pages for lane in self.lanes)

    @property
    def failures(self) -> list[str]:
        return [
            f"{lane.facilitator_id}:{lane.address}: {lane.error}"
            for lane in self.lanes if lane.failed
        ]

    @property
    def success(self) -> bool:
        return self.status != RunStatus.FAILED

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "events_fetched": self.events_fetched,
            "events_saved": self.events_saved,
            "pages_processed": self.pages_processed,
            "lanes": [lane.to_dict() for lane in self.lanes],
            "failures": self.failures,
        }
