"""
BigQuery Warehouse Provider Adapter - EVM transfers from public chain datasets.

Features:
- Batch SQL over the chain's `logs` table joined to `transactions`
- Bound @parameters, nothing interpolated except the dataset name
- Topic-encoded addresses and hex amounts are decoded by the normalizer

The warehouse client itself is an injected collaborator implementing
WarehouseClient; this module only builds and parses.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from transfer_sync.config import TransferSyncSettings
from transfer_sync.exceptions import (
    ConfigurationError,
    FetchError,
    ProviderResponseError,
    TransferSyncError,
)
from transfer_sync.models import (
    Chain,
    Facilitator,
    FacilitatorConfig,
    PageRequest,
    Provider,
    ProviderRequest,
    SyncConfig,
    TransferEventData,
)
from transfer_sync.normalizer import (
    normalize_address,
    parse_base_units,
    parse_log_index,
    parse_timestamp,
    require_text,
)
from transfer_sync.providers.base import BaseProviderAdapter


logger = logging.getLogger(__name__)

# keccak256("Transfer(address,address,uint256)")
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"

WAREHOUSE_DATASETS = {
    Chain.POLYGON: "bigquery-public-data.goog_blockchain_polygon_mainnet_us",
    Chain.BASE: "bigquery-public-data.goog_blockchain_base_mainnet_us",
}

TRANSFERS_SQL = """
SELECT
    l.address AS address,
    t.from_address AS transaction_from,
    l.topics[SAFE_OFFSET(1)] AS sender,
    l.topics[SAFE_OFFSET(2)] AS recipient,
    l.data AS amount,
    l.block_timestamp AS block_timestamp,
    l.transaction_hash AS tx_hash,
    l.log_index AS log_index
FROM `{dataset}.logs` AS l
JOIN `{dataset}.transactions` AS t
    ON t.transaction_hash = l.transaction_hash
    AND t.block_timestamp = l.block_timestamp
WHERE l.block_timestamp >= @since AND l.block_timestamp < @until
    AND t.block_timestamp >= @since AND t.block_timestamp < @until
    AND LOWER(l.address) = @token
    AND LOWER(t.from_address) = @facilitator
    AND l.topics[SAFE_OFFSET(0)] = @transfer_topic
    AND NOT l.removed
ORDER BY l.block_timestamp, l.transaction_hash, l.log_index
LIMIT @limit OFFSET @offset
""".strip()


class WarehouseClient(ABC):
    """
    Contract for the batch warehouse client.

    Implementations run one parameterized query and return rows as
    dicts. Transport failures should surface as FetchError,
    RateLimitError or ProviderTimeoutError so the retry policy can
    classify them; anything else is treated as a transient failure.
    """

    @abstractmethod
    async def run_query(self, sql: str, parameters: dict[str, Any]) -> list[dict[str, Any]]:
        pass


class BigQueryAdapter(BaseProviderAdapter):
    """Warehouse adapter over Google's public blockchain datasets."""

    provider = Provider.BIGQUERY

    def __init__(
        self,
        client: Optional[WarehouseClient] = None,
        settings: Optional[TransferSyncSettings] = None,
        datasets: Optional[dict[Chain, str]] = None,
    ) -> None:
        super().__init__(settings)
        if client is None:
            raise ConfigurationError(
                "No warehouse client configured",
                provider=self.name,
                config_key="warehouse_client",
            )
        self._client = client
        self._datasets = datasets or WAREHOUSE_DATASETS

    def build_query(
        self,
        sync_config: SyncConfig,
        facilitator_config: FacilitatorConfig,
        page: PageRequest,
    ) -> ProviderRequest:
        dataset = self._datasets.get(sync_config.chain)
        if dataset is None:
            raise ConfigurationError(
                f"No warehouse dataset for chain {sync_config.chain.value}",
                provider=self.name,
                config_key="datasets",
            )
        return ProviderRequest(
            provider=self.provider,
            query=TRANSFERS_SQL.format(dataset=dataset),
            parameters={
                "since": page.since,
                "until": page.until,
                "token": facilitator_config.token.address.lower(),
                "facilitator": facilitator_config.address.lower(),
                "transfer_topic": TRANSFER_TOPIC,
                "limit": page.limit,
                "offset": page.offset,
            },
        )

    async def execute(self, request: ProviderRequest) -> list[dict[str, Any]]:
        try:
            rows = await self._client.run_query(request.query, request.parameters)
        except TransferSyncError:
            raise
        except Exception as e:
            raise FetchError(
                message=f"Warehouse query failed: {e}",
                provider=self.name,
                original_error=e,
            ) from e

        if rows is None:
            return []
        if not isinstance(rows, list):
            raise ProviderResponseError("Warehouse returned a non-list result", provider=self.name)
        return rows

    def transform_row(
        self,
        row: dict[str, Any],
        sync_config: SyncConfig,
        facilitator: Facilitator,
        facilitator_config: FacilitatorConfig,
    ) -> TransferEventData:
        chain = sync_config.chain
        return TransferEventData(
            address=normalize_address(chain, row.get("address")),
            transaction_from=normalize_address(chain, row.get("transaction_from"), "transaction_from"),
            sender=normalize_address(chain, row.get("sender"), "sender"),
            recipient=normalize_address(chain, row.get("recipient"), "recipient"),
            amount=parse_base_units(row.get("amount")),
            decimals=facilitator_config.token.decimals,
            block_timestamp=parse_timestamp(row.get("block_timestamp")),
            tx_hash=require_text(row, "tx_hash").lower(),
            log_index=parse_log_index(row.get("log_index")),
            chain=chain,
            provider=self.provider,
            facilitator_id=facilitator.id,
        )
