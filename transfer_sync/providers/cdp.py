"""
CDP SQL Provider Adapter - EVM transfers through the Coinbase CDP SQL API.

Features:
- Queries decoded ERC-20 Transfer events from `<chain>.events`
- Filters on the token contract and on the facilitator as transaction sender
- Amounts arrive as uint256 base units, no scaling required

The SQL API takes a raw statement with no bind parameters. Every value
interpolated here is a registry-validated address or a formatted timestamp,
and _literal() refuses anything containing a quote.
"""

import logging
from typing import Any, Optional

import aiohttp

from transfer_sync.config import TransferSyncSettings
from transfer_sync.exceptions import ConfigurationError, ProviderResponseError
from transfer_sync.models import (
    Facilitator,
    FacilitatorConfig,
    PageRequest,
    Provider,
    ProviderRequest,
    SyncConfig,
    TransferEventData,
)
from transfer_sync.normalizer import (
    format_sql_timestamp,
    normalize_address,
    parse_base_units,
    parse_log_index,
    parse_timestamp,
    require_text,
)
from transfer_sync.providers.base import BaseProviderAdapter


logger = logging.getLogger(__name__)

TRANSFER_EVENT_SIGNATURE = "Transfer(address,address,uint256)"


def _literal(value: str) -> str:
    if "'" in value or "\\" in value:
        raise ValueError(f"Refusing to interpolate unsafe SQL literal: {value!r}")
    return f"'{value}'"


class CdpSqlAdapter(BaseProviderAdapter):
    """Coinbase CDP SQL API adapter for EVM chains."""

    provider = Provider.CDP

    def __init__(
        self,
        settings: Optional[TransferSyncSettings] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(settings, session)
        if not self._settings.cdp_bearer_token:
            raise ConfigurationError(
                "CDP_API_BEARER_TOKEN is not set",
                provider=self.name,
                config_key="CDP_API_BEARER_TOKEN",
            )
        self._token = self._settings.cdp_bearer_token

    def build_query(
        self,
        sync_config: SyncConfig,
        facilitator_config: FacilitatorConfig,
        page: PageRequest,
    ) -> ProviderRequest:
        table = f"{sync_config.chain.value}.events"
        sql = f"""
SELECT
    address,
    transaction_from,
    parameters['from']::String AS sender,
    parameters['to']::String AS recipient,
    parameters['value']::UInt256 AS amount,
    block_timestamp,
    transaction_hash AS tx_hash,
    log_index
FROM {table}
WHERE event_signature = {_literal(TRANSFER_EVENT_SIGNATURE)}
    AND address = {_literal(facilitator_config.token.address)}
    AND transaction_from = {_literal(facilitator_config.address)}
    AND block_timestamp >= {_literal(format_sql_timestamp(page.since))}
    AND block_timestamp < {_literal(format_sql_timestamp(page.until))}
ORDER BY block_timestamp ASC, transaction_hash ASC, log_index ASC
LIMIT {int(page.limit)} OFFSET {int(page.offset)}
""".strip()

        return ProviderRequest(
            provider=self.provider,
            url=sync_config.api_url or self._settings.cdp_sql_api_url,
            query=sql,
        )

    async def execute(self, request: ProviderRequest) -> list[dict[str, Any]]:
        payload = await self._post_json(
            request.url,
            {"sql": request.query},
            headers={"Authorization": f"Bearer {self._token}"},
        )

        if not isinstance(payload, dict) or "result" not in payload:
            raise ProviderResponseError(
                "Missing result in SQL API response",
                provider=self.name,
                context={"keys": sorted(payload) if isinstance(payload, dict) else None},
            )

        return payload["result"] or []

    def transform_row(
        self,
        row: dict[str, Any],
        sync_config: SyncConfig,
        facilitator: Facilitator,
        facilitator_config: FacilitatorConfig,
    ) -> TransferEventData:
        chain = sync_config.chain
        return TransferEventData(
            address=normalize_address(chain, row.get("address") or facilitator_config.token.address),
            transaction_from=normalize_address(
                chain, row.get("transaction_from") or facilitator_config.address, "transaction_from"
            ),
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
