"""
BitQuery Provider Adapter - Solana transfers through the GraphQL API.

Features:
- Offset paging over transfers signed by the facilitator, oldest first
- Amounts arrive as decimal strings and are scaled to base units
- Solana transfers have no log index; each transfer gets one derived from
  its sender, recipient and amount

Page sizes above 10 000 rows make the API answer 503; SyncConfig rejects
larger BitQuery limits.
"""

import dataclasses
import hashlib
import logging
from collections import Counter
from datetime import timedelta
from typing import Any, Optional

import aiohttp

from transfer_sync.config import TransferSyncSettings
from transfer_sync.exceptions import ConfigurationError, ProviderResponseError
from transfer_sync.models import (
    Facilitator,
    FacilitatorConfig,
    PROVIDER_MAX_PAGE_SIZE,
    PageRequest,
    Provider,
    ProviderRequest,
    SyncConfig,
    TransferEventData,
)
from transfer_sync.normalizer import (
    format_iso_timestamp,
    normalize_address,
    parse_timestamp,
    require_text,
    scale_to_base_units,
)
from transfer_sync.providers.base import BaseProviderAdapter


logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = PROVIDER_MAX_PAGE_SIZE[Provider.BITQUERY]

TRANSFERS_QUERY = """
query ($network: SolanaNetwork!, $limit: Int!, $offset: Int!,
       $since: ISO8601DateTime, $till: ISO8601DateTime,
       $signer: String!, $currency: String!) {
  solana(network: $network) {
    sent: transfers(
      options: {asc: "block.height", limit: $limit, offset: $offset}
      time: {since: $since, till: $till}
      amount: {gt: 0}
      signer: {is: $signer}
      currency: {is: $currency}
    ) {
      block {
        timestamp {
          time
        }
        height
      }
      sender {
        address
      }
      receiver {
        address
      }
      amount
      currency {
        name
        address
        symbol
      }
      transaction {
        feePayer
        signature
      }
    }
  }
}
"""


class BitQueryAdapter(BaseProviderAdapter):
    """BitQuery GraphQL adapter for Solana token transfers."""

    provider = Provider.BITQUERY

    def __init__(
        self,
        settings: Optional[TransferSyncSettings] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(settings, session)
        if not self._settings.bitquery_api_key:
            raise ConfigurationError(
                "BITQUERY_API_KEY is not set",
                provider=self.name,
                config_key="BITQUERY_API_KEY",
            )
        self._api_key = self._settings.bitquery_api_key

    def build_query(
        self,
        sync_config: SyncConfig,
        facilitator_config: FacilitatorConfig,
        page: PageRequest,
    ) -> ProviderRequest:
        # till is inclusive at second resolution, so [since, until) ends one second early
        till = page.until - timedelta(seconds=1)
        return ProviderRequest(
            provider=self.provider,
            url=sync_config.api_url or self._settings.bitquery_api_url,
            query=TRANSFERS_QUERY,
            parameters={
                "network": sync_config.chain.value,
                "limit": page.limit,
                "offset": page.offset,
                "since": format_iso_timestamp(page.since),
                "till": format_iso_timestamp(till),
                "signer": facilitator_config.address,
                "currency": facilitator_config.token.address,
            },
        )

    async def execute(self, request: ProviderRequest) -> list[dict[str, Any]]:
        payload = await self._post_json(
            request.url,
            {"query": request.query, "variables": request.parameters},
            headers={"X-API-KEY": self._api_key},
        )

        if not isinstance(payload, dict):
            raise ProviderResponseError("Response is not an object", provider=self.name)

        errors = payload.get("errors")
        if errors:
            raise ProviderResponseError(
                f"GraphQL errors: {errors[0]}",
                provider=self.name,
                errors=errors,
            )

        try:
            rows = payload["data"]["solana"]["sent"]
        except (KeyError, TypeError) as e:
            raise ProviderResponseError(
                "Missing data.solana.sent in response",
                provider=self.name,
                original_error=e,
            ) from e

        return rows or []

    def transform_row(
        self,
        row: dict[str, Any],
        sync_config: SyncConfig,
        facilitator: Facilitator,
        facilitator_config: FacilitatorConfig,
    ) -> TransferEventData:
        chain = sync_config.chain
        token = facilitator_config.token
        sender = normalize_address(chain, row["sender"]["address"], "sender")
        recipient = normalize_address(chain, row["receiver"]["address"], "recipient")
        amount = scale_to_base_units(row["amount"], token.decimals)
        return TransferEventData(
            address=token.address,
            transaction_from=facilitator_config.address,
            sender=sender,
            recipient=recipient,
            amount=amount,
            decimals=token.decimals,
            block_timestamp=parse_timestamp(row["block"]["timestamp"]["time"]),
            tx_hash=require_text(row["transaction"], "signature"),
            log_index=transfer_leg_index(sender, recipient, amount),
            chain=chain,
            provider=self.provider,
            facilitator_id=facilitator.id,
        )

    def transform_response(
        self,
        raw_rows: list[dict[str, Any]],
        sync_config: SyncConfig,
        facilitator: Facilitator,
        facilitator_config: FacilitatorConfig,
    ) -> list[TransferEventData]:
        events = super().transform_response(raw_rows, sync_config, facilitator, facilitator_config)
        return assign_repeated_legs(events)


def transfer_leg_index(sender: str, recipient: str, amount: int, occurrence: int = 0) -> int:
    """
    Log index of one transfer inside a Solana transaction.

    Derived from the transfer itself rather than its position in a page,
    so the two halves of a signature split across offset pages still get
    distinct identities. Fits a signed 32-bit column.
    """
    key_str = f"{sender}:{recipient}:{amount}:{occurrence}"
    return int(hashlib.sha256(key_str.encode()).hexdigest()[:8], 16) & 0x7FFFFFFF


def assign_repeated_legs(events: list[TransferEventData]) -> list[TransferEventData]:
    """
    Separate identical transfers (same signature, sender, recipient and
    amount) within one page by their occurrence count. Input order is
    preserved; the first occurrence keeps its index.
    """
    seen: Counter = Counter()
    result = []
    for event in events:
        leg = (event.tx_hash, event.sender, event.recipient, event.amount)
        occurrence = seen[leg]
        seen[leg] += 1
        if occurrence:
            event = dataclasses.replace(
                event,
                log_index=transfer_leg_index(event.sender, event.recipient, event.amount, occurrence),
            )
        result.append(event)
    return result
