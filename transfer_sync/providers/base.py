"""
Base Provider Adapter - Contract every upstream data source implements.

All adapters MUST:
- Build a provider-specific request from a PageRequest (pure)
- Parse a provider response into canonical TransferEventData (total:
  malformed rows are dropped with a warning, never fatal)
- Leave retries to the RetryPolicy; execute() makes exactly one attempt
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import aiohttp

from transfer_sync.config import TransferSyncSettings, get_settings
from transfer_sync.exceptions import (
    FetchError,
    NormalizationError,
    ProviderResponseError,
    ProviderTimeoutError,
    RateLimitError,
)
from transfer_sync.models import (
    Facilitator,
    FacilitatorConfig,
    PageRequest,
    Provider,
    ProviderRequest,
    SyncConfig,
    TransferEventData,
)


logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_SECONDS = 60


class BaseProviderAdapter(ABC):
    """
    Abstract base class for provider adapters.

    Each adapter must:
    1. Implement build_query() - PageRequest -> ProviderRequest
    2. Implement execute() - run the request once, return raw rows
    3. Implement transform_row() - one raw row -> TransferEventData

    Features:
    - Shared aiohttp session handling for HTTP providers
    - HTTP status mapping (429 -> RateLimitError, >=400 -> FetchError)
    - Per-row fault isolation in transform_response()
    """

    provider: Provider

    def __init__(
        self,
        settings: Optional[TransferSyncSettings] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._timeout = self._settings.request_timeout_seconds
        self._session = session
        self._owns_session = session is None

    @property
    def name(self) -> str:
        """Unique identifier for this adapter."""
        return self.provider.value

    @abstractmethod
    def build_query(
        self,
        sync_config: SyncConfig,
        facilitator_config: FacilitatorConfig,
        page: PageRequest,
    ) -> ProviderRequest:
        """
        Build the provider request for one page.

        Args:
            sync_config: Task configuration (chain, api_url override)
            facilitator_config: Facilitator address and token to filter on
            page: Half-open window [since, until) plus offset and limit

        Returns:
            ProviderRequest ready for execute()
        """
        pass

    @abstractmethod
    async def execute(self, request: ProviderRequest) -> list[dict[str, Any]]:
        """
        Run the request once and return the raw rows.

        Raises:
            FetchError, RateLimitError, ProviderTimeoutError: Transport/HTTP failures
            ProviderResponseError: Error payload or unreadable envelope
        """
        pass

    @abstractmethod
    def transform_row(
        self,
        row: dict[str, Any],
        sync_config: SyncConfig,
        facilitator: Facilitator,
        facilitator_config: FacilitatorConfig,
    ) -> TransferEventData:
        """
        Map one raw row to the canonical shape.

        Raises:
            NormalizationError: Row cannot be mapped
        """
        pass

    def transform_response(
        self,
        raw_rows: list[dict[str, Any]],
        sync_config: SyncConfig,
        facilitator: Facilitator,
        facilitator_config: FacilitatorConfig,
    ) -> list[TransferEventData]:
        """Map raw rows to canonical events, dropping rows that cannot be mapped."""
        events: list[TransferEventData] = []
        dropped = 0

        for row in raw_rows:
            try:
                if not isinstance(row, dict):
                    raise NormalizationError("Row is not an object", raw_data=row)
                events.append(self.transform_row(row, sync_config, facilitator, facilitator_config))
            except (NormalizationError, KeyError, TypeError, ValueError, AttributeError) as e:
                dropped += 1
                logger.warning(
                    f"[{self.name}] Dropping malformed {sync_config.chain.value} row "
                    f"for {facilitator.id}: {e}"
                )

        if dropped:
            logger.warning(f"[{self.name}] Dropped {dropped}/{len(raw_rows)} rows for {facilitator.id}")

        return events

    # ─────────────────────────────────────────────────────────────
    # HTTP helpers
    # ─────────────────────────────────────────────────────────────

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers=self._get_default_headers(),
            )
            self._owns_session = True
        return self._session

    def _get_default_headers(self) -> dict[str, str]:
        """Get default HTTP headers."""
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": "transfer-sync/1.0",
        }

    async def _post_json(
        self,
        url: str,
        body: dict[str, Any],
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """POST a JSON body and decode the JSON answer, mapping failures."""
        session = await self._get_session()

        try:
            async with session.post(url, json=body, headers=headers) as response:
                if response.status == 429:
                    retry_after = response.headers.get("Retry-After")
                    raise RateLimitError(
                        message="Rate limit exceeded",
                        provider=self.name,
                        retry_after_seconds=_parse_retry_after(retry_after),
                    )

                text = await response.text()

                if response.status >= 400:
                    raise FetchError(
                        message=f"HTTP {response.status}",
                        provider=self.name,
                        status_code=response.status,
                        response_body=text[:500],
                        request_url=url,
                    )

        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(
                message=f"Request timed out after {self._timeout:.0f}s",
                provider=self.name,
                timeout_seconds=self._timeout,
                original_error=e,
            ) from e
        except aiohttp.ClientError as e:
            raise FetchError(
                message=f"Connection error: {e}",
                provider=self.name,
                request_url=url,
                original_error=e,
            ) from e

        try:
            return json.loads(text)
        except ValueError as e:
            raise ProviderResponseError(
                message="Response is not valid JSON",
                provider=self.name,
                original_error=e,
                context={"body": text[:200]},
            ) from e

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "BaseProviderAdapter":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name})>"


def _parse_retry_after(value: Optional[str]) -> float:
    """Seconds from a Retry-After header; HTTP dates fall back to the default."""
    if not value:
        return DEFAULT_RETRY_AFTER_SECONDS
    try:
        return max(0.0, float(value))
    except ValueError:
        return DEFAULT_RETRY_AFTER_SECONDS
