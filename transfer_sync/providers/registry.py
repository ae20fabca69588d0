"""
Provider Registry - Maps each provider kind to its adapter instance.

Features:
- One adapter per Provider, looked up by the orchestrator per task
- Default wiring from settings; providers without credentials are
  left unregistered and fail their tasks, not the process
"""

import logging
from typing import Optional

from transfer_sync.config import TransferSyncSettings, get_settings
from transfer_sync.exceptions import ConfigurationError, ProviderNotRegisteredError
from transfer_sync.models import Provider
from transfer_sync.providers.base import BaseProviderAdapter
from transfer_sync.providers.bigquery import BigQueryAdapter, WarehouseClient
from transfer_sync.providers.bitquery import BitQueryAdapter
from transfer_sync.providers.cdp import CdpSqlAdapter


logger = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Provider kind -> adapter lookup.

    Usage:
        providers = ProviderRegistry()
        providers.register(BitQueryAdapter(settings))
        adapter = providers.get(Provider.BITQUERY)
    """

    def __init__(self) -> None:
        self._adapters: dict[Provider, BaseProviderAdapter] = {}

    def register(self, adapter: BaseProviderAdapter) -> None:
        """Register an adapter under its provider kind, replacing any previous one."""
        if adapter.provider in self._adapters:
            logger.warning(f"Provider '{adapter.name}' already registered, replacing")
        self._adapters[adapter.provider] = adapter
        logger.info(f"Registered provider adapter '{adapter.name}'")

    def get(self, provider: Provider) -> BaseProviderAdapter:
        """
        Adapter for `provider`.

        Raises:
            ProviderNotRegisteredError: Nothing registered for that kind
        """
        adapter = self._adapters.get(provider)
        if adapter is None:
            raise ProviderNotRegisteredError(
                f"No adapter registered for provider '{provider.value}'",
                provider=provider.value,
            )
        return adapter

    def __contains__(self, provider: Provider) -> bool:
        return provider in self._adapters

    def list_providers(self) -> list[Provider]:
        return list(self._adapters)

    async def close(self) -> None:
        """Close every adapter's HTTP resources."""
        for adapter in self._adapters.values():
            await adapter.close()
        logger.debug("Provider adapters closed")

    async def __aenter__(self) -> "ProviderRegistry":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def build_default_registry(
    settings: Optional[TransferSyncSettings] = None,
    warehouse_client: Optional[WarehouseClient] = None,
) -> ProviderRegistry:
    """
    Register every adapter whose credentials are configured.

    Args:
        settings: Process settings (defaults to get_settings())
        warehouse_client: Client for the batch warehouse adapter, if any
    """
    settings = settings or get_settings()
    registry = ProviderRegistry()

    factories = (
        (Provider.BITQUERY, lambda: BitQueryAdapter(settings)),
        (Provider.CDP, lambda: CdpSqlAdapter(settings)),
        (Provider.BIGQUERY, lambda: BigQueryAdapter(warehouse_client, settings)),
    )
    for provider, factory in factories:
        try:
            registry.register(factory())
        except ConfigurationError as e:
            logger.warning(f"Provider '{provider.value}' not available: {e.message}")

    return registry
