"""
Provider adapter implementations.

Each adapter translates one upstream source (GraphQL, SQL API,
batch warehouse) into canonical TransferEventData.
"""

from transfer_sync.providers.base import BaseProviderAdapter
from transfer_sync.providers.bigquery import BigQueryAdapter, WarehouseClient
from transfer_sync.providers.bitquery import BitQueryAdapter
from transfer_sync.providers.cdp import CdpSqlAdapter
from transfer_sync.providers.registry import ProviderRegistry, build_default_registry


__all__ = [
    "BaseProviderAdapter",
    "BigQueryAdapter",
    "BitQueryAdapter",
    "CdpSqlAdapter",
    "ProviderRegistry",
    "WarehouseClient",
    "build_default_registry",
]
