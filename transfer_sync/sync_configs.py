"""
Sync Configurations - Which (chain, provider) pairs run, and how often.

Each SyncConfig becomes one scheduled task, or one task per facilitator
when split_by_facilitator is set so a slow facilitator cannot eat the
budget of the others.
"""

import logging
from datetime import timedelta
from typing import Iterable

from transfer_sync.models import (
    Chain,
    PaginationMode,
    PaginationSettings,
    Provider,
    SyncConfig,
    SyncTask,
)
from transfer_sync.registry import FacilitatorRegistry


logger = logging.getLogger(__name__)


SOLANA_BITQUERY = SyncConfig(
    chain=Chain.SOLANA,
    provider=Provider.BITQUERY,
    cron="*/10 * * * *",
    max_duration_seconds=600,
    pagination=PaginationSettings(mode=PaginationMode.OFFSET, limit=10_000),
    machine="medium-1x",
)

BASE_CDP = SyncConfig(
    chain=Chain.BASE,
    provider=Provider.CDP,
    cron="*/10 * * * *",
    max_duration_seconds=300,
    pagination=PaginationSettings(
        mode=PaginationMode.TIME_WINDOW,
        limit=10_000,
        window_span=timedelta(days=1),
    ),
    machine="medium-1x",
    split_by_facilitator=True,
)

POLYGON_BIGQUERY = SyncConfig(
    chain=Chain.POLYGON,
    provider=Provider.BIGQUERY,
    cron="0 * * * *",
    max_duration_seconds=600,
    pagination=PaginationSettings(
        mode=PaginationMode.TIME_WINDOW,
        limit=50_000,
        window_span=timedelta(days=7),
    ),
    machine="small-1x",
)

SYNC_CONFIGS: tuple[SyncConfig, ...] = (
    SOLANA_BITQUERY,
    BASE_CDP,
    POLYGON_BIGQUERY,
)


def build_tasks(
    sync_configs: Iterable[SyncConfig],
    registry: FacilitatorRegistry,
) -> list[SyncTask]:
    """
    Expand sync configs into schedulable tasks.

    Disabled configs produce no task. Split configs produce one task per
    facilitator that has enabled configs on the chain.
    """
    tasks: list[SyncTask] = []

    for config in sync_configs:
        if not config.enabled:
            logger.info(f"Sync config {config.task_id} is disabled, no task registered")
            continue

        if not config.split_by_facilitator:
            tasks.append(SyncTask(task_id=config.task_id, sync_config=config))
            continue

        for facilitator in registry.configs_for_chain(config.chain):
            if config.facilitator_ids is not None and facilitator.id not in config.facilitator_ids:
                continue
            tasks.append(SyncTask(
                task_id=config.task_id_for(facilitator.id),
                sync_config=config,
                facilitator_ids=(facilitator.id,),
            ))

    return tasks
