"""
Sync Orchestrator - Runs one sync task to completion or budget.

============================================================
RESPONSIBILITY
============================================================
For one SyncTask invocation:

- Resolve the facilitator configs (lanes) the task covers
- Page every lane forward: cursor -> page -> fetch -> normalize
  -> commit (events + cursor, one transaction)
- Stop starting pages once the duration budget is spent
- Report a SyncRunResult (COMPLETED | ABORTED | FAILED)

============================================================
SCHEDULING WITHIN A RUN
============================================================
- Lanes are visited round-robin, one page per lane per round
- The first lane rotates on every run of the same task, so a
  tight budget never starves the same lane twice in a row
- At most max_workers pages are in flight at once
- Pages of one lane are strictly sequential

============================================================
FAILURE MODEL
============================================================
- A lane that raises stops for this run; its cursor stays at
  the last committed page and its siblings carry on
- Any failed lane makes the run FAILED
- Budget exhaustion with work left is ABORTED, not an error

============================================================
"""

import asyncio
import dataclasses
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

from core.clock import ClockProtocol, ensure_utc, get_clock
from transfer_sync.config import TransferSyncSettings, get_settings
from transfer_sync.exceptions import ProviderNotRegisteredError
from transfer_sync.models import (
    Cursor,
    CursorKey,
    Facilitator,
    FacilitatorConfig,
    LaneResult,
    PageRequest,
    PaginationMode,
    RunStatus,
    SyncRunResult,
    SyncTask,
    TimestampCursor,
)
from transfer_sync.pagination import PaginationStrategy, build_strategy
from transfer_sync.providers.base import BaseProviderAdapter
from transfer_sync.providers.registry import ProviderRegistry
from transfer_sync.registry import FacilitatorRegistry
from transfer_sync.retry import RetryPolicy
from transfer_sync.sink import PersistenceSink


logger = logging.getLogger(__name__)


@dataclass
class _Lane:
    """Mutable per-run state of one FacilitatorConfig."""
    facilitator: Facilitator
    config: FacilitatorConfig
    key: CursorKey
    result: LaneResult
    cursor: Optional[Cursor] = None
    cursor_loaded: bool = False

    @property
    def done(self) -> bool:
        return self.result.exhausted or self.result.failed


@dataclass
class _RunContext:
    """Everything a page needs that is fixed for the whole run."""
    task: SyncTask
    adapter: BaseProviderAdapter
    strategy: PaginationStrategy
    now: datetime
    deadline: datetime
    semaphore: asyncio.Semaphore
    budget_hit: bool = False
    lanes: list[_Lane] = field(default_factory=list)

    @property
    def label(self) -> str:
        return self.task.task_id


class SyncOrchestrator:
    """
    Task runner for transfer sync.

    Usage:
        orchestrator = SyncOrchestrator(
            registry=get_registry(),
            providers=build_default_registry(settings),
            sink=PersistenceSink(),
        )
        result = await orchestrator.run(task)
    """

    def __init__(
        self,
        registry: FacilitatorRegistry,
        providers: ProviderRegistry,
        sink: PersistenceSink,
        clock: Optional[ClockProtocol] = None,
        settings: Optional[TransferSyncSettings] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self._registry = registry
        self._providers = providers
        self._sink = sink
        self._clock = clock or get_clock()
        self._settings = settings or get_settings()
        self._retry = retry_policy or RetryPolicy.from_settings(self._settings.retry)

        # task_id -> number of runs started, drives lane rotation
        self._rotation: dict[str, int] = defaultdict(int)

    def max_workers_for(self, task: SyncTask) -> int:
        """Concurrent page bound for `task`."""
        return self._settings.max_workers or task.sync_config.max_workers

    # =========================================================
    # RUN
    # =========================================================

    async def run(self, task: SyncTask) -> SyncRunResult:
        """
        Execute one invocation of `task`.

        Never raises for lane failures; they are reported in the result.
        """
        config = task.sync_config
        started_at = self._clock.now()
        lanes = self._resolve_lanes(task)

        if not lanes:
            logger.info(f"[{task.task_id}] No enabled facilitator configs, nothing to sync")
            return SyncRunResult(
                task_id=task.task_id,
                status=RunStatus.COMPLETED,
                started_at=started_at,
                finished_at=self._clock.now(),
            )

        try:
            adapter = self._providers.get(config.provider)
        except ProviderNotRegisteredError as e:
            logger.error(f"[{task.task_id}] {e.message}")
            for lane in lanes:
                lane.result.error = str(e)
            return self._finish(task, started_at, lanes, RunStatus.FAILED)

        lanes = self._rotate(task.task_id, lanes)
        workers = self.max_workers_for(task)
        ctx = _RunContext(
            task=task,
            adapter=adapter,
            strategy=build_strategy(config.pagination),
            now=started_at,
            deadline=self._clock.deadline(config.max_duration_seconds),
            semaphore=asyncio.Semaphore(workers),
            lanes=lanes,
        )

        logger.info(
            f"[{task.task_id}] Starting sync: {len(lanes)} lanes, {workers} workers, "
            f"budget {config.max_duration_seconds}s"
        )

        active = list(lanes)
        while active:
            if self._clock.is_past(ctx.deadline):
                ctx.budget_hit = True
                break
            await asyncio.gather(*(self._run_page(ctx, lane) for lane in active))
            active = [lane for lane in active if not lane.done]
            if ctx.budget_hit:
                break

        if any(lane.result.failed for lane in lanes):
            status = RunStatus.FAILED
        elif any(not lane.done for lane in lanes):
            status = RunStatus.ABORTED
        else:
            status = RunStatus.COMPLETED

        return self._finish(task, started_at, lanes, status)

    def _finish(
        self,
        task: SyncTask,
        started_at: datetime,
        lanes: list[_Lane],
        status: RunStatus,
    ) -> SyncRunResult:
        result = SyncRunResult(
            task_id=task.task_id,
            status=status,
            started_at=started_at,
            finished_at=self._clock.now(),
            lanes=[lane.result for lane in lanes],
        )

        for lane in lanes:
            if not lane.result.failed:
                logger.info(
                    f"[{task.task_id}] Completed {lane.facilitator.id}: "
                    f"{lane.result.fetched} fetched, {lane.result.saved} saved"
                )

        summary = (
            f"[{task.task_id}] Sync {status.value}: {result.events_fetched} fetched, "
            f"{result.events_saved} saved, {result.pages_processed} pages"
        )
        if status == RunStatus.FAILED:
            logger.error(f"{summary}, {len(result.failures)} lanes failed")
        elif status == RunStatus.ABORTED:
            logger.warning(f"{summary}, duration budget exhausted")
        else:
            logger.info(summary)

        return result

    # =========================================================
    # LANES
    # =========================================================

    def _resolve_lanes(self, task: SyncTask) -> list[_Lane]:
        config = task.sync_config
        wanted = task.facilitator_ids or config.facilitator_ids

        lanes: list[_Lane] = []
        for facilitator in self._registry.all():
            if wanted is not None and facilitator.id not in wanted:
                continue
            for fc in facilitator.configs_for(config.chain, enabled_only=False):
                if not fc.enabled:
                    logger.info(f"[{task.task_id}] Sync is disabled for {facilitator.id}")
                    continue
                lanes.append(_Lane(
                    facilitator=facilitator,
                    config=fc,
                    key=CursorKey.for_config(config, fc),
                    result=LaneResult(
                        facilitator_id=facilitator.id,
                        address=fc.address,
                        token_address=fc.token.address,
                    ),
                ))
        return lanes

    def _rotate(self, task_id: str, lanes: list[_Lane]) -> list[_Lane]:
        start = self._rotation[task_id] % len(lanes)
        self._rotation[task_id] += 1
        return lanes[start:] + lanes[:start]

    # =========================================================
    # PAGES
    # =========================================================

    async def _run_page(self, ctx: _RunContext, lane: _Lane) -> None:
        async with ctx.semaphore:
            # Checked again here: the page may have queued behind others
            if self._clock.is_past(ctx.deadline):
                ctx.budget_hit = True
                return
            try:
                await self._process_page(ctx, lane)
            except Exception as e:
                lane.result.error = str(e)
                logger.error(
                    f"[{ctx.label}] {lane.facilitator.id} {lane.config.address} failed "
                    f"after {lane.result.pages} pages: {e}"
                )

    async def _process_page(self, ctx: _RunContext, lane: _Lane) -> None:
        if not lane.cursor_loaded:
            lane.cursor = await self._load_cursor(ctx, lane)
            lane.cursor_loaded = True

        page = ctx.strategy.next_page(lane.cursor, lane.config, ctx.now)
        if page is None:
            lane.result.exhausted = True
            return

        rows = await self._fetch_page(ctx, lane, page)
        events = ctx.adapter.transform_response(
            rows, ctx.task.sync_config, lane.facilitator, lane.config,
        )
        cursor, exhausted = ctx.strategy.advance(lane.cursor, page, len(rows), ctx.now)

        saved = await asyncio.to_thread(self._sink.commit_page, events, lane.key, cursor)

        lane.cursor = cursor
        lane.result.pages += 1
        lane.result.fetched += len(events)
        lane.result.saved += saved
        lane.result.exhausted = exhausted

        logger.info(
            f"[{ctx.label}] {lane.facilitator.id}: Saved {saved} transfers "
            f"({len(events)} fetched, {len(events) - saved} duplicates) "
            f"[{_describe(page)}] -> {cursor}"
        )

    async def _load_cursor(self, ctx: _RunContext, lane: _Lane) -> Optional[Cursor]:
        """Persisted cursor, or a history-based starting point for new time-window keys."""
        cursor = await asyncio.to_thread(self._sink.load_cursor, lane.key)
        if cursor is not None or ctx.strategy.mode != PaginationMode.TIME_WINDOW:
            return cursor

        latest = await asyncio.to_thread(
            self._sink.latest_event_timestamp,
            lane.key.chain,
            lane.key.provider,
            lane.config.address,
            lane.config.token.address,
        )
        if latest is None:
            return None

        start = max(ensure_utc(latest) + timedelta(seconds=1), ensure_utc(lane.config.sync_start_date))
        logger.info(f"[{ctx.label}] {lane.facilitator.id}: resuming from stored history at {start.isoformat()}")
        return TimestampCursor(start)

    async def _fetch_page(
        self,
        ctx: _RunContext,
        lane: _Lane,
        page: PageRequest,
    ) -> list[dict[str, Any]]:
        """
        Raw rows for `page`.

        A time window whose response fills the limit is read on with
        increasing offsets until a short response, so the whole window
        lands in one commit.
        """
        rows: list[dict[str, Any]] = []
        current = page
        while True:
            batch = await self._fetch_once(ctx, lane, current)
            rows.extend(batch)
            if ctx.strategy.mode != PaginationMode.TIME_WINDOW or len(batch) < current.limit:
                return rows
            current = dataclasses.replace(current, offset=current.offset + len(batch))
            logger.debug(f"[{ctx.label}] {lane.facilitator.id}: window full, continuing at offset {current.offset}")

    async def _fetch_once(
        self,
        ctx: _RunContext,
        lane: _Lane,
        page: PageRequest,
    ) -> list[dict[str, Any]]:
        config = ctx.task.sync_config
        request = ctx.adapter.build_query(config, lane.config, page)
        return await self._retry.run(
            lambda: ctx.adapter.execute(request),
            description=f"{ctx.label} {lane.facilitator.id}",
            provider=config.provider.value,
            chain=config.chain.value,
        )


def _describe(page: PageRequest) -> str:
    return f"{page.since.isoformat()} .. {page.until.isoformat()} @{page.offset}"
