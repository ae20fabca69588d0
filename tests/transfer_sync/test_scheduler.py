"""
Tests for the Sync Scheduler.

Tests cover:
- One job per task, id == task id
- Manual task runs and failure logging
- Start/shutdown lifecycle
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from transfer_sync.models import LaneResult, RunStatus, SyncRunResult
from transfer_sync.registry import get_registry
from transfer_sync.scheduler import SyncScheduler
from transfer_sync.sync_configs import SYNC_CONFIGS, build_tasks


T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _result(task_id: str, status: RunStatus, error: str = None) -> SyncRunResult:
    return SyncRunResult(
        task_id=task_id,
        status=status,
        started_at=T0,
        finished_at=T0,
        lanes=[LaneResult("coinbase", "0x" + "a" * 40, "0x" + "b" * 40, error=error)],
    )


@pytest.fixture
def tasks():
    return build_tasks(SYNC_CONFIGS, get_registry())


@pytest.fixture
def orchestrator():
    orchestrator = MagicMock()
    orchestrator.run = AsyncMock()
    return orchestrator


# =============================================================
# TEST: Job registration
# =============================================================

class TestRegistration:
    """Jobs registered on the APScheduler instance."""

    def test_one_job_per_task(self, orchestrator, tasks):
        scheduler = SyncScheduler(orchestrator, tasks, AsyncIOScheduler(timezone="UTC"))

        registered = scheduler.register_jobs()

        assert registered == [task.task_id for task in tasks]
        assert sorted(scheduler.job_ids()) == sorted(registered)

    def test_split_and_unsplit_ids(self, orchestrator, tasks):
        scheduler = SyncScheduler(orchestrator, tasks, AsyncIOScheduler(timezone="UTC"))
        scheduler.register_jobs()

        ids = set(scheduler.job_ids())

        assert "solana-sync-transfers-bitquery" in ids
        assert "polygon-sync-transfers-bigquery" in ids
        assert "base-sync-transfers-cdp-coinbase" in ids
        assert "base-sync-transfers-cdp" not in ids

    def test_registering_twice_replaces(self, orchestrator, tasks):
        scheduler = SyncScheduler(orchestrator, tasks, AsyncIOScheduler(timezone="UTC"))

        scheduler.register_jobs()
        scheduler.register_jobs()

        assert len(scheduler.job_ids()) == len(tasks)

    def test_jobs_never_overlap(self, orchestrator, tasks):
        scheduler = SyncScheduler(orchestrator, tasks, AsyncIOScheduler(timezone="UTC"))
        scheduler.register_jobs()

        for job in scheduler.scheduler.get_jobs():
            assert job.max_instances == 1
            assert job.coalesce is True
            assert job.kwargs == {"task_id": job.id}


# =============================================================
# TEST: Running
# =============================================================

class TestRunTask:
    """What a fired job does."""

    @pytest.mark.asyncio
    async def test_run_task_delegates_to_orchestrator(self, orchestrator, tasks):
        task = tasks[0]
        orchestrator.run.return_value = _result(task.task_id, RunStatus.COMPLETED)
        scheduler = SyncScheduler(orchestrator, tasks, AsyncIOScheduler(timezone="UTC"))

        result = await scheduler.run_task(task.task_id)

        orchestrator.run.assert_awaited_once_with(task)
        assert result.status == RunStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_failed_run_is_logged_not_raised(self, orchestrator, tasks, caplog):
        task = tasks[0]
        orchestrator.run.return_value = _result(task.task_id, RunStatus.FAILED, error="HTTP 401")
        scheduler = SyncScheduler(orchestrator, tasks, AsyncIOScheduler(timezone="UTC"))

        result = await scheduler.run_task(task.task_id)

        assert not result.success
        assert f"Scheduled run of {task.task_id} failed" in caplog.text
        assert "HTTP 401" in caplog.text

    @pytest.mark.asyncio
    async def test_unknown_task_raises(self, orchestrator, tasks):
        scheduler = SyncScheduler(orchestrator, tasks, AsyncIOScheduler(timezone="UTC"))

        with pytest.raises(KeyError):
            await scheduler.run_task("no-such-task")


# =============================================================
# TEST: Lifecycle
# =============================================================

class TestLifecycle:
    """start() and shutdown()."""

    @pytest.mark.asyncio
    async def test_start_registers_and_shutdown_stops(self, orchestrator, tasks):
        scheduler = SyncScheduler(orchestrator, tasks, AsyncIOScheduler(timezone="UTC"))

        scheduler.start()
        try:
            assert scheduler.scheduler.running
            assert len(scheduler.job_ids()) == len(tasks)
        finally:
            scheduler.shutdown()

        assert not scheduler.scheduler.running

    def test_shutdown_before_start_is_harmless(self, orchestrator, tasks):
        scheduler = SyncScheduler(orchestrator, tasks, AsyncIOScheduler(timezone="UTC"))
        scheduler.shutdown()
        assert not scheduler.scheduler.running
