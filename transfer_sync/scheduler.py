"""
Sync Scheduler - Cron triggers for every sync task.

Features:
- One APScheduler job per SyncTask, id == task id
- Cron expressions evaluated in UTC
- max_instances=1 so a slow run never overlaps itself
- Run results are logged; a failed run never stops the scheduler
"""

import logging
from typing import Iterable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from transfer_sync.models import SyncRunResult, SyncTask
from transfer_sync.orchestrator import SyncOrchestrator


logger = logging.getLogger(__name__)


class SyncScheduler:
    """
    Registers sync tasks on an AsyncIOScheduler.

    Usage:
        scheduler = SyncScheduler(orchestrator, build_tasks(SYNC_CONFIGS, registry))
        scheduler.start()
    """

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        tasks: Iterable[SyncTask],
        scheduler: Optional[AsyncIOScheduler] = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._tasks = {task.task_id: task for task in tasks}
        self._scheduler = scheduler or AsyncIOScheduler(timezone="UTC")
        self._registered = False

    @property
    def scheduler(self) -> AsyncIOScheduler:
        return self._scheduler

    def register_jobs(self) -> list[str]:
        """Add one cron job per task; returns the job ids."""
        for task in self._tasks.values():
            trigger = CronTrigger.from_crontab(task.sync_config.cron, timezone="UTC")
            self._scheduler.add_job(
                func=self.run_task,
                trigger=trigger,
                id=task.task_id,
                name=task.task_id,
                kwargs={"task_id": task.task_id},
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
            logger.info(f"Scheduled {task.task_id} ({task.sync_config.cron})")
        self._registered = True
        return list(self._tasks)

    def job_ids(self) -> list[str]:
        return [job.id for job in self._scheduler.get_jobs()]

    async def run_task(self, task_id: str) -> SyncRunResult:
        """Run one task now, as the scheduler would."""
        task = self._tasks[task_id]
        result = await self._orchestrator.run(task)
        if not result.success:
            logger.error(f"Scheduled run of {task_id} failed: {'; '.join(result.failures)}")
        return result

    def start(self) -> None:
        """Start firing jobs. Must be called with a running event loop."""
        if not self._registered:
            self.register_jobs()
        self._scheduler.start()
        logger.info(f"Sync scheduler started with {len(self._tasks)} jobs")

    def shutdown(self, wait: bool = False) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            logger.info("Sync scheduler stopped")
