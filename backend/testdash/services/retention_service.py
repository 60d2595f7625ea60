"""
Retention Service - pruning of old executions and its schedule
"""
import logging
from datetime import datetime
from typing import List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.jobstores.memory import MemoryJobStore
from pytz import timezone as pytz_timezone

from testdash.core.config import Settings
from testdash.core.exceptions import DashboardError
from testdash.core.timestamps import days_ago
from testdash.repositories.base import require_positive
from testdash.repositories.run_repository import RunRepository
from testdash.repositories.test_repository import TestRepository
from testdash.schemas.storage import RetentionResult
from testdash.services.attachment_service import AttachmentService

logger = logging.getLogger(__name__)

RETENTION_JOB_ID = "retention-sweep"


class RetentionService:
    """
    Deletes executions by age or by per-test count.

    Attachment files are removed before the rows (best effort); attachment
    rows follow by cascade. A dry run only reports what would be deleted.
    """

    def __init__(
        self,
        test_repository: TestRepository,
        run_repository: RunRepository,
        attachment_service: AttachmentService,
        settings: Optional[Settings] = None,
    ):
        self.test_repository = test_repository
        self.run_repository = run_repository
        self.attachment_service = attachment_service
        self.settings = settings

    async def cleanup_by_age(self, cutoff: datetime, dry_run: bool = False) -> RetentionResult:
        """Delete executions created before ``cutoff``, then runs left without executions."""
        ids = await self.test_repository.get_ids_older_than(cutoff)
        if dry_run:
            logger.info(f"Retention dry run (age < {cutoff.isoformat()}): {len(ids)} executions match")
            return RetentionResult(strategy="age", matched=len(ids), dry_run=True)

        deleted = await self._delete_executions(ids)

        run_ids = await self.run_repository.get_ids_older_than(cutoff)
        runs_deleted = await self.run_repository.delete_by_ids(run_ids)

        logger.info(
            f"Retention by age (< {cutoff.isoformat()}): {deleted} executions and {runs_deleted} runs deleted"
        )
        return RetentionResult(strategy="age", matched=len(ids), deleted=deleted, runs_deleted=runs_deleted)

    async def cleanup_by_count(self, keep_count: int, dry_run: bool = False) -> RetentionResult:
        """Keep only the ``keep_count`` most recent attempts of every logical test."""
        require_positive("keep_count", keep_count)

        ids = await self.test_repository.get_ids_pruned_by_count(keep_count)
        if dry_run:
            logger.info(f"Retention dry run (keep {keep_count} per test): {len(ids)} executions match")
            return RetentionResult(strategy="count", matched=len(ids), dry_run=True)

        deleted = await self._delete_executions(ids)
        logger.info(f"Retention by count (keep {keep_count} per test): {deleted} executions deleted")
        return RetentionResult(strategy="count", matched=len(ids), deleted=deleted)

    async def run_configured_sweep(self) -> List[RetentionResult]:
        """Apply the retention policy from settings; nothing happens when none is configured."""
        if self.settings is None:
            return []

        results = []
        if self.settings.RETENTION_DAYS is not None:
            results.append(await self.cleanup_by_age(days_ago(self.settings.RETENTION_DAYS)))
        if self.settings.RETENTION_MAX_PER_TEST is not None:
            results.append(await self.cleanup_by_count(self.settings.RETENTION_MAX_PER_TEST))
        return results

    async def _delete_executions(self, ids: List[str]) -> int:
        for execution_id in ids:
            await self.attachment_service.delete_blobs_for_test_result(execution_id)
        return await self.test_repository.delete_by_ids(ids)


class RetentionScheduler:
    """Runs the configured retention sweep on a cron schedule"""

    def __init__(self, retention_service: RetentionService, cron_expression: str = "0 3 * * *"):
        self.retention_service = retention_service
        self.cron_expression = cron_expression
        self.scheduler = AsyncIOScheduler(
            jobstores={'default': MemoryJobStore()},
            timezone=pytz_timezone('UTC')
        )
        self.running = False

    async def start(self):
        """Start the scheduler; must be called from a running event loop"""
        if self.running:
            logger.warning("Retention scheduler is already running")
            return

        logger.info("Starting retention scheduler...")

        self.scheduler.add_job(
            func=self._run_sweep,
            trigger=CronTrigger.from_crontab(self.cron_expression, timezone=pytz_timezone('UTC')),
            id=RETENTION_JOB_ID,
            name="Retention sweep",
            replace_existing=True
        )
        self.scheduler.start()
        self.running = True

        next_run = self.scheduler.get_job(RETENTION_JOB_ID).next_run_time
        logger.info(f"Retention scheduler started ({self.cron_expression}), next run: {next_run}")

    async def stop(self):
        if not self.running:
            return

        logger.info("Stopping retention scheduler...")
        self.scheduler.shutdown(wait=False)
        self.running = False
        logger.info("Retention scheduler stopped")

    async def _run_sweep(self):
        try:
            results = await self.retention_service.run_configured_sweep()
        except DashboardError as e:
            logger.error(f"Retention sweep failed: {e}")
            return

        for result in results:
            logger.info(f"Retention sweep ({result.strategy}): {result.deleted} deleted")
