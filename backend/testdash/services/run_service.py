"""
Run Service - run lifecycle
"""
import logging
import uuid
from typing import Any, List, Optional

from testdash.models.test_result import TestStatus
from testdash.models.test_run import RunStatus
from testdash.repositories.run_repository import RunRepository
from testdash.repositories.test_repository import TestRepository
from testdash.schemas.run import TestRunData, TestRunStats, TestRunUpdate

logger = logging.getLogger(__name__)


class RunService:
    """Service for test runs"""

    def __init__(self, run_repository: RunRepository, test_repository: TestRepository):
        self.run_repository = run_repository
        self.test_repository = test_repository

    async def start_run(self, run_id: Optional[str] = None, metadata: Any = None) -> TestRunData:
        """Create a run in the running state with zeroed counters."""
        run = TestRunData(id=run_id or str(uuid.uuid4()), status=RunStatus.RUNNING, metadata=metadata)
        await self.run_repository.create_test_run(run)
        logger.info(f"Run started: {run.id}")
        return await self.run_repository.get_test_run(run.id)

    async def update_run(self, run_id: str, updates: TestRunUpdate) -> Optional[TestRunData]:
        await self.run_repository.update_test_run(run_id, updates)
        return await self.run_repository.get_test_run(run_id)

    async def complete_run(
        self,
        run_id: str,
        duration: Optional[int] = None,
        status: Optional[RunStatus] = None,
    ) -> Optional[TestRunData]:
        """
        Close a run, deriving its counters from the executions recorded for it.

        Timed-out attempts count as failures. Unless a status is given, the
        run is failed when any attempt failed and completed otherwise.

        Returns:
            The updated run, or None if the run does not exist
        """
        run = await self.run_repository.get_test_run(run_id)
        if run is None:
            logger.warning(f"Cannot complete unknown run {run_id}")
            return None

        counts = await self.test_repository.count_statuses_by_run(run_id)
        passed = counts.get(TestStatus.PASSED, 0)
        failed = counts.get(TestStatus.FAILED, 0) + counts.get(TestStatus.TIMED_OUT, 0)
        skipped = counts.get(TestStatus.SKIPPED, 0)

        if status is None:
            status = RunStatus.FAILED if failed else RunStatus.COMPLETED

        updates = TestRunUpdate(
            status=status,
            total_tests=passed + failed + skipped,
            passed_tests=passed,
            failed_tests=failed,
            skipped_tests=skipped,
        )
        if duration is not None:
            updates.duration = duration

        await self.run_repository.update_test_run(run_id, updates)
        logger.info(f"Run {run_id} {status.value}: {passed} passed, {failed} failed, {skipped} skipped")
        return await self.run_repository.get_test_run(run_id)

    async def get_run(self, run_id: str) -> Optional[TestRunData]:
        return await self.run_repository.get_test_run(run_id)

    async def list_runs(self, limit: Optional[int] = None) -> List[TestRunData]:
        return await self.run_repository.get_all_test_runs(limit)

    async def get_stats(self) -> TestRunStats:
        return await self.run_repository.get_stats()
