"""
Run Repository - the run ledger

Runs are the only rows updated in place; counters are maintained by the caller.
"""
from datetime import datetime
from typing import Any, List, Mapping, Optional
import logging

from sqlalchemy import case, delete, func, insert, select, update

from testdash.core.exceptions import ValidationError
from testdash.core.timestamps import to_naive_utc, utcnow
from testdash.models.test_result import TestResult
from testdash.models.test_run import RunStatus, TestRun
from testdash.repositories.base import (
    BaseRepository,
    chunked,
    dump_metadata,
    load_metadata,
    require_positive,
)
from testdash.schemas.run import TestRunData, TestRunStats, TestRunUpdate

logger = logging.getLogger(__name__)

runs = TestRun.__table__

DEFAULT_RUNS_LIMIT = 50
DELETE_BATCH_SIZE = 900


def _map_run_row(row: Mapping[str, Any]) -> TestRunData:
    return TestRunData(
        id=row["id"],
        status=row["status"],
        total_tests=row["total_tests"],
        passed_tests=row["passed_tests"],
        failed_tests=row["failed_tests"],
        skipped_tests=row["skipped_tests"],
        duration=row["duration"],
        metadata=load_metadata(row["metadata"], owner=f"run {row['id']}"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class RunRepository(BaseRepository):

    def __init__(self, db, default_runs_limit: int = DEFAULT_RUNS_LIMIT,
                 delete_batch_size: int = DELETE_BATCH_SIZE):
        super().__init__(db)
        self.default_runs_limit = default_runs_limit
        self.delete_batch_size = delete_batch_size

    async def create_test_run(self, data: TestRunData) -> str:
        """
        Insert a run record.

        Raises:
            ConstraintViolation: if a run with the same id already exists
        """
        created_at = to_naive_utc(data.created_at) or utcnow()
        await self.execute(
            insert(runs).values({
                "id": data.id,
                "status": data.status,
                "total_tests": data.total_tests,
                "passed_tests": data.passed_tests,
                "failed_tests": data.failed_tests,
                "skipped_tests": data.skipped_tests,
                "duration": data.duration,
                "metadata": dump_metadata(data.metadata),
                "created_at": created_at,
                "updated_at": to_naive_utc(data.updated_at) or created_at,
            })
        )
        return data.id

    async def update_test_run(self, run_id: str, updates: TestRunUpdate) -> int:
        """
        Write only the fields explicitly set on ``updates``; an empty update is a no-op.

        Raises:
            ValidationError: if a field other than ``metadata`` is explicitly set to None
        """
        values = updates.model_dump(exclude_unset=True)
        if not values:
            return 0

        null_fields = sorted(name for name, value in values.items() if value is None and name != "metadata")
        if null_fields:
            raise ValidationError(
                f"Run fields cannot be null: {', '.join(null_fields)}",
                details={"fields": null_fields},
            )

        if "metadata" in values:
            values["metadata"] = dump_metadata(values["metadata"])
        values["updated_at"] = utcnow()

        return await self.execute(update(runs).where(runs.c.id == run_id).values(values))

    async def get_test_run(self, run_id: str) -> Optional[TestRunData]:
        row = await self.query_one(select(runs).where(runs.c.id == run_id))
        return _map_run_row(row) if row else None

    async def get_all_test_runs(self, limit: Optional[int] = None) -> List[TestRunData]:
        limit = require_positive("limit", limit if limit is not None else self.default_runs_limit)
        rows = await self.query_all(
            select(runs).order_by(runs.c.created_at.desc(), runs.c.id.desc()).limit(limit)
        )
        return [_map_run_row(row) for row in rows]

    async def get_stats(self) -> TestRunStats:
        row = await self.query_one(
            select(
                func.count().label("total_runs"),
                func.coalesce(func.sum(case((runs.c.status == RunStatus.COMPLETED, 1), else_=0)), 0)
                    .label("completed_runs"),
                func.coalesce(func.sum(runs.c.total_tests), 0).label("total_tests"),
                func.coalesce(func.sum(runs.c.passed_tests), 0).label("total_passed"),
                func.coalesce(func.sum(runs.c.failed_tests), 0).label("total_failed"),
                func.coalesce(func.sum(runs.c.skipped_tests), 0).label("total_skipped"),
            ).select_from(runs)
        )
        return TestRunStats(**row) if row else TestRunStats()

    async def get_ids_older_than(self, cutoff: datetime, orphaned_only: bool = True) -> List[str]:
        """
        Ids of runs created before the cutoff.

        With ``orphaned_only`` runs that still own executions are skipped, so a
        pruned run never takes surviving executions down with it.
        """
        query = select(runs.c.id).where(runs.c.created_at < to_naive_utc(cutoff))
        if orphaned_only:
            owned = select(TestResult.__table__.c.run_id).where(
                TestResult.__table__.c.run_id.is_not(None)
            ).correlate(None)
            query = query.where(runs.c.id.not_in(owned))

        rows = await self.query_all(query)
        return [row["id"] for row in rows]

    async def delete_by_ids(self, ids: List[str]) -> int:
        if not ids:
            return 0

        deleted = 0
        for batch in chunked(list(ids), self.delete_batch_size):
            deleted += await self.execute(delete(runs).where(runs.c.id.in_(batch)))

        logger.info(f"Deleted {deleted} runs")
        return deleted
