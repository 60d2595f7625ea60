import unittest
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

from sqlalchemy import insert

from dashboard_fixtures import make_attachment, make_result, make_run, open_memory_database
from testdash.core.config import load_settings
from testdash.core.exceptions import StorageError, ValidationError
from testdash.core.timestamps import utcnow
from testdash.models.test_result import TestResult, TestStatus
from testdash.repositories.attachment_repository import AttachmentRepository
from testdash.repositories.run_repository import RunRepository
from testdash.repositories.test_repository import TestRepository
from testdash.services.attachment_service import AttachmentService
from testdash.services.retention_service import RETENTION_JOB_ID, RetentionScheduler, RetentionService
from testdash.storage.blob_store import BlobStore


class RetentionQueryTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.db = await open_memory_database()
        self.runs = RunRepository(self.db)
        self.repo = TestRepository(self.db, delete_batch_size=2)
        await self.runs.create_test_run(make_run("run-1"))

    async def asyncTearDown(self):
        await self.db.close()

    async def _record(self, test_id, days_old):
        result = make_result(test_id, TestStatus.PASSED, timestamp=utcnow() - timedelta(days=days_old))
        await self.repo.save_test_result(result)
        return result.id

    async def test_ids_older_than_is_read_only(self):
        old = await self._record("login", 40)
        await self._record("login", 1)

        ids = await self.repo.get_ids_older_than(utcnow() - timedelta(days=30))

        self.assertEqual(ids, [old])
        self.assertEqual((await self.repo.get_test_stats()).total_tests, 2)

    async def test_ids_pruned_by_count_keeps_newest_per_test(self):
        login = [await self._record("login", days) for days in (1, 2, 3, 4)]
        logout = [await self._record("logout", days) for days in (1, 2)]

        ids = await self.repo.get_ids_pruned_by_count(2)

        self.assertEqual(set(ids), set(login[2:]))
        self.assertFalse(set(ids) & set(logout))

    async def test_ids_pruned_by_count_rejects_non_positive(self):
        with self.assertRaises(ValidationError):
            await self.repo.get_ids_pruned_by_count(0)

    async def test_delete_by_ids_batches_and_compacts_once(self):
        ids = [await self._record(f"test-{index}", 1) for index in range(5)]

        with (
            patch.object(self.db, "compact", new=AsyncMock()) as compact,
            patch.object(self.db, "execute", new=AsyncMock(side_effect=self.db.execute)) as execute,
        ):
            deleted = await self.repo.delete_by_ids(ids + ["missing"])

        self.assertEqual(deleted, 5)
        self.assertEqual(execute.call_count, 3)
        compact.assert_awaited_once()
        self.assertEqual((await self.repo.get_test_stats()).total_tests, 0)

    async def test_delete_by_ids_with_empty_list_touches_nothing(self):
        with (
            patch.object(self.db, "compact", new=AsyncMock()) as compact,
            patch.object(self.db, "execute", new=AsyncMock()) as execute,
        ):
            deleted = await self.repo.delete_by_ids([])

        self.assertEqual(deleted, 0)
        compact.assert_not_awaited()
        execute.assert_not_awaited()

    async def test_failing_batch_aborts_the_delete(self):
        ids = [await self._record(f"test-{index}", 1) for index in range(4)]

        with (
            patch.object(self.db, "compact", new=AsyncMock()) as compact,
            patch.object(self.db, "execute", new=AsyncMock(side_effect=[2, StorageError("disk full")])),
        ):
            with self.assertRaises(StorageError):
                await self.repo.delete_by_ids(ids)

        compact.assert_not_awaited()

    async def test_thousand_ids_use_two_default_sized_batches(self):
        repo = TestRepository(self.db)
        ids = [f"exec-{index}" for index in range(1000)]
        await self.db.execute(
            insert(TestResult.__table__),
            [
                {"id": execution_id, "run_id": "run-1", "test_id": "login", "name": "login",
                 "file_path": "tests/auth.spec.ts", "status": TestStatus.PASSED}
                for execution_id in ids
            ],
        )

        with (
            patch.object(self.db, "compact", new=AsyncMock()) as compact,
            patch.object(self.db, "execute", new=AsyncMock(side_effect=self.db.execute)) as execute,
        ):
            deleted = await repo.delete_by_ids(ids)

        self.assertEqual(deleted, 1000)
        self.assertEqual(execute.call_count, 2)
        compact.assert_awaited_once()


class RetentionServiceTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.db = await open_memory_database()
        self.runs = RunRepository(self.db)
        self.attachments = AttachmentRepository(self.db)
        self.tests = TestRepository(self.db, self.attachments)
        self.blob_store = MagicMock(spec=BlobStore)
        self.blob_store.delete_blobs_for_execution = AsyncMock(return_value=1)
        self.service = RetentionService(
            self.tests, self.runs, AttachmentService(self.attachments, self.blob_store)
        )

        old = utcnow() - timedelta(days=40)
        await self.runs.create_test_run(make_run("old-run", created_at=old))
        await self.runs.create_test_run(make_run("new-run"))
        self.old_result = make_result("login", TestStatus.FAILED, run_id="old-run", timestamp=old)
        self.new_result = make_result("login", TestStatus.PASSED, run_id="new-run")
        await self.tests.save_test_result(self.old_result)
        await self.tests.save_test_result(self.new_result)
        await self.attachments.save_attachment(make_attachment(self.old_result.id))

    async def asyncTearDown(self):
        await self.db.close()

    async def test_dry_run_reports_without_deleting(self):
        result = await self.service.cleanup_by_age(utcnow() - timedelta(days=30), dry_run=True)

        self.assertTrue(result.dry_run)
        self.assertEqual((result.matched, result.deleted), (1, 0))
        self.assertIsNotNone(await self.tests.get_test_result(self.old_result.id))
        self.blob_store.delete_blobs_for_execution.assert_not_awaited()

    async def test_cleanup_by_age_removes_rows_blobs_and_empty_runs(self):
        cutoff = utcnow() - timedelta(days=30)

        result = await self.service.cleanup_by_age(cutoff)

        self.assertEqual((result.matched, result.deleted, result.runs_deleted), (1, 1, 1))
        self.assertIsNone(await self.tests.get_test_result(self.old_result.id))
        self.assertIsNone(await self.runs.get_test_run("old-run"))
        self.assertIsNotNone(await self.runs.get_test_run("new-run"))
        self.assertEqual((await self.attachments.get_attachment_stats()).total_files, 0)
        self.blob_store.delete_blobs_for_execution.assert_awaited_once_with(self.old_result.id)

    async def test_cleanup_by_age_is_idempotent(self):
        cutoff = utcnow() - timedelta(days=30)
        await self.service.cleanup_by_age(cutoff)

        second = await self.service.cleanup_by_age(cutoff)

        self.assertEqual((second.matched, second.deleted, second.runs_deleted), (0, 0, 0))
        self.assertEqual((await self.tests.get_test_stats()).total_tests, 1)

    async def test_cleanup_by_count(self):
        result = await self.service.cleanup_by_count(1)

        self.assertEqual(result.strategy, "count")
        self.assertEqual(result.deleted, 1)
        self.assertIsNotNone(await self.tests.get_test_result(self.new_result.id))

    async def test_blob_failure_does_not_block_row_deletion(self):
        self.blob_store.delete_blobs_for_execution.side_effect = StorageError("permission denied")

        with self.assertLogs("testdash.services.attachment_service", level="ERROR"):
            result = await self.service.cleanup_by_count(1)

        self.assertEqual(result.deleted, 1)

    async def test_configured_sweep_applies_both_policies(self):
        self.service.settings = load_settings(RETENTION_DAYS=30, RETENTION_MAX_PER_TEST=5)

        results = await self.service.run_configured_sweep()

        self.assertEqual([r.strategy for r in results], ["age", "count"])
        self.assertEqual(results[0].deleted, 1)

    async def test_configured_sweep_without_policy_does_nothing(self):
        self.service.settings = load_settings()

        self.assertEqual(await self.service.run_configured_sweep(), [])


class RetentionSchedulerTests(unittest.IsolatedAsyncioTestCase):
    async def test_start_registers_cron_job_and_stop_shuts_down(self):
        scheduler = RetentionScheduler(MagicMock(), "0 3 * * *")

        await scheduler.start()
        try:
            job = scheduler.scheduler.get_job(RETENTION_JOB_ID)
            self.assertIsNotNone(job)
            self.assertIsNotNone(job.next_run_time)
            self.assertTrue(scheduler.running)
        finally:
            await scheduler.stop()

        self.assertFalse(scheduler.running)

    async def test_sweep_errors_are_logged(self):
        service = MagicMock()
        service.run_configured_sweep = AsyncMock(side_effect=StorageError("database is locked"))
        scheduler = RetentionScheduler(service)

        with self.assertLogs("testdash.services.retention_service", level="ERROR"):
            await scheduler._run_sweep()
