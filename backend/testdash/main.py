"""
Test Dashboard - bootstrap

Opens the database and wires repositories and services into one container.
"""
from dataclasses import dataclass
from typing import Optional
import logging

from testdash.core.config import Settings, load_settings
from testdash.core.database import Database
from testdash.core.logging import setup_logging
from testdash.repositories.attachment_repository import AttachmentRepository
from testdash.repositories.note_repository import NoteRepository
from testdash.repositories.run_repository import RunRepository
from testdash.repositories.storage_repository import StorageRepository
from testdash.repositories.test_repository import TestRepository
from testdash.services.attachment_service import AttachmentService
from testdash.services.note_service import NoteService
from testdash.services.retention_service import RetentionScheduler, RetentionService
from testdash.services.run_service import RunService
from testdash.services.storage_service import StorageService
from testdash.services.test_service import TestService
from testdash.storage.blob_store import BlobStore, LocalBlobStore

logger = logging.getLogger(__name__)


@dataclass
class Dashboard:
    """Everything a transport layer needs, built once at startup"""
    settings: Settings
    db: Database
    blob_store: BlobStore
    tests: TestService
    runs: RunService
    attachments: AttachmentService
    notes: NoteService
    storage: StorageService
    retention: RetentionService
    retention_scheduler: Optional[RetentionScheduler] = None

    async def close(self) -> None:
        if self.retention_scheduler is not None:
            await self.retention_scheduler.stop()
        await self.db.close()
        logger.info(f"{self.settings.APP_NAME} stopped")


async def create_dashboard(
    settings: Optional[Settings] = None,
    blob_store: Optional[BlobStore] = None,
) -> Dashboard:
    """
    Open the database and build the service graph.

    The retention scheduler is started only when RETENTION_ENABLED is set.
    """
    settings = settings or load_settings()
    setup_logging(settings.LOG_LEVEL)
    logger.info(f"Starting {settings.APP_NAME} {settings.APP_VERSION}...")

    db = Database(settings.DATABASE_URL, echo=settings.SQL_ECHO)
    await db.open()

    blob_store = blob_store or LocalBlobStore(settings.ATTACHMENTS_DIR, settings.ATTACHMENTS_URL_PREFIX)

    attachment_repository = AttachmentRepository(db)
    test_repository = TestRepository(
        db,
        attachment_repository,
        default_tests_limit=settings.DEFAULT_TESTS_LIMIT,
        default_history_limit=settings.DEFAULT_HISTORY_LIMIT,
        flaky_max_results=settings.FLAKY_MAX_RESULTS,
        delete_batch_size=settings.DELETE_BATCH_SIZE,
    )
    run_repository = RunRepository(
        db,
        default_runs_limit=settings.DEFAULT_RUNS_LIMIT,
        delete_batch_size=settings.DELETE_BATCH_SIZE,
    )
    note_repository = NoteRepository(db, max_length=settings.NOTE_MAX_LENGTH)
    storage_repository = StorageRepository(db, blob_store)

    attachments = AttachmentService(attachment_repository, blob_store)
    tests = TestService(
        test_repository,
        attachments,
        flaky_default_days=settings.FLAKY_DEFAULT_DAYS,
        flaky_default_threshold=settings.FLAKY_DEFAULT_THRESHOLD,
        timeline_default_days=settings.TIMELINE_DEFAULT_DAYS,
    )
    retention = RetentionService(test_repository, run_repository, attachments, settings)

    dashboard = Dashboard(
        settings=settings,
        db=db,
        blob_store=blob_store,
        tests=tests,
        runs=RunService(run_repository, test_repository),
        attachments=attachments,
        notes=NoteService(note_repository),
        storage=StorageService(storage_repository, attachment_repository),
        retention=retention,
    )

    if settings.RETENTION_ENABLED:
        dashboard.retention_scheduler = RetentionScheduler(retention, settings.RETENTION_CRON)
        await dashboard.retention_scheduler.start()

    logger.info(f"{settings.APP_NAME} ready")
    return dashboard
