"""
Storage Repository - database and blob usage in one report
"""
from sqlalchemy import func, select

from testdash.models.attachment import Attachment
from testdash.models.test_result import TestResult
from testdash.models.test_run import TestRun
from testdash.repositories.base import BaseRepository
from testdash.schemas.storage import (
    AttachmentStorage,
    DatabaseStorage,
    StorageStats,
    TotalStorage,
    empty_breakdown,
)
from testdash.storage.blob_store import BlobStore


class StorageRepository(BaseRepository):

    def __init__(self, db, blob_store: BlobStore):
        super().__init__(db)
        self.blob_store = blob_store

    async def get_database_stats(self) -> DatabaseStorage:
        def count_of(model):
            return select(func.count()).select_from(model.__table__).scalar_subquery()

        row = await self.query_one(
            select(
                count_of(TestRun).label("total_runs"),
                count_of(TestResult).label("total_results"),
                count_of(Attachment).label("total_attachments"),
            )
        )
        return DatabaseStorage(size=self.db.file_size(), **(row or {}))

    async def get_storage_stats(self) -> StorageStats:
        """
        Database file size and row counts combined with what the blob store
        holds on disk. The average is over executions, rounded.
        """
        database = await self.get_database_stats()
        blobs = await self.blob_store.get_storage_stats()

        type_breakdown = empty_breakdown()
        type_breakdown.update(blobs.type_breakdown)

        total_size = database.size + blobs.total_size
        average = round(total_size / database.total_results) if database.total_results > 0 else 0

        return StorageStats(
            database=database,
            attachments=AttachmentStorage(
                total_size=blobs.total_size,
                total_files=blobs.total_files,
                test_directories=blobs.test_directories,
                type_breakdown=type_breakdown,
            ),
            total=TotalStorage(size=total_size, average_size_per_test=average),
        )
