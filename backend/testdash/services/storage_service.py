"""
Storage Service - unified storage report
"""
from testdash.repositories.attachment_repository import AttachmentRepository
from testdash.repositories.storage_repository import StorageRepository
from testdash.schemas.storage import StorageStats


class StorageService:

    def __init__(self, storage_repository: StorageRepository, attachment_repository: AttachmentRepository):
        self.storage_repository = storage_repository
        self.attachment_repository = attachment_repository

    async def get_storage_stats(self) -> StorageStats:
        """
        Disk usage of the database and the blob store, plus what the
        attachment rows claim. A gap between recorded and on-disk figures
        points at orphaned or missing files.
        """
        stats = await self.storage_repository.get_storage_stats()
        recorded = await self.attachment_repository.get_attachment_stats()

        stats.attachments.recorded_files = recorded.total_files
        stats.attachments.recorded_size = recorded.total_size
        stats.attachments.recorded_executions = recorded.executions
        stats.attachments.recorded_breakdown = recorded.type_breakdown
        return stats
