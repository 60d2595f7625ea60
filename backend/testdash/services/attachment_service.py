"""
Attachment Service - moves runner attachments into permanent storage
"""
import logging
import os
from typing import Iterable, List, Optional

from testdash.models.attachment import AttachmentType
from testdash.repositories.attachment_repository import AttachmentRepository
from testdash.schemas.attachment import AttachmentData
from testdash.schemas.test import RawAttachment
from testdash.storage.blob_store import BlobStore, unique_blob_name

logger = logging.getLogger(__name__)


def map_content_type(content_type: Optional[str], file_name: Optional[str]) -> AttachmentType:
    """Classify an attachment by its MIME type, falling back to the file name."""
    content_type = (content_type or "").lower()
    file_name = (file_name or "").lower()

    if content_type.startswith("video/") or file_name.endswith((".webm", ".mp4")):
        return AttachmentType.VIDEO
    if content_type.startswith("image/") or file_name.endswith((".png", ".jpg", ".jpeg")):
        return AttachmentType.SCREENSHOT
    if "zip" in content_type or file_name.endswith(".zip") or "trace" in file_name:
        return AttachmentType.TRACE
    return AttachmentType.LOG


class AttachmentService:
    """Service for managing test attachments (videos, screenshots, traces, logs)"""

    def __init__(self, attachment_repository: AttachmentRepository, blob_store: BlobStore):
        self.attachment_repository = attachment_repository
        self.blob_store = blob_store

    async def save_attachments_for_test_result(
        self,
        test_result_id: str,
        attachments: Iterable[RawAttachment],
    ) -> List[AttachmentData]:
        """
        Store raw attachments for an execution and record them.

        Attachments already recorded for the execution are replaced. Sources
        that are missing or fail to copy are skipped; the others are still saved.
        """
        existing = await self.attachment_repository.get_attachments_by_test_result(test_result_id)
        if existing:
            await self._delete_blobs(test_result_id)
            await self.attachment_repository.delete_attachments_by_test_result(test_result_id)

        saved: List[AttachmentData] = []
        for raw in attachments:
            if not os.path.isfile(raw.path):
                logger.warning(f"Attachment source not found, skipping: {raw.path}")
                continue

            try:
                blob = await self.blob_store.save_blob(
                    test_result_id, raw.path, unique_blob_name(os.path.basename(raw.path))
                )
            except Exception as e:
                logger.error(f"Failed to store attachment {raw.path}: {e}")
                continue

            attachment = AttachmentData(
                test_result_id=test_result_id,
                type=map_content_type(raw.content_type, raw.name),
                file_name=blob.file_name,
                file_path=blob.file_path,
                file_size=blob.file_size,
                mime_type=raw.content_type or blob.mime_type,
                url=blob.url,
            )
            await self.attachment_repository.save_attachment(attachment)
            saved.append(attachment)

        if saved:
            logger.info(f"Saved {len(saved)} attachments for execution {test_result_id}")
        return saved

    async def get_attachments_by_test_result(self, test_result_id: str) -> List[AttachmentData]:
        return await self.attachment_repository.get_attachments_by_test_result(test_result_id)

    async def get_attachment_by_id(self, attachment_id: str) -> Optional[AttachmentData]:
        return await self.attachment_repository.get_attachment_by_id(attachment_id)

    async def get_trace_file(self, attachment_id: str) -> Optional[AttachmentData]:
        """Return the attachment only if it is a trace."""
        attachment = await self.attachment_repository.get_attachment_by_id(attachment_id)
        if attachment is None or attachment.type != AttachmentType.TRACE:
            return None
        return attachment

    async def delete_attachment(self, attachment_id: str) -> bool:
        attachment = await self.attachment_repository.get_attachment_by_id(attachment_id)
        if attachment is None:
            return False

        try:
            await self.blob_store.delete_blob(attachment.test_result_id, attachment.file_name)
        except Exception as e:
            logger.error(f"Failed to delete blob of attachment {attachment_id}: {e}")

        return await self.attachment_repository.delete_attachment(attachment_id) > 0

    async def delete_attachments_for_test_result(self, test_result_id: str) -> int:
        """Delete the files and rows of every attachment of an execution."""
        await self._delete_blobs(test_result_id)
        return await self.attachment_repository.delete_attachments_by_test_result(test_result_id)

    async def delete_blobs_for_test_result(self, test_result_id: str) -> int:
        """Delete only the files; rows go with the execution row by cascade."""
        return await self._delete_blobs(test_result_id)

    async def clear_all_attachments(self) -> int:
        try:
            return await self.blob_store.delete_all_blobs()
        except Exception as e:
            logger.error(f"Failed to clear attachment files: {e}")
            return 0

    async def _delete_blobs(self, test_result_id: str) -> int:
        try:
            return await self.blob_store.delete_blobs_for_execution(test_result_id)
        except Exception as e:
            logger.error(f"Failed to delete attachment files for execution {test_result_id}: {e}")
            return 0
