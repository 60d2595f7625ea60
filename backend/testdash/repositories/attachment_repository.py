"""
Attachment Repository - metadata rows for videos, screenshots, traces and logs
"""
from typing import Any, List, Mapping, Optional

from sqlalchemy import delete, func, insert, literal_column, select

from testdash.core.timestamps import to_naive_utc, utcnow
from testdash.models.attachment import Attachment, AttachmentType
from testdash.repositories.base import BaseRepository
from testdash.schemas.attachment import AttachmentData, AttachmentRowStats, TypeBucket
from testdash.schemas.storage import empty_breakdown

attachments = Attachment.__table__


def attachment_columns(prefix: str = "") -> list:
    """Attachment columns, optionally labelled for use in a join with test_results."""
    return [column.label(f"{prefix}{column.name}") for column in attachments.c]


def map_attachment_row(row: Mapping[str, Any], prefix: str = "") -> AttachmentData:
    return AttachmentData(
        id=row[f"{prefix}id"],
        test_result_id=row[f"{prefix}test_result_id"],
        type=row[f"{prefix}type"],
        file_name=row[f"{prefix}file_name"],
        file_path=row[f"{prefix}file_path"],
        file_size=row[f"{prefix}file_size"] or 0,
        mime_type=row[f"{prefix}mime_type"],
        url=row[f"{prefix}url"],
        created_at=row[f"{prefix}created_at"],
    )


class AttachmentRepository(BaseRepository):
    """CRUD for attachment rows. Rows cascade away with their execution."""

    async def save_attachment(self, data: AttachmentData) -> str:
        """
        Insert an attachment row.

        Raises:
            ConstraintViolation: if the owning execution does not exist
        """
        await self.execute(
            insert(attachments).values(
                id=data.id,
                test_result_id=data.test_result_id,
                type=data.type,
                file_name=data.file_name,
                file_path=data.file_path,
                file_size=data.file_size,
                mime_type=data.mime_type,
                url=data.url,
                created_at=to_naive_utc(data.created_at) or utcnow(),
            )
        )
        return data.id

    async def get_attachment_by_id(self, attachment_id: str) -> Optional[AttachmentData]:
        row = await self.query_one(select(attachments).where(attachments.c.id == attachment_id))
        return map_attachment_row(row) if row else None

    async def get_attachments_by_test_result(self, test_result_id: str) -> List[AttachmentData]:
        rows = await self.query_all(
            select(attachments)
            .where(attachments.c.test_result_id == test_result_id)
            .order_by(attachments.c.created_at, literal_column("attachments.rowid"))
        )
        return [map_attachment_row(row) for row in rows]

    async def delete_attachment(self, attachment_id: str) -> int:
        return await self.execute(delete(attachments).where(attachments.c.id == attachment_id))

    async def delete_attachments_by_test_result(self, test_result_id: str) -> int:
        return await self.execute(
            delete(attachments).where(attachments.c.test_result_id == test_result_id)
        )

    async def get_attachment_stats(self) -> AttachmentRowStats:
        """
        Row-based statistics: count and bytes per type plus distinct executions.

        The type column is constrained to ``AttachmentType``, so the ``other``
        bucket stays empty here; only the blob store's extension mapping fills it.
        """
        rows = await self.query_all(
            select(
                attachments.c.type,
                func.count().label("count"),
                func.coalesce(func.sum(attachments.c.file_size), 0).label("size"),
            ).group_by(attachments.c.type)
        )
        executions = await self.query_one(
            select(func.count(func.distinct(attachments.c.test_result_id)).label("executions"))
        )

        stats = AttachmentRowStats(type_breakdown=empty_breakdown())
        for row in rows:
            stats.type_breakdown[AttachmentType(row["type"]).value] = TypeBucket(
                count=row["count"], size=row["size"]
            )
            stats.total_files += row["count"]
            stats.total_size += row["size"]

        stats.executions = executions["executions"] if executions else 0
        return stats
