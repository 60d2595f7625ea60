"""
Attachment Model - metadata of videos, screenshots, traces and logs
"""
from sqlalchemy import CheckConstraint, Column, String, Integer, DateTime, ForeignKey, Enum as SQLEnum
import enum

from testdash.core.database import Base
from testdash.core.timestamps import utcnow


class AttachmentType(str, enum.Enum):
    """Attachment kind"""
    VIDEO = "video"
    SCREENSHOT = "screenshot"
    TRACE = "trace"
    LOG = "log"


class Attachment(Base):
    """Attachment row. Deleted together with its parent execution."""
    __tablename__ = "attachments"

    id = Column(String, primary_key=True)
    test_result_id = Column(
        String,
        ForeignKey("test_results.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type = Column(
        SQLEnum(AttachmentType, name="attachment_type", native_enum=False, create_constraint=True,
                values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        index=True,
    )
    file_name = Column(String, nullable=False)
    file_path = Column(String, nullable=False)  # location returned by the blob store
    file_size = Column(Integer, nullable=False, default=0)  # bytes
    mime_type = Column(String, nullable=True)
    url = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("file_size >= 0", name="ck_attachments_file_size"),
    )
