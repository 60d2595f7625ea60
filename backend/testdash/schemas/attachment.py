"""
Pydantic schemas for attachments
"""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, Dict
from datetime import datetime
import uuid

from testdash.models.attachment import AttachmentType


class AttachmentData(BaseModel):
    """Attachment metadata row"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    test_result_id: str = Field(..., description="Owning execution ID")
    type: AttachmentType
    file_name: str
    file_path: str = Field(..., description="Blob location returned by the blob store")
    file_size: int = Field(default=0, ge=0, description="Size in bytes")
    mime_type: Optional[str] = None
    url: str = Field(..., description="Path through which the blob can be fetched")
    created_at: Optional[datetime] = None


class TypeBucket(BaseModel):
    count: int = 0
    size: int = 0


class AttachmentRowStats(BaseModel):
    """Statistics computed from attachment rows"""
    total_files: int = 0
    total_size: int = 0
    executions: int = 0
    type_breakdown: Dict[str, TypeBucket] = {}
