"""
Pydantic schemas for storage and retention reports
"""
from pydantic import BaseModel, Field
from typing import Dict

from testdash.schemas.attachment import TypeBucket

REPORTED_TYPES = ("video", "screenshot", "trace", "log", "other")


def empty_breakdown() -> Dict[str, TypeBucket]:
    return {name: TypeBucket() for name in REPORTED_TYPES}


class BlobStats(BaseModel):
    """Bytes on disk as seen by the blob store"""
    total_files: int = 0
    total_size: int = 0
    test_directories: int = 0
    type_breakdown: Dict[str, TypeBucket] = Field(default_factory=dict)


class DatabaseStorage(BaseModel):
    size: int = 0
    total_runs: int = 0
    total_results: int = 0
    total_attachments: int = 0


class AttachmentStorage(BaseModel):
    total_size: int = 0
    total_files: int = 0
    test_directories: int = 0
    recorded_files: int = 0
    recorded_size: int = 0
    recorded_executions: int = 0
    recorded_breakdown: Dict[str, TypeBucket] = Field(default_factory=empty_breakdown)
    type_breakdown: Dict[str, TypeBucket] = Field(default_factory=empty_breakdown)


class TotalStorage(BaseModel):
    size: int = 0
    average_size_per_test: int = 0


class StorageStats(BaseModel):
    database: DatabaseStorage
    attachments: AttachmentStorage
    total: TotalStorage


class RetentionResult(BaseModel):
    """Outcome of one pruning pass"""
    strategy: str
    matched: int = 0
    deleted: int = 0
    runs_deleted: int = 0
    dry_run: bool = False
