"""
Pydantic schemas for test executions and their analytics
"""
from pydantic import BaseModel, ConfigDict, Field, JsonValue, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List
from datetime import date, datetime
import uuid

from testdash.models.test_result import TestStatus
from testdash.schemas.attachment import AttachmentData


def _new_id() -> str:
    return str(uuid.uuid4())


class CamelModel(BaseModel):
    """Accepts both snake_case and the camelCase keys sent by the reporter"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TestResultData(CamelModel):
    """Schema for one test attempt reported by the runner"""
    id: str = Field(default_factory=_new_id, description="Execution ID, unique per attempt")
    run_id: str = Field(..., description="Run this attempt belongs to")
    test_id: str = Field(..., min_length=1, description="Stable logical test identifier")
    name: str = Field(..., description="Test title")
    file_path: str = Field(..., description="Spec file path")
    status: TestStatus = Field(..., description="Attempt outcome")
    duration: int = Field(default=0, ge=0, description="Duration in milliseconds")
    error_message: Optional[str] = Field(None, description="Error message for failed attempts")
    error_stack: Optional[str] = Field(None, description="Error stack for failed attempts")
    retry_count: int = Field(default=0, ge=0, description="Playwright retry index")
    metadata: Optional[JsonValue] = Field(None, description="Steps, annotations and other reporter data")
    timestamp: Optional[datetime] = Field(None, description="Attempt time; defaults to now")


class DiscoveredTest(CamelModel):
    """Schema for a test found by discovery but not yet run"""
    id: str = Field(default_factory=_new_id)
    run_id: Optional[str] = None
    test_id: str = Field(..., min_length=1)
    name: str
    file_path: str
    status: TestStatus = TestStatus.PENDING
    duration: int = 0
    error_message: Optional[str] = None
    error_stack: Optional[str] = None
    retry_count: int = 0
    metadata: Optional[JsonValue] = None
    timestamp: Optional[datetime] = None

    @field_validator("status")
    @classmethod
    def _must_be_pending(cls, value: TestStatus) -> TestStatus:
        if value != TestStatus.PENDING:
            raise ValueError("discovered tests are always pending")
        return value


class RawAttachment(CamelModel):
    """Attachment as emitted by the runner, before it is stored"""
    name: str = Field(..., description="Attachment name (video, screenshot, trace, ...)")
    path: str = Field(..., description="Temporary file written by the runner")
    content_type: Optional[str] = Field(None, description="MIME type reported by the runner")


class TestExecution(CamelModel):
    """An execution row with its attachments"""
    id: str
    run_id: Optional[str] = None
    test_id: str
    name: str
    file_path: str
    status: TestStatus
    duration: int = 0
    error_message: Optional[str] = None
    error_stack: Optional[str] = None
    retry_count: int = 0
    metadata: Optional[JsonValue] = None
    created_at: datetime
    updated_at: datetime
    attachments: List[AttachmentData] = []


class TestFilters(CamelModel):
    """Filters for the current test list"""
    run_id: Optional[str] = Field(None, description="Restrict to one run (no per-test collapsing)")
    status: Optional[TestStatus] = Field(None, description="Exact status match")
    limit: Optional[int] = Field(None, ge=1, description="Maximum number of executions")


class FlakyTestReport(CamelModel):
    """A logical test whose recent outcomes are mixed"""
    test_id: str
    name: str
    file_path: str
    total_runs: int
    passed_runs: int
    failed_runs: int
    flaky_percentage: int = Field(..., description="floor(failed * 100 / total)")
    history: List[str] = Field(default_factory=list, description="Outcomes in chronological order")
    last_run: Optional[datetime] = None


class DailyBucket(CamelModel):
    """Outcome counts for one calendar day"""
    date: date
    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    timed_out: int = 0


class DiscoveryResult(CamelModel):
    discovered: int
    saved: int
    timestamp: datetime


class DatabaseStats(CamelModel):
    """Row counts of every table"""
    total_runs: int = 0
    total_tests: int = 0
    total_attachments: int = 0
    total_notes: int = 0
