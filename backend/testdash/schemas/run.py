"""
Pydantic schemas for test runs
"""
from pydantic import BaseModel, ConfigDict, Field, JsonValue
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime

from testdash.models.test_run import RunStatus


class TestRunData(BaseModel):
    """Schema for a run record"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., description="Run ID, supplied by the launcher")
    status: RunStatus = Field(default=RunStatus.RUNNING)
    total_tests: int = Field(default=0, ge=0)
    passed_tests: int = Field(default=0, ge=0)
    failed_tests: int = Field(default=0, ge=0)
    skipped_tests: int = Field(default=0, ge=0)
    duration: int = Field(default=0, ge=0, description="Duration in milliseconds")
    metadata: Optional[JsonValue] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TestRunUpdate(BaseModel):
    """Partial update - only fields that are explicitly set are written"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status: Optional[RunStatus] = None
    total_tests: Optional[int] = Field(None, ge=0)
    passed_tests: Optional[int] = Field(None, ge=0)
    failed_tests: Optional[int] = Field(None, ge=0)
    skipped_tests: Optional[int] = Field(None, ge=0)
    duration: Optional[int] = Field(None, ge=0)
    metadata: Optional[JsonValue] = None


class TestRunStats(BaseModel):
    """Aggregates over all runs"""
    total_runs: int = 0
    completed_runs: int = 0
    total_tests: int = 0
    total_passed: int = 0
    total_failed: int = 0
    total_skipped: int = 0
