"""
Test Run Model - one execution session (run-all, run-group, rerun)
"""
from sqlalchemy import CheckConstraint, Column, String, Integer, Text, DateTime, Enum as SQLEnum
import enum

from testdash.core.database import Base
from testdash.core.timestamps import utcnow


class RunStatus(str, enum.Enum):
    """Run status"""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class TestRun(Base):
    """Run record. The only table whose rows are updated in place."""
    __tablename__ = "test_runs"

    id = Column(String, primary_key=True)
    status = Column(
        SQLEnum(RunStatus, name="run_status", native_enum=False, create_constraint=True,
                values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=RunStatus.RUNNING,
        index=True,
    )

    # Aggregate counters, maintained by the caller
    total_tests = Column(Integer, nullable=False, default=0)
    passed_tests = Column(Integer, nullable=False, default=0)
    failed_tests = Column(Integer, nullable=False, default=0)
    skipped_tests = Column(Integer, nullable=False, default=0)
    duration = Column(Integer, nullable=False, default=0)  # milliseconds

    # "metadata" is reserved on declarative classes
    metadata_json = Column("metadata", Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "total_tests >= 0 AND passed_tests >= 0 AND failed_tests >= 0 "
            "AND skipped_tests >= 0 AND duration >= 0",
            name="ck_test_runs_non_negative",
        ),
    )
