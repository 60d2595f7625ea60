"""Shared builders for the dashboard tests."""
import os
import sys
from datetime import datetime, timedelta

# Ensure the backend directory is on the import path
CURRENT_DIR = os.path.dirname(os.path.abspath(__file__))
BACKEND_DIR = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

from testdash.core.database import Database  # noqa: E402
from testdash.core.timestamps import utcnow  # noqa: E402
from testdash.models.attachment import AttachmentType  # noqa: E402
from testdash.models.test_result import TestStatus  # noqa: E402
from testdash.schemas.attachment import AttachmentData  # noqa: E402
from testdash.schemas.run import TestRunData  # noqa: E402
from testdash.schemas.test import TestResultData  # noqa: E402

MEMORY_URL = "sqlite+aiosqlite://"


async def open_memory_database() -> Database:
    db = Database(MEMORY_URL)
    await db.open()
    return db


def hours_ago(hours: float) -> datetime:
    return utcnow() - timedelta(hours=hours)


def make_run(run_id: str = "run-1", **overrides) -> TestRunData:
    return TestRunData(id=run_id, **overrides)


def make_result(test_id: str, status: TestStatus, run_id: str = "run-1", **overrides) -> TestResultData:
    values = {
        "run_id": run_id,
        "test_id": test_id,
        "name": overrides.pop("name", f"{test_id} title"),
        "file_path": overrides.pop("file_path", "tests/example.spec.ts"),
        "status": status,
    }
    values.update(overrides)
    return TestResultData(**values)


def make_attachment(test_result_id: str, file_name: str = "video.webm",
                    type: AttachmentType = AttachmentType.VIDEO, **overrides) -> AttachmentData:
    values = {
        "test_result_id": test_result_id,
        "type": type,
        "file_name": file_name,
        "file_path": f"/attachments/{test_result_id}/{file_name}",
        "file_size": 100,
        "url": f"/attachments/{test_result_id}/{file_name}",
    }
    values.update(overrides)
    return AttachmentData(**values)
