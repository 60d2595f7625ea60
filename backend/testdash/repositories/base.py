"""
Base repository and shared row-mapping helpers
"""
from typing import Any, Iterable, List, Mapping, Optional
import json
import logging

from testdash.core.database import Database, Statement
from testdash.core.exceptions import SerializationError, ValidationError

logger = logging.getLogger(__name__)


def dump_metadata(value: Any) -> Optional[str]:
    """Serialize opaque metadata for storage; None stays NULL."""
    if value is None:
        return None
    return json.dumps(value)


def decode_metadata(raw: Optional[str]) -> Any:
    """Strict decoder; raises SerializationError on malformed payloads."""
    if raw is None or raw == "":
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Malformed metadata: {e}") from e


def load_metadata(raw: Optional[str], owner: str = "") -> Any:
    """
    Decode stored metadata.

    Rows written by older or buggy writers must stay readable, so malformed
    JSON is logged and surfaced as None instead of failing the read.
    """
    try:
        return decode_metadata(raw)
    except SerializationError as e:
        logger.warning(f"Ignoring metadata on {owner or 'row'}: {e.message}")
        return None


def require_positive(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"{name} must be a positive integer, got {value!r}")
    return value


def chunked(items: List[Any], size: int) -> Iterable[List[Any]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class BaseRepository:
    """Repositories share one explicitly constructed Database."""

    def __init__(self, db: Database):
        self.db = db

    async def execute(self, statement: Statement, params: Optional[Mapping[str, Any]] = None) -> int:
        return await self.db.execute(statement, params)

    async def query_one(self, statement: Statement, params: Optional[Mapping[str, Any]] = None) -> Optional[Mapping[str, Any]]:
        return await self.db.query_one(statement, params)

    async def query_all(self, statement: Statement, params: Optional[Mapping[str, Any]] = None) -> List[Mapping[str, Any]]:
        return await self.db.query_all(statement, params)
