"""
Database configuration and connection management
"""
from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncIterator, Dict, Iterator, List, Mapping, Optional, Union
import logging
import os

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import Executable

from testdash.core.exceptions import ConstraintViolation, StorageError, ValidationError

logger = logging.getLogger(__name__)

# Create base class for models
Base = declarative_base()

Statement = Union[str, Executable]

# Applied to every new DBAPI connection. foreign_keys makes cascades and
# restrict-on-insert engine-enforced; WAL lets readers proceed while a run writes.
SQLITE_PRAGMAS = (
    "PRAGMA foreign_keys = ON",
    "PRAGMA journal_mode = WAL",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA temp_store = MEMORY",
    "PRAGMA busy_timeout = 30000",
)


def _is_memory_database(database_url: str) -> bool:
    return make_url(database_url).database in (None, "", ":memory:")


def _build_engine_kwargs(database_url: str, echo: bool = False) -> Dict[str, Any]:
    """Build SQLAlchemy engine kwargs for the SQLite backend."""
    if not database_url.startswith("sqlite"):
        raise ValidationError(f"Unsupported database URL '{database_url}': only SQLite is supported")

    kwargs: Dict[str, Any] = {
        "echo": echo,
        "connect_args": {"check_same_thread": False, "timeout": 30},
    }

    if _is_memory_database(database_url):
        # Every connection to ":memory:" is a separate database, so keep exactly one.
        kwargs["poolclass"] = StaticPool
    else:
        # Ensure the directory for the SQLite database exists so the engine can
        # create the file when first accessed.
        directory = os.path.dirname(make_url(database_url).database)
        if directory and not os.path.exists(directory):
            os.makedirs(directory, exist_ok=True)

    return kwargs


def _register_models() -> None:
    """Import models so they are registered on ``Base.metadata``."""
    from testdash.models import attachment, test_note, test_result, test_run  # noqa: F401


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except IntegrityError as e:
        raise ConstraintViolation(f"Constraint violated while {action}: {e.orig}") from e
    except (SQLAlchemyError, OSError) as e:
        raise StorageError(f"Storage failure while {action}: {e}") from e


def _as_executable(statement: Statement) -> Executable:
    if isinstance(statement, str):
        return text(statement)
    return statement


class Database:
    """
    Owns the SQLite database: engine, pragmas and schema.

    Exposes parametrized-query primitives used by the repositories. One instance
    is created at startup and passed to every repository; tests create their own
    in-memory instances.
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.echo = echo
        self._engine: Optional[AsyncEngine] = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise StorageError("Database is not open")
        return self._engine

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    async def open(self) -> None:
        """Create the engine and the schema (idempotent)."""
        if self._engine is not None:
            return

        engine = create_async_engine(
            self.database_url,
            **_build_engine_kwargs(self.database_url, self.echo)
        )

        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            for pragma in SQLITE_PRAGMAS:
                cursor.execute(pragma)
            cursor.close()

        _register_models()
        with _translate_errors("initializing schema"):
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        self._engine = engine
        logger.info(f"Database opened: {self.database_url}")

    async def close(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        logger.info("Database connection closed")

    async def execute(self, statement: Statement, params: Optional[Mapping[str, Any]] = None) -> int:
        """Run a write statement in its own transaction and return the affected row count."""
        with _translate_errors("executing statement"):
            async with self.engine.begin() as conn:
                result = await conn.execute(_as_executable(statement), params) if params \
                    else await conn.execute(_as_executable(statement))
                return max(result.rowcount, 0)

    async def query_one(self, statement: Statement, params: Optional[Mapping[str, Any]] = None) -> Optional[Mapping[str, Any]]:
        with _translate_errors("querying"):
            async with self.engine.connect() as conn:
                result = await conn.execute(_as_executable(statement), params) if params \
                    else await conn.execute(_as_executable(statement))
                row = result.mappings().first()
                return dict(row) if row is not None else None

    async def query_all(self, statement: Statement, params: Optional[Mapping[str, Any]] = None) -> List[Mapping[str, Any]]:
        with _translate_errors("querying"):
            async with self.engine.connect() as conn:
                result = await conn.execute(_as_executable(statement), params) if params \
                    else await conn.execute(_as_executable(statement))
                return [dict(row) for row in result.mappings().all()]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncConnection]:
        """Yield a connection whose statements commit (or roll back) together."""
        with _translate_errors("running transaction"):
            async with self.engine.begin() as conn:
                yield conn

    async def compact(self) -> None:
        """Reclaim free pages and truncate the write-ahead log."""
        with _translate_errors("compacting database"):
            async with self.engine.connect() as conn:
                # VACUUM cannot run inside a transaction
                conn = await conn.execution_options(isolation_level="AUTOCOMMIT")
                await conn.execute(text("VACUUM"))
                await conn.execute(text("PRAGMA wal_checkpoint(TRUNCATE)"))
        logger.debug("Database compacted")

    def file_size(self) -> int:
        """Size in bytes of the database file including its WAL and SHM files."""
        if _is_memory_database(self.database_url):
            return 0

        db_path = make_url(self.database_url).database
        size = 0
        for path in (db_path, f"{db_path}-wal", f"{db_path}-shm"):
            try:
                size += os.path.getsize(path)
            except OSError:
                continue
        return size
