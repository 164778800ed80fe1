"""SQLite engine collaborator.

SqliteConnection wraps one SQLAlchemy connection and exposes the handful of
engine operations the rest of the package needs: catalog reads, prepare,
execute, and explicit transaction control. Statements are passed through
``exec_driver_sql`` untouched; the text is already final SQLite.
"""

from __future__ import annotations

import itertools
import time
from collections.abc import Sequence
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import create_engine, event
from sqlalchemy.exc import DBAPIError
from sqlalchemy.pool import StaticPool

from rizz.core.errors import ExecutionError
from rizz.db.cache import PreparedHandle, PreparedStatementCache
from rizz.schema.catalog import CatalogReader

if TYPE_CHECKING:
    from sqlalchemy import Connection, Engine

    from rizz.config.models import DatabaseConfig
    from rizz.schema.model import LiveSchema

logger = structlog.get_logger()

# Size of sqlite3's own per-connection statement cache
DRIVER_STATEMENT_CACHE = 512


def _is_database_locked_error(error: Exception) -> bool:
    """Check if error is a SQLite database locked error."""
    error_str = str(error).lower()
    return "database is locked" in error_str or "database is busy" in error_str


def _configure_pragmas(config: DatabaseConfig, dbapi_conn: Any, _connection_record: Any) -> None:
    """Apply the configured pragmas to every new DBAPI connection."""
    cursor = dbapi_conn.cursor()
    if not config.read_only:
        cursor.execute(f"PRAGMA journal_mode={config.journal_mode}")
    cursor.execute(f"PRAGMA busy_timeout={int(config.busy_timeout_ms)}")
    cursor.execute(f"PRAGMA synchronous={config.synchronous}")
    cursor.execute(f"PRAGMA foreign_keys={'ON' if config.foreign_keys else 'OFF'}")
    cursor.execute(f"PRAGMA cache_size=-{int(config.cache_size_kb)}")
    cursor.close()


def database_url(config: DatabaseConfig) -> str:
    """SQLAlchemy URL for ``config``, using a SQLite URI for the open mode."""
    if config.is_memory:
        return "sqlite://"
    if config.read_only:
        mode = "ro"
    elif config.create_if_missing:
        mode = "rwc"
    else:
        mode = "rw"
    path = Path(config.path).expanduser().resolve()
    return f"sqlite:///file:{path}?mode={mode}&uri=true"


def create_sqlite_engine(config: DatabaseConfig) -> Engine:
    """Create the engine shared by the writer and every reader.

    In-memory databases exist per connection, so they get a StaticPool and
    every caller shares the single connection.
    """
    connect_args: dict[str, Any] = {
        "check_same_thread": False,
        "cached_statements": DRIVER_STATEMENT_CACHE,
    }
    if config.is_memory:
        engine = create_engine(
            database_url(config), connect_args=connect_args, poolclass=StaticPool
        )
    else:
        engine = create_engine(
            database_url(config),
            connect_args=connect_args,
            pool_size=config.read_pool_size + 1,
            pool_pre_ping=True,
        )
    event.listen(engine, "connect", partial(_configure_pragmas, config))
    return engine


@dataclass(frozen=True)
class ExecutionResult:
    """Fully fetched outcome of one statement."""

    columns: tuple[str, ...]
    rows: list[tuple[Any, ...]]
    rowcount: int


class SqliteConnection:
    """One engine connection plus its prepared statement cache.

    Not thread-safe: each instance is used by one thread at a time (the
    writer thread, or the reader thread that owns it).
    """

    _generations = itertools.count(1)

    def __init__(self, engine: Engine, config: DatabaseConfig, *, role: str = "writer") -> None:
        self.role = role
        self._config = config
        try:
            self._conn: Connection = engine.connect()
        except DBAPIError as e:
            raise ExecutionError.engine_error("connect", str(e.orig)) from e
        self._generation = next(self._generations)
        self.cache = PreparedStatementCache(self.prepare)
        self._closed = False
        logger.debug("connection_opened", role=role, path=config.path)

    @property
    def closed(self) -> bool:
        return self._closed

    def read_catalog(self) -> LiveSchema:
        try:
            return CatalogReader(self._conn).read()
        except DBAPIError as e:
            raise ExecutionError.engine_error("catalog", str(e.orig)) from e

    def prepare(self, sql: str) -> PreparedHandle:
        logger.debug("statement_prepared", sql=sql, role=self.role)
        return PreparedHandle(sql=sql, generation=self._generation)

    def execute(self, handle: PreparedHandle, values: Sequence[Any]) -> ExecutionResult:
        """Run a prepared statement and fetch everything it returns."""
        try:
            result = self._conn.exec_driver_sql(handle.sql, tuple(values))
            if result.returns_rows:
                columns = tuple(result.keys())
                rows = [tuple(row) for row in result.fetchall()]
                return ExecutionResult(columns=columns, rows=rows, rowcount=len(rows))
            return ExecutionResult(columns=(), rows=[], rowcount=result.rowcount)
        except DBAPIError as e:
            raise ExecutionError.engine_error(
                handle.sql, str(e.orig), retryable=_is_database_locked_error(e)
            ) from e

    def execute_script(self, script: str) -> None:
        """Run several ``;``-separated statements with no parameters."""
        dbapi_conn = self._conn.connection.dbapi_connection
        try:
            cursor = dbapi_conn.cursor()  # type: ignore[union-attr]
            try:
                cursor.executescript(script)
            finally:
                cursor.close()
        except Exception as e:
            raise ExecutionError.engine_error(script, str(e)) from e

    def begin(self) -> None:
        """Open a BEGIN IMMEDIATE transaction, retrying while the file is locked.

        BEGIN IMMEDIATE acquires a RESERVED lock immediately,
        blocking other writers but allowing readers.
        """
        retries = self._config.max_retries
        for attempt in range(retries + 1):
            try:
                self._conn.exec_driver_sql("BEGIN IMMEDIATE")
                return
            except DBAPIError as e:
                self._conn.rollback()
                if _is_database_locked_error(e) and attempt < retries:
                    delay = min(
                        self._config.retry_base_delay_sec * (2**attempt),
                        self._config.retry_max_delay_sec,
                    )
                    logger.warning(
                        "sqlite_busy_retry",
                        attempt=attempt + 1,
                        max_retries=retries,
                        delay_sec=delay,
                    )
                    time.sleep(delay)
                    continue
                raise ExecutionError.engine_error(
                    "BEGIN IMMEDIATE", str(e.orig), retryable=_is_database_locked_error(e)
                ) from e

    def commit(self) -> None:
        try:
            self._conn.commit()
        except DBAPIError as e:
            raise ExecutionError.engine_error("COMMIT", str(e.orig)) from e

    def rollback(self) -> None:
        self._conn.rollback()

    def end_read(self) -> None:
        """Release the implicit transaction SQLAlchemy opened for a read."""
        self._conn.rollback()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.cache.close()
        self._conn.close()
        logger.debug("connection_closed", role=self.role)
