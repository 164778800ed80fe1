"""Async database handle.

Concurrency model:
- All writes (DML, DDL, migrations, batches) run on one dedicated writer
  thread, one job at a time, each inside its own BEGIN IMMEDIATE transaction.
  A job starts and finishes on the writer thread, so a cancelled caller never
  leaves a transaction half-open: the job still commits or rolls back.
- Reads run on a separate pool. Every reader thread lazily opens its own
  connection with its own prepared statement cache. With WAL, readers see
  the last committed state while a write is in progress.
- ``:memory:`` databases have a single connection, so reads queue behind
  writes on the writer thread.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

import structlog

from rizz.config.models import DatabaseConfig, RizzConfig
from rizz.core.errors import ExecutionError, MigrationError, QueryBuildError, RizzError
from rizz.core.logging import statement_scope
from rizz.db.cache import PreparedStatementCache
from rizz.db.engine import ExecutionResult, SqliteConnection, create_sqlite_engine
from rizz.db.executor import Executor
from rizz.db.rows import RowMapper
from rizz.migrate.runner import apply_migration
from rizz.query.ast import Delete, Insert, Update
from rizz.query.compiler import CompiledStatement

if TYPE_CHECKING:
    from pydantic import BaseModel
    from sqlalchemy import Engine

    from rizz.db.indexes import IndexManager
    from rizz.migrate.reconciler import MigrationPlan
    from rizz.query.ast import Statement
    from rizz.schema.model import LiveSchema, SchemaModel, TableRef

logger = structlog.get_logger()

T = TypeVar("T")

Values = Sequence[Any] | Mapping[str, Any] | None


def _compiled(statement: Statement | CompiledStatement) -> CompiledStatement:
    if isinstance(statement, CompiledStatement):
        return statement
    compile_ = getattr(statement, "compile", None)
    if compile_ is None:
        raise QueryBuildError.invalid(f"Not a statement: {statement!r}")
    return compile_()


def _run_job(fn: Callable[..., T], *args: Any) -> T:
    with statement_scope():
        return fn(*args)


@dataclass(frozen=True)
class PreparedQuery:
    """A statement compiled once and executed many times.

    Values left as ``param(name)`` slots are supplied per call, by name or
    positionally.
    """

    database: Database
    compiled: CompiledStatement

    @property
    def sql(self) -> str:
        return self.compiled.sql

    async def execute(self, values: Values = None) -> int:
        return await self.database.execute(self.compiled, values)

    async def fetch_all(
        self, values: Values = None, into: type[BaseModel] | None = None
    ) -> list[Any]:
        return await self.database.fetch_all(self.compiled, into=into, values=values)

    async def fetch_one(self, values: Values = None, into: type[BaseModel] | None = None) -> Any:
        return await self.database.fetch_one(self.compiled, into=into, values=values)


class Database:
    """Schema-checked async access to one SQLite database.

    Open with ``await Database.open(schema, config)``; the declared schema is
    migrated before the handle is returned.
    """

    def __init__(
        self,
        schema: SchemaModel,
        config: DatabaseConfig,
        engine: Engine,
        writer: SqliteConnection,
        write_executor: ThreadPoolExecutor,
    ) -> None:
        self.schema = schema
        self.config = config
        self._engine = engine
        self._writer = writer
        self._write_executor = write_executor
        self._read_executor: ThreadPoolExecutor | None = None
        if not config.is_memory and config.read_pool_size > 0:
            self._read_executor = ThreadPoolExecutor(
                max_workers=config.read_pool_size, thread_name_prefix="rizz-reader"
            )
        self._local = threading.local()
        self._readers: list[SqliteConnection] = []
        self._readers_lock = threading.Lock()
        self._rows = RowMapper(schema)
        self._closed = False
        self.last_migration: MigrationPlan | None = None

    @classmethod
    async def open(
        cls,
        schema: SchemaModel,
        config: DatabaseConfig | RizzConfig | None = None,
    ) -> Database:
        """Connect, migrate ``schema`` and return a ready handle.

        Raises:
            MigrationError: the live schema could not be reconciled. Nothing
                is left open.
            ExecutionError: the database could not be opened.
        """
        if config is None:
            config = DatabaseConfig()
        elif isinstance(config, RizzConfig):
            config = config.database

        loop = asyncio.get_running_loop()
        engine = create_sqlite_engine(config)
        write_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="rizz-writer")
        try:
            writer = await loop.run_in_executor(
                write_executor, lambda: SqliteConnection(engine, config, role="writer")
            )
        except BaseException:
            write_executor.shutdown(wait=False)
            engine.dispose()
            raise

        db = cls(schema, config, engine, writer, write_executor)
        try:
            await db.migrate()
        except BaseException:
            await db._abort()
            raise

        logger.info(
            "database_opened",
            path=config.path,
            tables=len(schema.tables),
            read_pool_size=0 if db._read_executor is None else config.read_pool_size,
        )
        return db

    # -------------------------------------------------------------------------
    # Schema
    # -------------------------------------------------------------------------

    def table(self, name: str) -> TableRef:
        return self.schema.table(name)

    @property
    def indexes(self) -> IndexManager:
        from rizz.db.indexes import IndexManager

        return IndexManager(self)

    async def migrate(self) -> MigrationPlan:
        """Reconcile the declared schema against the live catalog, in one transaction."""
        try:
            plan = await self._submit_write(self._migrate_sync)
            self.last_migration = plan
            return plan
        except MigrationError:
            raise
        except RizzError as e:
            raise MigrationError.ddl_failed("migration", e.message) from e

    async def catalog(self) -> LiveSchema:
        """Snapshot the live schema as the writer sees it."""
        return await self._submit_write(self._catalog_sync)

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    async def execute(self, statement: Statement | CompiledStatement, values: Values = None) -> int:
        """Run a statement. Returns affected rows, or returned rows for queries."""
        result = await self._run(_compiled(statement), values)
        return result.rowcount

    async def fetch_all(
        self,
        statement: Statement | CompiledStatement,
        into: type[BaseModel] | None = None,
        values: Values = None,
    ) -> list[Any]:
        """Run a statement and map every returned row.

        Without ``into`` rows come back as column -> value dicts; a column
        name shared by joined tables is keyed ``"table.column"``.
        """
        compiled = _compiled(statement)
        result = await self._run(compiled, values)
        return self._rows.map_rows(
            result.columns, result.rows, into, sources=compiled.result_columns
        )

    async def fetch_one(
        self,
        statement: Statement | CompiledStatement,
        into: type[BaseModel] | None = None,
        values: Values = None,
    ) -> Any:
        """First mapped row, or None."""
        rows = await self.fetch_all(statement, into=into, values=values)
        return rows[0] if rows else None

    async def returning(
        self,
        statement: Statement | CompiledStatement,
        into: type[BaseModel] | None = None,
        values: Values = None,
    ) -> Any:
        """Run a write with ``RETURNING *`` and map the first affected row.

        Raises:
            ExecutionError: no row was affected.
        """
        if isinstance(statement, Insert | Update | Delete) and not statement.returns:
            statement = statement.returning()
        compiled = _compiled(statement)
        rows = await self.fetch_all(compiled, into=into, values=values)
        if not rows:
            raise ExecutionError.no_rows(compiled.sql)
        return rows[0]

    async def prepare(self, statement: Statement | CompiledStatement) -> PreparedQuery:
        """Compile once and warm the statement cache of the connection that will run it."""
        compiled = _compiled(statement)
        if compiled.is_write or self._read_executor is None:
            await self._submit_write(self._writer.cache.get_or_prepare, compiled.sql)
        return PreparedQuery(self, compiled)

    async def execute_batch(self, script: str) -> None:
        """Run raw ``;``-separated SQL on the writer, outside the statement cache.

        Every cache is invalidated afterwards since the script may contain DDL.
        """
        await self._submit_write(self._batch_sync, script)

    @property
    def statement_cache(self) -> PreparedStatementCache:
        """The writer connection's prepared statement cache."""
        return self._writer.cache

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Finish queued work, then close every connection. Idempotent."""
        if self._closed:
            return
        self._closed = True
        await self._abort()
        logger.info("database_closed", path=self.config.path)

    async def __aenter__(self) -> Database:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _abort(self) -> None:
        self._closed = True
        loop = asyncio.get_running_loop()
        if self._read_executor is not None:
            read_executor = self._read_executor
            self._read_executor = None
            await loop.run_in_executor(None, read_executor.shutdown, True)
        with self._readers_lock:
            readers, self._readers = self._readers, []
        for reader in readers:
            reader.close()
        # Queued behind any in-flight write job
        future = self._write_executor.submit(self._writer.close)
        self._write_executor.shutdown(wait=False)
        await asyncio.wrap_future(future)
        self._engine.dispose()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise ExecutionError.closed()

    async def _run(self, compiled: CompiledStatement, values: Values) -> ExecutionResult:
        # Bind up front so mismatches fail before touching a connection
        bound = compiled.bind(values)
        if compiled.is_write:
            return await self._submit_write(self._write_sync, compiled, bound)
        if self._read_executor is None:
            return await self._submit_write(self._read_on_writer, compiled, bound)
        return await self._submit_read(self._read_sync, compiled, bound)

    async def _submit_write(self, fn: Callable[..., T], *args: Any) -> T:
        self._ensure_open()
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._write_executor, _run_job, fn, *args)

    async def _submit_read(self, fn: Callable[..., T], *args: Any) -> T:
        self._ensure_open()
        assert self._read_executor is not None
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._read_executor, _run_job, fn, *args)

    def _write_sync(self, compiled: CompiledStatement, bound: tuple[Any, ...]) -> ExecutionResult:
        result = Executor(self._writer).write(compiled, bound)
        if compiled.is_ddl:
            self._invalidate_caches()
        return result

    def _read_on_writer(
        self, compiled: CompiledStatement, bound: tuple[Any, ...]
    ) -> ExecutionResult:
        return Executor(self._writer).read(compiled, bound)

    def _read_sync(self, compiled: CompiledStatement, bound: tuple[Any, ...]) -> ExecutionResult:
        return Executor(self._reader()).read(compiled, bound)

    def _reader(self) -> SqliteConnection:
        reader: SqliteConnection | None = getattr(self._local, "connection", None)
        if reader is None or reader.closed:
            reader = SqliteConnection(self._engine, self.config, role="reader")
            self._local.connection = reader
            with self._readers_lock:
                self._readers.append(reader)
        return reader

    def _migrate_sync(self) -> MigrationPlan:
        try:
            return apply_migration(self._writer, self.schema, read_only=self.config.read_only)
        finally:
            self._invalidate_caches()

    def _catalog_sync(self) -> LiveSchema:
        try:
            return self._writer.read_catalog()
        finally:
            self._writer.end_read()

    def _batch_sync(self, script: str) -> None:
        try:
            self._writer.execute_script(script)
        finally:
            self._writer.end_read()
            self._invalidate_caches()
        logger.debug("batch_executed", length=len(script))

    def _invalidate_caches(self) -> None:
        self._writer.cache.invalidate()
        with self._readers_lock:
            readers = list(self._readers)
        for reader in readers:
            reader.cache.invalidate()
