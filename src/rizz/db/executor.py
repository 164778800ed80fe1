"""Run compiled statements through a connection's prepared statement cache."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

import structlog

from rizz.db.engine import ExecutionResult, SqliteConnection

if TYPE_CHECKING:
    from rizz.query.compiler import CompiledStatement

logger = structlog.get_logger()


class Executor:
    """Bind, prepare (once per distinct SQL) and execute on one connection."""

    def __init__(self, connection: SqliteConnection) -> None:
        self._connection = connection

    def execute(
        self,
        compiled: CompiledStatement,
        values: Sequence[Any] | Mapping[str, Any] | None = None,
    ) -> ExecutionResult:
        bound = compiled.bind(values)
        handle = self._connection.cache.get_or_prepare(compiled.sql)
        result = self._connection.execute(handle, bound)
        logger.debug(
            "statement_executed",
            sql=compiled.sql,
            params=len(bound),
            rows=result.rowcount,
        )
        return result

    def write(
        self,
        compiled: CompiledStatement,
        values: Sequence[Any] | Mapping[str, Any] | None = None,
    ) -> ExecutionResult:
        """Execute inside its own BEGIN IMMEDIATE transaction.

        Returned rows are fetched before COMMIT. Any failure rolls back.
        """
        bound = compiled.bind(values)
        self._connection.begin()
        try:
            result = self.execute(compiled, bound)
            self._connection.commit()
        except BaseException:
            self._connection.rollback()
            raise
        return result

    def read(
        self,
        compiled: CompiledStatement,
        values: Sequence[Any] | Mapping[str, Any] | None = None,
    ) -> ExecutionResult:
        try:
            return self.execute(compiled, values)
        finally:
            self._connection.end_read()
