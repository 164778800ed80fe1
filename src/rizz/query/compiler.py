"""Render statement ASTs to parameterized SQLite text.

Rendering is deterministic: the same logical statement always produces the
same text, which is what the prepared statement cache keys on. Identifiers
are always double-quoted, keywords are upper case, and ``?`` placeholders
are emitted in left-to-right order, which is also the binding order.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from rizz.core.errors import ExecutionError, QueryBuildError
from rizz.query.ast import (
    AddColumn,
    Count,
    CreateIndex,
    CreateTable,
    Delete,
    DropIndex,
    Insert,
    Select,
    Statement,
    Update,
)
from rizz.query.predicates import UNSET, And, Comparison, Literal, Or, Param, Predicate
from rizz.schema.model import ColumnDescription, ColumnRef, TableRef


@dataclass(frozen=True)
class BindSlot:
    """One ``?`` placeholder, in emission order."""

    position: int
    value: Any = UNSET
    name: str | None = None

    @property
    def is_bound(self) -> bool:
        return self.value is not UNSET


@dataclass(frozen=True)
class CompiledStatement:
    """Rendered SQL plus everything needed to bind and map it."""

    sql: str
    bindings: tuple[BindSlot, ...] = ()
    result_columns: tuple[tuple[str, str], ...] = ()
    returns_rows: bool = False
    is_write: bool = False
    is_ddl: bool = False

    @property
    def placeholder_count(self) -> int:
        return len(self.bindings)

    def bind(self, values: Sequence[Any] | Mapping[str, Any] | None = None) -> tuple[Any, ...]:
        """Resolve the positional values for execution.

        Args:
            values: None to use the values captured while building; a sequence
                replacing every slot positionally; or a mapping filling the
                slots created with ``param(name)``.

        Raises:
            ExecutionError: on a count mismatch or a slot left without value.
        """
        if values is None:
            resolved = []
            for slot in self.bindings:
                if not slot.is_bound:
                    raise ExecutionError.unbound_parameter(self.sql, slot.name or str(slot.position))
                resolved.append(slot.value)
            return tuple(resolved)

        if isinstance(values, Mapping):
            resolved = []
            for slot in self.bindings:
                if slot.name is not None and slot.name in values:
                    resolved.append(values[slot.name])
                elif slot.is_bound:
                    resolved.append(slot.value)
                else:
                    raise ExecutionError.unbound_parameter(self.sql, slot.name or str(slot.position))
            return tuple(resolved)

        if isinstance(values, str | bytes) or len(values) != len(self.bindings):
            got = 1 if isinstance(values, str | bytes) else len(values)
            raise ExecutionError.binding_mismatch(self.sql, len(self.bindings), got)
        return tuple(values)


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def render_literal(value: Any) -> str:
    """Inline a Python value as a SQLite literal."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise QueryBuildError.invalid(f"Cannot inline non-finite float {value!r}")
        return repr(value)
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    if isinstance(value, bytes):
        return "X'" + value.hex() + "'"
    raise QueryBuildError.invalid(f"Cannot inline value of type {type(value).__name__}")


def column_definition(column: ColumnDescription) -> str:
    parts = [quote_identifier(column.name), column.kind.value]
    if column.primary_key:
        parts.append("PRIMARY KEY")
    if column.unique:
        parts.append("UNIQUE")
    if column.not_null:
        parts.append("NOT NULL")
    if column.default is not None:
        parts.append(f"DEFAULT {column.default}")
    if column.references is not None:
        ref = column.references
        parts.append(
            f"REFERENCES {quote_identifier(ref.table)}({quote_identifier(ref.column)})"
        )
    return " ".join(parts)


class SqlCompiler:
    """Single-use compiler. Collects binding slots while rendering."""

    def __init__(self) -> None:
        self._slots: list[BindSlot] = []

    def compile(self, statement: Statement) -> CompiledStatement:
        match statement:
            case Select():
                return self._select(statement)
            case Insert():
                return self._insert(statement)
            case Update():
                return self._update(statement)
            case Delete():
                return self._delete(statement)
            case CreateTable():
                return self._ddl(self._create_table(statement))
            case AddColumn():
                return self._ddl(
                    f"ALTER TABLE {quote_identifier(statement.table)} "
                    f"ADD COLUMN {column_definition(statement.column)}"
                )
            case CreateIndex():
                index = statement.index
                unique = "UNIQUE " if index.unique else ""
                columns = ", ".join(quote_identifier(c) for c in index.columns)
                return self._ddl(
                    f"CREATE {unique}INDEX IF NOT EXISTS {quote_identifier(index.name)} "
                    f"ON {quote_identifier(index.table)} ({columns})"
                )
            case DropIndex():
                return self._ddl(f"DROP INDEX IF EXISTS {quote_identifier(statement.index.name)}")
            case _:
                raise QueryBuildError.invalid(f"Cannot compile {statement!r}")

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    def _select(self, statement: Select) -> CompiledStatement:
        statement.validate()
        assert statement.table is not None

        items = list(statement.items)
        if not items:
            items = [col for table in statement.tables for col in table.columns]

        rendered: list[str] = []
        result_columns: list[tuple[str, str]] = []
        for item in items:
            if isinstance(item, Count):
                target = "*" if item.column is None else self._column(item.column)
                rendered.append(f"COUNT({target}) AS {quote_identifier(item.alias)}")
                result_columns.append(("", item.alias))
            else:
                rendered.append(self._column(item))
                result_columns.append((item.table, item.name))

        sql = f"SELECT {', '.join(rendered)} FROM {quote_identifier(statement.table.name)}"
        for join in statement.joins:
            sql += (
                f" INNER JOIN {quote_identifier(join.table.name)} "
                f"ON {self._predicate(join.on)}"
            )
        if statement.predicate is not None:
            sql += f" WHERE {self._predicate(statement.predicate)}"
        if statement.ordering:
            orders = ", ".join(
                self._column(o.column) + (" DESC" if o.descending else " ASC")
                for o in statement.ordering
            )
            sql += f" ORDER BY {orders}"
        if statement.row_limit is not None:
            sql += f" LIMIT {self._bind(Param(statement.row_limit))}"

        return self._finish(sql, tuple(result_columns), returns_rows=True, is_write=False)

    def _insert(self, statement: Insert) -> CompiledStatement:
        statement.validate()
        columns = ", ".join(quote_identifier(col.name) for col, _ in statement.assignments)
        values = ", ".join(self._operand(value) for _, value in statement.assignments)
        sql = (
            f"INSERT INTO {quote_identifier(statement.table.name)} ({columns}) VALUES ({values})"
        )
        return self._write(sql, statement.table, statement.returns)

    def _update(self, statement: Update) -> CompiledStatement:
        statement.validate()
        assignments = ", ".join(
            f"{quote_identifier(col.name)} = {self._operand(value)}"
            for col, value in statement.assignments
        )
        sql = f"UPDATE {quote_identifier(statement.table.name)} SET {assignments}"
        if statement.predicate is not None:
            sql += f" WHERE {self._predicate(statement.predicate)}"
        return self._write(sql, statement.table, statement.returns)

    def _delete(self, statement: Delete) -> CompiledStatement:
        statement.validate()
        sql = f"DELETE FROM {quote_identifier(statement.table.name)}"
        if statement.predicate is not None:
            sql += f" WHERE {self._predicate(statement.predicate)}"
        return self._write(sql, statement.table, statement.returns)

    def _create_table(self, statement: CreateTable) -> str:
        columns = ", ".join(column_definition(col) for col in statement.table.columns)
        return f"CREATE TABLE {quote_identifier(statement.table.name)} ({columns})"

    # -------------------------------------------------------------------------
    # Fragments
    # -------------------------------------------------------------------------

    def _write(self, sql: str, table: TableRef, returns: bool) -> CompiledStatement:
        result_columns: tuple[tuple[str, str], ...] = ()
        if returns:
            sql += " RETURNING *"
            result_columns = tuple((table.name, name) for name in table.description.column_names)
        return self._finish(sql, result_columns, returns_rows=returns, is_write=True)

    def _ddl(self, sql: str) -> CompiledStatement:
        return self._finish(sql, (), returns_rows=False, is_write=True, is_ddl=True)

    def _finish(
        self,
        sql: str,
        result_columns: tuple[tuple[str, str], ...],
        *,
        returns_rows: bool,
        is_write: bool,
        is_ddl: bool = False,
    ) -> CompiledStatement:
        return CompiledStatement(
            sql=sql,
            bindings=tuple(self._slots),
            result_columns=result_columns,
            returns_rows=returns_rows,
            is_write=is_write,
            is_ddl=is_ddl,
        )

    def _column(self, column: ColumnRef) -> str:
        return f"{quote_identifier(column.table)}.{quote_identifier(column.name)}"

    def _bind(self, param: Param) -> str:
        self._slots.append(BindSlot(position=len(self._slots), value=param.value, name=param.name))
        return "?"

    def _operand(self, operand: Param | Literal | ColumnRef) -> str:
        if isinstance(operand, ColumnRef):
            return self._column(operand)
        if isinstance(operand, Literal):
            return render_literal(operand.value)
        return self._bind(operand)

    def _predicate(self, predicate: Predicate, parent: type[And] | type[Or] | None = None) -> str:
        if isinstance(predicate, Comparison):
            return (
                f"{self._column(predicate.column)} {predicate.operator} "
                f"{self._operand(predicate.operand)}"
            )

        kind = type(predicate)
        keyword = " AND " if kind is And else " OR "
        parts = [self._predicate(item, kind) for item in _flatten(predicate)]
        rendered = keyword.join(parts)
        # AND binds tighter than OR: only an OR under an AND needs parentheses
        if kind is Or and parent is And:
            return f"({rendered})"
        return rendered


def _flatten(predicate: And | Or) -> list[Predicate]:
    items: list[Predicate] = []
    for item in predicate.items:
        if type(item) is type(predicate):
            items.extend(_flatten(item))  # type: ignore[arg-type]
        else:
            items.append(item)
    return items


def compile_statement(statement: Statement) -> CompiledStatement:
    return SqlCompiler().compile(statement)
