"""Immutable statement ASTs and the fluent builder API.

Every builder method returns a new node and leaves its receiver untouched,
so one base statement can be shared and extended in different directions:

    base = select().from_(posts)
    recent = base.where(gt(posts.c.id, 100))
    first = base.where(eq(posts.c.id, 1))

Tables and columns come from SchemaModel.table(); unknown names fail there,
before anything reaches the engine.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from rizz.core.errors import QueryBuildError
from rizz.query.predicates import (
    And,
    Comparison,
    Literal,
    Or,
    Param,
    Predicate,
    and_,
    columns_of,
)
from rizz.schema.model import (
    ColumnDescription,
    ColumnRef,
    IndexDescription,
    TableDescription,
    TableRef,
)

if TYPE_CHECKING:
    from rizz.query.compiler import CompiledStatement


class _Statement:
    """Compilation entry points shared by every node."""

    def compile(self) -> CompiledStatement:
        # Import here to avoid circular dependency
        from rizz.query.compiler import compile_statement

        return compile_statement(self)  # type: ignore[arg-type]

    @property
    def sql(self) -> str:
        return self.compile().sql


def _check_predicate(predicate: Any) -> Predicate:
    if not isinstance(predicate, Comparison | And | Or):
        raise QueryBuildError.invalid(f"Not a predicate: {predicate!r}")
    return predicate


def _check_table(table: Any) -> TableRef:
    if not isinstance(table, TableRef):
        raise QueryBuildError.invalid(
            f"Expected a table from SchemaModel.table(), got {table!r}"
        )
    return table


def _assignments(
    table: TableRef, values: Mapping[str | ColumnRef, Any] | BaseModel, *, exclude_unset: bool
) -> tuple[tuple[ColumnRef, Param | Literal], ...]:
    """Resolve a column -> value mapping against ``table``.

    The result follows the table's declared column order, whatever order the
    caller used, so equal assignments always compile to equal SQL.
    """
    if isinstance(values, BaseModel):
        values = values.model_dump(exclude_unset=exclude_unset)
    if not isinstance(values, Mapping):
        raise QueryBuildError.invalid(f"Expected a mapping or a model, got {values!r}")

    resolved: dict[str, Param | Literal] = {}
    for key, value in values.items():
        if isinstance(key, ColumnRef):
            if key.table != table.name:
                raise QueryBuildError.table_not_in_scope(key.table)
            column = key
        else:
            column = table.column(key)
        operand = value if isinstance(value, Param | Literal) else Param(value)
        resolved[column.name] = operand

    if not resolved:
        raise QueryBuildError.invalid(f"No values given for table '{table.name}'")
    return tuple((col, resolved[col.name]) for col in table.columns if col.name in resolved)


def _check_scope(tables: set[str], columns: Iterator[ColumnRef]) -> None:
    for column in columns:
        if column.table not in tables:
            raise QueryBuildError.table_not_in_scope(column.table)


def _where(current: Predicate | None, predicate: Predicate) -> Predicate:
    predicate = _check_predicate(predicate)
    return predicate if current is None else and_(current, predicate)


# =============================================================================
# Query statements
# =============================================================================


@dataclass(frozen=True)
class Count:
    """``COUNT(column)`` or ``COUNT(*)``, named ``alias`` in the result."""

    column: ColumnRef | None = None
    alias: str = "count"


SelectItem = ColumnRef | Count


@dataclass(frozen=True)
class Join:
    table: TableRef
    on: Predicate


@dataclass(frozen=True)
class OrderBy:
    column: ColumnRef
    descending: bool = False


@dataclass(frozen=True)
class Select(_Statement):
    items: tuple[SelectItem, ...] = ()
    table: TableRef | None = None
    joins: tuple[Join, ...] = ()
    predicate: Predicate | None = None
    ordering: tuple[OrderBy, ...] = ()
    row_limit: int | None = None

    @property
    def tables(self) -> list[TableRef]:
        """Tables in scope, FROM first then joins in order."""
        if self.table is None:
            return [join.table for join in self.joins]
        return [self.table, *(join.table for join in self.joins)]

    def from_(self, table: TableRef) -> Select:
        return replace(self, table=_check_table(table))

    def inner_join(self, table: TableRef, on: Predicate) -> Select:
        table = _check_table(table)
        if table.name in {t.name for t in self.tables}:
            raise QueryBuildError.invalid(f"Table '{table.name}' is already part of the query")
        return replace(self, joins=(*self.joins, Join(table, _check_predicate(on))))

    def where(self, predicate: Predicate) -> Select:
        return replace(self, predicate=_where(self.predicate, predicate))

    def order_by(self, column: ColumnRef, descending: bool = False) -> Select:
        if not isinstance(column, ColumnRef):
            raise QueryBuildError.invalid(f"ORDER BY needs a table column, got {column!r}")
        return replace(self, ordering=(*self.ordering, OrderBy(column, descending)))

    def limit(self, count: int) -> Select:
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise QueryBuildError.invalid(f"LIMIT must be a non-negative integer, got {count!r}")
        return replace(self, row_limit=count)

    def validate(self) -> None:
        if self.table is None:
            raise QueryBuildError.incomplete("SELECT", "a FROM table")
        scope = {t.name for t in self.tables}
        _check_scope(scope, (item for item in self.items if isinstance(item, ColumnRef)))
        _check_scope(
            scope,
            (item.column for item in self.items if isinstance(item, Count) and item.column),
        )
        for join in self.joins:
            _check_scope(scope, columns_of(join.on))
        if self.predicate is not None:
            _check_scope(scope, columns_of(self.predicate))
        _check_scope(scope, (order.column for order in self.ordering))


@dataclass(frozen=True)
class Insert(_Statement):
    table: TableRef
    assignments: tuple[tuple[ColumnRef, Param | Literal], ...] = ()
    returns: bool = False

    def values(self, values: Mapping[str | ColumnRef, Any] | BaseModel) -> Insert:
        return replace(
            self, assignments=_assignments(self.table, values, exclude_unset=False)
        )

    def returning(self) -> Insert:
        return replace(self, returns=True)

    def validate(self) -> None:
        if not self.assignments:
            raise QueryBuildError.incomplete("INSERT", "values")


@dataclass(frozen=True)
class Update(_Statement):
    table: TableRef
    assignments: tuple[tuple[ColumnRef, Param | Literal], ...] = ()
    predicate: Predicate | None = None
    returns: bool = False

    def set(self, values: Mapping[str | ColumnRef, Any] | BaseModel) -> Update:
        return replace(self, assignments=_assignments(self.table, values, exclude_unset=True))

    def where(self, predicate: Predicate) -> Update:
        predicate = _check_predicate(predicate)
        _check_scope({self.table.name}, columns_of(predicate))
        return replace(self, predicate=_where(self.predicate, predicate))

    def returning(self) -> Update:
        return replace(self, returns=True)

    def validate(self) -> None:
        if not self.assignments:
            raise QueryBuildError.incomplete("UPDATE", "SET values")


@dataclass(frozen=True)
class Delete(_Statement):
    table: TableRef
    predicate: Predicate | None = None
    returns: bool = False

    def where(self, predicate: Predicate) -> Delete:
        predicate = _check_predicate(predicate)
        _check_scope({self.table.name}, columns_of(predicate))
        return replace(self, predicate=_where(self.predicate, predicate))

    def returning(self) -> Delete:
        return replace(self, returns=True)

    def validate(self) -> None:
        return None


# =============================================================================
# DDL statements
# =============================================================================


@dataclass(frozen=True)
class CreateTable(_Statement):
    table: TableDescription


@dataclass(frozen=True)
class AddColumn(_Statement):
    table: str
    column: ColumnDescription


@dataclass(frozen=True)
class CreateIndex(_Statement):
    index: IndexDescription


@dataclass(frozen=True)
class DropIndex(_Statement):
    index: IndexDescription


Statement = Select | Insert | Update | Delete | CreateTable | AddColumn | CreateIndex | DropIndex
DDLOperation = CreateTable | AddColumn | CreateIndex | DropIndex


# =============================================================================
# Builder entry points
# =============================================================================


def select(*items: SelectItem | TableRef) -> Select:
    """Start a SELECT. No items selects every column of every table in scope."""
    expanded: list[SelectItem] = []
    for item in items:
        if isinstance(item, TableRef):
            expanded.extend(item.columns)
        elif isinstance(item, ColumnRef | Count):
            expanded.append(item)
        else:
            raise QueryBuildError.invalid(f"Cannot select {item!r}")
    return Select(items=tuple(expanded))


def count(column: ColumnRef | None = None, alias: str = "count") -> Count:
    if column is not None and not isinstance(column, ColumnRef):
        raise QueryBuildError.invalid(f"COUNT needs a table column, got {column!r}")
    return Count(column=column, alias=alias)


def insert_into(table: TableRef) -> Insert:
    return Insert(table=_check_table(table))


def update(table: TableRef) -> Update:
    return Update(table=_check_table(table))


def delete_from(table: TableRef) -> Delete:
    return Delete(table=_check_table(table))


def create_table(table: TableDescription) -> CreateTable:
    return CreateTable(table=table)


def add_column(table: str, column: ColumnDescription) -> AddColumn:
    return AddColumn(table=table, column=column)


def create_index(index: IndexDescription) -> CreateIndex:
    return CreateIndex(index=index)


def drop_index(index: IndexDescription) -> DropIndex:
    return DropIndex(index=index)
