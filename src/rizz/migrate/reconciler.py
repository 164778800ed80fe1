"""Plan additive DDL from a declared schema and the live catalog.

Reconciliation only ever adds: missing tables, missing columns on existing
tables and missing indexes. Extra live tables, columns and indexes are left
alone, and nothing is dropped, renamed or retyped.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from rizz.core.errors import MigrationError
from rizz.query.ast import AddColumn, CreateIndex, CreateTable, DDLOperation
from rizz.schema.model import (
    ColumnDescription,
    LiveSchema,
    SchemaModel,
    order_by_foreign_keys,
)


@dataclass(frozen=True)
class MigrationPlan:
    """Ordered DDL needed to bring a live schema up to a declared one."""

    operations: tuple[DDLOperation, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.operations

    def statements(self) -> list[str]:
        return [op.compile().sql for op in self.operations]

    def summary(self) -> dict[str, int]:
        """Operation counts by kind, for logging."""
        counts = {"create_table": 0, "add_column": 0, "create_index": 0}
        for op in self.operations:
            match op:
                case CreateTable():
                    counts["create_table"] += 1
                case AddColumn():
                    counts["add_column"] += 1
                case CreateIndex():
                    counts["create_index"] += 1
        return counts

    def __iter__(self) -> Iterator[DDLOperation]:
        return iter(self.operations)

    def __len__(self) -> int:
        return len(self.operations)


def _check_addable(table: str, column: ColumnDescription) -> None:
    # SQLite's ALTER TABLE ADD COLUMN cannot backfill these
    if column.primary_key:
        raise MigrationError.unsupported_add_column(table, column.name, "primary key column")
    if column.unique:
        raise MigrationError.unsupported_add_column(table, column.name, "UNIQUE column")
    if column.not_null and column.default is None:
        raise MigrationError.not_null_without_default(table, column.name)


def reconcile(declared: SchemaModel, live: LiveSchema) -> list[DDLOperation]:
    """Compute the DDL that makes ``live`` a superset of ``declared``.

    Table creations come first, ordered so every table follows the tables it
    references, then column additions, then index creations. The result is a
    function of the inputs only; applying it and reconciling again yields an
    empty list.

    Raises:
        MigrationError: a missing table sits on a foreign key cycle, or a
            missing column cannot be added to an existing table.
    """
    missing = [t for t in declared.tables.values() if live.find_table(t.name) is None]
    ordered, cycle = order_by_foreign_keys(missing)
    if cycle:
        raise MigrationError.foreign_key_cycle(cycle)

    operations: list[DDLOperation] = [CreateTable(table) for table in ordered]

    for table in declared.tables.values():
        existing = live.find_table(table.name)
        if existing is None:
            continue
        for column in table.columns:
            if existing.column(column.name) is not None:
                continue
            _check_addable(table.name, column)
            operations.append(AddColumn(table=existing.name, column=column))

    for index in declared.indexes.values():
        if not live.has_index(index.name):
            operations.append(CreateIndex(index))

    return operations


def plan_migration(declared: SchemaModel, live: LiveSchema) -> MigrationPlan:
    return MigrationPlan(tuple(reconcile(declared, live)))
