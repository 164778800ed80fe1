"""Build a SchemaModel from SQLAlchemy table metadata.

SQLModel ``table=True`` classes carry a SQLAlchemy ``Table`` in
``__table__``; plain SQLAlchemy declarative models do too. This adapter
turns that metadata into the normalized SchemaModel and nothing more: the
core never looks at the authoring classes again.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from sqlalchemy import Column, DefaultClause, Table, UniqueConstraint
from sqlmodel import SQLModel

from rizz.core.errors import SchemaError
from rizz.schema.catalog import kind_from_sqlalchemy
from rizz.schema.model import (
    ColumnDescription,
    ForeignKey,
    IndexDescription,
    SchemaModel,
    TableDescription,
)

if TYPE_CHECKING:
    from sqlalchemy import MetaData


def _literal_default(column: Column[Any]) -> str | None:
    default = column.server_default
    if not isinstance(default, DefaultClause):
        return None
    arg = default.arg
    if isinstance(arg, str):
        return "'" + arg.replace("'", "''") + "'"
    return str(arg)


def _column(table: Table, column: Column[Any], unique_columns: set[str]) -> ColumnDescription:
    fks = list(column.foreign_keys)
    if len(fks) > 1:
        raise SchemaError.unsupported(
            f"{table.name}.{column.name}", "a column may reference at most one table"
        )
    references = None
    if fks:
        target_table, _, target_column = fks[0].target_fullname.rpartition(".")
        references = ForeignKey(table=target_table, column=target_column)
    return ColumnDescription(
        name=column.name,
        kind=kind_from_sqlalchemy(column.type),
        not_null=not column.nullable and not column.primary_key,
        primary_key=column.primary_key,
        references=references,
        unique=bool(column.unique) or column.name in unique_columns,
        default=_literal_default(column),
    )


def describe_table(table: Table) -> tuple[TableDescription, list[IndexDescription]]:
    """Describe one SQLAlchemy table and its indexes."""
    unique_columns = {
        constraint.columns.keys()[0]
        for constraint in table.constraints
        if isinstance(constraint, UniqueConstraint) and len(constraint.columns) == 1
    }
    description = TableDescription(
        name=table.name,
        columns=tuple(_column(table, col, unique_columns) for col in table.columns),
    )
    indexes = [
        IndexDescription(
            name=str(index.name),
            table=table.name,
            columns=tuple(col.name for col in index.columns),
            unique=bool(index.unique),
        )
        for index in sorted(table.indexes, key=lambda i: str(i.name))
    ]
    return description, indexes


def schema_from_tables(tables: Iterable[Table]) -> SchemaModel:
    descriptions: list[TableDescription] = []
    indexes: list[IndexDescription] = []
    for table in tables:
        description, table_indexes = describe_table(table)
        descriptions.append(description)
        indexes.extend(table_indexes)
    return SchemaModel.build(descriptions, indexes)


def schema_from_metadata(metadata: MetaData) -> SchemaModel:
    """SchemaModel for every table in ``metadata``, in dependency order."""
    return schema_from_tables(metadata.sorted_tables)


def schema_from_models(*models: type[Any]) -> SchemaModel:
    """SchemaModel for the given SQLModel/SQLAlchemy table classes."""
    tables = []
    for model in models:
        table = getattr(model, "__table__", None)
        if not isinstance(table, Table):
            raise SchemaError.unsupported(model.__name__, "not a table model")
        tables.append(table)
    return schema_from_tables(tables)


def schema_from_sqlmodel() -> SchemaModel:
    """SchemaModel for every ``table=True`` SQLModel class imported so far."""
    return schema_from_metadata(SQLModel.metadata)
