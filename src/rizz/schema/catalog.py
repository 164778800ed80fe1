"""Read the live schema from SQLite's catalog through the SQLAlchemy inspector."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import inspect
from sqlalchemy import types as sqltypes

from rizz.schema.model import (
    ColumnDescription,
    ColumnKind,
    ForeignKey,
    IndexDescription,
    LiveSchema,
    TableDescription,
)

if TYPE_CHECKING:
    from sqlalchemy import Connection

logger = structlog.get_logger()


def kind_from_sqlalchemy(type_: sqltypes.TypeEngine[Any]) -> ColumnKind:
    """Map a SQLAlchemy column type onto a storage kind."""
    if isinstance(type_, sqltypes.Integer | sqltypes.Boolean):
        return ColumnKind.INTEGER
    if isinstance(type_, sqltypes.Float | sqltypes.Numeric):
        return ColumnKind.REAL
    if isinstance(
        type_,
        sqltypes.String | sqltypes.Enum | sqltypes.Date | sqltypes.DateTime | sqltypes.Time,
    ):
        return ColumnKind.TEXT
    if isinstance(type_, sqltypes.LargeBinary | sqltypes.NullType):
        return ColumnKind.BLOB
    # Fall back to the declared type text and SQLite's affinity rules
    try:
        declared = type_.compile()
    except Exception:
        declared = ""
    return ColumnKind.from_declared_type(declared)


AUTO_INDEX_PREFIX = "sqlite_autoindex_"


def _is_auto_index(name: str | None) -> bool:
    return name is not None and name.startswith(AUTO_INDEX_PREFIX)


class CatalogReader:
    """Snapshot the live schema of one connection.

    A new inspector is created per read; SQLAlchemy inspectors cache results
    and would otherwise return the pre-migration catalog.
    """

    def __init__(self, connection: Connection) -> None:
        self._connection = connection

    def read(self) -> LiveSchema:
        inspector = inspect(self._connection)
        tables: list[TableDescription] = []
        indexes: list[IndexDescription] = []

        for table_name in inspector.get_table_names():
            # Inline column UNIQUE only shows up as a sqlite_autoindex_* entry
            table_indexes = inspector.get_indexes(table_name, include_auto_indexes=True)
            unique_columns = {
                uc["column_names"][0]
                for uc in inspector.get_unique_constraints(table_name)
                if len(uc["column_names"]) == 1
            }
            unique_columns.update(
                index["column_names"][0]
                for index in table_indexes
                if _is_auto_index(index["name"])
                and index["unique"]
                and len(index["column_names"]) == 1
                and index["column_names"][0] is not None
            )
            references = {
                fk["constrained_columns"][0]: ForeignKey(
                    table=fk["referred_table"], column=fk["referred_columns"][0]
                )
                for fk in inspector.get_foreign_keys(table_name)
                if len(fk["constrained_columns"]) == 1 and fk["referred_columns"]
            }
            columns = [
                ColumnDescription(
                    name=col["name"],
                    kind=kind_from_sqlalchemy(col["type"]),
                    not_null=not col["nullable"],
                    primary_key=bool(col.get("primary_key")),
                    references=references.get(col["name"]),
                    unique=col["name"] in unique_columns and not col.get("primary_key"),
                    default=col.get("default"),
                )
                for col in inspector.get_columns(table_name)
            ]
            tables.append(TableDescription(name=table_name, columns=tuple(columns)))

            for index in table_indexes:
                column_names = [c for c in index["column_names"] if c is not None]
                if index["name"] is None or _is_auto_index(index["name"]) or not column_names:
                    continue
                indexes.append(
                    IndexDescription(
                        name=index["name"],
                        table=table_name,
                        columns=tuple(column_names),
                        unique=bool(index["unique"]),
                    )
                )

        logger.debug("catalog_read", tables=len(tables), indexes=len(indexes))
        return LiveSchema.of(tables, indexes)
