"""Declared schema model, live catalog reader and metadata adapter."""

from rizz.schema.catalog import CatalogReader, kind_from_sqlalchemy
from rizz.schema.model import (
    ColumnDescription,
    ColumnKind,
    ColumnRef,
    ForeignKey,
    IndexDescription,
    LiveSchema,
    SchemaModel,
    TableDescription,
    TableRef,
    order_by_foreign_keys,
)
from rizz.schema.reflect import (
    describe_table,
    schema_from_metadata,
    schema_from_models,
    schema_from_sqlmodel,
)

__all__ = [
    "CatalogReader",
    "ColumnDescription",
    "ColumnKind",
    "ColumnRef",
    "ForeignKey",
    "IndexDescription",
    "LiveSchema",
    "SchemaModel",
    "TableDescription",
    "TableRef",
    "kind_from_sqlalchemy",
    "order_by_foreign_keys",
    "schema_from_metadata",
    "schema_from_models",
    "schema_from_sqlmodel",
    "describe_table",
]
