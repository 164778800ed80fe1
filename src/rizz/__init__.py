"""rizz - schema-checked async access to SQLite."""

from rizz.config import DatabaseConfig, RizzConfig, load_config
from rizz.core.errors import (
    ConfigError,
    ExecutionError,
    MigrationError,
    QueryBuildError,
    RizzError,
    SchemaError,
    ShapeMismatch,
)
from rizz.db import Database, PreparedQuery
from rizz.query import (
    and_,
    count,
    delete_from,
    eq,
    ge,
    gt,
    insert_into,
    is_not_null,
    is_null,
    le,
    like,
    lit,
    lt,
    ne,
    or_,
    param,
    select,
    update,
)
from rizz.schema import (
    ColumnDescription,
    ColumnKind,
    ForeignKey,
    IndexDescription,
    SchemaModel,
    TableDescription,
    schema_from_metadata,
    schema_from_models,
)

__version__ = "0.1.0"


async def connect(
    schema: SchemaModel, path: str = ":memory:", **options: object
) -> Database:
    """Open ``path`` with ``schema`` migrated, using config defaults for the rest.

    ``options`` override DatabaseConfig fields, e.g. ``read_pool_size=2``.
    """
    return await Database.open(schema, DatabaseConfig(path=path, **options))  # type: ignore[arg-type]


__all__ = [
    "__version__",
    "connect",
    # Schema
    "ColumnDescription",
    "ColumnKind",
    "ForeignKey",
    "IndexDescription",
    "SchemaModel",
    "TableDescription",
    "schema_from_metadata",
    "schema_from_models",
    # Database
    "Database",
    "PreparedQuery",
    # Statements
    "and_",
    "count",
    "delete_from",
    "eq",
    "ge",
    "gt",
    "insert_into",
    "is_not_null",
    "is_null",
    "le",
    "like",
    "lit",
    "lt",
    "ne",
    "or_",
    "param",
    "select",
    "update",
    # Config
    "DatabaseConfig",
    "RizzConfig",
    "load_config",
    # Errors
    "ConfigError",
    "ExecutionError",
    "MigrationError",
    "QueryBuildError",
    "RizzError",
    "SchemaError",
    "ShapeMismatch",
]
