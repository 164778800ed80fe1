"""Core module exports."""

from rizz.core.errors import (
    ConfigError,
    ErrorCode,
    ExecutionError,
    InternalError,
    MigrationError,
    QueryBuildError,
    RizzError,
    SchemaError,
    ShapeMismatch,
)
from rizz.core.logging import (
    clear_statement_id,
    configure_logging,
    get_logger,
    get_statement_id,
    set_statement_id,
    statement_scope,
)

__all__ = [
    # Errors
    "RizzError",
    "ErrorCode",
    "ConfigError",
    "SchemaError",
    "MigrationError",
    "QueryBuildError",
    "ExecutionError",
    "ShapeMismatch",
    "InternalError",
    # Logging
    "clear_statement_id",
    "configure_logging",
    "get_logger",
    "get_statement_id",
    "set_statement_id",
    "statement_scope",
]
