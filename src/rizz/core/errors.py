"""Rizz error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Schema (declared schema rejected at registration)
- 4xxx: Migration (reconciliation or DDL failure)
- 5xxx: Query build (rejected before any engine call)
- 6xxx: Execution (engine-level failure)
- 7xxx: Row shape
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_FILE_NOT_FOUND = 2004

    # Schema (3xxx)
    SCHEMA_DUPLICATE_TABLE = 3001
    SCHEMA_DUPLICATE_COLUMN = 3002
    SCHEMA_PRIMARY_KEY = 3003
    SCHEMA_DANGLING_FOREIGN_KEY = 3004
    SCHEMA_FOREIGN_KEY_CYCLE = 3005
    SCHEMA_DUPLICATE_INDEX = 3006
    SCHEMA_INVALID_INDEX = 3007
    SCHEMA_UNSUPPORTED = 3008

    # Migration (4xxx)
    MIGRATION_NOT_NULL_WITHOUT_DEFAULT = 4001
    MIGRATION_UNSUPPORTED_ADD_COLUMN = 4002
    MIGRATION_FOREIGN_KEY_CYCLE = 4003
    MIGRATION_DDL_FAILED = 4004

    # Query build (5xxx)
    QUERY_UNKNOWN_TABLE = 5001
    QUERY_UNKNOWN_COLUMN = 5002
    QUERY_TABLE_NOT_IN_SCOPE = 5003
    QUERY_INCOMPLETE = 5004
    QUERY_INVALID = 5005

    # Execution (6xxx)
    EXECUTION_BINDING_MISMATCH = 6001
    EXECUTION_ENGINE_ERROR = 6002
    EXECUTION_NO_ROWS = 6003
    EXECUTION_CLOSED = 6004

    # Shape (7xxx)
    SHAPE_COLUMN_SET = 7001
    SHAPE_MISSING_COLUMN = 7002
    SHAPE_AMBIGUOUS_COLUMN = 7003
    SHAPE_WIDTH = 7004
    SHAPE_INVALID_MODEL = 7005

    # Internal (9xxx)
    INTERNAL_ERROR = 9001


@dataclass(frozen=True)
class RizzError(Exception):
    """Base error with structured context."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'QUERY_UNKNOWN_COLUMN')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(RizzError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def file_not_found(cls, path: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_FILE_NOT_FOUND,
            message=f"Config file not found: {path}",
            details={"path": path},
        )


class SchemaError(RizzError):
    """Declared schema is inconsistent. Fatal to startup."""

    @classmethod
    def duplicate_table(cls, table: str) -> "SchemaError":
        return cls(
            code=ErrorCode.SCHEMA_DUPLICATE_TABLE,
            message=f"Table '{table}' is declared more than once",
            details={"table": table},
        )

    @classmethod
    def duplicate_column(cls, table: str, column: str) -> "SchemaError":
        return cls(
            code=ErrorCode.SCHEMA_DUPLICATE_COLUMN,
            message=f"Column '{column}' is declared more than once on '{table}'",
            details={"table": table, "column": column},
        )

    @classmethod
    def primary_key(cls, table: str, count: int) -> "SchemaError":
        return cls(
            code=ErrorCode.SCHEMA_PRIMARY_KEY,
            message=f"Table '{table}' must have exactly one primary key column, found {count}",
            details={"table": table, "count": count},
        )

    @classmethod
    def dangling_foreign_key(
        cls, table: str, column: str, target_table: str, target_column: str
    ) -> "SchemaError":
        return cls(
            code=ErrorCode.SCHEMA_DANGLING_FOREIGN_KEY,
            message=(
                f"Foreign key {table}.{column} references unknown "
                f"{target_table}.{target_column}"
            ),
            details={
                "table": table,
                "column": column,
                "target_table": target_table,
                "target_column": target_column,
            },
        )

    @classmethod
    def foreign_key_cycle(cls, tables: list[str]) -> "SchemaError":
        return cls(
            code=ErrorCode.SCHEMA_FOREIGN_KEY_CYCLE,
            message=f"Foreign keys form a cycle between: {', '.join(tables)}",
            details={"tables": tables},
        )

    @classmethod
    def duplicate_index(cls, index: str) -> "SchemaError":
        return cls(
            code=ErrorCode.SCHEMA_DUPLICATE_INDEX,
            message=f"Index '{index}' is declared more than once",
            details={"index": index},
        )

    @classmethod
    def invalid_index(cls, index: str, reason: str) -> "SchemaError":
        return cls(
            code=ErrorCode.SCHEMA_INVALID_INDEX,
            message=f"Index '{index}' is invalid: {reason}",
            details={"index": index, "reason": reason},
        )

    @classmethod
    def unsupported(cls, subject: str, reason: str) -> "SchemaError":
        return cls(
            code=ErrorCode.SCHEMA_UNSUPPORTED,
            message=f"{subject}: {reason}",
            details={"subject": subject, "reason": reason},
        )


class MigrationError(RizzError):
    """Reconciliation cannot be computed or applied. Fatal to initialization."""

    @classmethod
    def not_null_without_default(cls, table: str, column: str) -> "MigrationError":
        return cls(
            code=ErrorCode.MIGRATION_NOT_NULL_WITHOUT_DEFAULT,
            message=(
                f"Cannot add NOT NULL column {table}.{column} without a default value"
            ),
            details={"table": table, "column": column},
        )

    @classmethod
    def unsupported_add_column(cls, table: str, column: str, reason: str) -> "MigrationError":
        return cls(
            code=ErrorCode.MIGRATION_UNSUPPORTED_ADD_COLUMN,
            message=f"Cannot add column {table}.{column}: {reason}",
            details={"table": table, "column": column, "reason": reason},
        )

    @classmethod
    def foreign_key_cycle(cls, tables: list[str]) -> "MigrationError":
        return cls(
            code=ErrorCode.MIGRATION_FOREIGN_KEY_CYCLE,
            message=f"Cannot order table creation, foreign key cycle: {', '.join(tables)}",
            details={"tables": tables},
        )

    @classmethod
    def ddl_failed(cls, sql: str, reason: str) -> "MigrationError":
        return cls(
            code=ErrorCode.MIGRATION_DDL_FAILED,
            message=f"Migration rolled back, statement failed: {reason}",
            details={"sql": sql, "reason": reason},
        )


class QueryBuildError(RizzError):
    """Statement rejected while building. Never reaches the engine."""

    @classmethod
    def unknown_table(cls, table: str) -> "QueryBuildError":
        return cls(
            code=ErrorCode.QUERY_UNKNOWN_TABLE,
            message=f"Unknown table '{table}'",
            details={"table": table},
        )

    @classmethod
    def unknown_column(cls, table: str, column: str) -> "QueryBuildError":
        return cls(
            code=ErrorCode.QUERY_UNKNOWN_COLUMN,
            message=f"Unknown column '{column}' on table '{table}'",
            details={"table": table, "column": column},
        )

    @classmethod
    def table_not_in_scope(cls, table: str) -> "QueryBuildError":
        return cls(
            code=ErrorCode.QUERY_TABLE_NOT_IN_SCOPE,
            message=f"Table '{table}' is referenced but not part of the statement",
            details={"table": table},
        )

    @classmethod
    def incomplete(cls, statement: str, missing: str) -> "QueryBuildError":
        return cls(
            code=ErrorCode.QUERY_INCOMPLETE,
            message=f"{statement} statement is missing {missing}",
            details={"statement": statement, "missing": missing},
        )

    @classmethod
    def invalid(cls, reason: str) -> "QueryBuildError":
        return cls(
            code=ErrorCode.QUERY_INVALID,
            message=reason,
            details={"reason": reason},
        )


class ExecutionError(RizzError):
    """Engine-level failure, or values that cannot be bound to a statement."""

    @classmethod
    def binding_mismatch(cls, sql: str, expected: int, got: int) -> "ExecutionError":
        return cls(
            code=ErrorCode.EXECUTION_BINDING_MISMATCH,
            message=f"Statement expects {expected} bound values, got {got}",
            details={"sql": sql, "expected": expected, "got": got},
        )

    @classmethod
    def unbound_parameter(cls, sql: str, name: str) -> "ExecutionError":
        return cls(
            code=ErrorCode.EXECUTION_BINDING_MISMATCH,
            message=f"No value supplied for parameter '{name}'",
            details={"sql": sql, "parameter": name},
        )

    @classmethod
    def engine_error(cls, sql: str, reason: str, *, retryable: bool = False) -> "ExecutionError":
        return cls(
            code=ErrorCode.EXECUTION_ENGINE_ERROR,
            message=f"Statement failed: {reason}",
            retryable=retryable,
            details={"sql": sql, "reason": reason},
        )

    @classmethod
    def no_rows(cls, sql: str) -> "ExecutionError":
        return cls(
            code=ErrorCode.EXECUTION_NO_ROWS,
            message="Statement returned no rows",
            details={"sql": sql},
        )

    @classmethod
    def closed(cls) -> "ExecutionError":
        return cls(
            code=ErrorCode.EXECUTION_CLOSED,
            message="Database is closed",
        )


class ShapeMismatch(RizzError):
    """Row model does not line up with the result columns."""

    @classmethod
    def column_set(
        cls, model: str, table: str, expected: list[str], got: list[str]
    ) -> "ShapeMismatch":
        return cls(
            code=ErrorCode.SHAPE_COLUMN_SET,
            message=(
                f"{model} is bound to table '{table}' but the result columns "
                f"{got} differ from {expected}"
            ),
            details={"model": model, "table": table, "expected": expected, "got": got},
        )

    @classmethod
    def missing_column(cls, model: str, field: str, column: str) -> "ShapeMismatch":
        return cls(
            code=ErrorCode.SHAPE_MISSING_COLUMN,
            message=f"{model}.{field} has no result column '{column}'",
            details={"model": model, "field": field, "column": column},
        )

    @classmethod
    def ambiguous_column(cls, model: str, column: str) -> "ShapeMismatch":
        return cls(
            code=ErrorCode.SHAPE_AMBIGUOUS_COLUMN,
            message=f"{model} maps column '{column}' which appears more than once",
            details={"model": model, "column": column},
        )

    @classmethod
    def width(cls, model: str, expected: int, got: int) -> "ShapeMismatch":
        return cls(
            code=ErrorCode.SHAPE_WIDTH,
            message=f"{model} consumes {expected} columns but the result has {got}",
            details={"model": model, "expected": expected, "got": got},
        )

    @classmethod
    def invalid_model(cls, model: str, reason: str) -> "ShapeMismatch":
        return cls(
            code=ErrorCode.SHAPE_INVALID_MODEL,
            message=f"{model} cannot be used as a row shape: {reason}",
            details={"model": model, "reason": reason},
        )


class InternalError(RizzError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
