"""Database access: engine collaborator, caches, execution and row mapping."""

from rizz.db.cache import PreparedHandle, PreparedStatementCache
from rizz.db.database import Database, PreparedQuery
from rizz.db.engine import ExecutionResult, SqliteConnection, create_sqlite_engine
from rizz.db.executor import Executor
from rizz.db.indexes import IndexManager
from rizz.db.rows import RowMapper, RowShape

__all__ = [
    "Database",
    "ExecutionResult",
    "Executor",
    "IndexManager",
    "PreparedHandle",
    "PreparedQuery",
    "PreparedStatementCache",
    "RowMapper",
    "RowShape",
    "SqliteConnection",
    "create_sqlite_engine",
]
