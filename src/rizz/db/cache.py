"""Prepared statement cache, one per connection, keyed by rendered SQL text."""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass

import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class PreparedHandle:
    """Engine-level reference to a prepared statement.

    The compiled sqlite3 statement lives in the driver's own statement cache,
    which is keyed on the same text; the handle is what ties a rendered
    statement to that entry for the lifetime of the connection.
    """

    sql: str
    generation: int


class PreparedStatementCache:
    """At most one prepare call per distinct SQL text while cached.

    Unbounded: text equality is the only key and entries go away when the
    cache is invalidated (after DDL) or the connection closes.
    """

    def __init__(self, prepare: Callable[[str], PreparedHandle]) -> None:
        self._prepare = prepare
        self._handles: dict[str, PreparedHandle] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get_or_prepare(self, sql: str) -> PreparedHandle:
        with self._lock:
            handle = self._handles.get(sql)
            if handle is not None:
                self.hits += 1
                return handle
            handle = self._prepare(sql)
            self._handles[sql] = handle
            self.misses += 1
            return handle

    def invalidate(self) -> int:
        """Drop every entry. Returns how many were dropped."""
        with self._lock:
            dropped = len(self._handles)
            self._handles.clear()
        if dropped:
            logger.debug("statement_cache_invalidated", dropped=dropped)
        return dropped

    def close(self) -> None:
        with self._lock:
            self._handles.clear()

    def __contains__(self, sql: object) -> bool:
        with self._lock:
            return sql in self._handles

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)
