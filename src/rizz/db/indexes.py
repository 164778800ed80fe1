"""Caller-driven index management.

Declared indexes are created by migration. IndexManager covers the rest:
creating indexes on demand and dropping them, which migration never does.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from rizz.core.errors import QueryBuildError
from rizz.query.ast import create_index, drop_index
from rizz.schema.model import IndexDescription

if TYPE_CHECKING:
    from rizz.db.database import Database

logger = structlog.get_logger()


class IndexManager:
    def __init__(self, database: Database) -> None:
        self._db = database

    def _validate(self, index: IndexDescription) -> None:
        table = self._db.schema.tables.get(index.table)
        if table is None:
            raise QueryBuildError.unknown_table(index.table)
        if not index.columns:
            raise QueryBuildError.invalid(f"Index '{index.name}' has no columns")
        for column in index.columns:
            if table.column(column) is None:
                raise QueryBuildError.unknown_column(index.table, column)

    async def create(self, index: IndexDescription) -> None:
        """Create ``index`` if it does not exist yet.

        Raises:
            QueryBuildError: the table or a column is not declared.
            ExecutionError: the engine rejected it, e.g. a UNIQUE index over
                duplicate values.
        """
        self._validate(index)
        await self._db.execute(create_index(index))
        logger.info("index_created", index=index.name, table=index.table, unique=index.unique)

    async def create_on(self, table: str, *columns: str, unique: bool = False) -> IndexDescription:
        """Create an index named ``<table>_<col>_<col>``."""
        index = IndexDescription.on(table, *columns, unique=unique)
        await self.create(index)
        return index

    async def drop(self, index: IndexDescription | str) -> None:
        """Drop an index by description or name. Missing indexes are ignored."""
        if isinstance(index, str):
            index = IndexDescription(name=index, table="", columns=())
        await self._db.execute(drop_index(index))
        logger.info("index_dropped", index=index.name)

    async def list(self, table: str | None = None) -> list[IndexDescription]:
        """Live indexes, optionally only those on ``table``."""
        live = await self._db.catalog()
        indexes = list(live.indexes.values())
        if table is not None:
            wanted = table.casefold()
            indexes = [i for i in indexes if i.table.casefold() == wanted]
        return sorted(indexes, key=lambda i: i.name)
