"""Declared and live schema descriptions.

The schema authoring front end (SQLModel classes, hand-written descriptions,
generated code) is not this package's concern. Whatever it is, it ends up
producing one SchemaModel, which is validated once in SchemaModel.build() and
never changes afterwards.

LiveSchema has the same shape but is read from the engine's catalog and is
never validated: a live database may contain anything.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from rizz.core.errors import QueryBuildError, SchemaError


class ColumnKind(str, Enum):
    """Storage kinds. Nullability is carried by ColumnDescription.not_null."""

    TEXT = "TEXT"
    INTEGER = "INTEGER"
    REAL = "REAL"
    BLOB = "BLOB"

    @classmethod
    def from_declared_type(cls, declared: str | None) -> ColumnKind:
        """Classify a declared SQL type with SQLite's column affinity rules.

        NUMERIC affinity has no kind of its own and is reported as REAL.
        """
        t = (declared or "").upper()
        if "INT" in t:
            return cls.INTEGER
        if "CHAR" in t or "CLOB" in t or "TEXT" in t:
            return cls.TEXT
        if "BLOB" in t or not t:
            return cls.BLOB
        return cls.REAL


@dataclass(frozen=True)
class ForeignKey:
    """Single-column reference to another table's column."""

    table: str
    column: str


@dataclass(frozen=True)
class ColumnDescription:
    name: str
    kind: ColumnKind
    not_null: bool = False
    primary_key: bool = False
    references: ForeignKey | None = None
    unique: bool = False
    default: str | None = None  # raw SQL literal, rendered as DEFAULT <default>

    @property
    def nullable(self) -> bool:
        return not self.not_null


@dataclass(frozen=True)
class TableDescription:
    name: str
    columns: tuple[ColumnDescription, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", tuple(self.columns))

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(c.name for c in self.columns)

    @property
    def primary_key(self) -> ColumnDescription | None:
        keys = [c for c in self.columns if c.primary_key]
        return keys[0] if len(keys) == 1 else None

    def column(self, name: str) -> ColumnDescription | None:
        """Look a column up by name, ignoring case like SQLite does."""
        wanted = name.casefold()
        for col in self.columns:
            if col.name.casefold() == wanted:
                return col
        return None

    def referenced_tables(self) -> list[str]:
        return [c.references.table for c in self.columns if c.references is not None]


@dataclass(frozen=True)
class IndexDescription:
    name: str
    table: str
    columns: tuple[str, ...]
    unique: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", tuple(self.columns))

    @classmethod
    def on(cls, table: str | TableDescription, *columns: str, unique: bool = False) -> IndexDescription:
        """Index named after its table and columns: ``<table>_<col>_<col>``."""
        table_name = table if isinstance(table, str) else table.name
        return cls(
            name="_".join([table_name, *columns]),
            table=table_name,
            columns=columns,
            unique=unique,
        )


def _freeze(items: Iterable[tuple[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(items))


@dataclass(frozen=True)
class LiveSchema:
    """Schema snapshot read from the engine's catalog."""

    tables: Mapping[str, TableDescription] = field(default_factory=lambda: _freeze(()))
    indexes: Mapping[str, IndexDescription] = field(default_factory=lambda: _freeze(()))

    @classmethod
    def of(
        cls,
        tables: Iterable[TableDescription] = (),
        indexes: Iterable[IndexDescription] = (),
    ) -> LiveSchema:
        return cls(
            tables=_freeze((t.name, t) for t in tables),
            indexes=_freeze((i.name, i) for i in indexes),
        )

    def find_table(self, name: str) -> TableDescription | None:
        wanted = name.casefold()
        for table_name, table in self.tables.items():
            if table_name.casefold() == wanted:
                return table
        return None

    def has_index(self, name: str) -> bool:
        wanted = name.casefold()
        return any(index_name.casefold() == wanted for index_name in self.indexes)


@dataclass(frozen=True)
class SchemaModel:
    """Validated declared schema. Build with SchemaModel.build()."""

    tables: Mapping[str, TableDescription]
    indexes: Mapping[str, IndexDescription]

    @classmethod
    def build(
        cls,
        tables: Iterable[TableDescription],
        indexes: Iterable[IndexDescription] = (),
    ) -> SchemaModel:
        """Validate and freeze a declared schema.

        Raises:
            SchemaError: duplicate table/column/index names, a table without
                exactly one primary key, a dangling foreign key or index
                column, or a foreign key cycle between distinct tables.
        """
        tables = list(tables)
        indexes = list(indexes)
        by_name: dict[str, TableDescription] = {}
        for table in tables:
            key = table.name.casefold()
            if key in by_name:
                raise SchemaError.duplicate_table(table.name)
            by_name[key] = table

        for table in tables:
            _validate_table(table, by_name)

        seen_indexes: set[str] = set()
        for index in indexes:
            key = index.name.casefold()
            if key in seen_indexes:
                raise SchemaError.duplicate_index(index.name)
            seen_indexes.add(key)
            _validate_index(index, by_name)

        _, cycle = order_by_foreign_keys(tables)
        if cycle:
            raise SchemaError.foreign_key_cycle(cycle)

        return cls(
            tables=_freeze((t.name, t) for t in tables),
            indexes=_freeze((i.name, i) for i in indexes),
        )

    def table(self, name: str) -> TableRef:
        """Reference a declared table for statement building."""
        description = self.tables.get(name)
        if description is None:
            raise QueryBuildError.unknown_table(name)
        return TableRef(description)

    def index(self, name: str) -> IndexDescription:
        description = self.indexes.get(name)
        if description is None:
            raise QueryBuildError.invalid(f"Unknown index '{name}'")
        return description


def _validate_table(table: TableDescription, by_name: Mapping[str, TableDescription]) -> None:
    seen: set[str] = set()
    for col in table.columns:
        key = col.name.casefold()
        if key in seen:
            raise SchemaError.duplicate_column(table.name, col.name)
        seen.add(key)

    keys = sum(1 for col in table.columns if col.primary_key)
    if keys != 1:
        raise SchemaError.primary_key(table.name, keys)

    for col in table.columns:
        ref = col.references
        if ref is None:
            continue
        target = by_name.get(ref.table.casefold())
        if target is None or target.column(ref.column) is None:
            raise SchemaError.dangling_foreign_key(table.name, col.name, ref.table, ref.column)


def _validate_index(index: IndexDescription, by_name: Mapping[str, TableDescription]) -> None:
    target = by_name.get(index.table.casefold())
    if target is None:
        raise SchemaError.invalid_index(index.name, f"unknown table '{index.table}'")
    if not index.columns:
        raise SchemaError.invalid_index(index.name, "no columns")
    for name in index.columns:
        if target.column(name) is None:
            raise SchemaError.invalid_index(
                index.name, f"unknown column '{name}' on '{index.table}'"
            )


def order_by_foreign_keys(
    tables: Sequence[TableDescription],
) -> tuple[list[TableDescription], list[str]]:
    """Order tables so every table follows the tables it references.

    Only references between tables in ``tables`` count; self references are
    ignored. Ties keep declaration order.

    Returns:
        (ordered tables, names of the tables left over because they sit on
        or behind a cycle). The second list is empty when a full order exists.
    """
    by_key = {t.name.casefold(): t for t in tables}
    deps = {
        key: {
            ref.casefold()
            for ref in table.referenced_tables()
            if ref.casefold() in by_key and ref.casefold() != key
        }
        for key, table in by_key.items()
    }

    ordered: list[TableDescription] = []
    placed: set[str] = set()
    remaining = list(by_key)
    while remaining:
        ready = next((key for key in remaining if deps[key] <= placed), None)
        if ready is None:
            return ordered, [by_key[key].name for key in remaining]
        remaining.remove(ready)
        placed.add(ready)
        ordered.append(by_key[ready])
    return ordered, []


# =============================================================================
# References used by the statement builder
# =============================================================================


@dataclass(frozen=True)
class ColumnRef:
    """A column of a declared table, as used inside statements."""

    table: str
    description: ColumnDescription

    @property
    def name(self) -> str:
        return self.description.name


class _Columns:
    """Attribute access to a table's columns: ``posts.c.body``."""

    __slots__ = ("_table",)

    def __init__(self, table: TableRef) -> None:
        self._table = table

    def __getattr__(self, name: str) -> ColumnRef:
        return self._table.column(name)

    def __iter__(self) -> Iterator[ColumnRef]:
        return iter(self._table.columns)


@dataclass(frozen=True)
class TableRef:
    """A declared table, as used inside statements."""

    description: TableDescription

    @property
    def name(self) -> str:
        return self.description.name

    @property
    def c(self) -> _Columns:
        return _Columns(self)

    @property
    def columns(self) -> tuple[ColumnRef, ...]:
        return tuple(ColumnRef(self.name, col) for col in self.description.columns)

    def column(self, name: str) -> ColumnRef:
        description = self.description.column(name)
        if description is None:
            raise QueryBuildError.unknown_column(self.name, name)
        return ColumnRef(self.name, description)

    def __getitem__(self, name: str) -> ColumnRef:
        return self.column(name)
