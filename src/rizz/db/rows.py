"""Map result rows onto pydantic row models.

A row model is any pydantic model. Its fields are matched to result columns
by name (the field alias when one is set). A model bound to a declared table,
through ``__table__`` (SQLModel table classes) or a ``__tablename__`` class
attribute, must additionally match that table's full column set.

A composite model is one whose fields are all row models. Each part consumes
the next contiguous run of result columns, in field order, so a join of
``posts`` and ``comments`` maps onto::

    class PostWithComment(BaseModel):
        post: Post
        comment: Comment

Shapes are analysed once per model class and cached.
"""

from __future__ import annotations

import threading
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from rizz.core.errors import ShapeMismatch
from rizz.schema.model import SchemaModel, TableDescription

RowFactory = Callable[[tuple[Any, ...]], Any]


@dataclass(frozen=True)
class FieldMapping:
    """One model field fed by one result column."""

    field: str
    column: str
    required: bool


@dataclass(frozen=True)
class RowShape:
    model: type[BaseModel]
    fields: tuple[FieldMapping, ...] = ()
    table: TableDescription | None = None
    parts: tuple[tuple[str, RowShape], ...] = ()

    @property
    def is_composite(self) -> bool:
        return bool(self.parts)

    @property
    def width(self) -> int:
        """Number of result columns this shape consumes."""
        if self.parts:
            return sum(part.width for _, part in self.parts)
        if self.table is not None:
            return len(self.table.columns)
        return len(self.fields)

    def factory(self, columns: Sequence[str]) -> RowFactory:
        """Resolve column positions once for a result and return a row builder.

        Raises:
            ShapeMismatch: the result columns do not fit this shape.
        """
        if self.parts:
            return self._composite_factory(columns)
        return self._plain_factory(columns, offset=0)

    def _plain_factory(self, columns: Sequence[str], offset: int) -> RowFactory:
        name = self.model.__name__
        if self.table is not None:
            expected = sorted(c.casefold() for c in self.table.column_names)
            got = sorted(c.casefold() for c in columns)
            if expected != got:
                raise ShapeMismatch.column_set(
                    name, self.table.name, list(self.table.column_names), list(columns)
                )

        positions: dict[str, list[int]] = {}
        for i, column in enumerate(columns):
            positions.setdefault(column.casefold(), []).append(i + offset)

        picks: list[tuple[str, int]] = []
        for mapping in self.fields:
            found = positions.get(mapping.column.casefold())
            if not found:
                if mapping.required:
                    raise ShapeMismatch.missing_column(name, mapping.field, mapping.column)
                continue
            if len(found) > 1:
                raise ShapeMismatch.ambiguous_column(name, mapping.column)
            picks.append((mapping.field, found[0]))

        model = self.model

        def build(row: tuple[Any, ...]) -> Any:
            try:
                return model.model_validate({key: row[i] for key, i in picks})
            except ValidationError as e:
                raise ShapeMismatch.invalid_model(name, str(e)) from e

        return build

    def _composite_factory(self, columns: Sequence[str]) -> RowFactory:
        if self.width != len(columns):
            raise ShapeMismatch.width(self.model.__name__, self.width, len(columns))

        builders: list[tuple[str, RowFactory]] = []
        offset = 0
        for field_name, part in self.parts:
            chunk = columns[offset : offset + part.width]
            builders.append((field_name, part._plain_factory(chunk, offset)))
            offset += part.width

        model = self.model

        def build(row: tuple[Any, ...]) -> Any:
            return model.model_validate({key: make(row) for key, make in builders})

        return build


def _bound_table_name(model: type[BaseModel]) -> str | None:
    table = getattr(model, "__table__", None)
    name = getattr(table, "name", None)
    if isinstance(name, str):
        return name
    name = getattr(model, "__tablename__", None)
    return name if isinstance(name, str) else None


def _is_row_model(annotation: Any) -> bool:
    return isinstance(annotation, type) and issubclass(annotation, BaseModel)


class RowMapper:
    """Builds and caches RowShapes for one declared schema."""

    def __init__(self, schema: SchemaModel) -> None:
        self._schema = schema
        self._shapes: dict[type[BaseModel], RowShape] = {}
        self._lock = threading.Lock()

    def shape(self, model: type[BaseModel]) -> RowShape:
        with self._lock:
            cached = self._shapes.get(model)
        if cached is not None:
            return cached
        shape = self._analyse(model)
        with self._lock:
            return self._shapes.setdefault(model, shape)

    def register(self, *models: type[BaseModel]) -> None:
        """Analyse models up front so shape errors surface early."""
        for model in models:
            self.shape(model)

    def map_rows(
        self,
        columns: Sequence[str],
        rows: Sequence[tuple[Any, ...]],
        model: type[BaseModel] | None = None,
        sources: Sequence[tuple[str, str]] = (),
    ) -> list[Any]:
        """Map every row. Without a model each row becomes a column -> value dict.

        ``sources`` gives the ``(table, column)`` each result column came from.
        In dict rows a name returned more than once, as in a join, is keyed
        ``"table.column"`` instead.
        """
        if model is None:
            keys = _dict_keys(columns, sources)
            return [dict(zip(keys, row, strict=True)) for row in rows]
        build = self.shape(model).factory(columns)
        return [build(row) for row in rows]

    def _analyse(self, model: type[BaseModel]) -> RowShape:
        if not _is_row_model(model):
            raise ShapeMismatch.invalid_model(repr(model), "not a pydantic model class")
        name = model.__name__
        fields = model.model_fields
        if not fields:
            raise ShapeMismatch.invalid_model(name, "model has no fields")

        nested = [key for key, info in fields.items() if _is_row_model(info.annotation)]
        if nested and len(nested) != len(fields):
            raise ShapeMismatch.invalid_model(
                name, "composite models may only contain row model fields"
            )
        if nested:
            parts = tuple(
                (info.alias or key, self._plain(info.annotation)) for key, info in fields.items()
            )
            return RowShape(model=model, parts=parts)
        return self._plain(model)

    def _plain(self, model: type[BaseModel]) -> RowShape:
        with self._lock:
            cached = self._shapes.get(model)
        if cached is not None:
            if cached.is_composite:
                raise ShapeMismatch.invalid_model(
                    model.__name__, "composite models cannot be nested"
                )
            return cached

        table: TableDescription | None = None
        table_name = _bound_table_name(model)
        if table_name is not None:
            table = self._schema.tables.get(table_name)
            if table is None:
                raise ShapeMismatch.invalid_model(
                    model.__name__, f"bound to undeclared table '{table_name}'"
                )

        mappings: list[FieldMapping] = []
        for key, info in model.model_fields.items():
            if _is_row_model(info.annotation):
                raise ShapeMismatch.invalid_model(
                    model.__name__, "composite models cannot be nested"
                )
            column = info.alias or key
            if table is not None and table.column(column) is None:
                raise ShapeMismatch.invalid_model(
                    model.__name__, f"field '{key}' has no column on '{table.name}'"
                )
            mappings.append(FieldMapping(field=column, column=column, required=info.is_required()))

        shape = RowShape(model=model, fields=tuple(mappings), table=table)
        with self._lock:
            return self._shapes.setdefault(model, shape)


def _dict_keys(columns: Sequence[str], sources: Sequence[tuple[str, str]]) -> list[str]:
    counts = Counter(columns)
    if all(n == 1 for n in counts.values()):
        return list(columns)
    if len(sources) != len(columns):
        duplicated = next(name for name, n in counts.items() if n > 1)
        raise ShapeMismatch.ambiguous_column("dict row", duplicated)

    keys: list[str] = []
    for name, (table, _) in zip(columns, sources, strict=True):
        if counts[name] == 1:
            keys.append(name)
        elif table:
            keys.append(f"{table}.{name}")
        else:
            raise ShapeMismatch.ambiguous_column("dict row", name)
    if len(set(keys)) != len(keys):
        duplicated = next(key for key, n in Counter(keys).items() if n > 1)
        raise ShapeMismatch.ambiguous_column("dict row", duplicated)
    return keys
