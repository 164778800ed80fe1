"""Predicate trees for WHERE and JOIN ... ON clauses.

A predicate is a Comparison, or an And/Or over predicates. Comparison
operands are bound parameters (the default for plain Python values), inlined
literals (``lit``), or other columns (join conditions).
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, Final

from rizz.core.errors import QueryBuildError
from rizz.schema.model import ColumnRef


class _Unset:
    __slots__ = ()

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Final = _Unset()

OPERATORS = frozenset({"=", "!=", "<", "<=", ">", ">=", "LIKE", "IS", "IS NOT"})


@dataclass(frozen=True)
class Param:
    """Placeholder. Without a value it must be supplied at execution time."""

    value: Any = UNSET
    name: str | None = None

    @property
    def is_bound(self) -> bool:
        return self.value is not UNSET


@dataclass(frozen=True)
class Literal:
    """Value rendered into the SQL text instead of bound."""

    value: Any


Operand = Param | Literal | ColumnRef


@dataclass(frozen=True)
class Comparison:
    column: ColumnRef
    operator: str
    operand: Operand


@dataclass(frozen=True)
class And:
    items: tuple[Predicate, ...]


@dataclass(frozen=True)
class Or:
    items: tuple[Predicate, ...]


Predicate = Comparison | And | Or


def to_operand(value: Any) -> Operand:
    if isinstance(value, Param | Literal | ColumnRef):
        return value
    return Param(value)


def compare(column: ColumnRef, operator: str, value: Any) -> Comparison:
    if not isinstance(column, ColumnRef):
        raise QueryBuildError.invalid(
            f"Left side of '{operator}' must be a table column, got {column!r}"
        )
    if operator not in OPERATORS:
        raise QueryBuildError.invalid(f"Unsupported operator '{operator}'")
    return Comparison(column=column, operator=operator, operand=to_operand(value))


def eq(column: ColumnRef, value: Any) -> Comparison:
    return compare(column, "=", value)


def ne(column: ColumnRef, value: Any) -> Comparison:
    return compare(column, "!=", value)


def lt(column: ColumnRef, value: Any) -> Comparison:
    return compare(column, "<", value)


def le(column: ColumnRef, value: Any) -> Comparison:
    return compare(column, "<=", value)


def gt(column: ColumnRef, value: Any) -> Comparison:
    return compare(column, ">", value)


def ge(column: ColumnRef, value: Any) -> Comparison:
    return compare(column, ">=", value)


def like(column: ColumnRef, pattern: Any) -> Comparison:
    return compare(column, "LIKE", pattern)


def is_null(column: ColumnRef) -> Comparison:
    return compare(column, "IS", Literal(None))


def is_not_null(column: ColumnRef) -> Comparison:
    return compare(column, "IS NOT", Literal(None))


def _combine(kind: type[And] | type[Or], predicates: tuple[Predicate, ...]) -> Predicate:
    if not predicates:
        raise QueryBuildError.invalid(f"{kind.__name__.upper()} needs at least one predicate")
    items: list[Predicate] = []
    for predicate in predicates:
        if not isinstance(predicate, Comparison | And | Or):
            raise QueryBuildError.invalid(f"Not a predicate: {predicate!r}")
        # Same-kind nesting is associative, keep the tree flat
        if isinstance(predicate, kind):
            items.extend(predicate.items)
        else:
            items.append(predicate)
    if len(items) == 1:
        return items[0]
    return kind(tuple(items))


def and_(*predicates: Predicate) -> Predicate:
    return _combine(And, predicates)


def or_(*predicates: Predicate) -> Predicate:
    return _combine(Or, predicates)


def lit(value: Any) -> Literal:
    return Literal(value)


def param(name: str) -> Param:
    return Param(name=name)


def columns_of(predicate: Predicate) -> Iterator[ColumnRef]:
    """Every column referenced by ``predicate``, left to right."""
    if isinstance(predicate, Comparison):
        yield predicate.column
        if isinstance(predicate.operand, ColumnRef):
            yield predicate.operand
        return
    for item in predicate.items:
        yield from columns_of(item)
