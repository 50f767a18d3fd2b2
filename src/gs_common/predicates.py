"""WHERE-clause builder.

Predicates are immutable trees of Equal / Like / And nodes. `render` turns a
tree into SQL with named placeholders (:w0, :w1, ...) plus the parameter dict;
values never appear in the SQL text, so the rendered shape depends only on the
tree's structure and is safe to cache under a logical key.

    where_like(lower("character_name"), name.lower())
    where_equal_to("id", user_id).and_equal_to("access_token", token)
"""

import re
from dataclasses import dataclass
from typing import Any, Union

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_identifier(name: str) -> str:
    """Table/column names are interpolated into SQL, so only plain identifiers pass."""
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


@dataclass(frozen=True)
class Column:
    name: str

    def __post_init__(self) -> None:
        validate_identifier(self.name)

    def sql(self) -> str:
        return self.name


@dataclass(frozen=True)
class Lower:
    column: Column

    def sql(self) -> str:
        return f"LOWER({self.column.sql()})"


ColumnExpr = Union[Column, Lower]


def lower(column: str | Column) -> Lower:
    """Case-insensitive column expression. Lower the bound value with str.lower()."""
    return Lower(column if isinstance(column, Column) else Column(column))


def _as_column(column: str | ColumnExpr) -> ColumnExpr:
    if isinstance(column, (Column, Lower)):
        return column
    return Column(column)


class _Chainable:
    def and_(self, other: "Predicate") -> "And":
        return And((*_terms(self), *_terms(other)))  # type: ignore[arg-type]

    def and_equal_to(self, column: str | ColumnExpr, value: Any) -> "And":
        return self.and_(where_equal_to(column, value))

    def and_like(self, column: str | ColumnExpr, pattern: str) -> "And":
        return self.and_(where_like(column, pattern))


@dataclass(frozen=True)
class Equal(_Chainable):
    column: ColumnExpr
    value: Any


@dataclass(frozen=True)
class Like(_Chainable):
    column: ColumnExpr
    pattern: str


@dataclass(frozen=True)
class And(_Chainable):
    terms: tuple["Equal | Like", ...]


Predicate = Union[Equal, Like, And]


def _terms(predicate: Predicate) -> tuple["Equal | Like", ...]:
    if isinstance(predicate, And):
        return predicate.terms
    return (predicate,)


def where_equal_to(column: str | ColumnExpr, value: Any) -> Equal:
    return Equal(_as_column(column), value)


def where_like(column: str | ColumnExpr, pattern: str) -> Like:
    return Like(_as_column(column), pattern)


def render(predicate: Predicate | None) -> tuple[str, dict[str, Any]]:
    """Return (" WHERE ..." or "", params)."""
    if predicate is None:
        return "", {}
    params: dict[str, Any] = {}
    clauses = []
    for term in _terms(predicate):
        name = f"w{len(params)}"
        if isinstance(term, Equal):
            clauses.append(f"{term.column.sql()} = :{name}")
            params[name] = term.value
        elif isinstance(term, Like):
            clauses.append(f"{term.column.sql()} LIKE :{name}")
            params[name] = term.pattern
        else:
            raise TypeError(f"Unsupported predicate: {term!r}")
    return " WHERE " + " AND ".join(clauses), params
