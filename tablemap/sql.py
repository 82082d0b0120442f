"""
Statements for tablemap, compiled through SQLAlchemy Core.

A statement keeps its parts (table, conditions, values, ordering) as plain data
so the engine can build it up step by step and test doubles can interpret it
without parsing SQL. ``to_sqlalchemy()`` turns it into a Core construct
(``select``/``insert``/``update``/``delete`` over ``table()``/``column()``) and
``render(driver)`` compiles that construct with the driver's PostgreSQL dialect.

Usage:
    from tablemap.sql import Condition, Table

    people = Table("people", ["id", "name", "age"])
    stmt = people.select().where(Condition("age", "gt", 20)).order_by("name").limit(10)
    query = stmt.render("asyncpg")
    # query.text   -> SELECT * FROM people WHERE people.age > $1::INTEGER ORDER BY ... LIMIT $2::INTEGER
    # query.values -> (20, 10)

Drivers:
    psycopg -> pyformat, values is a dict
    asyncpg -> numeric_dollar, values is a tuple
"""

from __future__ import annotations

import functools
import operator
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import asyncpg as pg_asyncpg
from sqlalchemy.dialects.postgresql import psycopg as pg_psycopg
from sqlalchemy.engine import Dialect

COMPARISONS: Dict[str, Callable[[Any, Any], Any]] = {
    "eq": operator.eq,
    "ne": operator.ne,
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
    "like": lambda column, value: column.like(value),
    "not_like": lambda column, value: column.not_like(value),
    "in": lambda column, value: column.in_(list(value)),
    "not_in": lambda column, value: column.not_in(list(value)),
}
OPERATORS = frozenset(COMPARISONS) | {"is_null", "is_not_null"}

_STAR = sa.literal_column("*")


@functools.lru_cache(maxsize=None)
def dialect_for(driver: str) -> Dialect:
    """PostgreSQL dialect configured for the placeholder style of ``driver``."""
    if driver == "psycopg":
        return pg_psycopg.dialect(paramstyle="pyformat")
    if driver == "asyncpg":
        return pg_asyncpg.dialect(paramstyle="numeric_dollar")
    raise ValueError(f"Unknown driver '{driver}'. Available: psycopg, asyncpg")


@dataclass(frozen=True)
class Query:
    """Compiled SQL text and its bound values, ready for the driver."""

    text: str
    values: Union[Tuple[Any, ...], Dict[str, Any]] = ()


class Expression:
    """A server-side value computed by the database instead of bound as a parameter."""

    def to_sqlalchemy(self, table: sa.TableClause) -> Any:  # pragma: no cover - interface only
        raise NotImplementedError


class Now(Expression):
    def to_sqlalchemy(self, table: sa.TableClause) -> Any:
        return sa.func.now()

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Now)

    def __hash__(self) -> int:
        return hash("NOW()")

    def __repr__(self) -> str:
        return "Now()"


@dataclass(frozen=True)
class Increment(Expression):
    """``column + by``, used for revision bumps."""

    column: str
    by: int = 1

    def to_sqlalchemy(self, table: sa.TableClause) -> Any:
        return table.c[self.column] + self.by


@dataclass(frozen=True)
class Condition:
    """A single ``column <op> value`` filter; conditions on a statement are ANDed."""

    column: str
    op: str
    value: Any = None

    def __post_init__(self) -> None:
        if self.op not in OPERATORS:
            raise ValueError(f"Unknown operator '{self.op}'")

    def to_sqlalchemy(self, table: sa.TableClause) -> Any:
        column = table.c[self.column]
        if self.op == "is_null":
            return column.is_(None)
        if self.op == "is_not_null":
            return column.is_not(None)
        return COMPARISONS[self.op](column, self.value)


def _value(value: Any, table: sa.TableClause) -> Any:
    if isinstance(value, Expression):
        return value.to_sqlalchemy(table)
    return value


class Statement:
    """Base class for every statement."""

    kind: ClassVar[str] = ""

    def __init__(self, table: Optional["Table"]) -> None:
        self.table = table

    def referenced_columns(self) -> List[str]:
        return []

    def to_sqlalchemy(self) -> Any:  # pragma: no cover - interface only
        raise NotImplementedError

    def _core_table(self) -> sa.TableClause:
        assert self.table is not None
        return self.table.core(self.referenced_columns())

    def render(self, driver: str = "psycopg") -> Query:
        dialect = dialect_for(driver)
        compiled = self.to_sqlalchemy().compile(
            dialect=dialect, compile_kwargs={"render_postcompile": True}
        )
        params = compiled.params
        if dialect.positional:
            return Query(compiled.string, tuple(params[name] for name in compiled.positiontup or ()))
        return Query(compiled.string, dict(params))

    def __str__(self) -> str:
        return self.render().text


class _Filtered(Statement):
    def __init__(self, table: "Table") -> None:
        super().__init__(table)
        self.conditions: List[Condition] = []

    def where(self, *conditions: Condition) -> "_Filtered":
        self.conditions.extend(conditions)
        return self

    def referenced_columns(self) -> List[str]:
        return [c.column for c in self.conditions]

    def _where_clause(self, table: sa.TableClause) -> Optional[Any]:
        if not self.conditions:
            return None
        return sa.and_(*(c.to_sqlalchemy(table) for c in self.conditions))


class Select(_Filtered):
    kind = "select"

    def __init__(self, table: "Table", columns: Optional[Sequence[str]] = None) -> None:
        super().__init__(table)
        self.columns: Optional[List[str]] = list(columns) if columns else None
        self.ordering: List[Tuple[str, str]] = []
        self.limit_value: Optional[int] = None
        self.offset_value: Optional[int] = None

    def order_by(self, column: str, direction: str = "asc") -> "Select":
        direction = direction.lower()
        if direction not in ("asc", "desc"):
            raise ValueError(f"Unknown order direction '{direction}' for column '{column}'")
        self.ordering.append((column, direction))
        return self

    def limit(self, n: int) -> "Select":
        self.limit_value = n
        return self

    def offset(self, n: int) -> "Select":
        self.offset_value = n
        return self

    def referenced_columns(self) -> List[str]:
        return [*(self.columns or ()), *super().referenced_columns(), *(c for c, _ in self.ordering)]

    def to_sqlalchemy(self) -> sa.Select:
        table = self._core_table()
        if self.columns:
            stmt = sa.select(*(table.c[c] for c in self.columns))
        else:
            stmt = sa.select(_STAR).select_from(table)
        clause = self._where_clause(table)
        if clause is not None:
            stmt = stmt.where(clause)
        for column, direction in self.ordering:
            stmt = stmt.order_by(getattr(table.c[column], direction)())
        if self.limit_value is not None:
            stmt = stmt.limit(self.limit_value)
        if self.offset_value is not None:
            stmt = stmt.offset(self.offset_value)
        return stmt


class Insert(Statement):
    kind = "insert"

    def __init__(self, table: "Table", values: Mapping[str, Any]) -> None:
        super().__init__(table)
        self.values: Dict[str, Any] = dict(values)

    def referenced_columns(self) -> List[str]:
        return list(self.values)

    def to_sqlalchemy(self) -> Any:
        table = self._core_table()
        stmt = sa.insert(table)
        if self.values:
            stmt = stmt.values({table.c[c]: _value(v, table) for c, v in self.values.items()})
        return stmt.returning(_STAR)


class Update(_Filtered):
    kind = "update"

    def __init__(self, table: "Table", values: Mapping[str, Any]) -> None:
        super().__init__(table)
        if not values:
            raise ValueError("UPDATE requires at least one column to set")
        self.values: Dict[str, Any] = dict(values)

    def referenced_columns(self) -> List[str]:
        increments = [v.column for v in self.values.values() if isinstance(v, Increment)]
        return [*self.values, *increments, *super().referenced_columns()]

    def to_sqlalchemy(self) -> Any:
        table = self._core_table()
        stmt = sa.update(table).values({table.c[c]: _value(v, table) for c, v in self.values.items()})
        clause = self._where_clause(table)
        if clause is not None:
            stmt = stmt.where(clause)
        return stmt.returning(_STAR)


class Delete(_Filtered):
    kind = "delete"

    def to_sqlalchemy(self) -> Any:
        table = self._core_table()
        stmt = sa.delete(table)
        clause = self._where_clause(table)
        if clause is not None:
            stmt = stmt.where(clause)
        return stmt.returning(_STAR)


class Raw(Statement):
    """
    Hand-written SQL with ``:name`` bind parameters, compiled through ``sqlalchemy.text``.
    """

    kind = "raw"

    def __init__(self, text: str, params: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(None)
        self.text = text
        self.params: Dict[str, Any] = dict(params or {})

    def to_sqlalchemy(self) -> sa.TextClause:
        clause = sa.text(self.text)
        if self.params:
            clause = clause.bindparams(**self.params)
        return clause


@dataclass
class Table:
    """Physical table handle: name plus its physical column names."""

    name: str
    columns: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        self.columns = tuple(self.columns)

    def core(self, extra: Sequence[str] = ()) -> sa.TableClause:
        """Lightweight Core ``table()`` covering the known columns plus ``extra``."""
        names = dict.fromkeys((*self.columns, *extra))
        return sa.table(self.name, *(sa.column(name) for name in names))

    def select(self, *columns: str) -> Select:
        return Select(self, columns or None)

    def insert(self, values: Mapping[str, Any]) -> Insert:
        return Insert(self, values)

    def update(self, values: Mapping[str, Any]) -> Update:
        return Update(self, values)

    def delete(self) -> Delete:
        return Delete(self)


__all__ = [
    "COMPARISONS",
    "OPERATORS",
    "Condition",
    "Delete",
    "Expression",
    "Increment",
    "Insert",
    "Now",
    "Query",
    "Raw",
    "Select",
    "Statement",
    "Table",
    "Update",
    "dialect_for",
]
