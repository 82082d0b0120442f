"""
Database clients for tablemap.

A client compiles ``tablemap.sql`` statements with its SQLAlchemy dialect and
hands back plain dict rows.

Two PostgreSQL drivers are supported:

- ``PsycopgClient``: psycopg 3 with a ``psycopg_pool.AsyncConnectionPool``
  (pyformat placeholders).
- ``AsyncpgClient``: an asyncpg pool (``$1`` placeholders).

Both expose the same surface: ``execute(statement)``, ``transaction()`` (an
async context manager yielding a session bound to one connection inside
BEGIN/COMMIT, rolled back when the block raises) and ``close()``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, runtime_checkable

import asyncpg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from tablemap.sql import Statement
from tablemap.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class Result:
    """Rows returned by a statement and the number of rows it touched."""

    rows: List[Dict[str, Any]] = field(default_factory=list)
    row_count: int = 0


@runtime_checkable
class Executor(Protocol):
    async def execute(self, statement: Statement) -> Result:
        ...


@runtime_checkable
class Client(Executor, Protocol):
    """
    Common interface every database client implements.

    Attributes
    ----------
    driver : str
        Dialect used to compile statements ("psycopg" or "asyncpg").
    """

    driver: str

    def transaction(self) -> Any:
        """Async context manager yielding an ``Executor`` inside one transaction."""
        ...

    async def close(self) -> None:
        ...


async def _psycopg_execute(conn: Any, statement: Statement) -> Result:
    query = statement.render("psycopg")
    async with conn.cursor(row_factory=dict_row) as cur:
        await cur.execute(query.text, query.values or None)
        rows = await cur.fetchall() if cur.description else []
        return Result(rows=list(rows), row_count=max(cur.rowcount, 0))


class _PsycopgSession:
    def __init__(self, conn: Any) -> None:
        self._conn = conn

    async def execute(self, statement: Statement) -> Result:
        return await _psycopg_execute(self._conn, statement)


class PsycopgClient:
    """
    psycopg 3 client backed by an async connection pool.
    """

    driver = "psycopg"

    def __init__(
        self,
        conninfo: str = "",
        min_size: int = 1,
        max_size: int = 10,
        pool: Optional[AsyncConnectionPool] = None,
    ) -> None:
        self._pool = pool or AsyncConnectionPool(
            conninfo=conninfo, min_size=min_size, max_size=max_size, open=False
        )

    async def open(self) -> "PsycopgClient":
        await self._pool.open()
        return self

    async def execute(self, statement: Statement) -> Result:
        async with self._pool.connection() as conn:
            return await _psycopg_execute(conn, statement)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[_PsycopgSession]:
        async with self._pool.connection() as conn:
            async with conn.transaction():
                yield _PsycopgSession(conn)

    async def close(self) -> None:
        await self._pool.close()


async def _asyncpg_execute(conn: Any, statement: Statement) -> Result:
    query = statement.render("asyncpg")
    records = await conn.fetch(query.text, *query.values)
    rows = [dict(record) for record in records]
    # asyncpg only reports affected rows through the status string of
    # conn.execute(); every mutating statement here uses RETURNING instead.
    return Result(rows=rows, row_count=len(rows))


class _AsyncpgSession:
    def __init__(self, conn: Any) -> None:
        self._conn = conn

    async def execute(self, statement: Statement) -> Result:
        return await _asyncpg_execute(self._conn, statement)


class AsyncpgClient:
    """
    asyncpg client backed by an ``asyncpg.Pool``.
    """

    driver = "asyncpg"

    def __init__(self, pool: Any) -> None:
        self._pool = pool

    @classmethod
    async def connect(cls, dsn: str, min_size: int = 1, max_size: int = 10) -> "AsyncpgClient":
        pool = await asyncpg.create_pool(dsn, min_size=min_size, max_size=max_size)
        return cls(pool)

    async def execute(self, statement: Statement) -> Result:
        async with self._pool.acquire() as conn:
            return await _asyncpg_execute(conn, statement)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[_AsyncpgSession]:
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                yield _AsyncpgSession(conn)

    async def close(self) -> None:
        await self._pool.close()


__all__ = ["AsyncpgClient", "Client", "Executor", "PsycopgClient", "Result"]
