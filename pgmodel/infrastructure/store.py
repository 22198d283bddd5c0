"""
asyncpg-backed store: the connection-pool collaborator used by models.

Models only rely on the ``ConnectionPool`` protocol (``execute`` and
``stream``), so tests and alternative drivers can stand in for ``Store``.
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Dict, List, NamedTuple, Protocol, Sequence, runtime_checkable

import asyncpg

from pgmodel.utils.logging import get_logger

log = get_logger(__name__)

Row = Dict[str, Any]


class QueryResult(NamedTuple):
    rows: List[Row]
    row_count: int


@runtime_checkable
class ConnectionPool(Protocol):
    """
    What the model runtime needs from a pool.

    ``execute`` runs one statement and returns every row; ``stream`` yields
    rows lazily and releases its connection when the iteration ends or the
    generator is closed.
    """

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        ...

    def stream(self, sql: str, params: Sequence[Any] = ()) -> AsyncIterator[Row]:
        ...


class Store:
    """
    Thin wrapper over an ``asyncpg.Pool``.

    Parameters
    ----------
    pool : asyncpg.Pool
        An opened asyncpg pool.
    prefetch : int
        Rows fetched per round trip when streaming through a cursor.
    """

    def __init__(self, pool: asyncpg.Pool, prefetch: int = 50) -> None:
        self._pool = pool
        self.prefetch = prefetch
        self.active_streams = 0

    @property
    def pool(self) -> asyncpg.Pool:
        return self._pool

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        """Run a statement and return its rows as dicts."""
        records = await self._pool.fetch(sql, *params)
        rows = [dict(record) for record in records]
        return QueryResult(rows=rows, row_count=len(rows))

    async def stream(self, sql: str, params: Sequence[Any] = ()) -> AsyncIterator[Row]:
        """
        Yield rows from a server-side cursor on a dedicated connection.

        Cursors only live inside a transaction, so the connection is held for
        the whole iteration and released on every exit path.
        """
        async with self._pool.acquire() as conn:
            self.active_streams += 1
            try:
                async with conn.transaction():
                    async for record in conn.cursor(sql, *params, prefetch=self.prefetch):
                        yield dict(record)
            finally:
                self.active_streams -= 1
                log.debug(
                    "Stream connection released", extra={"active_streams": self.active_streams}
                )

    async def close(self) -> None:
        await self._pool.close()

    def terminate(self) -> None:
        """Close every connection immediately (usable outside an event loop)."""
        self._pool.terminate()


__all__ = ["ConnectionPool", "QueryResult", "Row", "Store"]
