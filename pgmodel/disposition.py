"""
Row disposition: how a query result is handed back to the caller.

Each variant fixes both the shape (nothing, one row, every row, a stream)
and the form (raw dict rows, "lean", or model instances). Verbs pick a
variant explicitly; ``Model.run_query`` maps its keyword flags onto one via
``Disposition.from_flags``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence

Row = Dict[str, Any]
RowFactory = Callable[[Row], Any]


class Disposition(str, Enum):
    EMPTY = "empty"
    FIRST_LEAN = "first_lean"
    FIRST_MODEL = "first_model"
    LAST_LEAN = "last_lean"
    LAST_MODEL = "last_model"
    ALL_LEAN = "all_lean"
    ALL_MODEL = "all_model"
    STREAM = "stream"

    @classmethod
    def from_flags(
        cls,
        *,
        stream: bool = False,
        lean: bool = False,
        first: bool = False,
        last: bool = True,
    ) -> "Disposition":
        """
        Resolve option flags. ``stream`` wins, then ``first``, then ``last``;
        with neither, every row is returned.
        """
        if stream:
            return cls.STREAM
        if first:
            return cls.FIRST_LEAN if lean else cls.FIRST_MODEL
        if last:
            return cls.LAST_LEAN if lean else cls.LAST_MODEL
        return cls.ALL_LEAN if lean else cls.ALL_MODEL

    @property
    def lean(self) -> bool:
        return self in (Disposition.FIRST_LEAN, Disposition.LAST_LEAN, Disposition.ALL_LEAN)


def materialize(disposition: Disposition, rows: Sequence[Row], factory: RowFactory) -> Any:
    """
    Apply a non-streaming disposition to a fully fetched result.

    An empty result is always ``[]``, whatever the variant.
    """
    if disposition is Disposition.STREAM:
        raise ValueError("STREAM results are produced by RowStream, not materialize()")
    if disposition is Disposition.EMPTY or not rows:
        return []

    wrap: RowFactory = (lambda row: row) if disposition.lean else factory

    if disposition in (Disposition.FIRST_LEAN, Disposition.FIRST_MODEL):
        return wrap(rows[0])
    if disposition in (Disposition.LAST_LEAN, Disposition.LAST_MODEL):
        return wrap(rows[-1])
    return [wrap(row) for row in rows]


class RowStream:
    """
    Forward-only async iterator over a streamed result.

    Wraps the store's row generator; closing the stream (exhaustion, error,
    ``aclose()``, or leaving ``async with``) closes the generator, which
    releases its pooled connection. Breaking out of a bare ``async for``
    does not close it; use ``async with`` or call ``aclose()``.

    Example
    -------
        async with await User.run_query(sql, params, stream=True) as rows:
            async for user in rows:
                ...
    """

    def __init__(self, source: AsyncIterator[Row], factory: Optional[RowFactory] = None) -> None:
        self._source = source
        self._factory = factory
        self.closed = False

    def __aiter__(self) -> "RowStream":
        return self

    async def __anext__(self) -> Any:
        if self.closed:
            raise StopAsyncIteration
        try:
            row = await self._source.__anext__()
        except BaseException:
            await self.aclose()
            raise
        return self._factory(row) if self._factory is not None else row

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        aclose = getattr(self._source, "aclose", None)
        if aclose is not None:
            await aclose()

    async def __aenter__(self) -> "RowStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        del exc_type, exc, tb
        await self.aclose()
        return False

    async def to_list(self) -> List[Any]:
        """Drain the stream into a list."""
        async with self:
            return [item async for item in self]


__all__ = ["Disposition", "Row", "RowFactory", "RowStream", "materialize"]
