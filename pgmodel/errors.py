"""
Error taxonomy for pgmodel.

Caller mistakes are reported before any SQL reaches the pool. Failures coming
back from PostgreSQL are the driver's own exceptions, propagated unmodified;
``DatastoreError`` names their common base for ``except`` clauses.
"""

from __future__ import annotations

from asyncpg import PostgresError as DatastoreError


class PgModelError(Exception):
    """Base class for errors raised by pgmodel itself."""


class ValidationError(PgModelError, ValueError):
    """An argument was invalid: missing id, empty attribute name, unknown column."""


class NotFoundError(PgModelError, LookupError):
    """A row addressed by id does not exist."""

    def __init__(self, table: str, id: object) -> None:
        super().__init__(f"No row in '{table}' with id={id!r}")
        self.table = table
        self.id = id


class SchemaNotInitializedError(PgModelError, RuntimeError):
    """A model verb was used before ``Model.init()`` bound its schema."""

    def __init__(self, model_name: str) -> None:
        super().__init__(
            f"{model_name} has no schema; await {model_name}.init(pool) before querying"
        )
        self.model_name = model_name


__all__ = [
    "DatastoreError",
    "NotFoundError",
    "PgModelError",
    "SchemaNotInitializedError",
    "ValidationError",
]
