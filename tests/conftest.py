"""
Pytest configuration for pgmodel.

Provides fixtures for:
- An in-memory fake pool recording every statement (unit tests)
- A fresh schema registry per test so model classes never leak
- Database connection management for integration tests
"""

from __future__ import annotations

import asyncio
import os
from collections import deque
from typing import Any, AsyncIterator, Deque, Dict, List, Optional, Sequence, Tuple

import psycopg
import pytest
import pytest_asyncio

import pgmodel
from pgmodel.config import Settings
from pgmodel.infrastructure.store import QueryResult
from pgmodel.model import SchemaRegistry


class FakePool:
    """
    Stand-in for the store: records (sql, params) pairs and answers with
    queued row lists. ``in_use`` counts connections checked out by streams.
    """

    def __init__(self) -> None:
        self.calls: List[Tuple[str, List[Any]]] = []
        self.responses: Deque[List[Dict[str, Any]]] = deque()
        self.stream_rows: List[Dict[str, Any]] = []
        self.error: Optional[BaseException] = None
        self.stream_error_after: Optional[int] = None
        self.in_use = 0

    def respond(self, *row_lists: List[Dict[str, Any]]) -> None:
        self.responses.extend(row_lists)

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        self.calls.append((sql, list(params)))
        if self.error is not None:
            raise self.error
        rows = self.responses.popleft() if self.responses else []
        return QueryResult(rows=[dict(row) for row in rows], row_count=len(rows))

    async def stream(self, sql: str, params: Sequence[Any] = ()) -> AsyncIterator[Dict[str, Any]]:
        self.calls.append((sql, list(params)))
        self.in_use += 1
        try:
            for index, row in enumerate(self.stream_rows):
                if self.stream_error_after is not None and index == self.stream_error_after:
                    raise RuntimeError("stream broke")
                await asyncio.sleep(0)
                yield dict(row)
        finally:
            self.in_use -= 1


@pytest.fixture
def fake_pool() -> FakePool:
    return FakePool()


@pytest.fixture
def schema_registry(monkeypatch: pytest.MonkeyPatch) -> SchemaRegistry:
    """Swap the process-wide registry for an empty one."""
    fresh = SchemaRegistry()
    monkeypatch.setattr(pgmodel.Model, "_registry", fresh)
    return fresh


def define_model() -> type:
    """A model named ``Model`` (table ``models``) with a ``username`` column."""

    class Model(pgmodel.Model):
        pass

    Model.attribute("username", {"type": "varchar(30)"})
    return Model


@pytest.fixture
def silent_queries(monkeypatch: pytest.MonkeyPatch) -> List[Tuple[Optional[str], List[Any]]]:
    """Replace the query log hook with one that records instead of logging."""
    seen: List[Tuple[Optional[str], List[Any]]] = []

    def record(cls, sql, params):
        seen.append((sql, list(params)))

    monkeypatch.setattr(pgmodel.Model, "query_log", classmethod(record))
    return seen


@pytest_asyncio.fixture
async def model_cls(schema_registry: SchemaRegistry, fake_pool: FakePool, silent_queries) -> type:
    """``Model`` initialized against the fake pool, with the CREATE TABLE call cleared."""
    model = define_model()
    await model.init(fake_pool)
    fake_pool.calls.clear()
    silent_queries.clear()
    return model


# Integration fixtures


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "pgmodel_test"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except Exception:
        return False


@pytest.fixture
def drop_table(test_dsn: str, db_connection_available: bool):
    """
    Yield a callable that schedules a table for DROP after the test.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    tables: List[str] = []
    yield tables.append
    with psycopg.connect(test_dsn, autocommit=True) as conn:
        with conn.cursor() as cur:
            for table in tables:
                cur.execute(f'DROP TABLE IF EXISTS "{table}"')
