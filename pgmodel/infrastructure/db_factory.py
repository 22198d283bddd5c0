"""
Database connection factory utilities for pgmodel.

Provides the process-wide asyncpg pool behind a ``PoolManager`` singleton so
every model class shares one pool. The pool is created once, on first use,
and terminated on interpreter exit if it was never closed explicitly.

Includes retry logic for transient connection failures using tenacity.
"""

from __future__ import annotations

import asyncio
import atexit
import threading
from typing import Optional

import asyncpg
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from pgmodel.config import Settings, get_settings
from pgmodel.infrastructure.store import Store
from pgmodel.utils.logging import get_logger

log = get_logger(__name__)

_TRANSIENT_ERRORS = (OSError, ConnectionError, asyncpg.CannotConnectNowError)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN from settings; ``DATABASE_URL`` wins when set."""
    settings = settings or get_settings()
    if settings.database_url:
        return settings.database_url
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(_TRANSIENT_ERRORS),
    reraise=True,
)
async def create_store(
    dsn: Optional[str] = None,
    min_size: Optional[int] = None,
    max_size: Optional[int] = None,
) -> Store:
    """
    Open an asyncpg pool and wrap it in a ``Store``, with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.

    Parameters
    ----------
    dsn : str | None
        Connection string; defaults to ``build_dsn()``.
    min_size : int | None
        Minimum number of idle connections to keep.
    max_size : int | None
        Maximum total connections in the pool.

    Returns
    -------
    Store
        A store bound to the newly opened pool.

    Raises
    ------
    OSError
        If the server stays unreachable after all retry attempts.
    """
    settings = get_settings()
    pool = await asyncpg.create_pool(
        dsn or build_dsn(settings),
        min_size=min_size if min_size is not None else settings.db_pool_min_size,
        max_size=max_size if max_size is not None else settings.db_pool_max_size,
        command_timeout=settings.db_command_timeout,
    )
    log.info(
        "Connection pool opened",
        extra={"min_size": pool.get_min_size(), "max_size": pool.get_max_size()},
    )
    return Store(pool, prefetch=settings.db_stream_prefetch)


class PoolManager:
    """
    Thread-safe singleton owning the process-wide store.

    Handles lifecycle management with automatic cleanup via atexit hook.
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        """Create or return the singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._store: Optional[Store] = None
                cls._instance._open_lock = asyncio.Lock()
                # Register cleanup on exit
                atexit.register(cls._instance.terminate)
            return cls._instance

    async def get_store(self, dsn: Optional[str] = None) -> Store:
        """
        Get or create the shared store. Later calls return the same store and
        ignore ``dsn``; the pool is never re-initialized implicitly.
        """
        async with self._open_lock:
            if self._store is None:
                self._store = await create_store(dsn)
            return self._store

    async def close_all(self) -> None:
        """Close the managed pool and forget it."""
        store, self._store = self._store, None
        if store is not None:
            await store.close()
            log.info("Connection pool closed")

    def terminate(self) -> None:
        """
        Terminate the pool without awaiting. Called automatically on exit.
        """
        store, self._store = self._store, None
        if store is not None:
            store.terminate()


async def get_store(dsn: Optional[str] = None) -> Store:
    """Shortcut for ``PoolManager().get_store()``."""
    return await PoolManager().get_store(dsn)


__all__ = [
    "PoolManager",
    "build_dsn",
    "create_store",
    "get_store",
]
