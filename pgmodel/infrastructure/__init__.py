"""
Infrastructure package for pgmodel.

Centralizes database connectivity concerns (pool creation, the store that
executes and streams statements). Keep this layer focused on I/O and
resource management, decoupled from SQL construction and models.
"""

from pgmodel.infrastructure.db_factory import PoolManager, build_dsn, create_store, get_store
from pgmodel.infrastructure.store import ConnectionPool, QueryResult, Store

__all__ = [
    "ConnectionPool",
    "PoolManager",
    "QueryResult",
    "Store",
    "build_dsn",
    "create_store",
    "get_store",
]
