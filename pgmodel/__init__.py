"""
pgmodel - a minimal async object-relational mapping layer for PostgreSQL.

Model classes map onto one table each. Instances track which fields changed
since they were loaded, and the class-level verbs (``all``, ``find``,
``one``, ``count``) plus ``save``/``delete`` are compiled into parameterized
SQL and executed through a shared asyncpg pool:

- ``pgmodel.model``: the model runtime and schema registry
- ``pgmodel.compiler``: criteria -> SQL text and ``$n`` parameters
- ``pgmodel.disposition``: how result rows become instances
- ``pgmodel.infrastructure``: the asyncpg store and pool factory
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from pgmodel.compiler import CompiledQuery, QueryCompiler
from pgmodel.config import Settings, get_settings
from pgmodel.disposition import Disposition, RowStream
from pgmodel.domain.criteria import Comparison, Criteria, Operator, QueryKind, SortOrder
from pgmodel.domain.fields import FieldDefinition
from pgmodel.errors import (
    DatastoreError,
    NotFoundError,
    PgModelError,
    SchemaNotInitializedError,
    ValidationError,
)
from pgmodel.infrastructure import (
    ConnectionPool,
    PoolManager,
    QueryResult,
    Store,
    create_store,
    get_store,
)
from pgmodel.model import Model, ModelSchema, SchemaRegistry
from pgmodel.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Models
    "Model",
    "ModelSchema",
    "SchemaRegistry",
    "FieldDefinition",
    # Query construction
    "Comparison",
    "CompiledQuery",
    "Criteria",
    "Operator",
    "QueryCompiler",
    "QueryKind",
    "SortOrder",
    # Results
    "Disposition",
    "RowStream",
    # Store
    "ConnectionPool",
    "PoolManager",
    "QueryResult",
    "Store",
    "create_store",
    "get_store",
    # Errors
    "DatastoreError",
    "NotFoundError",
    "PgModelError",
    "SchemaNotInitializedError",
    "ValidationError",
    # Logging
    "configure_logging",
    "get_logger",
]
