"""
Model runtime: row-backed model classes over a shared connection pool.

Subclass ``Model`` once per table, declare columns with ``attribute()``,
bind the class to a pool with ``init()``, then query:

    class User(Model):
        pass

    User.attribute("username", {"type": "varchar(30)", "nullable": False})
    await User.init(store)

    bob = User({"username": "bob"})
    await bob.save()                      # INSERT ... RETURNING
    users = await User.find(where={"username": "bob"})
    total = await User.count()

An instance keeps two maps: ``canonical`` (last confirmed persisted state)
and ``dirty`` (local changes). Reads prefer dirty, writes only touch dirty,
and a successful save folds the returned row into canonical.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Awaitable, ClassVar, Dict, List, Mapping, Optional, Sequence, Type, TypeVar

from pgmodel.config import get_settings
from pgmodel.compiler import CompiledQuery, QueryCompiler
from pgmodel.disposition import Disposition, RowStream, materialize
from pgmodel.domain.criteria import DEFAULT_LIMIT, Criteria, QueryKind, SortOrder
from pgmodel.domain.fields import (
    PRIMARY_KEY,
    FieldDefinition,
    FieldSpec,
    as_field_definition,
    merge_fields,
)
from pgmodel.errors import NotFoundError, SchemaNotInitializedError, ValidationError
from pgmodel.infrastructure.store import ConnectionPool
from pgmodel.naming import table_name_for
from pgmodel.utils.logging import get_logger

log = get_logger(__name__)
_query_logger = get_logger("pgmodel.query")

M = TypeVar("M", bound="Model")

_MISSING = object()


class ModelSchema:
    """
    Per-class schema handle produced by ``Model.init()``.

    Holds the table name, the merged field map, the bound pool, and a
    compiler for that table.
    """

    def __init__(
        self,
        model: type,
        table: str,
        fields: Mapping[str, FieldDefinition],
        pool: ConnectionPool,
    ) -> None:
        self.model = model
        self.table = table
        self.fields: Dict[str, FieldDefinition] = dict(fields)
        self.pool = pool
        self.compiler = QueryCompiler(table, self.fields)

    def compile(self, criteria: Criteria) -> CompiledQuery:
        return self.compiler.compile(criteria)

    def __repr__(self) -> str:
        return (
            f"ModelSchema(model={self.model.__name__}, table={self.table!r}, "
            f"fields={list(self.fields)})"
        )


class SchemaRegistry:
    """One ``ModelSchema`` per model class for the life of the process."""

    def __init__(self) -> None:
        self._schemas: Dict[type, ModelSchema] = {}
        self._lock = threading.Lock()

    def register(self, schema: ModelSchema) -> ModelSchema:
        """Register ``schema`` unless its model already has one; return the stored schema."""
        with self._lock:
            return self._schemas.setdefault(schema.model, schema)

    def get(self, model: type) -> ModelSchema:
        try:
            return self._schemas[model]
        except KeyError:
            raise SchemaNotInitializedError(model.__name__) from None

    def __contains__(self, model: type) -> bool:
        return model in self._schemas

    def discard(self, model: type) -> None:
        with self._lock:
            self._schemas.pop(model, None)


registry = SchemaRegistry()


class Model:
    """
    Base class for row-backed models.

    Parameters
    ----------
    data : Mapping[str, Any] | None
        Initial column values. A mapping carrying a truthy ``id`` is treated
        as a persisted row (canonical); anything else is a new record (dirty).
    """

    _attributes: ClassVar[Dict[str, FieldDefinition]] = {}
    _registry: ClassVar[SchemaRegistry] = registry

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._attributes = {}

    def __init__(self, data: Optional[Mapping[str, Any]] = None) -> None:
        data = dict(data or {})
        self._canonical: Dict[str, Any] = {}
        self._dirty: Dict[str, Any] = {}
        self._deleted = False
        if data.get(PRIMARY_KEY):
            self._canonical = data
        else:
            self._dirty = data

    # ------------------------------------------------------------------
    # Instance state

    @property
    def canonical(self) -> Dict[str, Any]:
        """Last confirmed persisted state (copy)."""
        return dict(self._canonical)

    @property
    def dirty(self) -> Dict[str, Any]:
        """Uncommitted local changes (copy)."""
        return dict(self._dirty)

    @property
    def table(self) -> str:
        return type(self).table_name()

    @property
    def id(self) -> Any:
        return self._canonical.get(PRIMARY_KEY)

    @property
    def is_new(self) -> bool:
        return not self._canonical.get(PRIMARY_KEY)

    @property
    def is_deleted(self) -> bool:
        return self._deleted

    def get(self, field: str) -> Any:
        if field in self._dirty:
            return self._dirty[field]
        return self._canonical.get(field)

    def set(self, field: str, value: Any) -> Any:
        self._dirty[field] = value
        return value

    def to_dict(self) -> Dict[str, Any]:
        """Observable logical state: canonical overlaid with dirty."""
        return {**self._canonical, **self._dirty}

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._canonical == other._canonical and self._dirty == other._dirty

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_dict()!r})"

    # ------------------------------------------------------------------
    # Instance mutators

    async def save(self: M) -> Any:
        """
        Persist the dirty fields.

        Inserts when the instance has no canonical id, updates by id
        otherwise. On success the returned row becomes canonical, dirty is
        cleared, and the instance is returned. With nothing dirty no query
        runs and ``[]`` is returned.

        Raises
        ------
        NotFoundError
            If an update matched no row.
        """
        if not self._dirty:
            return []

        cls = type(self)
        schema = cls.schema()
        values = dict(self._dirty)
        returning = list(schema.fields)
        if self.is_new:
            criteria = Criteria(
                kind=QueryKind.INSERT, table=schema.table, values=values, returning=returning
            )
        else:
            criteria = Criteria(
                kind=QueryKind.UPDATE,
                table=schema.table,
                values=values,
                where={PRIMARY_KEY: self.id},
                returning=returning,
            )
        query = schema.compile(criteria)

        row = await cls.run_query(query.sql, query.params, disposition=Disposition.LAST_LEAN)
        if not row:
            raise NotFoundError(schema.table, self.id)

        self._canonical = {**self._canonical, **row}
        for column, value in values.items():
            if self._dirty.get(column, _MISSING) is value:
                del self._dirty[column]
        return self

    async def delete(self) -> Any:
        """
        Delete the stored row. An instance that was never saved issues no
        query and ``[]`` is returned.
        """
        if self.is_new:
            return []

        cls = type(self)
        schema = cls.schema()
        criteria = Criteria(kind=QueryKind.DELETE, table=schema.table, where={PRIMARY_KEY: self.id})
        query = schema.compile(criteria)
        result = await cls.run_query(query.sql, query.params, disposition=Disposition.EMPTY)
        self._deleted = True
        return result

    # ------------------------------------------------------------------
    # Schema

    @classmethod
    def table_name(cls) -> str:
        return table_name_for(cls)

    @classmethod
    def attribute(cls, name: str, definition: FieldSpec) -> FieldDefinition:
        """
        Declare a column before ``init()``.

        Parameters
        ----------
        name : str
            Column name.
        definition : FieldDefinition | mapping
            Type and constraints, e.g. ``{"type": "varchar(30)"}``.
        """
        if not name:
            raise ValidationError(f"{cls.__name__}.attribute() must provide an attribute name")
        if cls in cls._registry:
            raise ValidationError(f"{cls.__name__} is already initialized; attributes are closed")
        field = as_field_definition(definition)
        cls._attributes[name] = field
        return field

    @classmethod
    def attributes(cls) -> Dict[str, FieldDefinition]:
        return dict(cls._attributes)

    @classmethod
    def schema(cls) -> ModelSchema:
        """The class's schema handle; raises SchemaNotInitializedError before ``init()``."""
        return cls._registry.get(cls)

    @classmethod
    def fields(cls) -> Dict[str, FieldDefinition]:
        return dict(cls.schema().fields)

    @classmethod
    async def init(cls, pool: ConnectionPool) -> ModelSchema:
        """
        Bind the class to ``pool`` and create its table if missing.

        A second call keeps the first binding and only re-issues the
        idempotent CREATE TABLE.
        """
        if cls is Model:
            raise ValidationError("Model itself cannot be initialized; subclass it")
        schema = cls._registry.register(
            ModelSchema(cls, cls.table_name(), merge_fields(cls._attributes), pool)
        )
        query = schema.compile(Criteria(kind=QueryKind.CREATE_TABLE, table=schema.table))
        await cls.run_query(query.sql, query.params, disposition=Disposition.EMPTY)
        log.info("Model initialized", extra={"model": cls.__name__, "table": schema.table})
        return schema

    # ------------------------------------------------------------------
    # Verbs. Each compiles eagerly so argument errors surface at call
    # time, and returns the awaitable that performs the query.

    @classmethod
    def all(
        cls: Type[M],
        limit: int = DEFAULT_LIMIT,
        order: "str | SortOrder" = SortOrder.ASC,
        sort: str = PRIMARY_KEY,
    ) -> Awaitable[List[M]]:
        """Fetch up to ``limit`` rows ordered by ``sort`` ``order``."""
        return cls.find(limit=limit, order=order, sort=sort)

    @classmethod
    def find(
        cls: Type[M],
        limit: int = DEFAULT_LIMIT,
        order: "str | SortOrder" = SortOrder.ASC,
        sort: str = PRIMARY_KEY,
        where: Optional[Mapping[str, Any]] = None,
    ) -> Awaitable[List[M]]:
        """
        Fetch rows matching ``where``.

        ``where`` maps columns to expected values, or to comparisons such as
        ``{"age": {"gte": 18}}``. Without ``where`` this is ``all()``.
        """
        schema = cls.schema()
        criteria = Criteria.select(schema.table, where=where, limit=limit, order=order, sort=sort)
        query = schema.compile(criteria)
        return cls.run_query(query.sql, query.params, disposition=Disposition.ALL_MODEL)

    @classmethod
    def one(cls: Type[M], id: Any) -> Awaitable[M]:
        """
        Fetch a single row by id.

        Raises
        ------
        ValidationError
            Immediately, when ``id`` is falsy.
        NotFoundError
            When awaited, if no row has that id.
        """
        if not id:
            raise ValidationError(f"{cls.__name__}.one() requires an ID parameter")
        schema = cls.schema()
        criteria = Criteria(
            kind=QueryKind.SELECT, table=schema.table, where={PRIMARY_KEY: id}, order=None, limit=1
        )
        query = schema.compile(criteria)
        return cls._one(query, id)

    @classmethod
    async def _one(cls: Type[M], query: CompiledQuery, id: Any) -> M:
        instance = await cls.run_query(query.sql, query.params, disposition=Disposition.FIRST_MODEL)
        if isinstance(instance, list):
            raise NotFoundError(cls.table_name(), id)
        return instance

    @classmethod
    def count(cls, where: Optional[Mapping[str, Any]] = None) -> Awaitable[int]:
        """Count rows matching ``where`` with ``count(*)``."""
        schema = cls.schema()
        criteria = Criteria(
            kind=QueryKind.SELECT,
            table=schema.table,
            where=dict(where) if where else None,
            count=True,
        )
        query = schema.compile(criteria)
        return cls._count(query)

    @classmethod
    async def _count(cls, query: CompiledQuery) -> int:
        row = await cls.run_query(query.sql, query.params, disposition=Disposition.FIRST_LEAN)
        if not row:
            return 0
        return int(row["count"])

    # ------------------------------------------------------------------
    # Execution

    @classmethod
    async def run_query(
        cls,
        sql: Optional[str] = None,
        params: Optional[Sequence[Any]] = None,
        *,
        stream: bool = False,
        lean: bool = False,
        first: bool = False,
        last: bool = True,
        disposition: Optional[Disposition] = None,
    ) -> Any:
        """
        Execute ``sql`` with ``$n`` ``params`` and shape the result.

        Parameters
        ----------
        sql : str | None
            Statement text. Without it the query hook still fires, nothing
            runs and ``[]`` is returned.
        params : sequence | None
            Positional parameter values.
        stream, lean, first, last : bool
            Option flags, resolved by ``Disposition.from_flags`` when
            ``disposition`` is not given.
        disposition : Disposition | None
            Explicit result shape; overrides the flags.

        Returns
        -------
        Any
            ``[]`` for an empty result, one row/instance, a list of them, or a
            ``RowStream`` when streaming.

        Notes
        -----
        A stream holds a pooled connection until it is exhausted or closed.
        Consume it with ``async with`` or ``to_list()``; an ``async for``
        that breaks early outside ``async with`` keeps the connection
        checked out until the event loop finalizes the generator.
        """
        params = list(params or [])
        cls._log_query(sql, params)
        if not sql:
            return []

        pool = cls.schema().pool
        if disposition is None:
            disposition = Disposition.from_flags(stream=stream, lean=lean, first=first, last=last)

        if disposition is Disposition.STREAM:
            return RowStream(pool.stream(sql, params), None if lean else cls._from_row)

        result = await pool.execute(sql, params)
        return materialize(disposition, result.rows, cls._from_row)

    @classmethod
    def _from_row(cls: Type[M], row: Mapping[str, Any]) -> M:
        return cls(row)

    @classmethod
    def _log_query(cls, sql: Optional[str], params: List[Any]) -> None:
        try:
            cls.query_log(sql, params)
        except Exception:  # noqa: BLE001 - the hook is observational only
            log.exception("Query log hook failed", extra={"model": cls.__name__})

    @classmethod
    def query_log(cls, sql: Optional[str], params: Sequence[Any]) -> None:
        """
        Observe a statement before it is submitted. Override to capture or
        silence query logging.
        """
        level = logging.INFO if get_settings().query_log else logging.DEBUG
        _query_logger.log(
            level,
            f"[QUERY] {sql}",
            extra={"sql": sql, "params": list(params), "model": cls.__name__},
        )


__all__ = ["Model", "ModelSchema", "SchemaRegistry", "registry"]
