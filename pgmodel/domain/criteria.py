"""
Criteria descriptors: the structured shape of a query before it becomes SQL.

A ``Criteria`` is built by a model verb and consumed by the compiler within
the same call; it is never stored.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from pgmodel.domain.fields import PRIMARY_KEY, FieldDefinition
from pgmodel.errors import ValidationError

DEFAULT_LIMIT = 20


class QueryKind(str, Enum):
    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    CREATE_TABLE = "create-table"


class SortOrder(str, Enum):
    ASC = "ASC"
    DESC = "DESC"

    @classmethod
    def parse(cls, value: "str | SortOrder") -> "SortOrder":
        """Accept 'asc', 'DESC', or a SortOrder; anything else raises ValueError."""
        if isinstance(value, SortOrder):
            return value
        return cls(str(value).upper())


class Operator(str, Enum):
    EQ = "eq"
    NE = "ne"
    LT = "lt"
    LTE = "lte"
    GT = "gt"
    GTE = "gte"
    LIKE = "like"
    ILIKE = "ilike"
    IN = "in"
    NOT_IN = "not_in"
    IS_NULL = "is_null"


class Comparison(BaseModel):
    """
    A structured WHERE leaf: ``Comparison(op="gte", value=18)``.

    Plain mappings such as ``{"gte": 18}`` are accepted wherever a
    Comparison is, and are converted by the compiler.
    """

    op: Operator
    value: Any = None

    model_config = {"frozen": True}


class Ordering(BaseModel):
    column: str = PRIMARY_KEY
    direction: SortOrder = SortOrder.ASC

    model_config = {"frozen": True}


class Criteria(BaseModel):
    """
    Description of one statement.

    Attributes
    ----------
    kind : QueryKind
        Statement shape.
    table : str
        Target table (from model metadata, never user input).
    columns : list[str] | None
        Projection for selects; None means every column.
    count : bool
        Select ``count(*)`` instead of rows; drops ORDER BY and LIMIT.
    where : mapping | None
        Column -> value (equality) or column -> comparison.
    order : Ordering | None
        Sort column and direction for selects; None emits no ORDER BY.
    limit : int
        Row cap for selects.
    values : mapping | None
        Column -> value for insert/update.
    returning : list[str] | None
        Columns for RETURNING on insert/update.
    definition : mapping | None
        Column definitions for create-table.
    """

    kind: QueryKind
    table: str
    columns: Optional[List[str]] = None
    count: bool = False
    where: Optional[Dict[str, Any]] = None
    order: Optional[Ordering] = Field(default_factory=Ordering)
    limit: int = DEFAULT_LIMIT
    values: Optional[Dict[str, Any]] = None
    returning: Optional[List[str]] = None
    definition: Optional[Dict[str, FieldDefinition]] = None

    model_config = {
        "frozen": True,
        "arbitrary_types_allowed": True,
    }

    @classmethod
    def select(
        cls,
        table: str,
        *,
        where: Optional[Mapping[str, Any]] = None,
        limit: int = DEFAULT_LIMIT,
        order: "str | SortOrder" = SortOrder.ASC,
        sort: str = PRIMARY_KEY,
        columns: Optional[List[str]] = None,
    ) -> "Criteria":
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValidationError(f"limit must be a positive integer, got {limit!r}")
        try:
            direction = SortOrder.parse(order)
        except ValueError:
            raise ValidationError(f"order must be ASC or DESC, got {order!r}") from None
        return cls(
            kind=QueryKind.SELECT,
            table=table,
            where=dict(where) if where else None,
            limit=limit,
            order=Ordering(column=sort, direction=direction),
            columns=columns,
        )


__all__ = [
    "Comparison",
    "Criteria",
    "DEFAULT_LIMIT",
    "Operator",
    "Ordering",
    "QueryKind",
    "SortOrder",
]
