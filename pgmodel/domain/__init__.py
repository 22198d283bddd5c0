"""
Domain package for pgmodel.

Value objects shared by the compiler and the model runtime: column
definitions and query criteria. No I/O lives here.
"""

from pgmodel.domain.criteria import (
    Comparison,
    Criteria,
    DEFAULT_LIMIT,
    Operator,
    Ordering,
    QueryKind,
    SortOrder,
)
from pgmodel.domain.fields import FieldDefinition, merge_fields

__all__ = [
    "Comparison",
    "Criteria",
    "DEFAULT_LIMIT",
    "FieldDefinition",
    "Operator",
    "Ordering",
    "QueryKind",
    "SortOrder",
    "merge_fields",
]
