"""
Criteria compiler: turns a ``Criteria`` descriptor into SQL text plus an
ordered parameter list using PostgreSQL ``$n`` placeholders.

Every caller-supplied value travels as a parameter. Only identifiers (table,
columns, sort column) and the sort direction are written into the SQL text,
and each of those comes from the model's declared fields or an enum.

Dialect conventions:
- keywords are upper-case, identifiers are double-quoted;
- SELECT/WHERE/ORDER BY columns are qualified with the table name;
- LIMIT is a parameter like any other value.

Usage:
    compiler = QueryCompiler("users", fields)
    query = compiler.compile(Criteria.select("users", where={"username": "bob"}))
    query.sql     # 'SELECT "users".* FROM "users" WHERE "users"."username" = $1 ...'
    query.params  # ['bob', 20]
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, NamedTuple, Optional

from pgmodel.domain.criteria import Comparison, Criteria, Operator, QueryKind
from pgmodel.domain.fields import PRIMARY_KEY, FieldDefinition
from pgmodel.errors import ValidationError
from pgmodel.naming import quote_identifier

_BINARY_OPERATORS: Dict[Operator, str] = {
    Operator.EQ: "=",
    Operator.NE: "<>",
    Operator.LT: "<",
    Operator.LTE: "<=",
    Operator.GT: ">",
    Operator.GTE: ">=",
    Operator.LIKE: "LIKE",
    Operator.ILIKE: "ILIKE",
}


class CompiledQuery(NamedTuple):
    sql: str
    params: List[Any]


class _Params:
    """Collects parameter values and hands out their placeholders in order."""

    def __init__(self) -> None:
        self.values: List[Any] = []

    def add(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


class QueryCompiler:
    """
    Compiler bound to one table and its declared fields.

    Parameters
    ----------
    table : str
        Table name the model is bound to.
    fields : Mapping[str, FieldDefinition]
        Declared columns; any other column name is rejected.
    """

    def __init__(self, table: str, fields: Mapping[str, FieldDefinition]) -> None:
        self.table = table
        self.fields = dict(fields)

    def compile(self, criteria: Criteria) -> CompiledQuery:
        """Dispatch on the criteria kind."""
        if criteria.kind is QueryKind.SELECT:
            return self._select(criteria)
        if criteria.kind is QueryKind.INSERT:
            return self._insert(criteria)
        if criteria.kind is QueryKind.UPDATE:
            return self._update(criteria)
        if criteria.kind is QueryKind.DELETE:
            return self._delete(criteria)
        if criteria.kind is QueryKind.CREATE_TABLE:
            return self._create_table(criteria)
        raise ValidationError(f"Unsupported query kind: {criteria.kind!r}")

    # Identifiers

    def _check_column(self, column: str) -> str:
        if column not in self.fields:
            raise ValidationError(f"Unknown column '{column}' for table '{self.table}'")
        return column

    def _qualified(self, column: str) -> str:
        return f"{quote_identifier(self.table)}.{quote_identifier(self._check_column(column))}"

    def _returning(self, criteria: Criteria) -> str:
        columns = criteria.returning if criteria.returning is not None else list(self.fields)
        if not columns:
            return ""
        quoted = ", ".join(quote_identifier(self._check_column(c)) for c in columns)
        return f" RETURNING {quoted}"

    # WHERE

    def _where(self, where: Optional[Mapping[str, Any]], params: _Params) -> str:
        if not where:
            return ""
        predicates: List[str] = []
        for column, expected in where.items():
            target = self._qualified(column)
            for comparison in _comparisons(expected):
                predicates.append(_predicate(target, comparison, params))
        return " WHERE " + " AND ".join(predicates)

    # Statements

    def _select(self, criteria: Criteria) -> CompiledQuery:
        params = _Params()
        table = quote_identifier(self.table)

        if criteria.count:
            projection = "count(*)"
        elif criteria.columns:
            projection = ", ".join(self._qualified(c) for c in criteria.columns)
        else:
            projection = f"{table}.*"

        sql = f"SELECT {projection} FROM {table}"
        sql += self._where(criteria.where, params)

        if not criteria.count:
            if criteria.order is not None:
                sort = self._qualified(criteria.order.column)
                sql += f" ORDER BY {sort} {criteria.order.direction.value}"
            sql += f" LIMIT {params.add(criteria.limit)}"

        return CompiledQuery(sql, params.values)

    def _insert(self, criteria: Criteria) -> CompiledQuery:
        if not criteria.values:
            raise ValidationError("INSERT requires at least one value")
        params = _Params()
        columns = ", ".join(quote_identifier(self._check_column(c)) for c in criteria.values)
        placeholders = ", ".join(params.add(v) for v in criteria.values.values())
        sql = (
            f"INSERT INTO {quote_identifier(self.table)} ({columns}) "
            f"VALUES ({placeholders}){self._returning(criteria)}"
        )
        return CompiledQuery(sql, params.values)

    def _update(self, criteria: Criteria) -> CompiledQuery:
        if not criteria.values:
            raise ValidationError("UPDATE requires at least one value")
        key = _primary_key_value(criteria)
        params = _Params()
        assignments = ", ".join(
            f"{quote_identifier(self._check_column(column))} = {params.add(value)}"
            for column, value in criteria.values.items()
        )
        sql = (
            f"UPDATE {quote_identifier(self.table)} SET {assignments} "
            f"WHERE {quote_identifier(PRIMARY_KEY)} = {params.add(key)}"
            f"{self._returning(criteria)}"
        )
        return CompiledQuery(sql, params.values)

    def _delete(self, criteria: Criteria) -> CompiledQuery:
        key = _primary_key_value(criteria)
        params = _Params()
        sql = (
            f"DELETE FROM {quote_identifier(self.table)} "
            f"WHERE {quote_identifier(PRIMARY_KEY)} = {params.add(key)}"
        )
        return CompiledQuery(sql, params.values)

    def _create_table(self, criteria: Criteria) -> CompiledQuery:
        definition = criteria.definition if criteria.definition is not None else self.fields
        if not definition:
            raise ValidationError(f"CREATE TABLE '{self.table}' needs at least one column")
        columns = ", ".join(field.to_sql(name) for name, field in definition.items())
        sql = f"CREATE TABLE IF NOT EXISTS {quote_identifier(self.table)} ({columns})"
        return CompiledQuery(sql, [])


def _primary_key_value(criteria: Criteria) -> Any:
    where = criteria.where or {}
    if PRIMARY_KEY not in where or where[PRIMARY_KEY] is None:
        raise ValidationError(f"{criteria.kind.value.upper()} requires where={{'id': ...}}")
    return where[PRIMARY_KEY]


def _comparisons(expected: Any) -> List[Comparison]:
    """Normalize a WHERE value into one or more comparisons (AND-ed)."""
    if isinstance(expected, Comparison):
        return [expected]
    if isinstance(expected, Mapping):
        if not expected:
            raise ValidationError("Empty comparison mapping in WHERE clause")
        comparisons = []
        for op, value in expected.items():
            try:
                comparisons.append(Comparison(op=Operator(op), value=value))
            except ValueError:
                raise ValidationError(f"Unknown comparison operator '{op}'") from None
        return comparisons
    return [Comparison(op=Operator.EQ, value=expected)]


def _predicate(target: str, comparison: Comparison, params: _Params) -> str:
    op, value = comparison.op, comparison.value

    if op is Operator.IS_NULL:
        return f"{target} IS NULL" if value else f"{target} IS NOT NULL"
    if value is None and op is Operator.EQ:
        return f"{target} IS NULL"
    if value is None and op is Operator.NE:
        return f"{target} IS NOT NULL"

    if op in (Operator.IN, Operator.NOT_IN):
        if isinstance(value, (str, bytes)) or not hasattr(value, "__iter__"):
            raise ValidationError(f"'{op.value}' expects a list of values, got {value!r}")
        items = list(value)
        if not items:
            return "FALSE" if op is Operator.IN else "TRUE"
        placeholders = ", ".join(params.add(item) for item in items)
        keyword = "IN" if op is Operator.IN else "NOT IN"
        return f"{target} {keyword} ({placeholders})"

    return f"{target} {_BINARY_OPERATORS[op]} {params.add(value)}"


__all__ = ["CompiledQuery", "QueryCompiler", "quote_identifier"]
