"""
Column definitions for model tables.

A ``FieldDefinition`` carries exactly what ``CREATE TABLE`` needs. The SQL
type and string defaults are programmer-supplied text and are emitted
verbatim. Numeric defaults render as literals, booleans as TRUE/FALSE.
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from pgmodel.errors import ValidationError
from pgmodel.naming import quote_identifier


class FieldDefinition(BaseModel):
    """
    Definition of a single column.
    """

    type: str = Field(..., min_length=1, description="SQL type, e.g. 'varchar(30)'.")
    primary_key: bool = Field(False, alias="primaryKey", description="PRIMARY KEY constraint.")
    nullable: bool = Field(True, description="False emits NOT NULL.")
    unique: bool = Field(False, description="UNIQUE constraint.")
    default: Optional[Union[bool, int, float, str]] = Field(
        None, description="Literal or SQL expression emitted after DEFAULT."
    )

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "extra": "forbid",
    }

    def to_sql(self, column: str) -> str:
        """Render the column definition for CREATE TABLE."""
        parts = [quote_identifier(column), self.type]
        if self.primary_key:
            parts.append("PRIMARY KEY")
        if not self.nullable:
            parts.append("NOT NULL")
        if self.unique:
            parts.append("UNIQUE")
        if self.default is not None:
            parts.append(f"DEFAULT {_render_default(self.default)}")
        return " ".join(parts)


def _render_default(value: Union[bool, int, float, str]) -> str:
    # strings are SQL expressions such as now() or 'pending'
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    return str(value)


FieldSpec = Union[FieldDefinition, Mapping[str, Any]]

PRIMARY_KEY = "id"

ID_FIELD = FieldDefinition(type="serial", primary_key=True)
CREATED_AT_FIELD = FieldDefinition(type="timestamptz", default="now()")
UPDATED_AT_FIELD = FieldDefinition(type="timestamptz", default="now()")


def as_field_definition(spec: FieldSpec) -> FieldDefinition:
    if isinstance(spec, FieldDefinition):
        return spec
    try:
        return FieldDefinition.model_validate(dict(spec))
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid field definition {dict(spec)!r}: {exc}") from exc


def merge_fields(attributes: Mapping[str, FieldDefinition]) -> Dict[str, FieldDefinition]:
    """
    Build the full column map: ``id`` first, declared attributes in order,
    then the ``created_at``/``updated_at`` timestamps.
    """
    fields: Dict[str, FieldDefinition] = {PRIMARY_KEY: ID_FIELD}
    for name, definition in attributes.items():
        fields[name] = definition
    fields["created_at"] = CREATED_AT_FIELD
    fields["updated_at"] = UPDATED_AT_FIELD
    return fields


__all__ = [
    "CREATED_AT_FIELD",
    "FieldDefinition",
    "FieldSpec",
    "ID_FIELD",
    "PRIMARY_KEY",
    "UPDATED_AT_FIELD",
    "as_field_definition",
    "merge_fields",
]
