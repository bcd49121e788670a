"""
safeaction.validation - Schema Validation

Thin adapter over pydantic that treats schema validation as a black box:
validate an untrusted value and get back either the parsed data or a
mapping of field path -> ordered list of messages.

Any type pydantic's TypeAdapter understands can be used as a schema:
BaseModel subclasses, TypedDicts, dataclasses, ``Annotated`` constraints,
``list[int]``, and so on.

Example:
    >>> from pydantic import BaseModel, Field
    >>> class Greet(BaseModel):
    ...     name: str = Field(min_length=1)
    >>> schema = Schema(Greet)
    >>> schema.validate({"name": "World"}).data
    Greet(name='World')
    >>> schema.validate({"name": 3}).errors
    {'name': ['Input should be a valid string']}
"""

from dataclasses import dataclass
from typing import Any

from pydantic import TypeAdapter, ValidationError

from safeaction.types import ROOT_ERROR_KEY, ValidationErrors


@dataclass(frozen=True)
class ParseOutcome:
    """Outcome of validating a value against a schema."""

    success: bool
    data: Any = None
    errors: ValidationErrors | None = None


def format_validation_errors(exc: ValidationError) -> ValidationErrors:
    """
    Flatten a pydantic ValidationError into per-field message lists.

    Location parts are joined with ``.``; errors without a location are
    reported under ``_root``. Messages keep pydantic's order.
    """
    errors: ValidationErrors = {}
    for issue in exc.errors():
        path = ".".join(str(part) for part in issue["loc"]) or ROOT_ERROR_KEY
        errors.setdefault(path, []).append(issue["msg"])
    return errors


class Schema:
    """
    A reusable validator built once from a schema type.

    Attributes:
        type: The schema type the validator was built from (used by the
            reference generator to emit explicit generic parameters)
    """

    def __init__(self, schema: Any) -> None:
        if isinstance(schema, TypeAdapter):
            self.type = getattr(schema, "_type", Any)
            self._adapter = schema
        else:
            self.type = schema
            self._adapter = TypeAdapter(schema)

    def validate(self, value: Any) -> ParseOutcome:
        """Validate ``value``; never raises for invalid input."""
        try:
            parsed = self._adapter.validate_python(value)
        except ValidationError as e:
            return ParseOutcome(success=False, errors=format_validation_errors(e))
        return ParseOutcome(success=True, data=parsed)

    def __repr__(self) -> str:
        return f"Schema({getattr(self.type, '__name__', self.type)!r})"


def as_schema(schema: Any) -> Schema:
    """Coerce a schema type (or an existing Schema) into a Schema."""
    if isinstance(schema, Schema):
        return schema
    return Schema(schema)


__all__ = ["ParseOutcome", "Schema", "as_schema", "format_validation_errors"]
