"""
safeaction.types - Shared Action Types

Core data models shared by the server runtime and the client:
- ActionResult: the discriminated result returned by every action invocation
- ValidationErrors: per-field validation messages
- ActionStatus: states of the client invocation state machine
- ActionHandlerArgs: arguments passed to an action handler

Example:
    >>> result = ActionResult.success({"greeting": "Hello, World!"})
    >>> result.to_payload()
    {'data': {'greeting': 'Hello, World!'}}
    >>> ActionResult.failure("Not enough credits").to_payload()
    {'serverError': 'Not enough credits'}
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_core import to_jsonable_python

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")
ServerErrorT = TypeVar("ServerErrorT")

# Field path -> ordered list of messages. "_root" is used when no path applies.
ValidationErrors = dict[str, list[str]]

# Metadata attached to an action via the builder; visible to middleware.
ActionMetadata = dict[str, Any]

# Opaque per-request transport handle (a starlette Request when served by FastAPI).
TransportEvent = Any

ROOT_ERROR_KEY = "_root"

_RESULT_FIELDS = frozenset({"data", "server_error", "validation_errors"})


class ActionResult(BaseModel, Generic[OutputT, ServerErrorT]):
    """
    Uniform result of an action invocation.

    Exactly one of ``data``, ``server_error`` or ``validation_errors`` is
    populated on every result produced by the execution engine. "Populated"
    means explicitly set, so ``ActionResult.success(None)`` is a valid success
    carrying ``None`` as its data.

    On the wire the result is a JSON object with only the populated key:
    ``{"data": ...}``, ``{"serverError": ...}`` or ``{"validationErrors": {...}}``.

    Example:
        >>> result = ActionResult.invalid({"name": ["Name is required"]})
        >>> result.is_validation_error
        True
        >>> result.to_payload()
        {'validationErrors': {'name': ['Name is required']}}
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    data: OutputT | None = None
    server_error: ServerErrorT | None = Field(default=None, alias="serverError")
    validation_errors: ValidationErrors | None = Field(default=None, alias="validationErrors")

    @model_validator(mode="after")
    def _at_most_one_populated(self) -> "ActionResult[OutputT, ServerErrorT]":
        populated = self.model_fields_set & _RESULT_FIELDS
        if len(populated) > 1:
            raise ValueError(
                f"ActionResult may populate at most one of data, serverError, "
                f"validationErrors (got {sorted(populated)})"
            )
        return self

    # -- Constructors ----------------------------------------------------------

    @classmethod
    def success(cls, data: Any) -> "ActionResult[Any, Any]":
        """Build a success result."""
        return cls(data=data)

    @classmethod
    def failure(cls, server_error: Any) -> "ActionResult[Any, Any]":
        """Build a server-error result."""
        return cls(server_error=server_error)

    @classmethod
    def invalid(cls, validation_errors: ValidationErrors) -> "ActionResult[Any, Any]":
        """Build a validation-error result."""
        return cls(validation_errors=validation_errors)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ActionResult[Any, Any]":
        """Parse a wire payload (as produced by ``to_payload``) back into a result."""
        return cls.model_validate(payload)

    # -- Predicates ------------------------------------------------------------

    @property
    def is_success(self) -> bool:
        return "data" in self.model_fields_set

    @property
    def is_server_error(self) -> bool:
        return "server_error" in self.model_fields_set

    @property
    def is_validation_error(self) -> bool:
        return "validation_errors" in self.model_fields_set

    @property
    def variant(self) -> str | None:
        """Wire key of the populated field, or None for an empty result."""
        if self.is_success:
            return "data"
        if self.is_server_error:
            return "serverError"
        if self.is_validation_error:
            return "validationErrors"
        return None

    # -- Serialization ---------------------------------------------------------

    def to_payload(self) -> dict[str, Any]:
        """
        Serialize to the JSON-ready wire shape.

        Only the populated key is emitted, so the discriminated-union shape
        survives transport.

        Raises:
            pydantic_core.PydanticSerializationError: If data is not JSON-encodable
        """
        if self.is_success:
            return {"data": to_jsonable_python(self.data)}
        if self.is_server_error:
            return {"serverError": to_jsonable_python(self.server_error)}
        if self.is_validation_error:
            return {"validationErrors": self.validation_errors}
        return {}


class ActionStatus(str, Enum):
    """States of the client invocation state machine."""

    IDLE = "idle"
    EXECUTING = "executing"
    HAS_SUCCEEDED = "hasSucceeded"
    HAS_ERRORED = "hasErrored"


@dataclass(frozen=True)
class ActionHandlerArgs(Generic[InputT]):
    """Arguments passed to an action handler."""

    parsed_input: InputT
    ctx: Any
    event: TransportEvent = None


__all__ = [
    "ROOT_ERROR_KEY",
    "ActionHandlerArgs",
    "ActionMetadata",
    "ActionResult",
    "ActionStatus",
    "TransportEvent",
    "ValidationErrors",
]
