"""
safeaction.errors - Action Error Taxonomy

Exceptions that let handlers and middleware signal failures through the
typed result channel, plus the internal errors the runtime raises itself.

Classification order used by the execution engine:
1. Input shape rejection      -> validationErrors (never reaches middleware)
2. ActionValidationError      -> validationErrors
3. ActionError                -> serverError (exact message)
4. MiddlewareContractError    -> serverError (fixed diagnostic)
5. OutputValidationError      -> serverError (embeds field errors)
6. Any other exception        -> error translator, else GENERIC_SERVER_ERROR

Example:
    >>> from safeaction.errors import ActionError, return_validation_errors
    >>>
    >>> async def handler(args):
    ...     if args.parsed_input.email == "taken@example.com":
    ...         return_validation_errors({"email": ["This email is already taken"]})
    ...     if user.credits == 0:
    ...         raise ActionError("Not enough credits")
"""

import json
from typing import NoReturn

from pydantic import TypeAdapter, ValidationError

from safeaction.types import ValidationErrors

# Stable diagnostic strings (clients and tests match on these).
MIDDLEWARE_DID_NOT_CALL_NEXT = "Middleware did not call next()"
MIDDLEWARE_CALLED_NEXT_TWICE = "Middleware called next() more than once"
MIDDLEWARE_DROPPED_RESULT = "Middleware swallowed the inner failure without returning a result"
GENERIC_SERVER_ERROR = "An unexpected error occurred"

_VALIDATION_ERRORS: TypeAdapter[ValidationErrors] = TypeAdapter(ValidationErrors)


class SafeActionError(Exception):
    """Base exception for all safeaction errors."""


class ActionError(SafeActionError):
    """
    Raise inside a handler or middleware to return a user-facing server error.

    The message is returned verbatim as ``serverError`` and bypasses any
    configured error translator.

    Example:
        >>> raise ActionError("Not enough credits")
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ActionValidationError(SafeActionError):
    """
    Raise inside a handler or middleware to return per-field validation errors.

    Useful for checks a schema cannot express (uniqueness, cross-record rules).

    Example:
        >>> raise ActionValidationError({"email": ["This email is already taken"]})

    Raises:
        TypeError: If ``validation_errors`` is not a mapping of field names to
            lists of strings (a bare string message is rejected, not split)
    """

    def __init__(self, validation_errors: ValidationErrors) -> None:
        super().__init__("Validation failed")
        try:
            # returns a fresh dict and fresh lists
            self.validation_errors = _VALIDATION_ERRORS.validate_python(validation_errors)
        except ValidationError as e:
            raise TypeError(
                f"validation_errors must map field names to lists of strings: {e}"
            ) from e


def return_validation_errors(errors: ValidationErrors) -> NoReturn:
    """Shorthand for ``raise ActionValidationError(errors)``."""
    raise ActionValidationError(errors)


class MiddlewareContractError(SafeActionError):
    """
    Raised by the chain executor when a middleware breaks the ``next`` contract.

    This is a developer bug signal, never a client error.
    """

    def __init__(self, message: str = MIDDLEWARE_DID_NOT_CALL_NEXT) -> None:
        super().__init__(message)
        self.message = message


class OutputValidationError(SafeActionError):
    """
    Raised when a handler's return value fails the action's output schema.

    Output-shape violations indicate a handler bug, so they surface as a
    server error whose message embeds the serialized field errors.
    """

    def __init__(self, validation_errors: ValidationErrors) -> None:
        self.validation_errors = validation_errors
        self.message = f"Output validation failed: {json.dumps(validation_errors)}"
        super().__init__(self.message)


class DiscoveryError(SafeActionError):
    """
    Raised at build time when the actions directory cannot be mapped to routes.

    This can occur due to:
    - Two files resolving to the same action name
    - An action module that does not export a SafeAction
    - An action module that exports several SafeActions without an ``action`` attribute
    """


__all__ = [
    "GENERIC_SERVER_ERROR",
    "MIDDLEWARE_CALLED_NEXT_TWICE",
    "MIDDLEWARE_DROPPED_RESULT",
    "MIDDLEWARE_DID_NOT_CALL_NEXT",
    "ActionError",
    "ActionValidationError",
    "DiscoveryError",
    "MiddlewareContractError",
    "OutputValidationError",
    "SafeActionError",
    "return_validation_errors",
]
