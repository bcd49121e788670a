"""
safeaction - Type-Safe Server Actions

Declare server-side functions ("actions") with validated input and output,
composable middleware and typed error channels, serve them over FastAPI from
a directory of action files, and call them from typed client references.

Example:
    >>> from pydantic import BaseModel, Field
    >>> from safeaction import ActionError, create_safe_action_client
    >>>
    >>> action_client = create_safe_action_client(handle_server_error=lambda e: str(e))
    >>>
    >>> class Greet(BaseModel):
    ...     name: str = Field(min_length=1)
    >>>
    >>> @action_client.schema(Greet).action
    ... async def action(args):
    ...     return {"greeting": f"Hello, {args.parsed_input.name}!"}
    >>>
    >>> (await action.execute({"name": "World"})).to_payload()
    {'data': {'greeting': 'Hello, World!'}}

Architecture:
    - builder / engine / middleware: declaring and executing actions
    - discovery / loader / handlers: mapping an actions directory to routes
    - references / client: typed stubs and the client invocation state machine
"""

__version__ = "0.1.0"

from safeaction.builder import SafeAction, SafeActionBuilder, create_safe_action_client
from safeaction.client import HttpxActionTransport, UseAction, use_action
from safeaction.discovery import ActionFileInfo, HttpMethod, scan_action_files
from safeaction.errors import (
    GENERIC_SERVER_ERROR,
    MIDDLEWARE_DID_NOT_CALL_NEXT,
    ActionError,
    ActionValidationError,
    return_validation_errors,
)
from safeaction.hooks import HookRegistry
from safeaction.middleware import MiddlewareArgs
from safeaction.references import SafeActionReference
from safeaction.types import ActionHandlerArgs, ActionResult, ActionStatus, ValidationErrors

__all__ = [
    "GENERIC_SERVER_ERROR",
    "MIDDLEWARE_DID_NOT_CALL_NEXT",
    "ActionError",
    "ActionFileInfo",
    "ActionHandlerArgs",
    "ActionResult",
    "ActionStatus",
    "ActionValidationError",
    "HookRegistry",
    "HttpMethod",
    "HttpxActionTransport",
    "MiddlewareArgs",
    "SafeAction",
    "SafeActionBuilder",
    "SafeActionReference",
    "UseAction",
    "ValidationErrors",
    "__version__",
    "create_safe_action_client",
    "return_validation_errors",
    "scan_action_files",
    "use_action",
]
