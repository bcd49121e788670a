"""
safeaction.engine - Action Execution Engine

Runs a single action invocation and maps every outcome to an ActionResult.

Pipeline (strictly sequential, no retries):
1. Input validation   - rejection returns validationErrors immediately,
                        bypassing middleware and handler
2. Middleware chain   - onion model around the handler, starting from {}
3. Output validation  - rejection is a handler bug -> serverError
4. Result mapping     - every raised failure is classified by map_failure()

The engine never raises to its caller: whatever happens inside an action,
the transport receives exactly one of data / serverError / validationErrors.
Defects (middleware contract violations, output-shape violations and
unexpected exceptions) are logged and emitted on the ``action_defect`` hook;
the result sent to the client is sanitized.
"""

import inspect
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from time import time
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from safeaction.errors import (
    GENERIC_SERVER_ERROR,
    ActionError,
    ActionValidationError,
    MiddlewareContractError,
    OutputValidationError,
)
from safeaction.hooks import HookRegistry
from safeaction.middleware import MiddlewareFn, execute_middleware_chain
from safeaction.types import ActionHandlerArgs, ActionResult, TransportEvent
from safeaction.validation import Schema

if TYPE_CHECKING:
    from safeaction.builder import SafeAction

logger = logging.getLogger(__name__)

# Translates an unexpected exception into a server-error value. Must be total.
ErrorTranslator = Callable[[Exception], Any]
ActionHandler = Callable[[ActionHandlerArgs[Any]], Any]

DEFECT_MIDDLEWARE_CONTRACT = "middleware_contract"
DEFECT_OUTPUT_VALIDATION = "output_validation"
DEFECT_UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class ActionConfig:
    """
    Immutable configuration of a finalized action.

    Built by SafeActionBuilder.action() and owned by the SafeAction it
    produced.
    """

    handler: ActionHandler
    middlewares: tuple[MiddlewareFn, ...] = ()
    input_schema: Schema | None = None
    output_schema: Schema | None = None
    metadata: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    handle_server_error: ErrorTranslator | None = None
    hooks: HookRegistry | None = None

    @property
    def label(self) -> str:
        """Human-readable action label for logs."""
        for key in ("action_name", "actionName", "name"):
            value = self.metadata.get(key)
            if isinstance(value, str) and value:
                return value
        return getattr(self.handler, "__qualname__", repr(self.handler))


def defect_kind(error: BaseException) -> str | None:
    """
    Return the defect kind of a failure, or None for expected control flow.

    ActionError and ActionValidationError are deliberate signals from user
    code and are not defects.
    """
    if isinstance(error, (ActionError, ActionValidationError)):
        return None
    if isinstance(error, MiddlewareContractError):
        return DEFECT_MIDDLEWARE_CONTRACT
    if isinstance(error, OutputValidationError):
        return DEFECT_OUTPUT_VALIDATION
    return DEFECT_UNEXPECTED


def map_failure(
    error: Exception,
    handle_server_error: ErrorTranslator | None = None,
) -> ActionResult:
    """
    Classify a raised failure into exactly one ActionResult variant.

    Args:
        error: Exception raised by middleware, handler or output validation
        handle_server_error: Optional translator for unclassified exceptions

    Returns:
        validationErrors for ActionValidationError, otherwise serverError
    """
    if isinstance(error, ActionValidationError):
        try:
            return ActionResult.invalid(error.validation_errors)
        except ValidationError:
            # validation_errors was replaced after construction
            logger.error(
                "ActionValidationError carried malformed validation_errors; using generic message",
                exc_info=True,
                extra={"validation_errors": repr(error.validation_errors)},
            )
            return ActionResult.failure(GENERIC_SERVER_ERROR)

    if isinstance(error, (ActionError, MiddlewareContractError, OutputValidationError)):
        return ActionResult.failure(error.message)

    if handle_server_error is not None:
        try:
            return ActionResult.failure(handle_server_error(error))
        except Exception:
            translator_name = getattr(handle_server_error, "__qualname__", repr(handle_server_error))
            logger.error(
                f"Error translator {translator_name} raised; using generic message",
                exc_info=True,
                extra={"translator": translator_name, "original_error": str(error)},
            )

    return ActionResult.failure(GENERIC_SERVER_ERROR)


async def _run_pipeline(
    raw_input: Any,
    event: TransportEvent,
    config: ActionConfig,
    action: "SafeAction[Any, Any, Any] | None",
) -> ActionResult:
    label = config.label

    try:
        # 1. Input validation
        parsed_input = raw_input
        if config.input_schema is not None:
            outcome = config.input_schema.validate(raw_input)
            if not outcome.success:
                logger.debug(
                    f"Input validation failed for {label}",
                    extra={"action": label, "validation_errors": outcome.errors},
                )
                return ActionResult.invalid(outcome.errors or {})
            parsed_input = outcome.data

        async def invoke_handler(ctx: Any) -> ActionResult:
            # 2. Handler with the context produced by the last middleware
            data = config.handler(ActionHandlerArgs(parsed_input=parsed_input, ctx=ctx, event=event))
            if inspect.isawaitable(data):
                data = await data

            # 3. Output validation
            if config.output_schema is not None:
                outcome = config.output_schema.validate(data)
                if not outcome.success:
                    raise OutputValidationError(outcome.errors or {})
                data = outcome.data

            return ActionResult.success(data)

        result = await execute_middleware_chain(
            config.middlewares,
            {},
            raw_input,
            config.metadata,
            event,
            invoke_handler,
        )
        if not isinstance(result, ActionResult):
            raise TypeError(f"Middleware chain produced {type(result).__name__}, not ActionResult")
        return result

    except Exception as e:
        # 4. Failure classification
        kind = defect_kind(e)
        if kind is None:
            logger.debug(
                f"Action {label} signalled {type(e).__name__}: {e}",
                extra={"action": label, "error_type": type(e).__name__},
            )
        else:
            logger.error(
                f"Action {label} failed ({kind}): {e}",
                exc_info=True,
                extra={"action": label, "defect_kind": kind, "error": str(e)},
            )
            if config.hooks is not None:
                await config.hooks.emit_action_defect(action, e, kind)
        return map_failure(e, config.handle_server_error)


async def execute_action(
    raw_input: Any,
    event: TransportEvent,
    config: ActionConfig,
    action: "SafeAction[Any, Any, Any] | None" = None,
) -> ActionResult:
    """
    Execute one action invocation.

    This method NEVER raises exceptions - every failure is mapped into the
    returned ActionResult.

    Args:
        raw_input: Untrusted client input (None when absent or unparseable)
        event: Transport event handle passed through to middleware and handler
        config: The action's configuration
        action: The SafeAction being executed (reported to hooks)

    Returns:
        ActionResult with exactly one of data / serverError / validationErrors

    Example:
        >>> result = await execute_action({"name": "World"}, request, greet.config)
        >>> result.to_payload()
        {'data': {'greeting': 'Hello, World!'}}
    """
    start_time = time()
    if config.hooks is not None:
        await config.hooks.emit_action_start(action, raw_input)

    result = await _run_pipeline(raw_input, event, config, action)

    duration_ms = (time() - start_time) * 1000
    logger.debug(
        f"Action {config.label} finished",
        extra={
            "action": config.label,
            "duration_ms": duration_ms,
            "outcome": result.variant,
        },
    )
    if config.hooks is not None:
        await config.hooks.emit_action_end(action, result, duration_ms)
    return result


__all__ = [
    "DEFECT_MIDDLEWARE_CONTRACT",
    "DEFECT_OUTPUT_VALIDATION",
    "DEFECT_UNEXPECTED",
    "ActionConfig",
    "ActionHandler",
    "ErrorTranslator",
    "defect_kind",
    "execute_action",
    "map_failure",
]
