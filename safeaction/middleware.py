"""
safeaction.middleware - Onion-Model Middleware Chain

Executes an ordered list of middleware as nested scopes around a terminal
operation. Middleware run outside-in on entry and inside-out on exit;
middleware[0] is the outermost scope.

Every middleware receives a MiddlewareArgs record and must await
``args.next(ctx=...)`` exactly once. ``next`` returns the inner ActionResult,
which the middleware may post-process and return. A middleware that returns
without calling ``next``, or that catches a failure raised through ``next``
and then returns no ActionResult of its own, breaks the contract and the
chain raises MiddlewareContractError.

Example:
    >>> async def with_user(args: MiddlewareArgs) -> ActionResult:
    ...     user = await load_user(args.event)
    ...     return await args.next(ctx={**args.ctx, "user": user})
    >>>
    >>> async def timed(args: MiddlewareArgs) -> ActionResult:
    ...     start = time()
    ...     result = await args.next()
    ...     logger.info("took %.1fms", (time() - start) * 1000)
    ...     return result
"""

import inspect
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from safeaction.errors import (
    MIDDLEWARE_CALLED_NEXT_TWICE,
    MIDDLEWARE_DROPPED_RESULT,
    MiddlewareContractError,
)
from safeaction.types import ActionResult, TransportEvent


# Sentinel: next() called without ctx keeps the current context.
_UNCHANGED: Any = object()

NextFn = Callable[..., Awaitable[ActionResult]]
InnerFn = Callable[[Any], Awaitable[ActionResult]]


@dataclass(frozen=True)
class MiddlewareArgs:
    """
    Arguments passed to a middleware.

    Attributes:
        ctx: Context produced by the previous middleware ({} for the first)
        client_input: The original, unparsed client input
        metadata: The action's metadata
        event: Transport event handle (the incoming request)
        next: Awaitable capability; ``await next(ctx=new_ctx)`` runs the rest
            of the chain and returns its ActionResult
    """

    ctx: Any
    client_input: Any
    metadata: Mapping[str, Any]
    event: TransportEvent
    next: NextFn


MiddlewareFn = Callable[[MiddlewareArgs], Awaitable[Any]]


def _wrap(
    middleware: MiddlewareFn,
    inner: InnerFn,
    client_input: Any,
    metadata: Mapping[str, Any],
    event: TransportEvent,
) -> InnerFn:
    """Wrap one middleware around ``inner`` with a called-once flag."""

    async def run(ctx: Any) -> ActionResult:
        called = False
        inner_result: ActionResult | None = None

        async def next_(ctx: Any = _UNCHANGED) -> ActionResult:
            nonlocal called, inner_result
            if called:
                raise MiddlewareContractError(MIDDLEWARE_CALLED_NEXT_TWICE)
            called = True
            inner_result = await inner(current_ctx if ctx is _UNCHANGED else ctx)
            return inner_result

        current_ctx = ctx
        returned = middleware(
            MiddlewareArgs(
                ctx=ctx,
                client_input=client_input,
                metadata=metadata,
                event=event,
                next=next_,
            )
        )
        if inspect.isawaitable(returned):
            returned = await returned

        if not called:
            raise MiddlewareContractError()

        if isinstance(returned, ActionResult):
            return returned
        if inner_result is None:
            # next() raised and the middleware caught it
            raise MiddlewareContractError(MIDDLEWARE_DROPPED_RESULT)
        return inner_result

    return run


async def execute_middleware_chain(
    middlewares: Sequence[MiddlewareFn],
    initial_ctx: Any,
    client_input: Any,
    metadata: Mapping[str, Any],
    event: TransportEvent,
    inner: InnerFn,
) -> ActionResult:
    """
    Run ``inner`` wrapped by ``middlewares`` (first element outermost).

    The chain is composed once per invocation from the static middleware list,
    innermost first. Exceptions raised by a middleware propagate unchanged.

    Args:
        middlewares: Ordered middleware (declaration order)
        initial_ctx: Context handed to the outermost middleware
        client_input: Raw client input, passed to every middleware
        metadata: Action metadata, passed to every middleware
        event: Transport event handle
        inner: Terminal operation receiving the final context

    Returns:
        The ActionResult produced by the chain

    Raises:
        MiddlewareContractError: If a middleware skips or repeats ``next``, or
            swallows an inner failure without returning a result
    """
    execute = inner
    for middleware in reversed(middlewares):
        execute = _wrap(middleware, execute, client_input, metadata, event)
    return await execute(initial_ctx)


__all__ = ["MiddlewareArgs", "MiddlewareFn", "NextFn", "execute_middleware_chain"]
