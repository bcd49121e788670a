"""
safeaction.builder - Immutable Action Builder

The fluent chain used to declare actions:

    create_safe_action_client() -> .schema() -> .use() -> .metadata() -> .action()

Every step returns a new builder snapshot; no step mutates an existing one,
so partial chains can be shared and branched freely:

    >>> base = create_safe_action_client(handle_server_error=lambda e: str(e))
    >>> authed = base.use(require_user)
    >>>
    >>> @authed.schema(CreatePost).action
    ... async def create_post(args: ActionHandlerArgs[CreatePost]) -> dict:
    ...     post = await posts.create(author=args.ctx["user"], title=args.parsed_input.title)
    ...     return {"id": post.id}
    >>>
    >>> result = await create_post.execute({"title": "Hello"}, request)

``action()`` is terminal: it returns a SafeAction, which has no chaining
methods and exposes a single ``execute(raw_input, event)`` entry point.
"""

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Generic, TypeVar

from safeaction.engine import ActionConfig, ErrorTranslator, execute_action
from safeaction.hooks import HookRegistry
from safeaction.middleware import MiddlewareFn
from safeaction.types import (
    ActionHandlerArgs,
    ActionResult,
    InputT,
    OutputT,
    ServerErrorT,
    TransportEvent,
)
from safeaction.validation import Schema, as_schema

NewInputT = TypeVar("NewInputT")


@dataclass(frozen=True)
class SafeAction(Generic[InputT, OutputT, ServerErrorT]):
    """
    A finalized, invocable action.

    The generic parameters carry the input, output and server-error types for
    static inference; at runtime the action only holds its configuration.
    """

    config: ActionConfig

    async def execute(
        self,
        raw_input: Any = None,
        event: TransportEvent = None,
    ) -> ActionResult[OutputT, ServerErrorT]:
        """
        Run the action against untrusted input.

        Never raises: all failures are mapped into the returned ActionResult.

        Args:
            raw_input: Client input (None when absent)
            event: Transport event handle (e.g. the incoming Request)
        """
        return await execute_action(raw_input, event, self.config, self)

    @property
    def metadata(self) -> Mapping[str, Any]:
        return self.config.metadata

    def __repr__(self) -> str:
        return f"SafeAction({self.config.label!r})"


@dataclass(frozen=True)
class SafeActionBuilder(Generic[InputT, ServerErrorT]):
    """
    Immutable configuration snapshot for an action under construction.

    Attributes:
        middleware_chain: Middleware in declaration order (first is outermost)
        input_validator: Schema validating raw input, if any
        output_validator: Schema validating handler output, if any
        action_metadata: Read-only metadata visible to middleware
        handle_server_error: Translator for unexpected exceptions
        hooks: Optional lifecycle hook registry
    """

    middleware_chain: tuple[MiddlewareFn, ...] = ()
    input_validator: Schema | None = None
    output_validator: Schema | None = None
    action_metadata: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    handle_server_error: ErrorTranslator | None = None
    hooks: HookRegistry | None = None

    def schema(self, schema: type[NewInputT] | Any) -> "SafeActionBuilder[NewInputT, ServerErrorT]":
        """Validate raw input against ``schema``; the handler receives the parsed value."""
        return replace(self, input_validator=as_schema(schema))  # type: ignore[return-value]

    def output_schema(self, schema: Any) -> "SafeActionBuilder[InputT, ServerErrorT]":
        """Validate the handler's return value against ``schema``."""
        return replace(self, output_validator=as_schema(schema))

    def use(self, middleware: MiddlewareFn) -> "SafeActionBuilder[InputT, ServerErrorT]":
        """Append a middleware; it runs after every middleware added before it."""
        if not callable(middleware):
            raise TypeError(f"Middleware must be callable, got {type(middleware).__name__}")
        return replace(self, middleware_chain=(*self.middleware_chain, middleware))

    def metadata(self, meta: Mapping[str, Any]) -> "SafeActionBuilder[InputT, ServerErrorT]":
        """Shallow-merge ``meta`` into the action metadata (later keys win)."""
        merged = {**self.action_metadata, **meta}
        return replace(self, action_metadata=MappingProxyType(merged))

    def action(
        self,
        handler: Callable[[ActionHandlerArgs[InputT]], Awaitable[OutputT] | OutputT],
    ) -> SafeAction[InputT, OutputT, ServerErrorT]:
        """
        Finalize the chain with a handler.

        The handler receives an ActionHandlerArgs (parsed_input, ctx, event)
        and may be sync or async. Usable as a decorator.

        Returns:
            An immutable SafeAction
        """
        if not callable(handler):
            raise TypeError(f"Action handler must be callable, got {type(handler).__name__}")

        config = ActionConfig(
            handler=handler,
            middlewares=self.middleware_chain,
            input_schema=self.input_validator,
            output_schema=self.output_validator,
            metadata=self.action_metadata,
            handle_server_error=self.handle_server_error,
            hooks=self.hooks,
        )
        return SafeAction(config)


def create_safe_action_client(
    handle_server_error: ErrorTranslator | None = None,
    *,
    hooks: HookRegistry | None = None,
) -> SafeActionBuilder[Any, str]:
    """
    Create a fresh action builder with optional global configuration.

    Args:
        handle_server_error: Translates unexpected exceptions into the
            ``serverError`` value. Must not raise. Without it, unexpected
            exceptions surface as "An unexpected error occurred".
        hooks: Lifecycle hooks notified of every invocation built from this client

    Example:
        >>> action_client = create_safe_action_client(
        ...     handle_server_error=lambda e: str(e),
        ... )
    """
    return SafeActionBuilder(handle_server_error=handle_server_error, hooks=hooks)


__all__ = ["SafeAction", "SafeActionBuilder", "create_safe_action_client"]
