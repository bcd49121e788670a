"""
safeaction.hooks - Action Lifecycle Hook Registry

Lets the host application observe action invocations (metrics, tracing,
alerting on defects) without touching the actions themselves. Observers are
async callables keyed by event name; each event has a typed ``emit_*`` helper
that fixes the keyword arguments observers receive.

An observer that raises is logged and skipped. The invocation, its result and
the remaining observers are unaffected.

Example:
    >>> hooks = HookRegistry()
    >>>
    >>> @hooks.on(HOOK_ACTION_DEFECT)
    ... async def report(action, error, kind, **kwargs):
    ...     sentry.capture_exception(error)
    >>>
    >>> action_client = create_safe_action_client(hooks=hooks)
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

HookHandler = Callable[..., Awaitable[None]]

# Event names and the keyword arguments their observers receive:
#
# action_start:   action, client_input
# action_end:     action, result, duration_ms
# action_defect:  action, error, kind   (kind: "middleware_contract" |
#                                        "output_validation" | "unexpected")
HOOK_ACTION_START = "action_start"
HOOK_ACTION_END = "action_end"
HOOK_ACTION_DEFECT = "action_defect"


class HookRegistry:
    """Observers of action lifecycle events, called in registration order."""

    def __init__(self) -> None:
        self._observers: dict[str, list[HookHandler]] = {}

    def register(self, event: str, handler: HookHandler) -> HookHandler:
        """Add an observer for ``event`` and return it."""
        self._observers.setdefault(event, []).append(handler)
        return handler

    def on(self, event: str) -> Callable[[HookHandler], HookHandler]:
        """Decorator form of ``register``."""
        return lambda handler: self.register(event, handler)

    def unregister(self, event: str, handler: HookHandler) -> bool:
        """Remove an observer. Returns True if it was registered."""
        observers = self._observers.get(event, [])
        if handler not in observers:
            return False
        observers.remove(handler)
        if not observers:
            del self._observers[event]
        return True

    def has_handlers(self, event: str) -> bool:
        return bool(self._observers.get(event))

    def clear(self, event: str | None = None) -> None:
        """Drop the observers of one event, or of every event."""
        if event is None:
            self._observers.clear()
        else:
            self._observers.pop(event, None)

    async def emit(self, event: str, **kwargs: Any) -> None:
        """Call each observer of ``event`` with ``kwargs``; failures are logged only."""
        # Snapshot so observers may unregister themselves while being called.
        for handler in tuple(self._observers.get(event, ())):
            try:
                await handler(**kwargs)
            except Exception:
                observer = getattr(handler, "__qualname__", repr(handler))
                logger.error(
                    f"Observer {observer} failed on '{event}'",
                    exc_info=True,
                    extra={"hook_event": event, "hook_handler": observer},
                )

    # -- Typed emitters used by the execution engine ---------------------------

    async def emit_action_start(self, action: Any, client_input: Any) -> None:
        await self.emit(HOOK_ACTION_START, action=action, client_input=client_input)

    async def emit_action_end(self, action: Any, result: Any, duration_ms: float) -> None:
        await self.emit(HOOK_ACTION_END, action=action, result=result, duration_ms=duration_ms)

    async def emit_action_defect(self, action: Any, error: BaseException, kind: str) -> None:
        await self.emit(HOOK_ACTION_DEFECT, action=action, error=error, kind=kind)


__all__ = [
    "HOOK_ACTION_DEFECT",
    "HOOK_ACTION_END",
    "HOOK_ACTION_START",
    "HookHandler",
    "HookRegistry",
]
