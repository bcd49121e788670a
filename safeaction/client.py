"""
safeaction.client - Client Invocation State Machine

Calls server actions through a transport and tracks the invocation state:

    idle -> executing -> hasSucceeded | hasErrored      (reset() -> idle)

Results are classified as: data -> hasSucceeded; serverError or
validationErrors -> hasErrored. A transport failure (network error, non-2xx
status, malformed payload) is converted into a synthesized serverError so
callers only ever deal with ActionResults.

Lifecycle callbacks fire in order: on_execute -> on_success | on_error ->
on_settled. Concurrent calls are allowed (no debouncing); each drives the
same shared state and the last call to settle determines the final state.

Example:
    >>> from myapp.generated.actions import createPost
    >>>
    >>> async with HttpxActionTransport(base_url="http://localhost:8000") as transport:
    ...     state = use_action(createPost, transport, on_success=lambda data, input: print(data))
    ...     state.subscribe(lambda s: render(s.status))
    ...     result = await state.execute_async({"title": "Hello"})
    ...     if state.has_errored:
    ...         print(state.server_error or state.validation_errors)
"""

import asyncio
import inspect
import json
import logging
from collections.abc import Callable
from typing import Any, Generic, Protocol

import httpx
from pydantic_core import to_jsonable_python

from safeaction.discovery import ACTIONS_ROUTE_PREFIX
from safeaction.errors import GENERIC_SERVER_ERROR
from safeaction.references import SafeActionReference
from safeaction.types import (
    ActionResult,
    ActionStatus,
    InputT,
    OutputT,
    ServerErrorT,
    ValidationErrors,
)

logger = logging.getLogger(__name__)

StateListener = Callable[["UseAction[Any, Any, Any]"], None]
Callback = Callable[..., Any]


class ActionTransport(Protocol):
    """
    Protocol for delivering an action invocation to the server.

    Implementations return the decoded response payload
    (``{"data": ...}`` | ``{"serverError": ...}`` | ``{"validationErrors": ...}``)
    and raise on transport-level failures.
    """

    async def invoke(self, reference: SafeActionReference[Any, Any, Any], input: Any) -> Any:
        ...


class HttpxActionTransport:
    """
    HTTP transport for action references using httpx.

    GET actions send their input JSON-encoded in the ``input`` query
    parameter; all other methods send it as the JSON body.

    Args:
        base_url: Server base URL (ignored when ``client`` is given)
        client: Optional pre-configured AsyncClient; not closed by this transport
        prefix: Route namespace of the action endpoints
        timeout: Request timeout in seconds for an owned client
    """

    def __init__(
        self,
        base_url: str = "",
        client: httpx.AsyncClient | None = None,
        prefix: str = ACTIONS_ROUTE_PREFIX,
        timeout: float = 30.0,
    ) -> None:
        self.prefix = prefix
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def invoke(self, reference: SafeActionReference[Any, Any, Any], input: Any) -> Any:
        url = reference.url(self.prefix)
        body = to_jsonable_python(input)

        if reference.method.carries_body:
            response = await self._client.request(reference.method.value, url, json=body)
        else:
            params = {} if body is None else {"input": json.dumps(body)}
            response = await self._client.request(reference.method.value, url, params=params)

        response.raise_for_status()
        return response.json()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpxActionTransport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


class UseAction(Generic[InputT, OutputT, ServerErrorT]):
    """
    Observable invocation state for one action reference.

    State attributes are read-only; listeners registered with ``subscribe``
    are notified after every state change.
    """

    def __init__(
        self,
        reference: SafeActionReference[InputT, OutputT, ServerErrorT],
        transport: ActionTransport,
        *,
        on_execute: Callback | None = None,
        on_success: Callback | None = None,
        on_error: Callback | None = None,
        on_settled: Callback | None = None,
    ) -> None:
        self.reference = reference
        self._transport = transport
        self._on_execute = on_execute
        self._on_success = on_success
        self._on_error = on_error
        self._on_settled = on_settled

        self._status = ActionStatus.IDLE
        self._data: OutputT | None = None
        self._server_error: ServerErrorT | None = None
        self._validation_errors: ValidationErrors | None = None
        self._listeners: list[StateListener] = []
        self._tasks: set[asyncio.Task[Any]] = set()

    # -- State -----------------------------------------------------------------

    @property
    def status(self) -> ActionStatus:
        return self._status

    @property
    def data(self) -> OutputT | None:
        return self._data

    @property
    def server_error(self) -> ServerErrorT | None:
        return self._server_error

    @property
    def validation_errors(self) -> ValidationErrors | None:
        return self._validation_errors

    @property
    def is_idle(self) -> bool:
        return self._status is ActionStatus.IDLE

    @property
    def is_executing(self) -> bool:
        return self._status is ActionStatus.EXECUTING

    @property
    def has_succeeded(self) -> bool:
        return self._status is ActionStatus.HAS_SUCCEEDED

    @property
    def has_errored(self) -> bool:
        return self._status is ActionStatus.HAS_ERRORED

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state-change listener. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _update(self, **changes: Any) -> None:
        for name, value in changes.items():
            setattr(self, f"_{name}", value)
        for listener in list(self._listeners):
            listener(self)

    async def _fire(self, callback: Callback | None, **kwargs: Any) -> None:
        if callback is None:
            return
        returned = callback(**kwargs)
        if inspect.isawaitable(returned):
            await returned

    # -- Invocation ------------------------------------------------------------

    async def _dispatch(self, input: InputT) -> ActionResult[Any, Any]:
        try:
            payload = await self._transport.invoke(self.reference, input)
            result = ActionResult.from_payload(payload)
        except Exception as e:
            logger.warning(
                f"Action {self.reference.path} transport failed: {e}",
                extra={"action": self.reference.path, "error": str(e)},
            )
            return ActionResult.failure(str(e) or GENERIC_SERVER_ERROR)

        if result.variant is None:
            logger.warning(
                f"Action {self.reference.path} returned an empty result",
                extra={"action": self.reference.path},
            )
            return ActionResult.failure(GENERIC_SERVER_ERROR)
        return result

    async def execute_async(self, input: InputT) -> ActionResult[OutputT, ServerErrorT]:
        """
        Invoke the action and settle the shared state.

        Returns:
            The ActionResult (transport failures become a serverError result)
        """
        self._update(status=ActionStatus.EXECUTING, server_error=None, validation_errors=None)
        await self._fire(self._on_execute, input=input)

        result = await self._dispatch(input)

        if result.is_success:
            self._update(data=result.data, status=ActionStatus.HAS_SUCCEEDED)
            await self._fire(self._on_success, data=result.data, input=input)
        elif result.is_server_error:
            self._update(server_error=result.server_error, status=ActionStatus.HAS_ERRORED)
            await self._fire(
                self._on_error, error={"serverError": result.server_error}, input=input
            )
        else:
            self._update(
                validation_errors=result.validation_errors, status=ActionStatus.HAS_ERRORED
            )
            await self._fire(
                self._on_error,
                error={"validationErrors": result.validation_errors},
                input=input,
            )

        await self._fire(self._on_settled, result=result, input=input)
        return result  # type: ignore[return-value]

    def execute(self, input: InputT) -> "asyncio.Task[ActionResult[OutputT, ServerErrorT]]":
        """Fire-and-forget variant of ``execute_async``; requires a running loop."""
        task = asyncio.get_running_loop().create_task(self.execute_async(input))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def reset(self) -> None:
        """Return to idle and clear data and errors."""
        self._update(
            status=ActionStatus.IDLE, data=None, server_error=None, validation_errors=None
        )


def use_action(
    reference: SafeActionReference[InputT, OutputT, ServerErrorT],
    transport: ActionTransport,
    *,
    on_execute: Callback | None = None,
    on_success: Callback | None = None,
    on_error: Callback | None = None,
    on_settled: Callback | None = None,
) -> UseAction[InputT, OutputT, ServerErrorT]:
    """
    Create invocation state for ``reference``.

    Callbacks receive keyword arguments and may be sync or async:
    on_execute(input), on_success(data, input), on_error(error, input),
    on_settled(result, input).
    """
    return UseAction(
        reference,
        transport,
        on_execute=on_execute,
        on_success=on_success,
        on_error=on_error,
        on_settled=on_settled,
    )


__all__ = ["ActionTransport", "HttpxActionTransport", "UseAction", "use_action"]
