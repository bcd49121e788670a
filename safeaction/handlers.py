"""
safeaction.handlers - Generated Request Handlers

Binds discovered actions to FastAPI routes. Each action gets one endpoint at
``{prefix}/{name}`` for its inferred method:

- body methods (POST, PUT, PATCH, DELETE): the JSON body is the input; an
  empty or malformed body degrades to ``None``, which then fails input
  validation normally
- GET: the ``input`` query parameter holds the JSON-encoded input; absent or
  malformed values degrade to ``None``

The response body is always the serialized ActionResult (HTTP 200), so the
discriminated-union shape reaches the client intact.

Example:
    >>> app = FastAPI()
    >>> app.include_router(build_actions_router("server/actions"))
    # POST /api/_actions/create-post, PUT /api/_actions/update-user, ...
"""

import json
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic_core import PydanticSerializationError

from safeaction.builder import SafeAction
from safeaction.discovery import (
    ACTIONS_ROUTE_PREFIX,
    ActionFileInfo,
    HttpMethod,
    scan_action_files,
)
from safeaction.errors import GENERIC_SERVER_ERROR
from safeaction.loader import load_actions
from safeaction.types import ActionResult

logger = logging.getLogger(__name__)

QUERY_INPUT_PARAM = "input"

ActionEndpoint = Callable[[Request], Awaitable[JSONResponse]]


async def read_body_input(request: Request) -> Any:
    """Parse the JSON request body, or None if it is empty or malformed."""
    body = await request.body()
    if not body:
        return None
    try:
        return json.loads(body)
    except (ValueError, UnicodeDecodeError):
        logger.debug("Unparseable action request body; treating input as absent")
        return None


def read_query_input(request: Request) -> Any:
    """Parse the JSON ``input`` query parameter, or None if absent or malformed."""
    raw = request.query_params.get(QUERY_INPUT_PARAM)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.debug("Unparseable action query input; treating input as absent")
        return None


def result_response(result: ActionResult, action_name: str = "") -> JSONResponse:
    """
    Serialize an ActionResult as the response body.

    JSONResponse renders eagerly with ``allow_nan=False``, so values pydantic
    cannot encode and non-finite floats (NaN, inf) both fail here and are
    replaced by the generic serverError.
    """
    try:
        return JSONResponse(content=result.to_payload())
    except (PydanticSerializationError, ValueError):
        logger.error(
            f"Result of action {action_name} is not JSON-serializable",
            exc_info=True,
            extra={"action": action_name, "outcome": result.variant},
        )
    return JSONResponse(content=ActionResult.failure(GENERIC_SERVER_ERROR).to_payload())


def create_action_handler(
    action: SafeAction[Any, Any, Any],
    method: HttpMethod = HttpMethod.POST,
    name: str = "",
) -> ActionEndpoint:
    """
    Create the FastAPI endpoint for one action.

    Args:
        action: The SafeAction to invoke
        method: Transport method; decides where input is read from
        name: Action name (for logs)

    Returns:
        Async endpoint ``(request) -> JSONResponse``
    """

    async def endpoint(request: Request) -> JSONResponse:
        if method.carries_body:
            raw_input = await read_body_input(request)
        else:
            raw_input = read_query_input(request)
        result = await action.execute(raw_input, request)
        return result_response(result, name)

    endpoint.__name__ = f"safe_action_{name or 'endpoint'}".replace("/", "_").replace("-", "_")
    return endpoint


def register_actions(
    router: APIRouter,
    actions: list[tuple[ActionFileInfo, SafeAction[Any, Any, Any]]],
    prefix: str = ACTIONS_ROUTE_PREFIX,
) -> None:
    """Add one route per loaded action to ``router``."""
    for info, action in actions:
        router.add_api_route(
            info.route(prefix),
            create_action_handler(action, info.method, info.name),
            methods=[info.method.value],
            name=f"safe_action:{info.name}",
            include_in_schema=True,
            tags=["actions"],
        )


def build_actions_router(
    actions_dir: str | Path,
    prefix: str = ACTIONS_ROUTE_PREFIX,
) -> APIRouter:
    """
    Discover, load and route every action under ``actions_dir``.

    Args:
        actions_dir: Directory scanned for action files
        prefix: Route namespace for action endpoints

    Returns:
        APIRouter with one route per action (empty if none were found)
    """
    router = APIRouter()
    infos = scan_action_files(actions_dir)
    if not infos:
        logger.info("No action files found.")
        return router

    logger.info(
        f"Found {len(infos)} action file(s): "
        + ", ".join(f"{info.method.value} {info.name}" for info in infos),
        extra={"actions_dir": str(actions_dir), "count": len(infos)},
    )
    register_actions(router, load_actions(infos), prefix)
    return router


__all__ = [
    "ACTIONS_ROUTE_PREFIX",
    "QUERY_INPUT_PARAM",
    "build_actions_router",
    "create_action_handler",
    "read_body_input",
    "read_query_input",
    "register_actions",
    "result_response",
]
