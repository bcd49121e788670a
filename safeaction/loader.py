"""
safeaction.loader - Action Module Loading

Imports action files by path and extracts the SafeAction each one exports.
Action filenames are route names (``update-user.put.py``), not importable
module names, so modules are loaded with importlib from their file location
under a private ``_safeaction_actions`` namespace.

An action module exports its action as the module attribute ``action``; if
that attribute is absent, the module must define exactly one SafeAction at
module level.
"""

import importlib.util
import logging
import sys
from types import ModuleType
from typing import Any

from safeaction.builder import SafeAction
from safeaction.discovery import ActionFileInfo
from safeaction.errors import DiscoveryError

logger = logging.getLogger(__name__)

ACTION_EXPORT_ATTR = "action"
MODULE_NAMESPACE = "_safeaction_actions"


def module_name_for(info: ActionFileInfo) -> str:
    """Synthetic module name under which an action file is imported."""
    return f"{MODULE_NAMESPACE}.{info.export_name}_{info.method.value.lower()}"


def _import_file(info: ActionFileInfo) -> ModuleType:
    module_name = module_name_for(info)
    spec = importlib.util.spec_from_file_location(module_name, info.file_path)
    if spec is None or spec.loader is None:
        raise DiscoveryError(f"Cannot import action file {info.file_path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        sys.modules.pop(module_name, None)
        raise
    return module


def extract_action(module: ModuleType, origin: Any = None) -> SafeAction[Any, Any, Any]:
    """
    Find the SafeAction exported by ``module``.

    Raises:
        DiscoveryError: If no SafeAction (or more than one, without an
            ``action`` attribute) is exported
    """
    origin = origin or module.__name__
    exported = getattr(module, ACTION_EXPORT_ATTR, None)
    if isinstance(exported, SafeAction):
        return exported
    if exported is not None:
        raise DiscoveryError(
            f"'{ACTION_EXPORT_ATTR}' in {origin} is {type(exported).__name__}, not a SafeAction"
        )

    candidates: list[SafeAction[Any, Any, Any]] = []
    for value in vars(module).values():
        if isinstance(value, SafeAction) and not any(value is c for c in candidates):
            candidates.append(value)

    if len(candidates) == 1:
        return candidates[0]
    if not candidates:
        raise DiscoveryError(f"{origin} does not export a SafeAction")
    raise DiscoveryError(
        f"{origin} defines {len(candidates)} SafeActions; "
        f"export the routed one as '{ACTION_EXPORT_ATTR}'"
    )


def load_action(info: ActionFileInfo) -> SafeAction[Any, Any, Any]:
    """
    Import an action file and return its SafeAction.

    Args:
        info: Discovered action file

    Returns:
        The exported SafeAction

    Raises:
        DiscoveryError: If the module does not export exactly one SafeAction
        Exception: Any error raised while importing the module itself
    """
    module = _import_file(info)
    action = extract_action(module, origin=info.file_path)
    logger.debug(
        f"Loaded action {info.name} from {info.file_path}",
        extra={"action": info.name, "method": info.method.value},
    )
    return action


def load_actions(infos: list[ActionFileInfo]) -> list[tuple[ActionFileInfo, SafeAction[Any, Any, Any]]]:
    """Load every discovered action, preserving discovery order."""
    return [(info, load_action(info)) for info in infos]


__all__ = [
    "ACTION_EXPORT_ATTR",
    "extract_action",
    "load_action",
    "load_actions",
    "module_name_for",
]
