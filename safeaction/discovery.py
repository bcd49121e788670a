"""
safeaction.discovery - Action File Discovery

Scans an actions directory and derives each action's route identity from its
file path:

    actions/create-post.py         -> name "create-post",     method POST
    actions/update-user.put.py     -> name "update-user",     method PUT
    actions/auth/login.py          -> name "auth/login",      method POST
    actions/users/get-user.get.py  -> name "users/get-user",  method GET

Scanning is a one-shot, side-effect-free pass. Directory entries are visited
in lexicographic order so generated routes and reference modules are
reproducible across runs.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from safeaction.errors import DiscoveryError

logger = logging.getLogger(__name__)

ACTION_FILE_SUFFIX = ".py"

# Route namespace under which every action is served.
ACTIONS_ROUTE_PREFIX = "/api/_actions"


class HttpMethod(str, Enum):
    """Transport methods an action can be bound to."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"

    @property
    def carries_body(self) -> bool:
        """Whether input travels in the request body (vs. the query string)."""
        return self is not HttpMethod.GET


DEFAULT_METHOD = HttpMethod.POST

_METHODS_BY_SUFFIX = {method.value.lower(): method for method in HttpMethod}
_CAMEL_BOUNDARY = re.compile(r"[/\-._]+(\w)")


def parse_method_suffix(stem: str) -> tuple[str, HttpMethod]:
    """
    Split an optional method suffix off a file stem.

    Unrecognized or missing suffixes fall back to the default method rather
    than raising, so discovery stays total.

    Example:
        >>> parse_method_suffix("get-user.get")
        ('get-user', <HttpMethod.GET: 'GET'>)
        >>> parse_method_suffix("create-post")
        ('create-post', <HttpMethod.POST: 'POST'>)
        >>> parse_method_suffix("report.csv")
        ('report.csv', <HttpMethod.POST: 'POST'>)
    """
    dot_index = stem.rfind(".")
    if dot_index > 0:
        method = _METHODS_BY_SUFFIX.get(stem[dot_index + 1 :].lower())
        if method is not None:
            return stem[:dot_index], method
    return stem, DEFAULT_METHOD


def to_camel_case(name: str) -> str:
    """
    Convert a slash/kebab action name into a camel-case identifier.

    Example:
        >>> to_camel_case("create-post")
        'createPost'
        >>> to_camel_case("auth/login")
        'authLogin'
        >>> to_camel_case("nested/deep-action")
        'nestedDeepAction'
    """
    camel = _CAMEL_BOUNDARY.sub(lambda m: m.group(1).upper(), name)
    return camel[:1].lower() + camel[1:]


@dataclass(frozen=True)
class ActionFileInfo:
    """
    Identity of a discovered action file.

    Attributes:
        name: Canonical slash-separated name (relative path, no extension or suffix)
        file_path: Absolute path of the source file
        method: Transport method inferred from the filename suffix
    """

    name: str
    file_path: Path
    method: HttpMethod

    @property
    def export_name(self) -> str:
        """Identifier used for the action's typed reference."""
        return to_camel_case(self.name)

    def route(self, prefix: str) -> str:
        """Route path for this action under ``prefix``."""
        return f"{prefix.rstrip('/')}/{self.name}"


def _is_eligible_file(path: Path) -> bool:
    return (
        path.is_file()
        and path.name.endswith(ACTION_FILE_SUFFIX)
        and not path.name.startswith(("_", "."))
    )


def _is_eligible_dir(path: Path) -> bool:
    # symlinked directories are not followed (a link to an ancestor loops)
    return path.is_dir() and not path.is_symlink() and not path.name.startswith(("_", "."))


def _scan(directory: Path, prefix: str, results: list[ActionFileInfo]) -> None:
    for entry in sorted(directory.iterdir(), key=lambda p: p.name):
        if _is_eligible_dir(entry):
            _scan(entry, f"{prefix}{entry.name}/", results)
        elif _is_eligible_file(entry):
            stem = entry.name[: -len(ACTION_FILE_SUFFIX)]
            parsed_name, method = parse_method_suffix(stem)
            results.append(
                ActionFileInfo(
                    name=f"{prefix}{parsed_name}",
                    file_path=entry.resolve(),
                    method=method,
                )
            )


def scan_action_files(root: str | Path) -> list[ActionFileInfo]:
    """
    Recursively discover action files under ``root``.

    Eligible files are ``*.py`` modules not starting with ``_`` or ``.``
    (which excludes ``__init__.py`` and private helpers); directories starting
    with ``_`` or ``.`` (``__pycache__``, hidden dirs) and symlinked directories
    are skipped.

    Args:
        root: Actions directory

    Returns:
        Discovered actions in stable, lexicographic traversal order
        (empty if ``root`` does not exist)

    Raises:
        DiscoveryError: If two files resolve to the same action name
    """
    root_path = Path(root)
    if not root_path.is_dir():
        logger.info(f"No actions directory found at {root_path} - skipping action discovery")
        return []

    results: list[ActionFileInfo] = []
    _scan(root_path, "", results)

    seen: dict[str, ActionFileInfo] = {}
    exports: dict[str, ActionFileInfo] = {}
    for info in results:
        if info.name in seen:
            raise DiscoveryError(
                f"Action name '{info.name}' is defined by both "
                f"{seen[info.name].file_path} and {info.file_path}"
            )
        if info.export_name in exports:
            raise DiscoveryError(
                f"Actions '{exports[info.export_name].name}' and '{info.name}' "
                f"both map to identifier '{info.export_name}'"
            )
        seen[info.name] = info
        exports[info.export_name] = info

    logger.debug(
        f"Discovered {len(results)} action file(s) under {root_path}",
        extra={"actions_dir": str(root_path), "count": len(results)},
    )
    return results


__all__ = [
    "ACTIONS_ROUTE_PREFIX",
    "DEFAULT_METHOD",
    "ActionFileInfo",
    "HttpMethod",
    "parse_method_suffix",
    "scan_action_files",
    "to_camel_case",
]
