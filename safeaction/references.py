"""
safeaction.references - Typed Action References

Client code never imports server action modules. Instead it imports a
generated module of SafeActionReference stubs, one per discovered action:

    createPost: SafeActionReference[app.schemas.CreatePost, Any, str] = SafeActionReference(
        path="create-post", method="POST"
    )

At runtime a reference is just ``{path, method}``. Its generic parameters are
written out explicitly by the generator from the action's configured input
and output schemas, so type checkers see the input/output/server-error types
without the handler ever being reflected on or bundled.

Only schemas the client can import are written out. Action files are loaded
by path under a private namespace, so a model declared inside one renders as
``Any``; declare schemas in an importable module (``myapp.schemas``) and
import them into the action file to get typed references.

Usage:
    >>> write_references_module("server/actions", ".safeaction/actions.py")
    >>> from myapp.generated.actions import createPost
    >>> state = use_action(createPost, transport)
"""

import builtins
import keyword
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic

from safeaction.builder import SafeAction
from safeaction.discovery import ActionFileInfo, HttpMethod, scan_action_files
from safeaction.errors import DiscoveryError
from safeaction.loader import MODULE_NAMESPACE, load_actions
from safeaction.types import InputT, OutputT, ServerErrorT

logger = logging.getLogger(__name__)

GENERATED_HEADER = '"""Typed action references generated by safeaction. Do not edit."""'


@dataclass(frozen=True)
class SafeActionReference(Generic[InputT, OutputT, ServerErrorT]):
    """
    Routing identity of a server action, typed for the caller.

    Carries no executable logic; the generic parameters exist purely for
    static type inference on the client side.
    """

    path: str
    method: HttpMethod = HttpMethod.POST

    def __post_init__(self) -> None:
        if not isinstance(self.method, HttpMethod):
            object.__setattr__(self, "method", HttpMethod(str(self.method).upper()))

    def url(self, prefix: str) -> str:
        """Route of the referenced action under ``prefix``."""
        return f"{prefix.rstrip('/')}/{self.path}"


def reference_for(info: ActionFileInfo) -> SafeActionReference[Any, Any, Any]:
    """Build the runtime reference for a discovered action."""
    return SafeActionReference(path=info.name, method=info.method)


def _type_expr(tp: Any, modules: set[str]) -> str:
    """
    Render ``tp`` as a type expression for the generated module.

    Builtin types render by name; importable classes render fully qualified
    (recording their module in ``modules``); anything else renders as Any.
    """
    if tp is None or tp is Any or not isinstance(tp, type):
        return "Any"

    module = getattr(tp, "__module__", "")
    qualname = getattr(tp, "__qualname__", "")
    if module == "builtins" and getattr(builtins, qualname, None) is tp:
        return qualname
    if (
        not module
        or not qualname
        or "<locals>" in qualname
        or module == "__main__"
        or module.startswith(MODULE_NAMESPACE)
    ):
        return "Any"

    modules.add(module)
    return f"{module}.{qualname}"


def _reference_line(
    info: ActionFileInfo,
    action: SafeAction[Any, Any, Any],
    modules: set[str],
) -> str:
    export_name = info.export_name
    if not export_name.isidentifier() or keyword.iskeyword(export_name):
        raise DiscoveryError(
            f"Action '{info.name}' maps to '{export_name}', which is not a valid identifier"
        )

    config = action.config
    input_type = _type_expr(config.input_schema.type if config.input_schema else None, modules)
    output_type = _type_expr(config.output_schema.type if config.output_schema else None, modules)
    error_type = "str" if config.handle_server_error is None else "Any"

    return (
        f"{export_name}: SafeActionReference[{input_type}, {output_type}, {error_type}] = "
        f'SafeActionReference(path="{info.name}", method="{info.method.value}")'
    )


def generate_references_module(
    actions: list[tuple[ActionFileInfo, SafeAction[Any, Any, Any]]],
) -> str:
    """
    Render the typed reference module for loaded actions.

    Output is deterministic for a given set of actions: bindings follow
    discovery order and imports are sorted.

    Args:
        actions: (file info, loaded action) pairs from discovery

    Returns:
        Python source of the reference module
    """
    modules: set[str] = set()
    bindings = [_reference_line(info, action, modules) for info, action in actions]

    lines = [
        GENERATED_HEADER,
        "",
        "from __future__ import annotations",
        "",
        "from typing import TYPE_CHECKING, Any",
        "",
        "from safeaction.references import SafeActionReference",
        "",
    ]
    if modules:
        lines.append("if TYPE_CHECKING:")
        lines.extend(f"    import {module}" for module in sorted(modules))
        lines.append("")

    export_names = ", ".join(f'"{info.export_name}"' for info, _ in actions)
    lines.append(f"__all__ = [{export_names}]")
    lines.append("")
    lines.extend(bindings)
    return "\n".join(lines) + "\n"


def write_references_module(actions_dir: str | Path, output_path: str | Path) -> Path:
    """
    Discover actions and write their typed reference module.

    The file is only rewritten when its content changes.

    Args:
        actions_dir: Directory scanned for action files
        output_path: Destination of the generated module

    Returns:
        Path of the reference module
    """
    output = Path(output_path)
    infos = scan_action_files(actions_dir)
    source = generate_references_module(load_actions(infos))

    if output.exists() and output.read_text(encoding="utf-8") == source:
        logger.debug(f"Action references unchanged at {output}")
        return output

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(source, encoding="utf-8")
    logger.info(
        f"Wrote {len(infos)} action reference(s) to {output}",
        extra={"references_path": str(output), "count": len(infos)},
    )
    return output


__all__ = [
    "SafeActionReference",
    "generate_references_module",
    "reference_for",
    "write_references_module",
]
