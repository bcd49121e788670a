"""
safeaction.cli - Command-Line Interface

Build-time and serving commands for an actions directory.

Usage:
    safeaction scan [ACTIONS_DIR]
    safeaction generate [ACTIONS_DIR] --output .safeaction/actions.py
    safeaction serve [ACTIONS_DIR] --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from safeaction.discovery import scan_action_files
from safeaction.errors import DiscoveryError
from safeaction.references import write_references_module
from safeaction.settings import SafeActionSettings, get_settings

logger = logging.getLogger(__name__)


def _actions_dir(args: argparse.Namespace, settings: SafeActionSettings) -> Path:
    return Path(args.actions_dir) if args.actions_dir else settings.actions_dir


def _scan(args: argparse.Namespace, console: Console) -> int:
    """Print the routes discovered under the actions directory."""
    settings = get_settings()
    actions_dir = _actions_dir(args, settings)
    infos = scan_action_files(actions_dir)

    if not infos:
        console.print(f"No action files found in {actions_dir}.")
        return 0

    table = Table(title=f"Actions in {actions_dir}", show_header=True)
    table.add_column("Method", style="cyan")
    table.add_column("Route", style="green")
    table.add_column("Reference")
    table.add_column("File", style="dim")
    for info in infos:
        table.add_row(
            info.method.value,
            info.route(settings.route_prefix),
            info.export_name,
            str(info.file_path),
        )
    console.print(table)
    return 0


def _generate(args: argparse.Namespace, console: Console) -> int:
    """Write the typed reference module."""
    settings = get_settings()
    output = Path(args.output) if args.output else settings.references_path
    path = write_references_module(_actions_dir(args, settings), output)
    console.print(f"Action references written to {path}")
    return 0


def _serve(args: argparse.Namespace, console: Console) -> int:
    """Serve the discovered actions with uvicorn."""
    import uvicorn

    from safeaction.app import create_app

    base = get_settings()
    settings = base.model_copy(
        update={
            "actions_dir": _actions_dir(args, base),
            "api_host": args.host or base.api_host,
            "api_port": args.port or base.api_port,
        }
    )
    uvicorn.run(create_app(settings), host=settings.api_host, port=settings.api_port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="safeaction",
        description="safeaction - type-safe server actions",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: SAFE_ACTION_LOG_LEVEL or INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # scan
    scan_p = subparsers.add_parser("scan", help="List discovered actions and their routes")
    scan_p.add_argument("actions_dir", nargs="?", default=None, help="Actions directory")
    scan_p.set_defaults(func=_scan)

    # generate
    gen_p = subparsers.add_parser("generate", help="Generate the typed reference module")
    gen_p.add_argument("actions_dir", nargs="?", default=None, help="Actions directory")
    gen_p.add_argument("-o", "--output", default=None, help="Output path of the module")
    gen_p.set_defaults(func=_generate)

    # serve
    serve_p = subparsers.add_parser("serve", help="Serve the actions over HTTP")
    serve_p.add_argument("actions_dir", nargs="?", default=None, help="Actions directory")
    serve_p.add_argument("--host", default=None, help="Bind host")
    serve_p.add_argument("--port", type=int, default=None, help="Bind port")
    serve_p.set_defaults(func=_serve)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, args.log_level or get_settings().log_level, logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    console = Console()
    try:
        sys.exit(args.func(args, console))
    except DiscoveryError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(2)


if __name__ == "__main__":
    main()
