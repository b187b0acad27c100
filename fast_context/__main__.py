"""Command-line entry point for fast-context."""

from __future__ import annotations

import argparse
import getpass
import json
import os
import sys
from typing import List, Optional

from rich.console import Console

from fast_context import __version__
from fast_context.cloud.credentials import CredentialStore, mask_api_key
from fast_context.config import SEARCH_LIMITS, Config
from fast_context.logging_config import configure_logging
from fast_context.tooling.formatting import format_search_result
from fast_context.tooling.orchestrator import SearchOrchestrator

EXAMPLES = """\
examples:
  fast-context search --query "where is auth handled"
  fast-context search --query "router to service flow" --project-path /path/to/repo --tree-depth 3 --max-turns 3
  fast-context search --query "login flow" --json
  fast-context extract-key --json
"""


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fast-context",
        description="Semantic code search driven by a remote model.",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=__version__)
    subparsers = parser.add_subparsers(dest="command")

    search = subparsers.add_parser("search", help="Search a project for code relevant to a query.")
    search.add_argument("--query", "-q", default="", help="Natural language query (required).")
    search.add_argument("--project-path", default=None, help="Project root (default: current directory).")
    for name in ("tree_depth", "max_turns", "max_results", "max_commands", "timeout_ms"):
        default, minimum, maximum = SEARCH_LIMITS[name]
        search.add_argument(
            f"--{name.replace('_', '-')}",
            dest=name,
            default=None,
            help=f"{minimum}-{maximum} (default: {default}).",
        )
    search.add_argument("--json", action="store_true", help="Print the raw result as JSON.")

    extract = subparsers.add_parser("extract-key", help="Show the API key found by local discovery.")
    extract.add_argument("--json", action="store_true", help="Print JSON (api_key masked unless --reveal).")
    extract.add_argument("--reveal", action="store_true", help="Include the full api_key in JSON output.")

    set_key = subparsers.add_parser("set-key", help="Save an API key to the system keychain.")
    set_key.add_argument("--api-key", default=None, help="Key to store (prompted for when omitted).")
    return parser


def _run_search(args: argparse.Namespace, config: Config, console: Console, err_console: Console) -> int:
    query = (args.query or "").strip()
    if not query:
        err_console.print("[red]Error:[/red] --query is required for search")
        return 2

    settings = config.search.with_overrides(
        tree_depth=args.tree_depth,
        max_turns=args.max_turns,
        max_results=args.max_results,
        max_commands=args.max_commands,
        timeout_ms=args.timeout_ms,
    )
    orchestrator = SearchOrchestrator(config)

    def on_progress(message: str) -> None:
        err_console.print(f"[dim]{message}[/dim]", highlight=False)

    result = orchestrator.search(
        query,
        args.project_path or os.getcwd(),
        settings=settings,
        on_progress=None if args.json else on_progress,
    )
    if args.json:
        sys.stdout.write(json.dumps(result.to_dict(), indent=2, ensure_ascii=False) + "\n")
    else:
        console.print(format_search_result(result, settings), markup=False, highlight=False, soft_wrap=True)
    return 0 if result.ok else 1


def _run_extract_key(args: argparse.Namespace, console: Console, err_console: Console) -> int:
    result = CredentialStore().discover()
    api_key = result.get("api_key")
    if args.json:
        if isinstance(api_key, str) and api_key and not args.reveal:
            result = {**result, "api_key": mask_api_key(api_key)}
        sys.stdout.write(json.dumps(result, indent=2, ensure_ascii=False) + "\n")
        return 0

    if result.get("error") or not isinstance(api_key, str):
        err_console.print(f"[red]Error:[/red] {result.get('error') or 'no API key found'}", highlight=False)
        if result.get("hint"):
            err_console.print(str(result["hint"]), markup=False)
        if result.get("db_path"):
            err_console.print(f"DB path: {result['db_path']}", markup=False)
        return 1

    console.print("[green]✓[/green] Windsurf API key extracted")
    console.print(f"Key: {api_key[:30]}...{api_key[-10:]}", markup=False)
    console.print(f"Length: {len(api_key)}")
    console.print(f"Source: {result.get('db_path')}", markup=False)
    return 0


def _run_set_key(args: argparse.Namespace, console: Console, err_console: Console) -> int:
    api_key = args.api_key or getpass.getpass("Windsurf API key: ")
    ok, message = CredentialStore().save_api_key(api_key)
    if ok:
        console.print(f"[green]✓[/green] {message}")
        return 0
    err_console.print(f"[red]✗[/red] {message}")
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    config = Config.load()
    configure_logging(config)
    console = Console()
    err_console = Console(stderr=True)

    if args.command == "search":
        return _run_search(args, config, console, err_console)
    if args.command == "extract-key":
        return _run_extract_key(args, console, err_console)
    return _run_set_key(args, console, err_console)


if __name__ == "__main__":
    raise SystemExit(main())
