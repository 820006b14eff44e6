"""
Command-line interface.

    spyglass generate src/
    spyglass scan src/
"""

import argparse
import logging
from pathlib import Path
from typing import Dict, List, Optional

from rich import box
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from . import __version__
from .codegen.core.config import ConfigError, GeneratorConfig, get_config_manager, load_config
from .codegen.core.declarations import DeclarationScanner, MemberKind
from .codegen.core.diagnostics import Diagnostics
from .codegen.processor import ProcessingResult, generate
from .logging_config import get_logger, setup_logging

logger = get_logger(__name__)


class CLIError(Exception):
    """Exception raised for CLI-related errors."""

    pass


# Initialize rich console
console = Console()


def create_parser() -> argparse.ArgumentParser:
    """Build the argument parser with its subcommands."""
    parser = argparse.ArgumentParser(
        prog="spyglass",
        description="Generate testable companions for marked class members",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  spyglass generate src/
  spyglass generate src/ --prefix Spy
  spyglass generate src/ --output build/companions
  spyglass generate src/mypkg/models.py --dry-run
  spyglass scan src/
        """.strip(),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "paths", nargs="+", metavar="PATH", help="Source roots or Python files"
    )
    common.add_argument("--config", metavar="FILE", help="JSON configuration file")
    common.add_argument("--verbose", "-v", action="store_true", help="Show debug logging")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    generate_parser = subparsers.add_parser(
        "generate",
        parents=[common],
        help="Write companion modules",
        description="Write one companion module per class with marked members",
    )
    generate_parser.add_argument(
        "--output",
        "-o",
        metavar="DIR",
        help="Root of a separate companion tree (default: next to each source module)",
    )
    generate_parser.add_argument(
        "--prefix", metavar="NAME", help="Companion class name prefix (default: Testable)"
    )
    generate_parser.add_argument(
        "--no-comments", action="store_true", help="Don't add docstrings to companions"
    )
    generate_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the generated code instead of writing it",
    )
    generate_parser.set_defaults(func=_handle_generate)

    scan_parser = subparsers.add_parser(
        "scan",
        parents=[common],
        help="List marked members",
        description="List the marked members found in the sources",
    )
    scan_parser.set_defaults(func=_handle_scan)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run the CLI.

    Returns:
        Exit code (0 for success, 1 when an error was reported)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "func", None):
        parser.print_help()
        return 1

    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        return args.func(args)
    except CLIError as e:
        console.print(f"[red]✗ Error:[/red] {e}")
        logger.debug("CLI error", exc_info=True)
        return 1


def _build_config(args: argparse.Namespace) -> GeneratorConfig:
    """Build configuration from the config file and CLI arguments."""
    overrides: Dict[str, object] = {}

    if getattr(args, "output", None):
        overrides["output_dir"] = args.output

    if getattr(args, "prefix", None):
        overrides["companion_prefix"] = args.prefix

    if getattr(args, "no_comments", False):
        overrides["add_comments"] = False

    try:
        config = load_config(custom_config=overrides, config_file=args.config)
    except ConfigError as e:
        raise CLIError(f"Configuration error: {e}") from e

    for warning in get_config_manager().validate_config(config):
        console.print(f"[yellow]⚠️  {warning}[/yellow]")
    return config


def _source_paths(args: argparse.Namespace) -> List[Path]:
    paths = [Path(p) for p in args.paths]
    missing = [str(p) for p in paths if not p.exists()]
    if missing:
        raise CLIError(f"No such file or directory: {', '.join(missing)}")
    return paths


def _handle_generate(args: argparse.Namespace) -> int:
    config = _build_config(args)
    paths = _source_paths(args)

    diagnostics = Diagnostics()
    result = generate(
        paths,
        config=config,
        base_dir=Path.cwd(),
        diagnostics=diagnostics,
        dry_run=args.dry_run,
    )

    if args.dry_run:
        _print_sources(result)
    elif result.written:
        console.print(
            f"[green]✓[/green] Generated {len(result.written)} companion(s)"
        )
        if args.verbose:
            _print_written(result)
    else:
        console.print("[yellow]No companion generated[/yellow]")

    return _finish(diagnostics)


def _handle_scan(args: argparse.Namespace) -> int:
    config = _build_config(args)
    paths = _source_paths(args)

    diagnostics = Diagnostics()
    table = Table(title="🔍 Marked Members", box=box.ROUNDED, title_style="bold cyan")
    table.add_column("Class", style="bold green", no_wrap=True)
    table.add_column("Member", style="cyan")
    table.add_column("Kind")
    table.add_column("Visibility", style="blue")
    table.add_column("Accessors", style="dim")

    count = 0
    for scan in DeclarationScanner(config).scan_paths(paths):
        if scan.error is not None:
            diagnostics.error(scan.error, path=scan.path)
            continue
        for member in scan.members:
            count += 1
            table.add_row(
                member.enclosing.full_name,
                member.name,
                member.kind.value,
                member.enclosing.visibility.value,
                _accessor_summary(member),
            )

    if count:
        console.print(table)
    else:
        console.print("[yellow]No marked members found[/yellow]")

    return _finish(diagnostics)


def _accessor_summary(member) -> str:
    if member.kind == MemberKind.METHOD:
        return "async invoker" if member.is_async else "invoker"
    enabled = [
        option
        for option in ("getter", "setter", "clearer")
        if getattr(member, option)
    ]
    return ", ".join(enabled) or "none"


def _print_sources(result: ProcessingResult) -> None:
    for path, code in result.sources.items():
        console.rule(f"📄 {path}")
        console.print(Syntax(code, "python", theme="monokai"))


def _print_written(result: ProcessingResult) -> None:
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold cyan")
    table.add_column("Companion", style="bold")
    table.add_column("File", style="green")

    for companion, path in result.emitted:
        table.add_row(companion.name, str(path))
    console.print(table)


def _finish(diagnostics: Diagnostics) -> int:
    errors = diagnostics.errors
    if errors:
        console.print(f"[red]✗ {len(errors)} error(s) reported[/red]")
        return 1
    return 0
