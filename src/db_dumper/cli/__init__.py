"""CLI module for dumping a PostgreSQL database to a SQL script.

Usage:
    db-dumper -h localhost -d shop -u postgres -p secret
    db-dumper -h db.internal -P 6432 -d shop -u dumper -p secret -o shop.sql
    db-dumper -h localhost -d shop -u postgres -p secret --config db-dumper.toml -v

Exit codes:
    0   - Dump written
    1   - Configuration, connection, introspection or serialization error
    130 - Interrupted; partial output discarded
"""

import argparse
import logging
import sys
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from db_dumper.config.loader import load_dump_settings
from db_dumper.config.models import ConnectionOptions
from db_dumper.exceptions import ConfigError, DumpError
from db_dumper.orchestrator import DumpResult, dump_database

console = Console()
err_console = Console(stderr=True)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def configure_logging(verbose: bool = False) -> None:
    """Send engine logs to stderr through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=verbose)],
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    """Argument parser; ``-h`` is the host, so help is ``--help`` only."""
    parser = argparse.ArgumentParser(
        prog="db-dumper",
        description="Dump a PostgreSQL database (roles, schema and data) to a SQL script",
        add_help=False,
    )
    parser.add_argument("--host", "-h", required=True, help="Database server host")
    parser.add_argument(
        "--port", "-P", type=int, default=5432, help="Database server port (default: 5432)"
    )
    parser.add_argument("--dbname", "-d", required=True, help="Database to dump")
    parser.add_argument("--user", "-u", required=True, help="User to connect as")
    parser.add_argument("--password", "-p", required=True, help="Password of the user")
    parser.add_argument(
        "--output",
        "-o",
        default=None,
        help="Output file (default: <dbname>-dump.sql in the output directory)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="TOML file with a [dump] table of engine settings",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--help", action="help", help="Show this help message and exit")
    return parser


def _print_summary(result: DumpResult) -> None:
    console.print(
        f"[bold green]v[/bold green] Dump written to [bold cyan]{escape(str(result.path))}[/bold cyan]"
    )

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Item", style="dim")
    table.add_column("Value")
    table.add_row("Roles", ", ".join(result.roles))
    table.add_row("Objects", str(result.objects))
    table.add_row("Rows", str(result.rows))
    table.add_row("Deferred constraints", str(result.deferred_constraints))
    if result.dropped_edges:
        table.add_row("Dropped references", f"[yellow]{len(result.dropped_edges)}[/yellow]")
    console.print(table)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Arguments without the program name; ``sys.argv[1:]`` if None.

    Returns:
        Exit code (0 success, 1 error, 130 interrupted).
    """
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        settings = load_dump_settings(args.config)
        options = ConnectionOptions(
            host=args.host,
            port=args.port,
            dbname=args.dbname,
            user=args.user,
            password=args.password,
            output=args.output,
        )
    except (ConfigError, FileNotFoundError, ValidationError) as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        return EXIT_ERROR

    console.print(f"Dumping database {escape(options.dbname)}...", style="dim")

    try:
        result = dump_database(options, settings)
    except KeyboardInterrupt:
        err_console.print("[yellow]Interrupted[/yellow]: partial output discarded")
        return EXIT_INTERRUPTED
    except (DumpError, OSError) as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        return EXIT_ERROR

    _print_summary(result)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
