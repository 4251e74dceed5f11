"""
Command-line interface for docvault.

Provides commands to export the configured collections to a backup file,
import a backup file into the database, and list the collections taking part.

Uses Python's argparse module (no external CLI libraries).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import NoReturn

from docvault import __version__
from docvault.backup import BackupError, BackupManager
from docvault.config.settings import (
    ConfigurationError,
    Settings,
    load_config,
)
from docvault.storage import build_registry, connect

# Set up logging
logger = logging.getLogger(__name__)

# Global verbosity settings (set during main() based on args)
_quiet_mode = False
_verbose_level = 0


def set_output_mode(quiet: bool = False, verbose: int = 0) -> None:
    """Set the output mode for the CLI."""
    global _quiet_mode, _verbose_level
    _quiet_mode = quiet
    _verbose_level = verbose


def output(message: str = "", force: bool = False) -> None:
    """
    Print a message to stdout, respecting quiet mode.

    Args:
        message: The message to print.
        force: If True, print even in quiet mode (for essential output like JSON).
    """
    if force or not _quiet_mode:
        print(message)


def output_error(message: str) -> None:
    """Print an error message (always shown, even in quiet mode)."""
    print(message, file=sys.stderr)


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for docvault CLI."""
    parser = argparse.ArgumentParser(
        prog="docvault",
        description="Backup and restore MongoDB collections as JSON or Excel files",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"docvault {__version__}",
    )

    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Override config file location (default: ~/.docvault/config.yaml)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase output verbosity (can be repeated)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="COMMAND",
    )

    # export command
    export_parser = subparsers.add_parser(
        "export",
        help="Export all collections to a backup file",
        description="Snapshot every configured collection into a JSON or Excel file.",
    )
    export_parser.add_argument(
        "--format",
        "-f",
        choices=["json", "excel"],
        default="json",
        help="Backup format (default: json)",
    )
    export_parser.add_argument(
        "--output",
        "-o",
        metavar="DIR",
        help="Output directory for the backup file (default: from config)",
    )
    export_parser.set_defaults(func=cmd_export)

    # import command
    import_parser = subparsers.add_parser(
        "import",
        help="Import a backup file into the database",
        description=(
            "Insert every record of a backup file as a new document. "
            "Rows that fail are skipped and reported; nothing is rolled back."
        ),
    )
    import_parser.add_argument(
        "backup_file",
        metavar="FILE",
        help="Path to backup file (.json or .xlsx)",
    )
    import_parser.add_argument(
        "--format",
        "-f",
        choices=["json", "excel"],
        help="Backup format (default: from file extension)",
    )
    import_parser.add_argument(
        "--dry-run",
        action="store_true",
        dest="dry_run",
        help="Parse the file and show what would be imported without writing",
    )
    import_parser.add_argument(
        "--json",
        action="store_true",
        dest="as_json",
        help="Print the import report as JSON",
    )
    import_parser.add_argument(
        "--force",
        action="store_true",
        help="Skip confirmation prompt",
    )
    import_parser.set_defaults(func=cmd_import)

    # collections command
    collections_parser = subparsers.add_parser(
        "collections",
        help="List the collections included in backups",
        description="Show the configured collections in export/import order.",
    )
    collections_parser.set_defaults(func=cmd_collections)

    return parser


def setup_logging(verbose: int, quiet: bool) -> None:
    """Configure logging based on verbosity level."""
    if quiet:
        level = logging.WARNING
    elif verbose == 0:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _load_settings(args: argparse.Namespace) -> Settings:
    config_path = Path(args.config) if args.config else None
    return load_config(config_path)


@asynccontextmanager
async def open_manager(settings: Settings) -> AsyncIterator[BackupManager]:
    """Connect to the configured database and yield a BackupManager for it."""
    async with connect(settings) as database:
        yield BackupManager(build_registry(database, settings))


async def _export(settings: Settings, output_dir: Path, fmt: str):
    async with open_manager(settings) as manager:
        return await manager.export_to_file(output_dir, fmt)


async def _import(settings: Settings, path: Path, fmt: str | None, dry_run: bool):
    async with open_manager(settings) as manager:
        return await manager.import_from_file(path, fmt, dry_run=dry_run)


def cmd_export(args: argparse.Namespace) -> int:
    """Export all collections to a backup file."""
    settings = _load_settings(args)
    output_dir = Path(args.output) if args.output else Path(settings.backup.output_dir)

    output("docvault Export")
    output("=" * 50)
    output()
    output(f"Database: {settings.mongodb.database}")
    output(f"Format: {args.format}")
    output(f"Output directory: {output_dir}")
    output()

    try:
        result = asyncio.run(_export(settings, output_dir, args.format))
    except (BackupError, OSError) as e:
        output_error(f"Export failed: {e}")
        return 1

    output("Backup created successfully!")
    output()
    output(f"  File: {result.path}")
    output(f"  Size: {result.size_bytes:,} bytes")
    output(f"  Records: {result.total_records}")
    for key, count in result.counts.items():
        output(f"    - {key}: {count}")
    output()
    output("To restore from this backup, run:")
    output(f"  docvault import {result.path}")
    return 0


def cmd_import(args: argparse.Namespace) -> int:
    """Import a backup file into the database."""
    backup_path = Path(args.backup_file)

    if not backup_path.exists():
        output_error(f"Error: Backup file not found: {backup_path}")
        return 1

    settings = _load_settings(args)

    output("docvault Import")
    output("=" * 50)
    output()
    output(f"Backup file: {backup_path}")
    output(f"Database: {settings.mongodb.database}")
    output()

    if not args.force and not args.dry_run:
        output("WARNING: Every record is inserted as a new document.")
        output("Importing into a database that already holds these records duplicates them.")
        output()
        response = input("Proceed with import? [y/N]: ").strip().lower()
        if response not in ("y", "yes"):
            output("Import cancelled.")
            return 0

    try:
        result = asyncio.run(_import(settings, backup_path, args.format, args.dry_run))
    except (BackupError, OSError) as e:
        output_error(f"Import failed: {e}")
        return 1

    if result.dry_run:
        output("Dry run, nothing was written. Records found:")
        for key, count in result.row_counts.items():
            output(f"  {key}: {count}")
        return 0

    outcome = result.outcome
    if args.as_json:
        output(json.dumps(outcome.to_dict(), indent=2), force=True)
        return 0

    output("Import completed.")
    output()
    output(f"  {'Collection':<28} {'Inserted':>9} {'Skipped':>9}")
    for key, item in outcome.items():
        output(f"  {key:<28} {item.inserted:>9} {item.skipped:>9}")
    output()
    output(f"  Total inserted: {outcome.total_inserted}, skipped: {outcome.total_skipped}")

    failed = [(key, item) for key, item in outcome.items() if item.errors]
    if failed:
        output()
        output("Errors:")
        for key, item in failed:
            output(f"  {key}:")
            for error in item.errors:
                output(f"    - {error}")
    return 0


def cmd_collections(args: argparse.Namespace) -> int:
    """List the configured collections in backup order."""
    settings = _load_settings(args)
    identity = settings.backup.identity_collection

    output("Collections (export/import order):")
    for position, collection in enumerate(settings.collections, start=1):
        notes = []
        if collection.key == identity:
            notes.append(f"{settings.backup.credential_field} not exported")
        if collection.required_fields:
            notes.append(f"requires {', '.join(collection.required_fields)}")
        suffix = f"  ({'; '.join(notes)})" if notes else ""
        output(f"  {position:>2}. {collection.key}{suffix}")
    return 0


def main() -> NoReturn:
    """Main entry point for docvault CLI."""
    parser = create_parser()
    args = parser.parse_args()

    # Set up logging and output mode
    setup_logging(args.verbose, args.quiet)
    set_output_mode(args.quiet, args.verbose)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    try:
        exit_code = args.func(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        output("\nOperation cancelled.")
        sys.exit(130)
    except ConfigurationError as e:
        output_error(f"Configuration error: {e}")
        sys.exit(2)
    except Exception as e:
        if args.verbose > 0:
            raise
        output_error(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
