"""
Backup and restore manager for docvault.

Ties the engine together for a given collection registry: export a snapshot,
encode/decode it in one of the backup formats, apply it back to the store,
and read or write backup files on disk.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from docvault.backup import exporter, formats, importer
from docvault.backup.exporter import Snapshot
from docvault.backup.formats import BackupFormat
from docvault.backup.models import (
    BackupResult,
    ImportOutcome,
    MalformedInputError,
    RestoreResult,
)
from docvault.storage.registry import CollectionRegistry

logger = logging.getLogger(__name__)


def backup_filename(fmt: str | BackupFormat, now: datetime | None = None) -> str:
    """
    File name for a new backup, e.g. backup-2024-01-15T10-30-00.json.

    Args:
        fmt: Backup format, decides the extension.
        now: Timestamp to use (default: current UTC time).
    """
    fmt = formats.resolve_format(fmt)
    if now is None:
        now = datetime.now(UTC)
    timestamp = now.strftime("%Y-%m-%dT%H-%M-%S")
    return f"backup-{timestamp}{fmt.file_extension}"


class BackupManager:
    """
    Manages backup and restore operations for a set of collections.

    Export and decode fail fast and raise BackupError subclasses. Import is
    best effort: per-record failures are reported in the ImportOutcome.
    """

    def __init__(self, registry: CollectionRegistry) -> None:
        """
        Initialize backup manager.

        Args:
            registry: Ordered collections to export and restore.
        """
        self.registry = registry

    async def export_snapshot(self) -> Snapshot:
        """Read every registered collection into a snapshot."""
        return await exporter.export_snapshot(self.registry)

    def encode(self, snapshot: Snapshot, fmt: str | BackupFormat) -> bytes:
        """Serialize a snapshot in the given format."""
        return formats.encode(snapshot, fmt)

    def decode(self, data: bytes, fmt: str | BackupFormat) -> dict[str, Any]:
        """Parse backup file contents in the given format."""
        return formats.decode(data, fmt)

    async def apply_import(self, data: dict[str, Any]) -> ImportOutcome:
        """Insert every record of a decoded snapshot into the store."""
        return await importer.apply_import(self.registry, data)

    async def export_to_file(
        self,
        output_dir: Path,
        fmt: str | BackupFormat = BackupFormat.STRUCTURED,
    ) -> BackupResult:
        """
        Export all collections and write them to a new backup file.

        Args:
            output_dir: Directory to write the backup to (created if missing).
            fmt: Backup format.

        Returns:
            BackupResult with the written path and per-collection counts.

        Raises:
            ReadFailureError: If a collection cannot be read.
            UnsupportedFormatError: If the format is unknown.
        """
        fmt = formats.resolve_format(fmt)
        output_dir = Path(output_dir)
        if output_dir.is_file():
            raise NotADirectoryError(f"Output path is a file: {output_dir}")

        snapshot = await self.export_snapshot()
        data = self.encode(snapshot, fmt)

        output_dir.mkdir(parents=True, exist_ok=True)
        path = output_dir / backup_filename(fmt)
        path.write_bytes(data)

        logger.info(f"Backup created: {path} ({len(data):,} bytes)")

        return BackupResult(
            path=path,
            format=fmt.value,
            size_bytes=len(data),
            counts={key: len(rows) for key, rows in snapshot.items()},
        )

    async def import_from_file(
        self,
        path: Path,
        fmt: str | BackupFormat | None = None,
        dry_run: bool = False,
    ) -> RestoreResult:
        """
        Import a backup file into the store.

        Args:
            path: Backup file (.json or .xlsx).
            fmt: Backup format; guessed from the file extension if omitted.
            dry_run: Only decode and count rows, write nothing.

        Returns:
            RestoreResult with row counts and, unless dry_run, the ImportOutcome.

        Raises:
            MalformedInputError: If the file is empty or cannot be parsed.
            UnsupportedFormatError: If the format is unknown.
        """
        path = Path(path)
        fmt = formats.resolve_format(fmt) if fmt else formats.format_from_filename(path)

        data = path.read_bytes()
        if not data:
            raise MalformedInputError(f"Backup file is empty: {path}")

        decoded = self.decode(data, fmt)
        row_counts = {
            key: len(decoded[key]) if isinstance(decoded.get(key), list) else 0
            for key in self.registry.keys()
        }

        result = RestoreResult(path=path, format=fmt.value, dry_run=dry_run, row_counts=row_counts)
        if dry_run:
            logger.info(f"Dry run: {sum(row_counts.values())} record(s) in {path}")
            return result

        result.outcome = await self.apply_import(decoded)
        return result
