"""
Backup and restore engine for docvault.

Snapshots an ordered set of MongoDB collections into a JSON document or an
Excel workbook, and restores such files record by record with per-row error
reporting.

Usage:
    from docvault.backup import BackupManager

    manager = BackupManager(registry)

    # Export
    snapshot = await manager.export_snapshot()
    data = manager.encode(snapshot, "json")

    # Import
    outcome = await manager.apply_import(manager.decode(data, "json"))
    print(outcome["users"].inserted)
"""

from docvault.backup.exporter import Snapshot, export_snapshot
from docvault.backup.formats import (
    BackupFormat,
    decode,
    encode,
    format_from_filename,
    resolve_format,
)
from docvault.backup.importer import apply_import
from docvault.backup.manager import BackupManager, backup_filename
from docvault.backup.models import (
    MAX_ERRORS_PER_COLLECTION,
    BackupError,
    BackupResult,
    CollectionOutcome,
    ImportOutcome,
    MalformedInputError,
    ReadFailureError,
    RestoreResult,
    UnsupportedFormatError,
)
from docvault.backup.normalizer import normalize, normalize_record

__all__ = [
    # Engine operations
    "export_snapshot",
    "encode",
    "decode",
    "apply_import",
    "BackupManager",
    # Formats and values
    "BackupFormat",
    "resolve_format",
    "format_from_filename",
    "backup_filename",
    "normalize",
    "normalize_record",
    # Results
    "Snapshot",
    "CollectionOutcome",
    "ImportOutcome",
    "BackupResult",
    "RestoreResult",
    "MAX_ERRORS_PER_COLLECTION",
    # Exceptions
    "BackupError",
    "ReadFailureError",
    "MalformedInputError",
    "UnsupportedFormatError",
]
