"""
Errors and result types shared by the backup engine.

Export and decode are fail-fast and raise one of the BackupError subclasses.
Import is fail-soft: per-row problems end up in an ImportOutcome instead of
being raised.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# Only the first failures of a collection keep their message
MAX_ERRORS_PER_COLLECTION = 10


class BackupError(Exception):
    """Base class for backup and restore errors."""

    pass


class ReadFailureError(BackupError):
    """Reading a collection failed during export."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(f"Failed to read collection {key!r}: {message}")
        self.key = key


class MalformedInputError(BackupError):
    """An import file could not be parsed into a snapshot."""

    pass


class UnsupportedFormatError(BackupError):
    """The requested backup format is not known."""

    pass


@dataclass
class CollectionOutcome:
    """Import result for one collection."""

    inserted: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def record_failure(self, row_number: int, message: str) -> None:
        """Count a failed row, keeping its message while under the cap."""
        self.skipped += 1
        if len(self.errors) < MAX_ERRORS_PER_COLLECTION:
            self.errors.append(f"Row {row_number}: {message}")

    def to_dict(self) -> dict[str, Any]:
        return {"inserted": self.inserted, "skipped": self.skipped, "errors": list(self.errors)}


@dataclass
class ImportOutcome:
    """Per-collection import report, in registry order."""

    collections: dict[str, CollectionOutcome] = field(default_factory=dict)

    def __getitem__(self, key: str) -> CollectionOutcome:
        return self.collections[key]

    def __contains__(self, key: object) -> bool:
        return key in self.collections

    def __iter__(self) -> Iterator[str]:
        return iter(self.collections)

    def items(self):
        return self.collections.items()

    @property
    def total_inserted(self) -> int:
        return sum(c.inserted for c in self.collections.values())

    @property
    def total_skipped(self) -> int:
        return sum(c.skipped for c in self.collections.values())

    def summary(self) -> dict[str, dict[str, int]]:
        """Inserted/skipped counts per collection, without error messages."""
        return {
            key: {"inserted": c.inserted, "skipped": c.skipped}
            for key, c in self.collections.items()
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary(),
            "totalInserted": self.total_inserted,
            "totalSkipped": self.total_skipped,
            "details": {key: c.to_dict() for key, c in self.collections.items()},
        }


@dataclass
class BackupResult:
    """Result of exporting a snapshot to a file."""

    path: Path
    format: str
    size_bytes: int
    counts: dict[str, int] = field(default_factory=dict)

    @property
    def total_records(self) -> int:
        return sum(self.counts.values())


@dataclass
class RestoreResult:
    """Result of importing a backup file."""

    path: Path
    format: str
    dry_run: bool = False
    # Rows found per registry collection in the decoded file
    row_counts: dict[str, int] = field(default_factory=dict)
    outcome: ImportOutcome | None = None
