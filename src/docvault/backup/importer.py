"""
Snapshot import.

Applies a decoded snapshot to the store collection by collection, in registry
order, creating every record as a new document. A failing row is counted as
skipped and never stops the rest of its collection or any other collection.
Nothing is rolled back, so running the same import twice duplicates records
in collections without a uniqueness constraint.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from docvault.backup.models import (
    CollectionOutcome,
    ImportOutcome,
    MalformedInputError,
)
from docvault.storage.registry import CollectionRegistry

logger = logging.getLogger(__name__)

# Store-assigned identity and revision counter, removed so new ones are minted
IDENTITY_FIELDS = ("_id", "__v")


def strip_identity(record: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of the record without identity fields."""
    doc = dict(record)
    for name in IDENTITY_FIELDS:
        doc.pop(name, None)
    return doc


async def apply_import(registry: CollectionRegistry, data: Mapping[str, Any]) -> ImportOutcome:
    """
    Insert every record of a decoded snapshot.

    Args:
        registry: Collections to restore, in insertion order.
        data: Snapshot-shaped mapping as returned by a format decoder.

    Returns:
        ImportOutcome with inserted/skipped counts and up to ten error
        messages per collection.

    Raises:
        MalformedInputError: If data is not a mapping at all.
    """
    if not isinstance(data, Mapping):
        raise MalformedInputError("Import data must be an object keyed by collection")

    unknown = [key for key in data if key not in registry]
    if unknown:
        logger.warning(f"Ignoring unknown collection(s) in import: {', '.join(map(str, unknown))}")

    outcome = ImportOutcome()

    for descriptor in registry:
        rows = data.get(descriptor.key)
        if not isinstance(rows, list):
            rows = []

        result = CollectionOutcome()
        outcome.collections[descriptor.key] = result

        for row_number, row in enumerate(rows, start=1):
            if not isinstance(row, Mapping):
                result.skipped += 1
                continue

            doc = strip_identity(row)
            if descriptor.import_hook is not None:
                doc = descriptor.import_hook(doc)

            try:
                await descriptor.accessor.create(doc)
            except Exception as e:
                message = str(e) or e.__class__.__name__
                logger.debug(f"{descriptor.key} row {row_number} skipped: {message}")
                result.record_failure(row_number, message)
            else:
                result.inserted += 1

        if rows:
            logger.info(
                f"Imported {descriptor.key}: {result.inserted} inserted, "
                f"{result.skipped} skipped"
            )

    logger.info(
        f"Import completed: {outcome.total_inserted} inserted, "
        f"{outcome.total_skipped} skipped"
    )
    return outcome
