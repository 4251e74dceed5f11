"""
Snapshot export.

Reads every collection in registry order and returns a snapshot: a mapping of
collection key to the list of normalized records. Any read error aborts the
whole export; a partial snapshot is never returned.
"""

from __future__ import annotations

import logging
from typing import Any

from docvault.backup.models import ReadFailureError
from docvault.backup.normalizer import normalize_record
from docvault.storage.registry import CollectionRegistry

logger = logging.getLogger(__name__)

Snapshot = dict[str, list[dict[str, Any]]]


async def export_snapshot(registry: CollectionRegistry) -> Snapshot:
    """
    Export all registered collections.

    Args:
        registry: Collections to read, in the order they should appear.

    Returns:
        Snapshot keyed by collection key, in registry order.

    Raises:
        ReadFailureError: If reading any collection fails.
    """
    snapshot: Snapshot = {}

    for descriptor in registry:
        try:
            documents = await descriptor.accessor.find_all(descriptor.exclude_fields)
        except Exception as e:
            logger.error(f"Export aborted while reading {descriptor.key}: {e}")
            raise ReadFailureError(descriptor.key, str(e) or e.__class__.__name__) from e

        snapshot[descriptor.key] = [normalize_record(doc) for doc in documents]
        logger.debug(f"Exported {len(documents)} record(s) from {descriptor.key}")

    total = sum(len(rows) for rows in snapshot.values())
    logger.info(f"Snapshot exported: {len(snapshot)} collections, {total} records")
    return snapshot
