"""
docvault - backup and restore for MongoDB collections

Snapshots an ordered set of collections into a portable JSON document or
Excel workbook, and restores such files into a live database record by record.

Key Features:
    - Generic export of heterogeneous collections (no per-collection schema)
    - Pretty-printed JSON and one-sheet-per-collection Excel formats
    - Best-effort restore with per-collection inserted/skipped counts
    - Fresh identities on restore; credential hashes are never exported

Design Principles:
    - Fail fast on export and decode, fail soft per record on import
    - Collection order is explicit configuration
    - No transactions, no merging with existing data
"""

__version__ = "0.1.0"

from docvault.config.settings import Settings, load_config

__all__ = [
    "__version__",
    "Settings",
    "load_config",
]
