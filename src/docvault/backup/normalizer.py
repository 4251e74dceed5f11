"""
Value normalization for export.

Turns driver values into the plain JSON domain both backup formats can hold:
dates become ISO-8601 strings, ObjectIds their hex string, and containers are
walked recursively. Everything else is passed through as-is, so normalizing an
already normalized value changes nothing.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime, timedelta
from typing import Any

from bson import ObjectId


def format_datetime(value: datetime) -> str:
    """
    Render a datetime as ISO-8601 with millisecond precision.

    Naive values are UTC (the driver default); UTC renders with a "Z" suffix.
    """
    offset = value.utcoffset()
    if offset is None or offset == timedelta(0):
        text = value.replace(tzinfo=None).isoformat(timespec="milliseconds")
        return f"{text}Z"
    return value.isoformat(timespec="milliseconds")


def normalize(value: Any) -> Any:
    """Return the export-safe form of a document value."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return format_datetime(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [normalize(item) for item in value]
    if isinstance(value, Mapping):
        return {key: normalize(item) for key, item in value.items()}
    return value


def normalize_record(record: Mapping[str, Any]) -> dict[str, Any]:
    """Normalize one top-level document."""
    return {key: normalize(value) for key, value in record.items()}
