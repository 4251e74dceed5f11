"""
Backup file formats.

Two independent codecs share the snapshot shape ({collection_key: [record]}):

    structured  Pretty-printed JSON object, lossless for normalized records.
    tabular     Excel workbook (openpyxl) with one sheet per collection and one
                row per record. Lossy: nested values are written as JSON text
                and nothing is converted back to dates or ObjectIds on decode.

Decoding is fail-fast: unreadable input raises MalformedInputError and an
unknown format name raises UnsupportedFormatError.
"""

from __future__ import annotations

import io
import json
import logging
from collections.abc import Mapping
from datetime import date, datetime, time
from enum import Enum
from pathlib import Path
from typing import Any

from openpyxl import Workbook, load_workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE

from docvault.backup.models import MalformedInputError, UnsupportedFormatError
from docvault.backup.normalizer import normalize

logger = logging.getLogger(__name__)

# Excel limit on worksheet titles
MAX_SHEET_TITLE_LENGTH = 31

# Characters Excel does not allow in worksheet titles
_INVALID_TITLE_CHARS = set("\\/*?:[]")


class BackupFormat(str, Enum):
    """Supported backup file formats."""

    STRUCTURED = "json"
    TABULAR = "excel"

    @property
    def file_extension(self) -> str:
        return ".json" if self is BackupFormat.STRUCTURED else ".xlsx"

    @property
    def content_type(self) -> str:
        if self is BackupFormat.STRUCTURED:
            return "application/json"
        return "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


_FORMAT_ALIASES = {
    "json": BackupFormat.STRUCTURED,
    "structured": BackupFormat.STRUCTURED,
    "excel": BackupFormat.TABULAR,
    "xlsx": BackupFormat.TABULAR,
    "xls": BackupFormat.TABULAR,
    "tabular": BackupFormat.TABULAR,
}


def resolve_format(name: str | BackupFormat) -> BackupFormat:
    """
    Map a format name to a BackupFormat.

    Raises:
        UnsupportedFormatError: If the name is not a known format.
    """
    if isinstance(name, BackupFormat):
        return name
    fmt = _FORMAT_ALIASES.get(str(name or "").strip().lower())
    if fmt is None:
        raise UnsupportedFormatError(f"Unsupported format: {name!r}. Use json or excel.")
    return fmt


def format_from_filename(path: str | Path) -> BackupFormat:
    """Guess the format from a file extension (.json, .xlsx or .xls)."""
    suffix = Path(path).suffix.lower().lstrip(".")
    try:
        return resolve_format(suffix)
    except UnsupportedFormatError:
        raise UnsupportedFormatError(
            f"Cannot tell the format of {Path(path).name}: file must be .json or .xlsx"
        ) from None


def encode(snapshot: Mapping[str, list[Any]], fmt: str | BackupFormat) -> bytes:
    """Serialize a snapshot to bytes in the given format."""
    fmt = resolve_format(fmt)
    if fmt is BackupFormat.STRUCTURED:
        return encode_structured(snapshot)
    return encode_tabular(snapshot)


def decode(data: bytes, fmt: str | BackupFormat) -> dict[str, Any]:
    """Parse bytes in the given format into a snapshot-shaped mapping."""
    fmt = resolve_format(fmt)
    if fmt is BackupFormat.STRUCTURED:
        return decode_structured(data)
    return decode_tabular(data)


# Structured (JSON)


def encode_structured(snapshot: Mapping[str, list[Any]]) -> bytes:
    text = json.dumps(snapshot, indent=2, ensure_ascii=False, default=str)
    return text.encode("utf-8")


def decode_structured(data: bytes | str) -> dict[str, Any]:
    try:
        text = data.decode("utf-8-sig") if isinstance(data, bytes) else data
        parsed = json.loads(text)
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedInputError(f"Invalid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise MalformedInputError("Invalid JSON: expected an object")
    return parsed


# Tabular (Excel workbook)


def sheet_title(key: str) -> str:
    """Worksheet title for a collection key."""
    title = "".join("_" if ch in _INVALID_TITLE_CHARS else ch for ch in key)
    return title[:MAX_SHEET_TITLE_LENGTH]


def sheet_key(title: str) -> str:
    """Collection key recovered from a worksheet title."""
    return "".join(title.split()).lower()


def _cell_value(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    if isinstance(value, (Mapping, list, tuple)):
        text = json.dumps(value, ensure_ascii=False, default=str, separators=(",", ":"))
        return ILLEGAL_CHARACTERS_RE.sub("", text)
    return str(value)


def _columns(rows: list[Any]) -> list[str]:
    columns: dict[str, None] = {}
    for row in rows:
        if isinstance(row, Mapping):
            for name in row:
                columns.setdefault(str(name), None)
    return list(columns)


def encode_tabular(snapshot: Mapping[str, list[Any]]) -> bytes:
    wb = Workbook()
    default_sheet = wb.active

    for key, rows in snapshot.items():
        ws = wb.create_sheet(title=sheet_title(key) or None)
        if not isinstance(rows, list) or not rows:
            continue

        columns = _columns(rows)
        for col_idx, name in enumerate(columns, start=1):
            ws.cell(row=1, column=col_idx, value=name).data_type = "s"
        if not columns:
            # Records without fields still need a header row to sit under
            ws.cell(row=1, column=1, value="")

        row_idx = 1
        for record in rows:
            if not isinstance(record, Mapping):
                continue
            row_idx += 1
            values = {str(k): v for k, v in record.items()}
            written = False
            for col_idx, name in enumerate(columns, start=1):
                value = _cell_value(values.get(name))
                if value is None:
                    continue
                cell = ws.cell(row=row_idx, column=col_idx, value=value)
                if isinstance(value, str):
                    # Keep "=..." text from being stored as a formula
                    cell.data_type = "s"
                written = True
            if not written:
                # An empty text cell keeps the row in the sheet and reads back as null
                ws.cell(row=row_idx, column=1, value="")

    # A workbook needs at least one sheet; keep the default only when empty
    if len(wb.worksheets) > 1:
        wb.remove(default_sheet)

    stream = io.BytesIO()
    wb.save(stream)
    return stream.getvalue()


def _read_cell(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return normalize(value)
    if isinstance(value, time):
        return value.isoformat()
    return value


def _header_names(header: tuple[Any, ...]) -> list[tuple[int, str]]:
    names: list[tuple[int, str]] = []
    used: set[str] = set()
    for idx, cell in enumerate(header):
        if cell is None or str(cell) == "":
            continue
        base = str(cell)
        name = base
        suffix = 0
        while name in used:
            suffix += 1
            name = f"{base}_{suffix}"
        used.add(name)
        names.append((idx, name))
    return names


def _read_sheet(ws: Any) -> list[dict[str, Any]]:
    rows = ws.iter_rows(values_only=True)
    header = next(rows, None)
    if header is None:
        return []

    # Every row inside the sheet's used range is a record, blank rows included
    columns = _header_names(header)
    return [
        {name: _read_cell(row[idx] if idx < len(row) else None) for idx, name in columns}
        for row in rows
    ]


def decode_tabular(data: bytes) -> dict[str, Any]:
    try:
        wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except Exception as e:
        raise MalformedInputError(f"Invalid Excel workbook: {e}") from e

    out: dict[str, Any] = {}
    try:
        for ws in wb.worksheets:
            key = sheet_key(ws.title)
            if not key:
                logger.debug(f"Skipping sheet with empty name: {ws.title!r}")
                continue
            out[key] = _read_sheet(ws)
    except Exception as e:
        raise MalformedInputError(f"Invalid Excel workbook: {e}") from e
    finally:
        wb.close()
    return out
