"""
CSV export of entry records.

One row per record in ID order, one column per field in layout order, with
the read-only extras (descriptions, enemy source and ID) trailing. Numbers
are written locale-neutral; flag fields are written as ``0b`` binary and
pointer-like fields as ``0x`` hex so they survive a spreadsheet round-trip
readably.
"""
from __future__ import annotations

import csv
import io
import os
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Sequence

from ..core.config import CSV_ENCODING
from ..core.conversions import format_float, format_int
from ..logs.logging import get_logger
from ..models.schema import EntryDescriptor, FieldSpec, Record

if TYPE_CHECKING:
    from ..models.game_session import GameSession

_LOGGER = get_logger("csv_export")


def format_cell(spec: FieldSpec, value: Any) -> str:
    if value is None:
        return ""
    if spec.is_int:
        return format_int(int(value), spec.display, spec.width * 8)
    if spec.is_float:
        return format_float(value)
    return str(value)


def record_rows(descriptor: EntryDescriptor, records: Iterable[Record]) -> list[list[str]]:
    """Header row followed by one row per record."""
    rows: list[list[str]] = [list(descriptor.columns)]
    for record in records:
        row = [str(record.id)]
        row.extend(format_cell(spec, record.values.get(spec.name)) for spec in descriptor.fields)
        for extra in descriptor.extras:
            value = record.extras.get(extra)
            row.append("" if value is None else str(value))
        rows.append(row)
    return rows


def export_csv(descriptor: EntryDescriptor, records: Sequence[Record]) -> str:
    """Return the CSV text for ``records``."""
    buffer = io.StringIO(newline="")
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(record_rows(descriptor, records))
    return buffer.getvalue()


def export_csv_file(descriptor: EntryDescriptor, records: Sequence[Record], filepath: str | os.PathLike[str]) -> int:
    """Export ``records`` to a CSV file and return the number of rows written."""
    if not filepath:
        return 0
    rows = record_rows(descriptor, records)
    with open(filepath, "w", newline="", encoding=CSV_ENCODING) as handle:
        writer = csv.writer(handle, lineterminator="\n")
        writer.writerows(rows)
    _LOGGER.info("Exported %d %s rows to %s", len(rows) - 1, descriptor.name, filepath)
    return len(rows) - 1


def csv_filename(type_name: str) -> str:
    safe_name = re.sub(r"[^A-Za-z0-9]+", "_", type_name.strip()).strip("_")
    return f"{(safe_name or 'entries').lower()}.csv"


def export_directory(
    session: "GameSession",
    directory: str | os.PathLike[str],
    types: Sequence[str] | None = None,
) -> dict[str, tuple[Path, int]]:
    """Export several entry types into ``directory``, one ``<type>.csv`` each."""
    if not directory:
        return {}
    target = Path(directory)
    target.mkdir(parents=True, exist_ok=True)
    results: dict[str, tuple[Path, int]] = {}
    for type_name in types or session.entry_types:
        descriptor = session.descriptor(type_name)
        path = target / csv_filename(type_name)
        results[type_name] = (path, export_csv_file(descriptor, session.read_entries(type_name), path))
    return results


__all__ = [
    "format_cell",
    "record_rows",
    "export_csv",
    "export_csv_file",
    "csv_filename",
    "export_directory",
]
