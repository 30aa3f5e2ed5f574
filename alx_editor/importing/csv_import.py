"""
CSV import with per-field validation.

Every cell is checked on its own and every problem is collected as a
ValidationIssue; nothing stops at the first error. A row with problems still
produces a record, with each offending field set to its default, so callers
can show the full list and decide whether to write anything.
"""
from __future__ import annotations

import csv
import io
import os
from typing import Any, Sequence

from ..core.config import CSV_ENCODING
from ..core.conversions import parse_float_text, parse_int_text
from ..core.errors import FieldError
from ..core.lookups import ItemDatabase, item_category
from ..io.binary import encode_field
from ..logs.logging import get_logger
from ..models.schema import (
    REFERENCE_ITEM_OR_GOLD,
    EntryDescriptor,
    FieldSpec,
    ImportResult,
    Record,
    ValidationIssue,
)

_LOGGER = get_logger("csv_import")


class CellError(ValueError):
    """A single cell failed validation; the message is the issue reason."""


def _normalize_header(cell: object) -> str:
    return str(cell).strip().lower()


def _from_display(spec: FieldSpec, value: int) -> int:
    # bin/hex cells of signed fields are written as the raw two's complement pattern
    low, high = spec.bounds
    bits = spec.width * 8
    if spec.display in ("bin", "hex") and low < 0 and high < value < (1 << bits):
        return value - (1 << bits)
    return value


def parse_cell(spec: FieldSpec, text: str, items: ItemDatabase | None = None) -> Any:
    """Convert one cell to a field value, raising CellError with the reason on failure."""
    cell = text.strip() if spec.is_int or spec.is_float else text
    if spec.is_int:
        if not cell:
            raise CellError("value is required")
        try:
            value = _from_display(spec, parse_int_text(cell))
        except ValueError:
            raise CellError(f"{cell!r} is not an integer") from None
        low, high = spec.domain
        if not low <= value <= high:
            raise CellError(f"{value} is outside {low}..{high}")
        if spec.reference is not None and items is not None:
            allow_gold = spec.reference == REFERENCE_ITEM_OR_GOLD
            if not items.accepts(value, allow_gold=allow_gold):
                raise CellError(f"{value} ({item_category(value)}) does not reference a known item")
        return value
    if spec.is_float:
        try:
            value = parse_float_text(cell)
        except ValueError:
            raise CellError(f"{cell!r} is not a number") from None
    else:
        value = text
    try:
        encode_field(spec, value)
    except FieldError as exc:
        raise CellError(exc.reason) from None
    return value


def _parse_extra(name: str, text: str) -> Any:
    if name in ("enemy_id", "slot"):
        try:
            return parse_int_text(text) if text.strip() else None
        except ValueError:
            return None
    return text


def import_rows(
    descriptor: EntryDescriptor,
    rows: Sequence[Sequence[object]],
    items: ItemDatabase | None = None,
) -> ImportResult:
    """Validate a header row plus data rows against ``descriptor``."""
    issues: list[ValidationIssue] = []
    records: list[Record] = []
    if not rows:
        issues.append(ValidationIssue(None, None, "no header row"))
        return ImportResult(descriptor.name, records, issues)

    header = [_normalize_header(cell) for cell in rows[0]]
    columns: dict[str, int] = {}
    for index, name in enumerate(header):
        columns.setdefault(name, index)
    for name in ("id",) + descriptor.field_names:
        if name not in columns:
            issues.append(ValidationIssue(None, name, "column is missing"))

    data_rows = [
        [str(cell) if cell is not None else "" for cell in row]
        for row in rows[1:]
        if any(str(cell).strip() for cell in row if cell is not None)
    ]
    if len(data_rows) != descriptor.count:
        issues.append(ValidationIssue(None, None, f"expected {descriptor.count} rows, got {len(data_rows)}"))

    def cell_at(row: list[str], name: str) -> str | None:
        index = columns.get(name)
        if index is None:
            return None
        return row[index] if index < len(row) else ""

    for row_index, row in enumerate(data_rows):
        id_text = cell_at(row, "id")
        if id_text is not None:
            try:
                row_id = parse_int_text(id_text)
            except ValueError:
                issues.append(ValidationIssue(row_index, "id", f"{id_text!r} is not an integer"))
            else:
                if row_id != row_index:
                    issues.append(ValidationIssue(row_index, "id", f"expected id {row_index}, got {row_id}"))

        values: dict[str, Any] = {}
        for spec in descriptor.fields:
            text = cell_at(row, spec.name)
            if text is None:
                values[spec.name] = spec.default()
                continue
            try:
                values[spec.name] = parse_cell(spec, text, items)
            except CellError as exc:
                issues.append(ValidationIssue(row_index, spec.name, str(exc)))
                values[spec.name] = spec.default()

        extras: dict[str, Any] = {}
        for name in descriptor.extras:
            text = cell_at(row, name)
            if text is not None:
                extras[name] = _parse_extra(name, text)
        records.append(Record(row_index, values, extras))

    if issues:
        _LOGGER.info("Import of %s: %d row(s), %d issue(s)", descriptor.name, len(records), len(issues))
    else:
        _LOGGER.debug("Import of %s: %d row(s), clean", descriptor.name, len(records))
    return ImportResult(descriptor.name, records, issues)


def import_csv(descriptor: EntryDescriptor, text: str, items: ItemDatabase | None = None) -> ImportResult:
    """Parse CSV ``text`` and validate it against ``descriptor``."""
    if text.startswith("\ufeff"):
        text = text[1:]
    rows = list(csv.reader(io.StringIO(text, newline="")))
    return import_rows(descriptor, rows, items)


def import_csv_file(
    descriptor: EntryDescriptor,
    filepath: str | os.PathLike[str],
    items: ItemDatabase | None = None,
) -> ImportResult:
    with open(filepath, "r", newline="", encoding=CSV_ENCODING) as handle:
        return import_csv(descriptor, handle.read(), items)


__all__ = ["CellError", "parse_cell", "import_rows", "import_csv", "import_csv_file"]
