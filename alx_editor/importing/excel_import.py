"""Excel workbook export/import: one sheet per entry type, validated like CSV."""
from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any, Mapping, Sequence, cast

import pandas as pd  # type: ignore

from ..core.lookups import ItemDatabase
from ..logs.logging import get_logger
from ..models.schema import EntryDescriptor, ImportResult
from .csv_export import record_rows
from .csv_import import import_rows

if TYPE_CHECKING:
    from ..models.game_session import GameSession

_LOGGER = get_logger("excel_import")


def export_workbook(
    session: "GameSession",
    workbook_path: str | os.PathLike[str],
    types: Sequence[str] | None = None,
) -> dict[str, int]:
    """
    Write the requested entry types into one workbook, one sheet per type.
    Returns a mapping of type -> rows exported.
    """
    results: dict[str, int] = {}
    with pd.ExcelWriter(workbook_path, engine="openpyxl") as writer:
        for type_name in types or session.entry_types:
            descriptor = session.descriptor(type_name)
            rows = record_rows(descriptor, session.read_entries(type_name))
            df = pd.DataFrame(rows[1:], columns=rows[0], dtype=str)
            df.to_excel(writer, sheet_name=type_name, index=False)
            results[type_name] = len(rows) - 1
    _LOGGER.info("Exported %d sheet(s) to %s", len(results), workbook_path)
    return results


def sheet_rows(df: Any) -> list[list[str]]:
    """Header plus data rows of a sheet read with ``dtype=str``."""
    header = [str(col).strip() for col in df.columns]
    body = [["" if cell is None else str(cell) for cell in row] for row in df.values.tolist()]
    return [header] + body


def import_workbook(
    workbook_path: str | os.PathLike[str],
    catalog: Mapping[str, EntryDescriptor],
    items: ItemDatabase | None = None,
) -> dict[str, ImportResult]:
    """
    Validate every sheet named after an entry type.
    Sheets with other names are ignored.
    """
    try:
        xls = pd.ExcelFile(workbook_path, engine="openpyxl")
    except Exception as exc:
        raise RuntimeError(f"Failed to read {os.path.basename(str(workbook_path))}: {exc}") from exc
    results: dict[str, ImportResult] = {}
    with xls:
        for sheet_name in xls.sheet_names:
            type_name = str(sheet_name).strip().lower()
            descriptor = catalog.get(type_name)
            if descriptor is None:
                _LOGGER.debug("Skipping sheet %s: not an entry type", sheet_name)
                continue
            df = cast(Any, xls.parse(sheet_name, dtype=str, keep_default_na=False))
            results[type_name] = import_rows(descriptor, sheet_rows(df), items)
    return results


__all__ = ["export_workbook", "sheet_rows", "import_workbook"]
