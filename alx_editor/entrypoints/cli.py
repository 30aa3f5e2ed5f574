"""Command-line entrypoint: disc info, CSV/Excel export and CSV import."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from ..core.config import APP_NAME
from ..core.errors import AlxError
from ..importing.csv_export import csv_filename, export_directory
from ..importing.csv_import import import_csv_file
from ..logs.logging import enable_console_logging, enable_file_logging, get_logger
from ..models.catalog import ENTRY_TYPES
from ..models.game_session import GameSession

_LOGGER = get_logger("cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="alx_editor", description=APP_NAME)
    parser.add_argument("--verbose", "-v", action="store_true", help="log debug output to the console")
    parser.add_argument("--log-file", action="store_true", help="also write a log file under the log directory")
    commands = parser.add_subparsers(dest="command", required=True)

    info = commands.add_parser("info", help="show the disc version and record counts")
    info.add_argument("iso")

    export = commands.add_parser("export", help="export entry types to CSV files")
    export.add_argument("iso")
    export.add_argument("directory")
    export.add_argument("--type", "-t", dest="types", action="append", choices=ENTRY_TYPES)
    export.add_argument("--xlsx", help="also write every exported type into this workbook")

    imp = commands.add_parser("import", help="import CSV files and save the disc")
    imp.add_argument("iso")
    imp.add_argument("directory")
    imp.add_argument("--type", "-t", dest="types", action="append", choices=ENTRY_TYPES)
    return parser


def _cmd_info(session: GameSession) -> int:
    image = session.image
    print(f"{image.game_id}  {image.title}")
    print(f"Version: {image.version.label if image.version else 'unknown'}")
    for type_name in session.entry_types:
        descriptor = session.descriptor(type_name)
        print(f"  {type_name:<22} {descriptor.count:>5} x {descriptor.width} bytes")
    return 0


def _cmd_export(session: GameSession, directory: str, types: Sequence[str] | None, workbook: str | None) -> int:
    results = export_directory(session, directory, types)
    for type_name, (path, count) in results.items():
        print(f"{type_name}: {count} rows -> {path}")
    if workbook:
        from ..importing.excel_import import export_workbook

        export_workbook(session, workbook, types)
        print(f"Workbook written to {workbook}")
    return 0


def _cmd_import(session: GameSession, directory: str, types: Sequence[str] | None) -> int:
    folder = Path(directory)
    items = session.item_database()
    status = 0
    written = 0
    for type_name in types or session.entry_types:
        path = folder / csv_filename(type_name)
        if not path.is_file():
            if types:
                print(f"{type_name}: {path} not found")
                status = 1
            continue
        result = import_csv_file(session.descriptor(type_name), path, items)
        if not result.ok:
            status = 1
            print(f"{type_name}: {len(result.issues)} issue(s), not written")
            for issue in result.issues:
                print(f"  {issue}")
            continue
        changed = session.write_entries(type_name, result.records)
        written += 1
        print(f"{type_name}: {changed} field(s) changed")
    if written:
        session.save()
    return status


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    enable_console_logging("DEBUG" if args.verbose else "WARNING")
    if args.log_file:
        print(f"Logging to {enable_file_logging()}")
    try:
        with GameSession.open(args.iso) as session:
            if args.command == "info":
                return _cmd_info(session)
            if args.command == "export":
                return _cmd_export(session, args.directory, args.types, args.xlsx)
            return _cmd_import(session, args.directory, args.types)
    except AlxError as exc:
        _LOGGER.error("%s failed: %s", args.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
