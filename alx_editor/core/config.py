"""Shared configuration constants for the data editor."""
from __future__ import annotations

import os
from pathlib import Path

MODULE_NAME = "alx_editor"
APP_NAME = "SoA Legends Data Editor"

BASE_DIR = Path(__file__).resolve().parent.parent
OFFSETS_DIR = BASE_DIR / "Offsets"

# Bundles are matched by region tag: offsets_us.json, offsets_jp.json, ...
OFFSETS_FILE_TEMPLATE = "offsets_{region}.json"
DEFAULT_OFFSET_FILES: tuple[str, ...] = (OFFSETS_FILE_TEMPLATE.format(region="us"),)

LOG_DIR = Path(os.environ.get("ALX_EDITOR_LOG_DIR") or (Path.home() / ".alx_editor" / "logs"))
LOG_LEVEL = (os.environ.get("ALX_EDITOR_LOG_LEVEL") or "INFO").upper()
LOG_ROOT_NAME = "alx"

# Disc layout
DOL_PATH = "Start.dol"
GAME_CODE = "GEA"
COMPRESSED_EXTENSIONS: tuple[str, ...] = (".enp", ".evp", ".dat")
LEVEL_FILE = "battle/first.lmt"

# CSV / text
CSV_ENCODING = "utf-8"
DESCRIPTION_BLOCK = 4
DEFAULT_TEXT_ENCODING = "auto"

REGION_LABELS: dict[str, str] = {
    "E": "us",
    "J": "jp",
    "P": "eu",
}


__all__ = [
    "MODULE_NAME",
    "APP_NAME",
    "BASE_DIR",
    "OFFSETS_DIR",
    "OFFSETS_FILE_TEMPLATE",
    "DEFAULT_OFFSET_FILES",
    "LOG_DIR",
    "LOG_LEVEL",
    "LOG_ROOT_NAME",
    "DOL_PATH",
    "GAME_CODE",
    "COMPRESSED_EXTENSIONS",
    "LEVEL_FILE",
    "CSV_ENCODING",
    "DESCRIPTION_BLOCK",
    "DEFAULT_TEXT_ENCODING",
    "REGION_LABELS",
]
