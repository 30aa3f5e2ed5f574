"""
Offset loading and schema normalization.

Handles:
* offset bundle discovery and parsing (one JSON bundle per region)
* validation of every data and description range
* the enemy container naming rules used to discover multi-source enemies
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from .config import DOL_PATH, OFFSETS_DIR, OFFSETS_FILE_TEMPLATE
from .conversions import to_int
from .errors import AlxError
from .region import GameVersion
from ..logs.logging import get_logger


class OffsetSchemaError(AlxError):
    """Raised when offsets are missing required definitions."""


@dataclass(frozen=True)
class EntryRanges:
    file: str
    start: int
    end: int
    description: tuple[int, int] | None = None

    @property
    def size(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class EnemyFileRules:
    event_files: tuple[str, ...]
    field_suffix: str
    battle_prefixes: tuple[str, ...]
    battle_suffix: str
    boss_prefix: str
    boss_id_offset: int


@dataclass(frozen=True)
class OffsetBundle:
    region: str
    source: Path | None
    game_info: Mapping[str, Any]
    entries: Mapping[str, EntryRanges]
    enemy_files: EnemyFileRules

    def ranges(self, type_name: str) -> EntryRanges:
        try:
            return self.entries[type_name]
        except KeyError:
            raise OffsetSchemaError(f"Offsets for {self.region} do not define {type_name!r}") from None


_LOGGER = get_logger("offsets")
_bundles: dict[str, OffsetBundle] = {}


def _parse_range(raw: object, context: str) -> tuple[int, int]:
    if not isinstance(raw, dict) or "start" not in raw or "end" not in raw:
        raise OffsetSchemaError(f"{context}: expected a {{start, end}} range")
    start = to_int(raw.get("start"), -1)
    end = to_int(raw.get("end"), -1)
    if start < 0 or end < start:
        raise OffsetSchemaError(f"{context}: invalid range {raw.get('start')}..{raw.get('end')}")
    return start, end


def _parse_entry(name: str, raw: object) -> EntryRanges:
    if not isinstance(raw, dict):
        raise OffsetSchemaError(f"{name}: entry must be an object")
    start, end = _parse_range(raw.get("data"), f"{name}.data")
    if end == start:
        raise OffsetSchemaError(f"{name}.data: empty range")
    description = None
    if raw.get("description") is not None:
        description = _parse_range(raw.get("description"), f"{name}.description")
    file_name = str(raw.get("file") or DOL_PATH)
    return EntryRanges(file_name, start, end, description)


def _parse_enemy_rules(raw: object) -> EnemyFileRules:
    if not isinstance(raw, dict):
        raise OffsetSchemaError("enemy_files: section missing")
    try:
        return EnemyFileRules(
            event_files=tuple(str(name) for name in raw["event_files"]),
            field_suffix=str(raw["field_suffix"]),
            battle_prefixes=tuple(str(name) for name in raw["battle_prefixes"]),
            battle_suffix=str(raw["battle_suffix"]),
            boss_prefix=str(raw["boss_prefix"]),
            boss_id_offset=to_int(raw["boss_id_offset"]),
        )
    except (KeyError, TypeError) as exc:
        raise OffsetSchemaError(f"enemy_files: missing or invalid key {exc}") from exc


def parse_offsets_bundle(raw: object, region: str, source: Path | None = None) -> OffsetBundle:
    """Validate a decoded offsets bundle and freeze it."""
    if not isinstance(raw, dict):
        raise OffsetSchemaError("Offsets bundle must be a JSON object")
    entries_raw = raw.get("entries")
    if not isinstance(entries_raw, dict) or not entries_raw:
        raise OffsetSchemaError("Offsets bundle has no entries")
    entries = {str(name): _parse_entry(str(name), value) for name, value in entries_raw.items()}
    game_info = raw.get("game_info") if isinstance(raw.get("game_info"), dict) else {}
    return OffsetBundle(
        region=region,
        source=source,
        game_info=MappingProxyType(dict(game_info)),
        entries=MappingProxyType(entries),
        enemy_files=_parse_enemy_rules(raw.get("enemy_files")),
    )


def _load_offset_config_file(region: str, search_dirs: tuple[Path, ...] | None = None) -> tuple[Path | None, dict | None]:
    """Locate and parse the offsets bundle for the given region."""
    fname = OFFSETS_FILE_TEMPLATE.format(region=region.lower())
    for folder in search_dirs or (OFFSETS_DIR,):
        path = folder / fname
        if not path.is_file():
            continue
        try:
            with path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, ValueError) as exc:
            raise OffsetSchemaError(f"Failed to load offsets from {path}: {exc}") from exc
        if isinstance(raw, dict):
            return path, raw
        raise OffsetSchemaError(f"Offsets file {path} does not contain a JSON object")
    return None, None


def initialize_offsets(
    target: GameVersion | str,
    force: bool = False,
    search_dirs: tuple[Path, ...] | None = None,
) -> OffsetBundle:
    """Ensure offset data for the requested version (or region tag) is loaded and return it."""
    region = target.region if isinstance(target, GameVersion) else str(target)
    key = region.lower()
    if not force and search_dirs is None and key in _bundles:
        return _bundles[key]
    path, data = _load_offset_config_file(key, search_dirs)
    if data is None:
        raise OffsetSchemaError(
            f"Unable to locate offsets for region {region!r}. Expected "
            f"{OFFSETS_FILE_TEMPLATE.format(region=key)} in the Offsets folder."
        )
    bundle = parse_offsets_bundle(data, key, path)
    _LOGGER.info("Loaded %s offsets from %s (%d entry types)", key.upper(), path.name if path else "?", len(bundle.entries))
    if search_dirs is None:
        _bundles[key] = bundle
    return bundle


__all__ = [
    "OffsetSchemaError",
    "EntryRanges",
    "EnemyFileRules",
    "OffsetBundle",
    "parse_offsets_bundle",
    "initialize_offsets",
]
