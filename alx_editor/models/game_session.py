"""
Game session facade.

Owns one open disc image and the descriptor table of its game version and
exposes read/write/export/import per entry type. All writes stay in memory
(the executable buffer and staged files of the image) until ``save``.

Per-type accessors are resolved dynamically::

    with GameSession.open("soa.iso") as session:
        accessories = session.read_accessory()
        accessories[5]["buy_price"] = 9999
        session.write_accessory(accessories)
        session.save()
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

from ..core.errors import NotAGameImage
from ..core.lookups import ItemDatabase
from ..core.offsets import OffsetBundle, initialize_offsets
from ..importing.csv_export import export_csv
from ..importing.csv_import import import_csv
from ..io.iso import GameImage
from ..logs.logging import get_logger
from .catalog import build_catalog, item_tables
from .entries import read_entries, resolve_descriptor, write_entries
from .schema import EntryDescriptor, ImportResult, Record

_LOGGER = get_logger("session")

_ACCESSOR_PATTERNS: tuple[tuple[str, str, str], ...] = (
    ("read_", "", "read_entries"),
    ("write_", "", "write_entries"),
    ("export_", "_csv", "export_csv"),
    ("import_", "_csv", "import_csv"),
)


class GameSession:
    """One open disc image plus the descriptor table of its game version."""

    def __init__(self, image: GameImage, bundle: OffsetBundle) -> None:
        self.image = image
        self.bundle = bundle
        self.catalog: Mapping[str, EntryDescriptor] = build_catalog(bundle)
        self._resolved: dict[str, EntryDescriptor] = {}
        self._items: ItemDatabase | None = None

    @classmethod
    def open(cls, path: str | os.PathLike[str]) -> "GameSession":
        image = GameImage.open(path)
        try:
            if image.version is None:
                raise NotAGameImage(f"{Path(path).name} ({image.game_id or 'no game id'}) is not a supported game")
            bundle = initialize_offsets(image.version)
        except Exception:
            image.close()
            raise
        _LOGGER.info("Opened %s as %s", Path(path).name, image.version.label)
        return cls(image, bundle)

    def close(self) -> None:
        self.image.close()
        self._resolved.clear()
        self._items = None

    def __enter__(self) -> "GameSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Descriptors
    # ------------------------------------------------------------------
    @property
    def entry_types(self) -> tuple[str, ...]:
        return tuple(self.catalog)

    def descriptor(self, type_name: str) -> EntryDescriptor:
        """Descriptor of ``type_name`` with its sources resolved against the open disc."""
        if type_name not in self._resolved:
            try:
                descriptor = self.catalog[type_name]
            except KeyError:
                raise KeyError(f"Unknown entry type {type_name!r}") from None
            self._resolved[type_name] = resolve_descriptor(self.image, descriptor, self.bundle.enemy_files)
        return self._resolved[type_name]

    def descriptors(self, types: Sequence[str] | None = None) -> dict[str, EntryDescriptor]:
        return {name: self.descriptor(name) for name in (types or self.entry_types)}

    def item_database(self) -> ItemDatabase:
        """Item IDs and names read from the item tables of this disc."""
        if self._items is None:
            tables: dict[int, list[str]] = {}
            for descriptor in item_tables(self.catalog):
                names = [str(record.values.get("name", "")) for record in read_entries(self.image, descriptor)]
                tables[descriptor.item_base] = names
            self._items = ItemDatabase.from_tables(tables)
        return self._items

    # ------------------------------------------------------------------
    # Generic operations
    # ------------------------------------------------------------------
    def read_entries(self, type_name: str) -> list[Record]:
        return read_entries(self.image, self.descriptor(type_name))

    def write_entries(self, type_name: str, records: Sequence[Record]) -> int:
        changed = write_entries(self.image, self.descriptor(type_name), records)
        if changed and self.catalog[type_name].item_base is not None:
            self._items = None
        return changed

    def export_csv(self, type_name: str, records: Sequence[Record] | None = None) -> str:
        if records is None:
            records = self.read_entries(type_name)
        return export_csv(self.descriptor(type_name), records)

    def import_csv(self, type_name: str, text: str) -> ImportResult:
        return import_csv(self.descriptor(type_name), text, self.item_database())

    def save(self) -> None:
        self.image.save()

    # ------------------------------------------------------------------
    # read_<type> / write_<type> / export_<type>_csv / import_<type>_csv
    # ------------------------------------------------------------------
    def __getattr__(self, name: str) -> Callable[..., Any]:
        if name.startswith("_") or "catalog" not in self.__dict__:
            raise AttributeError(name)
        for prefix, suffix, target in _ACCESSOR_PATTERNS:
            if not (name.startswith(prefix) and name.endswith(suffix)):
                continue
            type_name = name[len(prefix) : len(name) - len(suffix)]
            if type_name in self.catalog:
                method = getattr(self, target)
                return lambda *args, **kwargs: method(type_name, *args, **kwargs)
        raise AttributeError(f"{type(self).__name__!s} has no attribute {name!r}")

    def __dir__(self) -> list[str]:
        names = set(super().__dir__())
        for type_name in self.catalog:
            names.update(f"{prefix}{type_name}{suffix}" for prefix, suffix, _ in _ACCESSOR_PATTERNS)
        return sorted(names)


__all__ = ["GameSession"]
