"""
Reading and writing entry types over their sources.

A descriptor lists one or more source ranges. Reading concatenates the
records of every range in order, so a record's ID is its position in the
collection. Writing splits a collection back over the same ranges: records
in the executable are patched in place, records in other files are written
into a copy of the file which is then staged (re-compressed when the file
was an AKLZ container).
"""
from __future__ import annotations

from typing import Sequence

from ..core.config import DESCRIPTION_BLOCK, DOL_PATH
from ..core.errors import CountMismatch
from ..core.offsets import EnemyFileRules
from ..io.binary import read_record, write_record
from ..io.enemy_files import discover_enemy_sources, discover_task_sources
from ..io.iso import GameImage
from ..io.strings import read_description_table
from ..logs.logging import get_logger
from .catalog import DESCRIPTION_COLUMN, ENEMY_TASK, ENEMY_WIDTH
from .schema import EntryDescriptor, Record

_LOGGER = get_logger("entries")


def _is_executable(path: str) -> bool:
    return path.strip("/").lower() == DOL_PATH.lower()


def _load(image: GameImage, path: str, cache: dict[str, bytes]) -> bytes:
    key = path.lower()
    if key not in cache:
        cache[key] = image.dol if _is_executable(path) else image.read_file(path)
    return cache[key]


def resolve_descriptor(image: GameImage, descriptor: EntryDescriptor, rules: EnemyFileRules) -> EntryDescriptor:
    """Attach the sources of a dynamic descriptor found on ``image``; static descriptors pass through."""
    if not descriptor.dynamic:
        return descriptor
    if descriptor.name == ENEMY_TASK:
        sources = discover_task_sources(image, ENEMY_WIDTH, rules)
    else:
        sources = discover_enemy_sources(image, descriptor.width, rules)
    return descriptor.with_sources(sources)


def read_descriptions(image: GameImage, descriptor: EntryDescriptor, cache: dict[str, bytes] | None = None) -> list[str]:
    """Description texts in record order; records past the end of the table get ``""``."""
    if descriptor.description is None:
        return []
    cache = {} if cache is None else cache
    table = descriptor.description
    data = _load(image, table.path, cache)[table.start : table.end]
    texts = [entry.text for entry in read_description_table(data, descriptor.count, DESCRIPTION_BLOCK, table.start)]
    return texts + [""] * (descriptor.count - len(texts))


def read_entries(image: GameImage, descriptor: EntryDescriptor) -> list[Record]:
    cache: dict[str, bytes] = {}
    records: list[Record] = []
    for source in descriptor.sources:
        data = _load(image, source.path, cache)
        for index in range(source.count):
            record = read_record(
                descriptor,
                data,
                source.record_offset(index),
                record_id=len(records),
                source=source.display_name,
            )
            if descriptor.dynamic:
                record.extras["source"] = source.display_name
                record.extras["enemy_id"] = source.ids[index] if source.ids else None
                if source.slots is not None:
                    record.extras["slot"] = source.slots[index]
            records.append(record)
    if descriptor.description is not None:
        for record, text in zip(records, read_descriptions(image, descriptor, cache)):
            record.extras[DESCRIPTION_COLUMN] = text
    _LOGGER.debug("Read %d %s records from %d source(s)", len(records), descriptor.name, len(descriptor.sources))
    return records


def write_entries(image: GameImage, descriptor: EntryDescriptor, records: Sequence[Record]) -> int:
    """
    Write ``records`` back over the sources of ``descriptor``; return the number of fields changed.

    Every record is encoded before the image is touched, so an encode error
    leaves the image as it was.
    """
    if len(records) != descriptor.count:
        raise CountMismatch(descriptor.name, descriptor.count, len(records))

    originals: dict[str, bytes] = {}
    working: dict[str, bytearray] = {}
    compressed: dict[str, bool] = {}
    paths: dict[str, str] = {}
    changed = 0
    position = 0
    for source in descriptor.sources:
        original = _load(image, source.path, originals)
        key = source.path.lower()
        buffer = working.setdefault(key, bytearray(original))
        paths[key] = source.path
        compressed[key] = compressed.get(key, False) or source.compressed
        for index in range(source.count):
            offset = source.record_offset(index)
            changed += write_record(
                descriptor,
                records[position],
                buffer,
                offset,
                source=source.display_name,
                original=original[offset : offset + descriptor.width],
            )
            position += 1

    for key, buffer in working.items():
        if bytes(buffer) == originals[key]:
            continue
        path = paths[key]
        if _is_executable(path):
            for source in descriptor.sources:
                if source.path.lower() != key:
                    continue
                for index in range(source.count):
                    offset = source.record_offset(index)
                    image.patch_executable(offset, bytes(buffer[offset : offset + descriptor.width]))
        else:
            image.stage_file(path, bytes(buffer), compress=compressed[key])
    _LOGGER.info("Wrote %s: %d field(s) changed", descriptor.name, changed)
    return changed


__all__ = ["resolve_descriptor", "read_descriptions", "read_entries", "write_entries"]
