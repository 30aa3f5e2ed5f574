"""
Enemy container headers.

Enemy records are not stored in one table. They are spread over the event
pack (``epevent.evp``), the per-area field packs (``*_ep.enp``) and one
``ecinit``/``ebinit`` file per battle. Each container addresses its records
through a header of ``(id, pos)`` pairs; this module turns those headers
into ``SourceRange`` lists the catalog can read and write like any table.
The AI task list of an enemy directly follows its record.
"""
from __future__ import annotations

import re
import struct
from typing import NamedTuple

from ..core.errors import CorruptData
from ..core.offsets import EnemyFileRules
from ..logs.logging import get_logger
from ..models.schema import SourceRange
from .iso import GameImage

ENP_SIGNATURE = b"\x00\x00\xff\xff"
ENP_SEGMENT_HEADER = 8
ENP_SEGMENT_ENTRY = 32
ENP_SEGMENT_NAME = 20
ENP_MAX_ENEMIES = 84

EVP_MAX_ENEMIES = 200
EVP_MAX_EVENTS = 250
EVP_EVENT_SIZE = 20
EVP_ENEMIES_START = EVP_MAX_ENEMIES * 8 + EVP_MAX_EVENTS * EVP_EVENT_SIZE

# (type id, task id, param id) records follow each enemy
TASK_WIDTH = 6
MAX_TASKS = 64

_PAIR = struct.Struct(">ii")
_TASK_HEAD = struct.Struct(">hh")
_DIGITS_RE = re.compile(r"\d")
_LOGGER = get_logger("enemy_files")


class EnemySlot(NamedTuple):
    enemy_id: int
    offset: int


class TaskSlot(NamedTuple):
    enemy_id: int
    slot: int
    offset: int


def _fits(offset: int, width: int, size: int) -> bool:
    return 0 <= offset and offset + width <= size


def parse_evp_slots(data: bytes, width: int) -> list[EnemySlot]:
    """Slots of the event pack: 200 header pairs ahead of the event table."""
    if len(data) < EVP_ENEMIES_START:
        return []
    slots: list[EnemySlot] = []
    for index in range(EVP_MAX_ENEMIES):
        enemy_id, pos = _PAIR.unpack_from(data, index * _PAIR.size)
        if enemy_id >= 0 and 0 < pos < len(data) and _fits(pos, width, len(data)):
            slots.append(EnemySlot(enemy_id, pos))
    return slots


def _segment_slots(data: bytes, start: int, size: int, width: int) -> list[EnemySlot]:
    """Header pairs of one field segment; positions are relative to the segment."""
    if size < _PAIR.size:
        return []
    slots: list[EnemySlot] = []
    for index in range(min(ENP_MAX_ENEMIES, size // _PAIR.size)):
        enemy_id, pos = _PAIR.unpack_from(data, start + index * _PAIR.size)
        if enemy_id < 0:
            break
        if 0 <= pos < size and _fits(pos, width, size):
            slots.append(EnemySlot(enemy_id, start + pos))
    return slots


def parse_enp_segments(data: bytes, name: str) -> list[tuple[str, int, int]]:
    """
    Return ``(label, start, size)`` for every segment of a field pack.

    Packs without a segment table are a single segment covering the file.
    Segments that run past the end of the file are skipped.
    """
    if len(data) < ENP_SEGMENT_HEADER or data[:4] != ENP_SIGNATURE:
        return [(name, 0, len(data))]
    count, check = struct.unpack_from(">hh", data, 4)
    if check != -1:
        raise CorruptData("field pack segment table is corrupted", offset=4, source=name)
    if ENP_SEGMENT_HEADER + max(count, 0) * ENP_SEGMENT_ENTRY > len(data):
        raise CorruptData(f"segment table of {count} entries is truncated", offset=4, source=name)
    segments: list[tuple[str, int, int]] = []
    for index in range(max(count, 0)):
        base = ENP_SEGMENT_HEADER + index * ENP_SEGMENT_ENTRY
        raw_name = data[base : base + ENP_SEGMENT_NAME].split(b"\x00", 1)[0]
        pos, size, _check = struct.unpack_from(">iii", data, base + ENP_SEGMENT_NAME)
        label = raw_name.decode("latin-1").replace(".bin", ".enp") or f"{name}[{index}]"
        if pos < 0 or size < 0 or pos + size > len(data):
            _LOGGER.debug("Skipping segment %s of %s: out of range", label, name)
            continue
        segments.append((label, pos, size))
    return segments


def parse_enp_slots(data: bytes, width: int, name: str = "") -> list[tuple[str, list[EnemySlot]]]:
    """Slots of a field pack grouped by segment, with absolute offsets."""
    return [
        (label, _segment_slots(data, start, size, width))
        for label, start, size in parse_enp_segments(data, name)
    ]


def dat_enemy_id(filename: str, rules: EnemyFileRules) -> int | None:
    """Enemy ID of a battle file: the first three digits of its name, shifted for bosses."""
    name = filename.rsplit("/", 1)[-1].lower()
    digits = _DIGITS_RE.findall(name)[:3]
    if len(digits) < 3:
        return None
    enemy_id = int("".join(digits))
    if name.startswith(rules.boss_prefix):
        enemy_id += rules.boss_id_offset
    return enemy_id


def parse_task_slots(data: bytes, enemy_id: int, start: int, end: int) -> list[TaskSlot]:
    """
    AI tasks stored after one enemy record, from ``start`` up to ``end``.

    The list stops at a ``(-1, -1)`` terminator, at ``end`` or after
    ``MAX_TASKS`` slots. Empty slots (type -1) are skipped but keep their
    number, so slot numbers match the game's task indexes.
    """
    end = min(end, len(data))
    slots: list[TaskSlot] = []
    for index in range(min(MAX_TASKS, max(end - start, 0) // TASK_WIDTH)):
        offset = start + index * TASK_WIDTH
        type_id, task_id = _TASK_HEAD.unpack_from(data, offset)
        if type_id == -1 and task_id == -1:
            break
        if type_id != -1:
            slots.append(TaskSlot(enemy_id, index + 1, offset))
    return slots


class _Container(NamedTuple):
    path: str
    label: str | None
    compressed: bool
    data: bytes
    end: int
    slots: list[EnemySlot]


def _containers(image: GameImage, width: int, rules: EnemyFileRules) -> list[_Container]:
    """
    Every enemy container on the disc, in a stable order.

    Event packs come first, then field pack segments sorted by path, then the
    battle files grouped by prefix (regular before boss) and sorted by path.
    ``end`` bounds the records and tasks of a container: the file, or the
    segment of a field pack.
    """
    containers: list[_Container] = []
    files = image.files()

    for event_name in rules.event_files:
        for entry in files:
            if entry.name.lower() != event_name.lower():
                continue
            data = image.read_file(entry.path)
            slots = parse_evp_slots(data, width)
            if slots:
                compressed = image.is_compressed(entry.path)
                containers.append(_Container(entry.path, None, compressed, data, len(data), slots))

    for entry in files:
        if not entry.name.lower().endswith(rules.field_suffix):
            continue
        data = image.read_file(entry.path)
        compressed = image.is_compressed(entry.path)
        for label, start, size in parse_enp_segments(data, entry.name):
            slots = _segment_slots(data, start, size, width)
            if slots:
                containers.append(_Container(entry.path, label, compressed, data, start + size, slots))

    for prefix in rules.battle_prefixes:
        for entry in files:
            name = entry.name.lower()
            if not (name.startswith(prefix) and name.endswith(rules.battle_suffix)):
                continue
            enemy_id = dat_enemy_id(name, rules)
            if enemy_id is None:
                continue
            data = image.read_file(entry.path)
            if len(data) < width:
                continue
            compressed = image.is_compressed(entry.path)
            containers.append(_Container(entry.path, None, compressed, data, len(data), [EnemySlot(enemy_id, 0)]))
    return containers


def discover_enemy_sources(image: GameImage, width: int, rules: EnemyFileRules) -> list[SourceRange]:
    """Locate every enemy record on the disc, one source per container."""
    sources = [
        SourceRange(
            container.path,
            start=min(slot.offset for slot in container.slots),
            count=len(container.slots),
            width=width,
            compressed=container.compressed,
            offsets=tuple(slot.offset for slot in container.slots),
            ids=tuple(slot.enemy_id for slot in container.slots),
            label=container.label,
        )
        for container in _containers(image, width, rules)
    ]
    _LOGGER.debug(
        "Found %d enemy records in %d sources",
        sum(source.count for source in sources),
        len(sources),
    )
    return sources


def discover_task_sources(image: GameImage, enemy_width: int, rules: EnemyFileRules) -> list[SourceRange]:
    """Locate the AI tasks following every enemy record, in enemy order."""
    sources: list[SourceRange] = []
    for container in _containers(image, enemy_width, rules):
        tasks: list[TaskSlot] = []
        for slot in container.slots:
            tasks.extend(parse_task_slots(container.data, slot.enemy_id, slot.offset + enemy_width, container.end))
        if not tasks:
            continue
        sources.append(
            SourceRange(
                container.path,
                start=min(task.offset for task in tasks),
                count=len(tasks),
                width=TASK_WIDTH,
                compressed=container.compressed,
                offsets=tuple(task.offset for task in tasks),
                ids=tuple(task.enemy_id for task in tasks),
                label=container.label,
                slots=tuple(task.slot for task in tasks),
            )
        )
    _LOGGER.debug("Found %d enemy tasks in %d sources", sum(source.count for source in sources), len(sources))
    return sources


__all__ = [
    "EnemySlot",
    "TaskSlot",
    "MAX_TASKS",
    "TASK_WIDTH",
    "parse_evp_slots",
    "parse_enp_segments",
    "parse_enp_slots",
    "parse_task_slots",
    "dat_enemy_id",
    "discover_enemy_sources",
    "discover_task_sources",
]
