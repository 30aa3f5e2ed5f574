"""Synthetic GameCube disc images for the test suite."""
from __future__ import annotations

import struct
from pathlib import Path
from typing import Any, Mapping

from alx_editor.core.offsets import initialize_offsets
from alx_editor.io import aklz
from alx_editor.io.binary import write_record
from alx_editor.io.strings import pack_description_table
from alx_editor.models.catalog import build_catalog
from alx_editor.models.schema import EntryDescriptor, Record

GAME_ID = "GEAE8P"
TITLE = "SKIES OF ARCADIA LEGENDS"
DOL_OFFSET = 0x2000
DOL_SIZE = 0x2EB000
FILE_ALIGN = 0x20

# Uncovered accessory bytes that must survive every write.
ACCESSORY_RESERVED = {21: 0xAB, 25: 0xCD}

# (enemy id, name, max_hp) per source, in discovery order.
EVP_ENEMIES = [(5, "Looper", 500), (9, "Bandit", 900)]
ENP_SEGMENT_A = [(1, "Seagull"), (2, "Seagull")]
ENP_SEGMENT_B = [(3, "Pinta")]
DAT_ENEMIES = [("battle/ecinit001.dat", 1, "Ixa'Taka"), ("battle/ebinit002.dat", 0x82, "Antonio")]

# (type id, task id, param id) after each enemy record; type -1 is an empty slot.
ENEMY_TASKS: dict[str, list[tuple[int, int, int]]] = {
    "Looper": [(1, 600, 0), (0, 3, 2)],
    "Bandit": [(-1, 0, 0), (1, 601, 1)],
    "Seagull": [(1, 602, 0)],
    "Pinta": [],
    "Ixa'Taka": [(1, 700, 0), (0, 1, 1)],
    "Antonio": [],
}
TASK_TERMINATOR = struct.pack(">hhh", -1, -1, 0)


def _align(value: int, block: int = FILE_ALIGN) -> int:
    return -(-value // block) * block


class DiscBuilder:
    """Lay out a header, a DOL, a set of files and an FST into one image."""

    def __init__(self, game_id: str = GAME_ID, dol_size: int = DOL_SIZE, title: str = TITLE) -> None:
        self.game_id = game_id
        self.title = title
        self.dol = bytearray(dol_size)
        struct.pack_into(">I", self.dol, 0x00, 0x100)
        struct.pack_into(">I", self.dol, 0x90, dol_size - 0x100)
        self.files: dict[str, tuple[bytes, int]] = {}

    def add_file(self, path: str, data: bytes, slot: int | None = None) -> None:
        self.files[path] = (bytes(data), max(slot or 0, len(data)))

    def add_compressed(self, path: str, raw: bytes) -> bytes:
        """Store ``raw`` as an AKLZ container with room to grow on recompression."""
        packed = aklz.compress(raw)
        self.add_file(path, packed, slot=len(packed) + len(raw) // 8 + 64)
        return packed

    def _fst(self, offsets: Mapping[str, int]) -> bytes:
        tree: dict[str, Any] = {}
        for path in self.files:
            node = tree
            parts = path.split("/")
            for part in parts[:-1]:
                node = node.setdefault(part, {})
            node[parts[-1]] = path

        entries: list[tuple[int, int, int, int]] = [(1, 0, 0, 0)]
        strings = bytearray()

        def add_name(name: str) -> int:
            offset = len(strings)
            strings.extend(name.encode("ascii") + b"\x00")
            return offset

        def emit(node: dict[str, Any], parent: int) -> None:
            for name in sorted(node):
                child = node[name]
                if isinstance(child, str):
                    data, slot = self.files[child]
                    entries.append((0, add_name(name), offsets[child], slot))
                else:
                    index = len(entries)
                    entries.append((1, add_name(name), parent, 0))
                    emit(child, index)
                    entries[index] = (1, entries[index][1], parent, len(entries))

        emit(tree, 0)
        entries[0] = (1, 0, 0, len(entries))
        out = bytearray()
        for flag, name_offset, first, second in entries:
            out += struct.pack(">III", (flag << 24) | name_offset, first, second)
        return bytes(out + strings)

    def build(self, path: Path) -> Path:
        offsets: dict[str, int] = {}
        cursor = _align(DOL_OFFSET + len(self.dol))
        for file_path, (_data, slot) in self.files.items():
            offsets[file_path] = cursor
            cursor = _align(cursor + slot)
        fst = self._fst(offsets)
        fst_offset = cursor
        image = bytearray(fst_offset + len(fst))

        image[0:6] = self.game_id.encode("ascii")
        title = self.title.encode("ascii")
        image[0x20 : 0x20 + len(title)] = title
        struct.pack_into(">III", image, 0x420, DOL_OFFSET, fst_offset, len(fst))
        image[DOL_OFFSET : DOL_OFFSET + len(self.dol)] = self.dol
        for file_path, (data, _slot) in self.files.items():
            start = offsets[file_path]
            image[start : start + len(data)] = data
        image[fst_offset:] = fst
        Path(path).write_bytes(bytes(image))
        return Path(path)


def catalog() -> Mapping[str, EntryDescriptor]:
    return build_catalog(initialize_offsets("us"))


def put_record(descriptor: EntryDescriptor, buffer: bytearray, offset: int, values: Mapping[str, Any]) -> None:
    write_record(descriptor, Record(0, dict(values)), buffer, offset)


def put_table(builder: DiscBuilder, descriptor: EntryDescriptor, rows: list[Mapping[str, Any]]) -> None:
    source = descriptor.sources[0]
    for index, values in enumerate(rows):
        put_record(descriptor, builder.dol, source.record_offset(index), values)


def enemy_bytes(descriptor: EntryDescriptor, name: str, max_hp: int, **values: Any) -> bytes:
    buffer = bytearray(descriptor.width)
    fields = {
        "name_jp": name,
        "max_hp": max_hp,
        "level": 7,
        "unknown_float": 0.25,
        "drop1_probability": 10,
        "drop1_item_id": 0xF0,
        "drop2_item_id": -1,
        "drop3_item_id": -1,
        "drop4_item_id": 0x200 + 50,
    }
    fields.update(values)
    put_record(descriptor, buffer, 0, fields)
    return bytes(buffer)


def task_bytes(tasks: list[tuple[int, int, int]]) -> bytes:
    """A task list closed by the ``(-1, -1)`` terminator."""
    return b"".join(struct.pack(">hhh", *task) for task in tasks) + TASK_TERMINATOR


def enemy_block(descriptor: EntryDescriptor, name: str, max_hp: int) -> bytes:
    return enemy_bytes(descriptor, name, max_hp) + task_bytes(ENEMY_TASKS[name])


def evp_file(descriptor: EntryDescriptor) -> bytes:
    start = 200 * 8 + 250 * 20
    data = bytearray(start)
    for index in range(200):
        struct.pack_into(">ii", data, index * 8, -1, 0)
    for index, (enemy_id, name, hp) in enumerate(EVP_ENEMIES):
        struct.pack_into(">ii", data, index * 8, enemy_id, len(data))
        data += enemy_block(descriptor, name, hp)
    return bytes(data)


def _segment(pairs: list[tuple[int, int]], enemies: list[bytes]) -> bytes:
    header = bytearray()
    for enemy_id, pos in pairs:
        header += struct.pack(">ii", enemy_id, pos)
    header += struct.pack(">ii", -1, 0)
    body = b"".join(enemies)
    return bytes(header) + body


def enp_file(descriptor: EntryDescriptor) -> bytes:
    # Segment A lists two IDs that share one record.
    seg_a_pos = 3 * 8
    seg_a = _segment(
        [(enemy_id, seg_a_pos) for enemy_id, _ in ENP_SEGMENT_A],
        [enemy_block(descriptor, ENP_SEGMENT_A[0][1], 120)],
    )
    seg_b = _segment(
        [(ENP_SEGMENT_B[0][0], 2 * 8)],
        [enemy_block(descriptor, ENP_SEGMENT_B[0][1], 80)],
    )
    table_size = 8 + 2 * 32
    out = bytearray(b"\x00\x00\xff\xff" + struct.pack(">hh", 2, -1))
    pos = table_size
    for name, segment in (("sea_a.bin", seg_a), ("sea_b.bin", seg_b)):
        out += name.encode("ascii").ljust(20, b"\x00") + struct.pack(">iii", pos, len(segment), 0)
        pos += len(segment)
    return bytes(out + seg_a + seg_b)


def dat_file(descriptor: EntryDescriptor, name: str, hp: int) -> bytes:
    # Trailing bytes stand in for the rest of the battle data.
    return enemy_block(descriptor, name, hp) + b"\xee" * 40


def level_file(table: Mapping[str, EntryDescriptor]) -> bytes:
    data = bytearray(0xAF8)
    exp_curve = table["exp_curve"]
    magic_curve = table["magic_exp_curve"]
    for character in range(exp_curve.count):
        base = exp_curve.sources[0].record_offset(character)
        put_record(exp_curve, data, base, {f"level{n}_exp": n * 100 + character for n in range(1, 100)})
        base = magic_curve.sources[0].record_offset(character)
        put_record(magic_curve, data, base, {"green_exp_1": 10 + character, "silver_exp_6": 600})
    return bytes(data)


def accessory_rows(count: int = 80) -> list[dict[str, Any]]:
    return [
        {
            "name": f"Ring {index}",
            "character_flags": 0b00111111,
            "sell_percent": 50,
            "buy_price": 100,
            "trait1_id": -1 if index % 2 else 3,
            "trait1_value": 0 if index % 2 else 15,
        }
        for index in range(count)
    ]


def standard_builder(game_id: str = GAME_ID) -> DiscBuilder:
    """A disc with populated item tables, descriptions, level data and enemy containers."""
    table = catalog()
    builder = DiscBuilder(game_id=game_id)

    accessory = table["accessory"]
    put_table(builder, accessory, accessory_rows(accessory.count))
    for index in range(accessory.count):
        offset = accessory.sources[0].record_offset(index)
        for rel, value in ACCESSORY_RESERVED.items():
            builder.dol[offset + rel] = value
    description = accessory.description
    texts = [f"Accessory number {index}." for index in range(accessory.count)]
    builder.dol[description.start : description.end] = pack_description_table(texts, size=description.size)

    put_table(builder, table["weapon"], [{"name": f"Cutlass {i}", "character_id": i % 6 - 1, "attack": 10 + i} for i in range(80)])
    put_table(builder, table["armor"], [{"name": f"Vest {i}", "buy_price": 50} for i in range(80)])
    put_table(builder, table["usable_item"], [{"name": f"Potion {i}", "effect_base": 100} for i in range(80)])
    put_table(
        builder,
        table["character"],
        [
            {
                "name": name,
                "age": 17,
                "weapon_id": i,
                "armor_id": 0x50 + i,
                "accessory_id": 0xFFFF,
                "max_mp_growth": 1.5,
                "power_growth": 2.25,
                "resist_poison": 10,
            }
            for i, name in enumerate(("Vyse", "Aika", "Fina", "Drachma", "Enrique", "Gilder"))
        ],
    )
    put_table(builder, table["shop"], [{"shop_id": i, "sot_pos": 0x80001000 + i, "item1_id": 0xF0} for i in range(43)])
    put_table(builder, table["treasure_chest"], [{"item_id": 0x200 + 500 if i == 0 else 0xF0, "item_amount": 1} for i in range(119)])

    builder.add_file("battle/first.lmt", level_file(table))
    enemy = table["enemy"]
    builder.add_compressed("epevent.evp", evp_file(enemy))
    builder.add_compressed("field/sea_ep.enp", enp_file(enemy))
    for path, _enemy_id, name in DAT_ENEMIES:
        builder.add_compressed(path, dat_file(enemy, name, 3000))
    builder.add_file("battle/readme.txt", b"not an enemy file\n")
    return builder


def build_standard_disc(path: Path, game_id: str = GAME_ID) -> Path:
    return standard_builder(game_id).build(path)
