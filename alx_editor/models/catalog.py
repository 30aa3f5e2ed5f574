"""
Entry catalog: per-type record layouts and the descriptor table.

The layouts are static. The byte ranges come from the offsets bundle of the
opened game version, so ``build_catalog`` combines the two into one read-only
table. Enemies and their AI tasks are the exception: their sources live in
compressed containers whose headers are only known once a disc is open, so
those descriptors are built without sources and resolved per session.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping

from ..core.config import COMPRESSED_EXTENSIONS
from ..core.lookups import CHARACTER_NAMES, ELEMENT_NAMES, STATE_NAMES, column_name
from ..core.offsets import EntryRanges, OffsetBundle, OffsetSchemaError, initialize_offsets
from ..core.region import GameVersion
from .schema import (
    REFERENCE_ITEM,
    REFERENCE_ITEM_OR_GOLD,
    DescriptionRange,
    EntryDescriptor,
    FieldSpec,
    SourceRange,
)

ENEMY = "enemy"
ENEMY_TASK = "enemy_task"
DESCRIPTION_COLUMN = "description"
ENEMY_EXTRAS: tuple[str, ...] = ("source", "enemy_id")
ENEMY_TASK_EXTRAS: tuple[str, ...] = ENEMY_EXTRAS + ("slot",)


def _f(name: str, offset: int, kind: str, **options) -> FieldSpec:
    return FieldSpec(name, offset, kind, **options)


def _s(name: str, offset: int, size: int, encoding: str = "auto") -> FieldSpec:
    return FieldSpec(name, offset, "str", size=size, encoding=encoding)


def _flags(name: str, offset: int) -> FieldSpec:
    return FieldSpec(name, offset, "u8", display="bin")


def _item(name: str, offset: int, kind: str, gold: bool = False) -> FieldSpec:
    return FieldSpec(name, offset, kind, reference=REFERENCE_ITEM_OR_GOLD if gold else REFERENCE_ITEM)


def _series(template: str, labels: Iterable[str], offset: int, kind: str, stride: int) -> list[FieldSpec]:
    """One field per label, ``stride`` bytes apart."""
    return [_f(template.format(column_name(label)), offset + i * stride, kind) for i, label in enumerate(labels)]


def _element_resistances(offset: int) -> list[FieldSpec]:
    return _series("resist_{}", ELEMENT_NAMES, offset, "i16", 2)


def _state_resistances(offset: int) -> list[FieldSpec]:
    return _series("resist_{}", STATE_NAMES, offset, "i16", 2)


def _shop_order(offset: int) -> list[FieldSpec]:
    return [
        _f("sell_percent", offset, "i8"),
        _f("order1", offset + 1, "i8"),
        _f("order2", offset + 2, "i8"),
    ]


def _traits(count: int, offset: int) -> list[FieldSpec]:
    fields: list[FieldSpec] = []
    for n in range(count):
        base = offset + n * 4
        fields.append(_f(f"trait{n + 1}_id", base, "i8", minimum=-1))
        fields.append(_f(f"trait{n + 1}_value", base + 2, "i16"))
    return fields


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------

_EQUIPMENT_FIELDS: tuple[FieldSpec, ...] = (
    _s("name", 0, 17),
    _flags("character_flags", 17),
    *_shop_order(18),
    _f("buy_price", 22, "u16"),
    *_traits(4, 24),
)

WEAPON_FIELDS: tuple[FieldSpec, ...] = (
    _s("name", 0, 17),
    _f("character_id", 17, "i8", minimum=-1, maximum=len(CHARACTER_NAMES) - 1),
    *_shop_order(18),
    _f("effect_id", 21, "i8"),
    _f("buy_price", 22, "u16"),
    _f("attack", 24, "i16"),
    _f("hit_percent", 26, "i16"),
    _f("trait_id", 28, "i8", minimum=-1),
    _f("trait_value", 30, "i16"),
)

WEAPON_EFFECT_FIELDS: tuple[FieldSpec, ...] = (
    _s("name_jp", 0, 17, encoding="shift_jis"),
    _f("effect_id", 17, "i8"),
    _f("state_id", 18, "i8"),
    _f("state_miss", 19, "i8"),
)

USABLE_ITEM_FIELDS: tuple[FieldSpec, ...] = (
    _s("name", 0, 17),
    _flags("occasion_flags", 17),
    _f("effect_id", 18, "i8"),
    _f("scope_id", 19, "u8"),
    _f("consume_percent", 20, "i8"),
    *_shop_order(21),
    _f("buy_price", 24, "u16"),
    _f("effect_base", 28, "i16"),
    _f("element_id", 30, "i8"),
    _f("type_id", 31, "i8"),
    _f("state_id", 32, "i16"),
    _f("state_miss", 34, "i16"),
)

SPECIAL_ITEM_FIELDS: tuple[FieldSpec, ...] = (
    _s("name", 0, 17),
    *_shop_order(17),
    _f("buy_price", 20, "u16"),
)

# ---------------------------------------------------------------------------
# Characters
# ---------------------------------------------------------------------------

CHARACTER_FIELDS: tuple[FieldSpec, ...] = (
    _s("name", 0, 11),
    _f("age", 11, "i8"),
    _f("gender_id", 12, "i8"),
    _f("width", 13, "i8"),
    _f("depth", 14, "i8"),
    _f("max_mp", 15, "i8"),
    _f("element_id", 16, "i8"),
    _item("weapon_id", 18, "u16"),
    _item("armor_id", 20, "u16"),
    _item("accessory_id", 22, "u16"),
    _f("movement_flags", 24, "i16"),
    _f("hp", 26, "i16"),
    _f("max_hp", 28, "i16"),
    _f("max_hp_growth", 30, "i16"),
    _f("sp", 32, "i16"),
    _f("max_sp", 34, "i16"),
    _f("counter_percent", 36, "i16"),
    _f("exp", 40, "u32"),
    _f("max_mp_growth", 44, "f32"),
    _f("unknown1", 48, "f32"),
    *_element_resistances(52),
    *_state_resistances(64),
    _f("danger", 94, "i16"),
    *_series("{}", ("power", "will", "vigor", "agile", "quick"), 96, "i16", 2),
    *_series("{}_growth", ("power", "will", "vigor", "agile", "quick"), 108, "f32", 4),
    *_series("{}_magic_exp", ELEMENT_NAMES, 128, "i32", 4),
)

# Magic and super moves share one 48-byte layout.
CHARACTER_SKILL_FIELDS: tuple[FieldSpec, ...] = (
    _s("name", 0, 17),
    _f("element_id", 17, "i8"),
    _f("order", 18, "i16"),
    _flags("occasion_flags", 20),
    _f("effect_id", 21, "i8"),
    _f("scope_id", 22, "u8"),
    _f("category_id", 23, "i8"),
    _f("effect_speed", 24, "i8"),
    _f("effect_sp", 25, "i8"),
    _f("effect_base", 28, "i16"),
    _f("type_id", 30, "i8"),
    _f("state_id", 31, "i8"),
    _f("state_miss", 32, "i8"),
    _f("ship_occasion_id", 36, "i8"),
    _f("ship_effect_id", 38, "i16"),
    _f("ship_effect_sp", 40, "i8"),
    _f("ship_effect_turns", 41, "i8"),
    _f("ship_effect_base", 42, "i16"),
    _f("unknown", 44, "i8"),
)

# ---------------------------------------------------------------------------
# Enemies
# ---------------------------------------------------------------------------

ENEMY_SKILL_FIELDS: tuple[FieldSpec, ...] = (
    _s("name", 0, 17),
    _f("category_id", 21, "i8"),
    _f("effect_id", 22, "i8"),
    _f("scope_id", 23, "u8"),
    _f("effect_param_id", 24, "u16"),
    _f("effect_base", 26, "u16"),
    _f("element_id", 28, "i8"),
    _f("type_id", 29, "i8"),
    _f("state_infliction", 30, "i8"),
    _f("state_resistance", 31, "i8"),
    _f("state_id", 32, "i8"),
    _f("state_miss", 33, "i8"),
)

ENEMY_WIDTH = 138

ENEMY_FIELDS: tuple[FieldSpec, ...] = (
    _s("name_jp", 0, 21, encoding="shift_jis"),
    _f("width", 21, "i8"),
    _f("depth", 22, "i8"),
    _f("element_id", 23, "i8"),
    _f("movement_flags", 26, "i16"),
    _f("counter_percent", 28, "i16"),
    _f("exp", 30, "u16"),
    _f("gold", 32, "u16"),
    _f("max_hp", 36, "i32"),
    _f("unknown_float", 40, "f32"),
    *_element_resistances(44),
    *_state_resistances(56),
    _f("danger", 86, "i16"),
    _f("effect_id", 88, "i8"),
    _f("state_id", 89, "i8"),
    _f("state_miss", 90, "i8"),
    _f("level", 92, "i16"),
    *_series(
        "{}",
        ("will", "vigor", "agile", "quick", "attack", "defense", "mag_def", "hit", "dodge"),
        94,
        "i16",
        2,
    ),
    *(
        spec
        for n in range(4)
        for spec in (
            _f(f"drop{n + 1}_probability", 114 + n * 6, "i16"),
            _f(f"drop{n + 1}_amount", 116 + n * 6, "i16"),
            _item(f"drop{n + 1}_item_id", 118 + n * 6, "i16", gold=True),
        )
    ),
)

ENEMY_TASK_WIDTH = 6

# 0 a branch, 1 an action; empty slots (type -1) are never listed
ENEMY_TASK_FIELDS: tuple[FieldSpec, ...] = (
    _f("type_id", 0, "i16", minimum=0, maximum=1),
    _f("task_id", 2, "i16"),
    _f("param_id", 4, "i16"),
)

ENEMY_SHIP_FIELDS: tuple[FieldSpec, ...] = (
    _s("name", 0, 20),
    _f("max_hp", 20, "i32"),
    *_series("{}", ("will", "defense", "mag_def", "quick", "agile", "dodge"), 24, "i16", 2),
    *_element_resistances(36),
    *(
        _f(f"armament{n + 1}_{part}", 48 + n * 10 + i * 2, "i16")
        for n in range(4)
        for i, part in enumerate(("type", "attack", "range", "hit", "element_id"))
    ),
    _f("exp", 100, "i32"),
    _f("gold", 104, "i32"),
    *(
        spec
        for n in range(3)
        for spec in (
            _f(f"drop{n + 1}_id", 108 + n * 4, "i16"),
            _item(f"drop{n + 1}_item_id", 110 + n * 4, "i16", gold=True),
        )
    ),
)

# ---------------------------------------------------------------------------
# Ships
# ---------------------------------------------------------------------------

PLAYABLE_SHIP_FIELDS: tuple[FieldSpec, ...] = (
    _s("name", 0, 20),
    _f("max_hp", 20, "u32"),
    *_series("{}", ("max_sp", "sp", "defense", "mag_def", "quick", "dodge"), 24, "i16", 2),
    *_element_resistances(36),
    *(_item(f"cannon{n + 1}_id", 48 + n * 2, "i16") for n in range(5)),
    *(_item(f"accessory{n + 1}_id", 58 + n * 2, "i16") for n in range(3)),
    _f("value", 64, "u32"),
    _f("max_hp_growth", 72, "i32"),
    *_series(
        "{}_growth",
        ("max_sp", "sp", "defense", "mag_def", "quick", "dodge"),
        76,
        "i16",
        2,
    ),
)

SHIP_CANNON_FIELDS: tuple[FieldSpec, ...] = (
    _s("name", 0, 17),
    _flags("ship_flags", 17),
    _f("type_id", 18, "i8"),
    _f("element_id", 19, "i8"),
    _f("attack", 20, "i16"),
    _f("hit", 22, "u16"),
    _f("limit", 24, "i8"),
    _f("sp", 25, "i8"),
    _f("trait_id", 26, "i8", minimum=-1),
    _f("trait_value", 28, "i16"),
    _f("buy_price", 30, "u16"),
    *_shop_order(32),
)

SHIP_ACCESSORY_FIELDS: tuple[FieldSpec, ...] = (
    _s("name", 0, 17),
    _flags("ship_flags", 17),
    *_traits(4, 18),
    _f("buy_price", 34, "u16"),
    *_shop_order(36),
)

SHIP_ITEM_FIELDS: tuple[FieldSpec, ...] = (
    _s("name", 0, 17),
    _flags("occasion_flags", 17),
    _f("ship_effect_id", 18, "i8"),
    _f("ship_effect_turns", 19, "i8"),
    _f("consume_percent", 20, "i8"),
    _f("buy_price", 22, "u16"),
    *_shop_order(24),
    _f("ship_effect_base", 28, "i16"),
    _f("element_id", 30, "i8"),
    _f("unknown1", 31, "i8"),
    _f("unknown2", 32, "i16"),
    _f("hit_percent", 34, "i16"),
)

# ---------------------------------------------------------------------------
# World
# ---------------------------------------------------------------------------

CREW_MEMBER_FIELDS: tuple[FieldSpec, ...] = (
    _s("name", 0, 17),
    _f("position_id", 17, "i8"),
    _f("trait_id", 18, "i8", minimum=-1),
    _f("trait_value", 20, "i16"),
    _f("ship_effect_id", 22, "i8"),
    _f("ship_effect_sp", 23, "i8"),
    _f("ship_effect_turns", 24, "i8"),
    _f("ship_effect_base", 28, "i16"),
    _f("unknown", 30, "i16"),
)

SHOP_ITEM_SLOTS = 48

SHOP_FIELDS: tuple[FieldSpec, ...] = (
    _f("shop_id", 0, "u16"),
    _f("sot_pos", 4, "u32", display="hex"),
    *(_item(f"item{n + 1}_id", 8 + n * 2, "i16") for n in range(SHOP_ITEM_SLOTS)),
)

SWASHBUCKLER_FIELDS: tuple[FieldSpec, ...] = (
    _s("name", 0, 25),
    _f("rating", 25, "u8"),
    *_series("{}", ("regular_attack", "super_move_attack", "dodge", "run"), 26, "i16", 2),
)

TREASURE_CHEST_FIELDS: tuple[FieldSpec, ...] = (
    _item("item_id", 0, "i32", gold=True),
    _f("item_amount", 4, "i32"),
)

# ---------------------------------------------------------------------------
# Growth curves
# ---------------------------------------------------------------------------

MAX_LEVEL = 99

SPIRIT_CURVE_FIELDS: tuple[FieldSpec, ...] = tuple(
    spec
    for n in range(1, MAX_LEVEL + 1)
    for spec in (
        _f(f"level{n}_sp", (n - 1) * 2, "i8"),
        _f(f"level{n}_max_sp", (n - 1) * 2 + 1, "i8"),
    )
)

EXP_BOOST_FIELDS: tuple[FieldSpec, ...] = (
    _f("exp", 0, "u32"),
    *_series("{}_exp", ELEMENT_NAMES, 4, "u32", 4),
)

EXP_CURVE_FIELDS: tuple[FieldSpec, ...] = tuple(
    _f(f"level{n}_exp", (n - 1) * 4, "i32") for n in range(1, MAX_LEVEL + 1)
)

MAGIC_LEVELS = 6

MAGIC_EXP_CURVE_FIELDS: tuple[FieldSpec, ...] = tuple(
    _f(f"{column_name(element)}_exp_{level + 1}", (e * MAGIC_LEVELS + level) * 2, "u16")
    for e, element in enumerate(ELEMENT_NAMES)
    for level in range(MAGIC_LEVELS)
)

# ---------------------------------------------------------------------------
# Descriptor table
# ---------------------------------------------------------------------------

# name -> (width, record count, fields, item id base); enemy and task counts are discovered per disc
LAYOUTS: dict[str, tuple[int, int | None, tuple[FieldSpec, ...], int | None]] = {
    "accessory": (40, 80, _EQUIPMENT_FIELDS, 0x0A0),
    "armor": (40, 80, _EQUIPMENT_FIELDS, 0x050),
    "weapon": (32, 80, WEAPON_FIELDS, 0x000),
    "weapon_effect": (20, 21, WEAPON_EFFECT_FIELDS, None),
    "usable_item": (36, 80, USABLE_ITEM_FIELDS, 0x0F0),
    "special_item": (22, 80, SPECIAL_ITEM_FIELDS, 0x140),
    "character": (152, 6, CHARACTER_FIELDS, None),
    "character_magic": (48, 36, CHARACTER_SKILL_FIELDS, None),
    "character_super_move": (48, 26, CHARACTER_SKILL_FIELDS, None),
    ENEMY: (ENEMY_WIDTH, None, ENEMY_FIELDS, None),
    ENEMY_TASK: (ENEMY_TASK_WIDTH, None, ENEMY_TASK_FIELDS, None),
    "enemy_magic": (36, 36, ENEMY_SKILL_FIELDS, None),
    "enemy_super_move": (36, 309, ENEMY_SKILL_FIELDS, None),
    "enemy_ship": (120, 45, ENEMY_SHIP_FIELDS, None),
    "playable_ship": (100, 5, PLAYABLE_SHIP_FIELDS, None),
    "ship_cannon": (36, 40, SHIP_CANNON_FIELDS, 0x190),
    "ship_accessory": (40, 40, SHIP_ACCESSORY_FIELDS, 0x1B8),
    "ship_item": (36, 30, SHIP_ITEM_FIELDS, 0x1E0),
    "crew_member": (36, 22, CREW_MEMBER_FIELDS, None),
    "shop": (104, 43, SHOP_FIELDS, None),
    "swashbuckler": (34, 24, SWASHBUCKLER_FIELDS, None),
    "treasure_chest": (8, 119, TREASURE_CHEST_FIELDS, None),
    "spirit_curve": (198, 6, SPIRIT_CURVE_FIELDS, None),
    "exp_boost": (28, 3, EXP_BOOST_FIELDS, None),
    "exp_curve": (396, 6, EXP_CURVE_FIELDS, None),
    "magic_exp_curve": (72, 6, MAGIC_EXP_CURVE_FIELDS, None),
}

ENTRY_TYPES: tuple[str, ...] = tuple(LAYOUTS)


def _check_layout(name: str, width: int, fields: tuple[FieldSpec, ...]) -> None:
    seen: set[str] = set()
    for spec in fields:
        if spec.name in seen:
            raise OffsetSchemaError(f"{name}: duplicate field {spec.name!r}")
        seen.add(spec.name)
        if spec.offset < 0 or spec.end > width:
            raise OffsetSchemaError(f"{name}: field {spec.name} ({spec.offset}..{spec.end}) exceeds width {width}")


def _static_sources(name: str, width: int, count: int, ranges: EntryRanges) -> tuple[SourceRange, ...]:
    if ranges.size != width * count:
        raise OffsetSchemaError(
            f"{name}: range {ranges.start:#x}..{ranges.end:#x} holds {ranges.size} bytes, "
            f"expected {count} records of {width} bytes"
        )
    compressed = any(ranges.file.lower().endswith(ext) for ext in COMPRESSED_EXTENSIONS)
    return (SourceRange(ranges.file, ranges.start, count, width, compressed=compressed),)


def build_catalog(bundle: OffsetBundle) -> Mapping[str, EntryDescriptor]:
    """Combine the static layouts with the ranges of ``bundle`` into a read-only descriptor table."""
    table: dict[str, EntryDescriptor] = {}
    for name, (width, count, fields, item_base) in LAYOUTS.items():
        _check_layout(name, width, fields)
        if count is None:
            extras = ENEMY_TASK_EXTRAS if name == ENEMY_TASK else ENEMY_EXTRAS
            table[name] = EntryDescriptor(name, width, fields, dynamic=True, extras=extras)
            continue
        ranges = bundle.ranges(name)
        description = None
        if ranges.description is not None:
            description = DescriptionRange(ranges.file, *ranges.description)
        table[name] = EntryDescriptor(
            name,
            width,
            fields,
            sources=_static_sources(name, width, count, ranges),
            description=description,
            item_base=item_base,
            extras=(DESCRIPTION_COLUMN,) if description is not None else (),
        )
    return MappingProxyType(table)


_catalogs: dict[str, Mapping[str, EntryDescriptor]] = {}


def get_catalog(version: GameVersion | str) -> Mapping[str, EntryDescriptor]:
    """Descriptor table for a game version, built once per region."""
    bundle = initialize_offsets(version)
    if bundle.region not in _catalogs:
        _catalogs[bundle.region] = build_catalog(bundle)
    return _catalogs[bundle.region]


def item_tables(catalog: Mapping[str, EntryDescriptor]) -> list[EntryDescriptor]:
    """Descriptors of the item tables, ordered by item ID base."""
    items = [descriptor for descriptor in catalog.values() if descriptor.item_base is not None]
    return sorted(items, key=lambda descriptor: descriptor.item_base)


__all__ = [
    "ENEMY",
    "ENEMY_WIDTH",
    "ENEMY_EXTRAS",
    "ENEMY_TASK",
    "ENEMY_TASK_WIDTH",
    "ENEMY_TASK_EXTRAS",
    "DESCRIPTION_COLUMN",
    "LAYOUTS",
    "ENTRY_TYPES",
    "build_catalog",
    "get_catalog",
    "item_tables",
]
