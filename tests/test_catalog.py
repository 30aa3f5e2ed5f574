from dataclasses import replace
from types import MappingProxyType

import pytest

from alx_editor.core.offsets import EntryRanges, OffsetSchemaError, initialize_offsets
from alx_editor.models.catalog import ENTRY_TYPES, LAYOUTS, build_catalog, get_catalog, item_tables

EXPECTED = {
    "accessory": (40, 80),
    "armor": (40, 80),
    "weapon": (32, 80),
    "weapon_effect": (20, 21),
    "usable_item": (36, 80),
    "special_item": (22, 80),
    "character": (152, 6),
    "character_magic": (48, 36),
    "character_super_move": (48, 26),
    "enemy_magic": (36, 36),
    "enemy_super_move": (36, 309),
    "enemy_ship": (120, 45),
    "playable_ship": (100, 5),
    "ship_cannon": (36, 40),
    "ship_accessory": (40, 40),
    "ship_item": (36, 30),
    "crew_member": (36, 22),
    "shop": (104, 43),
    "swashbuckler": (34, 24),
    "treasure_chest": (8, 119),
    "spirit_curve": (198, 6),
    "exp_boost": (28, 3),
    "exp_curve": (396, 6),
    "magic_exp_curve": (72, 6),
}


def test_catalog_has_every_type():
    catalog = get_catalog("us")
    assert isinstance(catalog, MappingProxyType)
    assert len(ENTRY_TYPES) == 26
    assert tuple(catalog) == ENTRY_TYPES
    assert get_catalog("us") is catalog


@pytest.mark.parametrize("name", sorted(EXPECTED))
def test_static_widths_and_counts(name):
    descriptor = get_catalog("us")[name]
    width, count = EXPECTED[name]
    assert descriptor.width == width
    assert descriptor.count == count
    source = descriptor.sources[0]
    assert source.end - source.start == width * count


@pytest.mark.parametrize("name", ENTRY_TYPES)
def test_fields_fit_and_do_not_overlap(name):
    width, _count, fields, _base = LAYOUTS[name]
    covered = set()
    for spec in fields:
        assert 0 <= spec.offset and spec.end <= width, spec.name
        span = set(range(spec.offset, spec.end))
        assert not covered & span, spec.name
        covered |= span


def test_enemy_is_dynamic():
    enemy = get_catalog("us")["enemy"]
    assert enemy.dynamic
    assert enemy.width == 138
    assert enemy.sources == ()
    assert enemy.columns[-2:] == ("source", "enemy_id")


def test_enemy_task_is_dynamic():
    task = get_catalog("us")["enemy_task"]
    assert task.dynamic
    assert task.width == 6
    assert task.columns == ("id", "type_id", "task_id", "param_id", "source", "enemy_id", "slot")


def test_description_columns():
    catalog = get_catalog("us")
    assert catalog["accessory"].columns[-1] == "description"
    assert catalog["accessory"].columns[0] == "id"
    assert "description" not in catalog["character"].columns


def test_level_file_types_are_not_in_the_executable():
    catalog = get_catalog("us")
    assert catalog["exp_curve"].sources[0].path == "battle/first.lmt"
    assert catalog["magic_exp_curve"].sources[0].start == 0x948
    assert not catalog["exp_curve"].sources[0].compressed


def test_column_names():
    catalog = get_catalog("us")
    character = catalog["character"].field_names
    assert "resist_green" in character
    assert "resist_state_15" in character
    assert "silver_magic_exp" in character
    assert catalog["weapon"].field("character_id").domain == (-1, 5)
    assert catalog["accessory"].field("character_flags").display == "bin"
    assert catalog["shop"].field("sot_pos").display == "hex"
    assert catalog["treasure_chest"].field("item_id").reference == "item_or_gold"


def test_item_tables_are_ordered_by_base():
    bases = [descriptor.item_base for descriptor in item_tables(get_catalog("us"))]
    assert bases == [0x000, 0x050, 0x0A0, 0x0F0, 0x140, 0x190, 0x1B8, 0x1E0]


def test_range_size_mismatch_is_rejected():
    bundle = initialize_offsets("us")
    entries = dict(bundle.entries)
    accessory = entries["accessory"]
    entries["accessory"] = EntryRanges(accessory.file, accessory.start, accessory.end - 40, accessory.description)
    with pytest.raises(OffsetSchemaError):
        build_catalog(replace(bundle, entries=MappingProxyType(entries)))


def test_missing_type_is_rejected():
    bundle = initialize_offsets("us")
    entries = {name: value for name, value in bundle.entries.items() if name != "shop"}
    with pytest.raises(OffsetSchemaError):
        build_catalog(replace(bundle, entries=MappingProxyType(entries)))
