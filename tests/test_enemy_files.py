import struct

import pytest

from alx_editor.core.errors import CorruptData
from alx_editor.core.offsets import initialize_offsets
from alx_editor.io.enemy_files import (
    MAX_TASKS,
    EnemySlot,
    TaskSlot,
    dat_enemy_id,
    discover_enemy_sources,
    discover_task_sources,
    parse_enp_segments,
    parse_enp_slots,
    parse_evp_slots,
    parse_task_slots,
)
from alx_editor.io.iso import GameImage

from disc_builder import ENEMY_TASKS, TASK_TERMINATOR, catalog, enp_file, evp_file, task_bytes

WIDTH = 138
RULES = initialize_offsets("us").enemy_files


def test_evp_slots():
    data = evp_file(catalog()["enemy"])
    second = 6600 + WIDTH + len(task_bytes(ENEMY_TASKS["Looper"]))
    assert parse_evp_slots(data, WIDTH) == [EnemySlot(5, 6600), EnemySlot(9, second)]


def test_evp_too_short_has_no_slots():
    assert parse_evp_slots(b"\x00" * 100, WIDTH) == []


def test_evp_skips_slots_past_the_end():
    data = bytearray(evp_file(catalog()["enemy"]))
    struct.pack_into(">ii", data, 16, 12, len(data) - 10)
    assert [slot.enemy_id for slot in parse_evp_slots(bytes(data), WIDTH)] == [5, 9]


def test_enp_segments_and_slots():
    data = enp_file(catalog()["enemy"])
    segments = parse_enp_segments(data, "sea_ep.enp")
    assert [label for label, _start, _size in segments] == ["sea_a.enp", "sea_b.enp"]
    grouped = parse_enp_slots(data, WIDTH, "sea_ep.enp")
    first_start = segments[0][1]
    second_start = segments[1][1]
    assert grouped[0] == ("sea_a.enp", [EnemySlot(1, first_start + 24), EnemySlot(2, first_start + 24)])
    assert grouped[1] == ("sea_b.enp", [EnemySlot(3, second_start + 16)])


def test_enp_without_segment_table():
    body = struct.pack(">ii", 7, 16) + struct.pack(">ii", -1, 0) + b"\x01" * WIDTH
    assert parse_enp_slots(body, WIDTH, "plain_ep.enp") == [("plain_ep.enp", [EnemySlot(7, 16)])]


def test_enp_corrupted_segment_table():
    data = b"\x00\x00\xff\xff" + struct.pack(">hh", 1, 0) + b"\x00" * 40
    with pytest.raises(CorruptData):
        parse_enp_segments(data, "bad_ep.enp")


def test_enp_skips_out_of_range_segment():
    data = bytearray(enp_file(catalog()["enemy"]))
    struct.pack_into(">i", data, 8 + 32 + 24, len(data) * 2)  # size of the second segment
    assert [label for label, _start, _size in parse_enp_segments(bytes(data), "sea_ep.enp")] == ["sea_a.enp"]


@pytest.mark.parametrize(
    "filename,expected",
    [
        ("ecinit001.dat", 1),
        ("battle/ecinit123.dat", 123),
        ("ebinit002.dat", 0x82),
        ("EBINIT010.DAT", 0x8A),
        ("ecinit.dat", None),
    ],
)
def test_dat_enemy_id(filename, expected):
    assert dat_enemy_id(filename, RULES) == expected


def test_discovery_order(disc_path):
    with GameImage.open(disc_path) as image:
        sources = discover_enemy_sources(image, WIDTH, RULES)
    assert [source.display_name for source in sources] == [
        "epevent.evp",
        "sea_a.enp",
        "sea_b.enp",
        "battle/ecinit001.dat",
        "battle/ebinit002.dat",
    ]
    assert [list(source.ids) for source in sources] == [[5, 9], [1, 2], [3], [1], [0x82]]
    assert all(source.compressed for source in sources)
    assert sources[1].offsets[0] == sources[1].offsets[1]


def test_task_slots_stop_at_the_terminator():
    data = b"\x00" * 4 + task_bytes([(1, 600, 0), (-1, 0, 0), (0, 3, 2)]) + task_bytes([(1, 1, 1)])
    assert parse_task_slots(data, 7, 4, len(data)) == [TaskSlot(7, 1, 4), TaskSlot(7, 3, 16)]


def test_task_slots_are_bounded():
    unterminated = task_bytes([(1, 600, 0)] * 70)[: -len(TASK_TERMINATOR)]
    assert len(parse_task_slots(unterminated, 1, 0, len(unterminated))) == MAX_TASKS
    assert [slot.slot for slot in parse_task_slots(unterminated, 1, 0, 6 * 2 + 5)] == [1, 2]
    assert parse_task_slots(unterminated, 1, 12, 12) == []


def test_task_discovery(disc_path):
    with GameImage.open(disc_path) as image:
        sources = discover_task_sources(image, WIDTH, RULES)
    assert [source.display_name for source in sources] == ["epevent.evp", "sea_a.enp", "battle/ecinit001.dat"]
    assert [list(source.ids) for source in sources] == [[5, 5, 9], [1, 2], [1, 1]]
    assert [list(source.slots) for source in sources] == [[1, 2, 2], [1, 1], [1, 2]]
    assert sources[1].offsets[0] == sources[1].offsets[1]
    assert sources[2].offsets == (WIDTH, WIDTH + 6)
    assert all(source.width == 6 and source.compressed for source in sources)
