import math
import struct

import pytest

from alx_editor.core.errors import CorruptData, FieldOutOfRange, FieldTooLong
from alx_editor.io.binary import (
    decode_field,
    decode_text,
    encode_field,
    encode_record,
    encode_text,
    normalize_encoding_tag,
    read_record,
    write_record,
)
from alx_editor.io.strings import pack_description_table, read_description_table
from alx_editor.models.schema import EntryDescriptor, FieldSpec, Record

LAYOUT = EntryDescriptor(
    "sample",
    16,
    (
        FieldSpec("name", 0, "str", size=6),
        FieldSpec("flags", 6, "u8", display="bin"),
        FieldSpec("delta", 7, "i8"),
        FieldSpec("price", 8, "u16"),
        FieldSpec("rate", 12, "f32"),
    ),
)


def _buffer():
    data = bytearray(16)
    data[0:6] = b"Vyse\x00Z"  # junk after the terminator
    data[6] = 0b101
    data[7] = 0xFE  # -2
    struct.pack_into(">H", data, 8, 1200)
    data[10:12] = b"\xde\xad"  # not covered by any field
    struct.pack_into(">f", data, 12, 1.5)
    return data


def test_read_record_decodes_big_endian():
    record = read_record(LAYOUT, _buffer(), record_id=3)
    assert record.id == 3
    assert record.values == {"name": "Vyse", "flags": 5, "delta": -2, "price": 1200, "rate": 1.5}


def test_read_record_out_of_bounds():
    with pytest.raises(CorruptData):
        read_record(LAYOUT, bytes(10))


def test_unchanged_write_is_byte_identical():
    """Junk after the NUL and uncovered bytes survive an unedited write."""
    original = _buffer()
    target = bytearray(original)
    changed = write_record(LAYOUT, read_record(LAYOUT, original), target)
    assert changed == 0
    assert target == original


def test_write_touches_only_edited_field():
    original = _buffer()
    record = read_record(LAYOUT, original)
    record["price"] = 9999
    target = bytearray(original)
    assert write_record(LAYOUT, record, target) == 1
    assert struct.unpack_from(">H", target, 8)[0] == 9999
    assert target[:8] == original[:8]
    assert target[10:] == original[10:]


def test_string_edit_pads_with_nuls():
    record = read_record(LAYOUT, _buffer())
    record["name"] = "Aika"
    target = _buffer()
    write_record(LAYOUT, record, target)
    assert bytes(target[0:6]) == b"Aika\x00\x00"


def test_nan_payload_is_preserved():
    data = bytearray(16)
    data[12:16] = b"\x7f\xc0\x12\x34"
    record = read_record(LAYOUT, data)
    assert math.isnan(record["rate"])
    target = bytearray(data)
    write_record(LAYOUT, record, target)
    assert target[12:16] == b"\x7f\xc0\x12\x34"


def test_original_snapshot_decides_what_changed():
    """Two records sharing bytes: the unedited one must not revert the edit."""
    original = bytes(_buffer())
    edited = read_record(LAYOUT, original)
    untouched = read_record(LAYOUT, original)
    edited["price"] = 42
    target = bytearray(original)
    write_record(LAYOUT, edited, target, original=original)
    write_record(LAYOUT, untouched, target, original=original)
    assert struct.unpack_from(">H", target, 8)[0] == 42


def test_missing_fields_are_left_alone():
    target = _buffer()
    write_record(LAYOUT, Record(0, {"price": 7}), target)
    assert struct.unpack_from(">H", target, 8)[0] == 7
    assert target[0:4] == b"Vyse"


@pytest.mark.parametrize(
    "spec,value",
    [
        (FieldSpec("x", 0, "u8"), 256),
        (FieldSpec("x", 0, "u8"), -1),
        (FieldSpec("x", 0, "i8"), 128),
        (FieldSpec("x", 0, "i16"), -32769),
        (FieldSpec("x", 0, "u32"), 1 << 32),
        (FieldSpec("x", 0, "u16"), "12"),
        (FieldSpec("x", 0, "u16"), True),
        (FieldSpec("x", 0, "u16"), 1.0),
        (FieldSpec("x", 0, "f32"), 1e300),
    ],
)
def test_encode_out_of_range(spec, value):
    with pytest.raises(FieldOutOfRange):
        encode_field(spec, value)


def test_encode_string_too_long():
    with pytest.raises(FieldTooLong):
        encode_field(FieldSpec("name", 0, "str", size=4), "Drachma")


def test_encode_string_fills_width_exactly():
    assert encode_field(FieldSpec("name", 0, "str", size=4), "Fina") == b"Fina"


def test_encode_unrepresentable_text():
    with pytest.raises(FieldOutOfRange):
        encode_field(FieldSpec("name", 0, "str", size=16), "\U0001F600")


def test_shift_jis_text():
    spec = FieldSpec("name_jp", 0, "str", size=17, encoding="shift_jis")
    raw = encode_field(spec, "ロー")
    assert raw.startswith("ロー".encode("shift_jis"))
    assert decode_field(spec, raw) == "ロー"


def test_auto_text_falls_back_to_cp1252():
    raw = encode_text("Café")
    assert raw == "Café".encode("cp1252")
    assert decode_text(raw) == "Café"


def test_encode_text_rejects_nul():
    with pytest.raises(ValueError):
        encode_text("a\x00b")


def test_normalize_encoding_tag():
    assert normalize_encoding_tag("SJIS") == "shift_jis"
    assert normalize_encoding_tag(None) == "auto"
    with pytest.raises(ValueError):
        normalize_encoding_tag("ebcdic")


def test_encode_record_uses_template():
    record = Record(0, {"name": "Ship", "price": 3})
    encoded = encode_record(LAYOUT, record, template=bytes(_buffer()))
    assert encoded[0:6] == b"Ship\x00\x00"
    assert encoded[10:12] == b"\xde\xad"


def test_description_table_alignment():
    packed = pack_description_table(["Hi", "Longer text"], size=32)
    assert len(packed) == 32
    entries = read_description_table(packed, 2, base=0x100)
    assert [entry.text for entry in entries] == ["Hi", "Longer text"]
    assert entries[0].position == 0x100
    assert entries[0].size == 4
    assert entries[1].position == 0x104
    assert entries[1].size == 12


def test_description_table_stops_at_end():
    entries = read_description_table(pack_description_table(["One"]), 5)
    assert len(entries) == 1
