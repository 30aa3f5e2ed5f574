"""
Big-endian field codec for fixed-layout records.

Records are decoded field by field at their declared offsets. Writing goes
back into the original bytes and only re-encodes fields whose value changed,
so reserved bytes, junk after string terminators and float payloads survive
an unedited round-trip untouched.
"""
from __future__ import annotations

import math
import struct
from typing import Any

from ..core.errors import CorruptData, FieldOutOfRange, FieldTooLong
from ..models.schema import FLOAT_KINDS, INT_KINDS, EntryDescriptor, FieldSpec, Record

# Tried in order when decoding "auto" text: plain ASCII, Japanese glyphs,
# Western Latin text, then a lossless byte-per-char fallback.
_AUTO_CODECS: tuple[str, ...] = ("ascii", "shift_jis", "cp1252", "latin-1")

_ENCODING_ALIASES: dict[str, str] = {
    "": "auto",
    "auto": "auto",
    "ascii": "ascii",
    "text": "auto",
    "string": "auto",
    "sjis": "shift_jis",
    "shift-jis": "shift_jis",
    "shift_jis": "shift_jis",
    "shiftjis": "shift_jis",
    "jp": "shift_jis",
    "cp1252": "cp1252",
    "windows-1252": "cp1252",
    "windows1252": "cp1252",
    "latin": "cp1252",
    "latin-1": "latin-1",
    "latin1": "latin-1",
}


def normalize_encoding_tag(tag: str | None) -> str:
    enc = (tag or "auto").strip().lower()
    try:
        return _ENCODING_ALIASES[enc]
    except KeyError:
        raise ValueError(f"Unsupported text encoding: {tag!r}") from None


def _codec_order(encoding: str) -> tuple[str, ...]:
    enc = normalize_encoding_tag(encoding)
    if enc == "auto":
        return _AUTO_CODECS
    return (enc,) + tuple(codec for codec in _AUTO_CODECS if codec != enc)


def decode_text(raw: bytes, encoding: str = "auto") -> str:
    for codec in _codec_order(encoding):
        try:
            return raw.decode(codec)
        except UnicodeDecodeError:
            continue
    # latin-1 accepts every byte, so this is unreachable in practice.
    return raw.decode("latin-1")


def encode_text(text: str, encoding: str = "auto") -> bytes:
    """
    Encode ``text`` with the first codec whose bytes decode back to ``text``.

    Raises ValueError when no supported codec can represent the string.
    """
    if "\x00" in text:
        raise ValueError("text contains a NUL character")
    for codec in _codec_order(encoding):
        try:
            raw = text.encode(codec)
        except UnicodeEncodeError:
            continue
        if decode_text(raw, encoding) == text:
            return raw
    raise ValueError(f"{text!r} cannot be encoded as game text")


def _check_bounds(spec: FieldSpec, buffer: bytes | bytearray, start: int, source: str | None) -> None:
    if start < 0 or start + spec.width > len(buffer):
        raise CorruptData(f"field {spec.name} lies outside the record buffer", offset=start, source=source)


def decode_field(spec: FieldSpec, buffer: bytes | bytearray, base: int = 0, source: str | None = None) -> Any:
    start = base + spec.offset
    _check_bounds(spec, buffer, start, source)
    if spec.kind in INT_KINDS:
        return struct.unpack_from(INT_KINDS[spec.kind][0], buffer, start)[0]
    if spec.kind in FLOAT_KINDS:
        return struct.unpack_from(FLOAT_KINDS[spec.kind][0], buffer, start)[0]
    raw = bytes(buffer[start : start + spec.size])
    terminator = raw.find(b"\x00")
    if terminator >= 0:
        raw = raw[:terminator]
    return decode_text(raw, spec.encoding)


def encode_field(spec: FieldSpec, value: Any) -> bytes:
    """Encode one field value to exactly ``spec.width`` bytes."""
    if spec.kind in INT_KINDS:
        if isinstance(value, bool) or not isinstance(value, int):
            raise FieldOutOfRange(spec.name, value, f"expected an integer, got {value!r}")
        low, high = spec.bounds
        if not low <= value <= high:
            raise FieldOutOfRange(spec.name, value, f"{value} outside {spec.kind} range {low}..{high}")
        return struct.pack(INT_KINDS[spec.kind][0], value)
    if spec.kind in FLOAT_KINDS:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise FieldOutOfRange(spec.name, value, f"expected a number, got {value!r}")
        try:
            return struct.pack(FLOAT_KINDS[spec.kind][0], value)
        except (OverflowError, struct.error) as exc:
            raise FieldOutOfRange(spec.name, value, f"{value} does not fit {spec.kind}") from exc
    if not isinstance(value, str):
        raise FieldOutOfRange(spec.name, value, f"expected text, got {value!r}")
    try:
        raw = encode_text(value, spec.encoding)
    except ValueError as exc:
        raise FieldOutOfRange(spec.name, value, str(exc)) from exc
    if len(raw) > spec.size:
        raise FieldTooLong(spec.name, value, f"{len(raw)} bytes encoded, field holds {spec.size}")
    return raw.ljust(spec.size, b"\x00")


def same_value(spec: FieldSpec, current: Any, new: Any) -> bool:
    """True when writing ``new`` would not change the stored ``current`` value."""
    if spec.kind in FLOAT_KINDS:
        if isinstance(new, bool) or not isinstance(new, (int, float)):
            return False
        if math.isnan(current) and math.isnan(new):
            return True
        try:
            return struct.pack(FLOAT_KINDS[spec.kind][0], current) == struct.pack(FLOAT_KINDS[spec.kind][0], new)
        except (OverflowError, struct.error):
            return False
    if spec.kind in INT_KINDS and isinstance(new, bool):
        return False
    return type(current) is type(new) and current == new


def read_record(
    descriptor: EntryDescriptor,
    buffer: bytes | bytearray,
    offset: int = 0,
    record_id: int = 0,
    source: str | None = None,
) -> Record:
    if offset < 0 or offset + descriptor.width > len(buffer):
        raise CorruptData(
            f"{descriptor.name} record {record_id} runs past the end of its source", offset=offset, source=source
        )
    values = {spec.name: decode_field(spec, buffer, offset, source) for spec in descriptor.fields}
    return Record(record_id, values)


def write_record(
    descriptor: EntryDescriptor,
    record: Record,
    buffer: bytearray,
    offset: int = 0,
    source: str | None = None,
    original: bytes | None = None,
) -> int:
    """
    Patch ``record`` into ``buffer`` at ``offset``; return the number of fields re-encoded.

    Values are compared against ``original`` (the record's bytes as read)
    when given, otherwise against what ``buffer`` currently holds. Fields
    absent from the record or equal to the compared value are left as they are.
    """
    if offset < 0 or offset + descriptor.width > len(buffer):
        raise CorruptData(
            f"{descriptor.name} record {record.id} runs past the end of its target", offset=offset, source=source
        )
    if original is not None and len(original) < descriptor.width:
        raise CorruptData(f"{descriptor.name} record {record.id} snapshot is truncated", source=source)
    reference, base = (original, 0) if original is not None else (buffer, offset)
    changed = 0
    for spec in descriptor.fields:
        if spec.name not in record.values:
            continue
        new = record.values[spec.name]
        current = decode_field(spec, reference, base, source)
        if same_value(spec, current, new):
            continue
        start = offset + spec.offset
        buffer[start : start + spec.width] = encode_field(spec, new)
        changed += 1
    return changed


def encode_record(descriptor: EntryDescriptor, record: Record, template: bytes | None = None) -> bytes:
    """Encode a record into a fresh buffer seeded from ``template`` (zeros by default)."""
    buffer = bytearray(template if template is not None else bytes(descriptor.width))
    if len(buffer) != descriptor.width:
        raise CorruptData(f"{descriptor.name} template is {len(buffer)} bytes, expected {descriptor.width}")
    write_record(descriptor, record, buffer)
    return bytes(buffer)


__all__ = [
    "normalize_encoding_tag",
    "decode_text",
    "encode_text",
    "decode_field",
    "encode_field",
    "same_value",
    "read_record",
    "write_record",
    "encode_record",
]
