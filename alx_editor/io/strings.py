"""Description string tables stored as consecutive NUL-terminated, block-aligned strings."""
from __future__ import annotations

from typing import NamedTuple, Sequence

from ..core.config import DESCRIPTION_BLOCK
from .binary import decode_text, encode_text


class DescriptionEntry(NamedTuple):
    position: int
    size: int
    text: str


def _aligned(length: int, block: int) -> int:
    if block <= 1:
        return length
    return -(-length // block) * block


def read_description_table(
    data: bytes,
    count: int,
    block: int = DESCRIPTION_BLOCK,
    base: int = 0,
) -> list[DescriptionEntry]:
    """
    Read up to ``count`` strings from ``data``.

    Each string runs to its NUL terminator and occupies a multiple of
    ``block`` bytes. Reading stops early when the table runs out.
    """
    entries: list[DescriptionEntry] = []
    pos = 0
    size = len(data)
    while len(entries) < count and pos < size:
        end = data.find(b"\x00", pos)
        if end < 0:
            end = size
        raw_size = end - pos + 1
        aligned = _aligned(raw_size, block)
        entries.append(DescriptionEntry(base + pos, aligned, decode_text(bytes(data[pos:end]))))
        pos += aligned
    return entries


def pack_description_table(texts: Sequence[str], block: int = DESCRIPTION_BLOCK, size: int | None = None) -> bytes:
    """Lay out ``texts`` the way the game stores them, zero-filled up to ``size``."""
    out = bytearray()
    for text in texts:
        raw = encode_text(text) + b"\x00"
        out += raw.ljust(_aligned(len(raw), block), b"\x00")
    if size is not None:
        if len(out) > size:
            raise ValueError(f"description table needs {len(out)} bytes, range holds {size}")
        out = out.ljust(size, b"\x00")
    return bytes(out)


__all__ = ["DescriptionEntry", "read_description_table", "pack_description_table"]
