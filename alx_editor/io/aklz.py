"""
AKLZ compression used by the GameCube release.

The container is a 12-byte signature, the big-endian decompressed size and
an LZSS token stream decoded against a 4 KiB ring buffer:

* a flag byte describes the next eight tokens, least significant bit first
* a set bit is a literal byte
* a clear bit is a two-byte back-reference ``b1 b2`` into the ring buffer:
  position ``b1 | (b2 & 0xF0) << 4``, length ``(b2 & 0x0F) + 3``
"""
from __future__ import annotations

import struct

from ..core.errors import CorruptData
from ..logs.logging import get_logger

SIGNATURE = bytes((0x41, 0x4B, 0x4C, 0x5A, 0x7E, 0x3F, 0x51, 0x64, 0x3D, 0xCC, 0xCC, 0xCD))
HEADER_SIZE = 16

MATCH_MIN = 3
MATCH_MASK = 0x0F
MATCH_MAX = MATCH_MIN + MATCH_MASK
RING_SIZE = 0x1000
RING_MASK = RING_SIZE - 1
RING_START = RING_SIZE - MATCH_MAX
WINDOW = RING_SIZE - 1
MAX_CHAIN = 512

_LOGGER = get_logger("aklz")


def is_aklz(data: bytes) -> bool:
    """Return True when ``data`` starts with a complete AKLZ header."""
    return len(data) >= HEADER_SIZE and bytes(data[: len(SIGNATURE)]) == SIGNATURE


def decompressed_size(data: bytes) -> int:
    if not is_aklz(data):
        raise CorruptData("missing AKLZ header", offset=0)
    return struct.unpack_from(">I", data, len(SIGNATURE))[0]


def decompress(data: bytes, source: str | None = None) -> bytes:
    """
    Expand an AKLZ container.

    Raises CorruptData naming the byte offset where decoding stopped when the
    signature is wrong, the header is cut short or the token stream ends
    before the declared size has been produced.
    """
    if len(data) < HEADER_SIZE:
        raise CorruptData("truncated AKLZ header", offset=len(data), source=source)
    if bytes(data[: len(SIGNATURE)]) != SIGNATURE:
        raise CorruptData("bad AKLZ signature", offset=0, source=source)
    size = struct.unpack_from(">I", data, len(SIGNATURE))[0]
    out = bytearray()
    ring = bytearray(RING_SIZE)
    ring_pos = RING_START
    pos = HEADER_SIZE
    end = len(data)
    while len(out) < size:
        if pos >= end:
            raise CorruptData(
                f"AKLZ stream ended after {len(out)} of {size} bytes", offset=pos, source=source
            )
        flags = data[pos]
        pos += 1
        for bit in range(8):
            if len(out) >= size:
                break
            if (flags >> bit) & 1:
                if pos >= end:
                    raise CorruptData("AKLZ literal past end of stream", offset=pos, source=source)
                value = data[pos]
                pos += 1
                out.append(value)
                ring[ring_pos] = value
                ring_pos = (ring_pos + 1) & RING_MASK
                continue
            if pos + 1 >= end:
                raise CorruptData("AKLZ back-reference past end of stream", offset=pos, source=source)
            b1 = data[pos]
            b2 = data[pos + 1]
            pos += 2
            match_pos = b1 | ((b2 & 0xF0) << 4)
            length = min((b2 & MATCH_MASK) + MATCH_MIN, size - len(out))
            for step in range(length):
                value = ring[(match_pos + step) & RING_MASK]
                out.append(value)
                ring[ring_pos] = value
                ring_pos = (ring_pos + 1) & RING_MASK
    _LOGGER.debug("AKLZ decompressed %d -> %d bytes", len(data), size)
    return bytes(out)


def _match_length(src: bytes, candidate: int, pos: int, limit: int) -> int:
    length = 0
    while length < limit and src[candidate + length] == src[pos + length]:
        length += 1
    return length


def compress(data: bytes) -> bytes:
    """
    Produce an AKLZ container that ``decompress`` expands back to ``data``.

    Greedy longest match over a hash chain of 3-byte prefixes. References only
    point at bytes already emitted, never at the zero-filled ring prefix.
    """
    src = bytes(data)
    size = len(src)
    out = bytearray(SIGNATURE)
    out += struct.pack(">I", size)
    head: dict[bytes, int] = {}
    chain = [-1] * size

    def insert(index: int) -> None:
        if index + MATCH_MIN > size:
            return
        key = src[index : index + MATCH_MIN]
        chain[index] = head.get(key, -1)
        head[key] = index

    pos = 0
    flag_index = 0
    bit = 8
    while pos < size:
        if bit == 8:
            flag_index = len(out)
            out.append(0)
            bit = 0
        best_len = 0
        best_src = 0
        limit = min(MATCH_MAX, size - pos)
        if limit >= MATCH_MIN:
            candidate = head.get(src[pos : pos + MATCH_MIN], -1)
            tries = 0
            while candidate >= 0 and pos - candidate <= WINDOW and tries < MAX_CHAIN:
                length = _match_length(src, candidate, pos, limit)
                if length > best_len:
                    best_len = length
                    best_src = candidate
                    if length == limit:
                        break
                candidate = chain[candidate]
                tries += 1
        if best_len >= MATCH_MIN:
            ring_pos = (RING_START + best_src) & RING_MASK
            out.append(ring_pos & 0xFF)
            out.append(((ring_pos >> 4) & 0xF0) | (best_len - MATCH_MIN))
            for index in range(pos, pos + best_len):
                insert(index)
            pos += best_len
        else:
            out[flag_index] |= 1 << bit
            out.append(src[pos])
            insert(pos)
            pos += 1
        bit += 1
    _LOGGER.debug("AKLZ compressed %d -> %d bytes", size, len(out))
    return bytes(out)


__all__ = [
    "SIGNATURE",
    "HEADER_SIZE",
    "is_aklz",
    "decompressed_size",
    "decompress",
    "compress",
]
