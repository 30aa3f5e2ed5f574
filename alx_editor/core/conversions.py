"""Numeric parsing and formatting helpers shared by the CSV layers."""
from __future__ import annotations

import math
import re

_INT_TEXT_RE = re.compile(r"^[+-]?(0[xX][0-9a-fA-F]+|0[bB][01]+|[0-9]+)$")


def to_int(value: object, default: int = 0) -> int:
    """Best-effort integer conversion used for configuration values."""
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value):
            return default
        return int(value)
    try:
        return parse_int_text(str(value))
    except ValueError:
        return default


def parse_int_text(text: str) -> int:
    """
    Parse a decimal, ``0x`` hex or ``0b`` binary integer.

    Raises ValueError for anything else, including floats such as ``"1.0"``.
    """
    cleaned = text.strip().replace("_", "")
    if not _INT_TEXT_RE.match(cleaned):
        raise ValueError(f"not an integer: {text!r}")
    sign = 1
    if cleaned[0] in "+-":
        sign = -1 if cleaned[0] == "-" else 1
        cleaned = cleaned[1:]
    prefix = cleaned[:2].lower()
    if prefix == "0x":
        return sign * int(cleaned[2:], 16)
    if prefix == "0b":
        return sign * int(cleaned[2:], 2)
    return sign * int(cleaned, 10)


def parse_float_text(text: str) -> float:
    cleaned = text.strip()
    if not cleaned:
        raise ValueError("empty value")
    return float(cleaned)


def format_int(value: int, display: str = "dec", width_bits: int = 8) -> str:
    """Format an integer for CSV output using the field's display mode."""
    if display == "bin":
        digits = max(8, width_bits)
        return f"0b{value & ((1 << digits) - 1):0{digits}b}"
    if display == "hex":
        digits = max(2, width_bits // 4)
        return f"0x{value & ((1 << width_bits) - 1):0{digits}X}"
    return str(int(value))


def format_float(value: float) -> str:
    return repr(float(value))


__all__ = [
    "to_int",
    "parse_int_text",
    "parse_float_text",
    "format_int",
    "format_float",
]
