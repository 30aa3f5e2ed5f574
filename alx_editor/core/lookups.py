"""
Game vocabulary and the item database.

The name tables double as the column vocabulary of the catalog (element and
state resistance columns are named after them) and the item database backs
the item-reference checks done on import.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping

CHARACTER_NAMES: tuple[str, ...] = ("Vyse", "Aika", "Fina", "Drachma", "Enrique", "Gilder")

ELEMENT_NAMES: tuple[str, ...] = ("Green", "Red", "Purple", "Blue", "Yellow", "Silver")

STATE_NAMES: tuple[str, ...] = (
    "Poison",
    "Unconscious",
    "Stone",
    "Sleep",
    "Confusion",
    "Silence",
    "Fatigue",
    "Revival",
    "Weak",
    "State 10",
    "State 11",
    "State 12",
    "State 13",
    "State 14",
    "State 15",
)

NO_ITEM = -1
NO_ITEM_U16 = 0xFFFF
GOLD_BASE = 0x200

# (category, first id, one past the last id)
ITEM_CATEGORY_RANGES: tuple[tuple[str, int, int], ...] = (
    ("weapon", 0x000, 0x050),
    ("armor", 0x050, 0x0A0),
    ("accessory", 0x0A0, 0x0F0),
    ("usable_item", 0x0F0, 0x140),
    ("special_item", 0x140, 0x190),
    ("ship_cannon", 0x190, 0x1B8),
    ("ship_accessory", 0x1B8, 0x1E0),
    ("ship_item", 0x1E0, 0x1FE),
)


def column_name(label: str) -> str:
    """Turn a display label (``"State 10"``) into a column suffix (``state_10``)."""
    return "_".join(label.lower().split())


def item_category(item_id: int) -> str:
    if item_id >= GOLD_BASE:
        return "gold"
    for category, start, end in ITEM_CATEGORY_RANGES:
        if start <= item_id < end:
            return category
    return "unknown"


@dataclass
class ItemDatabase:
    """Known item IDs and, where the item tables have been read, their names."""

    names: dict[int, str] = field(default_factory=dict)

    @classmethod
    def from_tables(cls, tables: Mapping[int, Iterable[str]]) -> "ItemDatabase":
        """Build from ``{id base: item names in table order}``."""
        names: dict[int, str] = {}
        for base, table in tables.items():
            for offset, name in enumerate(table):
                names[base + offset] = name
        return cls(names)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self.names

    def __len__(self) -> int:
        return len(self.names)

    def name(self, item_id: int) -> str | None:
        if item_id >= GOLD_BASE:
            return "Gold"
        return self.names.get(item_id)

    def accepts(self, item_id: int, allow_gold: bool = False, allow_none: bool = True) -> bool:
        if allow_none and item_id in (NO_ITEM, NO_ITEM_U16):
            return True
        if allow_gold and item_id >= GOLD_BASE:
            return True
        return item_id in self.names


__all__ = [
    "CHARACTER_NAMES",
    "ELEMENT_NAMES",
    "STATE_NAMES",
    "NO_ITEM",
    "NO_ITEM_U16",
    "GOLD_BASE",
    "ITEM_CATEGORY_RANGES",
    "column_name",
    "item_category",
    "ItemDatabase",
]
