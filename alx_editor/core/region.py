"""Game version detection from the disc header."""
from __future__ import annotations

from dataclasses import dataclass

from .config import GAME_CODE, REGION_LABELS


@dataclass(frozen=True)
class GameVersion:
    """Platform, region and product code of an opened disc."""

    platform: str
    region: str
    product_id: str
    maker: str = ""

    @property
    def label(self) -> str:
        return f"{self.platform}-{self.region.upper()}-{self.product_id}"

    def __str__(self) -> str:
        return self.label


def detect_version(game_id: str) -> GameVersion | None:
    """
    Map a six character GameCube game ID (``GEAE8P``) to a GameVersion.

    Characters 0-2 are the game code, 3 the region and 4-5 the maker code.
    Returns None for other games or unknown regions.
    """
    if len(game_id) < 6 or game_id[:3] != GAME_CODE:
        return None
    region = REGION_LABELS.get(game_id[3])
    if region is None:
        return None
    return GameVersion(platform="GC", region=region, product_id=game_id[:4], maker=game_id[4:6])


__all__ = ["GameVersion", "detect_version"]
