"""Theme -> dungeon type resolution and per-type layout profiles."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

DUNGEON_TYPES = ("dungeon", "cave", "ruin", "fortress", "tower", "temple", "lair")


@dataclass(frozen=True)
class LayoutProfile:
    feature_bias: str  # religious | military | organic | arcane | wild
    # Defaults for request keys the caller leaves out
    min_room_size: int = 2
    max_room_size: int = 10
    room_density: float = 0.3
    extra_connections_ratio: float = 0.25


LAYOUT_PROFILES: Dict[str, LayoutProfile] = {
    "dungeon": LayoutProfile("arcane", 2, 10, 0.3, 0.25),
    "cave": LayoutProfile("organic", 2, 8, 0.4, 0.35),
    "ruin": LayoutProfile("arcane", 3, 9, 0.32, 0.2),
    "fortress": LayoutProfile("military", 4, 11, 0.28, 0.18),
    "tower": LayoutProfile("arcane", 3, 8, 0.25, 0.2),
    "temple": LayoutProfile("religious", 4, 12, 0.27, 0.22),
    "lair": LayoutProfile("wild", 3, 9, 0.35, 0.3),
}

# keyword -> type, checked in order
_THEME_KEYWORDS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("cave", "grotto"), "cave"),
    (("ruin", "crypt"), "ruin"),
    (("fort", "keep", "citadel"), "fortress"),
    (("tower", "spire"), "tower"),
    (("temple", "cathedral"), "temple"),
    (("lair", "den"), "lair"),
)

RECOMMENDED_LEVEL = {"easy": 1, "medium": 5, "hard": 10, "deadly": 15}


def resolve_dungeon_type(theme: Optional[str]) -> str:
    if not theme:
        return "dungeon"
    norm = theme.lower()
    for keywords, dtype in _THEME_KEYWORDS:
        if any(k in norm for k in keywords):
            return dtype
    return "dungeon"


def get_layout_profile(theme: Optional[str]) -> Tuple[str, LayoutProfile]:
    dtype = resolve_dungeon_type(theme)
    return dtype, LAYOUT_PROFILES[dtype]


__all__ = ["DUNGEON_TYPES", "LayoutProfile", "LAYOUT_PROFILES", "RECOMMENDED_LEVEL", "resolve_dungeon_type", "get_layout_profile"]
