"""Room feature assignment, run after the structure is validated.

Each room other than the entry and exit rolls one feature against cumulative
thresholds taken from the profile's feature bias (the trap threshold scales
with difficulty); large rooms may also hold a chest.
"""
from __future__ import annotations

import random
from collections import Counter
from typing import Any, Dict, Optional

from .layout import CHAMBER, ENTRY, EXIT, SPECIAL, LevelDraft
from .profiles import LayoutProfile

# bias -> (trap, treasure, encounter, altar); the remainder is decoration
FEATURE_WEIGHTS: Dict[str, tuple] = {
    "religious": (0.15, 0.25, 0.2, 0.35),
    "military": (0.3, 0.1, 0.25, 0.05),
    "organic": (0.1, 0.05, 0.35, 0.05),
    "arcane": (0.25, 0.25, 0.2, 0.2),
    "wild": (0.15, 0.15, 0.3, 0.05),
}
DIFFICULTY_SCALAR = {"easy": 0.7, "medium": 1.0, "hard": 1.2, "deadly": 1.4}
CHEST_MIN_AREA = 80
CHEST_CHANCE = 0.3
SPECIAL_FEATURES = frozenset(("treasure", "altar"))


def roll_feature(profile: LayoutProfile, difficulty: str, rng: random.Random) -> str:
    trap, treasure, encounter, altar = FEATURE_WEIGHTS[profile.feature_bias]
    roll = rng.random()
    threshold = trap * DIFFICULTY_SCALAR[difficulty]
    for name, weight in (("trap", 0.0), ("treasure", treasure), ("encounter", encounter), ("altar", altar)):
        threshold += weight
        if roll < threshold:
            return name
    return "decoration"


def assign_features(
    draft: LevelDraft,
    profile: LayoutProfile,
    difficulty: str,
    rng: random.Random,
    metrics: Optional[Dict[str, Any]] = None,
) -> None:
    """Fill ``draft.room_features`` and promote treasure/altar rooms to special."""
    counts: Counter = Counter()
    for i, rect in enumerate(draft.rooms):
        if draft.room_types[i] in (ENTRY, EXIT):
            continue
        feats = draft.room_features[i]
        feats.append(roll_feature(profile, difficulty, rng))
        if rect.area > CHEST_MIN_AREA and rng.random() < CHEST_CHANCE:
            feats.append("chest")
        if draft.room_types[i] == CHAMBER and SPECIAL_FEATURES.intersection(feats):
            draft.room_types[i] = SPECIAL
        counts.update(feats)
    if metrics is not None:
        for name, n in counts.items():
            metrics[f"feature_{name}_rooms"] = metrics.get(f"feature_{name}_rooms", 0) + n


__all__ = ["assign_features", "roll_feature", "FEATURE_WEIGHTS", "DIFFICULTY_SCALAR"]
