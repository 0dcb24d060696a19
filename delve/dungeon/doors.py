"""Door placement: one door per room junction.

Doors are sampled from fixed weight tables. A share of the non-locked doors is
turned secret so that, over many dungeons, the secret fraction of *all* doors
matches ``secret_door_ratio``.
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .cells import Coord2D
from .tunnels import Junction

DOOR_TYPE_WEIGHTS: Tuple[Tuple[str, int], ...] = (("wood", 55), ("iron", 25), ("stone", 15), ("magical", 5))
DOOR_STATE_WEIGHTS: Tuple[Tuple[str, int], ...] = (("closed", 60), ("open", 25), ("locked", 15))
NON_LOCKED_SHARE = 0.85

LOCK_DC_RANGE = (10, 20)
STRENGTH_DC_RANGE = (15, 25)
STUCK_CHANCE = 0.2


@dataclass
class DoorPlacement:
    position: Coord2D
    door_type: str
    state: str
    room: int
    corridor: int = -1
    other_room: int = -1
    lock_dc: Optional[int] = None
    strength_dc: Optional[int] = None


def _weighted(table: Sequence[Tuple[str, int]], rng: random.Random) -> str:
    total = sum(w for _, w in table)
    roll = rng.random() * total
    acc = 0.0
    for name, weight in table:
        acc += weight
        if roll < acc:
            return name
    return table[-1][0]


def secret_chance(secret_door_ratio: float) -> float:
    """Per-door secret probability for a non-locked door."""
    return min(1.0, secret_door_ratio / NON_LOCKED_SHARE)


def make_door(junction: Junction, rng: random.Random, secret_door_ratio: float) -> DoorPlacement:
    door_type = _weighted(DOOR_TYPE_WEIGHTS, rng)
    state = _weighted(DOOR_STATE_WEIGHTS, rng)
    door = DoorPlacement(
        position=junction.cell,
        door_type=door_type,
        state=state,
        room=junction.room,
        corridor=junction.corridor,
        other_room=junction.other_room,
    )
    if state == "locked":
        door.lock_dc = rng.randint(*LOCK_DC_RANGE)
        return door
    if rng.random() < secret_chance(secret_door_ratio):
        door.door_type = "secret"
        if door.state == "open":
            door.state = "closed"
    if door.state == "closed" and rng.random() < STUCK_CHANCE:
        door.state = "stuck"
        door.strength_dc = rng.randint(*STRENGTH_DC_RANGE)
    return door


def place_doors(junctions: Iterable[Junction], rng: random.Random, secret_door_ratio: float) -> List[DoorPlacement]:
    """One door per junction, in junction order."""
    return [make_door(j, rng, secret_door_ratio) for j in junctions]


def door_counts(doors: Iterable[DoorPlacement]) -> Dict[str, int]:
    counts: Dict[str, int] = {"total": 0, "secret": 0, "locked": 0, "stuck": 0}
    for d in doors:
        counts["total"] += 1
        if d.door_type == "secret":
            counts["secret"] += 1
        if d.state in ("locked", "stuck"):
            counts[d.state] += 1
    return counts


__all__ = ["DoorPlacement", "make_door", "place_doors", "secret_chance", "door_counts", "DOOR_TYPE_WEIGHTS", "DOOR_STATE_WEIGHTS"]
