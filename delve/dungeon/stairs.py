"""Inter-level stairs.

Stairs for an adjacent level pair are placed in upper-level rooms picked by
greedy farthest-point selection, each with a counterpart on the lower level.
"""
from __future__ import annotations

import random
from typing import Dict, List, Optional, Sequence, Set, Tuple

from delve.logging_utils import get_logger

from .cells import Coord2D, Rect, distance, manhattan
from .errors import StairReciprocityFailure
from .layout import LevelDraft, StairPlacement

log = get_logger("delve.dungeon.stairs")

MAX_STAIRS_PER_PAIR = 3
SPIRAL_CHANCE = 0.1


def stair_id(n: int) -> str:
    return f"stair-{n}"


def _taken(draft: LevelDraft) -> Set[Coord2D]:
    return {s.position for s in draft.stairs}


def _free_cell(room: Rect, preferred: Coord2D, taken: Set[Coord2D]) -> Optional[Coord2D]:
    """``preferred`` clamped into the room, or the nearest free cell of the room."""
    start = room.clamp(preferred)
    if start not in taken:
        return start
    best = None
    for cell in room.cells():
        if cell in taken:
            continue
        d = manhattan(cell, start)
        if best is None or d < best[0]:
            best = (d, cell)
    return best[1] if best else None


def pick_stair_rooms(draft: LevelDraft, count: int, anchor: Tuple[float, float]) -> List[int]:
    """Greedy farthest-point selection over room centroids.

    Distances are measured from stairs already on the level (``anchor`` when
    there are none); ties go to the lowest room index.
    """
    refs: List[Tuple[float, float]] = [s.position for s in draft.stairs] or [anchor]
    taken = _taken(draft)
    chosen: List[int] = []
    for _ in range(count):
        best: Optional[Tuple[float, int]] = None
        for i, room in enumerate(draft.rooms):
            if i in chosen or _free_cell(room, room.center, taken) is None:
                continue
            c = room.centroid
            score = min(distance(c, r) for r in refs)
            if best is None or score > best[0]:
                best = (score, i)
        if best is None:
            break
        chosen.append(best[1])
        room = draft.rooms[best[1]]
        cell = _free_cell(room, room.center, taken)
        taken.add(cell)
        refs.append(cell)
    return chosen


def _landing_room(lower: LevelDraft, cell: Coord2D) -> int:
    for i, room in enumerate(lower.rooms):
        if room.contains(cell):
            return i
    return min(range(len(lower.rooms)), key=lambda i: (distance(lower.rooms[i].centroid, cell), i))


def place_stairs(upper: LevelDraft, lower: LevelDraft, rng: random.Random, next_number: int) -> int:
    """Place 1-3 stairs between ``upper`` and ``lower``; returns the next free stair number."""
    if not upper.rooms or not lower.rooms:
        return next_number
    count = min(rng.randint(1, MAX_STAIRS_PER_PAIR), len(upper.rooms), len(lower.rooms))
    anchor = upper.rooms[0].centroid
    for room_idx in pick_stair_rooms(upper, count, anchor):
        room = upper.rooms[room_idx]
        cell = _free_cell(room, room.center, _taken(upper))
        landing = _landing_room(lower, cell)
        target = _free_cell(lower.rooms[landing], cell, _taken(lower))
        if target is None:
            log.debug(event="stair_skipped", level_index=upper.index, room=room_idx, reason="no_free_landing")
            continue
        spiral = rng.random() < SPIRAL_CHANCE
        down = StairPlacement(stair_id(next_number), cell, upper.index, lower.index, "spiral" if spiral else "down", room_idx)
        up = StairPlacement(stair_id(next_number + 1), target, lower.index, upper.index, "spiral" if spiral else "up", landing)
        down.counterpart_id, up.counterpart_id = up.id, down.id
        upper.stairs.append(down)
        lower.stairs.append(up)
        next_number += 2
    return next_number


def validate_stairs(drafts: Sequence[LevelDraft]) -> None:
    """Every adjacent pair linked, every stair paired with a reciprocal counterpart."""
    by_index: Dict[int, LevelDraft] = {d.index: d for d in drafts}
    stairs: Dict[str, Tuple[LevelDraft, StairPlacement]] = {}
    for d in drafts:
        for s in d.stairs:
            stairs[s.id] = (d, s)
    for upper, lower in zip(drafts, drafts[1:]):
        if not any(s.to_level == lower.index for s in upper.stairs):
            raise StairReciprocityFailure(
                f"no stair between levels {upper.index} and {lower.index}", upper.index, lower.index
            )
    for sid, (level, stair) in stairs.items():
        if not level.rooms[stair.room].contains(stair.position):
            raise StairReciprocityFailure(f"{sid} is outside its room", level.index, stair.to_level)
        other = stairs.get(stair.counterpart_id)
        if other is None or stair.to_level not in by_index:
            raise StairReciprocityFailure(f"{sid} has no counterpart", level.index, stair.to_level)
        other_level, counterpart = other
        if (
            other_level.index != stair.to_level
            or counterpart.counterpart_id != sid
            or counterpart.to_level != level.index
            or abs(level.index - other_level.index) != 1
        ):
            raise StairReciprocityFailure(f"{sid} and {counterpart.id} are not reciprocal", level.index, other_level.index)


__all__ = ["place_stairs", "pick_stair_rooms", "validate_stairs", "stair_id"]
