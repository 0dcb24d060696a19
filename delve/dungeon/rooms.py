import random
from typing import List, Optional

from delve.logging_utils import get_logger

from .cells import Rect

log = get_logger("delve.dungeon.rooms")


def carve_room(leaf: Rect, min_size: int, max_size: int, rng: random.Random) -> Optional[Rect]:
    """Pick a room rectangle inside ``leaf``.

    The leaf is shrunk by 1-2 cells per side (reserved for corridors); when the
    wider padding leaves no space for a minimum room the 1-cell padding is used.
    Returns None when even that cannot host ``min_size`` x ``min_size``.
    """
    pad = rng.randint(1, 2)
    for p in (pad, 1):
        inner_w = leaf.w - 2 * p
        inner_h = leaf.h - 2 * p
        if inner_w >= min_size and inner_h >= min_size:
            break
    else:
        return None
    rw = rng.randint(min_size, min(max_size, inner_w))
    rh = rng.randint(min_size, min(max_size, inner_h))
    rx = leaf.x + p + rng.randint(0, inner_w - rw)
    ry = leaf.y + p + rng.randint(0, inner_h - rh)
    return Rect(rx, ry, rw, rh)


def place_rooms(leaves: List[Rect], min_size: int, max_size: int, rng: random.Random) -> List[Rect]:
    """Carve one room per leaf, in leaf order.

    Leaves are disjoint, so the rooms cannot overlap. Leaves too small for a
    minimum room are skipped; with partitioner margins that only happens when
    the whole grid is smaller than a minimum leaf.
    """
    rooms: List[Rect] = []
    for leaf in leaves:
        room = carve_room(leaf, min_size, max_size, rng)
        if room is None:
            log.debug(event="leaf_skipped", leaf=tuple(leaf), min_size=min_size)
            continue
        rooms.append(room)
    return rooms


def rooms_overlap(rooms: List[Rect]) -> bool:
    for i in range(len(rooms)):
        for j in range(i + 1, len(rooms)):
            if rooms[i].intersects(rooms[j]):
                return True
    return False


__all__ = ["carve_room", "place_rooms", "rooms_overlap"]
