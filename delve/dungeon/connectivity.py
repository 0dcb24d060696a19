"""Connectivity validation and repair.

Reachability is structural: door state is ignored. The traversal graph has one
node per room and per corridor; edges come from junctions (room-corridor and
room-room), from corridors sharing a cell, and from corridor cells lying
inside a room (bridges may cut through rooms).
"""
from __future__ import annotations

import random
from collections import deque
from typing import Dict, List, Set, Tuple

from delve.logging_utils import get_logger

from .cells import Coord2D, OccupancyGrid, distance
from .doors import make_door
from .errors import ConnectivityFailure
from .layout import LevelDraft
from .tunnels import BRIDGE, direct_path, find_path

log = get_logger("delve.dungeon.connectivity")

Node = Tuple[str, int]


def _traversal_graph(draft: LevelDraft, grid: OccupancyGrid) -> Dict[Node, Set[Node]]:
    graph: Dict[Node, Set[Node]] = {("room", i): set() for i in range(len(draft.rooms))}
    for c in draft.corridors:
        graph[("corridor", c.index)] = set()

    def link(a: Node, b: Node) -> None:
        graph[a].add(b)
        graph[b].add(a)

    for j in draft.junctions:
        if j.corridor >= 0:
            link(("room", j.room), ("corridor", j.corridor))
        else:
            link(("room", j.room), ("room", j.other_room))
    by_cell: Dict[Coord2D, List[int]] = {}
    for c in draft.corridors:
        for cell in c.cells:
            by_cell.setdefault(cell, []).append(c.index)
            owner = grid.room_at(cell)
            if owner is not None:
                link(("room", owner), ("corridor", c.index))
    for owners in by_cell.values():
        for other in owners[1:]:
            link(("corridor", owners[0]), ("corridor", other))
    return graph


def reachable_rooms(draft: LevelDraft, grid: OccupancyGrid, anchor: int = 0) -> Set[int]:
    """Room indices reachable from ``anchor`` (BFS)."""
    if not draft.rooms:
        return set()
    graph = _traversal_graph(draft, grid)
    start: Node = ("room", anchor)
    seen = {start}
    q = deque([start])
    while q:
        cur = q.popleft()
        for nxt in graph[cur]:
            if nxt not in seen:
                seen.add(nxt)
                q.append(nxt)
    return {idx for kind, idx in seen if kind == "room"}


def is_connected(draft: LevelDraft, grid: OccupancyGrid) -> bool:
    return len(reachable_rooms(draft, grid)) == len(draft.rooms)


def repair_connectivity(draft: LevelDraft, grid: OccupancyGrid, rng: random.Random, secret_door_ratio: float) -> int:
    """Bridge every unreached room to its nearest reached room.

    Tries the router's full search first, then a direct L path that may
    cross other rooms. Returns the number of bridges inserted; raises
    ``ConnectivityFailure`` when a room cannot be reached at all.
    """
    if not draft.rooms:
        raise ConnectivityFailure("level has no rooms", draft.index)
    bridges = 0
    while True:
        reached = reachable_rooms(draft, grid)
        missing = [i for i in range(len(draft.rooms)) if i not in reached]
        if not missing:
            return bridges
        target = missing[0]
        tc = draft.rooms[target].centroid
        source = min(reached, key=lambda i: (distance(draft.rooms[i].centroid, tc), i))
        cells, _ = find_path(draft.rooms[source], draft.rooms[target], grid, rng)
        crossing = False
        if cells is None:
            cells = direct_path(draft.rooms[source], draft.rooms[target], grid)
            crossing = True
        if cells is None:
            raise ConnectivityFailure(f"room {target} cannot be reached from room {source}", draft.index)
        before = len(draft.junctions)
        draft.routing.add_corridor(source, target, cells, BRIDGE)
        for junction in draft.junctions[before:]:
            draft.doors.append(make_door(junction, rng, secret_door_ratio))
        bridges += 1
        log.info(event="bridge_inserted", level_index=draft.index, room_a=source, room_b=target, crossing=crossing)


__all__ = ["reachable_rooms", "is_connected", "repair_connectivity"]
