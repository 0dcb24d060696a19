"""Corridor routing: turns room graph edges into orthogonal 1-cell corridors.

For every edge the router picks a port on each room (an edge cell whose outer
neighbour is in bounds, closest to the other room first) and tries, in order:

  * the two L paths (horizontal-then-vertical, vertical-then-horizontal);
  * detours and Z paths: three segments whose middle leg runs along every other
    column or row, shortest first. A middle leg outside the span of the two
    ports is a detour (one leg extended past the target).

A candidate is accepted only when every cell between the two ports is in
bounds and outside every room. The first and last corridor cells are the room
edge cells themselves; those are the junctions that receive doors.
"""
from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Iterator, List, NamedTuple, Optional, Sequence, Tuple

from delve.logging_utils import get_logger

from .cells import Coord2D, OccupancyGrid, Rect, polyline_cells
from .errors import RoutingFailure
from .graph import RoomGraph

log = get_logger("delve.dungeon.tunnels")

BRIDGE = "bridge"

Port = Tuple[Coord2D, Coord2D]  # (room edge cell, first cell outside the room)


class Junction(NamedTuple):
    """A room opening: room index, cell on the room edge, and what it opens to.

    ``corridor`` is the corridor index (-1 for a room-room junction, in which
    case ``other_room`` holds the neighbouring room index).
    """

    room: int
    cell: Coord2D
    corridor: int
    other_room: int = -1


@dataclass
class CorridorPath:
    index: int
    room_a: int
    room_b: int
    cells: List[Coord2D]
    kind: str

    @property
    def waypoints(self) -> List[Coord2D]:
        """Start, every turn, and end of the cell sequence."""
        if len(self.cells) <= 2:
            return list(self.cells)
        pts = [self.cells[0]]
        for i in range(1, len(self.cells) - 1):
            px, py = self.cells[i - 1]
            nx, ny = self.cells[i + 1]
            if px != nx and py != ny:
                pts.append(self.cells[i])
        pts.append(self.cells[-1])
        return pts


@dataclass
class RoutingResult:
    corridors: List[CorridorPath] = field(default_factory=list)
    junctions: List[Junction] = field(default_factory=list)
    failures: List[RoutingFailure] = field(default_factory=list)

    def add_corridor(self, room_a: int, room_b: int, cells: List[Coord2D], kind: str) -> CorridorPath:
        corridor = CorridorPath(len(self.corridors), room_a, room_b, cells, kind)
        self.corridors.append(corridor)
        seen = {(j.room, j.cell) for j in self.junctions}
        for room, cell in ((room_a, cells[0]), (room_b, cells[-1])):
            if (room, cell) not in seen:
                self.junctions.append(Junction(room, cell, corridor.index))
                seen.add((room, cell))
        return corridor


def room_ports(room: Rect, target: Tuple[float, float], grid: OccupancyGrid) -> List[Port]:
    """Edge cells on each side of ``room`` closest to ``target``, nearest first."""
    tx, ty = target
    cx, cy = room.clamp((int(tx), int(ty)))
    sides = (
        ((room.right - 1, cy), (1, 0)),
        ((room.x, cy), (-1, 0)),
        ((cx, room.bottom - 1), (0, 1)),
        ((cx, room.y), (0, -1)),
    )
    ports: List[Port] = []
    for edge, (dx, dy) in sides:
        outside = (edge[0] + dx, edge[1] + dy)
        if grid.in_bounds(outside):
            ports.append((edge, outside))
    ports.sort(key=lambda p: abs(p[1][0] - tx) + abs(p[1][1] - ty))
    return ports


def _port_pairs(a: Rect, b: Rect, grid: OccupancyGrid) -> List[Tuple[Port, Port]]:
    pa = room_ports(a, b.centroid, grid)
    pb = room_ports(b, a.centroid, grid)
    pairs = [(p, q) for p in pa for q in pb]
    pairs.sort(key=lambda pq: abs(pq[0][1][0] - pq[1][1][0]) + abs(pq[0][1][1] - pq[1][1][1]))
    return pairs


def _blocked_cells(cells: Sequence[Coord2D], grid: OccupancyGrid) -> int:
    return sum(1 for c in cells if not grid.is_free(c))


def _l_paths(start: Coord2D, end: Coord2D) -> Tuple[List[Coord2D], List[Coord2D]]:
    (x1, y1), (x2, y2) = start, end
    horizontal_first = polyline_cells([start, (x2, y1), end])
    vertical_first = polyline_cells([start, (x1, y2), end])
    return horizontal_first, vertical_first


def _z_paths(start: Coord2D, end: Coord2D, grid: OccupancyGrid) -> Iterator[List[Coord2D]]:
    """Three-segment paths, shortest first; middle legs outside the span are detours."""
    (x1, y1), (x2, y2) = start, end
    options = []
    if y1 != y2:
        for m in range(grid.width):
            if m in (x1, x2):
                continue
            length = abs(x1 - m) + abs(m - x2) + abs(y1 - y2)
            options.append((length, 0, abs(2 * m - x1 - x2), m))
    if x1 != x2:
        for m in range(grid.height):
            if m in (y1, y2):
                continue
            length = abs(y1 - m) + abs(m - y2) + abs(x1 - x2)
            options.append((length, 1, abs(2 * m - y1 - y2), m))
    options.sort()
    for _length, vertical_mid, _skew, m in options:
        if vertical_mid == 0:
            yield polyline_cells([start, (m, y1), (m, y2), end])
        else:
            yield polyline_cells([start, (x1, m), (x2, m), end])


def find_path(
    a: Rect,
    b: Rect,
    grid: OccupancyGrid,
    rng: random.Random,
    max_candidates: Optional[int] = None,
) -> Tuple[Optional[List[Coord2D]], int]:
    """Search a collision-free corridor from room ``a`` to room ``b``.

    Returns (cells, candidates_evaluated); cells is None when nothing was found
    within ``max_candidates`` (unbounded when None).
    """
    pairs = _port_pairs(a, b, grid)
    evaluated = 0

    def spent() -> bool:
        return max_candidates is not None and evaluated >= max_candidates

    for (a_edge, a_out), (b_edge, b_out) in pairs:
        if spent():
            return None, evaluated
        clean = []
        for cand in _l_paths(a_out, b_out):
            evaluated += 1
            if _blocked_cells(cand, grid) == 0:
                clean.append(cand)
        if len(clean) == 2 and clean[0] != clean[1]:
            chosen = clean[0] if rng.random() < 0.5 else clean[1]
        elif clean:
            chosen = clean[0]
        else:
            continue
        return [a_edge] + chosen + [b_edge], evaluated
    for (a_edge, a_out), (b_edge, b_out) in pairs:
        for cand in _z_paths(a_out, b_out, grid):
            if spent():
                return None, evaluated
            evaluated += 1
            if _blocked_cells(cand, grid) == 0:
                return [a_edge] + cand + [b_edge], evaluated
    return None, evaluated


def direct_path(a: Rect, b: Rect, grid: OccupancyGrid) -> Optional[List[Coord2D]]:
    """L path between ports that may cross rooms; fewest blocked cells wins.

    Paths that revisit a cell are never returned. None when no port exists.
    """
    best: Optional[Tuple[int, List[Coord2D]]] = None
    for (a_edge, a_out), (b_edge, b_out) in _port_pairs(a, b, grid):
        for cand in _l_paths(a_out, b_out):
            cells = [a_edge] + cand + [b_edge]
            if len(set(cells)) != len(cells):
                continue
            blocked = _blocked_cells(cand, grid)
            if best is None or blocked < best[0]:
                best = (blocked, cells)
    return best[1] if best else None


def route_corridors(
    rooms: Sequence[Rect],
    graph: RoomGraph,
    grid: OccupancyGrid,
    rng: random.Random,
    retries: int = 64,
) -> RoutingResult:
    """Route every graph edge in order; unroutable edges are recorded, not raised."""
    result = RoutingResult()
    for edge in graph.edges:
        cells, evaluated = find_path(rooms[edge.a], rooms[edge.b], grid, rng, max_candidates=retries)
        if cells is None:
            failure = RoutingFailure(edge.a, edge.b, evaluated)
            result.failures.append(failure)
            log.debug(event="routing_failure", room_a=edge.a, room_b=edge.b, candidates=evaluated)
            continue
        result.add_corridor(edge.a, edge.b, cells, edge.kind)
    return result


__all__ = [
    "Junction",
    "CorridorPath",
    "RoutingResult",
    "room_ports",
    "find_path",
    "direct_path",
    "route_corridors",
    "BRIDGE",
]
