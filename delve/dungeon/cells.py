"""Grid primitives shared by every generator: coordinates, rectangles and a
room occupancy grid."""
from __future__ import annotations

import math
from typing import Iterator, List, NamedTuple, Optional, Tuple

Coord2D = Tuple[int, int]

# Orthogonal unit steps, fixed order keeps traversals deterministic.
DIRECTIONS: Tuple[Coord2D, ...] = ((1, 0), (-1, 0), (0, 1), (0, -1))

EMPTY = -1


class Rect(NamedTuple):
    x: int
    y: int
    w: int
    h: int

    @property
    def right(self) -> int:
        return self.x + self.w

    @property
    def bottom(self) -> int:
        return self.y + self.h

    @property
    def area(self) -> int:
        return self.w * self.h

    @property
    def centroid(self) -> Tuple[float, float]:
        return (self.x + self.w / 2.0, self.y + self.h / 2.0)

    @property
    def center(self) -> Coord2D:
        return (self.x + self.w // 2, self.y + self.h // 2)

    def cells(self) -> Iterator[Coord2D]:
        for iy in range(self.y, self.bottom):
            for ix in range(self.x, self.right):
                yield ix, iy

    def contains(self, cell: Coord2D) -> bool:
        cx, cy = cell
        return self.x <= cx < self.right and self.y <= cy < self.bottom

    def intersects(self, other: "Rect") -> bool:
        return not (
            self.right <= other.x or other.right <= self.x or self.bottom <= other.y or other.bottom <= self.y
        )

    def is_edge(self, cell: Coord2D) -> bool:
        cx, cy = cell
        return self.contains(cell) and (
            cx in (self.x, self.right - 1) or cy in (self.y, self.bottom - 1)
        )

    def clamp(self, cell: Coord2D) -> Coord2D:
        cx, cy = cell
        return (min(max(cx, self.x), self.right - 1), min(max(cy, self.y), self.bottom - 1))


def distance(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def manhattan(a: Coord2D, b: Coord2D) -> int:
    return abs(a[0] - b[0]) + abs(a[1] - b[1])


class OccupancyGrid:
    """Width x height grid storing the index of the room covering each cell.

    Corridors are not stored here; the router only needs to know which cells
    belong to rooms.
    """

    __slots__ = ("width", "height", "_cells")

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        self._cells: List[List[int]] = [[EMPTY for _ in range(height)] for _ in range(width)]

    @classmethod
    def from_rooms(cls, width: int, height: int, rooms: List[Rect]) -> "OccupancyGrid":
        grid = cls(width, height)
        for idx, room in enumerate(rooms):
            grid.fill(room, idx)
        return grid

    def in_bounds(self, cell: Coord2D) -> bool:
        return 0 <= cell[0] < self.width and 0 <= cell[1] < self.height

    def fill(self, rect: Rect, room_index: int) -> None:
        for cx, cy in rect.cells():
            if self.in_bounds((cx, cy)):
                self._cells[cx][cy] = room_index

    def room_at(self, cell: Coord2D) -> Optional[int]:
        if not self.in_bounds(cell):
            return None
        rid = self._cells[cell[0]][cell[1]]
        return None if rid == EMPTY else rid

    def is_free(self, cell: Coord2D) -> bool:
        return self.in_bounds(cell) and self._cells[cell[0]][cell[1]] == EMPTY


def line_cells(a: Coord2D, b: Coord2D) -> List[Coord2D]:
    """Cells of an axis-aligned segment from a to b inclusive."""
    (x1, y1), (x2, y2) = a, b
    if x1 != x2 and y1 != y2:
        raise ValueError(f"segment {a}->{b} is not axis aligned")
    if x1 == x2:
        step = 1 if y2 >= y1 else -1
        return [(x1, yy) for yy in range(y1, y2 + step, step)]
    step = 1 if x2 >= x1 else -1
    return [(xx, y1) for xx in range(x1, x2 + step, step)]


def polyline_cells(points: List[Coord2D]) -> List[Coord2D]:
    """Expand orthogonal waypoints into a contiguous cell list (no repeats at joints)."""
    out: List[Coord2D] = []
    for i in range(len(points) - 1):
        seg = line_cells(points[i], points[i + 1])
        if out and seg and out[-1] == seg[0]:
            seg = seg[1:]
        out.extend(seg)
    if not out and points:
        out.append(points[0])
    return out


__all__ = [
    "Coord2D",
    "DIRECTIONS",
    "Rect",
    "OccupancyGrid",
    "distance",
    "manhattan",
    "line_cells",
    "polyline_cells",
]
