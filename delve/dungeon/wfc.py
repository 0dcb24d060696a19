"""Wave Function Collapse over a tile catalog, with checkpoint backtracking.

Cells are indexed row-major (``i = y * cols + x``). Every cell starts with
all tiles whose border-facing edges are walls or corners. The loop collapses
the lowest-entropy cell (fewest candidates, ties by lowest index) by weighted
choice and propagates with an AC-3 queue.

Every candidate removal is pushed on a trail. A checkpoint records the trail
length at a collapse, so a contradiction undoes the trail back to the last
checkpoint, drops the failed choice and continues. Only contradictions count
against ``max_contradictions``; a clean collapse of any size never exhausts.
"""
from __future__ import annotations

import random
from collections import deque
from dataclasses import dataclass
from typing import Dict, Iterable, List, NamedTuple, Optional, Set, Tuple

from delve.logging_utils import get_logger

from .catalog import (
    BORDER_CONNECTORS,
    DOOR,
    OPEN,
    OPPOSITE,
    SIDE_STEPS,
    Tile,
    TileCatalog,
    connectors_compatible,
)
from .cells import Rect
from .errors import WFCExhausted
from .tunnels import Junction

log = get_logger("delve.dungeon.wfc")

COLLAPSED = "collapsed"
EXHAUSTED = "exhausted"
DEFAULT_MAX_CONTRADICTIONS = 200

Domains = List[Set[int]]


class Checkpoint(NamedTuple):
    cell: int
    chosen: int
    mark: int  # trail length before the collapse


@dataclass
class WFCResult:
    cols: int
    rows: int
    tiles: List[List[Tile]]  # [row][col]
    iterations: int
    backtracks: int
    state: str = COLLAPSED

    def names(self) -> List[List[str]]:
        return [[t.name for t in row] for row in self.tiles]


class WaveFunction:
    def __init__(
        self,
        catalog: TileCatalog,
        cols: int,
        rows: int,
        rng: random.Random,
        max_contradictions: int = DEFAULT_MAX_CONTRADICTIONS,
    ):
        self.catalog = catalog
        self.cols = cols
        self.rows = rows
        self.rng = rng
        self.max_contradictions = max_contradictions
        self.iterations = 0
        self.backtracks = 0
        self.contradictions = 0
        self.trail: List[Tuple[int, int]] = []
        self.domains: Domains = [self._initial_domain(i) for i in range(cols * rows)]

    def _neighbour(self, cell: int, side: int) -> Optional[int]:
        x, y = cell % self.cols, cell // self.cols
        dx, dy = SIDE_STEPS[side]
        nx, ny = x + dx, y + dy
        if 0 <= nx < self.cols and 0 <= ny < self.rows:
            return ny * self.cols + nx
        return None

    def _initial_domain(self, cell: int) -> Set[int]:
        out = set()
        for idx, tile in enumerate(self.catalog.tiles):
            if all(
                self._neighbour(cell, side) is not None or tile.edge(side) in BORDER_CONNECTORS
                for side in range(4)
            ):
                out.add(idx)
        return out

    def _remove(self, cell: int, tiles: Iterable[int]) -> None:
        for t in tiles:
            self.domains[cell].discard(t)
            self.trail.append((cell, t))

    def _undo(self, mark: int) -> None:
        while len(self.trail) > mark:
            cell, t = self.trail.pop()
            self.domains[cell].add(t)

    def _propagate(self, seeds: Iterable[int]) -> bool:
        """AC-3 over neighbour edges; False on an emptied domain."""
        tiles = self.catalog.tiles
        queue = deque(seeds)
        queued = set(queue)
        while queue:
            cell = queue.popleft()
            queued.discard(cell)
            for side in range(4):
                nb = self._neighbour(cell, side)
                if nb is None:
                    continue
                offered = {tiles[t].edge(side) for t in self.domains[cell]}
                back = OPPOSITE[side]
                drop = [
                    t
                    for t in sorted(self.domains[nb])
                    if not any(connectors_compatible(tiles[t].edge(back), c) for c in offered)
                ]
                if not drop:
                    continue
                self._remove(nb, drop)
                if not self.domains[nb]:
                    return False
                if nb not in queued:
                    queue.append(nb)
                    queued.add(nb)
        return True

    def _lowest_entropy(self) -> Optional[int]:
        best = None
        for i, dom in enumerate(self.domains):
            if len(dom) > 1 and (best is None or len(dom) < len(self.domains[best])):
                best = i
        return best

    def _choose(self, cell: int) -> int:
        options = sorted(self.domains[cell])
        total = sum(self.catalog.tiles[t].weight for t in options)
        roll = self.rng.random() * total
        acc = 0.0
        for t in options:
            acc += self.catalog.tiles[t].weight
            if roll < acc:
                return t
        return options[-1]

    def _contradiction(self) -> None:
        self.contradictions += 1
        if self.contradictions > self.max_contradictions:
            raise WFCExhausted(f"more than {self.max_contradictions} contradictions", self.contradictions)

    def _backtrack(self, stack: List[Checkpoint]) -> None:
        while stack:
            self.backtracks += 1
            cp = stack.pop()
            self._undo(cp.mark)
            self._remove(cp.cell, [cp.chosen])
            if self.domains[cp.cell] and self._propagate([cp.cell]):
                return
            self._contradiction()
        raise WFCExhausted("checkpoint stack exhausted", self.contradictions)

    def run(self) -> WFCResult:
        if any(not d for d in self.domains) or not self._propagate(range(len(self.domains))):
            raise WFCExhausted("catalog cannot satisfy the grid borders", self.contradictions)
        # Initial pruning is never undone
        self.trail.clear()
        stack: List[Checkpoint] = []
        while True:
            cell = self._lowest_entropy()
            if cell is None:
                break
            self.iterations += 1
            chosen = self._choose(cell)
            stack.append(Checkpoint(cell, chosen, len(self.trail)))
            self._remove(cell, [t for t in sorted(self.domains[cell]) if t != chosen])
            if not self._propagate([cell]):
                self._contradiction()
                self._backtrack(stack)
        tiles = self.catalog.tiles
        grid = [
            [tiles[next(iter(self.domains[y * self.cols + x]))] for x in range(self.cols)] for y in range(self.rows)
        ]
        return WFCResult(self.cols, self.rows, grid, self.iterations, self.backtracks)


def collapse(
    catalog: TileCatalog,
    cols: int,
    rows: int,
    rng: random.Random,
    max_contradictions: int = DEFAULT_MAX_CONTRADICTIONS,
) -> WFCResult:
    return WaveFunction(catalog, cols, rows, rng, max_contradictions).run()


def grid_is_consistent(tiles: List[List[Tile]]) -> bool:
    """Every shared edge compatible and every border edge a wall or corner."""
    rows = len(tiles)
    cols = len(tiles[0]) if rows else 0
    for y in range(rows):
        for x in range(cols):
            tile = tiles[y][x]
            for side, (dx, dy) in enumerate(SIDE_STEPS):
                nx, ny = x + dx, y + dy
                if not (0 <= nx < cols and 0 <= ny < rows):
                    if tile.edge(side) not in BORDER_CONNECTORS:
                        return False
                elif not connectors_compatible(tile.edge(side), tiles[ny][nx].edge(OPPOSITE[side])):
                    return False
    return True


def _floor_bounds(tiles: List[List[Tile]], block: Rect, size: int) -> Optional[Rect]:
    """Bounding box of floor sub-cells of the tiles in ``block`` (tile units)."""
    xs: List[int] = []
    ys: List[int] = []
    for ty in range(block.y, block.bottom):
        for tx in range(block.x, block.right):
            for py, row in enumerate(tiles[ty][tx].pattern):
                for px, floor in enumerate(row):
                    if floor:
                        xs.append(tx * size + px)
                        ys.append(ty * size + py)
    if not xs:
        return None
    return Rect(min(xs), min(ys), max(xs) - min(xs) + 1, max(ys) - min(ys) + 1)


def _merge_blocks(tiles: List[List[Tile]], max_tiles: int) -> List[Rect]:
    """Greedy row-major merge of floor tiles into rectangles with open interiors."""
    rows = len(tiles)
    cols = len(tiles[0]) if rows else 0
    used = [[False] * cols for _ in range(rows)]

    def free(x: int, y: int) -> bool:
        return tiles[y][x].has_floor and not used[y][x]

    def joins_east(x: int, y: int) -> bool:
        return tiles[y][x].edges[1] == OPEN and tiles[y][x + 1].edges[3] == OPEN

    def joins_south(x: int, y: int) -> bool:
        return tiles[y][x].edges[2] == OPEN and tiles[y + 1][x].edges[0] == OPEN

    blocks: List[Rect] = []
    for y in range(rows):
        for x in range(cols):
            if not free(x, y):
                continue
            w = 1
            while w < max_tiles and x + w < cols and free(x + w, y) and joins_east(x + w - 1, y):
                w += 1
            h = 1
            while h < max_tiles and y + h < rows:
                ny = y + h
                if not all(free(x + i, ny) and joins_south(x + i, ny - 1) for i in range(w)):
                    break
                if not all(joins_east(x + i, ny) for i in range(w - 1)):
                    break
                h += 1
            for yy in range(y, y + h):
                for xx in range(x, x + w):
                    used[yy][xx] = True
            blocks.append(Rect(x, y, w, h))
    return blocks


def tiles_to_rooms(
    result: WFCResult, tile_size: int, min_room_size: int, max_room_size: int
) -> Tuple[List[Rect], List[Junction]]:
    """Convert a collapsed grid into rooms and room-room junctions.

    Blocks whose floor bounding box is smaller than ``min_room_size`` are
    dropped. Adjacent rooms sharing a passable edge (open-open or door-door)
    get one junction per pair: door edges are preferred, then the lowest tile
    index. The junction cell lies on the lower-indexed room's edge.
    """
    tiles = result.tiles
    max_tiles = max(1, max_room_size // tile_size)
    rooms: List[Rect] = []
    owner: Dict[Tuple[int, int], int] = {}
    for block in _merge_blocks(tiles, max_tiles):
        bounds = _floor_bounds(tiles, block, tile_size)
        if bounds is None or min(bounds.w, bounds.h) < min_room_size or max(bounds.w, bounds.h) > max_room_size:
            continue
        idx = len(rooms)
        rooms.append(bounds)
        for ty in range(block.y, block.bottom):
            for tx in range(block.x, block.right):
                owner[(tx, ty)] = idx

    candidates: Dict[Tuple[int, int], Tuple[int, int, Tuple[int, int], int]] = {}
    for y in range(result.rows):
        for x in range(result.cols):
            a = owner.get((x, y))
            if a is None:
                continue
            for side in (1, 2):  # east, south; each shared edge seen once
                dx, dy = SIDE_STEPS[side]
                b = owner.get((x + dx, y + dy))
                if b is None or b == a:
                    continue
                mine = tiles[y][x].edge(side)
                theirs = tiles[y + dy][x + dx].edge(OPPOSITE[side])
                if mine != theirs or mine not in (OPEN, DOOR):
                    continue
                key = (min(a, b), max(a, b))
                rank = (0 if mine == DOOR else 1, y * result.cols + x)
                if key not in candidates or rank < candidates[key][:2]:
                    candidates[key] = (rank[0], rank[1], (x, y), side)

    junctions: List[Junction] = []
    mid = tile_size // 2
    for (a, b), (_kind, _idx, (x, y), side) in sorted(candidates.items()):
        dx, dy = SIDE_STEPS[side]
        if side == 1:
            near = (x * tile_size + tile_size - 1, y * tile_size + mid)
            far = ((x + dx) * tile_size, y * tile_size + mid)
        else:
            near = (x * tile_size + mid, y * tile_size + tile_size - 1)
            far = (x * tile_size + mid, (y + dy) * tile_size)
        cell = near if owner[(x, y)] == a else far
        junctions.append(Junction(a, rooms[a].clamp(cell), -1, b))
    return rooms, junctions


__all__ = [
    "WaveFunction",
    "WFCResult",
    "Checkpoint",
    "collapse",
    "grid_is_consistent",
    "tiles_to_rooms",
    "COLLAPSED",
    "EXHAUSTED",
]
