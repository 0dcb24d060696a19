"""Tile catalogs for the Wave Function Collapse assembler.

A catalog is a read-only set of square tiles. Each tile carries an occupancy
pattern (``tile_size`` x ``tile_size``, True = floor) and one connector per
edge. Two facing edges are compatible when the connectors are equal, or when
one is a wall and the other a corner.
"""
from __future__ import annotations

import hashlib
import itertools
import json
import threading
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Tuple

from .errors import InvalidParameters

OPEN = "open"
WALL = "wall"
DOOR = "door"
CORNER = "corner"
CONNECTORS = (OPEN, WALL, DOOR, CORNER)

NORTH, EAST, SOUTH, WEST = 0, 1, 2, 3
SIDES = ("north", "east", "south", "west")
OPPOSITE = (SOUTH, WEST, NORTH, EAST)
# (dx, dy) per side, y grows southwards
SIDE_STEPS = ((0, -1), (1, 0), (0, 1), (-1, 0))

BORDER_CONNECTORS = frozenset((WALL, CORNER))


def connectors_compatible(a: str, b: str) -> bool:
    return a == b or {a, b} == {WALL, CORNER}


@dataclass(frozen=True)
class Tile:
    name: str
    pattern: Tuple[Tuple[bool, ...], ...]
    edges: Tuple[str, str, str, str]  # north, east, south, west
    weight: float = 1.0

    @property
    def has_floor(self) -> bool:
        return any(any(row) for row in self.pattern)

    def edge(self, side: int) -> str:
        return self.edges[side]


@dataclass(frozen=True)
class TileCatalog:
    id: str
    tile_size: int
    tiles: Tuple[Tile, ...]

    def __post_init__(self):
        if self.tile_size < 1:
            raise InvalidParameters("tile_size must be at least 1")
        if not self.tiles:
            raise InvalidParameters(f"catalog {self.id!r} has no tiles")
        for t in self.tiles:
            if len(t.pattern) != self.tile_size or any(len(r) != self.tile_size for r in t.pattern):
                raise InvalidParameters(f"tile {t.name!r} pattern is not {self.tile_size}x{self.tile_size}")
            if any(e not in CONNECTORS for e in t.edges):
                raise InvalidParameters(f"tile {t.name!r} has an unknown edge connector")
            if t.weight <= 0:
                raise InvalidParameters(f"tile {t.name!r} weight must be positive")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TileCatalog":
        """Build a catalog from a JSON-style document.

        Pattern rows are strings (``#`` floor, ``.`` empty) or lists of
        truthy values; edges are a mapping keyed by side name.
        """
        try:
            size = int(data["tile_size"])
            tiles = []
            for raw in data["tiles"]:
                rows = []
                for row in raw["pattern"]:
                    if isinstance(row, str):
                        rows.append(tuple(ch == "#" for ch in row))
                    else:
                        rows.append(tuple(bool(v) for v in row))
                edges = tuple(str(raw["edges"][side]) for side in SIDES)
                tiles.append(Tile(str(raw["name"]), tuple(rows), edges, float(raw.get("weight", 1.0))))
            return cls(str(data["id"]), size, tuple(tiles))
        except (KeyError, TypeError, ValueError) as exc:
            if isinstance(exc, InvalidParameters):
                raise
            raise InvalidParameters(f"malformed tile catalog: {exc}") from exc

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tile_size": self.tile_size,
            "tiles": [
                {
                    "name": t.name,
                    "pattern": ["".join("#" if v else "." for v in row) for row in t.pattern],
                    "edges": dict(zip(SIDES, t.edges)),
                    "weight": t.weight,
                }
                for t in self.tiles
            ],
        }


def _full(size: int, floor: bool = True) -> Tuple[Tuple[bool, ...], ...]:
    return tuple(tuple(floor for _ in range(size)) for _ in range(size))


def _basic_catalog() -> TileCatalog:
    """Every wall/open edge combination, single-door variants and solid rock.

    An all-wall assignment is always consistent, so this catalog never
    deadlocks for good.
    """
    size = 2
    tiles: List[Tile] = [Tile("solid", _full(size, False), (WALL, WALL, WALL, WALL), 3.0)]
    for combo in itertools.product((OPEN, WALL), repeat=4):
        opens = sum(1 for c in combo if c == OPEN)
        name = "floor_" + "".join(s[0] for s, c in zip(SIDES, combo) if c == OPEN) if opens else "cell"
        tiles.append(Tile(name, _full(size), combo, 4.0 if opens == 4 else 1.0))
    for side in range(4):
        edges = [WALL, WALL, WALL, WALL]
        edges[side] = DOOR
        tiles.append(Tile(f"door_{SIDES[side]}", _full(size), tuple(edges), 0.5))
    return TileCatalog("basic", size, tuple(tiles))


def _quad_catalog() -> TileCatalog:
    size = 2
    return TileCatalog(
        "quad",
        size,
        (
            Tile("all_open", _full(size), (OPEN, OPEN, OPEN, OPEN), 1.0),
            Tile("wall_north", _full(size), (WALL, OPEN, OPEN, OPEN), 1.0),
            Tile("corner", _full(size), (CORNER, OPEN, OPEN, CORNER), 1.0),
            Tile("door", _full(size), (DOOR, DOOR, DOOR, DOOR), 1.0),
        ),
    )


_REGISTRY: Dict[str, TileCatalog] = {}
_REGISTRY_LOCK = threading.Lock()


def register_catalog(catalog: TileCatalog) -> TileCatalog:
    with _REGISTRY_LOCK:
        _REGISTRY[catalog.id] = catalog
    return catalog


def register_inline_catalog(data: Mapping[str, Any]) -> TileCatalog:
    """Register a catalog sent with a request under a content-addressed id.

    The id becomes ``<id>-<digest>`` so a request can never replace a
    built-in or another caller's catalog, and identical documents share
    one registry entry (and one layout cache key).
    """
    catalog = TileCatalog.from_mapping(data)
    body = {k: v for k, v in catalog.to_dict().items() if k != "id"}
    digest = hashlib.sha256(json.dumps(body, sort_keys=True).encode("utf-8")).hexdigest()[:12]
    catalog = replace(catalog, id=f"{catalog.id}-{digest}")
    with _REGISTRY_LOCK:
        return _REGISTRY.setdefault(catalog.id, catalog)


def has_catalog(catalog_id: str) -> bool:
    return catalog_id in _REGISTRY


def get_catalog(catalog_id: str) -> TileCatalog:
    try:
        return _REGISTRY[catalog_id]
    except KeyError:
        raise InvalidParameters(f"unknown tile catalog {catalog_id!r}") from None


def catalog_ids() -> List[str]:
    return sorted(_REGISTRY)


register_catalog(_basic_catalog())
register_catalog(_quad_catalog())


__all__ = [
    "Tile",
    "TileCatalog",
    "register_catalog",
    "register_inline_catalog",
    "has_catalog",
    "get_catalog",
    "catalog_ids",
    "connectors_compatible",
    "OPEN",
    "WALL",
    "DOOR",
    "CORNER",
    "SIDES",
    "OPPOSITE",
    "SIDE_STEPS",
    "BORDER_CONNECTORS",
]
