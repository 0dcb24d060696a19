"""Layout data model.

``LevelDraft`` is the mutable working state of one level while the generators
run. Once every check passes the orchestrator freezes drafts into the
immutable ``Level`` / ``DungeonLayout`` records below, which is all callers
ever see.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .cells import Coord2D, Rect
from .config import GenerationParameters
from .doors import DoorPlacement
from .tunnels import CorridorPath, Junction, RoutingResult

CELL_SIZE_FEET = 5

ENTRY = "entry"
EXIT = "exit"
CHAMBER = "chamber"
SPECIAL = "special"


def room_id(index: int) -> str:
    return f"room-{index}"


def corridor_id(index: int) -> str:
    return f"corridor-{index}"


def door_id(index: int) -> str:
    return f"door-{index}"


def level_name(position: int, total: int) -> str:
    if total == 1:
        return "Main Level"
    if position == 0:
        return "Upper Level"
    if position == total - 1:
        return "Deep Level"
    return f"Level {position + 1}"


@dataclass(frozen=True)
class Room:
    id: str
    x: int
    y: int
    width: int
    height: int
    room_type: str
    connections: Tuple[str, ...]
    features: Tuple[str, ...] = ()

    @property
    def bounds(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.room_type,
            "bounds": {"x": self.x, "y": self.y, "width": self.width, "height": self.height},
            "connections": list(self.connections),
            "features": list(self.features),
        }


@dataclass(frozen=True)
class Corridor:
    id: str
    cells: Tuple[Coord2D, ...]
    rooms: Tuple[str, str]
    kind: str
    width: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "cells": [list(c) for c in self.cells],
            "rooms": list(self.rooms),
            "kind": self.kind,
            "width": self.width,
        }


@dataclass(frozen=True)
class Door:
    id: str
    position: Coord2D
    door_type: str
    state: str
    room_id: str
    connects_to: str
    lock_dc: Optional[int] = None
    strength_dc: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "position": list(self.position),
            "type": self.door_type,
            "state": self.state,
            "room_id": self.room_id,
            "connects_to": self.connects_to,
        }
        if self.lock_dc is not None:
            out["lock_dc"] = self.lock_dc
        if self.strength_dc is not None:
            out["strength_dc"] = self.strength_dc
        return out


@dataclass(frozen=True)
class Stair:
    id: str
    position: Coord2D
    from_level: int
    to_level: int
    direction: str
    room_id: str
    counterpart_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "position": list(self.position),
            "from_level": self.from_level,
            "to_level": self.to_level,
            "direction": self.direction,
            "room_id": self.room_id,
            "counterpart_id": self.counterpart_id,
        }


@dataclass(frozen=True)
class Level:
    index: int
    name: str
    width: int
    height: int
    rooms: Tuple[Room, ...]
    corridors: Tuple[Corridor, ...]
    doors: Tuple[Door, ...]
    stairs: Tuple[Stair, ...]
    generation_mode: str = "partition"
    cell_size: int = CELL_SIZE_FEET
    tile_grid: Optional[Tuple[Tuple[str, ...], ...]] = None

    def room(self, rid: str) -> Room:
        for r in self.rooms:
            if r.id == rid:
                return r
        raise KeyError(rid)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "level_index": self.index,
            "name": self.name,
            "grid": {"width": self.width, "height": self.height, "cell_size": self.cell_size},
            "generation_mode": self.generation_mode,
            "rooms": [r.to_dict() for r in self.rooms],
            "corridors": [c.to_dict() for c in self.corridors],
            "doors": [d.to_dict() for d in self.doors],
            "stairs": [s.to_dict() for s in self.stairs],
        }
        if self.tile_grid is not None:
            out["tile_grid"] = [list(row) for row in self.tile_grid]
        return out


@dataclass(frozen=True)
class RoomRef:
    level_index: int
    room_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"level_index": self.level_index, "room_id": self.room_id}


@dataclass(frozen=True)
class Identity:
    name: str
    dungeon_type: str
    difficulty: str
    recommended_level: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "dungeon_type": self.dungeon_type,
            "difficulty": self.difficulty,
            "recommended_level": self.recommended_level,
        }


@dataclass(frozen=True)
class DungeonLayout:
    levels: Tuple[Level, ...]
    entry_point: RoomRef
    exit_points: Tuple[RoomRef, ...]
    identity: Identity
    params: GenerationParameters

    def level(self, index: int) -> Level:
        for lvl in self.levels:
            if lvl.index == index:
                return lvl
        raise KeyError(index)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity.to_dict(),
            "params": self.params.to_dict(),
            "entry_point": self.entry_point.to_dict(),
            "exit_points": [p.to_dict() for p in self.exit_points],
            "levels": [lvl.to_dict() for lvl in self.levels],
        }

    def to_json(self) -> str:
        """Canonical JSON: same parameters and seed give the same bytes."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))


@dataclass
class StairPlacement:
    id: str
    position: Coord2D
    level_index: int
    to_level: int
    direction: str
    room: int
    counterpart_id: str = ""


@dataclass
class LevelDraft:
    """Mutable per-level state shared by the placers and the validator."""

    index: int
    width: int
    height: int
    rooms: List[Rect]
    routing: RoutingResult = field(default_factory=RoutingResult)
    doors: List[DoorPlacement] = field(default_factory=list)
    stairs: List[StairPlacement] = field(default_factory=list)
    room_types: List[str] = field(default_factory=list)
    room_features: List[List[str]] = field(default_factory=list)
    generation_mode: str = "partition"
    tile_grid: Optional[List[List[str]]] = None

    def __post_init__(self):
        if not self.room_types:
            self.room_types = [CHAMBER for _ in self.rooms]
        if not self.room_features:
            self.room_features = [[] for _ in self.rooms]

    @property
    def corridors(self) -> List[CorridorPath]:
        return self.routing.corridors

    @property
    def junctions(self) -> List[Junction]:
        return self.routing.junctions

    def neighbours(self, room: int) -> List[int]:
        """Rooms joined to ``room`` by a corridor or a room-room junction."""
        out = set()
        for c in self.corridors:
            if c.room_a == room:
                out.add(c.room_b)
            elif c.room_b == room:
                out.add(c.room_a)
        for j in self.junctions:
            if j.corridor < 0 and j.room == room:
                out.add(j.other_room)
            elif j.corridor < 0 and j.other_room == room:
                out.add(j.room)
        out.discard(room)
        return sorted(out)

    def freeze(self, name: str) -> Level:
        rooms = []
        for i, rect in enumerate(self.rooms):
            attached = [corridor_id(c.index) for c in self.corridors if i in (c.room_a, c.room_b)]
            connections = tuple([room_id(n) for n in self.neighbours(i)] + attached)
            rooms.append(
                Room(
                    id=room_id(i),
                    x=rect.x,
                    y=rect.y,
                    width=rect.w,
                    height=rect.h,
                    room_type=self.room_types[i],
                    connections=connections,
                    features=tuple(self.room_features[i]),
                )
            )
        corridors = tuple(
            Corridor(corridor_id(c.index), tuple(c.cells), (room_id(c.room_a), room_id(c.room_b)), c.kind)
            for c in self.corridors
        )
        doors = tuple(
            Door(
                id=door_id(i),
                position=d.position,
                door_type=d.door_type,
                state=d.state,
                room_id=room_id(d.room),
                connects_to=corridor_id(d.corridor) if d.corridor >= 0 else room_id(d.other_room),
                lock_dc=d.lock_dc,
                strength_dc=d.strength_dc,
            )
            for i, d in enumerate(self.doors)
        )
        stairs = tuple(
            Stair(s.id, s.position, s.level_index, s.to_level, s.direction, room_id(s.room), s.counterpart_id)
            for s in self.stairs
        )
        tile_grid = tuple(tuple(row) for row in self.tile_grid) if self.tile_grid is not None else None
        return Level(
            index=self.index,
            name=name,
            width=self.width,
            height=self.height,
            rooms=tuple(rooms),
            corridors=corridors,
            doors=doors,
            stairs=stairs,
            generation_mode=self.generation_mode,
            tile_grid=tile_grid,
        )


__all__ = [
    "Room",
    "Corridor",
    "Door",
    "Stair",
    "Level",
    "RoomRef",
    "Identity",
    "DungeonLayout",
    "LevelDraft",
    "StairPlacement",
    "level_name",
    "room_id",
    "corridor_id",
    "door_id",
    "ENTRY",
    "EXIT",
    "CHAMBER",
    "SPECIAL",
]
