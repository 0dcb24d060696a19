"""Public dungeon engine interface."""

from .catalog import Tile, TileCatalog, catalog_ids, get_catalog, register_catalog, register_inline_catalog  # noqa: F401
from .config import EngineSettings, GenerationParameters, coerce_seed  # noqa: F401
from .errors import (  # noqa: F401
    ConnectivityFailure,
    DungeonGenerationError,
    GenerationExhausted,
    InvalidParameters,
    PartitionFailure,
    RoutingFailure,
    StairReciprocityFailure,
    WFCExhausted,
)
from .layout import Corridor, Door, DungeonLayout, Level, Room, RoomRef, Stair  # noqa: F401
from .pipeline import DungeonGenerator, generate_dungeon  # noqa: F401

__all__ = [
    "generate_dungeon",
    "DungeonGenerator",
    "GenerationParameters",
    "EngineSettings",
    "coerce_seed",
    "DungeonLayout",
    "Level",
    "Room",
    "Corridor",
    "Door",
    "Stair",
    "RoomRef",
    "Tile",
    "TileCatalog",
    "register_catalog",
    "register_inline_catalog",
    "get_catalog",
    "catalog_ids",
    "DungeonGenerationError",
    "InvalidParameters",
    "PartitionFailure",
    "RoutingFailure",
    "ConnectivityFailure",
    "StairReciprocityFailure",
    "WFCExhausted",
    "GenerationExhausted",
]
