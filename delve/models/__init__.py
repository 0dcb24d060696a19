# Model package init
from .dungeon_record import DungeonLayoutRecord  # noqa: F401 re-export

__all__ = ["DungeonLayoutRecord"]
