"""Generation error taxonomy.

Only ``GenerationExhausted`` (and ``InvalidParameters`` for malformed input)
ever leave ``generate_dungeon``; the others are recovered locally:

  * PartitionFailure        - logged by the partitioner, region kept as a leaf
  * RoutingFailure          - router records the edge, validator bridges the gap
  * ConnectivityFailure     - orchestrator retries the level with relaxed density
  * StairReciprocityFailure - orchestrator regenerates the lower level of the pair
  * WFCExhausted            - orchestrator falls back to the partition pipeline
"""
from __future__ import annotations

from typing import Any, Optional


class DungeonGenerationError(Exception):
    """Base class for every engine error."""


class InvalidParameters(DungeonGenerationError, ValueError):
    """Generation parameters are structurally invalid (rejected before any work)."""


class PartitionFailure(DungeonGenerationError):
    def __init__(self, region, reason: str = "no valid split"):
        self.region = region
        self.reason = reason
        super().__init__(f"cannot split region {tuple(region)}: {reason}")


class RoutingFailure(DungeonGenerationError):
    def __init__(self, room_a: int, room_b: int, attempts: int):
        self.room_a = room_a
        self.room_b = room_b
        self.attempts = attempts
        super().__init__(f"no collision-free corridor between rooms {room_a} and {room_b} after {attempts} candidates")


class ConnectivityFailure(DungeonGenerationError):
    def __init__(self, message: str, level_index: Optional[int] = None):
        self.level_index = level_index
        super().__init__(message)


class StairReciprocityFailure(DungeonGenerationError):
    def __init__(self, message: str, upper: Optional[int] = None, lower: Optional[int] = None):
        self.upper = upper
        self.lower = lower
        super().__init__(message)


class WFCExhausted(DungeonGenerationError):
    def __init__(self, message: str, contradictions: int = 0):
        self.contradictions = contradictions
        super().__init__(message)


class GenerationExhausted(DungeonGenerationError):
    """Retry cap exceeded. Carries the failing parameters for diagnosis."""

    def __init__(self, params: Any, attempts: int, last_error: Optional[BaseException] = None, level_index: Optional[int] = None):
        self.params = params
        self.attempts = attempts
        self.last_error = last_error
        self.level_index = level_index
        where = f" on level {level_index}" if level_index is not None else ""
        cause = f": {last_error}" if last_error else ""
        super().__init__(f"generation exhausted after {attempts} attempts{where}{cause}")

    def to_dict(self) -> dict:
        params = self.params.to_dict() if hasattr(self.params, "to_dict") else self.params
        return {
            "error": "generation_exhausted",
            "message": str(self),
            "attempts": self.attempts,
            "level_index": self.level_index,
            "last_error": type(self.last_error).__name__ if self.last_error else None,
            "params": params,
        }


__all__ = [
    "DungeonGenerationError",
    "InvalidParameters",
    "PartitionFailure",
    "RoutingFailure",
    "ConnectivityFailure",
    "StairReciprocityFailure",
    "WFCExhausted",
    "GenerationExhausted",
]
