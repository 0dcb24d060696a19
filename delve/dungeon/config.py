from __future__ import annotations

import hashlib
import os
import random
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

from .errors import InvalidParameters
from .profiles import get_layout_profile

MODES = ("partition", "tile")
DIFFICULTIES = ("easy", "medium", "hard", "deadly")
MAX_LEVELS = 10
MAX_GRID = 256
SEED_MAX = 9223372036854775807

# Request keys a layout profile fills in when the caller leaves them out
_PROFILE_DEFAULTS = ("min_room_size", "max_room_size", "room_density", "extra_connections_ratio")

# Keys used by the original request payloads -> field names
_ALIASES = {
    "grid_width": "width",
    "grid_height": "height",
    "num_levels": "levels",
    "generation_mode": "mode",
    "min_room": "min_room_size",
    "max_room": "max_room_size",
    "density": "room_density",
    "extra_connections": "extra_connections_ratio",
    "catalog": "tile_catalog",
}
_MODE_ALIASES = {"random": "partition", "tile_based": "tile", "wfc": "tile"}


def coerce_seed(value: Any) -> int:
    """Convert a provided seed (int or str) into a bounded non-negative int.

    None or an empty string draws a fresh random seed; numeric strings are used
    as-is; any other string is hashed so the same text always maps to the same
    dungeon.
    """
    if value is None or isinstance(value, bool):
        return random.randint(1, 1_000_000)
    if isinstance(value, int):
        return value % SEED_MAX
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return random.randint(1, 1_000_000)
        if s.isdigit():
            return int(s) % SEED_MAX
        h = hashlib.sha256(s.encode("utf-8")).digest()
        return int.from_bytes(h[:8], "big") % SEED_MAX
    raise InvalidParameters(f"seed must be an int, a string or null, got {type(value).__name__}")


@dataclass(frozen=True)
class GenerationParameters:
    width: int = 50
    height: int = 50
    levels: int = 1
    min_room_size: int = 2
    max_room_size: int = 10
    room_density: float = 0.3
    extra_connections_ratio: float = 0.25
    secret_door_ratio: float = 0.10
    mode: str = "partition"
    seed: int = 0
    tile_catalog: Optional[str] = None
    theme: str = "dungeon"
    difficulty: str = "medium"

    def __post_init__(self):
        for name in ("width", "height", "levels", "min_room_size", "max_room_size", "seed"):
            val = getattr(self, name)
            if isinstance(val, bool) or not isinstance(val, int):
                raise InvalidParameters(f"{name} must be an integer, got {val!r}")
        if not (1 <= self.width <= MAX_GRID and 1 <= self.height <= MAX_GRID):
            raise InvalidParameters(f"grid must be between 1 and {MAX_GRID} cells per side")
        if not (1 <= self.levels <= MAX_LEVELS):
            raise InvalidParameters(f"levels must be between 1 and {MAX_LEVELS}")
        if self.min_room_size < 1:
            raise InvalidParameters("min_room_size must be at least 1")
        if self.min_room_size > self.max_room_size:
            raise InvalidParameters("min_room_size cannot exceed max_room_size")
        for name in ("room_density", "extra_connections_ratio", "secret_door_ratio"):
            val = getattr(self, name)
            if isinstance(val, bool) or not isinstance(val, (int, float)) or not (0.0 <= val <= 1.0):
                raise InvalidParameters(f"{name} must be a number in [0, 1], got {val!r}")
        if self.room_density <= 0.0:
            raise InvalidParameters("room_density must be greater than 0")
        if self.mode not in MODES:
            raise InvalidParameters(f"mode must be one of {MODES}, got {self.mode!r}")
        if self.difficulty not in DIFFICULTIES:
            raise InvalidParameters(f"difficulty must be one of {DIFFICULTIES}, got {self.difficulty!r}")
        if self.seed < 0:
            raise InvalidParameters("seed must be non-negative")
        if self.tile_catalog is not None:
            from .catalog import has_catalog

            if not has_catalog(self.tile_catalog):
                raise InvalidParameters(f"unknown tile catalog {self.tile_catalog!r}")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "GenerationParameters":
        """Build parameters from a request payload (JSON body, CLI namespace dict)."""
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, val in data.items():
            name = _ALIASES.get(key, key)
            if name not in known or (val is None and name != "seed"):
                continue
            kwargs[name] = val
        theme = kwargs.get("theme")
        _, profile = get_layout_profile(theme if isinstance(theme, str) else None)
        given = {name for name in _PROFILE_DEFAULTS if name in kwargs}
        for name in _PROFILE_DEFAULTS:
            kwargs.setdefault(name, getattr(profile, name))
        # an explicit room bound wins over the profile default for the other one
        lo, hi = kwargs["min_room_size"], kwargs["max_room_size"]
        if isinstance(lo, int) and isinstance(hi, int) and lo > hi:
            if "min_room_size" not in given:
                kwargs["min_room_size"] = hi
            elif "max_room_size" not in given:
                kwargs["max_room_size"] = lo
        if "mode" in kwargs and isinstance(kwargs["mode"], str):
            kwargs["mode"] = _MODE_ALIASES.get(kwargs["mode"], kwargs["mode"])
        kwargs["seed"] = coerce_seed(kwargs.get("seed"))
        try:
            return cls(**kwargs)
        except TypeError as exc:
            raise InvalidParameters(str(exc)) from exc

    @property
    def catalog_id(self) -> str:
        return self.tile_catalog or "basic"

    def with_density(self, density: float) -> "GenerationParameters":
        return replace(self, room_density=density)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _env_flag(val: str) -> bool:
    return val.lower() not in {"0", "false", "no", ""}


@dataclass
class EngineSettings:
    """Tuning knobs that are not part of a request.

    They change output only in pathological cases (a level that needs more
    retries, a router that gives up earlier) so they are kept out of
    ``GenerationParameters``.
    """

    max_retries: int = 5
    router_retries: int = 64
    wfc_max_contradictions: int = 200
    density_relaxation: float = 0.8
    enable_metrics: bool = True

    @classmethod
    def from_env(cls) -> "EngineSettings":
        settings = cls()
        env_map = {
            "DUNGEON_MAX_RETRIES": ("max_retries", int),
            "DUNGEON_ROUTER_RETRIES": ("router_retries", int),
            "DUNGEON_WFC_MAX_CONTRADICTIONS": ("wfc_max_contradictions", int),
            "DUNGEON_DENSITY_RELAXATION": ("density_relaxation", float),
            "DUNGEON_ENABLE_GENERATION_METRICS": ("enable_metrics", _env_flag),
        }
        for env_key, (attr, conv) in env_map.items():
            if env_key in os.environ:
                setattr(settings, attr, conv(os.environ[env_key]))
        # Flask app config wins over the environment inside a request/app context
        from flask import current_app, has_app_context

        if has_app_context():
            cfg = current_app.config
            for env_key, (attr, conv) in env_map.items():
                if env_key in cfg:
                    raw = cfg[env_key]
                    setattr(settings, attr, bool(raw) if conv is _env_flag else conv(raw))
        if settings.max_retries < 1:
            raise InvalidParameters("DUNGEON_MAX_RETRIES must be at least 1")
        return settings


__all__ = ["GenerationParameters", "EngineSettings", "coerce_seed", "MODES", "DIFFICULTIES"]
