"""Generation orchestration.

``DungeonGenerator`` runs the per-level pipeline (partition or tile assembly,
doors, validation), links adjacent levels with stairs and assigns features.
Every random draw comes from a ``random.Random`` derived from the request
seed, so the same parameters always give the same layout.
"""
from __future__ import annotations

import hashlib
import random
import time
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from delve.logging_utils import get_logger

from .bsp import leaf_budget, partition
from .catalog import get_catalog
from .cells import OccupancyGrid, Rect
from .config import EngineSettings, GenerationParameters
from .connectivity import repair_connectivity
from .doors import door_counts, place_doors
from .errors import ConnectivityFailure, GenerationExhausted, StairReciprocityFailure, WFCExhausted
from .features import assign_features
from .graph import build_room_graph
from .layout import (
    ENTRY,
    EXIT,
    DungeonLayout,
    Identity,
    LevelDraft,
    RoomRef,
    level_name,
    room_id,
)
from .metrics import init_metrics
from .profiles import RECOMMENDED_LEVEL, get_layout_profile
from .rooms import place_rooms, rooms_overlap
from .stairs import place_stairs, validate_stairs
from .tunnels import route_corridors
from .wfc import EXHAUSTED, collapse, tiles_to_rooms

log = get_logger("delve.dungeon.pipeline")


def derive_seed(seed: int, *parts: Any) -> int:
    """Stable sub-seed for one stage of one level (SHA-256 of the components)."""
    text = ":".join(str(p) for p in (seed,) + parts)
    return int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:8], "big")


def dungeon_name(theme: str, dungeon_type: str) -> str:
    theme = (theme or "").strip()
    if not theme or theme.lower() == dungeon_type:
        return f"The {dungeon_type.title()}"
    return theme.title()


class DungeonGenerator:
    def __init__(self, params: GenerationParameters, settings: Optional[EngineSettings] = None):
        self.params = params
        self.settings = settings or EngineSettings.from_env()
        self.enable_metrics = self.settings.enable_metrics
        self.metrics: Dict[str, Any] = init_metrics() if self.enable_metrics else {}
        self.phase_ms: Dict[str, int] = {}
        self.dungeon_type, self.profile = get_layout_profile(params.theme)

    def _count(self, key: str, n: int = 1) -> None:
        if self.enable_metrics:
            self.metrics[key] = self.metrics.get(key, 0) + n

    def _phase(self, label, fn, *a, **k):
        if not self.enable_metrics:
            return fn(*a, **k)
        ps = time.perf_counter()
        r = fn(*a, **k)
        self.phase_ms[label] = int((time.perf_counter() - ps) * 1000)
        return r

    # -- single level -------------------------------------------------

    def build_level(self, position: int, generation: int = 0) -> LevelDraft:
        """Generate level ``position`` (0 = entry level), retrying on connectivity failure.

        Each attempt relaxes room density by ``density_relaxation``; after
        ``max_retries`` attempts ``GenerationExhausted`` is raised.
        """
        density = self.params.room_density
        last_error: Optional[Exception] = None
        for attempt in range(self.settings.max_retries):
            rng = random.Random(derive_seed(self.params.seed, position, generation, attempt))
            try:
                draft = self._attempt_level(-position, density, rng)
            except ConnectivityFailure as exc:
                last_error = exc
                self._count("level_retries")
                log.warn(event="level_retry", level_index=-position, attempt=attempt, density=round(density, 4), reason=str(exc))
                density *= self.settings.density_relaxation
                continue
            self._count("levels_generated")
            log.debug(
                event="level_complete",
                level_index=draft.index,
                mode=draft.generation_mode,
                rooms=len(draft.rooms),
                corridors=len(draft.corridors),
                doors=len(draft.doors),
            )
            return draft
        raise GenerationExhausted(self.params, self.settings.max_retries, last_error, level_index=-position)

    def _attempt_level(self, index: int, density: float, rng: random.Random) -> LevelDraft:
        if self.params.mode == "tile":
            draft = self._tile_level(index, rng)
            if draft is not None:
                return draft
        return self._partition_level(index, density, rng)

    def _partition_level(self, index: int, density: float, rng: random.Random) -> LevelDraft:
        p = self.params
        budget = leaf_budget(p.width, p.height, p.min_room_size, p.max_room_size, density)
        tree = partition(Rect(0, 0, p.width, p.height), p.min_room_size, p.max_room_size, rng, max_leaves=budget)
        self._count("partition_failures", len(tree.failures))
        rooms = place_rooms(tree.leaves(), p.min_room_size, p.max_room_size, rng)
        if not rooms:
            raise ConnectivityFailure(f"no room of size {p.min_room_size} fits a {p.width}x{p.height} grid", index)
        graph = build_room_graph(rooms, p.extra_connections_ratio, rng)
        grid = OccupancyGrid.from_rooms(p.width, p.height, rooms)
        routing = route_corridors(rooms, graph, grid, rng, retries=self.settings.router_retries)
        self._count("routing_failures", len(routing.failures))
        draft = LevelDraft(index, p.width, p.height, rooms, routing=routing)
        draft.doors = place_doors(draft.junctions, rng, p.secret_door_ratio)
        self._validate_level(draft, grid, rng)
        return draft

    def _tile_level(self, index: int, rng: random.Random) -> Optional[LevelDraft]:
        """Tile assembly for one level; None means fall back to partitioning."""
        p = self.params
        catalog = get_catalog(p.catalog_id)
        size = catalog.tile_size
        cols, rows = p.width // size, p.height // size
        reason = None
        if size < p.min_room_size or size > p.max_room_size:
            reason = "tile_size_outside_room_bounds"
        elif cols == 0 or rows == 0:
            reason = "grid_smaller_than_tile"
        else:
            try:
                result = collapse(catalog, cols, rows, rng, self.settings.wfc_max_contradictions)
            except WFCExhausted as exc:
                reason = EXHAUSTED
                log.debug(event="wfc_exhausted", level_index=index, contradictions=exc.contradictions, detail=str(exc))
            else:
                self._count("wfc_backtracks", result.backtracks)
                rooms, junctions = tiles_to_rooms(result, size, p.min_room_size, p.max_room_size)
                if not rooms:
                    reason = "no_rooms"
        if reason is not None:
            self._count("wfc_fallbacks")
            log.warn(event="wfc_fallback", level_index=index, catalog=catalog.id, reason=reason)
            return None
        draft = LevelDraft(index, p.width, p.height, rooms, generation_mode="tile", tile_grid=result.names())
        draft.routing.junctions.extend(junctions)
        draft.doors = place_doors(draft.junctions, rng, p.secret_door_ratio)
        self._validate_level(draft, OccupancyGrid.from_rooms(p.width, p.height, rooms), rng)
        return draft

    def _validate_level(self, draft: LevelDraft, grid: OccupancyGrid, rng: random.Random) -> None:
        if rooms_overlap(draft.rooms):
            raise ConnectivityFailure("overlapping rooms", draft.index)
        bridges = repair_connectivity(draft, grid, rng, self.params.secret_door_ratio)
        self._count("bridges_inserted", bridges)

    # -- multi level --------------------------------------------------

    def link_levels(self, drafts: List[LevelDraft]) -> None:
        """Place stairs pair by pair; a failed pair regenerates its lower level."""
        next_number = 0
        for pair in range(len(drafts) - 1):
            last_error: Optional[Exception] = None
            for attempt in range(self.settings.max_retries):
                upper, lower = drafts[pair], drafts[pair + 1]
                kept = len(upper.stairs)
                rng = random.Random(derive_seed(self.params.seed, "stairs", pair, attempt))
                candidate = place_stairs(upper, lower, rng, next_number)
                try:
                    validate_stairs(drafts[: pair + 2])
                except StairReciprocityFailure as exc:
                    last_error = exc
                    del upper.stairs[kept:]
                    self._count("stair_regenerations")
                    log.warn(event="stair_regeneration", upper=upper.index, lower=lower.index, attempt=attempt, reason=str(exc))
                    drafts[pair + 1] = self.build_level(pair + 1, generation=attempt + 1)
                    continue
                next_number = candidate
                break
            else:
                raise GenerationExhausted(self.params, self.settings.max_retries, last_error, level_index=drafts[pair + 1].index)
        self._count("stairs_placed", next_number)

    def _assign_room_types(self, drafts: List[LevelDraft]) -> None:
        first, last = drafts[0], drafts[-1]
        first.room_types[0] = ENTRY
        if last is not first or len(last.rooms) > 1:
            last.room_types[-1] = EXIT

    def _assign_features(self, drafts: List[LevelDraft]) -> None:
        self._assign_room_types(drafts)
        rng = random.Random(derive_seed(self.params.seed, "features"))
        for draft in drafts:
            assign_features(draft, self.profile, self.params.difficulty, rng, self.metrics if self.enable_metrics else None)

    def _freeze(self, drafts: List[LevelDraft]) -> DungeonLayout:
        total = len(drafts)
        levels = tuple(d.freeze(level_name(pos, total)) for pos, d in enumerate(drafts))
        last = drafts[-1]
        exits: Tuple[RoomRef, ...] = ()
        if last.room_types[-1] == EXIT:
            exits = (RoomRef(last.index, room_id(len(last.rooms) - 1)),)
        identity = Identity(
            name=dungeon_name(self.params.theme, self.dungeon_type),
            dungeon_type=self.dungeon_type,
            difficulty=self.params.difficulty,
            recommended_level=RECOMMENDED_LEVEL[self.params.difficulty],
        )
        return DungeonLayout(
            levels=levels,
            entry_point=RoomRef(drafts[0].index, room_id(0)),
            exit_points=exits,
            identity=identity,
            params=self.params,
        )

    def generate(self) -> DungeonLayout:
        start = time.perf_counter()
        drafts = [self._phase(f"level_{pos}", self.build_level, pos) for pos in range(self.params.levels)]
        self._phase("stairs", self.link_levels, drafts)
        self._phase("features", self._assign_features, drafts)
        layout = self._phase("freeze", self._freeze, drafts)
        runtime_ms = int((time.perf_counter() - start) * 1000)
        if self.enable_metrics:
            doors = door_counts(d for draft in drafts for d in draft.doors)
            self.metrics["rooms_placed"] = sum(len(d.rooms) for d in drafts)
            self.metrics["corridors_routed"] = sum(len(d.corridors) for d in drafts)
            self.metrics["doors_created"] = doors["total"]
            self.metrics["secret_doors"] = doors["secret"]
            self.metrics["runtime_ms"] = runtime_ms
            self.metrics["phase_ms"] = dict(self.phase_ms)
        log.info(
            event="generation_complete",
            seed=self.params.seed,
            mode=self.params.mode,
            levels=len(drafts),
            rooms=sum(len(d.rooms) for d in drafts),
            runtime_ms=runtime_ms,
        )
        return layout


def generate_dungeon(
    params: Union[GenerationParameters, Mapping[str, Any]], settings: Optional[EngineSettings] = None
) -> DungeonLayout:
    """Generate a validated layout; raises GenerationExhausted or InvalidParameters."""
    if not isinstance(params, GenerationParameters):
        params = GenerationParameters.from_mapping(params)
    return DungeonGenerator(params, settings).generate()


__all__ = ["DungeonGenerator", "generate_dungeon", "derive_seed", "dungeon_name"]
