import pytest

from delve.dungeon import (
    DungeonGenerator,
    EngineSettings,
    GenerationExhausted,
    GenerationParameters,
    generate_dungeon,
    get_catalog,
)
from delve.dungeon.pipeline import derive_seed, dungeon_name
from delve.dungeon.wfc import grid_is_consistent
from dungeon_test_utils import all_stairs, corridor_is_single_width, overlapping_pairs, reachable_room_ids

SMALL = dict(width=20, height=20, levels=1, min_room_size=2, max_room_size=6, room_density=0.3, mode="partition")


def _settings(**overrides):
    base = dict(max_retries=5, router_retries=64, wfc_max_contradictions=200, density_relaxation=0.8, enable_metrics=True)
    base.update(overrides)
    return EngineSettings(**base)


def _check_level(level):
    assert level.rooms, f"level {level.index} has no rooms"
    assert overlapping_pairs(level) == []
    assert reachable_room_ids(level) == {r.id for r in level.rooms}
    for corridor in level.corridors:
        assert corridor_is_single_width(corridor), corridor.id


def test_small_grid_seed_42_is_connected_without_overlap():
    layout = generate_dungeon(GenerationParameters(seed=42, **SMALL), _settings())
    assert len(layout.levels) == 1
    level = layout.levels[0]
    assert level.name == "Main Level"
    _check_level(level)
    assert layout.entry_point.room_id == "room-0"
    assert level.room("room-0").room_type == "entry"


def test_neighbouring_seed_changes_the_layout():
    a = generate_dungeon(GenerationParameters(seed=42, **SMALL), _settings())
    b = generate_dungeon(GenerationParameters(seed=43, **SMALL), _settings())
    _check_level(b.levels[0])
    assert [r.to_dict()["bounds"] for r in a.levels[0].rooms] != [r.to_dict()["bounds"] for r in b.levels[0].rooms]


@pytest.mark.structure
@pytest.mark.parametrize("seed", range(25))
def test_structural_invariants_across_seeds(seed, make_params):
    layout = generate_dungeon(make_params(seed=seed, levels=2), _settings())
    for level in layout.levels:
        _check_level(level)
        for room in level.rooms:
            assert 2 <= room.width <= 10 and 2 <= room.height <= 10
            assert room.x >= 0 and room.y >= 0
            assert room.x + room.width <= level.width and room.y + room.height <= level.height


def test_same_parameters_give_identical_bytes():
    params = GenerationParameters(seed=777, levels=3, theme="crypt", **{k: v for k, v in SMALL.items() if k != "levels"})
    first = generate_dungeon(params, _settings())
    second = generate_dungeon(params, _settings())
    assert first.to_json() == second.to_json()


def test_three_levels_have_reciprocal_stairs():
    layout = generate_dungeon(GenerationParameters(seed=5, **dict(SMALL, levels=3)), _settings())
    assert [lvl.index for lvl in layout.levels] == [0, -1, -2]
    assert [lvl.name for lvl in layout.levels] == ["Upper Level", "Level 2", "Deep Level"]
    stairs = all_stairs(layout)
    for upper, lower in zip(layout.levels, layout.levels[1:]):
        assert any(s.to_level == lower.index for s in upper.stairs)
        assert any(s.to_level == upper.index for s in lower.stairs)
    for sid, (level, stair) in stairs.items():
        other_level, other = stairs[stair.counterpart_id]
        assert other.counterpart_id == sid
        assert other_level.index == stair.to_level
        assert abs(other_level.index - level.index) == 1
        assert level.room(stair.room_id).bounds.contains(stair.position)
    exit_ref = layout.exit_points[0]
    assert exit_ref.level_index == -2
    assert layout.level(-2).room(exit_ref.room_id).room_type == "exit"


def test_every_junction_gets_exactly_one_door():
    gen = DungeonGenerator(GenerationParameters(seed=11, **SMALL), _settings())
    for position in range(3):
        draft = gen.build_level(position)
        assert len(draft.doors) == len(draft.junctions)
        assert [d.position for d in draft.doors] == [j.cell for j in draft.junctions]


def test_doors_sit_on_room_edges():
    layout = generate_dungeon(GenerationParameters(seed=8, **SMALL), _settings())
    level = layout.levels[0]
    for door in level.doors:
        assert level.room(door.room_id).bounds.is_edge(door.position)
        if door.state == "locked":
            assert door.lock_dc is not None and 10 <= door.lock_dc <= 20
        if door.state == "stuck":
            assert door.strength_dc is not None


def test_tile_mode_with_quad_catalog_falls_back_to_partition():
    params = GenerationParameters(seed=3, tile_catalog="quad", **dict(SMALL, width=6, height=6, mode="tile"))
    gen = DungeonGenerator(params, _settings())
    layout = gen.generate()
    level = layout.levels[0]
    assert level.generation_mode == "partition"
    assert level.tile_grid is None
    assert gen.metrics["wfc_fallbacks"] >= 1


@pytest.mark.parametrize("seed", range(6))
def test_tile_mode_grid_is_edge_compatible(seed):
    params = GenerationParameters(seed=seed, **dict(SMALL, mode="tile"))
    layout = generate_dungeon(params, _settings())
    level = layout.levels[0]
    _check_level(level)
    if level.generation_mode == "tile":
        by_name = {t.name: t for t in get_catalog("basic").tiles}
        tiles = [[by_name[name] for name in row] for row in level.tile_grid]
        assert len(tiles) == 10 and len(tiles[0]) == 10
        assert grid_is_consistent(tiles)


def test_large_tile_grid_stays_in_tile_mode():
    # 50x50 tiles of the basic catalog; a clean collapse never spends the budget
    params = GenerationParameters(seed=4, **dict(SMALL, width=100, height=100, mode="tile"))
    gen = DungeonGenerator(params, _settings())
    level = gen.generate().levels[0]
    assert level.generation_mode == "tile"
    assert len(level.tile_grid) == 50 and len(level.tile_grid[0]) == 50
    assert gen.metrics["wfc_fallbacks"] == 0


def test_single_room_dungeon_has_no_exit_point():
    params = GenerationParameters(seed=1, **dict(SMALL, width=8, height=8))
    layout = generate_dungeon(params, _settings())
    level = layout.levels[0]
    assert len(level.rooms) == 1
    assert level.rooms[0].room_type == "entry"
    assert layout.exit_points == ()
    assert layout.to_dict()["exit_points"] == []


@pytest.mark.parametrize("log_level", ["info", "debug"])
def test_recovery_paths_log_at_default_levels(monkeypatch, capsys, log_level):
    monkeypatch.setenv("DELVE_LOG_LEVEL", log_level)
    monkeypatch.setenv("DELVE_LOG_STREAM", "stdout")
    monkeypatch.delenv("DELVE_LOG_JSON", raising=False)
    quad = GenerationParameters(seed=3, tile_catalog="quad", **dict(SMALL, width=6, height=6, mode="tile"))
    generate_dungeon(quad, _settings())
    with pytest.raises(GenerationExhausted):
        generate_dungeon(GenerationParameters(width=10, height=10, min_room_size=20, max_room_size=25, seed=1), _settings(max_retries=2))
    out = capsys.readouterr().out
    assert "event=wfc_fallback" in out
    assert "event=level_retry" in out
    assert "level_index=0" in out
    if log_level == "debug":
        assert "event=wfc_exhausted" in out
        assert "event=level_complete" in out


def test_oversized_rooms_exhaust_the_retry_cap():
    params = GenerationParameters(width=10, height=10, min_room_size=20, max_room_size=25, seed=1)
    with pytest.raises(GenerationExhausted) as exc:
        generate_dungeon(params, _settings(max_retries=3))
    err = exc.value
    assert err.attempts == 3
    assert err.level_index == 0
    body = err.to_dict()
    assert body["error"] == "generation_exhausted"
    assert body["params"]["min_room_size"] == 20
    assert body["last_error"] == "ConnectivityFailure"


def test_metrics_are_collected_when_enabled():
    gen = DungeonGenerator(GenerationParameters(seed=21, **dict(SMALL, levels=2)), _settings())
    gen.generate()
    m = gen.metrics
    assert m["levels_generated"] >= 2
    assert m["rooms_placed"] > 0
    assert m["doors_created"] >= m["secret_doors"]
    assert m["stairs_placed"] >= 2
    assert set(m["phase_ms"]) >= {"level_0", "level_1", "stairs", "features", "freeze"}


def test_metrics_disabled_leaves_dict_empty():
    gen = DungeonGenerator(GenerationParameters(seed=21, **SMALL), _settings(enable_metrics=False))
    gen.generate()
    assert gen.metrics == {}


def test_identity_follows_theme_and_difficulty():
    layout = generate_dungeon(GenerationParameters(seed=2, theme="sunken temple", difficulty="hard", **SMALL), _settings())
    ident = layout.identity
    assert ident.difficulty == "hard"
    assert ident.name == "Sunken Temple"
    assert ident.recommended_level > 0
    assert dungeon_name("", "crypt") == "The Crypt"


def test_derive_seed_is_stable_and_part_sensitive():
    assert derive_seed(1, 0, 0, 0) == derive_seed(1, 0, 0, 0)
    assert derive_seed(1, 0, 0, 0) != derive_seed(1, 0, 0, 1)
    assert derive_seed(1, "stairs", 0) != derive_seed(2, "stairs", 0)


def test_generate_accepts_a_mapping():
    layout = generate_dungeon({"grid_width": 20, "grid_height": 20, "seed": "hello", "max_room": 6}, _settings())
    assert layout.params.width == 20
    assert layout.params.seed == GenerationParameters.from_mapping({"seed": "hello"}).seed


@pytest.mark.slow
def test_secret_door_fraction_tracks_ratio():
    ratio = 0.2
    total = secret = 0
    for seed in range(500):
        params = GenerationParameters(seed=seed, secret_door_ratio=ratio, **dict(SMALL, width=16, height=16))
        layout = generate_dungeon(params, _settings(enable_metrics=False))
        for door in layout.levels[0].doors:
            total += 1
            secret += door.door_type == "secret"
    assert total > 0
    assert abs(secret / total - ratio) <= 0.03
