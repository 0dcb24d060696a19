import random

import pytest

from delve.dungeon.catalog import (
    DOOR,
    OPEN,
    WALL,
    Tile,
    TileCatalog,
    connectors_compatible,
    get_catalog,
    has_catalog,
)
from delve.dungeon.errors import InvalidParameters, WFCExhausted
from delve.dungeon.wfc import WaveFunction, collapse, grid_is_consistent, tiles_to_rooms


def test_connector_compatibility_rules():
    assert connectors_compatible(OPEN, OPEN)
    assert connectors_compatible(WALL, "corner")
    assert not connectors_compatible(OPEN, WALL)
    assert not connectors_compatible(DOOR, OPEN)


@pytest.mark.parametrize("seed", range(8))
def test_basic_catalog_collapses_consistently(seed):
    result = collapse(get_catalog("basic"), 8, 6, random.Random(seed))
    assert len(result.tiles) == 6 and len(result.tiles[0]) == 8
    assert grid_is_consistent(result.tiles)


def test_quad_catalog_cannot_close_the_east_border():
    # No quad tile has a wall or corner on its east edge
    for seed in range(5):
        with pytest.raises(WFCExhausted):
            collapse(get_catalog("quad"), 3, 3, random.Random(seed), max_contradictions=200)


PARITY = TileCatalog(
    "parity",
    1,
    (
        Tile("rock", ((False,),), (WALL, WALL, WALL, WALL), 0.001),
        Tile("nw_open", ((True,),), (WALL, OPEN, OPEN, WALL)),
        Tile("nw_door", ((True,),), (WALL, DOOR, DOOR, WALL)),
        Tile("ne_open", ((True,),), (WALL, WALL, OPEN, OPEN)),
        Tile("ne_door", ((True,),), (WALL, WALL, DOOR, DOOR)),
        Tile("se_open", ((True,),), (OPEN, WALL, WALL, OPEN)),
        Tile("se_door", ((True,),), (DOOR, WALL, WALL, DOOR)),
        # the south-west corner swaps the connector, so no floor loop closes
        Tile("sw_twist", ((True,),), (OPEN, DOOR, WALL, WALL)),
        Tile("sw_untwist", ((True,),), (DOOR, OPEN, WALL, WALL)),
    ),
)


@pytest.mark.parametrize("seed", range(5))
def test_contradiction_is_undone_by_backtracking(seed):
    # every pair of neighbours agrees, but only solid rock survives the 2x2 loop
    wave = WaveFunction(PARITY, 2, 2, random.Random(seed))
    result = wave.run()
    assert wave.contradictions >= 1
    assert result.backtracks >= 1
    assert grid_is_consistent(result.tiles)
    assert result.names() == [["rock", "rock"], ["rock", "rock"]]


def test_contradiction_budget_raises():
    with pytest.raises(WFCExhausted) as exc:
        collapse(PARITY, 2, 2, random.Random(0), max_contradictions=0)
    assert exc.value.contradictions == 1


def test_large_grid_collapses_within_budget():
    wave = WaveFunction(get_catalog("basic"), 50, 50, random.Random(7))
    result = wave.run()
    assert result.iterations > 0
    assert wave.contradictions <= wave.max_contradictions
    assert grid_is_consistent(result.tiles)


def test_unanswered_door_is_pruned_by_propagation():
    # nothing can answer the east door of "lonely"
    full = ((True, True), (True, True))
    tiles = (
        Tile("rock", ((False, False), (False, False)), (WALL, WALL, WALL, WALL), 1.0),
        Tile("lonely", full, (WALL, DOOR, WALL, WALL), 50.0),
    )
    catalog = TileCatalog("lonely", 2, tiles)
    wave = WaveFunction(catalog, 4, 1, random.Random(0))
    result = wave.run()
    assert grid_is_consistent(result.tiles)
    assert [t.name for t in result.tiles[0]] == ["rock"] * 4


def test_rooms_from_open_tiles_merge_and_respect_max_size():
    result = collapse(get_catalog("basic"), 6, 6, random.Random(1))
    rooms, junctions = tiles_to_rooms(result, 2, 2, 6)
    for room in rooms:
        assert 2 <= room.w <= 6 and 2 <= room.h <= 6
    for i in range(len(rooms)):
        for j in range(i + 1, len(rooms)):
            assert not rooms[i].intersects(rooms[j])
    for j in junctions:
        assert rooms[j.room].is_edge(j.cell)
        assert j.corridor == -1 and j.other_room > j.room


def test_adjacent_open_rooms_get_one_junction():
    full = ((True, True), (True, True))
    east = Tile("east", full, (WALL, OPEN, WALL, WALL), 1.0)
    west = Tile("west", full, (WALL, WALL, WALL, OPEN), 1.0)
    catalog = TileCatalog("pair", 2, (east, west))
    result = collapse(catalog, 2, 1, random.Random(0))
    # Max size 2 keeps each tile its own room
    rooms, junctions = tiles_to_rooms(result, 2, 2, 2)
    assert len(rooms) == 2
    assert len(junctions) == 1
    assert junctions[0].cell == (1, 1)


def test_catalog_from_mapping_and_validation():
    cat = TileCatalog.from_mapping(
        {
            "id": "tiny",
            "tile_size": 1,
            "tiles": [{"name": "x", "pattern": ["#"], "edges": {"north": "wall", "east": "wall", "south": "wall", "west": "wall"}}],
        }
    )
    assert cat.tiles[0].has_floor
    with pytest.raises(InvalidParameters):
        TileCatalog.from_mapping({"id": "bad", "tile_size": 2, "tiles": [{"name": "x", "pattern": ["#"], "edges": {}}]})
    assert has_catalog("basic") and has_catalog("quad")
    assert not has_catalog("tiny")
