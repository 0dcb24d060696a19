import random

from delve.dungeon.cells import Rect
from delve.dungeon.graph import LOOP, TREE, build_room_graph, extra_edge_count, minimum_spanning_tree


def _row_of_rooms(n, gap=6):
    return [Rect(i * gap, 0, 3, 3) for i in range(n)]


def test_mst_has_n_minus_one_edges_and_connects():
    rooms = [Rect(0, 0, 3, 3), Rect(20, 0, 3, 3), Rect(0, 20, 3, 3), Rect(20, 20, 3, 3), Rect(10, 10, 3, 3)]
    graph = build_room_graph(rooms, 0.0, random.Random(1))
    assert len(graph.edges) == len(rooms) - 1
    assert all(e.kind == TREE for e in graph.edges)
    assert graph.is_connected()


def test_mst_prefers_short_edges():
    rooms = _row_of_rooms(4)
    mst = minimum_spanning_tree(rooms)
    assert sorted((i, j) for _, i, j in mst) == [(0, 1), (1, 2), (2, 3)]


def test_extra_edges_added_as_loops_between_non_adjacent_rooms():
    rooms = _row_of_rooms(6)
    graph = build_room_graph(rooms, 0.5, random.Random(2))
    loops = [e for e in graph.edges if e.kind == LOOP]
    assert len(loops) == 3
    pairs = {(e.a, e.b) for e in graph.edges}
    assert len(pairs) == len(graph.edges)  # no duplicate edges


def test_equal_length_loops_go_to_lowest_combined_index():
    # Row of rooms: all distance-2 pairs are equally long
    rooms = _row_of_rooms(5)
    graph = build_room_graph(rooms, 0.2, random.Random(0))
    loops = [(e.a, e.b) for e in graph.edges if e.kind == LOOP]
    assert loops == [(0, 2)]


def test_extra_edge_count_integer_and_fraction():
    rng = random.Random(3)
    assert extra_edge_count(8, 0.5, rng) == 4
    counts = {extra_edge_count(10, 0.25, random.Random(s)) for s in range(50)}
    assert counts == {2, 3}


def test_single_room_graph_is_empty_and_connected():
    graph = build_room_graph([Rect(0, 0, 3, 3)], 0.5, random.Random(0))
    assert graph.edges == []
    assert graph.is_connected()
