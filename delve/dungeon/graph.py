"""Room connectivity graph: minimum spanning tree plus extra loop edges."""
from __future__ import annotations

import random
from typing import List, NamedTuple, Sequence, Set, Tuple

from .cells import Rect, distance

TREE = "tree"
LOOP = "loop"


class GraphEdge(NamedTuple):
    a: int
    b: int
    weight: float
    kind: str


class RoomGraph:
    """Undirected graph over room indices (adjacency list + ordered edge list)."""

    def __init__(self, room_count: int):
        self.room_count = room_count
        self.adjacency: List[List[int]] = [[] for _ in range(room_count)]
        self.edges: List[GraphEdge] = []

    def add_edge(self, a: int, b: int, weight: float, kind: str) -> None:
        a, b = min(a, b), max(a, b)
        self.edges.append(GraphEdge(a, b, weight, kind))
        self.adjacency[a].append(b)
        self.adjacency[b].append(a)

    def has_edge(self, a: int, b: int) -> bool:
        return b in self.adjacency[a]

    def is_connected(self) -> bool:
        if self.room_count == 0:
            return True
        seen: Set[int] = {0}
        stack = [0]
        while stack:
            cur = stack.pop()
            for nxt in self.adjacency[cur]:
                if nxt not in seen:
                    seen.add(nxt)
                    stack.append(nxt)
        return len(seen) == self.room_count


def _all_pairs(rooms: Sequence[Rect]) -> List[Tuple[float, int, int]]:
    centroids = [r.centroid for r in rooms]
    pairs = []
    for i in range(len(rooms)):
        for j in range(i + 1, len(rooms)):
            pairs.append((distance(centroids[i], centroids[j]), i, j))
    return pairs


def minimum_spanning_tree(rooms: Sequence[Rect]) -> List[Tuple[float, int, int]]:
    """Kruskal over centroid distances; ties resolve by (i, j)."""
    pairs = sorted(_all_pairs(rooms))
    parent = list(range(len(rooms)))

    def find(a: int) -> int:
        while parent[a] != a:
            parent[a] = parent[parent[a]]
            a = parent[a]
        return a

    mst = []
    for d, i, j in pairs:
        ri, rj = find(i), find(j)
        if ri != rj:
            parent[rj] = ri
            mst.append((d, i, j))
            if len(mst) == len(rooms) - 1:
                break
    return mst


def extra_edge_count(room_count: int, ratio: float, rng: random.Random) -> int:
    """Integer part of ratio * rooms plus one more with the fractional probability."""
    raw = ratio * room_count
    count = int(raw)
    if rng.random() < raw - count:
        count += 1
    return count


def build_room_graph(rooms: Sequence[Rect], extra_connections_ratio: float, rng: random.Random) -> RoomGraph:
    """MST over room centroids, then the shortest non-adjacent pairs as loops.

    Loop candidates are ordered by (distance, i + j, i, j): equally long
    candidates go to the pair with the lowest combined room index.
    """
    graph = RoomGraph(len(rooms))
    if len(rooms) < 2:
        return graph
    for d, i, j in minimum_spanning_tree(rooms):
        graph.add_edge(i, j, d, TREE)
    wanted = extra_edge_count(len(rooms), extra_connections_ratio, rng)
    if wanted:
        candidates = sorted(_all_pairs(rooms), key=lambda p: (p[0], p[1] + p[2], p[1], p[2]))
        for d, i, j in candidates:
            if wanted <= 0:
                break
            if graph.has_edge(i, j):
                continue
            graph.add_edge(i, j, d, LOOP)
            wanted -= 1
    return graph


__all__ = ["GraphEdge", "RoomGraph", "build_room_graph", "minimum_spanning_tree", "extra_edge_count", "TREE", "LOOP"]
