"""Binary space partitioning over an array-backed node arena.

Nodes reference each other by index (parent/left/right) rather than by object,
so traversal order is fixed by the arena and the tree serializes trivially.
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import List, Optional

from delve.logging_utils import get_logger

from .cells import Rect
from .errors import PartitionFailure

log = get_logger("delve.dungeon.bsp")

# Cells reserved around a room (one per side) for corridors.
LEAF_MARGIN = 2
SPLIT_THRESHOLD_FACTOR = 1.5
DEFAULT_MAX_DEPTH = 12


@dataclass
class PartitionNode:
    x: int
    y: int
    w: int
    h: int
    depth: int = 0
    parent: int = -1
    left: int = -1
    right: int = -1

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, self.w, self.h)

    @property
    def is_leaf(self) -> bool:
        return self.left < 0 and self.right < 0


class PartitionTree:
    """Arena of partition nodes; index 0 is the root."""

    def __init__(self, bounds: Rect):
        self.nodes: List[PartitionNode] = [PartitionNode(bounds.x, bounds.y, bounds.w, bounds.h)]
        self.failures: List[PartitionFailure] = []

    def add_children(self, idx: int, a: Rect, b: Rect) -> None:
        node = self.nodes[idx]
        node.left = len(self.nodes)
        self.nodes.append(PartitionNode(a.x, a.y, a.w, a.h, node.depth + 1, idx))
        node.right = len(self.nodes)
        self.nodes.append(PartitionNode(b.x, b.y, b.w, b.h, node.depth + 1, idx))

    def leaf_indices(self) -> List[int]:
        """Leaves in depth-first, left-to-right order."""
        out: List[int] = []
        stack = [0]
        while stack:
            idx = stack.pop()
            node = self.nodes[idx]
            if node.is_leaf:
                out.append(idx)
                continue
            stack.append(node.right)
            stack.append(node.left)
        return out

    def leaves(self) -> List[Rect]:
        return [self.nodes[i].rect for i in self.leaf_indices()]

    @property
    def depth(self) -> int:
        return max(n.depth for n in self.nodes)


def leaf_budget(width: int, height: int, min_room: int, max_room: int, density: float) -> int:
    """Number of leaves (hence rooms) the requested density asks for."""
    mean_side = (min_room + max_room) / 2.0
    return max(1, int(round(density * width * height / (mean_side * mean_side))))


def _split_axes(node: PartitionNode, min_leaf: int):
    can_w = node.w >= 2 * min_leaf
    can_h = node.h >= 2 * min_leaf
    return can_w, can_h


def partition(
    bounds: Rect,
    min_room_size: int,
    max_room_size: int,
    rng: random.Random,
    *,
    max_leaves: Optional[int] = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
    margin: int = LEAF_MARGIN,
) -> PartitionTree:
    """Recursively split ``bounds`` into leaf regions.

    A region is split while its larger side is at least
    ``max_room_size * 1.5``, its depth is below ``max_depth`` and the leaf
    budget (``max_leaves``) is not yet spent. The split axis is random: when
    both axes can host two minimum leaves, the width is divided with
    probability ``w / (w + h)`` so long regions are cut across. The offset
    keeps both children at least ``min_room_size + margin`` wide.

    Pending regions are processed largest-area first (ties by arena index),
    which spreads a small leaf budget evenly over the grid.
    """
    tree = PartitionTree(bounds)
    min_leaf = min_room_size + margin
    threshold = max(min_leaf, int(max_room_size * SPLIT_THRESHOLD_FACTOR))
    budget = max_leaves if max_leaves is not None else len(tree.nodes) + bounds.w * bounds.h
    pending = [0]
    leaf_count = 1
    while pending and leaf_count < budget:
        pending.sort(key=lambda i: (-tree.nodes[i].rect.area, i))
        idx = pending.pop(0)
        node = tree.nodes[idx]
        if max(node.w, node.h) < threshold or node.depth >= max_depth:
            continue
        can_w, can_h = _split_axes(node, min_leaf)
        if not (can_w or can_h):
            failure = PartitionFailure(node.rect, f"both sides below {2 * min_leaf}")
            tree.failures.append(failure)
            log.debug(event="partition_failure", region=tuple(node.rect), reason=failure.reason)
            continue
        if can_w and can_h:
            divide_width = rng.random() < node.w / float(node.w + node.h)
        else:
            divide_width = can_w
        if divide_width:
            cut = rng.randint(min_leaf, node.w - min_leaf)
            a = Rect(node.x, node.y, cut, node.h)
            b = Rect(node.x + cut, node.y, node.w - cut, node.h)
        else:
            cut = rng.randint(min_leaf, node.h - min_leaf)
            a = Rect(node.x, node.y, node.w, cut)
            b = Rect(node.x, node.y + cut, node.w, node.h - cut)
        tree.add_children(idx, a, b)
        pending.extend([tree.nodes[idx].left, tree.nodes[idx].right])
        leaf_count += 1
    return tree


__all__ = ["PartitionNode", "PartitionTree", "partition", "leaf_budget", "LEAF_MARGIN"]
