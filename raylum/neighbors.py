"""Nearest-neighbour queries on a built k-d tree."""

from __future__ import annotations

import heapq
import itertools
import math
from dataclasses import dataclass, field
from typing import Sequence

from .geometry import DIM, Node, distance
from .kdtree import KDTree, KDTreeError


@dataclass
class NearestNeighbors:
    """The n nearest points to a query point, sorted by ascending distance.

    ``points`` holds point indices, ``nodes`` the indices of the leaf nodes
    holding those points, ``distances`` the corresponding distances.
    """

    points: list[int] = field(default_factory=list)
    nodes: list[int] = field(default_factory=list)
    distances: list[float] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.points)


def closest_node_index(nodes: Sequence[Node], pt: Sequence[float], n: int) -> int:
    """Index of a node near pt that holds at least n points.

    Descends from the root towards the child closer to pt for as long as
    that child still holds at least n points. Meant for points outside the
    root box.
    """
    inode = 0
    while True:
        this = nodes[inode]
        if this.is_leaf():
            break
        lo = nodes[this.low_child]
        hi = nodes[this.hi_child]
        if lo.n_points() < n and hi.n_points() < n:
            break
        if lo.distance(pt) < hi.distance(pt):
            if lo.n_points() < n:
                break
            inode = this.low_child
            if lo.n_points() == n:
                break
        else:
            if hi.n_points() < n:
                break
            inode = this.hi_child
            if hi.n_points() == n:
                break
    return inode


def nearest_neighbors(tree: KDTree, pt: Sequence[float], n: int) -> NearestNeighbors:
    """The n nearest points to pt, which may lie anywhere, also outside the tree."""
    if n >= len(tree.points):
        raise KDTreeError("nearest_neighbors: too many points requested")
    inode = tree.locate(pt)
    if inode is None:
        inode = closest_node_index(tree.nodes, pt, n)
    return nearest_neighbors_of_node_at(tree, inode, pt, n)


def nearest_neighbors_of_point(tree: KDTree, ipoint: int, n: int) -> NearestNeighbors:
    """The n nearest points to point ipoint of the tree, the point itself included."""
    if not 0 <= ipoint < len(tree.points):
        raise KDTreeError("nearest_neighbors_of_point: ipoint > npoints")
    inode = tree.node_index[ipoint]
    return nearest_neighbors_of_node_at(tree, inode, tree.points[ipoint], n)


def nearest_neighbors_of_node(tree: KDTree, inode: int, n: int) -> NearestNeighbors:
    """The n nearest points to the centre of node inode."""
    if inode is None or not 0 <= inode < len(tree.nodes):
        raise KDTreeError("nearest_neighbors_of_node: inode out of range")
    node = tree.nodes[inode]
    centre = tuple(0.5 * (node.corner0[i] + node.corner1[i]) for i in range(DIM))
    return nearest_neighbors_of_node_at(tree, inode, centre, n)


def nearest_neighbors_of_node_at(
    tree: KDTree, inode: int | None, pt: Sequence[float], n: int
) -> NearestNeighbors:
    """The n nearest points to pt, starting the search at node inode.

    If the whole tree holds fewer than n points, all of them are returned.
    """
    if inode is None:
        raise KDTreeError("nearest_neighbors_of_node_at: invalid node index")
    nodes = tree.nodes
    if not 0 <= inode < len(nodes):
        raise KDTreeError("nearest_neighbors_of_node_at: inode out of range")

    while nodes[inode].n_points() < n:
        if inode != 0:
            inode = nodes[inode].mother
        else:
            n = nodes[inode].n_points()
            break
    if n <= 0:
        return NearestNeighbors()

    points = tree.points
    index = tree.index
    node_index = tree.node_index
    counter = itertools.count()
    # Max-heap on distance via negated keys, pre-filled with infinite sentinels.
    heap: list[tuple[float, int, int | None, int | None]] = [
        (-math.inf, next(counter), None, None) for _ in range(n)
    ]

    def offer(d: float, pi: int, ni: int) -> None:
        if d < -heap[0][0]:
            heapq.heapreplace(heap, (-d, next(counter), pi, ni))

    start = nodes[inode]
    for pi in index[start.begin:start.end]:
        offer(distance(points[pi], pt), pi, node_index[pi])

    tasks = [0]
    while tasks:
        itodo = tasks.pop()
        if itodo == inode:
            continue
        todo = nodes[itodo]
        if todo.distance(pt) < -heap[0][0]:
            if todo.is_leaf():
                pi = index[todo.begin]
                offer(distance(points[pi], pt), pi, itodo)
            else:
                tasks.append(todo.low_child)
                tasks.append(todo.hi_child)

    ordered = sorted(heap, key=lambda item: -item[0])
    return NearestNeighbors(
        points=[item[2] for item in ordered],
        nodes=[item[3] for item in ordered],
        distances=[-item[0] for item in ordered],
    )