"""A k-d tree over points in four-dimensional phase space.

The tree keeps several bookkeeping arrays:

* ``points``: the points themselves, in their original order.
* ``index``: a permutation of point indices such that every node owns a
  contiguous range ``index[node.begin:node.end]``.
* ``reverse_index``: the inverse permutation; ``index[reverse_index[i]] == i``.
* ``nodes``: the node list, root first; a full tree holds ``2 * m - 1`` nodes.
* ``node_index``: for every point, the index of the leaf node holding it.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from .geometry import (
    DIM,
    EDGE_FLAGS,
    Box,
    Node,
    Point,
    bounding_box,
    boxes_overlap,
    is_in_box,
    lhs_box_is_within_rhs_box,
)

_MAX_INDEX = 2**32 - 1


class KDTreeError(RuntimeError):
    """Raised when a tree cannot be built or is found inconsistent."""


class KDTree:
    """A k-d tree whose leaves each hold exactly one point."""

    def __init__(self, points: Iterable[Sequence[float]]) -> None:
        self._points: list[Point] = [tuple(float(c) for c in p) for p in points]
        n = len(self._points)
        self._index: list[int] = list(range(n))
        self._reverse_index: list[int] = list(range(n))
        self._node_index: list[int | None] = [None] * n
        self._coords: list[list[float]] = [
            [p[d] for p in self._points] for d in range(DIM)
        ]
        self._bounding_box: Box = bounding_box(self._points)
        self._nodes: list[Node] = []
        self._work: list[int] = []

    # read access

    @property
    def points(self) -> list[Point]:
        return self._points

    @property
    def nodes(self) -> list[Node]:
        return self._nodes

    @property
    def index(self) -> list[int]:
        return self._index

    @property
    def reverse_index(self) -> list[int]:
        return self._reverse_index

    @property
    def node_index(self) -> list[int | None]:
        return self._node_index

    @property
    def bounding_box(self) -> Box:
        return self._bounding_box

    # construction

    def create_tree(self) -> None:
        """Split the root node recursively until every leaf holds one point."""
        if not self._points:
            raise KDTreeError("KDTree.create_tree: no points")
        self._nodes = []
        root = self._root_node()
        self._nodes.append(root)
        if root.is_leaf():
            self._node_index[self._index[root.begin]] = 0
        else:
            self._work.append(0)
        while self._work:
            self._split_next()
        for ii, pi in enumerate(self._index):
            self._reverse_index[pi] = ii

    def _root_node(self) -> Node:
        n = len(self._points)
        lo, hi = bounding_box(self._points)
        avg_pts_per_dim = n ** (1.0 / DIM)
        corner0 = []
        corner1 = []
        for i in range(DIM):
            d = (hi[i] - lo[i]) / avg_pts_per_dim * 0.1
            corner0.append(lo[i] - d)
            corner1.append(hi[i] + d)
        return Node(
            begin=0,
            end=n,
            corner0=tuple(corner0),
            corner1=tuple(corner1),
            split_dim=0,
            edge_flags=EDGE_FLAGS[DIM],
        )

    def _split_next(self) -> None:
        current = self._work.pop()
        node = self._nodes[current]
        sd = node.split_dim
        coords = self._coords[sd]
        n_pts = node.end - node.begin
        segment = sorted(self._index[node.begin:node.end], key=coords.__getitem__)
        self._index[node.begin:node.end] = segment
        mid = n_pts // 2
        split = (coords[segment[mid - 1]] + coords[segment[mid]]) / 2

        c1_lo = node.corner1[:sd] + (split,) + node.corner1[sd + 1:]
        c0_hi = node.corner0[:sd] + (split,) + node.corner0[sd + 1:]
        next_dim = (sd + 1) % DIM
        low = Node(
            begin=node.begin,
            end=node.begin + mid,
            corner0=node.corner0,
            corner1=c1_lo,
            mother=current,
            split_dim=next_dim,
            edge_flags=node.edge_flags & ~(1 << (8 + sd)) & 0xFFFF,
        )
        high = Node(
            begin=node.begin + mid,
            end=node.end,
            corner0=c0_hi,
            corner1=node.corner1,
            mother=current,
            split_dim=next_dim,
            edge_flags=node.edge_flags & ~(1 << sd) & 0xFFFF,
        )
        self._nodes.append(low)
        i_low = len(self._nodes) - 1
        self._nodes.append(high)
        i_high = len(self._nodes) - 1
        node.low_child = i_low
        node.hi_child = i_high
        for child, i_child in ((low, i_low), (high, i_high)):
            if child.is_leaf():
                self._node_index[self._index[child.begin]] = i_child
            else:
                self._work.append(i_child)

    # invariants

    def check_consistency(self) -> None:
        """Verify the internal invariants; raise KDTreeError on the first violation."""

        def check(test: bool, message: str) -> None:
            if not test:
                raise KDTreeError("KDTree.check_consistency: " + message)

        points = self._points
        npts = len(points)
        check(npts < _MAX_INDEX, "too many points")
        for d in range(DIM):
            check(len(self._coords[d]) == npts, "coordinate arrays have wrong dimension")
            check(
                all(c == p[d] for c, p in zip(self._coords[d], points)),
                "coordinate arrays are not the points transposed",
            )
        check(
            all(is_in_box(self._bounding_box, p) for p in points),
            "point outside bounding box",
        )
        check(len(self._index) == npts, "index has wrong size")
        check(all(0 <= i < npts for i in self._index), "index contains illegal value")
        check(
            sorted(self._index) == list(range(npts)),
            "index is not a complete permutation of 0..npts-1",
        )
        check(len(self._reverse_index) == npts, "reverse index has wrong size")
        for ri in self._reverse_index:
            check(0 <= ri < npts, "reverse index contains illegal value")
            check(
                self._reverse_index[self._index[ri]] == ri,
                "reverse index is not inverse permutation of index",
            )

        nodes = self._nodes
        check(bool(nodes), "tree has not been created")
        check(len(nodes) < _MAX_INDEX, "too many nodes")
        node_visits = [0] * len(nodes)
        leaf_hits = [0] * npts
        work = [0]
        while work:
            i = work.pop()
            node_visits[i] += 1
            node = nodes[i]
            for child in (node.low_child, node.hi_child):
                if child is not None:
                    work.append(child)
                    check(nodes[child].mother == i, "child node has wrong mother")
            check(node.end > node.begin, "node: end must be > begin")
            check(node.end <= npts, "node: end > npts")
            if node.is_leaf():
                leaf_hits[node.begin] += 1
                check(
                    node.low_child is None and node.hi_child is None,
                    "node: leaf nodes must not have child nodes",
                )
            else:
                check(
                    node.low_child is not None and node.hi_child is not None,
                    "node: non-leaf nodes must have child nodes",
                )
            for ii in range(node.begin, node.end):
                check(
                    is_in_box(node.box(), points[self._index[ii]]),
                    "node: points must be in corner0, corner1 box",
                )
            check(0 <= node.split_dim < DIM, "node: split_dim too large")
        check(all(v == 1 for v in node_visits), "nodes must appear exactly once in tree")
        check(
            all(v == 1 for v in leaf_hits),
            "each point must appear exactly once in a leaf node",
        )

        check(len(self._node_index) == npts, "node index must have npts entries")
        for pi, ni in enumerate(self._node_index):
            check(ni is not None and 0 <= ni < len(nodes), "node index entry is invalid")
            node = nodes[ni]
            check(node.is_leaf(), "nodes in node index must be leaf nodes")
            check(
                self._index[node.begin] == pi,
                "node in node index does not point to correct point",
            )
        check(not self._work, "work list is not empty")

    # edge treatment

    def shrink_edge_nodes(self, fac: float = 0.5) -> None:
        """Pull boundary faces of edge leaves to fac times the mean cell size from their point."""
        avg_pts_per_dim = len(self._points) ** (1.0 / DIM)
        lo, hi = self._bounding_box
        d = [fac * (hi[i] - lo[i]) / avg_pts_per_dim for i in range(DIM)]
        for node in self._nodes:
            if not node.is_leaf() or node.edge_flags == 0:
                continue
            pt = self._points[self._index[node.begin]]
            corner0 = list(node.corner0)
            corner1 = list(node.corner1)
            for i in range(DIM):
                if node.edge_flags & (1 << i):
                    corner0[i] = pt[i] - d[i]
                if node.edge_flags & (1 << (8 + i)):
                    corner1[i] = pt[i] + d[i]
            node.corner0 = tuple(corner0)
            node.corner1 = tuple(corner1)

    # queries

    def locate(self, pt: Sequence[float]) -> int | None:
        """Index of the leaf containing pt, None if pt lies outside the root box.

        A point exactly on a split face goes to the upper child.
        """
        nodes = self._nodes
        if not is_in_box(nodes[0].box(), pt):
            return None
        idx = 0
        node = nodes[0]
        while not node.is_leaf():
            sd = node.split_dim
            if pt[sd] < nodes[node.low_child].corner1[sd]:
                idx = node.low_child
            else:
                idx = node.hi_child
            node = nodes[idx]
        return idx

    def locate_point(self, pi: int) -> int | None:
        """Index of the leaf holding point pi, None if pi is out of range."""
        if not 0 <= pi < len(self._points):
            return None
        ri = self._reverse_index[pi]
        nodes = self._nodes
        nb = 0
        while not nodes[nb].is_leaf():
            low = nodes[nb].low_child
            nb = low if ri < nodes[low].end else nodes[nb].hi_child
        return nb

    def locate_points_within_box(self, box: Box) -> list[int]:
        """Point indices of all leaves whose boxes overlap box.

        Points of leaves that only partly overlap are included unchecked.
        """
        result: list[int] = []
        self._locate_points(0, box, result)
        return result

    def _locate_points(self, ni: int, box: Box, out: list[int]) -> None:
        node = self._nodes[ni]
        node_box = node.box()
        if not boxes_overlap(box, node_box):
            return
        if lhs_box_is_within_rhs_box(node_box, box):
            out.extend(self._index[node.begin:node.end])
        elif node.is_leaf():
            out.append(self._index[node.begin])
        else:
            self._locate_points(node.low_child, box, out)
            self._locate_points(node.hi_child, box, out)

    def locate_overlapping_leaf_nodes(self, box: Box) -> list[int]:
        """Indices of all leaf nodes whose boxes overlap box."""
        result: list[int] = []
        self._locate_overlapping(0, box, result)
        return result

    def _locate_overlapping(self, ni: int, box: Box, out: list[int]) -> None:
        node = self._nodes[ni]
        node_box = node.box()
        if not boxes_overlap(box, node_box):
            return
        if node.is_leaf():
            out.append(ni)
        elif lhs_box_is_within_rhs_box(node_box, box):
            self._add_leaf_nodes(ni, out)
        else:
            self._locate_overlapping(node.low_child, box, out)
            self._locate_overlapping(node.hi_child, box, out)

    def _add_leaf_nodes(self, ni: int, out: list[int]) -> None:
        node = self._nodes[ni]
        if node.is_leaf():
            out.append(ni)
        else:
            self._add_leaf_nodes(node.low_child, out)
            self._add_leaf_nodes(node.hi_child, out)

    def total_volume(self, inodes: Iterable[int]) -> float:
        """Sum of the volumes of the given nodes."""
        return sum(self._nodes[i].volume() for i in inodes)