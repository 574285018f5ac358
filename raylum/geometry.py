"""Points, boxes and k-d tree nodes in four-dimensional phase space."""

from __future__ import annotations

import itertools
import math
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

DIM = 4
"""Dimension of phase space: two location and two direction coordinates."""

EDGE_FLAGS = (0x0000, 0x0101, 0x0303, 0x0707, 0x0F0F, 0x1F1F, 0x3F3F, 0x7F7F, 0xFFFF)
"""Edge bit fields with every face marked as boundary, indexed by dimension."""

Point = tuple[float, ...]
Box = tuple[Point, Point]


def distance(p1: Sequence[float], p2: Sequence[float]) -> float:
    """Euclidean distance between two points."""
    return math.sqrt(sum((b - a) ** 2 for a, b in zip(p1, p2)))


def bounding_box(points: Iterable[Sequence[float]]) -> Box:
    """Smallest axis-aligned box containing all points.

    For no points the box is inverted: (+inf, ...) to (-inf, ...).
    """
    lo = [math.inf] * DIM
    hi = [-math.inf] * DIM
    for p in points:
        for d in range(DIM):
            lo[d] = min(lo[d], p[d])
            hi[d] = max(hi[d], p[d])
    return tuple(lo), tuple(hi)


def is_in_box(box: Box, pt: Sequence[float]) -> bool:
    """True if pt lies in the closed box."""
    lo, hi = box
    return all(lo[i] <= c <= hi[i] for i, c in enumerate(pt))


def are_in_box(box: Box, points: Iterable[Sequence[float]]) -> bool:
    """True if every point lies in the closed box."""
    return all(is_in_box(box, p) for p in points)


def box_corners(box: Box) -> list[Point]:
    """The 16 corners of a 4D box; dimension 0 varies slowest."""
    lo, hi = box
    return [tuple(c) for c in itertools.product(*((lo[i], hi[i]) for i in range(DIM)))]


def boxes_overlap(lhs: Box, rhs: Box) -> bool:
    """True if the open interiors of the boxes intersect; merely touching boxes do not."""
    return not any(
        lhs[0][i] >= rhs[1][i] or lhs[1][i] <= rhs[0][i] for i in range(DIM)
    )


def lhs_box_is_within_rhs_box(lhs: Box, rhs: Box) -> bool:
    """True if lhs lies strictly inside rhs in every dimension."""
    return not any(
        lhs[0][i] <= rhs[0][i] or lhs[1][i] >= rhs[1][i] for i in range(DIM)
    )


def mid_point(p0: Sequence[float], p1: Sequence[float]) -> Point:
    """Component-wise midpoint of two points."""
    return tuple(0.5 * (a + b) for a, b in zip(p0, p1))


@dataclass
class Node:
    """A k-d tree node: a box holding the index range [begin, end) of points.

    Node links are indices into the tree's node list, None where absent.
    Bits 0..DIM-1 of edge_flags mark lower faces on the boundary,
    bits 8..DIM+7 mark upper faces.
    """

    begin: int
    end: int
    corner0: Point
    corner1: Point
    mother: int | None = None
    low_child: int | None = None
    hi_child: int | None = None
    split_dim: int = 0
    edge_flags: int = 0

    def is_leaf(self) -> bool:
        return self.end - self.begin == 1

    def n_points(self) -> int:
        return self.end - self.begin

    def distance(self, pt: Sequence[float]) -> float:
        """Distance from pt to the box, zero if pt is inside."""
        total = 0.0
        for i, c in enumerate(pt):
            if c < self.corner0[i]:
                total += (self.corner0[i] - c) ** 2
            if c > self.corner1[i]:
                total += (self.corner1[i] - c) ** 2
        return math.sqrt(total)

    def volume(self) -> float:
        return math.prod(self.corner1[i] - self.corner0[i] for i in range(DIM))

    def box(self) -> Box:
        return self.corner0, self.corner1

    def partition(self, n_points: int, pt: Sequence[float]) -> list[Point]:
        """Split the box into n_points sub-boxes of equal volume.

        Returns the centres of the sub-boxes, except that pt itself replaces
        the centre of the first sub-box that contains it.
        """
        if n_points == 0:
            return []
        pt = tuple(pt)
        if not is_in_box(self.box(), pt):
            raise ValueError("Node.partition: pt not in bounding box")
        if n_points == 1:
            return [pt]
        result: list[Point] = []
        work = [(n_points, 0, tuple(self.corner0), tuple(self.corner1))]
        pt_taken = False
        while work:
            count, dim, c0, c1 = work.pop()
            if count == 1:
                if not pt_taken and is_in_box((c0, c1), pt):
                    result.append(pt)
                    pt_taken = True
                else:
                    result.append(mid_point(c0, c1))
                continue
            n_lo = count // 2
            n_hi = count - n_lo
            fac = n_lo / count
            split = c0[dim] * (1 - fac) + c1[dim] * fac
            c1_lo = c1[:dim] + (split,) + c1[dim + 1:]
            c0_hi = c0[:dim] + (split,) + c0[dim + 1:]
            next_dim = (dim + 1) % DIM
            work.append((n_lo, next_dim, c0, c1_lo))
            work.append((n_hi, next_dim, c0_hi, c1))
        return result

    def random_partition(
        self, n_points: int, pt: Sequence[float], ran_gen: Callable[[], float]
    ) -> list[Point]:
        """Scatter n_points uniformly random points over the box.

        A single requested point is pt itself. ran_gen yields numbers in [0, 1].
        """
        if n_points == 0:
            return []
        pt = tuple(pt)
        if not is_in_box(self.box(), pt):
            raise ValueError("Node.partition: pt not in bounding box")
        if n_points == 1:
            return [pt]
        result: list[Point] = []
        for _ in range(n_points):
            coords = []
            for j in range(DIM):
                r = ran_gen()
                coords.append(self.corner0[j] * (1 - r) + self.corner1[j] * r)
            result.append(tuple(coords))
        return result