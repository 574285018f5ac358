"""Generation of additional rays in phase space, in proportion to cell flux."""

from __future__ import annotations

import math
import random
from typing import Callable, Sequence

from .geometry import Point
from .raysetdata import RaySetData

KZ_MIN_SQUARED = 0.005
"""Rays with 1 - k0**2 - k1**2 below this are grazing and are dropped."""


def _round_half_away(x: float) -> int:
    return math.floor(x + 0.5) if x >= 0 else math.ceil(x - 0.5)


def rays_per_cell(data: RaySetData, n_total_rays: int) -> list[int]:
    """Number of rays for each cell, proportional to its share of the total flux.

    With n_total_rays == 0 every cell gets one ray.
    """
    if n_total_rays == 0:
        return [1] * len(data.cell_fluxes)
    return [
        _round_half_away(c / data.total_flux * n_total_rays) for c in data.cell_fluxes
    ]


def rays_per_cell_etendue_restricted(data: RaySetData, n_total_rays: int) -> list[int]:
    """Like rays_per_cell, but only for the cells kept by the etendue threshold.

    The flux share is taken relative to the kept cells; all other cells get
    zero rays.
    """
    n_cells = len(data.cell_fluxes)
    if n_total_rays == 0:
        counts = [1] * n_cells
    else:
        accum_phi = sum(data.cell_fluxes[j] for j in data.idx[: data.idx_max])
        counts = [
            _round_half_away(c / accum_phi * n_total_rays) for c in data.cell_fluxes
        ]
    for j in data.idx[data.idx_max:]:
        counts[j] = 0
    return counts


def interpolate_phase_space(
    data: RaySetData,
    counts: Sequence[int],
    ran_gen: Callable[[], float] | None = None,
) -> tuple[list[Point], list[float]]:
    """Scatter counts[i] random points over the cell of ray i.

    Each new point carries the cell flux divided by counts[i]. A cell with a
    single ray keeps the original point. Grazing points, where
    1 - k0**2 - k1**2 < KZ_MIN_SQUARED, are dropped. ran_gen yields numbers
    in [0, 1]; by default a generator with a fixed seed.
    """
    if len(counts) != len(data.cell_fluxes):
        raise ValueError("interpolate_phase_space: one count per cell required")
    if ran_gen is None:
        ran_gen = random.Random(0).random
    tree = data.tree
    points: list[Point] = []
    fluxes: list[float] = []
    for i, count in enumerate(counts):
        if count == 0:
            continue
        node = tree.nodes[tree.node_index[i]]
        flux = data.cell_fluxes[i] / count
        for p in node.random_partition(count, tree.points[i], ran_gen):
            if 1 - p[2] ** 2 - p[3] ** 2 < KZ_MIN_SQUARED:
                continue
            points.append(p)
            fluxes.append(flux)
    return points, fluxes