"""Luminance, etendue and flux bookkeeping for a ray set in phase space."""

from __future__ import annotations

import enum
import logging
import math
import struct
from dataclasses import dataclass, field
from os import PathLike
from typing import Iterable, Sequence

from .kdtree import KDTree
from .neighbors import nearest_neighbors_of_point

logger = logging.getLogger(__name__)


def _ratio(num: float, den: float) -> float:
    """num / den with IEEE semantics for a zero denominator."""
    if den == 0:
        if num == 0 or math.isnan(num):
            return math.nan
        return math.copysign(math.inf, num)
    return num / den


def _descending(values: Sequence[float]) -> list[int]:
    """Indices that sort values in descending order, ties kept in original order."""
    return sorted(range(len(values)), key=values.__getitem__, reverse=True)


class BinType(enum.Enum):
    """Which quantity the skewness bins share equally."""

    SAME_SKEWNESS = "sameSkewness"
    SAME_ETENDUE = "sameEtendue"
    SAME_FLUX = "sameFlux"


def bin_type_from_string(text: str) -> BinType:
    """The bin type named by text, e.g. ``"sameFlux"``."""
    try:
        return BinType(text)
    except ValueError:
        raise ValueError(f"bin_type_from_string: unknown bin type: {text}") from None


def bin_indices(values: Sequence[float], n_bins: int) -> list[int]:
    """Indices into ascending values splitting them into bins of about equal width.

    Returns n_bins + 1 strictly ascending indices starting with 0 and ending
    with len(values) - 1. With d = (values[-1] - values[0]) / n_bins, entry i
    is the first position whose value reaches i * d, unless the remaining
    values run short, in which case they follow one by one. For a single bin
    the result is [0, len(values)].
    """
    if n_bins == 0:
        raise ValueError("bin_indices: n_bins == 0")
    nv = len(values)
    if nv < n_bins + 1:
        raise ValueError("bin_indices: too many bins / too few values")
    if n_bins == 1:
        return [0, nv]
    result = [0]
    d = (values[-1] - values[0]) / n_bins
    vpos = 0
    for i in range(1, n_bins):
        next_boundary = i * d
        vpos += 1
        while values[vpos] < next_boundary:
            if nv - vpos <= n_bins + 1 - i:
                break
            vpos += 1
        result.append(vpos)
    result.append(nv - 1)
    return result


@dataclass
class CharacteristicCurve:
    """Cell etendues and luminances, ordered by descending luminance."""

    etendue: list[float] = field(default_factory=list)
    luminance: list[float] = field(default_factory=list)


@dataclass
class SkewnessDistribution:
    """Etendue and flux density over skewness with respect to an axis.

    ``skewness`` holds the n_bins + 1 bin limits, ``du_ds`` and ``dphi_ds``
    one value per bin.
    """

    axis_point: tuple[float, float, float] = (0.0, 0.0, 0.0)
    axis_direction: tuple[float, float, float] = (0.0, 0.0, 1.0)
    skewness: list[float] = field(default_factory=list)
    du_ds: list[float] = field(default_factory=list)
    dphi_ds: list[float] = field(default_factory=list)


class RaySetData:
    """A k-d tree over phase-space points with per-cell luminance estimates.

    Each ray owns one leaf cell of the tree. Its luminance is the flux of
    its n_neighbors nearest rays divided by the volume of their cells.
    """

    def __init__(
        self,
        points: Iterable[Sequence[float]],
        fluxes: Iterable[float],
        n_neighbors: int = 10,
        n_clip: int = 0,
    ) -> None:
        points = [tuple(float(c) for c in p) for p in points]
        self.ray_fluxes: list[float] = [float(f) for f in fluxes]
        if len(points) != len(self.ray_fluxes):
            raise ValueError("RaySetData: points and fluxes differ in length")

        self.tree = KDTree(points)
        self.tree.create_tree()
        self.tree.shrink_edge_nodes()
        self.tree.check_consistency()

        logger.info("averaging luminance over %d nearest neighbors", n_neighbors)
        self.luminances: list[float] = []
        self.volumes: list[float] = []
        self.cell_fluxes: list[float] = []
        nodes = self.tree.nodes
        for i in range(len(points)):
            nn = nearest_neighbors_of_point(self.tree, i, n_neighbors)
            vol = self.tree.total_volume(nn.nodes)
            flux = sum(self.ray_fluxes[p] for p in nn.points)
            luminance = _ratio(flux, vol)
            cell_volume = nodes[self.tree.node_index[i]].volume()
            self.luminances.append(luminance)
            self.volumes.append(cell_volume)
            self.cell_fluxes.append(cell_volume * luminance)

        self.idx: list[int] = []
        self.idx_max = 0
        self.etendue_threshold = 0.0
        self.total_volume = 0.0
        self.total_flux = 0.0
        self.avg_luminance = math.nan

        if n_clip > 0:
            logger.info("clipping luminance of %d brightest cells", n_clip)
            self._clip(n_clip)

        self._update_totals()
        self.idx = _descending(self.luminances)

    def _update_totals(self) -> None:
        self.total_volume = math.fsum(self.volumes)
        self.total_flux = math.fsum(self.ray_fluxes)
        self.avg_luminance = _ratio(self.total_flux, self.total_volume)

    def _clip(self, n_clip: int) -> None:
        if n_clip >= len(self.luminances):
            raise ValueError("RaySetData: n_clip >= number of rays")
        order = _descending(self.luminances)
        threshold = self.luminances[order[n_clip]]
        for i in order[:n_clip]:
            self.luminances[i] = threshold
            self.ray_fluxes[i] = threshold * self.volumes[i]
        self._update_totals()

    def set_total_flux(self, new_total_flux: float) -> None:
        """Scale ray fluxes, luminances and cell fluxes to a new total flux."""
        fac = new_total_flux / self.total_flux
        self.ray_fluxes = [f * fac for f in self.ray_fluxes]
        self.luminances = [lum * fac for lum in self.luminances]
        self.cell_fluxes = [c * fac for c in self.cell_fluxes]
        self.total_flux = float(new_total_flux)

    def restrict_to_etendue_threshold(self, etendue_threshold: float) -> None:
        """Mark the brightest cells whose accumulated etendue stays below the threshold.

        Afterwards ``idx[:idx_max]`` are the cells kept.
        """
        accum = 0.0
        for i, j in enumerate(self.idx):
            accum += self.volumes[j]
            if accum >= etendue_threshold:
                break
        else:
            i = len(self.idx)
        if accum <= etendue_threshold:
            logger.info(
                "ray set etendue %s is smaller than etendue limit %s --nothing to restrict",
                accum,
                etendue_threshold,
            )
        self.etendue_threshold = float(etendue_threshold)
        self.idx_max = i

    def characteristic_curve(self) -> CharacteristicCurve:
        """Cell etendues and luminances sorted by descending luminance."""
        return CharacteristicCurve(
            etendue=[self.volumes[i] for i in self.idx],
            luminance=[self.luminances[i] for i in self.idx],
        )

    def write_characteristic_curve(
        self, path: str | PathLike, curve: CharacteristicCurve
    ) -> None:
        """Write the curve: uint64 cell count, then etendues, then luminances as float32."""
        n = len(curve.etendue)
        with open(path, "wb") as f:
            f.write(struct.pack("<Q", n))
            f.write(struct.pack(f"<{n}f", *curve.etendue))
            f.write(struct.pack(f"<{len(curve.luminance)}f", *curve.luminance))

    def skewness_distribution_z_axis(
        self,
        n_bins: int,
        bin_type: BinType,
        locations: Sequence[Sequence[float]],
        directions: Sequence[Sequence[float]],
    ) -> SkewnessDistribution:
        """Distribution of etendue and flux over skewness about the z axis.

        locations and directions are the 3D ray data in the order of the
        points this object was built from.
        """
        if len(locations) != len(directions):
            raise ValueError("skewness_distribution_z_axis: ray data differ in length")
        raw = [r[0] * u[1] - r[1] * u[0] for r, u in zip(locations, directions)]
        order = sorted(range(len(raw)), key=raw.__getitem__)
        sorted_skewness = [raw[i] for i in order]
        acc_etendue: list[float] = []
        acc_flux: list[float] = []
        etendue = 0.0
        flux = 0.0
        for i in order:
            etendue += self.volumes[i]
            flux += self.ray_fluxes[i]
            acc_etendue.append(etendue)
            acc_flux.append(flux)

        source = {
            BinType.SAME_SKEWNESS: sorted_skewness,
            BinType.SAME_ETENDUE: acc_etendue,
            BinType.SAME_FLUX: acc_flux,
        }.get(bin_type)
        if source is None:
            raise ValueError("skewness_distribution_z_axis: unknown bin type")
        last = len(sorted_skewness) - 1
        limits = [min(b, last) for b in bin_indices(source, n_bins)]

        result = SkewnessDistribution(
            skewness=[sorted_skewness[b] for b in limits],
        )
        for a, b in zip(limits, limits[1:]):
            ds = sorted_skewness[b] - sorted_skewness[a]
            result.du_ds.append(_ratio(acc_etendue[b] - acc_etendue[a], ds))
            result.dphi_ds.append(_ratio(acc_flux[b] - acc_flux[a], ds))
        return result

    def write_skewness_distribution(
        self, path: str | PathLike, distribution: SkewnessDistribution
    ) -> None:
        """Write the distribution as float32 values with a uint32 bin count.

        Layout: axis point (3), axis direction (3), n_bins, n_bins + 1
        skewness limits, n_bins values of dU/ds, n_bins values of dPhi/ds.
        """
        d = distribution
        n_bins = len(d.skewness) - 1
        with open(path, "wb") as f:
            f.write(struct.pack("<3f", *d.axis_point))
            f.write(struct.pack("<3f", *d.axis_direction))
            f.write(struct.pack("<I", n_bins))
            f.write(struct.pack(f"<{len(d.skewness)}f", *d.skewness))
            f.write(struct.pack(f"<{len(d.du_ds)}f", *d.du_ds))
            f.write(struct.pack(f"<{len(d.dphi_ds)}f", *d.dphi_ds))