import math
import random
import struct

import pytest

from raylum.raysetdata import (
    BinType,
    CharacteristicCurve,
    RaySetData,
    bin_indices,
    bin_type_from_string,
)

N = 60


def _points(seed=1, n=N):
    rng = random.Random(seed)
    return [tuple(rng.uniform(-1.0, 1.0) for _ in range(4)) for _ in range(n)]


def _fluxes(seed=2, n=N):
    rng = random.Random(seed)
    return [rng.uniform(0.5, 1.5) for _ in range(n)]


@pytest.fixture
def data():
    return RaySetData(_points(), _fluxes(), 5, 0)


# bin_indices


def test_bin_indices_rejects_zero_bins():
    with pytest.raises(ValueError):
        bin_indices([0.0, 1.0, 2.0], 0)


def test_bin_indices_rejects_too_few_values():
    with pytest.raises(ValueError):
        bin_indices([0.0, 1.0, 2.0], 3)


def test_bin_indices_single_bin():
    assert bin_indices([0.0, 1.0, 2.0, 3.0], 1) == [0, 4]


def test_bin_indices_equally_spaced():
    values = [float(i) for i in range(11)]
    assert bin_indices(values, 5) == [0, 2, 4, 6, 8, 10]


@pytest.mark.parametrize("n_bins", [2, 3, 7, 19])
def test_bin_indices_invariants(n_bins):
    rng = random.Random(n_bins)
    values = sorted(rng.expovariate(1.0) for _ in range(20))
    idx = bin_indices(values, n_bins)
    assert len(idx) == n_bins + 1
    assert idx[0] == 0
    assert idx[-1] == len(values) - 1
    assert all(a < b for a, b in zip(idx, idx[1:]))


# bin types


@pytest.mark.parametrize("bin_type", list(BinType))
def test_bin_type_round_trip(bin_type):
    assert bin_type_from_string(bin_type.value) is bin_type


def test_bin_type_unknown():
    with pytest.raises(ValueError, match="unknown bin type"):
        bin_type_from_string("sameColour")


# RaySetData


def test_mismatched_lengths():
    with pytest.raises(ValueError):
        RaySetData(_points(), _fluxes(n=N - 1), 5, 0)


def test_arrays_and_totals(data):
    assert len(data.luminances) == N
    assert len(data.volumes) == N
    assert len(data.cell_fluxes) == N
    assert data.total_flux == pytest.approx(sum(_fluxes()))
    assert data.total_volume == pytest.approx(sum(data.volumes))
    assert data.avg_luminance == pytest.approx(data.total_flux / data.total_volume)
    for v, lum, c in zip(data.volumes, data.luminances, data.cell_fluxes):
        assert v > 0
        assert c == pytest.approx(v * lum)


def test_idx_sorts_descending(data):
    assert sorted(data.idx) == list(range(N))
    lums = [data.luminances[i] for i in data.idx]
    assert all(a >= b for a, b in zip(lums, lums[1:]))


def test_characteristic_curve(data):
    curve = data.characteristic_curve()
    assert len(curve.etendue) == N
    assert sum(curve.etendue) == pytest.approx(data.total_volume)
    assert all(a >= b for a, b in zip(curve.luminance, curve.luminance[1:]))


def test_set_total_flux(data):
    old_lum = list(data.luminances)
    old_cells = list(data.cell_fluxes)
    data.set_total_flux(10.0)
    assert data.total_flux == 10.0
    assert sum(data.ray_fluxes) == pytest.approx(10.0)
    fac = 10.0 / sum(_fluxes())
    for a, b in zip(old_lum, data.luminances):
        assert b == pytest.approx(a * fac)
    for a, b in zip(old_cells, data.cell_fluxes):
        assert b == pytest.approx(a * fac)


def test_restrict_to_etendue_threshold(data):
    threshold = data.total_volume / 3
    data.restrict_to_etendue_threshold(threshold)
    assert data.etendue_threshold == threshold
    kept = sum(data.volumes[i] for i in data.idx[: data.idx_max])
    assert kept < threshold
    with_next = kept + data.volumes[data.idx[data.idx_max]]
    assert with_next >= threshold


def test_restrict_to_large_threshold_keeps_all(data):
    data.restrict_to_etendue_threshold(data.total_volume * 10)
    assert data.idx_max == N


def test_clip_too_many():
    with pytest.raises(ValueError):
        RaySetData(_points(n=10), _fluxes(n=10), 3, 10)


def test_clip_brightest_cells():
    plain = RaySetData(_points(), _fluxes(), 5, 0)
    clipped = RaySetData(_points(), _fluxes(), 5, 3)
    threshold = plain.luminances[plain.idx[3]]
    for i in plain.idx[:3]:
        assert clipped.luminances[i] == threshold
        assert clipped.ray_fluxes[i] == pytest.approx(threshold * clipped.volumes[i])
    assert max(clipped.luminances) == threshold
    assert clipped.total_flux == pytest.approx(sum(clipped.ray_fluxes))


def test_write_characteristic_curve(tmp_path, data):
    curve = data.characteristic_curve()
    path = tmp_path / "cc.bin"
    data.write_characteristic_curve(path, curve)
    raw = path.read_bytes()
    (n,) = struct.unpack_from("<Q", raw, 0)
    assert n == N
    assert len(raw) == 8 + 8 * N
    etendue = struct.unpack_from(f"<{N}f", raw, 8)
    luminance = struct.unpack_from(f"<{N}f", raw, 8 + 4 * N)
    assert list(etendue) == pytest.approx(curve.etendue, rel=1e-6)
    assert list(luminance) == pytest.approx(curve.luminance, rel=1e-6)


def test_write_characteristic_curve_empty(tmp_path, data):
    path = tmp_path / "empty.bin"
    data.write_characteristic_curve(path, CharacteristicCurve())
    assert path.read_bytes() == bytes(8)


def _rays(seed=3):
    rng = random.Random(seed)
    locations = [(rng.uniform(-1, 1), rng.uniform(-1, 1), 0.0) for _ in range(N)]
    directions = []
    for _ in range(N):
        kx, ky = rng.uniform(-0.5, 0.5), rng.uniform(-0.5, 0.5)
        directions.append((kx, ky, math.sqrt(1 - kx * kx - ky * ky)))
    return locations, directions


@pytest.mark.parametrize("bin_type", list(BinType))
def test_skewness_distribution(data, bin_type):
    locations, directions = _rays()
    dist = data.skewness_distribution_z_axis(5, bin_type, locations, directions)
    raw = [r[0] * u[1] - r[1] * u[0] for r, u in zip(locations, directions)]
    assert len(dist.skewness) == 6
    assert len(dist.du_ds) == 5
    assert len(dist.dphi_ds) == 5
    assert dist.skewness[0] == min(raw)
    assert dist.skewness[-1] == max(raw)
    assert all(a < b for a, b in zip(dist.skewness, dist.skewness[1:]))
    ds = [b - a for a, b in zip(dist.skewness, dist.skewness[1:])]
    first = raw.index(min(raw))
    etendue = sum(u * d for u, d in zip(dist.du_ds, ds))
    flux = sum(p * d for p, d in zip(dist.dphi_ds, ds))
    assert etendue == pytest.approx(data.total_volume - data.volumes[first], rel=1e-9)
    assert flux == pytest.approx(data.total_flux - data.ray_fluxes[first], rel=1e-9)
    assert dist.axis_direction == (0.0, 0.0, 1.0)


def test_skewness_distribution_length_mismatch(data):
    locations, directions = _rays()
    with pytest.raises(ValueError):
        data.skewness_distribution_z_axis(
            5, BinType.SAME_FLUX, locations, directions[:-1]
        )


def test_write_skewness_distribution(tmp_path, data):
    locations, directions = _rays()
    dist = data.skewness_distribution_z_axis(
        4, BinType.SAME_ETENDUE, locations, directions
    )
    path = tmp_path / "skew.bin"
    data.write_skewness_distribution(path, dist)
    raw = path.read_bytes()
    assert len(raw) == 24 + 4 + 4 * (5 + 4 + 4)
    assert struct.unpack_from("<6f", raw, 0) == (0.0, 0.0, 0.0, 0.0, 0.0, 1.0)
    assert struct.unpack_from("<I", raw, 24) == (4,)
    skew = struct.unpack_from("<5f", raw, 28)
    du = struct.unpack_from("<4f", raw, 48)
    dphi = struct.unpack_from("<4f", raw, 64)
    assert list(skew) == pytest.approx(dist.skewness, rel=1e-6)
    assert list(du) == pytest.approx(dist.du_ds, rel=1e-6)
    assert list(dphi) == pytest.approx(dist.dphi_ds, rel=1e-6)