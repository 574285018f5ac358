# raylum

`raylum` estimates luminance in the four-dimensional phase space of an optical
ray set and uses that estimate to create larger, smoother sets of phase-space
points and étendue statistics.

Each ray is given as a phase-space point `(x0, x1, k0, k1)`: two location
coordinates and two direction coordinates. The points are organised in a
k-d tree whose leaf cells partition phase space, one ray per cell. The cell
volume is the ray's étendue; the flux of a ray's nearest neighbours divided by
the volume of their cells gives a local luminance estimate, and luminance times
cell volume gives the cell flux.

The package has no dependencies outside the standard library.

## What is in the package

| Module | Contents |
| --- | --- |
| `raylum.geometry` | Point and box helpers (`distance`, `bounding_box`, `is_in_box`, `are_in_box`, `box_corners`, `boxes_overlap`, `lhs_box_is_within_rhs_box`, `mid_point`) and the tree cell `Node` with `is_leaf`, `n_points`, `volume`, `distance`, `box`, `partition` and `random_partition`. |
| `raylum.kdtree` | `KDTree`: building the tree (`create_tree`), `check_consistency`, `shrink_edge_nodes` for cells at the edge of the point set, `locate`, `locate_point`, `locate_points_within_box`, `locate_overlapping_leaf_nodes` and `total_volume`. Failures are raised as `KDTreeError`. |
| `raylum.neighbors` | Nearest-neighbour search: `nearest_neighbors`, `nearest_neighbors_of_point`, `nearest_neighbors_of_node`, `nearest_neighbors_of_node_at` and `closest_node_index`, with results in `NearestNeighbors` (point indices, leaf node indices and distances, nearest first). |
| `raylum.raysetdata` | `RaySetData`: per-ray fluxes, cell volumes, averaged luminances and cell fluxes; optional luminance clipping of the brightest cells, `set_total_flux`, `restrict_to_etendue_threshold`, the characteristic curve (`characteristic_curve`, `CharacteristicCurve`, `write_characteristic_curve`) and the skewness distribution about the z axis (`skewness_distribution_z_axis`, `SkewnessDistribution`, `write_skewness_distribution`, `BinType`, `bin_type_from_string`, `bin_indices`). |
| `raylum.interpolate` | Ray counts per cell (`rays_per_cell`, `rays_per_cell_etendue_restricted`) and generation of new phase-space points with their fluxes (`interpolate_phase_space`). |
| `raylum.selection` | Ray filters applied before analysis: `shuffle_rays`, `select_by_max_number`, `restrict_to_kz`, `restrict_to_xy_box`, `restrict_to_first_n`. |

## Using it

Build a tree over phase-space points and query it:

```python
import random

from raylum.kdtree import KDTree
from raylum.neighbors import nearest_neighbors

rng = random.Random(1)
points = [tuple(rng.uniform(-1.0, 1.0) for _ in range(4)) for _ in range(500)]

tree = KDTree(points)
tree.create_tree()
tree.shrink_edge_nodes(0.5)
tree.check_consistency()

neighbours = nearest_neighbors(tree, (0.0, 0.0, 0.0, 0.0), 10)
print(neighbours.points, neighbours.distances)
```

Estimate luminance for a ray set given as phase-space points and per-ray
fluxes, then look at the characteristic curve (étendue against luminance,
brightest cells first):

```python
from raylum.raysetdata import RaySetData

fluxes = [1.0] * len(points)
data = RaySetData(points, fluxes, 10, 0)   # 10 neighbours, no clipping
data.set_total_flux(100.0)
curve = data.characteristic_curve()
data.write_characteristic_curve("characteristic_curve.bin", curve)
```

`RaySetData` builds its own tree (`data.tree`), shrinks its edge cells and
checks it. Progress is reported through the `logging` module under the
`raylum.raysetdata` logger.

Keep only the brightest cells that together make up a given étendue, and
create a denser point set in which the number of points per cell follows the
cell flux:

```python
from raylum.interpolate import (
    interpolate_phase_space,
    rays_per_cell_etendue_restricted,
)

data.restrict_to_etendue_threshold(0.5)
counts = rays_per_cell_etendue_restricted(data, 10_000)
new_points, new_fluxes = interpolate_phase_space(data, counts, random.Random(2).random)
```

Points with `1 - k0**2 - k1**2 < 0.005` (grazing directions) are dropped.
Without a random generator, `interpolate_phase_space` uses one with a fixed
seed, so its output is reproducible.

The skewness distribution needs the 3-D location and direction of every ray,
in the order of the points `RaySetData` was built from:

```python
from raylum.raysetdata import BinType

dist = data.skewness_distribution_z_axis(20, BinType.SAME_FLUX, locations, directions)
data.write_skewness_distribution("skewness.bin", dist)
```

Rays given as sequences `(x, y, z, kx, ky, kz, ...)` can be filtered first:

```python
from raylum.selection import restrict_to_kz, restrict_to_xy_box, shuffle_rays

rays = shuffle_rays(rays, random.Random(3))
rays = restrict_to_kz(rays, 0.1)
rays = restrict_to_xy_box(rays, (-1.0, -1.0, 1.0, 1.0))
```

## File formats

All binary output is little-endian.

* Characteristic curve: an 8-byte unsigned cell count `n`, then `n` 4-byte
  floats of étendue followed by `n` 4-byte floats of luminance, brightest
  cell first.
* Skewness distribution: 3 floats for the axis point, 3 floats for the axis
  direction, a 4-byte unsigned bin count `m`, then `m + 1` floats of bin
  limits in skewness, `m` floats of dU/ds and `m` floats of dΦ/ds.

## What it does not do

* It does not read or write ray files. Rays come in as Python sequences and
  phase-space points as 4-tuples supplied by the caller.
* It does not map 3-D rays to phase-space coordinates or map generated
  phase-space points back to 3-D rays; `interpolate_phase_space` returns
  phase-space points and fluxes only.
* It does not sample luminance on a regular grid or write luminance lookup
  tables.
* It has no command-line program and no configuration file; everything is
  driven from Python.