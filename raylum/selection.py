"""Selection of ray subsets before phase-space analysis.

A ray is a sequence of floats whose first six entries are the location
x, y, z and the direction kx, ky, kz; further entries such as the flux
are carried along unchanged. Every function returns a new list and leaves
its input untouched.
"""

from __future__ import annotations

import itertools
import random
from typing import Iterable, Sequence, TypeVar

RayT = TypeVar("RayT", bound=Sequence[float])

_X, _Y, _KZ = 0, 1, 5


def select_by_max_number(rays: Iterable[RayT], n_max: int) -> list[RayT]:
    """The first n_max rays; none at all for n_max <= 0."""
    if n_max <= 0:
        return []
    return list(itertools.islice(rays, n_max))


def restrict_to_kz(rays: Iterable[RayT], kz_min: float) -> list[RayT]:
    """The rays whose direction component kz is at least kz_min."""
    return [r for r in rays if r[_KZ] >= kz_min]


def restrict_to_xy_box(
    rays: Iterable[RayT], box: Sequence[float]
) -> list[RayT]:
    """The rays whose x and y lie in the closed box (xmin, ymin, xmax, ymax)."""
    if len(box) != 4:
        raise ValueError("restrict_to_xy_box: box needs xmin, ymin, xmax, ymax")
    xmin, ymin, xmax, ymax = box
    return [
        r for r in rays if xmin <= r[_X] <= xmax and ymin <= r[_Y] <= ymax
    ]


def restrict_to_first_n(rays: Iterable[RayT], n: int) -> list[RayT]:
    """The first n rays, or all of them if there are fewer."""
    if n < 0:
        raise ValueError("restrict_to_first_n: n must not be negative")
    return list(itertools.islice(rays, n))


def shuffle_rays(
    rays: Iterable[RayT], rng: random.Random | None = None
) -> list[RayT]:
    """The rays in random order, drawn from rng or a fresh generator."""
    result = list(rays)
    (rng if rng is not None else random.Random()).shuffle(result)
    return result