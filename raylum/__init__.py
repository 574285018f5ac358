"""Phase-space luminance estimation, étendue statistics and ray set interpolation on a 4-D k-d tree."""

__version__ = "0.1.0"

__all__ = [
    "geometry",
    "kdtree",
    "neighbors",
    "raysetdata",
    "interpolate",
    "selection",
]