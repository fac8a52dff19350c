"""Point type and tolerant vector helpers.

Points are plain ``(x, y, z)`` float tuples so they hash, compare and print
cheaply; arithmetic goes through numpy and comes back as tuples.
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence, Tuple

import numpy as np

from ..config import EPSILON

Point = Tuple[float, float, float]
Vector = Tuple[float, float, float]

ORIGIN: Point = (0.0, 0.0, 0.0)
Z_AXIS: Vector = (0.0, 0.0, 1.0)

_DENOM_EPS = 1e-12


def as_point(values: Sequence[float]) -> Point:
    """Coerce a 2- or 3-sequence into a point; a missing z becomes 0.

    A tuple that already is a point is returned as is, so shared endpoints
    stay identical objects.
    """

    if isinstance(values, tuple) and len(values) == 3 and all(type(v) is float for v in values):
        return values
    if len(values) == 2:
        return (float(values[0]), float(values[1]), 0.0)
    if len(values) != 3:
        raise ValueError(f"expected 2 or 3 coordinates, got {len(values)}")
    return (float(values[0]), float(values[1]), float(values[2]))


def _arr(p: Sequence[float]) -> np.ndarray:
    return np.asarray(p, dtype=float)


def _tup(arr: np.ndarray) -> Point:
    return (float(arr[0]), float(arr[1]), float(arr[2]))


def sub(a: Sequence[float], b: Sequence[float]) -> Vector:
    return _tup(_arr(a) - _arr(b))


def scale(v: Sequence[float], s: float) -> Vector:
    return _tup(_arr(v) * s)


def dot(a: Sequence[float], b: Sequence[float]) -> float:
    return float(np.dot(_arr(a), _arr(b)))


def cross(a: Sequence[float], b: Sequence[float]) -> Vector:
    return _tup(np.cross(_arr(a), _arr(b)))


def norm(v: Sequence[float]) -> float:
    return float(np.linalg.norm(_arr(v)))


def normalize(v: Sequence[float]) -> Vector:
    """Unit vector along *v*; raises on a zero-length input."""

    n = norm(v)
    if n <= _DENOM_EPS:
        raise ValueError("cannot normalize a zero-length vector")
    return scale(v, 1.0 / n)


def distance(a: Sequence[float], b: Sequence[float]) -> float:
    return math.dist(a, b)


def midpoint(a: Sequence[float], b: Sequence[float]) -> Point:
    return _tup((_arr(a) + _arr(b)) * 0.5)


def lerp(a: Sequence[float], b: Sequence[float], t: float) -> Point:
    return _tup(_arr(a) + (_arr(b) - _arr(a)) * t)


def points_equal(a: Sequence[float], b: Sequence[float], tol: float = EPSILON) -> bool:
    """Tolerance based point equality; exact comparison is never used."""

    return distance(a, b) <= tol


def mean_point(points: Iterable[Sequence[float]]) -> Point:
    stacked = np.asarray(list(points), dtype=float)
    if stacked.size == 0:
        return ORIGIN
    return _tup(stacked.mean(axis=0))


__all__ = [
    "ORIGIN",
    "Point",
    "Vector",
    "Z_AXIS",
    "as_point",
    "cross",
    "distance",
    "dot",
    "lerp",
    "mean_point",
    "midpoint",
    "norm",
    "normalize",
    "points_equal",
    "scale",
    "sub",
]
