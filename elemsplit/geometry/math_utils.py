from __future__ import annotations

import math
from typing import Optional, Sequence, Tuple

import numpy as np

from .primitives import Point, lerp, points_equal

_DENOM_EPS = 1e-12


def _cross2(a: Sequence[float], b: Sequence[float]) -> float:
    return a[0] * b[1] - a[1] * b[0]


def _vec2(a: Sequence[float], b: Sequence[float]) -> Tuple[float, float]:
    return b[0] - a[0], b[1] - a[1]


def _norm2(v: Sequence[float]) -> float:
    return math.hypot(v[0], v[1])


def intersect_segment_with_line(
    start: Point,
    end: Point,
    anchor: Point,
    direction: Sequence[float],
    tol: float,
) -> Optional[Point]:
    """Intersect segment ``start``-``end`` with the infinite plan line through ``anchor``.

    Works in plan (XY); the returned z is interpolated along the segment.
    Parallel and collinear segments give ``None``.  A hit within ``tol`` of an
    endpoint is snapped onto that endpoint.
    """

    seg = _vec2(start, end)
    seg_len = _norm2(seg)
    dir_len = _norm2(direction)
    if seg_len <= _DENOM_EPS or dir_len <= _DENOM_EPS:
        return None
    denom = _cross2(seg, direction)
    if abs(denom) <= _DENOM_EPS * seg_len * dir_len:
        return None
    s = _cross2(_vec2(start, anchor), direction) / denom
    slack = tol / seg_len
    if s < -slack or s > 1.0 + slack:
        return None
    hit = lerp(start, end, min(max(s, 0.0), 1.0))
    if points_equal(hit, start, tol):
        return start
    if points_equal(hit, end, tol):
        return end
    return hit


def signed_polygon_area(vertices: Sequence[Point]) -> float:
    """Shoelace area in plan; positive for counter-clockwise vertices."""

    if len(vertices) < 3:
        return 0.0
    xy = np.asarray([(v[0], v[1]) for v in vertices], dtype=float)
    x = xy[:, 0]
    y = xy[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))


def point_in_polygon(point: Sequence[float], vertices: Sequence[Point]) -> bool:
    """Even-odd ray casting in plan. Points on an edge count as inside."""

    px, py = point[0], point[1]
    count = len(vertices)
    inside = False
    for i in range(count):
        ax, ay = vertices[i][0], vertices[i][1]
        bx, by = vertices[(i + 1) % count][0], vertices[(i + 1) % count][1]
        if point_on_segment((px, py), (ax, ay), (bx, by)):
            return True
        if (ay > py) != (by > py):
            x_cross = ax + (py - ay) * (bx - ax) / (by - ay)
            if px < x_cross:
                inside = not inside
    return inside


def point_on_segment(p: Sequence[float], a: Sequence[float], b: Sequence[float]) -> bool:
    ab = _vec2(a, b)
    ap = _vec2(a, p)
    length = _norm2(ab)
    if length <= _DENOM_EPS:
        return _norm2(ap) <= 1e-9
    if abs(_cross2(ab, ap)) / length > 1e-9:
        return False
    t = (ap[0] * ab[0] + ap[1] * ab[1]) / (length * length)
    return -1e-9 <= t <= 1.0 + 1e-9


__all__ = [
    "intersect_segment_with_line",
    "point_in_polygon",
    "point_on_segment",
    "signed_polygon_area",
]
