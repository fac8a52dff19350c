"""Geometry primitives shared by the planar and linear splitters."""

from .curves import BoundedCurve, CuttingLine, LineCurve, Loop, PlanarProfile, Side, line
from .primitives import Point, Vector, as_point, distance, points_equal

__all__ = [
    "BoundedCurve",
    "CuttingLine",
    "LineCurve",
    "Loop",
    "PlanarProfile",
    "Point",
    "Side",
    "Vector",
    "as_point",
    "distance",
    "line",
    "points_equal",
]
