"""Bounded curves, loops, planar profiles and cutting lines."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from ..config import EPSILON
from ..errors import UnclosedLoop
from .math_utils import (
    intersect_segment_with_line,
    point_in_polygon,
    point_on_segment,
    signed_polygon_area,
)
from .primitives import (
    Point,
    Vector,
    Z_AXIS,
    as_point,
    cross,
    distance,
    dot,
    lerp,
    mean_point,
    normalize,
    points_equal,
    sub,
)


class Side(str, Enum):
    """Half-space of a cutting line: ``A`` is the positive side."""

    A = "a"
    B = "b"

    @property
    def other(self) -> "Side":
        return Side.B if self is Side.A else Side.A


@dataclass(frozen=True)
class BoundedCurve:
    """Oriented curve between two endpoints.

    Subclasses supply ``evaluate``; ``start``/``end`` order defines traversal
    direction inside a :class:`Loop`.
    """

    start: Point
    end: Point

    def evaluate(self, t: float) -> Point:
        raise NotImplementedError

    def reversed(self) -> "BoundedCurve":
        raise NotImplementedError

    def midpoint(self) -> Point:
        return self.evaluate(0.5)


@dataclass(frozen=True)
class LineCurve(BoundedCurve):
    """Straight segment, the only curve kind the splitters cut."""

    def evaluate(self, t: float) -> Point:
        return lerp(self.start, self.end, t)

    def reversed(self) -> "LineCurve":
        return LineCurve(self.end, self.start)

    @property
    def length(self) -> float:
        return distance(self.start, self.end)

    def cleave(self, point: Point, tol: float = EPSILON) -> List["LineCurve"]:
        """Split at ``point``; an endpoint hit returns the curve unchanged."""

        if points_equal(point, self.start, tol) or points_equal(point, self.end, tol):
            return [self]
        return [LineCurve(self.start, point), LineCurve(point, self.end)]


def line(start: Sequence[float], end: Sequence[float]) -> LineCurve:
    return LineCurve(as_point(start), as_point(end))


@dataclass
class Loop:
    """Ordered chain of curves closing back on itself."""

    curves: List[BoundedCurve] = field(default_factory=list)

    @classmethod
    def from_points(cls, points: Iterable[Sequence[float]]) -> "Loop":
        pts = [as_point(p) for p in points]
        return cls([LineCurve(pts[i], pts[(i + 1) % len(pts)]) for i in range(len(pts))])

    def __len__(self) -> int:
        return len(self.curves)

    def __iter__(self):
        return iter(self.curves)

    @property
    def vertices(self) -> List[Point]:
        return [curve.start for curve in self.curves]

    @property
    def signed_area(self) -> float:
        return signed_polygon_area(self.vertices)

    @property
    def area(self) -> float:
        return abs(self.signed_area)

    @property
    def centroid(self) -> Point:
        """Average of the curve midpoints."""

        return mean_point(curve.midpoint() for curve in self.curves)

    def gaps(self, tol: float = EPSILON) -> List[int]:
        """Indices ``i`` where curve ``i`` does not meet curve ``i + 1``."""

        count = len(self.curves)
        return [
            i
            for i in range(count)
            if not points_equal(self.curves[i].end, self.curves[(i + 1) % count].start, tol)
        ]

    def is_closed(self, tol: float = EPSILON) -> bool:
        return len(self.curves) >= 3 and not self.gaps(tol)

    def validate(self, tol: float = EPSILON) -> None:
        if len(self.curves) < 3:
            raise UnclosedLoop(f"loop needs at least 3 curves, got {len(self.curves)}")
        gaps = self.gaps(tol)
        if gaps:
            raise UnclosedLoop(f"loop has gaps after curve(s) {gaps}", detail=gaps)

    def contains(self, point: Sequence[float]) -> bool:
        return point_in_polygon(point, self.vertices)


@dataclass
class PlanarProfile:
    """Outer boundary plus hole loops, all in one plane."""

    outer: Loop
    holes: List[Loop] = field(default_factory=list)

    @classmethod
    def from_loops(cls, loops: Sequence[Loop]) -> "PlanarProfile":
        """Treat the largest loop as the outer boundary and the rest as holes."""

        if not loops:
            raise ValueError("at least one loop is required")
        ordered = sorted(range(len(loops)), key=lambda i: loops[i].area, reverse=True)
        outer = loops[ordered[0]]
        return cls(outer=outer, holes=[loops[i] for i in sorted(ordered[1:])])

    @property
    def area(self) -> float:
        return self.outer.area - sum(hole.area for hole in self.holes)

    @property
    def hole_count(self) -> int:
        return len(self.holes)

    def validate(self, tol: float = EPSILON) -> None:
        self.outer.validate(tol)
        for hole in self.holes:
            hole.validate(tol)

    def contains(self, point: Sequence[float]) -> bool:
        """``True`` when ``point`` lies on the solid part of the profile in plan."""

        if not self.outer.contains(point):
            return False
        return not any(_strictly_inside(hole, point) for hole in self.holes)


def _strictly_inside(loop: Loop, point: Sequence[float]) -> bool:
    # the rim of a hole still belongs to the solid
    if any(point_on_segment(point, curve.start, curve.end) for curve in loop.curves):
        return False
    return loop.contains(point)


@dataclass(frozen=True)
class CuttingLine:
    """Unbounded plan line with a signed half-space.

    ``perpendicular`` is ``Z x direction``; points with a positive
    ``side_value`` lie on side ``A``.
    """

    origin: Point
    direction: Vector

    def __post_init__(self) -> None:
        flat = (self.direction[0], self.direction[1], 0.0)
        object.__setattr__(self, "origin", as_point(self.origin))
        object.__setattr__(self, "direction", normalize(flat))

    @classmethod
    def through(cls, start: Sequence[float], end: Sequence[float]) -> "CuttingLine":
        a = as_point(start)
        b = as_point(end)
        if points_equal(a, b, 1e-9):
            raise ValueError("cutting line needs two distinct points")
        return cls(origin=a, direction=sub(b, a))

    @property
    def perpendicular(self) -> Vector:
        return normalize(cross(Z_AXIS, self.direction))

    def side_value(self, point: Sequence[float]) -> float:
        return dot(sub(point, self.origin), self.perpendicular)

    def side_of(self, point: Sequence[float], tol: float = 0.0) -> Optional[Side]:
        """``Side`` of ``point``, or ``None`` when within ``tol`` of the line."""

        value = self.side_value(point)
        if value > tol:
            return Side.A
        if value < -tol:
            return Side.B
        return None

    def station(self, point: Sequence[float]) -> float:
        """Signed distance of ``point``'s projection along the line."""

        return dot(sub(point, self.origin), self.direction)

    def intersect(self, curve: BoundedCurve, tol: float = EPSILON) -> Optional[Point]:
        return intersect_segment_with_line(curve.start, curve.end, self.origin, self.direction, tol)


__all__ = [
    "BoundedCurve",
    "CuttingLine",
    "LineCurve",
    "Loop",
    "PlanarProfile",
    "Side",
    "line",
]
