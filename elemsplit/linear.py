"""Linear span splitting.

A span is a bounded 3-D segment with an opaque cross-section descriptor
(pipe size, duct shape, framing symbol, ...).  Stations are distances along
the span measured from its start point.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence

from .config import SplitConfig, resolve_config
from .errors import DegenerateSegment, InvalidCutGeometry, NoSplitNeeded
from .geometry.curves import CuttingLine
from .geometry.math_utils import intersect_segment_with_line
from .geometry.primitives import Z_AXIS, Point, Vector, as_point, cross, dot, normalize, scale, sub
from .logging_utils import apply_debug_logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinearSpan:
    start: Point
    end: Point
    section: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", as_point(self.start))
        object.__setattr__(self, "end", as_point(self.end))

    @property
    def length(self) -> float:
        return math.dist(self.start, self.end)

    @property
    def direction(self) -> Vector:
        return normalize(sub(self.end, self.start))

    def point_at(self, station: float) -> Point:
        """Point at ``station``; the end stations return the endpoints themselves."""

        length = self.length
        if station == 0.0:
            return self.start
        if station == length:
            return self.end
        return tuple(a + (b - a) * station / length for a, b in zip(self.start, self.end))  # type: ignore[return-value]

    def station_of(self, point: Sequence[float]) -> float:
        """Distance along the span of ``point``'s orthogonal projection."""

        return dot(sub(as_point(point), self.start), self.direction)

    def is_vertical(self, threshold: float) -> bool:
        return abs(self.direction[2]) >= threshold

    def shifted(self, delta: Sequence[float]) -> "LinearSpan":
        return LinearSpan(
            tuple(a + d for a, d in zip(self.start, delta)),  # type: ignore[arg-type]
            tuple(a + d for a, d in zip(self.end, delta)),  # type: ignore[arg-type]
            self.section,
        )

    def at_elevation(self, z: float) -> "LinearSpan":
        """Same plan line moved so it starts at elevation ``z``."""

        return self.shifted((0.0, 0.0, z - self.start[2]))

    def offset_across(self, distance: float) -> "LinearSpan":
        """Parallel span ``distance`` away along ``direction x Z`` in plan."""

        return self.shifted(scale(normalize(cross(self.direction, Z_AXIS)), distance))


def normalize_stations(
    span: LinearSpan, stations: Iterable[float], config: Optional[SplitConfig] = None
) -> List[float]:
    """Sorted, deduplicated stations including both ends of ``span``.

    Stations closer than ``clearance`` to either end are dropped silently.
    """

    cfg = resolve_config(config)
    length = span.length
    if length <= cfg.tolerance:
        raise DegenerateSegment(f"span length {length:.6g} is below tolerance")

    interior = sorted(
        float(s) for s in stations if cfg.clearance < float(s) < length - cfg.clearance
    )
    normalized = [0.0]
    for station in interior:
        if station - normalized[-1] > cfg.tolerance:
            normalized.append(station)
    if length - normalized[-1] <= cfg.tolerance:
        normalized.pop()
    normalized.append(length)
    return normalized


def split_span(
    span: LinearSpan, stations: Iterable[float], config: Optional[SplitConfig] = None
) -> List[LinearSpan]:
    """Cut ``span`` at ``stations`` into contiguous sub-spans.

    Consecutive sub-spans share the very same endpoint tuple, so continuity
    holds exactly.  Raises :class:`NoSplitNeeded` when no station survives
    normalization.
    """

    normalized = normalize_stations(span, stations, config)
    if len(normalized) < 3:
        raise NoSplitNeeded("no station lies inside the span clearance")

    points = [span.point_at(station) for station in normalized]
    pieces = [LinearSpan(points[i], points[i + 1], span.section) for i in range(len(points) - 1)]
    logger.info("Split span of length %.4f into %d piece(s)", span.length, len(pieces))
    return pieces


def split_span_at_point(
    span: LinearSpan, point: Sequence[float], config: Optional[SplitConfig] = None
) -> List[LinearSpan]:
    """Single cut at the projection of a picked ``point``.

    Unlike :func:`split_span`, a cut inside the end clearance is an error.
    """

    cfg = resolve_config(config)
    station = span.station_of(point)
    length = span.length
    if station < -cfg.tolerance or station > length + cfg.tolerance:
        raise InvalidCutGeometry(
            f"point projects outside the span (station {station:.4f} of {length:.4f})",
            detail={"station": station},
        )
    if station < cfg.clearance or station > length - cfg.clearance:
        raise DegenerateSegment(
            f"cut at station {station:.4f} is within {cfg.clearance} of a span end",
            detail={"station": station},
        )
    return split_span(span, [station], cfg)


def stations_from_elevations(
    span: LinearSpan,
    elevations: Iterable[float],
    config: Optional[SplitConfig] = None,
    *,
    require_vertical: bool = True,
) -> List[float]:
    """Map level elevations onto stations of ``span``."""

    cfg = resolve_config(config)
    rise = span.end[2] - span.start[2]
    if require_vertical and not span.is_vertical(cfg.vertical_threshold):
        raise InvalidCutGeometry("span is not vertical enough to split by elevation")
    if abs(rise) <= cfg.tolerance:
        raise InvalidCutGeometry("a level span cannot be split by elevation")
    length = span.length
    return [(float(z) - span.start[2]) * length / rise for z in elevations]


def station_at_cut(span: LinearSpan, cut: CuttingLine, config: Optional[SplitConfig] = None) -> float:
    """Station where the plan projection of ``span`` crosses ``cut``."""

    cfg = resolve_config(config)
    hit = intersect_segment_with_line(span.start, span.end, cut.origin, cut.direction, cfg.tolerance)
    if hit is None:
        raise InvalidCutGeometry("cutting line does not cross the span")
    return span.station_of(hit)


def stations_from_cut(span: LinearSpan, cut: CuttingLine, config: Optional[SplitConfig] = None) -> List[float]:
    return [station_at_cut(span, cut, config)]


apply_debug_logging(globals(), logger=logger)


__all__ = [
    "LinearSpan",
    "normalize_stations",
    "split_span",
    "split_span_at_point",
    "station_at_cut",
    "stations_from_cut",
    "stations_from_elevations",
]
