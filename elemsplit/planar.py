"""Planar boundary splitting.

A profile (outer loop plus holes) is cut by one straight line into two
profiles.  The outer loop must be crossed exactly twice; the two crossing
points define a chord that closes each half.  Holes are either moved whole to
the side holding their centroid, cleaved along the same chord, or dropped when
their topology against the cut is not supported (see :class:`HolePolicy`).

Side labels come from :class:`~elemsplit.geometry.CuttingLine`: the chord is
shared by the outer loop and every cleaved hole, so a hole half always lands
on the profile half that geometrically contains it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from .config import HolePolicy, SplitConfig, resolve_config
from .errors import InvalidCutGeometry, UnclosedLoop
from .geometry.curves import BoundedCurve, CuttingLine, LineCurve, Loop, PlanarProfile, Side
from .geometry.primitives import Point, points_equal
from .logging_utils import apply_debug_logging

logger = logging.getLogger(__name__)


@dataclass
class DroppedHole:
    """A hole left out of both halves, with the reason."""

    loop: Loop
    intersections: int
    reason: str


@dataclass
class PlanarSplit:
    side_a: PlanarProfile
    side_b: PlanarProfile
    chord: Tuple[Point, Point]
    cut: CuttingLine
    dropped_holes: List[DroppedHole] = field(default_factory=list)

    def profile(self, side: Side) -> PlanarProfile:
        return self.side_a if side is Side.A else self.side_b

    @property
    def profiles(self) -> Tuple[PlanarProfile, PlanarProfile]:
        return self.side_a, self.side_b


def loop_intersections(loop: Loop, cut: CuttingLine, tol: float) -> List[Tuple[Point, int]]:
    """Distinct crossings of ``loop`` with ``cut`` as ``(point, curve index)``.

    A crossing through a shared vertex is reported once, against the first
    curve that produced it.
    """

    hits: List[Tuple[Point, int]] = []
    for index, curve in enumerate(loop.curves):
        point = cut.intersect(curve, tol)
        if point is None:
            continue
        if any(points_equal(point, seen, tol) for seen, _ in hits):
            continue
        hits.append((point, index))
    return hits


def chain_curves(curves: Sequence[BoundedCurve], tol: float) -> Loop:
    """Greedy endpoint chaining of ``curves`` into a closed loop.

    Starting from the first curve, repeatedly append the remaining curve whose
    start (or, reversed, whose end) meets the open end of the chain.  Raises
    :class:`UnclosedLoop` when the chain cannot be continued, ends up with
    fewer than three curves, or does not close.
    """

    if not curves:
        raise UnclosedLoop("no curves to chain")
    remaining = list(curves[1:])
    chain: List[BoundedCurve] = [curves[0]]
    while remaining:
        tail = chain[-1].end
        for idx, candidate in enumerate(remaining):
            if points_equal(tail, candidate.start, tol):
                chain.append(candidate)
                break
            if points_equal(tail, candidate.end, tol):
                chain.append(candidate.reversed())
                break
        else:
            raise UnclosedLoop(
                f"chain broken after {len(chain)} curve(s); {len(remaining)} left unmatched",
                detail={"chained": len(chain), "remaining": len(remaining)},
            )
        remaining.pop(idx)
    loop = Loop(chain)
    loop.validate(tol)
    return loop


def _distribute_outer(
    loop: Loop, cut: CuttingLine, hits: Sequence[Tuple[Point, int]], tol: float
) -> Tuple[List[BoundedCurve], List[BoundedCurve]]:
    by_curve = {index: point for point, index in hits}
    side_a: List[BoundedCurve] = []
    side_b: List[BoundedCurve] = []
    for index, curve in enumerate(loop.curves):
        if index in by_curve:
            for piece in _cleave(curve, by_curve[index], tol):
                side = cut.side_of(piece.midpoint(), tol)
                if side is Side.A:
                    side_a.append(piece)
                elif side is Side.B:
                    side_b.append(piece)
                else:
                    # lies on the cut; both halves keep it
                    side_a.append(piece)
                    side_b.append(piece)
        elif cut.side_value(curve.midpoint()) > 0.0:
            side_a.append(curve)
        else:
            side_b.append(curve)
    return side_a, side_b


def _cleave(curve: BoundedCurve, point: Point, tol: float) -> List[BoundedCurve]:
    if not isinstance(curve, LineCurve):
        raise InvalidCutGeometry(f"cannot cleave {type(curve).__name__}; only straight curves are supported")
    return list(curve.cleave(point, tol))


def _has_strict_side(curves: Sequence[BoundedCurve], cut: CuttingLine, side: Side, tol: float) -> bool:
    return any(cut.side_of(curve.midpoint(), tol) is side for curve in curves)


@dataclass
class _HoleSplit:
    side_a: Optional[Loop]
    side_b: Optional[Loop]
    intersections: int
    half_failed: bool = False


def _split_hole(hole: Loop, cut: CuttingLine, tol: float) -> _HoleSplit:
    hits = loop_intersections(hole, cut, tol)
    if not hits:
        whole = Loop(list(hole.curves))
        if cut.side_value(hole.centroid) > 0.0:
            return _HoleSplit(whole, None, 0)
        return _HoleSplit(None, whole, 0)
    if len(hits) != 2:
        return _HoleSplit(None, None, len(hits))

    by_curve = {index: point for point, index in hits}
    half_a: List[BoundedCurve] = []
    half_b: List[BoundedCurve] = []
    for index, curve in enumerate(hole.curves):
        if index in by_curve:
            for piece in _cleave(curve, by_curve[index], tol):
                side = cut.side_of(piece.midpoint(), tol)
                if side is Side.A:
                    half_a.append(piece)
                elif side is Side.B:
                    half_b.append(piece)
        elif cut.side_value(curve.midpoint()) > 0.0:
            half_a.append(curve)
        else:
            half_b.append(curve)

    first, second = sorted((point for point, _ in hits), key=cut.station)
    if half_a and half_b:
        connector = LineCurve(first, second)
        half_a.append(connector)
        half_b.append(connector.reversed())
    loop_a = _chain_or_none(half_a, tol)
    loop_b = _chain_or_none(half_b, tol)
    failed = (bool(half_a) and loop_a is None) or (bool(half_b) and loop_b is None)
    return _HoleSplit(loop_a, loop_b, 2, failed)


def _chain_or_none(curves: List[BoundedCurve], tol: float) -> Optional[Loop]:
    if not curves:
        return None
    try:
        return chain_curves(curves, tol)
    except UnclosedLoop as exc:
        logger.debug("Dropping hole half with %d curve(s): %s", len(curves), exc)
        return None


def split_profile(
    profile: PlanarProfile, cut: CuttingLine, config: Optional[SplitConfig] = None
) -> PlanarSplit:
    """Split ``profile`` along ``cut`` into two profiles.

    Raises :class:`InvalidCutGeometry` when the cut does not cross the outer
    boundary at exactly two distinct points (or leaves one side empty) and
    :class:`UnclosedLoop` when a half cannot be reassembled.  Nothing is
    partially returned on failure.
    """

    cfg = resolve_config(config)
    tol = cfg.tolerance
    outer = profile.outer

    hits = loop_intersections(outer, cut, tol)
    if len(hits) != 2:
        raise InvalidCutGeometry(
            f"cut must cross the outer boundary exactly twice, found {len(hits)} crossing(s)",
            detail={"intersections": len(hits)},
        )
    first, second = sorted((point for point, _ in hits), key=cut.station)
    logger.info("Outer boundary crossed at %s and %s", first, second)

    curves_a, curves_b = _distribute_outer(outer, cut, hits, tol)
    if not (_has_strict_side(curves_a, cut, Side.A, tol) and _has_strict_side(curves_b, cut, Side.B, tol)):
        raise InvalidCutGeometry("cut does not divide the boundary into two parts")

    chord = LineCurve(first, second)
    curves_a.append(chord)
    curves_b.append(chord.reversed())
    outer_a = chain_curves(curves_a, tol)
    outer_b = chain_curves(curves_b, tol)

    holes_a: List[Loop] = []
    holes_b: List[Loop] = []
    dropped: List[DroppedHole] = []
    for hole in profile.holes:
        parts = _split_hole(hole, cut, tol)
        count = parts.intersections
        if count not in (0, 2):
            if cfg.hole_policy is HolePolicy.ABORT:
                raise InvalidCutGeometry(
                    f"cut crosses a hole {count} time(s); only 0 or 2 are supported",
                    detail={"hole_intersections": count},
                )
            logger.warning("Dropping hole crossed %d time(s) by the cut", count)
            dropped.append(DroppedHole(hole, count, "unsupported-topology"))
            continue
        if parts.half_failed:
            logger.warning("Hole half failed validation and was dropped")
            dropped.append(DroppedHole(hole, count, "invalid-half"))
        if parts.side_a is not None:
            holes_a.append(parts.side_a)
        if parts.side_b is not None:
            holes_b.append(parts.side_b)

    result = PlanarSplit(
        side_a=PlanarProfile(outer_a, holes_a),
        side_b=PlanarProfile(outer_b, holes_b),
        chord=(first, second),
        cut=cut,
        dropped_holes=dropped,
    )
    logger.info(
        "Split profile area %.4f into %.4f (%d hole(s)) and %.4f (%d hole(s))",
        profile.area,
        result.side_a.area,
        len(holes_a),
        result.side_b.area,
        len(holes_b),
    )
    return result


apply_debug_logging(globals(), logger=logger)


__all__ = [
    "DroppedHole",
    "PlanarSplit",
    "chain_curves",
    "loop_intersections",
    "split_profile",
]
