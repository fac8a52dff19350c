"""Level lookup for vertically split elements."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from .config import EPSILON, SplitConfig, resolve_config
from .errors import DegenerateSegment, NoSplitNeeded


@dataclass(frozen=True)
class Level:
    ref: Any
    elevation: float
    name: str = ""


@dataclass(frozen=True)
class SegmentPlacement:
    """Host levels and offsets for one piece of a vertical split."""

    base_level: Level
    base_offset: float
    top_level: Level
    top_offset: float


def best_host_level(levels: Iterable[Level], elevation: float, tol: float = EPSILON) -> Optional[Level]:
    """Highest level at or below ``elevation`` (within ``tol``)."""

    candidates = [level for level in levels if level.elevation <= elevation + tol]
    if not candidates:
        return None
    return max(candidates, key=lambda level: level.elevation)


def find_level(levels: Iterable[Level], ref: Any) -> Optional[Level]:
    for level in levels:
        if level.ref == ref:
            return level
    return None


def place_segment(
    levels: Iterable[Level], bottom: float, top: float, tol: float = EPSILON
) -> Optional[SegmentPlacement]:
    pool: List[Level] = list(levels)
    base = best_host_level(pool, bottom, tol)
    upper = best_host_level(pool, top, tol)
    if base is None or upper is None:
        return None
    return SegmentPlacement(
        base_level=base,
        base_offset=bottom - base.elevation,
        top_level=upper,
        top_offset=top - upper.elevation,
    )


def stacked_bands(
    bottom: float, top: float, levels: Sequence[Level], config: Optional[SplitConfig] = None
) -> List[Tuple[float, float]]:
    """Cut the elevation range ``[bottom, top]`` at every level inside it.

    Levels within ``clearance`` of either end are ignored.  Raises
    :class:`NoSplitNeeded` when no level is left inside the range.
    """

    cfg = resolve_config(config)
    if top - bottom <= cfg.tolerance:
        raise DegenerateSegment(f"vertical extent {bottom:.4f}..{top:.4f} is empty")
    cuts = [bottom]
    for elevation in sorted(level.elevation for level in levels):
        if bottom + cfg.clearance < elevation < top - cfg.clearance and elevation - cuts[-1] > cfg.tolerance:
            cuts.append(elevation)
    if len(cuts) < 2:
        raise NoSplitNeeded("no level lies inside the vertical extent")
    cuts.append(top)
    return [(cuts[i], cuts[i + 1]) for i in range(len(cuts) - 1)]


__all__ = [
    "Level",
    "SegmentPlacement",
    "best_host_level",
    "find_level",
    "place_segment",
    "stacked_bands",
]
