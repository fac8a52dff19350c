"""Re-homing of hosted content after a split."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .attributes import AttributeBag, TransferDiagnostic, transfer_attributes
from .config import EPSILON
from .errors import HostError
from .geometry.curves import CuttingLine, Side
from .geometry.primitives import Point, Vector
from .logging_utils import apply_debug_logging

if TYPE_CHECKING:  # pragma: no cover
    from .host import SplitHost
    from .linear import LinearSpan

logger = logging.getLogger(__name__)


@dataclass
class HostedItem:
    """An object anchored to a host element.

    ``spans_host`` marks companions that cover the whole host (pipe or duct
    insulation, duct lining); they are replicated onto every piece.
    """

    handle: Any
    anchor: Point
    host: Any
    type_ref: Any = None
    orientation: Vector = (1.0, 0.0, 0.0)
    attributes: AttributeBag = field(default_factory=AttributeBag)
    spans_host: bool = False


@dataclass
class HostedAssignment:
    """Where one hosted item goes: one ``(target, anchor)`` per placement."""

    item: HostedItem
    placements: List[Tuple[Any, Point]] = field(default_factory=list)


@dataclass(frozen=True)
class ReassignmentFailure:
    item: HostedItem
    target: Any
    reason: str


@dataclass
class RehostResult:
    """Copies made per original item.

    ``placed`` also holds the copies of items listed in ``failures``; those
    are partial (a companion missing from some pieces, or a copy whose
    attributes could not be written) and :meth:`partial` names them.
    """

    placed: Dict[Any, List[Any]] = field(default_factory=dict)
    failures: List[ReassignmentFailure] = field(default_factory=list)
    originals_to_delete: List[Any] = field(default_factory=list)

    @property
    def new_handles(self) -> List[Any]:
        return [handle for handles in self.placed.values() for handle in handles]

    def partial(self) -> Dict[Any, List[Any]]:
        failed = {failure.item.handle for failure in self.failures}
        return {old: list(new) for old, new in self.placed.items() if old in failed}


def classify_hosted_items(items: Iterable[HostedItem], cut: CuttingLine) -> List[Tuple[HostedItem, Side]]:
    """Side of the cut each item's anchor lies on; on-the-line goes to ``B``."""

    return [(item, Side.A if cut.side_value(item.anchor) > 0.0 else Side.B) for item in items]


def classify_along_spans(
    items: Iterable[HostedItem], segments: Sequence["LinearSpan"], tol: float = EPSILON
) -> List[Tuple[HostedItem, List[int]]]:
    """Indices of the pieces that should host each item.

    Point items go to the first piece whose station range holds the projection
    of their anchor; ``spans_host`` items go to every piece.
    """

    result: List[Tuple[HostedItem, List[int]]] = []
    for item in items:
        if item.spans_host:
            result.append((item, list(range(len(segments)))))
            continue
        match: List[int] = []
        for index, segment in enumerate(segments):
            station = segment.station_of(item.anchor)
            if -tol <= station <= segment.length + tol:
                match.append(index)
                break
        result.append((item, match))
    return result


def classify_by_elevation(
    items: Iterable[HostedItem], bands: Sequence[Tuple[float, float]], tol: float = EPSILON
) -> List[Tuple[HostedItem, List[int]]]:
    """Indices of the stacked pieces that should host each item.

    A point item goes to the lowest band whose ``(bottom, top)`` range holds
    its anchor elevation; ``spans_host`` items go to every band.
    """

    result: List[Tuple[HostedItem, List[int]]] = []
    for item in items:
        if item.spans_host:
            result.append((item, list(range(len(bands)))))
            continue
        elevation = item.anchor[2]
        match = [index for index, (bottom, top) in enumerate(bands) if bottom - tol <= elevation <= top + tol]
        result.append((item, match[:1]))
    return result


def rehost_items(
    host: "SplitHost",
    assignments: Sequence[HostedAssignment],
    ignore: Iterable[str] = (),
    diagnostics: Optional[List[TransferDiagnostic]] = None,
) -> RehostResult:
    """Place each item on its targets, copy its attributes, mark the original.

    An item is marked for deletion only if every placement succeeded; failed
    placements are reported in :attr:`RehostResult.failures`.  A copy whose
    attributes the host refuses still counts as placed so it can be discarded.
    """

    ignored = set(ignore)
    result = RehostResult()
    for assignment in assignments:
        item = assignment.item
        if not assignment.placements:
            result.failures.append(ReassignmentFailure(item, None, "no piece holds the anchor"))
            continue
        placed: List[Any] = []
        failed = False
        for target, anchor in assignment.placements:
            try:
                new_handle = host.place_hosted_item(target, anchor, item.orientation, item.type_ref)
            except HostError as exc:
                logger.warning("Could not re-place hosted item %s on %s: %s", item.handle, target, exc)
                result.failures.append(ReassignmentFailure(item, target, str(exc)))
                failed = True
                continue
            placed.append(new_handle)
            try:
                bag = host.get_attribute_bag(new_handle)
                transfer_attributes(item.attributes, bag, ignored, diagnostics)
                host.apply_attribute_bag(new_handle, bag)
            except HostError as exc:
                logger.warning("Could not write attributes of %s copied from %s: %s", new_handle, item.handle, exc)
                result.failures.append(ReassignmentFailure(item, target, f"attributes not written: {exc}"))
                failed = True
        if placed:
            result.placed[item.handle] = placed
        if not failed:
            result.originals_to_delete.append(item.handle)
    logger.info(
        "Re-hosted %d item(s), %d failure(s)", len(result.originals_to_delete), len(result.failures)
    )
    return result


apply_debug_logging(globals(), logger=logger)


__all__ = [
    "HostedAssignment",
    "HostedItem",
    "ReassignmentFailure",
    "RehostResult",
    "classify_along_spans",
    "classify_by_elevation",
    "classify_hosted_items",
    "rehost_items",
]
