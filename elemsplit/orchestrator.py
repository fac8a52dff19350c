"""Split orchestration against a :class:`~elemsplit.host.SplitHost`.

A run moves through ``VALIDATED -> GEOMETRY_SPLIT -> ENTITIES_CREATED ->
ATTRIBUTES_COPIED -> HOSTED_CONTENT_MOVED -> SOURCE_DELETED``.  Any
:class:`SplitError` ends it in ``ABORTED`` (``UNCHANGED`` for
:class:`NoSplitNeeded`): everything created so far is deleted, the source is
left alone and the host transaction is rolled back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from .attributes import (
    AttributeBag,
    AttributeKind,
    AttributeWriteError,
    Reference,
    TransferDiagnostic,
    infer_kind,
    transfer_attributes,
)
from .config import SplitConfig, resolve_config
from .errors import (
    EntityCreationFailed,
    HostError,
    InvalidCutGeometry,
    NoSplitNeeded,
    ReassignmentFailed,
    SplitError,
)
from .geometry.curves import CuttingLine, PlanarProfile, Side
from .geometry.primitives import Point
from .host import EntityHandle, EntityRecord, SplitHost
from .hosted import (
    HostedAssignment,
    HostedItem,
    ReassignmentFailure,
    classify_along_spans,
    classify_by_elevation,
    classify_hosted_items,
    rehost_items,
)
from .kinds import GeometryKind, KindAdapter, get_adapter
from .layers import LayerAnchor, separate_layers
from .levels import Level, SegmentPlacement, find_level, place_segment, stacked_bands
from .linear import LinearSpan, split_span, split_span_at_point, stations_from_cut, stations_from_elevations
from .logging_utils import apply_debug_logging
from .planar import DroppedHole, split_profile

logger = logging.getLogger(__name__)


class SplitState(str, Enum):
    VALIDATED = "validated"
    GEOMETRY_SPLIT = "geometry-split"
    ENTITIES_CREATED = "entities-created"
    ATTRIBUTES_COPIED = "attributes-copied"
    HOSTED_CONTENT_MOVED = "hosted-content-moved"
    SOURCE_DELETED = "source-deleted"
    ABORTED = "aborted"
    UNCHANGED = "unchanged"


@dataclass
class SplitOutcome:
    source: EntityHandle
    operation: str
    states: List[SplitState] = field(default_factory=list)
    created: List[EntityHandle] = field(default_factory=list)
    discarded: List[EntityHandle] = field(default_factory=list)
    rehosted: Dict[EntityHandle, List[EntityHandle]] = field(default_factory=dict)
    reassignment_failures: List[ReassignmentFailure] = field(default_factory=list)
    diagnostics: List[TransferDiagnostic] = field(default_factory=list)
    dropped_holes: List[DroppedHole] = field(default_factory=list)
    skipped_layers: List[int] = field(default_factory=list)
    error: Optional[SplitError] = None

    @property
    def state(self) -> Optional[SplitState]:
        return self.states[-1] if self.states else None

    @property
    def ok(self) -> bool:
        return self.state is SplitState.SOURCE_DELETED

    def advance(self, state: SplitState) -> None:
        logger.debug("%s of %s: %s", self.operation, self.source, state.value)
        self.states.append(state)

    def summary(self) -> Dict[str, Any]:
        """JSON-friendly description of the run."""

        return {
            "source": self.source,
            "operation": self.operation,
            "state": self.state.value if self.state else None,
            "states": [state.value for state in self.states],
            "created": list(self.created),
            "discarded": list(self.discarded),
            "rehosted": {str(old): list(new) for old, new in self.rehosted.items()},
            "reassignment_failures": [
                {"item": failure.item.handle, "target": failure.target, "reason": failure.reason}
                for failure in self.reassignment_failures
            ],
            "diagnostics": [
                {"name": diag.name, "reason": diag.reason, "detail": diag.detail} for diag in self.diagnostics
            ],
            "dropped_holes": len(self.dropped_holes),
            "skipped_layers": list(self.skipped_layers),
            "error": None if self.error is None else {"kind": self.error.kind.value, "message": str(self.error)},
        }


@dataclass
class _Plan:
    """Geometry result of a run plus how to finish each piece."""

    pieces: List[Any]
    ignore: FrozenSet[str]
    assign: Callable[[Sequence[HostedItem], Sequence[EntityHandle]], List[HostedAssignment]]
    level_refs: List[Any] = field(default_factory=list)
    finish: Optional[Callable[[int, AttributeBag, AttributeBag, List[TransferDiagnostic]], None]] = None
    dropped_holes: List[DroppedHole] = field(default_factory=list)
    type_refs: List[Any] = field(default_factory=list)
    skipped_layers: List[int] = field(default_factory=list)


_Builder = Callable[[EntityRecord, KindAdapter, SplitConfig], _Plan]


class SplitOrchestrator:
    """Drive one split at a time against ``host``."""

    def __init__(self, host: SplitHost, config: Optional[SplitConfig] = None):
        self.host = host
        self.config = resolve_config(config)

    # ------------------------------------------------------------------
    # public operations
    def split_planar(self, handle: EntityHandle, cut: CuttingLine) -> SplitOutcome:
        def build(record: EntityRecord, adapter: KindAdapter, cfg: SplitConfig) -> _Plan:
            profile = _expect(record, PlanarProfile)
            result = split_profile(profile, cut, cfg)

            def assign(items: Sequence[HostedItem], created: Sequence[EntityHandle]) -> List[HostedAssignment]:
                targets = {Side.A: created[0], Side.B: created[1]}
                return [
                    HostedAssignment(item, [(targets[side], item.anchor)])
                    for item, side in classify_hosted_items(items, cut)
                ]

            return _Plan(
                pieces=list(result.profiles),
                ignore=adapter.ignore_keys(cfg),
                assign=assign,
                level_refs=[record.level_ref, record.level_ref],
                dropped_holes=result.dropped_holes,
            )

        return self._run(handle, "split_planar", GeometryKind.PLANAR, build)

    def split_linear(
        self, handle: EntityHandle, stations: Iterable[float], *, levels: Optional[Sequence[Level]] = None
    ) -> SplitOutcome:
        station_list = [float(station) for station in stations]

        def pieces(span: LinearSpan, cfg: SplitConfig) -> List[LinearSpan]:
            return split_span(span, station_list, cfg)

        return self._run(handle, "split_linear", GeometryKind.LINEAR, self._linear_builder(pieces, levels))

    def split_linear_at_point(
        self, handle: EntityHandle, point: Sequence[float], *, levels: Optional[Sequence[Level]] = None
    ) -> SplitOutcome:
        def pieces(span: LinearSpan, cfg: SplitConfig) -> List[LinearSpan]:
            return split_span_at_point(span, point, cfg)

        return self._run(handle, "split_linear_at_point", GeometryKind.LINEAR, self._linear_builder(pieces, levels))

    def split_linear_at_cut(
        self, handle: EntityHandle, cut: CuttingLine, *, levels: Optional[Sequence[Level]] = None
    ) -> SplitOutcome:
        def pieces(span: LinearSpan, cfg: SplitConfig) -> List[LinearSpan]:
            (station,) = stations_from_cut(span, cut, cfg)
            return split_span_at_point(span, span.point_at(station), cfg)

        return self._run(handle, "split_linear_at_cut", GeometryKind.LINEAR, self._linear_builder(pieces, levels))

    def split_linear_at_levels(self, handle: EntityHandle, levels: Sequence[Level]) -> SplitOutcome:
        """Cut an element at every level elevation it passes.

        Vertical runs (risers, columns) are cut along their axis.  Stacked
        kinds such as walls keep their location line and are cut along their
        height, from the base and top constraints stored in their attributes.
        """

        level_list = list(levels)

        def pieces(span: LinearSpan, cfg: SplitConfig) -> List[LinearSpan]:
            stations = stations_from_elevations(span, [level.elevation for level in level_list], cfg)
            return split_span(span, stations, cfg)

        along_axis = self._linear_builder(pieces, level_list)
        along_height = self._stacked_builder(level_list)

        def build(record: EntityRecord, adapter: KindAdapter, cfg: SplitConfig) -> _Plan:
            if adapter.stacked:
                return along_height(record, adapter, cfg)
            return along_axis(record, adapter, cfg)

        return self._run(handle, "split_linear_at_levels", GeometryKind.LINEAR, build)

    def split_layers(self, handle: EntityHandle) -> SplitOutcome:
        """Replace a compound floor, ceiling, roof or wall with one element per layer.

        Each layer gets its own type and offset; marks are not copied.
        Hosted items move onto the first (top or exterior) layer.
        """

        def build(record: EntityRecord, adapter: KindAdapter, cfg: SplitConfig) -> _Plan:
            if adapter.layer_anchor is None:
                raise InvalidCutGeometry(f"{record.kind} elements have no layers to separate")
            key = adapter.layer_offset_key
            offset = _real(record.attributes, key)
            separation = separate_layers(record.layers, adapter.layer_anchor, offset, record.type_ref, cfg)
            layers = separation.pieces

            if adapter.layer_anchor is LayerAnchor.LATERAL:
                span = _expect(record, LinearSpan)
                if span.is_vertical(cfg.vertical_threshold):
                    raise InvalidCutGeometry(f"{record.kind} {record.handle} has no plan direction to offset across")
                pieces: List[Any] = [span.offset_across(layer.offset) for layer in layers]
            else:
                pieces = [_expect(record, PlanarProfile)] * len(layers)

            def finish(
                index: int, bag: AttributeBag, source: AttributeBag, diagnostics: List[TransferDiagnostic]
            ) -> None:
                if key and adapter.layer_anchor is not LayerAnchor.LATERAL:
                    _write(bag, key, layers[index].offset, diagnostics)
                if "thickness" in source:
                    _write(bag, "thickness", layers[index].layer.thickness, diagnostics)

            def assign(items: Sequence[HostedItem], created: Sequence[EntityHandle]) -> List[HostedAssignment]:
                assignments = []
                for item in items:
                    targets = created if item.spans_host else created[:1]
                    assignments.append(HostedAssignment(item, [(target, item.anchor) for target in targets]))
                return assignments

            return _Plan(
                pieces=pieces,
                ignore=adapter.layer_ignore_keys(cfg),
                assign=assign,
                level_refs=[record.level_ref] * len(layers),
                finish=finish,
                type_refs=[layer.type_ref for layer in layers],
                skipped_layers=separation.skipped,
            )

        return self._run(handle, "split_layers", None, build)

    # ------------------------------------------------------------------
    # linear plan
    def _linear_builder(
        self,
        cut_span: Callable[[LinearSpan, SplitConfig], List[LinearSpan]],
        levels: Optional[Sequence[Level]],
    ) -> _Builder:
        def build(record: EntityRecord, adapter: KindAdapter, cfg: SplitConfig) -> _Plan:
            span = _expect(record, LinearSpan)
            if adapter.vertical_only and not span.is_vertical(cfg.vertical_threshold):
                raise InvalidCutGeometry(f"{adapter.name} elements can only be split when vertical")
            segments = cut_span(span, cfg)

            placements: List[Optional[SegmentPlacement]] = []
            if levels and not adapter.stacked:
                for segment in segments:
                    bottom, top = sorted((segment.start[2], segment.end[2]))
                    placements.append(place_segment(levels, bottom, top, cfg.tolerance))
            use_levels = bool(placements) and all(placement is not None for placement in placements)
            if placements and not use_levels:
                logger.warning("No host level below some pieces of %s; keeping source levels", record.handle)

            ignore = adapter.ignore_keys(cfg)
            if not use_levels:
                ignore = ignore - adapter.placement_keys

            def finish(
                index: int, bag: AttributeBag, source: AttributeBag, diagnostics: List[TransferDiagnostic]
            ) -> None:
                last = len(segments) - 1
                if adapter.start_key and adapter.start_key in source:
                    value = source[adapter.start_key] if index == 0 else _zero(source.kind_of(adapter.start_key))
                    _write(bag, adapter.start_key, value, diagnostics)
                if adapter.end_key and adapter.end_key in source:
                    value = source[adapter.end_key] if index == last else _zero(source.kind_of(adapter.end_key))
                    _write(bag, adapter.end_key, value, diagnostics)
                if use_levels:
                    _write_placement(bag, adapter, placements[index], diagnostics)

            def assign(items: Sequence[HostedItem], created: Sequence[EntityHandle]) -> List[HostedAssignment]:
                assignments = []
                for item, indices in classify_along_spans(items, segments, cfg.tolerance):
                    assignments.append(
                        HostedAssignment(item, [(created[i], _anchor_on(item, segments[i])) for i in indices])
                    )
                return assignments

            if use_levels:
                level_refs = [placement.base_level.ref for placement in placements]  # type: ignore[union-attr]
            else:
                level_refs = [record.level_ref] * len(segments)
            return _Plan(segments, ignore, assign, level_refs, finish)

        return build

    def _stacked_builder(self, levels: Sequence[Level]) -> _Builder:
        def build(record: EntityRecord, adapter: KindAdapter, cfg: SplitConfig) -> _Plan:
            span = _expect(record, LinearSpan)
            bottom, top = _vertical_extent(record, adapter, levels)
            bands = stacked_bands(bottom, top, levels, cfg)
            placements = [place_segment(levels, low, high, cfg.tolerance) for low, high in bands]
            if any(placement is None for placement in placements):
                raise InvalidCutGeometry(f"no level at or below the base of {record.kind} {record.handle}")
            pieces = [span.at_elevation(low) for low, _ in bands]

            ignore = adapter.ignore_keys(cfg)
            if adapter.height_key:
                ignore = ignore | {adapter.height_key}

            def finish(
                index: int, bag: AttributeBag, source: AttributeBag, diagnostics: List[TransferDiagnostic]
            ) -> None:
                _write_placement(bag, adapter, placements[index], diagnostics)
                if adapter.height_key and adapter.height_key in source:
                    low, high = bands[index]
                    _write(bag, adapter.height_key, high - low, diagnostics)

            def assign(items: Sequence[HostedItem], created: Sequence[EntityHandle]) -> List[HostedAssignment]:
                assignments = []
                for item, indices in classify_by_elevation(items, bands, cfg.tolerance):
                    assignments.append(
                        HostedAssignment(item, [(created[i], _anchor_in_band(item, bands[i])) for i in indices])
                    )
                return assignments

            level_refs = [placement.base_level.ref for placement in placements]  # type: ignore[union-attr]
            return _Plan(pieces, ignore, assign, level_refs, finish)

        return build

    # ------------------------------------------------------------------
    # run
    def _run(
        self, handle: EntityHandle, operation: str, geometry: Optional[GeometryKind], build: _Builder
    ) -> SplitOutcome:
        outcome = SplitOutcome(handle, operation)
        try:
            with self.host.transaction(f"{operation} {handle}"):
                self._execute(outcome, geometry, build)
        except NoSplitNeeded as exc:
            outcome.error = exc
            outcome.advance(SplitState.UNCHANGED)
            logger.info("%s of %s: nothing to split (%s)", operation, handle, exc)
        except SplitError as exc:
            outcome.error = exc
            outcome.advance(SplitState.ABORTED)
            logger.warning("%s of %s aborted: %s", operation, handle, exc)
        else:
            logger.info("%s of %s produced %s", operation, handle, outcome.created)
        return outcome

    def _execute(self, outcome: SplitOutcome, geometry: Optional[GeometryKind], build: _Builder) -> None:
        host = self.host
        try:
            record = host.describe_entity(outcome.source)
        except HostError as exc:
            raise InvalidCutGeometry(f"cannot read entity {outcome.source}: {exc}") from exc
        if geometry is None:
            geometry = GeometryKind.PLANAR if isinstance(record.geometry, PlanarProfile) else GeometryKind.LINEAR
        adapter = get_adapter(record.kind, geometry)
        cfg = adapter.configure(self.config)
        source_bag = record.attributes.snapshot()
        items = host.find_hosted_items(outcome.source)
        for item in items:
            item.attributes = item.attributes.snapshot()
        outcome.advance(SplitState.VALIDATED)

        plan = build(record, adapter, cfg)
        outcome.dropped_holes = list(plan.dropped_holes)
        outcome.skipped_layers = list(plan.skipped_layers)
        outcome.advance(SplitState.GEOMETRY_SPLIT)

        try:
            self._create(outcome, record, plan)
            outcome.advance(SplitState.ENTITIES_CREATED)

            self._copy_attributes(outcome, source_bag, plan)
            outcome.advance(SplitState.ATTRIBUTES_COPIED)

            self._move_hosted(outcome, items, plan, cfg)
            outcome.advance(SplitState.HOSTED_CONTENT_MOVED)

            try:
                host.delete_entity(outcome.source)
            except HostError as exc:
                raise EntityCreationFailed(f"source {outcome.source} could not be replaced: {exc}") from exc
            outcome.advance(SplitState.SOURCE_DELETED)
        except SplitError:
            self._discard(outcome)
            raise

    def _create(self, outcome: SplitOutcome, record: EntityRecord, plan: _Plan) -> None:
        type_refs = plan.type_refs or [record.type_ref] * len(plan.pieces)
        for piece, level_ref, type_ref in zip(plan.pieces, plan.level_refs, type_refs):
            try:
                if isinstance(piece, PlanarProfile):
                    new = self.host.create_planar_element(piece, type_ref, level_ref, kind=record.kind)
                else:
                    new = self.host.create_linear_element(piece, type_ref, level_ref, kind=record.kind)
            except HostError as exc:
                raise EntityCreationFailed(
                    f"host refused piece {len(outcome.created) + 1} of {len(plan.pieces)}: {exc}",
                    detail={"created": list(outcome.created)},
                ) from exc
            outcome.created.append(new)

    def _copy_attributes(self, outcome: SplitOutcome, source: AttributeBag, plan: _Plan) -> None:
        for index, new in enumerate(outcome.created):
            try:
                bag = self.host.get_attribute_bag(new)
                transfer_attributes(source, bag, plan.ignore, outcome.diagnostics)
                if plan.finish is not None:
                    plan.finish(index, bag, source, outcome.diagnostics)
                self.host.apply_attribute_bag(new, bag)
            except HostError as exc:
                raise EntityCreationFailed(f"attributes of {new} could not be written: {exc}") from exc

    def _move_hosted(
        self, outcome: SplitOutcome, items: Sequence[HostedItem], plan: _Plan, cfg: SplitConfig
    ) -> None:
        if not items:
            return
        result = rehost_items(self.host, plan.assign(items, outcome.created), cfg.identity_keys, outcome.diagnostics)
        outcome.rehosted = result.placed
        outcome.reassignment_failures = result.failures
        if result.failures and cfg.abort_on_reassignment_failure:
            raise ReassignmentFailed(
                f"{len(result.failures)} hosted item(s) could not be moved",
                detail={"items": [failure.item.handle for failure in result.failures]},
            )
        for failure in result.failures:
            logger.warning("Hosted item %s left in place: %s", failure.item.handle, failure.reason)
        for old, copies in result.partial().items():
            for handle in copies:
                try:
                    self.host.delete_entity(handle)
                except HostError as exc:
                    raise ReassignmentFailed(f"partial copy {handle} of {old} could not be removed: {exc}") from exc
                outcome.discarded.append(handle)
            del outcome.rehosted[old]
        for old in result.originals_to_delete:
            try:
                self.host.delete_entity(old)
            except HostError as exc:
                raise ReassignmentFailed(f"hosted item {old} could not be removed: {exc}") from exc

    def _discard(self, outcome: SplitOutcome) -> None:
        placed = [handle for handles in outcome.rehosted.values() for handle in handles]
        for handle in placed + outcome.created:
            try:
                self.host.delete_entity(handle)
            except HostError as exc:
                logger.warning("Could not discard %s; leaving it to the transaction rollback: %s", handle, exc)
                continue
            outcome.discarded.append(handle)
        outcome.created = []
        outcome.rehosted = {}


def _expect(record: EntityRecord, geometry_type: type) -> Any:
    if not isinstance(record.geometry, geometry_type):
        raise InvalidCutGeometry(
            f"{record.kind} {record.handle} has {type(record.geometry).__name__} geometry, "
            f"expected {geometry_type.__name__}"
        )
    return record.geometry


def _anchor_on(item: HostedItem, segment: LinearSpan) -> Point:
    if item.spans_host:
        return segment.point_at(segment.length / 2.0)
    return item.anchor


def _anchor_in_band(item: HostedItem, band: Tuple[float, float]) -> Point:
    if item.spans_host:
        x, y, _ = item.anchor
        return (x, y, (band[0] + band[1]) / 2.0)
    return item.anchor


def _real(bag: AttributeBag, key: Optional[str], default: Optional[float] = 0.0) -> Optional[float]:
    if key and key in bag and bag[key] is not None:
        return float(bag[key])
    return default


def _level_of(bag: AttributeBag, key: Optional[str], levels: Sequence[Level]) -> Optional[Level]:
    value = bag[key] if key and key in bag else None
    if isinstance(value, Reference):
        return find_level(levels, value.id)
    return None


def _vertical_extent(record: EntityRecord, adapter: KindAdapter, levels: Sequence[Level]) -> Tuple[float, float]:
    """Base and top elevation of a stacked element.

    The base is the base level plus offset (the location line's elevation
    when the base level is not among ``levels``); the top is the top level
    plus offset, or the base plus the unconnected height.
    """

    bag = record.attributes
    bottom = record.geometry.start[2]
    base = _level_of(bag, adapter.base_level_key, levels)
    if base is not None:
        bottom = base.elevation + _real(bag, adapter.base_offset_key)
    upper = _level_of(bag, adapter.top_level_key, levels)
    if upper is not None:
        return bottom, upper.elevation + _real(bag, adapter.top_offset_key)
    height = _real(bag, adapter.height_key, None)
    if height is None:
        raise InvalidCutGeometry(f"{record.kind} {record.handle} has neither a top level nor a height")
    return bottom, bottom + height


def _zero(kind: Optional[AttributeKind]) -> Any:
    return 0 if kind is AttributeKind.INTEGER else 0.0


def _write(bag: AttributeBag, name: str, value: Any, diagnostics: List[TransferDiagnostic]) -> None:
    try:
        if name in bag:
            bag.set(name, value)
        else:
            bag.define(name, infer_kind(value), value)
    except AttributeWriteError as exc:
        logger.debug("Could not write '%s': %s", name, exc)
        diagnostics.append(TransferDiagnostic(name, "write-failed", str(exc)))


def _write_placement(
    bag: AttributeBag,
    adapter: KindAdapter,
    placement: Optional[SegmentPlacement],
    diagnostics: List[TransferDiagnostic],
) -> None:
    if placement is None:
        return
    values = (
        (adapter.base_level_key, Reference(placement.base_level.ref)),
        (adapter.base_offset_key, placement.base_offset),
        (adapter.top_level_key, Reference(placement.top_level.ref)),
        (adapter.top_offset_key, placement.top_offset),
    )
    for name, value in values:
        if name:
            _write(bag, name, value, diagnostics)


apply_debug_logging(globals(), logger=logger, skip={"SplitOutcome"})


__all__ = ["SplitOrchestrator", "SplitOutcome", "SplitState"]
