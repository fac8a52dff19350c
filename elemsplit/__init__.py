from .errors import (
    SplitError,
    SplitErrorKind,
    InvalidCutGeometry,
    UnclosedLoop,
    DegenerateSegment,
    NoSplitNeeded,
    EntityCreationFailed,
    ReassignmentFailed,
    HostError,
)
from .config import EPSILON, HolePolicy, SplitConfig, get_split_config, set_split_config
from .geometry import BoundedCurve, CuttingLine, LineCurve, Loop, PlanarProfile, Point, Side, Vector
from .planar import DroppedHole, PlanarSplit, split_profile
from .linear import (
    LinearSpan,
    split_span,
    split_span_at_point,
    station_at_cut,
    stations_from_cut,
    stations_from_elevations,
)
from .levels import Level, SegmentPlacement, best_host_level, place_segment, stacked_bands
from .layers import Layer, LayerAnchor, LayerPiece, LayerSeparation, separate_layers
from .attributes import AttributeBag, AttributeKind, Reference, TransferDiagnostic, transfer_attributes
from .hosted import (
    HostedAssignment,
    HostedItem,
    ReassignmentFailure,
    classify_along_spans,
    classify_by_elevation,
    classify_hosted_items,
    rehost_items,
)
from .kinds import GeometryKind, KindAdapter, get_adapter, register_adapter
from .host import EntityRecord, InMemoryHost, SplitHost
from .orchestrator import SplitOrchestrator, SplitOutcome, SplitState

__all__ = [
    'SplitError',
    'SplitErrorKind',
    'InvalidCutGeometry',
    'UnclosedLoop',
    'DegenerateSegment',
    'NoSplitNeeded',
    'EntityCreationFailed',
    'ReassignmentFailed',
    'HostError',
    'EPSILON',
    'HolePolicy',
    'SplitConfig',
    'get_split_config',
    'set_split_config',
    'BoundedCurve',
    'CuttingLine',
    'LineCurve',
    'Loop',
    'PlanarProfile',
    'Point',
    'Side',
    'Vector',
    'DroppedHole',
    'PlanarSplit',
    'split_profile',
    'LinearSpan',
    'split_span',
    'split_span_at_point',
    'station_at_cut',
    'stations_from_cut',
    'stations_from_elevations',
    'Level',
    'SegmentPlacement',
    'best_host_level',
    'place_segment',
    'stacked_bands',
    'Layer',
    'LayerAnchor',
    'LayerPiece',
    'LayerSeparation',
    'separate_layers',
    'AttributeBag',
    'AttributeKind',
    'Reference',
    'TransferDiagnostic',
    'transfer_attributes',
    'HostedAssignment',
    'HostedItem',
    'ReassignmentFailure',
    'classify_along_spans',
    'classify_by_elevation',
    'classify_hosted_items',
    'rehost_items',
    'GeometryKind',
    'KindAdapter',
    'get_adapter',
    'register_adapter',
    'EntityRecord',
    'InMemoryHost',
    'SplitHost',
    'SplitOrchestrator',
    'SplitOutcome',
    'SplitState',
]
