"""Error kinds raised by the splitting core."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class SplitErrorKind(str, Enum):
    INVALID_CUT_GEOMETRY = "invalid-cut-geometry"
    UNCLOSED_LOOP = "unclosed-loop"
    DEGENERATE_SEGMENT = "degenerate-segment"
    NO_SPLIT_NEEDED = "no-split-needed"
    ENTITY_CREATION_FAILED = "entity-creation-failed"
    REASSIGNMENT_FAILED = "reassignment-failed"


class SplitError(Exception):
    """Base class for every failure of a split operation.

    ``kind`` identifies the failure for callers that prefer matching on a
    value over ``isinstance`` checks; ``detail`` carries optional context
    (intersection counts, offending handles, ...).
    """

    kind: SplitErrorKind = SplitErrorKind.INVALID_CUT_GEOMETRY

    def __init__(self, message: str, *, detail: Optional[Any] = None):
        super().__init__(message)
        self.detail = detail

    @property
    def is_failure(self) -> bool:
        return self.kind is not SplitErrorKind.NO_SPLIT_NEEDED


class InvalidCutGeometry(SplitError):
    """The cutting locus does not cleanly divide the element."""

    kind = SplitErrorKind.INVALID_CUT_GEOMETRY


class UnclosedLoop(SplitError):
    """Greedy endpoint chaining could not close a boundary."""

    kind = SplitErrorKind.UNCLOSED_LOOP


class DegenerateSegment(SplitError):
    """A cut lies within the clearance of an endpoint."""

    kind = SplitErrorKind.DEGENERATE_SEGMENT


class NoSplitNeeded(SplitError):
    """Nothing to split; the element stays as it is."""

    kind = SplitErrorKind.NO_SPLIT_NEEDED


class EntityCreationFailed(SplitError):
    kind = SplitErrorKind.ENTITY_CREATION_FAILED


class ReassignmentFailed(SplitError):
    kind = SplitErrorKind.REASSIGNMENT_FAILED


class HostError(RuntimeError):
    """Raised by a host collaborator that refuses a request."""


__all__ = [
    "DegenerateSegment",
    "EntityCreationFailed",
    "HostError",
    "InvalidCutGeometry",
    "NoSplitNeeded",
    "ReassignmentFailed",
    "SplitError",
    "SplitErrorKind",
    "UnclosedLoop",
]
