"""Separation of compound elements into one element per layer.

Layers are listed from the top (floors, ceilings, roofs) or from the exterior
face (walls).  Each layer that can stand on its own becomes a piece with its
own type and offset; variable-thickness layers are skipped but still take up
their thickness.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Optional

from .config import SplitConfig, resolve_config
from .errors import DegenerateSegment, NoSplitNeeded
from .logging_utils import apply_debug_logging

logger = logging.getLogger(__name__)


class LayerAnchor(str, Enum):
    """What the element's offset attribute measures."""

    TOP = "top"
    BOTTOM = "bottom"
    LATERAL = "lateral"


@dataclass(frozen=True)
class Layer:
    thickness: float
    material: str = ""
    type_ref: Any = None
    variable: bool = False


@dataclass(frozen=True)
class LayerPiece:
    """One separated layer.

    ``offset`` is the new value of the element's offset attribute for
    ``TOP``/``BOTTOM`` anchors, and the distance of the layer centre from the
    location line for ``LATERAL`` ones.
    """

    index: int
    layer: Layer
    type_ref: Any
    offset: float


@dataclass
class LayerSeparation:
    pieces: List[LayerPiece] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)


def layer_type_ref(source_type: Any, layer: Layer, index: int) -> Any:
    if layer.type_ref is not None:
        return layer.type_ref
    return f"{source_type}_Layer_{index + 1}_{layer.material or 'Unnamed'}"


def separate_layers(
    layers: Iterable[Layer],
    anchor: LayerAnchor,
    offset: float = 0.0,
    source_type: Any = None,
    config: Optional[SplitConfig] = None,
) -> LayerSeparation:
    """Type and offset of every layer of a compound element.

    Raises :class:`NoSplitNeeded` for single-layer elements and when no
    layer can be separated.
    """

    cfg = resolve_config(config)
    stack = list(layers)
    if len(stack) < 2:
        raise NoSplitNeeded(f"element has {len(stack)} layer(s)")
    for index, layer in enumerate(stack):
        if layer.thickness <= cfg.tolerance:
            raise DegenerateSegment(f"layer {index + 1} has no thickness", detail={"layer": index})

    total = sum(layer.thickness for layer in stack)
    result = LayerSeparation()
    running = 0.0
    for index, layer in enumerate(stack):
        if anchor is LayerAnchor.TOP:
            value = offset - running
        elif anchor is LayerAnchor.BOTTOM:
            value = offset + total - running - layer.thickness
        else:
            value = -total / 2.0 + running + layer.thickness / 2.0
        running += layer.thickness
        if layer.variable:
            logger.info("Skipping variable layer %d (%s)", index + 1, layer.material or "unnamed")
            result.skipped.append(index)
            continue
        result.pieces.append(LayerPiece(index, layer, layer_type_ref(source_type, layer, index), value))

    if not result.pieces:
        raise NoSplitNeeded("no layer can stand as its own element")
    return result


apply_debug_logging(globals(), logger=logger)


__all__ = [
    "Layer",
    "LayerAnchor",
    "LayerPiece",
    "LayerSeparation",
    "layer_type_ref",
    "separate_layers",
]
