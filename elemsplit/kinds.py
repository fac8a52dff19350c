"""Per-kind knowledge the orchestrator needs beyond pure geometry.

Each adapter names the attributes a host derives from geometry (never copied),
the end-condition attributes that only make sense on the outer ends of a run,
and where per-segment level placement is written.  Stacked kinds (walls)
split by levels along their height rather than their location line, and
layered kinds name what their offset attribute measures.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Optional

from .config import SplitConfig
from .layers import LayerAnchor


class GeometryKind(str, Enum):
    PLANAR = "planar"
    LINEAR = "linear"


@dataclass(frozen=True)
class KindAdapter:
    name: str
    geometry: GeometryKind
    derived_keys: FrozenSet[str] = field(default_factory=frozenset)
    start_key: Optional[str] = None
    end_key: Optional[str] = None
    base_level_key: Optional[str] = None
    base_offset_key: Optional[str] = None
    top_level_key: Optional[str] = None
    top_offset_key: Optional[str] = None
    clearance: Optional[float] = None
    short_segments: bool = False
    vertical_only: bool = False
    height_key: Optional[str] = None
    stacked: bool = False
    layer_anchor: Optional[LayerAnchor] = None
    layer_offset_key: Optional[str] = None

    @property
    def end_condition_keys(self) -> FrozenSet[str]:
        return frozenset(key for key in (self.start_key, self.end_key) if key)

    @property
    def placement_keys(self) -> FrozenSet[str]:
        keys = (self.base_level_key, self.base_offset_key, self.top_level_key, self.top_offset_key)
        return frozenset(key for key in keys if key)

    def ignore_keys(self, config: SplitConfig) -> FrozenSet[str]:
        """Keys never copied verbatim from the source onto a piece."""

        return config.identity_keys | self.derived_keys | self.end_condition_keys | self.placement_keys

    def layer_ignore_keys(self, config: SplitConfig) -> FrozenSet[str]:
        """Keys not copied when separating layers; each layer gets its own mark."""

        keys = config.identity_keys | self.derived_keys | _LAYER_IGNORE_KEYS
        return keys | {self.layer_offset_key} if self.layer_offset_key else keys

    def configure(self, config: SplitConfig) -> SplitConfig:
        """``config`` with this kind's end clearance applied."""

        if self.clearance is not None:
            return dataclasses.replace(config, clearance=self.clearance)
        if self.short_segments:
            return dataclasses.replace(config, clearance=config.min_segment_length)
        return config


_LINEAR_DERIVED = frozenset({"length", "start_offset", "end_offset", "slope"})
_PLANAR_DERIVED = frozenset({"area", "perimeter", "volume"})
_LAYER_IGNORE_KEYS = frozenset({"mark", "thickness"})


def _mep(name: str) -> KindAdapter:
    return KindAdapter(
        name,
        GeometryKind.LINEAR,
        derived_keys=_LINEAR_DERIVED,
        base_level_key="reference_level",
        base_offset_key="offset",
    )


def _slab(name: str, anchor: LayerAnchor, offset_key: str) -> KindAdapter:
    return KindAdapter(
        name,
        GeometryKind.PLANAR,
        derived_keys=_PLANAR_DERIVED,
        layer_anchor=anchor,
        layer_offset_key=offset_key,
    )


_REGISTRY: Dict[str, KindAdapter] = {
    "pipe": _mep("pipe"),
    "duct": _mep("duct"),
    "conduit": _mep("conduit"),
    "cable_tray": _mep("cable_tray"),
    "framing": KindAdapter(
        "framing",
        GeometryKind.LINEAR,
        derived_keys=_LINEAR_DERIVED | {"cut_length"},
        start_key="start_extension",
        end_key="end_extension",
        base_level_key="reference_level",
        clearance=0.01,
    ),
    "column": KindAdapter(
        "column",
        GeometryKind.LINEAR,
        derived_keys=frozenset({"length"}),
        base_level_key="base_level",
        base_offset_key="base_offset",
        top_level_key="top_level",
        top_offset_key="top_offset",
        vertical_only=True,
    ),
    "wall": KindAdapter(
        "wall",
        GeometryKind.LINEAR,
        derived_keys=frozenset({"length", "area", "volume"}),
        base_level_key="base_level",
        base_offset_key="base_offset",
        top_level_key="top_level",
        top_offset_key="top_offset",
        short_segments=True,
        height_key="unconnected_height",
        stacked=True,
        layer_anchor=LayerAnchor.LATERAL,
    ),
    "floor": _slab("floor", LayerAnchor.TOP, "height_offset"),
    "ceiling": _slab("ceiling", LayerAnchor.BOTTOM, "height_offset"),
    "roof": _slab("roof", LayerAnchor.BOTTOM, "base_offset"),
}


def register_adapter(adapter: KindAdapter) -> None:
    _REGISTRY[adapter.name] = adapter


def get_adapter(name: str, geometry: GeometryKind) -> KindAdapter:
    """Registered adapter for ``name``, or a bare one for unknown kinds."""

    adapter = _REGISTRY.get(name)
    if adapter is None:
        return KindAdapter(name, GeometryKind(geometry))
    return adapter


def known_kinds() -> FrozenSet[str]:
    return frozenset(_REGISTRY)


__all__ = [
    "GeometryKind",
    "KindAdapter",
    "get_adapter",
    "known_kinds",
    "register_adapter",
]
