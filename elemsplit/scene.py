"""JSON scenes for the command-line driver.

A scene describes elements, hosted items and levels, plus one split
operation::

    {
      "levels": [{"ref": "L1", "elevation": 0.0}],
      "elements": [
        {"id": "slab", "kind": "floor", "level": "L1",
         "outer": [[0, 0], [10, 0], [10, 10], [0, 10]],
         "holes": [[[3, 3], [5, 3], [5, 5], [3, 5]]],
         "attributes": {"mark": "S-1", "area": 100.0}, "read_only": ["area"]}
      ],
      "hosted": [{"host": "slab", "anchor": [1, 1, 0], "type": "drain"}],
      "operation": {"op": "split_planar", "element": "slab", "cut": [[4, -5], [4, 15]]}
    }

Linear elements use ``"start"``/``"end"`` (and an optional ``"section"``)
instead of ``"outer"``.  Compound elements list their ``"layers"`` from the
top or exterior face, each with a ``"thickness"`` and optional ``"material"``,
``"type"`` and ``"variable"``.  Attribute values ``{"ref": ...}`` become
:class:`~elemsplit.attributes.Reference` values.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from .attributes import AttributeBag, Reference
from .config import SplitConfig, get_split_config
from .geometry.curves import CuttingLine, Loop, PlanarProfile
from .host import EntityHandle, InMemoryHost
from .kinds import known_kinds
from .layers import Layer
from .levels import Level
from .linear import LinearSpan
from .orchestrator import SplitOrchestrator, SplitOutcome

logger = logging.getLogger(__name__)

OPERATIONS = (
    "split_planar",
    "split_linear",
    "split_linear_at_point",
    "split_linear_at_cut",
    "split_linear_at_levels",
    "split_layers",
)


class SceneError(ValueError):
    """Raised for malformed scene documents."""


@dataclass
class Scene:
    host: InMemoryHost
    handles: Dict[str, EntityHandle] = field(default_factory=dict)
    levels: List[Level] = field(default_factory=list)
    operation: Dict[str, Any] = field(default_factory=dict)
    config: SplitConfig = field(default_factory=get_split_config)

    def handle(self, name: str) -> EntityHandle:
        try:
            return self.handles[name]
        except KeyError as exc:
            raise SceneError(f"unknown element '{name}'") from exc


def _attribute_bag(data: Mapping[str, Any]) -> AttributeBag:
    values = {}
    for name, value in dict(data.get("attributes", {})).items():
        if isinstance(value, Mapping) and "ref" in value:
            value = Reference(value["ref"])
        values[name] = value
    return AttributeBag.from_values(values, read_only=data.get("read_only", ()))


def _config(data: Mapping[str, Any]) -> SplitConfig:
    base = get_split_config()
    known = {f.name for f in dataclasses.fields(SplitConfig)}
    unknown = set(data) - known
    if unknown:
        raise SceneError(f"unknown config field(s): {', '.join(sorted(unknown))}")
    try:
        return dataclasses.replace(base, **data)
    except ValueError as exc:
        raise SceneError(f"invalid config: {exc}") from exc


def _geometry(data: Mapping[str, Any]) -> Union[PlanarProfile, LinearSpan]:
    if "outer" in data:
        outer = Loop.from_points(data["outer"])
        holes = [Loop.from_points(points) for points in data.get("holes", [])]
        return PlanarProfile(outer, holes)
    if "start" in data and "end" in data:
        return LinearSpan(data["start"], data["end"], data.get("section"))
    raise SceneError(f"element '{data.get('id')}' needs either 'outer' or 'start'/'end'")


def _layers(data: Mapping[str, Any]) -> List[Layer]:
    layers = []
    for entry in data.get("layers", []):
        try:
            thickness = float(entry["thickness"])
        except (KeyError, TypeError, ValueError) as exc:
            raise SceneError(f"layer of element '{data.get('id')}' needs a numeric thickness") from exc
        layers.append(
            Layer(thickness, entry.get("material", ""), entry.get("type"), bool(entry.get("variable", False)))
        )
    return layers


def build_scene(document: Mapping[str, Any]) -> Scene:
    config = _config(document.get("config", {}))
    host = InMemoryHost(tolerance=config.tolerance)
    scene = Scene(host=host, config=config)

    for entry in document.get("levels", []):
        scene.levels.append(Level(entry["ref"], float(entry["elevation"]), entry.get("name", "")))

    for entry in document.get("elements", []):
        try:
            name = str(entry["id"])
            kind = entry["kind"]
        except KeyError as exc:
            raise SceneError(f"element is missing {exc}") from exc
        if name in scene.handles:
            raise SceneError(f"duplicate element id '{name}'")
        if kind not in known_kinds():
            logger.warning("Element '%s' has unknown kind '%s'; no kind rules apply", name, kind)
        scene.handles[name] = host.add_entity(
            kind,
            _geometry(entry),
            type_ref=entry.get("type"),
            level_ref=entry.get("level"),
            attributes=_attribute_bag(entry),
            layers=_layers(entry),
        )

    for entry in document.get("hosted", []):
        host.add_hosted_item(
            scene.handle(str(entry["host"])),
            entry["anchor"],
            type_ref=entry.get("type"),
            orientation=entry.get("orientation", (1.0, 0.0, 0.0)),
            attributes=_attribute_bag(entry),
            spans_host=bool(entry.get("spans_host", False)),
        )

    scene.operation = dict(document.get("operation", {}))
    if scene.operation.get("op") not in OPERATIONS:
        raise SceneError(f"operation must be one of {', '.join(OPERATIONS)}")
    logger.info(
        "Loaded scene with %d element(s), %d hosted item(s), %d level(s)",
        len(host.entities),
        len(host.hosted),
        len(scene.levels),
    )
    return scene


def load_scene(path: Union[str, Path]) -> Scene:
    with open(path) as fin:
        try:
            document = json.load(fin)
        except json.JSONDecodeError as exc:
            raise SceneError(f"{path}: {exc}") from exc
    return build_scene(document)


def _cut(value: Any) -> CuttingLine:
    try:
        start, end = value
    except (TypeError, ValueError) as exc:
        raise SceneError("a cut is given as two points") from exc
    return CuttingLine.through(start, end)


def _selected_levels(scene: Scene, refs: Optional[List[Any]]) -> List[Level]:
    if refs is None:
        return list(scene.levels)
    by_ref = {level.ref: level for level in scene.levels}
    missing = [ref for ref in refs if ref not in by_ref]
    if missing:
        raise SceneError(f"unknown level(s): {missing}")
    return [by_ref[ref] for ref in refs]


def run_scene(scene: Scene) -> SplitOutcome:
    """Run the scene's operation against its host."""

    op = scene.operation
    handle = scene.handle(str(op.get("element")))
    orchestrator = SplitOrchestrator(scene.host, scene.config)
    name = op["op"]
    if name == "split_planar":
        return orchestrator.split_planar(handle, _cut(op.get("cut")))
    if name == "split_layers":
        return orchestrator.split_layers(handle)
    if name == "split_linear_at_levels":
        return orchestrator.split_linear_at_levels(handle, _selected_levels(scene, op.get("levels")))

    levels = _selected_levels(scene, op["levels"]) if "levels" in op else None
    if name == "split_linear":
        return orchestrator.split_linear(handle, op.get("stations", []), levels=levels)
    if name == "split_linear_at_point":
        return orchestrator.split_linear_at_point(handle, op["point"], levels=levels)
    return orchestrator.split_linear_at_cut(handle, _cut(op.get("cut")), levels=levels)


__all__ = ["OPERATIONS", "Scene", "SceneError", "build_scene", "load_scene", "run_scene"]
