"""The host collaborator: where split results are materialized.

:class:`SplitHost` is the narrow interface the orchestrator talks to.
:class:`InMemoryHost` implements it over plain dictionaries and is used by the
tests and the command-line driver.
"""

from __future__ import annotations

import copy
import itertools
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, ContextManager, Dict, Iterator, List, Optional, Protocol, Sequence, Union

from .attributes import AttributeBag, AttributeKind
from .config import EPSILON
from .errors import HostError
from .geometry.curves import PlanarProfile
from .geometry.primitives import Point, Vector, as_point
from .hosted import HostedItem
from .layers import Layer
from .linear import LinearSpan

logger = logging.getLogger(__name__)

EntityHandle = int
Geometry = Union[PlanarProfile, LinearSpan]


@dataclass
class EntityRecord:
    handle: EntityHandle
    kind: str
    geometry: Geometry
    type_ref: Any = None
    level_ref: Any = None
    attributes: AttributeBag = field(default_factory=AttributeBag)
    layers: List[Layer] = field(default_factory=list)


class SplitHost(Protocol):
    def describe_entity(self, handle: EntityHandle) -> EntityRecord:
        ...

    def create_planar_element(
        self, profile: PlanarProfile, type_ref: Any, level_ref: Any, *, kind: str
    ) -> EntityHandle:
        ...

    def create_linear_element(self, span: LinearSpan, type_ref: Any, level_ref: Any, *, kind: str) -> EntityHandle:
        ...

    def get_attribute_bag(self, handle: EntityHandle) -> AttributeBag:
        ...

    def apply_attribute_bag(self, handle: EntityHandle, bag: AttributeBag) -> None:
        ...

    def delete_entity(self, handle: EntityHandle) -> None:
        ...

    def find_hosted_items(self, handle: EntityHandle) -> List[HostedItem]:
        ...

    def place_hosted_item(
        self, target: EntityHandle, anchor: Point, orientation: Vector, type_ref: Any
    ) -> EntityHandle:
        ...

    def transaction(self, name: str) -> ContextManager[None]:
        ...


class InMemoryHost:
    """Dictionary-backed host.

    New entities get an attribute bag shaped like the first entity registered
    for their kind, with values cleared and ``length``/``area`` recomputed
    from geometry.  Hosted item templates work the same way per ``type_ref``.

    :meth:`inject_failure` makes the N-th call of ``create``, ``place``,
    ``apply`` or ``delete`` raise :class:`HostError`.
    """

    def __init__(self, tolerance: float = EPSILON):
        self.tolerance = tolerance
        self.entities: Dict[EntityHandle, EntityRecord] = {}
        self.hosted: Dict[EntityHandle, HostedItem] = {}
        self.schemas: Dict[str, AttributeBag] = {}
        self.item_schemas: Dict[Any, AttributeBag] = {}
        self.committed: List[str] = []
        self.rolled_back: List[str] = []
        self._ids = itertools.count(1)
        self._failures: Dict[str, int] = {}

    # ------------------------------------------------------------------
    # setup helpers
    def add_entity(
        self,
        kind: str,
        geometry: Geometry,
        *,
        type_ref: Any = None,
        level_ref: Any = None,
        attributes: Optional[AttributeBag] = None,
        layers: Sequence[Layer] = (),
    ) -> EntityHandle:
        bag = attributes if attributes is not None else AttributeBag()
        self.schemas.setdefault(kind, _blank(bag))
        handle = next(self._ids)
        self.entities[handle] = EntityRecord(handle, kind, geometry, type_ref, level_ref, bag, list(layers))
        _derive(bag, geometry)
        return handle

    def add_hosted_item(
        self,
        host: EntityHandle,
        anchor: Sequence[float],
        *,
        type_ref: Any = None,
        orientation: Sequence[float] = (1.0, 0.0, 0.0),
        attributes: Optional[AttributeBag] = None,
        spans_host: bool = False,
    ) -> EntityHandle:
        bag = attributes if attributes is not None else AttributeBag()
        self.item_schemas.setdefault(type_ref, _blank(bag))
        handle = next(self._ids)
        self.hosted[handle] = HostedItem(
            handle=handle,
            anchor=as_point(anchor),
            host=host,
            type_ref=type_ref,
            orientation=as_point(orientation),
            attributes=bag,
            spans_host=spans_host,
        )
        return handle

    def inject_failure(self, operation: str, *, after: int = 0) -> None:
        """Fail the ``operation`` call that follows ``after`` successful ones."""

        if operation not in ("create", "place", "apply", "delete"):
            raise ValueError(f"unknown operation '{operation}'")
        self._failures[operation] = after

    def _check(self, operation: str) -> None:
        remaining = self._failures.get(operation)
        if remaining is None:
            return
        if remaining == 0:
            del self._failures[operation]
            raise HostError(f"injected failure on {operation}")
        self._failures[operation] = remaining - 1

    # ------------------------------------------------------------------
    # SplitHost
    def describe_entity(self, handle: EntityHandle) -> EntityRecord:
        try:
            return copy.deepcopy(self.entities[handle])
        except KeyError as exc:
            raise HostError(f"unknown entity {handle}") from exc

    def create_planar_element(
        self, profile: PlanarProfile, type_ref: Any, level_ref: Any, *, kind: str
    ) -> EntityHandle:
        self._check("create")
        return self._create(kind, profile, type_ref, level_ref)

    def create_linear_element(self, span: LinearSpan, type_ref: Any, level_ref: Any, *, kind: str) -> EntityHandle:
        self._check("create")
        if span.length <= self.tolerance:
            raise HostError("refusing a zero-length element")
        return self._create(kind, span, type_ref, level_ref)

    def _create(self, kind: str, geometry: Geometry, type_ref: Any, level_ref: Any) -> EntityHandle:
        schema = self.schemas.get(kind, AttributeBag())
        bag = schema.snapshot()
        _derive(bag, geometry)
        handle = next(self._ids)
        self.entities[handle] = EntityRecord(handle, kind, geometry, type_ref, level_ref, bag)
        logger.debug("Created %s %d", kind, handle)
        return handle

    def get_attribute_bag(self, handle: EntityHandle) -> AttributeBag:
        return self._bag(handle).snapshot()

    def apply_attribute_bag(self, handle: EntityHandle, bag: AttributeBag) -> None:
        self._check("apply")
        current = self._bag(handle)
        current.attributes = bag.snapshot().attributes

    def _bag(self, handle: EntityHandle) -> AttributeBag:
        if handle in self.entities:
            return self.entities[handle].attributes
        if handle in self.hosted:
            return self.hosted[handle].attributes
        raise HostError(f"unknown entity {handle}")

    def delete_entity(self, handle: EntityHandle) -> None:
        self._check("delete")
        if handle in self.entities:
            del self.entities[handle]
        elif handle in self.hosted:
            del self.hosted[handle]
        else:
            raise HostError(f"unknown entity {handle}")

    def find_hosted_items(self, handle: EntityHandle) -> List[HostedItem]:
        return [copy.deepcopy(item) for item in self.hosted.values() if item.host == handle]

    def place_hosted_item(
        self, target: EntityHandle, anchor: Point, orientation: Vector, type_ref: Any
    ) -> EntityHandle:
        self._check("place")
        record = self.entities.get(target)
        if record is None:
            raise HostError(f"unknown target {target}")
        if not self._accepts(record.geometry, anchor):
            raise HostError(f"anchor {anchor} does not lie on {record.kind} {target}")
        handle = next(self._ids)
        schema = self.item_schemas.get(type_ref, AttributeBag())
        self.hosted[handle] = HostedItem(
            handle=handle,
            anchor=as_point(anchor),
            host=target,
            type_ref=type_ref,
            orientation=as_point(orientation),
            attributes=schema.snapshot(),
        )
        return handle

    def _accepts(self, geometry: Geometry, anchor: Point) -> bool:
        if isinstance(geometry, PlanarProfile):
            return geometry.contains(anchor)
        station = geometry.station_of(anchor)
        return -self.tolerance <= station <= geometry.length + self.tolerance

    @contextmanager
    def transaction(self, name: str) -> Iterator[None]:
        """Restore every entity and hosted item if the block raises."""

        saved = copy.deepcopy((self.entities, self.hosted))
        try:
            yield
        except BaseException:
            self.entities, self.hosted = saved
            self.rolled_back.append(name)
            logger.info("Rolled back transaction '%s'", name)
            raise
        self.committed.append(name)


def _blank(bag: AttributeBag) -> AttributeBag:
    schema = bag.snapshot()
    for attr in schema.attributes.values():
        attr.value = None
    return schema


def _derive(bag: AttributeBag, geometry: Geometry) -> None:
    if isinstance(geometry, LinearSpan):
        derived = {"length": geometry.length}
    else:
        derived = {"area": geometry.area}
    for name, value in derived.items():
        if name in bag:
            bag.define(name, AttributeKind.REAL, value, read_only=True)


__all__ = ["EntityHandle", "EntityRecord", "Geometry", "InMemoryHost", "SplitHost"]
