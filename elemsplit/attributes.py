"""Attribute bags and best-effort attribute transfer."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


class AttributeKind(str, Enum):
    REAL = "real"
    INTEGER = "integer"
    TEXT = "text"
    REFERENCE = "reference"


class AttributeWriteError(ValueError):
    """Raised when a value cannot be stored in an attribute."""


@dataclass(frozen=True)
class Reference:
    """Id of another entity stored in an attribute."""

    id: Any


@dataclass
class Attribute:
    kind: AttributeKind
    value: Any
    read_only: bool = False


def _coerce(kind: AttributeKind, value: Any) -> Any:
    if value is None:
        return None
    if kind is AttributeKind.REAL:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise AttributeWriteError(f"expected a real number, got {type(value).__name__}")
        return float(value)
    if kind is AttributeKind.INTEGER:
        if isinstance(value, float) or not isinstance(value, int):
            raise AttributeWriteError(f"expected an integer, got {type(value).__name__}")
        return int(value)
    if kind is AttributeKind.TEXT:
        if not isinstance(value, str):
            raise AttributeWriteError(f"expected text, got {type(value).__name__}")
        return value
    if not isinstance(value, Reference):
        raise AttributeWriteError(f"expected a Reference, got {type(value).__name__}")
    return value


def infer_kind(value: Any) -> AttributeKind:
    if isinstance(value, Reference):
        return AttributeKind.REFERENCE
    if isinstance(value, bool) or isinstance(value, int):
        return AttributeKind.INTEGER
    if isinstance(value, float):
        return AttributeKind.REAL
    if isinstance(value, str):
        return AttributeKind.TEXT
    raise AttributeWriteError(f"cannot infer attribute kind for {type(value).__name__}")


@dataclass
class AttributeBag:
    """Per-entity name → tagged value store."""

    attributes: Dict[str, Attribute] = field(default_factory=dict)

    @classmethod
    def from_values(
        cls, values: Mapping[str, Any], *, read_only: Iterable[str] = ()
    ) -> "AttributeBag":
        locked = set(read_only)
        bag = cls()
        for name, value in values.items():
            bag.define(name, infer_kind(value), value, read_only=name in locked)
        return bag

    def define(self, name: str, kind: AttributeKind, value: Any = None, *, read_only: bool = False) -> None:
        kind = AttributeKind(kind)
        self.attributes[name] = Attribute(kind, _coerce(kind, value), read_only)

    def set(self, name: str, value: Any) -> None:
        try:
            attr = self.attributes[name]
        except KeyError as exc:
            raise AttributeWriteError(f"unknown attribute '{name}'") from exc
        if attr.read_only:
            raise AttributeWriteError(f"attribute '{name}' is read-only")
        attr.value = _coerce(attr.kind, value)

    def get(self, name: str, default: Any = None) -> Any:
        attr = self.attributes.get(name)
        return default if attr is None else attr.value

    def kind_of(self, name: str) -> Optional[AttributeKind]:
        attr = self.attributes.get(name)
        return None if attr is None else attr.kind

    def is_writable(self, name: str) -> bool:
        attr = self.attributes.get(name)
        return attr is not None and not attr.read_only

    def snapshot(self) -> "AttributeBag":
        return copy.deepcopy(self)

    def values(self) -> Dict[str, Any]:
        return {name: attr.value for name, attr in self.attributes.items()}

    def items(self) -> Iterator[Tuple[str, Attribute]]:
        return iter(self.attributes.items())

    def __contains__(self, name: object) -> bool:
        return name in self.attributes

    def __getitem__(self, name: str) -> Any:
        return self.attributes[name].value

    def __len__(self) -> int:
        return len(self.attributes)


@dataclass(frozen=True)
class TransferDiagnostic:
    """One attribute that could not be copied."""

    name: str
    reason: str
    detail: str = ""


def transfer_attributes(
    source: AttributeBag,
    target: AttributeBag,
    ignore: Iterable[str] = (),
    diagnostics: Optional[List[TransferDiagnostic]] = None,
) -> AttributeBag:
    """Copy every non-ignored attribute of ``source`` into ``target``.

    Only attributes that exist on ``target``, are writable and share the
    storage kind are written.  Anything else is skipped and, when
    ``diagnostics`` is given, recorded there; a failed copy never raises.
    """

    skipped = set(ignore)
    copied = 0

    def _skip(name: str, reason: str, detail: str = "") -> None:
        logger.debug("Attribute '%s' not copied: %s %s", name, reason, detail)
        if diagnostics is not None:
            diagnostics.append(TransferDiagnostic(name, reason, detail))

    for name, attr in source.items():
        if name in skipped:
            continue
        target_kind = target.kind_of(name)
        if target_kind is None:
            _skip(name, "missing")
            continue
        if not target.is_writable(name):
            _skip(name, "read-only")
            continue
        if target_kind is not attr.kind:
            _skip(name, "kind-mismatch", f"{attr.kind.value} -> {target_kind.value}")
            continue
        try:
            target.set(name, copy.deepcopy(attr.value))
        except AttributeWriteError as exc:
            _skip(name, "write-failed", str(exc))
            continue
        copied += 1

    logger.debug("Copied %d of %d attribute(s)", copied, len(source))
    return target


__all__ = [
    "Attribute",
    "AttributeBag",
    "AttributeKind",
    "AttributeWriteError",
    "Reference",
    "TransferDiagnostic",
    "infer_kind",
    "transfer_attributes",
]
