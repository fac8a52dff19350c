"""Configuration shared by the splitters and the orchestrator."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional

EPSILON = 1.0 / 32.0
DEFAULT_CLEARANCE = 0.5
DEFAULT_MIN_SEGMENT_LENGTH = 1.0 / 12.0
VERTICAL_THRESHOLD = 0.9

DEFAULT_IDENTITY_KEYS: FrozenSet[str] = frozenset(
    {
        "id",
        "element_id",
        "unique_id",
        "category",
        "family",
        "type",
        "type_id",
        "kind",
    }
)


class HolePolicy(str, Enum):
    """What to do with a hole the cut crosses other than zero or two times."""

    DROP = "drop"
    ABORT = "abort"


@dataclass
class SplitConfig:
    """Tolerances and policies for a split run."""

    tolerance: float = EPSILON
    clearance: float = DEFAULT_CLEARANCE
    min_segment_length: float = DEFAULT_MIN_SEGMENT_LENGTH
    hole_policy: HolePolicy = HolePolicy.DROP
    abort_on_reassignment_failure: bool = True
    identity_keys: FrozenSet[str] = field(default_factory=lambda: DEFAULT_IDENTITY_KEYS)
    vertical_threshold: float = VERTICAL_THRESHOLD

    def __post_init__(self) -> None:
        if self.tolerance <= 0.0:
            raise ValueError("tolerance must be positive")
        if self.clearance < 0.0:
            raise ValueError("clearance must not be negative")
        self.hole_policy = HolePolicy(self.hole_policy)
        self.identity_keys = frozenset(self.identity_keys)


_SPLIT_CONFIG = SplitConfig()


def get_split_config() -> SplitConfig:
    return copy.deepcopy(_SPLIT_CONFIG)


def set_split_config(config: SplitConfig) -> None:
    global _SPLIT_CONFIG
    _SPLIT_CONFIG = copy.deepcopy(config)


def resolve_config(config: Optional[SplitConfig]) -> SplitConfig:
    return config if config is not None else get_split_config()


__all__ = [
    "DEFAULT_CLEARANCE",
    "DEFAULT_IDENTITY_KEYS",
    "DEFAULT_MIN_SEGMENT_LENGTH",
    "EPSILON",
    "HolePolicy",
    "SplitConfig",
    "VERTICAL_THRESHOLD",
    "get_split_config",
    "resolve_config",
    "set_split_config",
]
