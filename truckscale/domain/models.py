"""Core value types shared by the detector, ledger and calibration flow."""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

DEFAULT_SCALE_FACTOR = -7050.0
NOISE_EPSILON_KG = 0.5
CALIBRATION_SAMPLES = 10


def filter_noise(weight: float, epsilon: float = NOISE_EPSILON_KG) -> float:
    """Snap readings inside the +/- ``epsilon`` band to exactly zero."""

    value = float(weight)
    if abs(value) < epsilon:
        return 0.0
    return value


def is_valid_scale_factor(value: Any) -> bool:
    try:
        factor = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(factor) and factor != 0.0


def sanitize_scale_factor(value: Any, default: float = DEFAULT_SCALE_FACTOR) -> float:
    if is_valid_scale_factor(value):
        return float(value)
    return float(default)


class LoadPhase(Enum):
    EMPTY = "empty"
    LOADED = "loaded"


@dataclass(frozen=True)
class MonitorState:
    """Per-cycle memory of the load detector. Never persisted."""

    phase: LoadPhase = LoadPhase.EMPTY
    last_weight: float = 0.0

    @property
    def load_detected(self) -> bool:
        return self.phase is LoadPhase.LOADED

    @classmethod
    def loaded(cls, weight: float) -> "MonitorState":
        return cls(LoadPhase.LOADED, float(weight))


@dataclass(frozen=True)
class LoadEvent:
    """A completed load/unload cycle as committed to the ledger."""

    weight: float
    load_count: int
    total_weight: float


__all__ = [
    "CALIBRATION_SAMPLES",
    "DEFAULT_SCALE_FACTOR",
    "NOISE_EPSILON_KG",
    "LoadEvent",
    "LoadPhase",
    "MonitorState",
    "filter_noise",
    "is_valid_scale_factor",
    "sanitize_scale_factor",
]
