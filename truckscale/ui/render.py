"""UI port contract and the text formatting shared by every adapter."""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional, Tuple

from ..domain.events import InputEvent

CALIBRATION_PROMPTS: Tuple[str, ...] = ("Fill the truck", "with known weight", "Enter weight in kg:")


@dataclass(frozen=True)
class IdleView:
    current_weight: float
    load_count: int
    total_weight: float
    notice: str = ""


@dataclass(frozen=True)
class CalibrationView:
    entry: str
    error: str = ""
    prompts: Tuple[str, ...] = CALIBRATION_PROMPTS


def format_weight_kg(value: float) -> str:
    return f"{value:.1f} kg"


def format_total_tons(total_kg: float) -> str:
    return f"{total_kg / 1000.0:.1f} tons"


def idle_rows(view: IdleView) -> Tuple[Tuple[str, str], ...]:
    return (
        ("Current Weight:", format_weight_kg(view.current_weight)),
        ("Total Loads:", str(view.load_count)),
        ("Total Weight:", format_total_tons(view.total_weight)),
    )


class UserInterface:
    """What the control loop needs from a display + input device."""

    def render_idle(self, view: IdleView) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def render_calibration(self, view: CalibrationView) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def poll_event(self) -> Optional[InputEvent]:  # pragma: no cover - interface
        raise NotImplementedError

    def close(self) -> None:  # pragma: no cover - default no-op
        """Release display resources."""


class EventLatch:
    """Hold at most one pending press until the loop polls it.

    Presses arriving while one is pending are dropped, which debounces
    touch input to one event per loop interval.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: Optional[InputEvent] = None

    def push(self, event: InputEvent) -> bool:
        with self._lock:
            if self._pending is not None:
                return False
            self._pending = event
            return True

    def poll(self) -> Optional[InputEvent]:
        with self._lock:
            event, self._pending = self._pending, None
            return event


__all__ = [
    "CALIBRATION_PROMPTS",
    "CalibrationView",
    "EventLatch",
    "IdleView",
    "UserInterface",
    "format_total_tons",
    "format_weight_kg",
    "idle_rows",
]
