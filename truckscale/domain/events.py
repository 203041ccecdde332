"""Discrete operator input events reported by the UI."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EventType(Enum):
    TARE = "tare"
    STORE = "store"
    RESET = "reset"
    BEGIN_CALIBRATION = "begin_calibration"
    DIGIT = "digit"
    DECIMAL_POINT = "decimal_point"
    CLEAR = "clear"
    ENTER = "enter"
    CANCEL = "cancel"


IDLE_EVENTS = frozenset({EventType.TARE, EventType.STORE, EventType.RESET, EventType.BEGIN_CALIBRATION})
CALIBRATION_EVENTS = frozenset(
    {EventType.DIGIT, EventType.DECIMAL_POINT, EventType.CLEAR, EventType.ENTER, EventType.CANCEL}
)


@dataclass(frozen=True)
class InputEvent:
    type: EventType
    char: Optional[str] = None

    def __post_init__(self) -> None:
        if self.type is EventType.DIGIT:
            if not (isinstance(self.char, str) and len(self.char) == 1 and self.char in "0123456789"):
                raise ValueError(f"digit event needs a single 0-9 character, got {self.char!r}")
        elif self.char is not None:
            raise ValueError(f"{self.type.value} event takes no character")

    @classmethod
    def digit(cls, char: str) -> "InputEvent":
        return cls(EventType.DIGIT, char)

    @property
    def is_idle_action(self) -> bool:
        return self.type in IDLE_EVENTS

    @property
    def is_calibration_key(self) -> bool:
        return self.type in CALIBRATION_EVENTS


TARE = InputEvent(EventType.TARE)
STORE = InputEvent(EventType.STORE)
RESET = InputEvent(EventType.RESET)
BEGIN_CALIBRATION = InputEvent(EventType.BEGIN_CALIBRATION)
DECIMAL_POINT = InputEvent(EventType.DECIMAL_POINT)
CLEAR = InputEvent(EventType.CLEAR)
ENTER = InputEvent(EventType.ENTER)
CANCEL = InputEvent(EventType.CANCEL)


__all__ = [
    "BEGIN_CALIBRATION",
    "CALIBRATION_EVENTS",
    "CANCEL",
    "CLEAR",
    "DECIMAL_POINT",
    "ENTER",
    "EventType",
    "IDLE_EVENTS",
    "InputEvent",
    "RESET",
    "STORE",
    "TARE",
]
