"""Keypad driven calibration of the sensor scale factor.

The operator fills the truck with a known weight, types that weight on the
keypad and presses Enter. The controller then averages raw sensor counts and
derives ``scale_factor = raw_average / known_weight``. Nothing reaches the
sensor or the store until that final commit.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..services.scale import BackendUnavailable
from ..services.storage import Field, PersistentStore
from .events import EventType, InputEvent
from .models import CALIBRATION_SAMPLES, is_valid_scale_factor

logger = logging.getLogger("truckscale.calibration")

DECIMAL_POINT_CHAR = "."


class CalibrationError(ValueError):
    """Raised when the entered weight or the sensor reading cannot calibrate."""


class CalibrationState(Enum):
    IDLE = "idle"
    ENTERING_WEIGHT = "entering_weight"
    COMMITTING = "committing"


@dataclass
class CalibrationSession:
    entered_digits: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def has_decimal_point(self) -> bool:
        return DECIMAL_POINT_CHAR in self.entered_digits

    @property
    def text(self) -> str:
        return "".join(self.entered_digits)


@dataclass(frozen=True)
class CalibrationResult:
    known_weight: float
    raw_average: float
    scale_factor: float


def parse_known_weight(text: str) -> float:
    try:
        weight = float(text)
    except ValueError:
        weight = 0.0
    if weight <= 0:
        raise CalibrationError("Weight must be greater than 0 kg")
    return weight


def compute_scale_factor(raw_average: float, known_weight: float) -> float:
    factor = float(raw_average) / float(known_weight)
    if not is_valid_scale_factor(factor):
        raise CalibrationError(f"Sensor reading {raw_average!r} gives no usable factor")
    return factor


class CalibrationController:
    """State machine for one calibration session at a time."""

    def __init__(self, sensor, store: PersistentStore, *, samples: int = CALIBRATION_SAMPLES) -> None:
        self.sensor = sensor
        self.store = store
        self.samples = max(1, int(samples))
        self._state = CalibrationState.IDLE
        self._session: Optional[CalibrationSession] = None

    @property
    def state(self) -> CalibrationState:
        return self._state

    @property
    def session(self) -> Optional[CalibrationSession]:
        return self._session

    @property
    def active(self) -> bool:
        return self._state is not CalibrationState.IDLE

    # ------------------------------------------------------------------
    def begin(self) -> None:
        if self.active:
            return
        self._session = CalibrationSession()
        self._state = CalibrationState.ENTERING_WEIGHT
        logger.info("Calibration started")

    def cancel(self) -> None:
        if not self.active:
            return
        self._finish()
        logger.info("Calibration cancelled")

    def handle(self, event: InputEvent) -> Optional[CalibrationResult]:
        """Apply one keypad event; returns the result once a commit succeeds."""

        session = self._session
        if session is None or self._state is not CalibrationState.ENTERING_WEIGHT:
            logger.debug("Ignoring %s outside calibration", event.type.value)
            return None

        kind = event.type
        if kind is EventType.DIGIT:
            session.entered_digits.append(event.char or "")
            session.error = None
        elif kind is EventType.DECIMAL_POINT:
            if not session.has_decimal_point:
                session.entered_digits.append(DECIMAL_POINT_CHAR)
        elif kind is EventType.CLEAR:
            session.entered_digits.clear()
            session.error = None
        elif kind is EventType.CANCEL:
            self.cancel()
        elif kind is EventType.ENTER:
            if session.entered_digits:
                return self._commit(session)
        else:
            logger.debug("Ignoring %s while calibrating", kind.value)
        return None

    # ------------------------------------------------------------------
    def _commit(self, session: CalibrationSession) -> Optional[CalibrationResult]:
        self._state = CalibrationState.COMMITTING
        try:
            known_weight = parse_known_weight(session.text)
            raw_average = float(self.sensor.read_raw_average(self.samples))
            factor = compute_scale_factor(raw_average, known_weight)
        except (CalibrationError, BackendUnavailable) as exc:
            if isinstance(exc, BackendUnavailable):
                session.error = "Sensor unavailable, try again"
            else:
                session.error = str(exc)
            logger.warning("Calibration rejected for %r: %s", session.text, exc)
            self._state = CalibrationState.ENTERING_WEIGHT
            return None

        try:
            self.sensor.set_scale_factor(factor)
            self.store.write(Field.SCALE_FACTOR, factor)
        finally:
            self._finish()
        logger.info(
            "Calibrated with %.2f kg: raw average %.1f, scale factor %.4f",
            known_weight,
            raw_average,
            factor,
        )
        return CalibrationResult(known_weight, raw_average, factor)

    def _finish(self) -> None:
        self._session = None
        self._state = CalibrationState.IDLE


__all__ = [
    "CalibrationController",
    "CalibrationError",
    "CalibrationResult",
    "CalibrationSession",
    "CalibrationState",
    "compute_scale_factor",
    "parse_known_weight",
]
