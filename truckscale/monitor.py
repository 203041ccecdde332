"""Cooperative control loop tying sensor, ledger, calibration and UI together.

One :meth:`TruckLoadMonitor.step` is one loop iteration:

1. read a sample and run the detector (skipped while calibrating),
2. render the current state,
3. poll at most one input event and dispatch it.

The caller waits one fixed interval between steps, either with
:meth:`TruckLoadMonitor.run` or from a GUI timer.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from .domain.calibration import CalibrationController
from .domain.detector import LoadEventDetector
from .domain.events import EventType, InputEvent
from .domain.ledger import Ledger, restore_scale_factor
from .domain.models import CALIBRATION_SAMPLES
from .services.scale import BackendUnavailable
from .services.storage import PersistentStore, StorageError
from .ui.render import CalibrationView, IdleView, UserInterface

LOGGER = logging.getLogger("truckscale.monitor")

NOTICE_STORED = "Values Stored"
NOTICE_RESET = "All Values Reset"
NOTICE_SENSOR = "Sensor unavailable"
NOTICE_STORAGE = "Storage error, values not saved"


class TruckLoadMonitor:
    """Owns the ledger, scale factor and detector state for one device."""

    def __init__(
        self,
        sensor,
        store: PersistentStore,
        ui: UserInterface,
        *,
        calibration_samples: int = CALIBRATION_SAMPLES,
        notice_s: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.sensor = sensor
        self.store = store
        self.ui = ui
        self.logger = logger or LOGGER
        self._clock = clock
        self._notice_s = float(notice_s)
        self._notice = ""
        self._notice_until = 0.0
        self._signal_available = True
        self._stop_event = threading.Event()

        self.scale_factor = restore_scale_factor(store)
        sensor.set_scale_factor(self.scale_factor)
        self.ledger = Ledger.restore(store)
        self.detector = LoadEventDetector(self.ledger)
        self.calibration = CalibrationController(sensor, store, samples=calibration_samples)
        self.current_weight = 0.0

    # ------------------------------------------------------------------
    @property
    def notice(self) -> str:
        if self._notice and self._clock() >= self._notice_until:
            self._notice = ""
        return self._notice

    def _set_notice(self, text: str) -> None:
        self._notice = text
        self._notice_until = self._clock() + self._notice_s

    def _set_signal_available(self, available: bool, reason: str = "") -> None:
        if available == self._signal_available:
            return
        self._signal_available = available
        if available:
            self.logger.info("Scale: signal RESTORED")
        else:
            self.logger.warning("Scale: signal LOST (%s)", reason or "no data")

    # ------------------------------------------------------------------
    def start(self) -> None:
        """Zero the sensor baseline before the first sample."""

        try:
            self.sensor.zero()
        except BackendUnavailable as exc:
            self._set_signal_available(False, str(exc))

    def step(self) -> None:
        if not self.calibration.active:
            self._sample()
        self._render()
        event = self.ui.poll_event()
        if event is not None:
            self.dispatch(event)

    def _sample(self) -> None:
        try:
            weight = self.sensor.read()
        except BackendUnavailable as exc:
            self._set_signal_available(False, str(exc))
            return
        self._set_signal_available(True)
        self.current_weight = weight
        self.detector.process(weight)

    def _render(self) -> None:
        session = self.calibration.session
        if self.calibration.active and session is not None:
            self.ui.render_calibration(CalibrationView(entry=session.text, error=session.error or ""))
        else:
            self.ui.render_idle(
                IdleView(
                    current_weight=self.current_weight,
                    load_count=self.ledger.load_count,
                    total_weight=self.ledger.total_weight,
                    notice=self.notice,
                )
            )

    # ------------------------------------------------------------------
    def dispatch(self, event: InputEvent) -> None:
        if self.calibration.active:
            if event.is_calibration_key:
                self._handle_calibration_key(event)
            else:
                self.logger.debug("Ignoring %s while calibrating", event.type.value)
            return
        if not event.is_idle_action:
            self.logger.debug("Ignoring %s outside calibration", event.type.value)
            return

        kind = event.type
        if kind is EventType.TARE:
            self.tare()
        elif kind is EventType.STORE:
            self.store_values()
        elif kind is EventType.RESET:
            self.reset_values()
        elif kind is EventType.BEGIN_CALIBRATION:
            self.calibration.begin()

    def _handle_calibration_key(self, event: InputEvent) -> None:
        try:
            result = self.calibration.handle(event)
        except StorageError as exc:
            self.scale_factor = self.sensor.scale_factor
            self.logger.error("Calibration applied but not saved: %s", exc)
            self._set_notice(NOTICE_STORAGE)
            return
        if result is not None:
            self.scale_factor = result.scale_factor
            self._set_notice(f"Weight calibrated: {result.known_weight:.1f} kg")

    def tare(self) -> None:
        try:
            self.detector.tare(self.sensor)
        except BackendUnavailable as exc:
            self.logger.warning("Tare failed: %s", exc)
            self._set_notice(NOTICE_SENSOR)
            return
        self.current_weight = 0.0

    def store_values(self) -> None:
        try:
            self.ledger.store(self.store)
        except StorageError as exc:
            self.logger.error("Store failed: %s", exc)
            self._set_notice(NOTICE_STORAGE)
            return
        self._set_notice(NOTICE_STORED)

    def reset_values(self) -> None:
        self.detector.clear()
        self.current_weight = 0.0
        try:
            self.ledger.reset(self.store)
        except StorageError as exc:
            self.logger.error("Reset not saved: %s", exc)
            self._set_notice(NOTICE_STORAGE)
            return
        self._set_notice(NOTICE_RESET)

    # ------------------------------------------------------------------
    def run(self, interval_s: float = 0.2, *, max_iterations: Optional[int] = None) -> None:
        """Blocking loop for headless use; returns after :meth:`stop`."""

        self._stop_event.clear()
        self.start()
        iterations = 0
        while not self._stop_event.is_set():
            try:
                self.step()
            except Exception:
                self.logger.exception("Monitor step failed")
            iterations += 1
            if max_iterations is not None and iterations >= max_iterations:
                break
            self._stop_event.wait(interval_s)

    def stop(self) -> None:
        self._stop_event.set()


__all__ = ["TruckLoadMonitor"]
