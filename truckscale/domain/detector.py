"""Turns the weight sample stream into discrete load events."""
from __future__ import annotations

import logging
import math
from typing import Optional

from .ledger import Ledger
from .models import LoadEvent, LoadPhase, MonitorState

logger = logging.getLogger("truckscale.detector")


class LoadEventDetector:
    """Latch the weight while the truck is loaded, count it when it empties.

    Only the sign of the current sample and the latched phase matter, so each
    return to zero after a non-zero stretch produces exactly one event no
    matter how long the weight stayed up.
    """

    def __init__(self, ledger: Ledger) -> None:
        self.ledger = ledger
        self.state = MonitorState()

    def process(self, sample: float) -> Optional[LoadEvent]:
        weight = float(sample)
        if not math.isfinite(weight):
            logger.warning("Ignoring non-finite sample %r", sample)
            return None
        if weight > 0:
            self.state = MonitorState.loaded(weight)
            return None
        if weight != 0 or self.state.phase is LoadPhase.EMPTY:
            return None

        recorded = self.state.last_weight
        try:
            self.ledger.commit_load(recorded)
        finally:
            self.state = MonitorState()
        event = LoadEvent(recorded, self.ledger.load_count, self.ledger.total_weight)
        logger.info(
            "Load #%d recorded: %.1f kg (total %.1f kg)",
            event.load_count,
            event.weight,
            event.total_weight,
        )
        return event

    def clear(self) -> None:
        self.state = MonitorState()

    def tare(self, sensor) -> None:
        """Re-zero the sensor and forget any latched load; the ledger is untouched."""

        sensor.zero()
        self.clear()
        logger.info("Tare applied")


__all__ = ["LoadEventDetector"]
