"""Running load ledger and its persistence contract."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from ..services.storage import Field, PersistentStore
from .models import DEFAULT_SCALE_FACTOR, is_valid_scale_factor

logger = logging.getLogger("truckscale.ledger")


@dataclass
class Ledger:
    """Aggregate count and weight of every completed load.

    Accumulation stays in memory until :meth:`store` is called; :meth:`reset`
    is durable immediately.
    """

    load_count: int = 0
    total_weight: float = 0.0

    def commit_load(self, weight: float) -> None:
        value = float(weight)
        if not math.isfinite(value) or value < 0:
            raise ValueError(f"load weight must be a non-negative number, got {weight!r}")
        self.load_count += 1
        self.total_weight += value

    def store(self, store: PersistentStore) -> None:
        store.write_many({Field.LOAD_COUNT: self.load_count, Field.TOTAL_WEIGHT: self.total_weight})
        logger.info("Ledger stored: %d loads, %.1f kg", self.load_count, self.total_weight)

    def reset(self, store: PersistentStore) -> None:
        self.load_count = 0
        self.total_weight = 0.0
        logger.info("Ledger reset")
        self.store(store)

    @classmethod
    def restore(cls, store: PersistentStore) -> "Ledger":
        count = store.read(Field.LOAD_COUNT)
        total = store.read(Field.TOTAL_WEIGHT)
        if count is None or count < 0:
            if count is not None:
                logger.warning("Persisted load count %r invalid; starting from 0", count)
            count = 0
        if total is None or not math.isfinite(total) or total < 0:
            if total is not None:
                logger.warning("Persisted total weight %r invalid; starting from 0", total)
            total = 0.0
        ledger = cls(int(count), float(total))
        logger.info("Ledger restored: %d loads, %.1f kg", ledger.load_count, ledger.total_weight)
        return ledger


def restore_scale_factor(store: PersistentStore, default: float = DEFAULT_SCALE_FACTOR) -> float:
    """Read the persisted scale factor, substituting ``default`` when unusable.

    The bad persisted value is left in place; only a later calibration
    overwrites it.
    """

    value: Optional[float] = store.read(Field.SCALE_FACTOR)
    if value is None or not is_valid_scale_factor(value):
        logger.warning("Persisted scale factor %r invalid; using default %.1f", value, default)
        return float(default)
    return float(value)


__all__ = ["Ledger", "restore_scale_factor"]
