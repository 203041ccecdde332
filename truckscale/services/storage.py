"""Field based persistent store for the ledger and the scale factor.

The device keeps exactly three values across power loss. They are stored as
a small JSON document that is rewritten atomically (temp file, fsync,
rename) on every write so a read after ``write()`` returns always observes
the new value.
"""
from __future__ import annotations

import json
import logging
import math
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

logger = logging.getLogger("truckscale.storage")


class StorageError(RuntimeError):
    """Raised when the backing file cannot be written."""


class Field(Enum):
    """Logical persisted fields and the type each one holds."""

    LOAD_COUNT = ("load_count", int)
    TOTAL_WEIGHT = ("total_weight", float)
    SCALE_FACTOR = ("scale_factor", float)

    def __init__(self, key: str, kind: type) -> None:
        self.key = key
        self.kind = kind

    def coerce(self, value: Any) -> Optional[Union[int, float]]:
        """Return ``value`` as this field's type, or ``None`` if it cannot be."""

        if value is None or isinstance(value, bool):
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        if self.kind is int:
            if not math.isfinite(number) or number != int(number):
                return None
            return int(number)
        return number


class PersistentStore:
    """Interface for durable field storage."""

    def read(self, field: Field) -> Optional[Union[int, float]]:  # pragma: no cover - interface
        raise NotImplementedError

    def write(self, field: Field, value: Union[int, float]) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def write_many(self, values: Mapping[Field, Union[int, float]]) -> None:  # pragma: no cover - interface
        """Write several fields so that either all or none of them change."""
        raise NotImplementedError


class JsonFileStore(PersistentStore):
    """Persist fields into a single JSON document."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path).expanduser()

    # ------------------------------------------------------------------
    def _load(self) -> Dict[str, Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.error("Could not read %s: %s", self.path, exc)
            return {}
        if not raw.strip():
            return {}
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Store %s is corrupt (%s); treating as empty", self.path, exc)
            return {}
        if not isinstance(payload, dict):
            logger.warning("Store %s does not hold an object; treating as empty", self.path)
            return {}
        return payload

    def _atomic_save(self, payload: Dict[str, Any]) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2, sort_keys=True)
                fh.flush()
                os.fsync(fh.fileno())
            tmp_path.replace(self.path)
        except OSError as exc:
            raise StorageError(f"could not write {self.path}: {exc}") from exc

    # ------------------------------------------------------------------
    def read(self, field: Field) -> Optional[Union[int, float]]:
        payload = self._load()
        if field.key not in payload:
            return None
        value = field.coerce(payload[field.key])
        if value is None:
            logger.warning("Stored %s=%r is not a valid %s", field.key, payload[field.key], field.kind.__name__)
        return value

    def write(self, field: Field, value: Union[int, float]) -> None:
        self.write_many({field: value})

    def write_many(self, values: Mapping[Field, Union[int, float]]) -> None:
        updates: Dict[str, Any] = {}
        for field, value in values.items():
            coerced = field.coerce(value)
            if coerced is None:
                raise ValueError(f"{field.key} requires a {field.kind.__name__}, got {value!r}")
            # json cannot encode NaN portably; store it as null so it reads back invalid
            updates[field.key] = coerced if math.isfinite(coerced) else None
        payload = self._load()
        payload.update(updates)
        self._atomic_save(payload)
        logger.debug("Stored %s in %s", updates, self.path)


__all__ = ["Field", "JsonFileStore", "PersistentStore", "StorageError"]
