"""Robust configuration handling for the truck load monitor."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Literal

from ..domain.models import CALIBRATION_SAMPLES, NOISE_EPSILON_KG

log = logging.getLogger(__name__)

CONFIG_DIR = Path(os.environ.get("TRUCKSCALE_SETTINGS_DIR", Path.home() / ".truckscale"))
CONFIG_PATH = CONFIG_DIR / "config.json"


@dataclass
class ScaleSettings:
    """Sensor wiring and sampling parameters."""

    port: str = "__dummy__"
    baud: int = 115200
    hx711_dt: int = 5
    hx711_sck: int = 6
    noise_epsilon: float = NOISE_EPSILON_KG
    calibration_samples: int = CALIBRATION_SAMPLES
    tare_samples: int = 10

    def __post_init__(self) -> None:
        self.port = str(self.port or "")
        try:
            self.baud = int(self.baud)
        except Exception:
            self.baud = 115200
        try:
            self.hx711_dt = int(self.hx711_dt)
        except Exception:
            self.hx711_dt = 5
        try:
            self.hx711_sck = int(self.hx711_sck)
        except Exception:
            self.hx711_sck = 6
        try:
            self.noise_epsilon = abs(float(self.noise_epsilon))
        except Exception:
            self.noise_epsilon = NOISE_EPSILON_KG
        try:
            self.calibration_samples = max(1, int(self.calibration_samples))
        except Exception:
            self.calibration_samples = CALIBRATION_SAMPLES
        try:
            self.tare_samples = max(1, int(self.tare_samples))
        except Exception:
            self.tare_samples = 10


@dataclass
class MonitorSettings:
    """Control loop timing."""

    interval_s: float = 0.2

    def __post_init__(self) -> None:
        try:
            self.interval_s = float(self.interval_s)
        except Exception:
            self.interval_s = 0.2
        if self.interval_s <= 0:
            self.interval_s = 0.2


@dataclass
class StorageSettings:
    """Location of the persisted ledger fields."""

    ledger_path: str = ""

    def __post_init__(self) -> None:
        if not self.ledger_path:
            self.ledger_path = str(CONFIG_DIR / "ledger.json")

    @property
    def path(self) -> Path:
        return Path(self.ledger_path).expanduser()


@dataclass
class DisplaySettings:
    """Which UI adapter to run and how long notices stay up."""

    ui: Literal["tk", "console"] = "tk"
    fullscreen: bool = False
    notice_s: float = 3.0

    def __post_init__(self) -> None:
        self.ui = "console" if str(self.ui or "tk").lower() == "console" else "tk"
        self.fullscreen = bool(self.fullscreen)
        try:
            self.notice_s = max(0.0, float(self.notice_s))
        except Exception:
            self.notice_s = 3.0


@dataclass
class Settings:
    """Top level application settings dataclass."""

    scale: ScaleSettings = field(default_factory=ScaleSettings)
    monitor: MonitorSettings = field(default_factory=MonitorSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    display: DisplaySettings = field(default_factory=DisplaySettings)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    # ------------------------------------------------------------------
    @staticmethod
    def _atomic_save(payload: Dict[str, Any], path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        tmp_path.replace(path)

    # ------------------------------------------------------------------
    def save(self, path: Path = CONFIG_PATH) -> None:
        """Persist the settings to disk atomically."""

        payload = self.to_dict()
        existing: Dict[str, Any] = {}
        try:
            loaded = json.loads(path.read_text(encoding="utf-8"))
            if isinstance(loaded, dict):
                existing = loaded
        except FileNotFoundError:
            existing = {}
        except Exception:
            log.debug("Could not read existing settings before save", exc_info=True)
            existing = {}

        self._atomic_save(_deep_update(existing, payload), path)
        log.info("Settings saved to %s", path)

    # ------------------------------------------------------------------
    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Settings":
        def load_section(section: type, data: Dict[str, Any]) -> Any:
            if not isinstance(data, dict):
                data = {}
            field_names = {f.name for f in section.__dataclass_fields__.values()}
            filtered = {k: v for k, v in data.items() if k in field_names}
            return section(**filtered)

        return cls(
            scale=load_section(ScaleSettings, payload.get("scale", {})),
            monitor=load_section(MonitorSettings, payload.get("monitor", {})),
            storage=load_section(StorageSettings, payload.get("storage", {})),
            display=load_section(DisplaySettings, payload.get("display", {})),
        )

    # ------------------------------------------------------------------
    @classmethod
    def load(cls, path: Path = CONFIG_PATH) -> "Settings":
        """Load settings from disk, regenerating defaults on corruption."""

        defaults = cls()
        default_payload = defaults.to_dict()
        needs_resave = False

        try:
            raw = path.read_text(encoding="utf-8")
            if not raw.strip():
                raise ValueError("empty settings file")
            payload = json.loads(raw)
            if not isinstance(payload, dict):
                raise ValueError("settings payload must be a JSON object")
            log.info("Loaded settings from %s", path)
        except FileNotFoundError:
            log.warning("Settings file %s missing; regenerating defaults", path)
            payload = default_payload
            needs_resave = True
        except (json.JSONDecodeError, ValueError) as exc:
            log.warning("Settings file %s invalid (%s); regenerating defaults", path, exc)
            _backup_corrupt_file(path)
            payload = default_payload
            needs_resave = True
        except OSError as exc:
            log.error("Could not read settings %s: %s", path, exc)
            payload = default_payload

        merged = _merge_defaults(default_payload, payload)
        settings = cls.from_dict(merged)

        if merged != payload or needs_resave:
            try:
                cls._atomic_save(settings.to_dict(), path)
            except OSError:
                log.exception("Could not persist regenerated configuration")

        scale = settings.scale
        log.info(
            "Scale config: port=%s dt=%s sck=%s epsilon=%.2f samples=%d interval=%.2fs",
            scale.port or "",
            scale.hx711_dt,
            scale.hx711_sck,
            scale.noise_epsilon,
            scale.calibration_samples,
            settings.monitor.interval_s,
        )
        return settings


# ----------------------------------------------------------------------
def _backup_corrupt_file(path: Path) -> None:
    try:
        if path.exists():
            path.with_name(path.name + ".bak").write_bytes(path.read_bytes())
            path.unlink()
    except OSError:  # pragma: no cover - best effort
        log.debug("Could not create backup for corrupt settings", exc_info=True)


def _deep_update(original: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    result: Dict[str, Any] = dict(original)
    for key, value in updates.items():
        if isinstance(value, dict):
            base = result.get(key, {})
            if not isinstance(base, dict):
                base = {}
            result[key] = _deep_update(base, value)
        else:
            result[key] = value
    return result


def _merge_defaults(defaults: Dict[str, Any], payload: Dict[str, Any]) -> Dict[str, Any]:
    def merge_dict(default: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
        result: Dict[str, Any] = dict(default)
        for key, value in data.items():
            if key in default and isinstance(default[key], dict) and isinstance(value, dict):
                result[key] = merge_dict(default[key], value)
            else:
                result[key] = value
        return result

    return merge_dict(defaults, payload or {})


__all__ = [
    "CONFIG_PATH",
    "DisplaySettings",
    "MonitorSettings",
    "ScaleSettings",
    "Settings",
    "StorageSettings",
]
