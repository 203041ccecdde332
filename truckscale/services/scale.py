"""Weight sensor port backed by HX711 GPIO, serial or simulated hardware."""
from __future__ import annotations

import logging
import random
import re
import time
from pathlib import Path
from typing import Optional

from ..domain.models import DEFAULT_SCALE_FACTOR, NOISE_EPSILON_KG, filter_noise, is_valid_scale_factor

try:  # pragma: no cover - optional dependency
    import serial  # type: ignore
    from serial import SerialException  # type: ignore
except Exception:  # pragma: no cover
    serial = None  # type: ignore
    SerialException = Exception  # type: ignore

try:  # pragma: no cover - optional dependency on Raspberry Pi
    import lgpio  # type: ignore
except Exception:  # pragma: no cover
    lgpio = None  # type: ignore

LOGGER = logging.getLogger("truckscale.scale")

DUMMY_PORT = "__dummy__"


def _normalize_serial_port(port: str) -> str:
    port = (port or "").strip()
    if port == "serial0":
        return "/dev/serial0"
    if port and port.startswith("/dev/"):
        return port
    if port.startswith("tty"):
        return f"/dev/{port}"
    return port


class BackendUnavailable(RuntimeError):
    """Raised when a backend cannot deliver a raw reading."""


class BaseScaleBackend:
    """Source of raw, unscaled load cell counts."""

    name = "BASE"

    def read_raw(self) -> Optional[float]:  # pragma: no cover - interface method
        raise NotImplementedError

    def close(self) -> None:  # pragma: no cover - default no-op
        """Release backend resources."""


class SerialScaleBackend(BaseScaleBackend):
    """Raw counts streamed one per line by a microcontroller over serial."""

    name = "SERIAL"

    def __init__(self, port: str, baud: int, *, timeout: float = 0.5, logger: Optional[logging.Logger] = None) -> None:
        if serial is None:
            raise BackendUnavailable("pyserial not available")
        resolved = _normalize_serial_port(port)
        if not Path(resolved).exists():
            raise BackendUnavailable(f"device {resolved} not found")
        try:
            self._serial = serial.Serial(resolved, baudrate=baud, timeout=timeout)  # type: ignore[attr-defined]
        except SerialException as exc:  # pragma: no cover - depends on hardware
            raise BackendUnavailable(str(exc)) from exc
        self._logger = logger or LOGGER
        self.port = resolved
        self.baudrate = int(baud)
        self._pattern = re.compile(r"[+-]?\d+(?:\.\d+)?")

    def read_raw(self) -> Optional[float]:
        try:
            line = self._serial.readline().decode(errors="ignore").strip()
        except SerialException as exc:  # pragma: no cover - hardware dependent
            raise BackendUnavailable(str(exc)) from exc
        if not line:
            return None
        match = self._pattern.search(line)
        if not match:
            self._logger.debug("Serial %s: unparsable line %r", self.port, line)
            return None
        return float(match.group(0))

    def close(self) -> None:  # pragma: no cover - depends on hardware
        try:
            self._serial.close()
        except SerialException:
            pass


class HX711GpioBackend(BaseScaleBackend):
    """Bit-banged HX711 reader on Raspberry Pi GPIO pins using lgpio."""

    name = "HX711_GPIO (lgpio)"

    def __init__(
        self,
        dt_pin: int,
        sck_pin: int,
        *,
        logger: Optional[logging.Logger] = None,
        read_timeout: float = 0.2,
        chip: int = 0,
    ) -> None:
        if lgpio is None:
            raise BackendUnavailable("lgpio not available")
        self._dt_pin = int(dt_pin)
        self._sck_pin = int(sck_pin)
        if self._dt_pin < 0 or self._sck_pin < 0:
            raise BackendUnavailable("HX711 pins must be positive BCM numbers")
        self._chip_id = int(chip)
        self._logger = logger or LOGGER
        self._read_timeout = max(0.05, float(read_timeout))
        self._chip_handle: Optional[int] = None
        self._setup_gpio()
        self._logger.info(
            "Scale backend: HX711_GPIO (lgpio) ready (chip=%s, dt=%s, sck=%s)",
            self._chip_id,
            self._dt_pin,
            self._sck_pin,
        )

    def _setup_gpio(self) -> None:
        try:
            handle = lgpio.gpiochip_open(self._chip_id)
        except Exception as exc:  # pragma: no cover - hardware dependent
            raise BackendUnavailable(f"lgpio open failed: {exc}") from None
        try:
            lgpio.gpio_claim_input(handle, self._dt_pin)
            lgpio.gpio_claim_output(handle, self._sck_pin, 0)
        except Exception as exc:  # pragma: no cover - hardware dependent
            try:
                lgpio.gpiochip_close(handle)
            except Exception as close_exc:  # pragma: no cover - best effort
                self._logger.debug("lgpio close during setup failed: %s", close_exc)
            raise BackendUnavailable(f"lgpio setup failed: {exc}") from None
        self._chip_handle = handle

    def close(self) -> None:
        if self._chip_handle is None:
            return
        handle = self._chip_handle
        try:
            for pin in (self._sck_pin, self._dt_pin):
                try:
                    lgpio.gpio_free(handle, pin)
                except Exception as exc:
                    self._logger.debug("lgpio free pin %s failed: %s", pin, exc)
        finally:
            try:
                lgpio.gpiochip_close(handle)
            except Exception as exc:
                self._logger.debug("lgpio close failed: %s", exc)
            self._chip_handle = None

    def read_raw(self) -> Optional[float]:
        if self._chip_handle is None:
            raise BackendUnavailable("lgpio chip not initialised")
        handle = self._chip_handle
        deadline = time.monotonic() + self._read_timeout
        while self._gpio_read(handle) != 0:
            if time.monotonic() > deadline:
                raise BackendUnavailable("no data")
            time.sleep(0.001)

        value = 0
        for _ in range(24):
            self._set_clock(handle, 1)
            value = (value << 1) | (1 if self._gpio_read(handle) else 0)
            self._set_clock(handle, 0)
        # 25th pulse selects channel A, gain 128 for the next conversion
        self._set_clock(handle, 1)
        self._set_clock(handle, 0)

        if value & 0x800000:
            value -= 0x1000000
        return float(value)

    def _gpio_read(self, handle: int) -> int:
        try:
            return lgpio.gpio_read(handle, self._dt_pin)
        except Exception as exc:  # pragma: no cover - hardware dependent
            raise BackendUnavailable(f"gpio read failed: {exc}") from None

    def _set_clock(self, handle: int, level: int) -> None:
        try:
            lgpio.gpio_write(handle, self._sck_pin, level)
        except Exception as exc:  # pragma: no cover - hardware dependent
            raise BackendUnavailable(f"gpio write failed: {exc}") from None
        time.sleep(0.000002)


class SimulatedScaleBackend(BaseScaleBackend):
    """Produce raw counts for a truck that is repeatedly filled and emptied."""

    name = "SIMULATED"

    def __init__(
        self,
        *,
        counts_per_kg: float = DEFAULT_SCALE_FACTOR,
        offset: float = 8_400.0,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._counts_per_kg = float(counts_per_kg)
        self._offset = float(offset)
        self._rng = rng or random.Random()
        self._current = 0.0
        self._target = 0.0
        self._last_change = time.monotonic()

    def read_raw(self) -> Optional[float]:
        now = time.monotonic()
        if now - self._last_change > self._rng.uniform(8.0, 20.0):
            if self._target > 0:
                self._target = 0.0
            else:
                self._target = self._rng.uniform(800.0, 12_000.0)
            self._last_change = now
        diff = self._target - self._current
        step = max(5.0, abs(diff) * 0.2)
        if diff > 0:
            self._current = min(self._target, self._current + step)
        else:
            self._current = max(self._target, self._current - step)
        kg = self._current + self._rng.uniform(-0.2, 0.2)
        return self._offset + kg * self._counts_per_kg


def select_backend(settings, *, logger: Optional[logging.Logger] = None) -> BaseScaleBackend:
    """Pick the backend described by a ``ScaleSettings`` instance."""

    logger = logger or LOGGER
    port = (settings.port or "").strip()
    if port == DUMMY_PORT:
        logger.info("Scale backend: SIMULATED")
        return SimulatedScaleBackend()
    if port:
        try:
            backend = SerialScaleBackend(port, settings.baud, logger=logger)
        except BackendUnavailable as exc:
            logger.warning("Scale backend: SERIAL %s @%d unavailable (%s)", _normalize_serial_port(port), settings.baud, exc)
            raise
        logger.info("Scale backend: SERIAL %s @%d", backend.port, backend.baudrate)
        return backend
    try:
        return HX711GpioBackend(settings.hx711_dt, settings.hx711_sck, logger=logger)
    except BackendUnavailable as exc:
        logger.error("HX711 GPIO backend unavailable (%s)", exc)
        raise


class ScaleSensor:
    """Sensor port: scaled, noise-filtered kilograms on top of a raw backend."""

    def __init__(
        self,
        backend: BaseScaleBackend,
        *,
        scale_factor: float = DEFAULT_SCALE_FACTOR,
        noise_epsilon: float = NOISE_EPSILON_KG,
        tare_samples: int = 10,
        max_attempts: int = 3,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.backend = backend
        self.logger = logger or LOGGER
        self.noise_epsilon = float(noise_epsilon)
        self.tare_samples = max(1, int(tare_samples))
        self.max_attempts = max(1, int(max_attempts))
        self._offset = 0.0
        self._scale_factor = DEFAULT_SCALE_FACTOR
        self.set_scale_factor(scale_factor)

    @property
    def scale_factor(self) -> float:
        return self._scale_factor

    @property
    def offset(self) -> float:
        return self._offset

    # ------------------------------------------------------------------
    def _read_one(self) -> float:
        for _ in range(self.max_attempts):
            value = self.backend.read_raw()
            if value is not None:
                return float(value)
        raise BackendUnavailable("no data")

    def read(self) -> float:
        raw = self._read_one()
        kg = (raw - self._offset) / self._scale_factor
        return filter_noise(kg, self.noise_epsilon)

    def read_raw_average(self, n: int) -> float:
        count = max(1, int(n))
        total = 0.0
        for _ in range(count):
            total += self._read_one()
        return total / count

    def set_scale_factor(self, factor: float) -> None:
        if not is_valid_scale_factor(factor):
            raise ValueError(f"scale factor must be finite and non-zero, got {factor!r}")
        self._scale_factor = float(factor)
        self.logger.debug("Scale factor set to %.4f", self._scale_factor)

    def zero(self) -> None:
        self._offset = self.read_raw_average(self.tare_samples)
        self.logger.info("Scale zeroed at raw offset %.1f", self._offset)

    def close(self) -> None:
        try:
            self.backend.close()
        except BackendUnavailable:
            self.logger.debug("Backend close failed", exc_info=True)


__all__ = [
    "BackendUnavailable",
    "BaseScaleBackend",
    "HX711GpioBackend",
    "ScaleSensor",
    "SerialScaleBackend",
    "SimulatedScaleBackend",
    "select_backend",
]
