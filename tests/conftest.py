import sys
from pathlib import Path
from typing import Iterable, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from truckscale.domain.events import InputEvent  # noqa: E402
from truckscale.services.scale import BackendUnavailable, BaseScaleBackend, ScaleSensor  # noqa: E402
from truckscale.services.storage import JsonFileStore  # noqa: E402
from truckscale.ui.render import CalibrationView, IdleView, UserInterface  # noqa: E402


class ScriptedBackend(BaseScaleBackend):
    """Return queued raw counts, then repeat ``default``."""

    name = "SCRIPTED"

    def __init__(self, values: Iterable[Optional[float]] = (), default: Optional[float] = 0.0) -> None:
        self.values: List[Optional[float]] = list(values)
        self.default = default
        self.fail = False
        self.closed = False

    def read_raw(self) -> Optional[float]:
        if self.fail:
            raise BackendUnavailable("no signal")
        if self.values:
            return self.values.pop(0)
        return self.default

    def close(self) -> None:
        self.closed = True


class FakeSensor:
    """Sensor port double that records every call."""

    def __init__(self, samples: Iterable[float] = (), raw_average: float = 0.0) -> None:
        self.samples = list(samples)
        self.raw_average = raw_average
        self.scale_factor = 1.0
        self.zero_calls = 0
        self.raw_requests: List[int] = []
        self.factors: List[float] = []
        self.fail = False

    def read(self) -> float:
        if self.fail:
            raise BackendUnavailable("no signal")
        return self.samples.pop(0) if self.samples else 0.0

    def read_raw_average(self, n: int) -> float:
        if self.fail:
            raise BackendUnavailable("no signal")
        self.raw_requests.append(n)
        return self.raw_average

    def set_scale_factor(self, factor: float) -> None:
        self.scale_factor = factor
        self.factors.append(factor)

    def zero(self) -> None:
        if self.fail:
            raise BackendUnavailable("no signal")
        self.zero_calls += 1


class RecordingUI(UserInterface):
    def __init__(self, events: Iterable[Optional[InputEvent]] = ()) -> None:
        self.events: List[Optional[InputEvent]] = list(events)
        self.idle: List[IdleView] = []
        self.calibration: List[CalibrationView] = []

    def render_idle(self, view: IdleView) -> None:
        self.idle.append(view)

    def render_calibration(self, view: CalibrationView) -> None:
        self.calibration.append(view)

    def poll_event(self) -> Optional[InputEvent]:
        return self.events.pop(0) if self.events else None


@pytest.fixture
def store(tmp_path: Path) -> JsonFileStore:
    return JsonFileStore(tmp_path / "ledger.json")


@pytest.fixture
def fake_sensor() -> FakeSensor:
    return FakeSensor()


@pytest.fixture
def scripted_backend() -> ScriptedBackend:
    return ScriptedBackend()


@pytest.fixture
def sensor(scripted_backend: ScriptedBackend) -> ScaleSensor:
    return ScaleSensor(scripted_backend, scale_factor=100.0, tare_samples=2)
