from __future__ import annotations

import pytest

from conftest import FakeSensor
from truckscale.domain import events
from truckscale.domain.calibration import (
    CalibrationController,
    CalibrationError,
    CalibrationState,
    compute_scale_factor,
    parse_known_weight,
)
from truckscale.domain.events import InputEvent
from truckscale.services.storage import Field


def _type(controller: CalibrationController, text: str):
    result = None
    for char in text:
        if char == ".":
            result = controller.handle(events.DECIMAL_POINT)
        else:
            result = controller.handle(InputEvent.digit(char))
    return result


@pytest.fixture
def controller(store) -> CalibrationController:
    return CalibrationController(FakeSensor(raw_average=178850.0), store)


def test_begin_opens_session(controller: CalibrationController) -> None:
    assert controller.state is CalibrationState.IDLE
    assert controller.session is None
    controller.begin()
    assert controller.state is CalibrationState.ENTERING_WEIGHT
    assert controller.session is not None
    assert controller.session.text == ""


def test_commit_derives_and_persists_scale_factor(controller: CalibrationController, store) -> None:
    controller.begin()
    _type(controller, "25.5")

    result = controller.handle(events.ENTER)

    assert result is not None
    assert result.known_weight == pytest.approx(25.5)
    assert result.scale_factor == pytest.approx(7013.7255, rel=1e-6)
    assert controller.sensor.raw_requests == [10]
    assert controller.sensor.factors == [pytest.approx(7013.7255, rel=1e-6)]
    assert store.read(Field.SCALE_FACTOR) == pytest.approx(7013.7255, rel=1e-6)
    assert controller.state is CalibrationState.IDLE
    assert controller.session is None


def test_duplicate_decimal_point_is_ignored(controller: CalibrationController) -> None:
    controller.begin()
    _type(controller, "1..2")
    assert controller.session.text == "1.2"
    assert controller.session.has_decimal_point


def test_enter_with_empty_entry_is_noop(controller: CalibrationController, store) -> None:
    controller.begin()
    assert controller.handle(events.ENTER) is None
    assert controller.state is CalibrationState.ENTERING_WEIGHT
    assert controller.sensor.raw_requests == []
    assert store.read(Field.SCALE_FACTOR) is None


def test_clear_empties_entry_and_stays(controller: CalibrationController) -> None:
    controller.begin()
    _type(controller, "12.")
    controller.handle(events.CLEAR)
    assert controller.session.text == ""
    assert not controller.session.has_decimal_point
    assert controller.state is CalibrationState.ENTERING_WEIGHT


def test_partial_entry_has_no_side_effects(controller: CalibrationController, store) -> None:
    controller.begin()
    _type(controller, "99")
    assert controller.sensor.factors == []
    assert store.read(Field.SCALE_FACTOR) is None


@pytest.mark.parametrize("entry", ["0", "0.0", ".", "000"])
def test_zero_weight_is_rejected(controller: CalibrationController, store, entry: str) -> None:
    controller.begin()
    _type(controller, entry)

    assert controller.handle(events.ENTER) is None

    assert controller.state is CalibrationState.ENTERING_WEIGHT
    assert controller.session.text == entry
    assert controller.session.error
    assert controller.sensor.factors == []
    assert store.read(Field.SCALE_FACTOR) is None


def test_zero_raw_average_is_rejected(store) -> None:
    controller = CalibrationController(FakeSensor(raw_average=0.0), store)
    controller.begin()
    _type(controller, "10")
    assert controller.handle(events.ENTER) is None
    assert controller.state is CalibrationState.ENTERING_WEIGHT
    assert store.read(Field.SCALE_FACTOR) is None


def test_sensor_failure_keeps_session(store) -> None:
    sensor = FakeSensor(raw_average=5000.0)
    sensor.fail = True
    controller = CalibrationController(sensor, store)
    controller.begin()
    _type(controller, "10")

    assert controller.handle(events.ENTER) is None
    assert controller.session.error == "Sensor unavailable, try again"

    sensor.fail = False
    result = controller.handle(events.ENTER)
    assert result is not None
    assert result.scale_factor == pytest.approx(500.0)


def test_typing_after_error_clears_message(store) -> None:
    controller = CalibrationController(FakeSensor(raw_average=1000.0), store)
    controller.begin()
    _type(controller, "0")
    controller.handle(events.ENTER)
    assert controller.session.error
    _type(controller, "5")
    assert controller.session.error is None
    assert controller.session.text == "05"


def test_cancel_discards_session(controller: CalibrationController, store) -> None:
    controller.begin()
    _type(controller, "40")
    controller.handle(events.CANCEL)
    assert controller.state is CalibrationState.IDLE
    assert controller.session is None
    assert store.read(Field.SCALE_FACTOR) is None


def test_keys_ignored_when_idle(controller: CalibrationController) -> None:
    assert controller.handle(InputEvent.digit("4")) is None
    assert controller.state is CalibrationState.IDLE


def test_begin_twice_keeps_entry(controller: CalibrationController) -> None:
    controller.begin()
    _type(controller, "7")
    controller.begin()
    assert controller.session.text == "7"


def test_samples_setting_is_used(store) -> None:
    sensor = FakeSensor(raw_average=300.0)
    controller = CalibrationController(sensor, store, samples=25)
    controller.begin()
    _type(controller, "3")
    controller.handle(events.ENTER)
    assert sensor.raw_requests == [25]


def test_parse_and_compute_helpers() -> None:
    assert parse_known_weight("25.5") == pytest.approx(25.5)
    with pytest.raises(CalibrationError):
        parse_known_weight("")
    assert compute_scale_factor(-705000.0, 100.0) == pytest.approx(-7050.0)
    with pytest.raises(CalibrationError):
        compute_scale_factor(0.0, 12.0)
