from __future__ import annotations

import math

import pytest

from conftest import FakeSensor
from truckscale.domain.detector import LoadEventDetector
from truckscale.domain.ledger import Ledger
from truckscale.domain.models import LoadPhase, MonitorState


def _run(samples):
    ledger = Ledger()
    detector = LoadEventDetector(ledger)
    events = [event for event in (detector.process(s) for s in samples) if event is not None]
    return ledger, detector, events


def test_single_load_records_last_weight_before_unload() -> None:
    ledger, detector, events = _run([0, 0, 12.3, 12.5, 12.0, 0, 0])
    assert len(events) == 1
    assert events[0].weight == pytest.approx(12.0)
    assert ledger.load_count == 1
    assert ledger.total_weight == pytest.approx(12.0)
    assert detector.state == MonitorState()


@pytest.mark.parametrize(
    "samples, expected_count, expected_total",
    [
        ([], 0, 0.0),
        ([0, 0, 0], 0, 0.0),
        ([5.0, 0, 7.0, 8.0, 0], 2, 13.0),
        ([3.0, 0, 3.0, 0, 3.0, 0], 3, 9.0),
        ([4.0, 6.0, 6.0], 0, 0.0),
        ([2.0] * 50 + [0], 1, 2.0),
    ],
)
def test_count_matches_unload_edges(samples, expected_count, expected_total) -> None:
    ledger, _detector, events = _run(samples)
    assert ledger.load_count == expected_count == len(events)
    assert ledger.total_weight == pytest.approx(expected_total)
    assert sum(event.weight for event in events) == pytest.approx(expected_total)


def test_flicker_around_zero_counts_each_edge_once() -> None:
    ledger, _detector, events = _run([1.0, 0, 1.0, 0, 0, 0])
    assert [event.weight for event in events] == [1.0, 1.0]
    assert events[-1].load_count == 2


def test_negative_sample_keeps_latched_load() -> None:
    ledger, detector, events = _run([10.0, -3.0])
    assert events == []
    assert detector.state.load_detected
    assert detector.state.last_weight == pytest.approx(10.0)

    assert detector.process(0.0) is not None
    assert ledger.total_weight == pytest.approx(10.0)


def test_rising_sample_latches_loaded_phase() -> None:
    _ledger, detector, _events = _run([0, 4.5])
    assert detector.state.phase is LoadPhase.LOADED
    assert detector.state.last_weight == pytest.approx(4.5)


def test_tare_clears_monitor_state_but_not_ledger() -> None:
    ledger = Ledger(load_count=3, total_weight=42.0)
    detector = LoadEventDetector(ledger)
    detector.process(9.0)
    sensor = FakeSensor()

    detector.tare(sensor)

    assert sensor.zero_calls == 1
    assert detector.state == MonitorState()
    assert (ledger.load_count, ledger.total_weight) == (3, 42.0)
    assert detector.process(0.0) is None


@pytest.mark.parametrize("bad", [math.nan, math.inf, -math.inf])
def test_non_finite_sample_is_ignored(bad) -> None:
    ledger, detector, events = _run([40.0, bad, 0])
    assert [event.weight for event in events] == [40.0]
    assert ledger.load_count == 1


def test_rejected_commit_still_clears_latch() -> None:
    ledger = Ledger()
    detector = LoadEventDetector(ledger)
    detector.state = MonitorState(LoadPhase.LOADED, math.inf)

    with pytest.raises(ValueError):
        detector.process(0)
    assert detector.state == MonitorState()
    assert detector.process(0) is None
    assert ledger.load_count == 0
