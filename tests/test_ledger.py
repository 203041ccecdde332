from __future__ import annotations

import json
import math

import pytest

from truckscale.domain.ledger import Ledger, restore_scale_factor
from truckscale.domain.models import DEFAULT_SCALE_FACTOR
from truckscale.services.storage import Field, JsonFileStore, StorageError


def test_commit_load_accumulates() -> None:
    ledger = Ledger()
    ledger.commit_load(10.0)
    ledger.commit_load(2.5)
    assert ledger.load_count == 2
    assert ledger.total_weight == pytest.approx(12.5)


@pytest.mark.parametrize("weight", [-1.0, math.nan, math.inf])
def test_commit_load_rejects_bad_weight(weight) -> None:
    ledger = Ledger(1, 5.0)
    with pytest.raises(ValueError):
        ledger.commit_load(weight)
    assert (ledger.load_count, ledger.total_weight) == (1, 5.0)


def test_accumulation_is_not_persisted_until_store(store: JsonFileStore) -> None:
    ledger = Ledger()
    ledger.commit_load(8.0)
    assert store.read(Field.LOAD_COUNT) is None

    ledger.store(store)
    assert store.read(Field.LOAD_COUNT) == 1
    assert store.read(Field.TOTAL_WEIGHT) == pytest.approx(8.0)
    assert (ledger.load_count, ledger.total_weight) == (1, 8.0)


def test_store_then_restart_restores_ledger(tmp_path) -> None:
    path = tmp_path / "ledger.json"
    ledger = Ledger()
    for weight in (1200.5, 980.0, 1100.25):
        ledger.commit_load(weight)
    ledger.store(JsonFileStore(path))

    restored = Ledger.restore(JsonFileStore(path))
    assert restored == ledger


def test_reset_is_durable_immediately(store: JsonFileStore) -> None:
    ledger = Ledger(7, 700.0)
    ledger.store(store)

    ledger.reset(store)

    assert (ledger.load_count, ledger.total_weight) == (0, 0.0)
    assert store.read(Field.LOAD_COUNT) == 0
    assert store.read(Field.TOTAL_WEIGHT) == 0.0


def test_restore_uninitialised_store_starts_empty(store: JsonFileStore) -> None:
    assert Ledger.restore(store) == Ledger()


def test_restore_ignores_negative_values(tmp_path) -> None:
    path = tmp_path / "ledger.json"
    path.write_text(json.dumps({"load_count": -4, "total_weight": -1.0}), encoding="utf-8")
    assert Ledger.restore(JsonFileStore(path)) == Ledger()


@pytest.mark.parametrize("stored", [0, 0.0, None, "abc"])
def test_invalid_scale_factor_falls_back_without_overwrite(tmp_path, stored) -> None:
    path = tmp_path / "ledger.json"
    path.write_text(json.dumps({"scale_factor": stored}), encoding="utf-8")
    store = JsonFileStore(path)

    assert restore_scale_factor(store) == DEFAULT_SCALE_FACTOR
    assert json.loads(path.read_text(encoding="utf-8"))["scale_factor"] == stored


def test_valid_scale_factor_is_restored(store: JsonFileStore) -> None:
    store.write(Field.SCALE_FACTOR, 7013.5)
    assert restore_scale_factor(store) == pytest.approx(7013.5)


def test_nan_scale_factor_reads_back_invalid(store: JsonFileStore) -> None:
    store.write(Field.SCALE_FACTOR, math.nan)
    assert restore_scale_factor(store) == DEFAULT_SCALE_FACTOR


def test_failed_save_leaves_count_and_total_consistent(store: JsonFileStore, monkeypatch: pytest.MonkeyPatch) -> None:
    Ledger(7, 700.0).store(store)
    saves = []
    original_save = JsonFileStore._atomic_save

    def save_once_then_fail(self, payload):
        saves.append(dict(payload))
        if len(saves) > 1:
            raise StorageError("disk full")
        original_save(self, payload)

    monkeypatch.setattr(JsonFileStore, "_atomic_save", save_once_then_fail)

    ledger = Ledger(7, 700.0)
    ledger.reset(store)
    assert len(saves) == 1
    assert (store.read(Field.LOAD_COUNT), store.read(Field.TOTAL_WEIGHT)) == (0, 0.0)

    ledger.commit_load(250.0)
    with pytest.raises(StorageError):
        ledger.store(store)
    assert Ledger.restore(store) == Ledger(0, 0.0)
