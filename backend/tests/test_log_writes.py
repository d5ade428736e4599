from __future__ import annotations

import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from services.errors import (  # noqa: E402
    ComboInputError,
    ConversionFailedError,
    InvalidValueError,
    MaxLogsPerUserError,
    WrongAmountNamesError,
)
from services.info_service import add_info_rows  # noqa: E402
from services.log_service import get_logs, get_logs_count, remove_logs  # noqa: E402
from services.write_coordinator import WriteCoordinator  # noqa: E402
from conftest import info_row  # noqa: E402

DOSES = [1.12, 2.12, 3.12, 4.12, 5.12]


class FrozenClock:
    def __init__(self, now: int = 1_700_000_000):
        self.now = now

    def __call__(self) -> float:
        return float(self.now)


def _append(coordinator, store, user="test_user", dose=1.0, **kwargs):
    return coordinator.append(store, user, "test_drug", "test_route", dose, "test_units", **kwargs)


def test_insert_read_remove_cycle(journal):
    coordinator = WriteCoordinator()
    rows = [_append(coordinator, journal, dose=dose) for dose in DOSES]

    assert get_logs_count(journal, "test_user") == 5
    newest = get_logs(journal, "test_user", num=1, desc=True)[0]
    assert newest.time_of_dose_start == rows[-1].time_of_dose_start
    assert newest.dose == 5.12

    assert remove_logs(journal, "test_user", amount=1, reverse=True) == 1
    assert get_logs_count(journal, "test_user") == 4
    assert get_logs(journal, "test_user", num=1, desc=True)[0].dose == 4.12


def test_start_times_strictly_increase_within_the_same_second(journal):
    coordinator = WriteCoordinator(clock=FrozenClock())
    starts = [_append(coordinator, journal).time_of_dose_start for _ in range(4)]
    assert starts == [1_700_000_000, 1_700_000_001, 1_700_000_002, 1_700_000_003]


def test_clock_going_backwards_still_increases(journal):
    clock = FrozenClock(1_700_000_100)
    coordinator = WriteCoordinator(clock=clock)
    first = _append(coordinator, journal)
    clock.now = 1_700_000_000
    second = _append(coordinator, journal)
    assert second.time_of_dose_start == first.time_of_dose_start + 1


def test_users_behind_the_clock_are_forgotten(journal):
    clock = FrozenClock()
    coordinator = WriteCoordinator(clock=clock)
    _append(coordinator, journal, user="alice")
    _append(coordinator, journal, user="bob")
    assert set(coordinator.last) == {"alice", "bob"}

    clock.now += 10
    row = _append(coordinator, journal, user="alice")
    assert row.time_of_dose_start == clock.now
    assert coordinator.last == {"alice": clock.now}


def test_newest_log_is_the_row_just_appended(journal):
    coordinator = WriteCoordinator()
    for dose in DOSES:
        row = _append(coordinator, journal, dose=dose)
        assert get_logs(journal, "test_user", num=1, desc=True) == [row]


def test_append_then_remove_by_id_keeps_count(journal):
    coordinator = WriteCoordinator()
    _append(coordinator, journal)
    before = get_logs_count(journal, "test_user")
    row = _append(coordinator, journal, dose=2.0)
    assert remove_logs(journal, "test_user", log_id=row.id) == 1
    assert get_logs_count(journal, "test_user") == before


def test_concurrent_appends_for_one_user_get_distinct_start_times(journal):
    coordinator = WriteCoordinator()
    with ThreadPoolExecutor(max_workers=5) as pool:
        rows = list(pool.map(lambda dose: _append(coordinator, journal, dose=dose), DOSES))

    starts = sorted(row.time_of_dose_start for row in rows)
    assert len(set(starts)) == 5
    assert starts[-1] - starts[0] <= 5
    assert get_logs_count(journal, "test_user") == 5
    assert sorted(row.dose for row in rows) == DOSES


def test_concurrent_appends_for_different_users(journal):
    coordinator = WriteCoordinator()
    users = [f"test_user_{i}" for i in range(5)]
    with ThreadPoolExecutor(max_workers=5) as pool:
        list(pool.map(lambda pair: _append(coordinator, journal, user=pair[0], dose=pair[1]), zip(users, DOSES)))

    for user, dose in zip(users, DOSES):
        assert get_logs_count(journal, user) == 1
        assert get_logs(journal, user)[0].dose == dose


def test_unknown_combo_is_rejected_without_writing(journal):
    coordinator = WriteCoordinator()
    _append(coordinator, journal)
    with pytest.raises(ComboInputError):
        coordinator.append(journal, "test_user", "no_such_drug", "x", 1.0, "y")
    assert get_logs_count(journal, "test_user") == 1


def test_names_are_resolved_before_the_combo_check(journal):
    row = WriteCoordinator().append(journal, "test_user", "caffeine", "swallowed", 100, "milligrams")
    assert (row.drug_name, row.drug_route, row.dose_units) == ("caffeine", "oral", "mg")


def test_cap_without_auto_remove_refuses_to_log(make_store):
    store = make_store(MAX_LOGS_PER_USER=2)
    add_info_rows(store, [info_row("test_drug", "test_route", "test_units")])
    coordinator = WriteCoordinator()
    _append(coordinator, store)
    _append(coordinator, store)
    with pytest.raises(MaxLogsPerUserError):
        _append(coordinator, store)
    assert get_logs_count(store, "test_user") == 2


def test_cap_with_auto_remove_evicts_the_oldest(make_store):
    store = make_store(MAX_LOGS_PER_USER=3, AUTO_REMOVE=True)
    add_info_rows(store, [info_row("test_drug", "test_route", "test_units")])
    coordinator = WriteCoordinator(clock=FrozenClock())
    for dose in DOSES:
        _append(coordinator, store, dose=dose)

    logs = get_logs(store, "test_user")
    assert [log.dose for log in logs] == [3.12, 4.12, 5.12]


def test_percent_conversion_uses_the_source_overlay(journal):
    row = WriteCoordinator().append(journal, "test_user", "booze", "po", 500, "ml", perc=5)
    assert row.drug_name == "Alcohol"
    assert row.dose == pytest.approx(25.0)
    assert row.dose_units == "mL EtOH"


def test_conversion_falls_back_to_the_global_table(make_store):
    store = make_store(USE_SOURCE="othersource")
    add_info_rows(store, [info_row("alcohol", "oral", "g")])
    row = WriteCoordinator().append(store, "test_user", "booze", "oral", 500, "ml", perc=5)
    assert row.dose == pytest.approx(500 * 5 / 100 * 0.79283)
    assert row.dose_units == "g"


def test_conversion_failure_keeps_its_cause(journal):
    with pytest.raises(ConversionFailedError) as excinfo:
        WriteCoordinator().append(journal, "test_user", "caffeine", "oral", 100, "mg", perc=50)
    assert isinstance(excinfo.value.__cause__, WrongAmountNamesError)
    assert get_logs_count(journal, "test_user") == 0


def test_cost_without_currency_uses_the_configured_default(make_store):
    store = make_store(COST_CURRENCY="EUR")
    add_info_rows(store, [info_row("test_drug", "test_route", "test_units")])
    coordinator = WriteCoordinator()
    assert _append(coordinator, store, cost=3).cost_currency == "EUR"
    assert _append(coordinator, store, cost=3, currency="USD").cost_currency == "USD"
    assert _append(coordinator, store).cost_currency == ""


@pytest.mark.parametrize(
    "kwargs",
    [
        {"dose": -1.0},
        {"cost": -2},
        {"end_time": 1},
    ],
)
def test_invalid_values_are_rejected(journal, kwargs):
    coordinator = WriteCoordinator()
    with pytest.raises(InvalidValueError):
        _append(coordinator, journal, **kwargs)
    assert get_logs_count(journal, "test_user") == 0


def test_missing_username_is_rejected(journal):
    with pytest.raises(InvalidValueError):
        WriteCoordinator().append(journal, "", "test_drug", "test_route", 1.0, "test_units")
