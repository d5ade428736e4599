from __future__ import annotations

import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from services.errors import (  # noqa: E402
    InvalidColInputError,
    InvalidValueError,
    LogDoesntExistError,
    NoLogsError,
    NoUsersReturnedError,
)
from services.log_service import (  # noqa: E402
    change_log,
    get_logged_names,
    get_logs,
    get_logs_count,
    get_users,
    remove_logs,
)
from services.write_coordinator import WriteCoordinator  # noqa: E402


@pytest.fixture
def filled(journal):
    coordinator = WriteCoordinator(clock=lambda: 1_700_000_000)
    coordinator.append(journal, "alice", "test_drug", "test_route", 1.0, "test_units", cost=2, currency="EUR")
    coordinator.append(journal, "alice", "caffeine", "oral", 100, "mg")
    coordinator.append(journal, "alice", "caffeine", "oral", 200, "mg", cost=1.5, currency="USD")
    coordinator.append(journal, "bob", "caffeine", "oral", 50, "mg")
    return journal


def test_get_logs_orders_and_limits(filled):
    asc = get_logs(filled, "alice")
    assert [log.time_of_dose_start for log in asc] == [1_700_000_000, 1_700_000_001, 1_700_000_002]
    desc = get_logs(filled, "alice", num=2, desc=True)
    assert [log.dose for log in desc] == [200, 100]
    assert get_logs(filled, "alice", log_id=1_700_000_001)[0].dose == 100


def test_get_logs_for_unknown_user_raises(filled):
    with pytest.raises(NoLogsError):
        get_logs(filled, "nobody")
    assert get_logs_count(filled, "nobody") == 0


def test_search_matches_substrings_only_for_the_user(filled):
    logs = get_logs(filled, "alice", search="caff")
    assert [log.dose for log in logs] == [100, 200]
    assert all(log.username == "alice" for log in logs)


def test_search_resolves_alternative_names(filled):
    logs = get_logs(filled, "alice", search="swallowed")
    assert {log.drug_route for log in logs} == {"oral"}


def test_exact_column_search(filled):
    assert [log.dose for log in get_logs(filled, "alice", search="USD", exact_column="cost-cur")] == [200]
    assert [log.dose for log in get_logs(filled, "alice", search="100", exact_column="dose")] == [100]
    assert len(get_logs(filled, "alice", search="milligrams", exact_column="units")) == 2


def test_unknown_column_is_rejected(filled):
    with pytest.raises(InvalidColInputError):
        get_logs(filled, "alice", search="x", exact_column="colour")


def test_remove_by_search_and_by_amount(filled):
    assert remove_logs(filled, "alice", search="caffeine", exact_column="drug") == 2
    assert [log.drug_name for log in get_logs(filled, "alice")] == ["test_drug"]
    assert get_logs_count(filled, "bob") == 1


def test_remove_everything_for_a_user(filled):
    assert remove_logs(filled, "alice") == 3
    assert get_logs_count(filled, "alice") == 0
    assert get_logs_count(filled, "bob") == 1


def test_remove_missing_id_raises(filled):
    with pytest.raises(LogDoesntExistError):
        remove_logs(filled, "alice", log_id=42)


def test_change_log_resolves_names_and_returns_the_row(filled):
    row = change_log(filled, "route", 1_700_000_001, "alice", "po")
    assert row.drug_route == "oral"
    row = change_log(filled, "dose", 0, "alice", "250")
    assert row.time_of_dose_start == 1_700_000_002
    assert row.dose == 250


def test_change_log_start_time_moves_the_id(filled):
    row = change_log(filled, "start-time", 1_700_000_000, "alice", "1600000000")
    assert row.id == 1_600_000_000
    assert get_logs(filled, "alice")[0].time_of_dose_start == 1_600_000_000


def test_change_log_rejects_bad_values(filled):
    with pytest.raises(InvalidValueError):
        change_log(filled, "start-time", 1_700_000_000, "alice", "1700000001")
    with pytest.raises(InvalidValueError):
        change_log(filled, "end-time", 1_700_000_000, "alice", "100")
    with pytest.raises(InvalidValueError):
        change_log(filled, "dose", 1_700_000_000, "alice", "lots")
    with pytest.raises(InvalidColInputError):
        change_log(filled, "user", 1_700_000_000, "alice", "mallory")
    with pytest.raises(LogDoesntExistError):
        change_log(filled, "dose", 7, "alice", "1")


def test_change_log_end_time_now(filled):
    row = change_log(filled, "end-time", 1_700_000_000, "alice", "now")
    assert row.time_of_dose_end > row.time_of_dose_start


def test_users_and_logged_names(filled):
    assert get_users(filled) == ["alice", "bob"]
    assert get_logged_names(filled, "drug_name", user="alice") == ["caffeine", "test_drug"]
    assert get_logged_names(filled, "drug", user="bob") == ["caffeine"]
    assert get_logged_names(filled, "drug_name", info=True) == ["Alcohol", "caffeine", "test_drug"]
    with pytest.raises(InvalidColInputError):
        get_logged_names(filled, "nope", info=True)


def test_no_users_raises(journal):
    with pytest.raises(NoUsersReturnedError):
        get_users(journal)
