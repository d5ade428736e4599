from __future__ import annotations

import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import Settings  # noqa: E402
from db.store import Store, build_store  # noqa: E402
from services.info_service import add_info_rows  # noqa: E402
from services.records import InfoRow  # noqa: E402


GLOBAL_NAMES = {
    "gpd-substance-names.toml": (
        '[LocalName.cannabis]\nAltNames = ["weed", "marijuana"]\n\n'
        '[LocalName.alcohol]\nAltNames = ["booze"]\n'
    ),
    "gpd-route-names.toml": '[LocalName.oral]\nAltNames = ["swallowed", "po"]\n',
    "gpd-units-names.toml": (
        '[LocalName.mg]\nAltNames = ["milligrams"]\n\n'
        '[LocalName.minutes]\nAltNames = ["min", "mins"]\n\n'
        '[LocalName.hours]\nAltNames = ["h", "hrs"]\n'
    ),
    "gpd-units-conversions.toml": '[LocalName.alcohol]\nAltNames = ["Convert-Milliliters-To-Grams", "g"]\n',
}

# No route file on purpose, that table is seeded with the sentinel only.
OVERLAY_NAMES = {
    "gpd-substance-names.toml": '[LocalName.Alcohol]\nAltNames = ["alcohol"]\n',
    "gpd-units-names.toml": '[LocalName."mL EtOH"]\nAltNames = ["pure ml"]\n',
    "gpd-units-conversions.toml": '[LocalName.Alcohol]\nAltNames = ["Convert-Percent-To-Pure", "mL EtOH"]\n',
}


def info_row(drug: str, route: str, units: str, **values) -> InfoRow:
    return InfoRow(drug_name=drug, drug_route=route, dose_units=units, **values)


# Durations in minutes/hours, averages: onset 900s, come up 900s, peak 5400s,
# offset 5400s, total 10800s (min 7200s, max 14400s).
def caffeine_info(**values) -> InfoRow:
    fields = dict(
        threshold=10,
        low_dose_min=10,
        low_dose_max=50,
        medium_dose_min=50,
        medium_dose_max=150,
        high_dose_min=150,
        high_dose_max=500,
        onset_min=10,
        onset_max=20,
        onset_units="minutes",
        come_up_min=10,
        come_up_max=20,
        come_up_units="min",
        peak_min=1,
        peak_max=2,
        peak_units="hours",
        offset_min=1,
        offset_max=2,
        offset_units="h",
        total_dur_min=2,
        total_dur_max=4,
        total_dur_units="hours",
    )
    fields.update(values)
    return info_row("caffeine", "oral", "mg", **fields)


@pytest.fixture
def names_dir(tmp_path: Path) -> Path:
    root = tmp_path / "names"
    overlay = root / "source-names-local-configs" / "psychonautwiki"
    overlay.mkdir(parents=True)
    for file_name, body in GLOBAL_NAMES.items():
        (root / file_name).write_text(body, encoding="utf-8")
    for file_name, body in OVERLAY_NAMES.items():
        (overlay / file_name).write_text(body, encoding="utf-8")
    return root


@pytest.fixture
def make_store(tmp_path: Path, names_dir: Path):
    def _make(**overrides) -> Store:
        values = {
            "DB_DRIVER": "sqlite",
            "DB_DIR": tmp_path / "db",
            "DB_NAME": "journal.db",
            "NAMES_CONFIG_DIR": names_dir,
            "USE_SOURCE": "psychonautwiki",
            "TIMEOUT": "",
            "AUTO_FETCH": True,
            "AUTO_REMOVE": False,
            "MAX_LOGS_PER_USER": 100,
            "COST_CURRENCY": "",
            "PROXY_URL": "",
            "TIMEZONE": "UTC",
        }
        values.update(overrides)
        return build_store(cfg=Settings(**values))

    return _make


@pytest.fixture
def store(make_store) -> Store:
    return make_store()


@pytest.fixture
def journal(store: Store) -> Store:
    """Store with the info rows the log tests write against."""
    add_info_rows(
        store,
        [
            info_row("test_drug", "test_route", "test_units"),
            caffeine_info(),
            info_row("Alcohol", "oral", "mL EtOH", threshold=5),
        ],
    )
    return store
