from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any

from services.errors import InvalidColInputError


@dataclass(frozen=True)
class LogRow:
    time_of_dose_start: int
    username: str
    time_of_dose_end: int
    drug_name: str
    dose: float
    dose_units: str
    drug_route: str
    cost: float = 0.0
    cost_currency: str = ""

    @property
    def id(self) -> int:
        return self.time_of_dose_start

    @classmethod
    def from_model(cls, model: Any) -> "LogRow":
        return cls(
            time_of_dose_start=int(model.time_of_dose_start),
            username=model.username,
            time_of_dose_end=int(model.time_of_dose_end or 0),
            drug_name=model.drug_name,
            dose=float(model.dose),
            dose_units=model.dose_units,
            drug_route=model.drug_route,
            cost=float(model.cost or 0),
            cost_currency=model.cost_currency or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class InfoRow:
    drug_name: str
    drug_route: str
    threshold: float = 0.0
    low_dose_min: float = 0.0
    low_dose_max: float = 0.0
    medium_dose_min: float = 0.0
    medium_dose_max: float = 0.0
    high_dose_min: float = 0.0
    high_dose_max: float = 0.0
    dose_units: str = ""
    onset_min: float = 0.0
    onset_max: float = 0.0
    onset_units: str = ""
    come_up_min: float = 0.0
    come_up_max: float = 0.0
    come_up_units: str = ""
    peak_min: float = 0.0
    peak_max: float = 0.0
    peak_units: str = ""
    offset_min: float = 0.0
    offset_max: float = 0.0
    offset_units: str = ""
    total_dur_min: float = 0.0
    total_dur_max: float = 0.0
    total_dur_units: str = ""
    time_of_fetch: int = 0

    @classmethod
    def from_mapping(cls, data: Any) -> "InfoRow":
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in dict(data).items() if k in names})

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def bands(self) -> dict[str, tuple[float, float]]:
        return {
            "low_dose": (self.low_dose_min, self.low_dose_max),
            "medium_dose": (self.medium_dose_min, self.medium_dose_max),
            "high_dose": (self.high_dose_min, self.high_dose_max),
            "onset": (self.onset_min, self.onset_max),
            "come_up": (self.come_up_min, self.come_up_max),
            "peak": (self.peak_min, self.peak_max),
            "offset": (self.offset_min, self.offset_max),
            "total_dur": (self.total_dur_min, self.total_dur_max),
        }


@dataclass(frozen=True)
class Cost:
    substance: str
    cost_currency: str
    total_cost: float = 0.0


# Log table columns and the Python type of their values.
LOG_COLUMN_KINDS = {
    "time_of_dose_start": int,
    "username": str,
    "time_of_dose_end": int,
    "drug_name": str,
    "dose": float,
    "dose_units": str,
    "drug_route": str,
    "cost": float,
    "cost_currency": str,
}

# Short spellings accepted wherever a column is named.
LOG_COLUMN_ALIASES = {
    "start-time": "time_of_dose_start",
    "end-time": "time_of_dose_end",
    "drug": "drug_name",
    "units": "dose_units",
    "route": "drug_route",
    "cost-cur": "cost_currency",
    "user": "username",
}

TIME_COLUMNS = ("time_of_dose_start", "time_of_dose_end")

# Columns free-text search runs over.
SEARCH_COLUMNS = ("drug_name", "dose", "dose_units", "drug_route", "cost", "cost_currency")


def log_column(name: str, component: str | None = None) -> str:
    """Map a column name or alias to the log table column."""
    key = (name or "").strip()
    column = LOG_COLUMN_ALIASES.get(key.lower(), key)
    if column not in LOG_COLUMN_KINDS:
        raise InvalidColInputError(repr(name), component=component)
    return column
