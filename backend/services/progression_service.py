"""Estimates of how far a logged dose has progressed through its phases.

All numbers are approximations built from the averages of the info table
ranges. The "effective start" for doses taken over a period of time is a
heuristic and is kept as is.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field

from db.store import Store
from services.errors import DoseBelowThresholdError, LoggedRouteInfoError, LoggedUnitsInfoError
from services.info_service import get_info
from services.log_service import get_logs
from services.names_service import NAME_TYPE_UNITS, resolve
from services.records import InfoRow, LogRow

logger = logging.getLogger(__name__)

SECONDS_PER_UNIT = {
    "hours": 3600,
    "minutes": 60,
    "seconds": 1,
}

PHASES = ("onset", "come_up", "peak", "offset", "total_dur")


@dataclass(frozen=True)
class TimeTill:
    time_till_onset: int = 0
    time_till_come_up: int = 0
    time_till_peak: int = 0
    time_till_offset: int = 0
    time_till_total: int = 0
    total_complete_min: float = 0.0
    total_complete_max: float = 0.0
    total_complete_avg: float = 0.0
    start_dose: int = 0
    end_dose: int = 0
    use_logged_time: int = 0
    approx_end: int = 0
    now: int = 0
    total_dur_min: float = 0.0
    total_dur_max: float = 0.0
    averages: dict[str, float] = field(default_factory=dict)
    log: LogRow | None = None


def average(first: float, second: float) -> float:
    if first + second != 0:
        return (first + second) / 2
    return 0.0


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def time_till(diff: float, *averages: float) -> int:
    """Seconds left until the sum of the given phase averages has passed."""
    total = sum(averages)
    if diff < total:
        return _round_half_up(total - diff)
    return 0


def completion(diff: float, total: float) -> float:
    """Share of ``total`` elapsed, 0 before the effective start or when ``total`` is absent."""
    if diff <= 0 or total <= 0:
        return 0.0
    if diff < total:
        return min(diff / total, 1.0)
    return 1.0


def phase_seconds(store: Store, info: InfoRow, phase: str) -> tuple[float, float]:
    units = resolve(store, getattr(info, f"{phase}_units"), NAME_TYPE_UNITS)
    low = getattr(info, f"{phase}_min")
    high = getattr(info, f"{phase}_max")
    multiplier = SECONDS_PER_UNIT.get((units or "").lower())
    if multiplier is None:
        logger.warning("unit %r of %s for %s is not valid, didn't convert", units, phase, info.drug_name)
        return low, high
    return low * multiplier, high * multiplier


def effective_start(log: LogRow, info: InfoRow) -> int:
    use_dose = info.threshold or average(info.low_dose_min, info.low_dose_max)
    total_sec = log.time_of_dose_end - log.time_of_dose_start
    if log.time_of_dose_end and total_sec > 0 and log.dose > use_dose:
        units_per_second = log.dose / total_sec
        start_of_light = use_dose / units_per_second
        return int(average(start_of_light, total_sec)) + log.time_of_dose_start
    if log.time_of_dose_end and log.dose <= use_dose:
        return int(average(log.time_of_dose_start, log.time_of_dose_end))
    return log.time_of_dose_start


def _pick_info(store: Store, log: LogRow) -> InfoRow:
    for info in get_info(store, log.drug_name):
        if info.drug_route.lower() == log.drug_route.lower():
            if info.dose_units.lower() != log.dose_units.lower():
                raise LoggedUnitsInfoError(
                    f"logged {log.dose_units!r}, info table {info.dose_units!r}", component="get_times"
                )
            return info
    raise LoggedRouteInfoError(f"{log.drug_name} {log.drug_route}", component="get_times")


def get_times(store: Store, user: str, log_id: int = 0, now: int | None = None) -> TimeTill:
    """Time left until each phase of a logged dose, ``log_id`` 0 is the newest log."""
    log = get_logs(store, user, num=1, log_id=log_id, desc=True)[0]
    info = _pick_info(store, log)

    if info.threshold and log.dose < info.threshold:
        raise DoseBelowThresholdError(
            f"dose {log.dose:g} < threshold {info.threshold:g}; will not calculate times", component="get_times"
        )

    seconds = {phase: phase_seconds(store, info, phase) for phase in PHASES}
    averages = {phase: average(*seconds[phase]) for phase in PHASES}

    current = int(time.time()) if now is None else int(now)
    use_logged_time = effective_start(log, info)
    diff = current - use_logged_time

    onset, come_up, peak, offset, total = (averages[p] for p in PHASES)
    total_min, total_max = seconds["total_dur"]

    return TimeTill(
        time_till_onset=time_till(diff, onset) if onset else 0,
        time_till_come_up=time_till(diff, onset, come_up) if come_up else 0,
        time_till_peak=time_till(diff, onset, come_up, peak) if peak else 0,
        time_till_offset=time_till(diff, onset, come_up, peak, offset) if offset else 0,
        time_till_total=time_till(diff, total) if total else 0,
        total_complete_min=completion(diff, total_min),
        total_complete_max=completion(diff, total_max),
        total_complete_avg=completion(diff, total),
        start_dose=log.time_of_dose_start,
        end_dose=log.time_of_dose_end,
        use_logged_time=use_logged_time,
        approx_end=use_logged_time + int(total),
        now=current,
        total_dur_min=total_min,
        total_dur_max=total_max,
        averages=averages,
        log=log,
    )
