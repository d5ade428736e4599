"""Plain text rendering of journal data for the command line."""

from __future__ import annotations

from services.progression_service import TimeTill
from services.records import Cost, InfoRow, LogRow
from utils.datetime_utils import format_unix

SEPARATOR = "=" * 20


def format_logs(logs: list[LogRow], tz_name: str | None = None) -> str:
    lines: list[str] = []
    for log in logs:
        lines.append(f"Start:\t{format_unix(log.time_of_dose_start, tz_name)}")
        if log.time_of_dose_end:
            lines.append(f"End:\t{format_unix(log.time_of_dose_end, tz_name)}")
        lines.append(f"Drug:\t{log.drug_name!r}")
        lines.append(f"Dose:\t{log.dose:g}")
        lines.append(f"Units:\t{log.dose_units!r}")
        lines.append(f"Route:\t{log.drug_route!r}")
        if log.cost:
            lines.append(f"Cost:\t{log.cost:g} {log.cost_currency}".rstrip())
        lines.append(f"User:\t{log.username!r}")
        lines.append(SEPARATOR)
    return "\n".join(lines)


def _band(label: str, low: float, high: float, units: str = "") -> str | None:
    if not low and not high:
        return None
    return f"{label}:\t{low:g}-{high:g} {units}".rstrip()


def format_info(rows: list[InfoRow], tz_name: str | None = None) -> str:
    lines: list[str] = []
    for row in rows:
        lines.append(f"Drug:\t{row.drug_name!r}")
        lines.append(f"Route:\t{row.drug_route!r}")
        if row.threshold:
            lines.append(f"Threshold:\t{row.threshold:g} {row.dose_units}")
        candidates = [
            _band("Low", row.low_dose_min, row.low_dose_max, row.dose_units),
            _band("Medium", row.medium_dose_min, row.medium_dose_max, row.dose_units),
            _band("High", row.high_dose_min, row.high_dose_max, row.dose_units),
            _band("Onset", row.onset_min, row.onset_max, row.onset_units),
            _band("Comeup", row.come_up_min, row.come_up_max, row.come_up_units),
            _band("Peak", row.peak_min, row.peak_max, row.peak_units),
            _band("Offset", row.offset_min, row.offset_max, row.offset_units),
            _band("Total", row.total_dur_min, row.total_dur_max, row.total_dur_units),
        ]
        lines.extend(line for line in candidates if line)
        if row.time_of_fetch:
            lines.append(f"Fetched:\t{format_unix(row.time_of_fetch, tz_name)}")
        lines.append(SEPARATOR)
    return "\n".join(lines)


def _minutes(seconds: float) -> int:
    return int(round(seconds / 60))


def format_times(times: TimeTill, tz_name: str | None = None) -> str:
    lines = [
        "Warning: All data in here is approximations based on averages.",
        "Please don't let that influence the experience too much!",
        "",
        f"Start Dose:\t{format_unix(times.start_dose, tz_name)}",
    ]
    if times.approx_end != times.start_dose:
        lines.append(f"Approx. End:\t{format_unix(times.approx_end, tz_name)}")
    if times.end_dose:
        lines.append(f"Finish Dose:\t{format_unix(times.end_dose, tz_name)}")
        lines.append(f"Adjust Finish:\t{format_unix(times.use_logged_time, tz_name)}")
    lines.append(f"Current Time:\t{format_unix(times.now, tz_name)}")
    lines.append(f"Time passed:\t{int((times.now - times.use_logged_time) / 60)} minutes")
    if times.log is not None:
        lines += [
            "",
            f"Drug:\t{times.log.drug_name!r}",
            f"Dose:\t{times.log.dose:g}",
            f"Units:\t{times.log.dose_units!r}",
        ]

    lines += ["", "=== Time left in minutes until ==="]
    averages = times.averages
    for label, key, value in (
        ("Onset", "onset", times.time_till_onset),
        ("Comeup", "come_up", times.time_till_come_up),
        ("Peak", "peak", times.time_till_peak),
        ("Offset", "offset", times.time_till_offset),
        ("Total", "total_dur", times.time_till_total),
    ):
        if averages.get(key):
            lines.append(f"{label}:\t{_minutes(value)} (average)")
    left_min = times.total_dur_min - times.total_complete_min * times.total_dur_min
    left_max = times.total_dur_max - times.total_complete_max * times.total_dur_max
    lines.append(f"Total:\tMin: {_minutes(left_min)} ; Max: {_minutes(left_max)}")

    lines.append("=== Percentage of time left completed ===")
    lines.append(
        f"Total:\t{int(times.total_complete_avg * 100)}% "
        f"(of {_minutes(averages.get('total_dur', 0))} average minutes)"
    )
    lines.append(
        f"Total:\tMin: {int(times.total_complete_min * 100)}% (of {_minutes(times.total_dur_min)} minutes) ; "
        f"Max: {int(times.total_complete_max * 100)}% (of {_minutes(times.total_dur_max)} minutes)"
    )
    return "\n".join(lines)


def format_costs(costs: list[Cost]) -> str:
    lines: list[str] = []
    for cost in costs:
        if cost.total_cost == 0:
            continue
        lines.append(f"Substance:\t{cost.substance!r}")
        lines.append(f"Total Cost:\t{cost.total_cost:g}")
        lines.append(f"Cost Currency:\t{cost.cost_currency!r}")
        lines.append(SEPARATOR)
    return "\n".join(lines)
