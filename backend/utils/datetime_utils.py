import logging
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

LOCAL_TIMEZONE = "Local"


def resolve_timezone(tz_name: str | None) -> tzinfo | None:
    """Return the zone for ``tz_name``, ``None`` means the machine's local zone."""
    if not tz_name or tz_name == LOCAL_TIMEZONE:
        return None
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, showing times in UTC", tz_name)
        return timezone.utc


def from_unix(ts: int, tz_name: str | None = None) -> datetime:
    tz = resolve_timezone(tz_name)
    if tz is None:
        return datetime.fromtimestamp(ts).astimezone()
    return datetime.fromtimestamp(ts, tz)


def format_unix(ts: int, tz_name: str | None = None) -> str:
    return f"{from_unix(ts, tz_name).strftime('%Y-%m-%d %H:%M:%S %Z')} ({ts})"
