"""Time and duration helpers for provider data."""

import math
import re
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

import pandas as pd

LOCAL_TZ = ZoneInfo("Europe/Zurich")

# Provider durations look like "00d01:23:45"; the day component is optional.
_DURATION_RE = re.compile(r"(?:(\d+)d)?(\d{2}):(\d{2}):(\d{2})")


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards positive infinity."""
    return int(math.floor(value + 0.5))


def parse_duration(duration: Optional[str]) -> int:
    """
    Convert a provider duration string to whole minutes.

    Args:
        duration: String such as "01:02:03" or "1d02:00:00". Seconds are ignored.

    Returns:
        Duration in minutes, or 0 when the string is missing or unparseable.
    """
    if not duration:
        return 0
    match = _DURATION_RE.search(duration)
    if not match:
        return 0
    days = int(match.group(1) or 0)
    return days * 24 * 60 + int(match.group(2)) * 60 + int(match.group(3))


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp into an aware datetime.

    Accepts "Z", "+01:00" and "+0100" offsets. Naive values are taken as
    Swiss local time. Returns None instead of raising on bad input.
    """
    if not value:
        return None
    try:
        ts = pd.Timestamp(value)
    except (ValueError, TypeError):
        return None
    if pd.isna(ts):
        return None
    dt = ts.to_pydatetime()
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=LOCAL_TZ)
    return dt


def to_local(dt: datetime) -> datetime:
    """Convert an aware datetime to Europe/Zurich."""
    return dt.astimezone(LOCAL_TZ)


def minutes_between(start: Optional[str], end: Optional[str]) -> Optional[int]:
    """Whole minutes from start to end, or None if either is unparseable."""
    start_dt = parse_timestamp(start)
    end_dt = parse_timestamp(end)
    if start_dt is None or end_dt is None:
        return None
    return round_half_up((end_dt - start_dt).total_seconds() / 60)
