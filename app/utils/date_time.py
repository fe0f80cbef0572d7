"""Date/time helpers for pass windows, cooldowns, and display.

All functions take an optional ``now`` so callers (and tests) can pin the
clock. Naive datetimes are treated as UTC. Minute/hour differences
truncate toward zero, so 89 minutes is 1 hour.
"""

import math
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from ..constants import CONSECUTIVE_GAP_MINUTES, DATE_FORMATS, TIMEZONE_DEFAULT


def ensure_utc(dt):
    """Make a naive datetime UTC-aware (no-op if already aware)."""
    if dt is None:
        return None
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def _now(now: datetime | None) -> datetime:
    return ensure_utc(now) if now is not None else datetime.now(timezone.utc)


def _diff_minutes(later: datetime, earlier: datetime) -> int:
    return int((ensure_utc(later) - ensure_utc(earlier)).total_seconds() / 60)


def _diff_hours(later: datetime, earlier: datetime) -> int:
    return int((ensure_utc(later) - ensure_utc(earlier)).total_seconds() / 3600)


def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'' if n == 1 else 's'}"


# ── Pass windows ─────────────────────────────────────────────────────


def calculate_end_time(start_time: datetime, duration_hours: int) -> datetime:
    return start_time + timedelta(hours=duration_hours)


def calculate_remaining_minutes(end_time: datetime, now: datetime | None = None) -> int:
    return max(0, _diff_minutes(end_time, _now(now)))


def calculate_remaining_hours(end_time: datetime, now: datetime | None = None) -> int:
    return max(0, _diff_hours(end_time, _now(now)))


def is_pass_expired(end_time: datetime, now: datetime | None = None) -> bool:
    return _now(now) > ensure_utc(end_time)


def is_pass_active(start_time: datetime, end_time: datetime, now: datetime | None = None) -> bool:
    current = _now(now)
    return ensure_utc(start_time) < current < ensure_utc(end_time)


def is_pass_expiring_soon(
    end_time: datetime, warning_minutes: int = 30, now: datetime | None = None
) -> bool:
    remaining = calculate_remaining_minutes(end_time, now)
    return 0 < remaining <= warning_minutes


def calculate_consecutive_hours(passes) -> int:
    """Total hours of the most recent unbroken chain of passes.

    ``passes`` is an iterable of objects or dicts with start_time/end_time.
    A gap of up to 15 minutes between one pass ending and the next
    starting still counts as continuous parking.
    """
    windows = []
    for p in passes:
        if isinstance(p, dict):
            windows.append((ensure_utc(p["start_time"]), ensure_utc(p["end_time"])))
        else:
            windows.append((ensure_utc(p.start_time), ensure_utc(p.end_time)))
    if not windows:
        return 0

    windows.sort(key=lambda w: w[0])
    total = 0
    current_end = windows[0][1]
    for start, end in windows:
        hours = _diff_hours(end, start)
        if _diff_minutes(start, current_end) <= CONSECUTIVE_GAP_MINUTES:
            total += hours
        else:
            total = hours
        current_end = end
    return total


def get_time_until(target_time: datetime, now: datetime | None = None) -> str:
    """Human countdown: "30 minutes", "4h 30m", "2 days", "Expired"."""
    minutes = calculate_remaining_minutes(target_time, now)
    if minutes <= 0:
        return "Expired"
    if minutes < 60:
        return _plural(minutes, "minute")

    hours, rem_minutes = divmod(minutes, 60)
    if hours < 24:
        return _plural(hours, "hour") if rem_minutes == 0 else f"{hours}h {rem_minutes}m"

    days, rem_hours = divmod(hours, 24)
    return _plural(days, "day") if rem_hours == 0 else f"{days}d {rem_hours}h"


# ── Operating hours & cooldown ───────────────────────────────────────


def is_within_operating_hours(
    start_hour: int | None, end_hour: int | None, now: datetime | None = None
) -> bool:
    """True if now falls inside [start, end). Start > end wraps past midnight."""
    if start_hour is None or end_hour is None:
        return True

    current_hour = _now(now).hour
    if start_hour > end_hour:
        return current_hour >= start_hour or current_hour < end_hour
    return start_hour <= current_hour < end_hour


def get_cooldown_end_time(last_end_time: datetime, cooldown_hours: int) -> datetime:
    return ensure_utc(last_end_time) + timedelta(hours=cooldown_hours)


def is_cooldown_period_over(
    last_end_time: datetime, cooldown_hours: int, now: datetime | None = None
) -> bool:
    return _now(now) > get_cooldown_end_time(last_end_time, cooldown_hours)


def get_hours_until_cooldown_ends(
    last_end_time: datetime, cooldown_hours: int, now: datetime | None = None
) -> int:
    if is_cooldown_period_over(last_end_time, cooldown_hours, now):
        return 0
    cooldown_end = get_cooldown_end_time(last_end_time, cooldown_hours)
    return math.ceil(_diff_minutes(cooldown_end, _now(now)) / 60)


# ── Extensions ───────────────────────────────────────────────────────


def extend_pass_end_time(current_end_time: datetime, extension_hours: int) -> datetime:
    return current_end_time + timedelta(hours=extension_hours)


def can_extend_pass(
    end_time: datetime, grace_period_minutes: int = 15, now: datetime | None = None
) -> bool:
    return _now(now) < ensure_utc(end_time) + timedelta(minutes=grace_period_minutes)


# ── Formatting ───────────────────────────────────────────────────────


def format_duration(hours: int) -> str:
    """12 -> "12 hours", 48 -> "2 days", 30 -> "1 day 6 hours"."""
    if hours < 24:
        return _plural(hours, "hour")
    days, rem = divmod(hours, 24)
    if rem == 0:
        return _plural(days, "day")
    return f"{_plural(days, 'day')} {_plural(rem, 'hour')}"


def parse_date(value: str) -> datetime:
    """Parse an ISO-8601 string; a trailing Z and date-only values are accepted."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(value))


def _coerce(value) -> datetime:
    return parse_date(value) if isinstance(value, str) else value


def format_display_date(value, tz: str = TIMEZONE_DEFAULT) -> str:
    return to_timezone(_coerce(value), tz).strftime(DATE_FORMATS["display"])


def format_short_date(value, tz: str = TIMEZONE_DEFAULT) -> str:
    return to_timezone(_coerce(value), tz).strftime(DATE_FORMATS["short"])


def format_time(value, tz: str = TIMEZONE_DEFAULT) -> str:
    return to_timezone(_coerce(value), tz).strftime(DATE_FORMATS["time"])


def format_hour(hour: int) -> str:
    """24h hour number to "9:00 AM" style."""
    if hour in (0, 24):
        return "12:00 AM"
    if hour == 12:
        return "12:00 PM"
    if hour < 12:
        return f"{hour}:00 AM"
    return f"{hour - 12}:00 PM"


def ordinal_suffix(n: int) -> str:
    if n % 10 == 1 and n % 100 != 11:
        return "st"
    if n % 10 == 2 and n % 100 != 12:
        return "nd"
    if n % 10 == 3 and n % 100 != 13:
        return "rd"
    return "th"


# ── Misc ─────────────────────────────────────────────────────────────


def to_timezone(dt: datetime, tz: str = TIMEZONE_DEFAULT) -> datetime:
    return ensure_utc(dt).astimezone(ZoneInfo(tz))


def now_in_timezone(tz: str = TIMEZONE_DEFAULT) -> datetime:
    return datetime.now(ZoneInfo(tz))


def do_date_ranges_overlap(
    start1: datetime, end1: datetime, start2: datetime, end2: datetime
) -> bool:
    return ensure_utc(start1) < ensure_utc(end2) and ensure_utc(end1) > ensure_utc(start2)
