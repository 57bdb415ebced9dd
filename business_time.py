from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

import config

BUSINESS_TZ = ZoneInfo(config.BUSINESS_TZ)

DATE_ONLY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
CLOCK_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

DateLike = Union[datetime, date, str]


# -----------------------------
# ISO-8601 parsing
# -----------------------------
def parse_iso8601_tz(ts: str) -> datetime:
    """
    Parse ISO-8601 timestamp with timezone into an aware datetime.
    Accepts 'Z' suffix by converting it to '+00:00'.
    """
    if not isinstance(ts, str) or not ts.strip():
        raise ValueError("timestamp must be a non-empty string")

    s = ts.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)  # expects offset like +02:00 or +00:00
    if dt.tzinfo is None or dt.utcoffset() is None:
        raise ValueError("timestamp must include a timezone offset")
    return dt


def to_utc(dt: datetime) -> datetime:
    # dt is aware
    return dt.astimezone(timezone.utc)


def utc_iso_z(dt: datetime) -> str:
    return to_utc(dt).isoformat().replace("+00:00", "Z")


def intervals_overlap(
    a_start: datetime,
    a_end: datetime,
    b_start: datetime,
    b_end: datetime,
    buffer: timedelta = timedelta(0),
) -> bool:
    """
    Half-open interval overlap: [start, end)
    Overlap iff a_start < b_end + buffer AND b_start < a_end + buffer.
    With no buffer, back-to-back is allowed (end == other.start is NOT overlap).
    """
    return a_start < b_end + buffer and b_start < a_end + buffer


# -----------------------------
# Business calendar
# -----------------------------
def is_date_only(value: str) -> bool:
    return bool(DATE_ONLY_PATTERN.match(value.strip()))


def to_business_datetime(value: DateLike) -> datetime:
    """
    Normalize an instant or a calendar date to an aware datetime in the
    business timezone.

    Date-only inputs (``date`` objects or ``YYYY-MM-DD`` strings) mean
    wall-clock midnight in the business timezone, not UTC midnight.
    Timestamps without an offset are rejected.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("datetime must be timezone-aware")
        return value.astimezone(BUSINESS_TZ)

    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=BUSINESS_TZ)

    if isinstance(value, str):
        s = value.strip()
        if not s:
            raise ValueError("timestamp must be a non-empty string")
        if is_date_only(s):
            return datetime.combine(date.fromisoformat(s), time.min, tzinfo=BUSINESS_TZ)
        return parse_iso8601_tz(s).astimezone(BUSINESS_TZ)

    raise TypeError(f"unsupported date value: {value!r}")


def to_instant(value: DateLike) -> datetime:
    """Like to_business_datetime, but returned in UTC for storage."""
    return to_utc(to_business_datetime(value))


def business_day(value: DateLike) -> date:
    """Canonical calendar day of value in the business timezone."""
    return to_business_datetime(value).date()


def business_today(now: datetime) -> date:
    return business_day(now)


def parse_clock(hhmm: str) -> time:
    match = CLOCK_PATTERN.match(hhmm.strip()) if isinstance(hhmm, str) else None
    if not match:
        raise ValueError(f"clock time must be HH:mm, got {hhmm!r}")
    return time(int(match.group(1)), int(match.group(2)))


def business_instant(day: Union[date, str], hhmm: str) -> datetime:
    """
    Absolute UTC instant for a business calendar day at a wall-clock time.

    The offset comes from the zone rules of that day, so the same "12:00"
    lands on 10:00Z in winter and 09:00Z in summer.
    """
    if isinstance(day, str):
        day = date.fromisoformat(day.strip())
    local = datetime.combine(day, parse_clock(hhmm), tzinfo=BUSINESS_TZ)
    return to_utc(local)


def format_clock(value: datetime) -> str:
    return value.astimezone(BUSINESS_TZ).strftime("%H:%M")


def resolve_instant(value: DateLike, clock: Optional[str] = None) -> datetime:
    """
    Resolve a request value to a UTC instant.

    A date-only value may be paired with an HH:mm clock time; without one
    it means business midnight. A clock time next to a full timestamp is
    ignored, the timestamp is already exact.
    """
    if clock and (isinstance(value, date) and not isinstance(value, datetime)):
        return business_instant(value, clock)
    if clock and isinstance(value, str) and is_date_only(value):
        return business_instant(value, clock)
    return to_instant(value)
