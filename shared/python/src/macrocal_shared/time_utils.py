"""
time_utils.py — Clock/date parsing for calendar sources.

Calendar pages publish times and dates in loose formats:
- 12-hour clock: "1:30 PM", "08:30AM", "8:30am"
- ISO date tokens hidden in class attributes: " 2026-02-15"
- Day headers without a year: "Mon Jan 15", "MonJan 15"
- Epoch seconds in data attributes: "1706625000"

Usage:
    from macrocal_shared.time_utils import parse_clock_12h, combine_utc

    parse_clock_12h("1:30 PM")                       # (13, 30)
    combine_utc(date(2026, 2, 15), 13, 30)           # 2026-02-15 13:30:00+00:00
    parse_day_header("Mon Jan 15", ref=date(2024, 1, 10))   # date(2024, 1, 15)
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from dateutil import parser as date_parser

_CLOCK_12H = re.compile(r"(\d{1,2}):(\d{2})\s*(AM|PM)", re.IGNORECASE)
_ISO_DATE = re.compile(r"(\d{4}-\d{2}-\d{2})")
_WEEKDAY_PREFIX = re.compile(
    r"^(mon(day)?|tue(s(day)?)?|wed(nesday)?|thu(r(s(day)?)?)?|fri(day)?|sat(urday)?|sun(day)?)"
    r"\.?,?\s*",
    re.IGNORECASE,
)
_LEAP_DEFAULT_YEAR = 2000


def parse_clock_12h(text: str | None) -> tuple[int, int] | None:
    """
    Parse a 12-hour "H:MM AM/PM" clock into a 24-hour (hour, minute) pair.

    12 AM is midnight (0) and 12 PM is noon (12). Returns None when the
    text holds no recognisable clock or the values are out of range.
    """
    if not text:
        return None
    m = _CLOCK_12H.search(text)
    if not m:
        return None

    hours = int(m.group(1))
    minutes = int(m.group(2))
    if not 1 <= hours <= 12 or minutes > 59:
        return None

    meridiem = m.group(3).upper()
    if meridiem == "PM" and hours != 12:
        hours += 12
    if meridiem == "AM" and hours == 12:
        hours = 0
    return hours, minutes


def find_iso_date(text: str | None) -> date | None:
    """Return the first YYYY-MM-DD token in *text* as a date, or None."""
    if not text:
        return None
    m = _ISO_DATE.search(text)
    if not m:
        return None
    try:
        return date.fromisoformat(m.group(1))
    except ValueError:
        return None


def parse_day_header(text: str | None, *, ref: date) -> date | None:
    """
    Parse a calendar day header such as "Mon Jan 15" or "MonJan 15".

    Headers carry no year; the year is the one of ref.year - 1, ref.year and
    ref.year + 1 that puts the date closest to *ref* (week views that
    straddle New Year). Feb 29 reads as Feb 28 in a non-leap year.
    """
    if not text:
        return None
    cleaned = _WEEKDAY_PREFIX.sub("", text.strip())
    if not cleaned:
        return None
    try:
        # Leap-year default so "Feb 29" parses before a year is chosen
        parsed = date_parser.parse(cleaned, default=datetime(_LEAP_DEFAULT_YEAR, 1, 1)).date()
    except (ValueError, OverflowError):
        return None
    if parsed.year != _LEAP_DEFAULT_YEAR:
        return parsed

    candidates = []
    for year in (ref.year - 1, ref.year, ref.year + 1):
        try:
            candidates.append(parsed.replace(year=year))
        except ValueError:
            candidates.append(date(year, parsed.month, parsed.day - 1))
    return min(candidates, key=lambda day: abs(day - ref))


def combine_utc(
    day: date,
    hour: int,
    minute: int,
    *,
    tz: str = "UTC",
) -> datetime:
    """Combine a date and wall-clock time in *tz* into an aware UTC datetime."""
    local = datetime.combine(day, time(hour, minute), tzinfo=ZoneInfo(tz))
    return local.astimezone(timezone.utc)


def from_epoch(value: str | int | None) -> datetime | None:
    """Convert epoch seconds (string or int) to an aware UTC datetime."""
    if value is None or value == "":
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def to_utc_iso(dt: datetime) -> str:
    """Serialise a datetime as an ISO 8601 UTC string (naive values are taken as UTC)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def parse_timestamp(raw: str | datetime | None) -> datetime | None:
    """
    Parse a timestamp returned by PostgREST into an aware UTC datetime.

    Accepts "2026-02-15T13:30:00+00:00", "...Z" and naive ISO strings.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        dt = raw
    else:
        try:
            dt = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
