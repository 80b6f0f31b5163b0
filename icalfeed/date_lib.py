"""
iCalendar Date Library

Date helpers shared by the parser and the recurrence engine. All values
returned are timezone-aware datetimes so that UTC, fixed-offset and floating
(local wall-clock) times compare as instants.

TZID parameters are not resolved against a timezone database: floating and
TZID-qualified times are both read as local wall-clock time.

Usage:
    from icalfeed.date_lib import parse_ical_date, same_local_date, to_iso_utc

    # All-day value, local midnight on 1 March
    parse_ical_date("20260301", {"VALUE": "DATE"})

    # Explicit UTC and fixed offset
    parse_ical_date("20260301T090000Z", {})
    parse_ical_date("20260301T090000+0200", {})

License: GPL v3
"""

import logging
import re
from datetime import date, datetime, timedelta, timezone

logger = logging.getLogger(__name__)

# === MODULE CONSTANTS ===
_DATE_ONLY_LENGTH = 8
_OFFSET_RE = re.compile(r"([+-])(\d{2}):?(\d{2})$")


# === PARSING ===
def _split_components(value):
    """
    Extract (year, month, day, hour, minute, second) from the digits of an
    iCalendar DATE or DATE-TIME string, ignoring any UTC/offset suffix.
    """
    body = value[:15] if "T" in value[:9] else value[:8]
    year = int(body[0:4])
    month = int(body[4:6])
    day = int(body[6:8])
    hour = minute = second = 0
    if len(body) > 9:
        hour = int(body[9:11] or 0)
        minute = int(body[11:13] or 0)
        second = int(body[13:15] or 0)
    return year, month, day, hour, minute, second


def parse_ical_date(value, params=None):
    """
    Parse an iCalendar DATE or DATE-TIME value into an aware datetime.

    Args:
        value: Raw property value (e.g. "20260301", "20260301T090000Z")
        params: Property parameters; VALUE=DATE forces a date-only reading,
            TZID is accepted but treated as local time

    Returns:
        Timezone-aware datetime, or None if the value cannot be read
    """
    params = params or {}
    value = value.strip()
    if len(value) < _DATE_ONLY_LENGTH:
        logger.debug("Ignoring unparseable date value %r", value)
        return None

    try:
        year, month, day, hour, minute, second = _split_components(value)

        if params.get("VALUE", "").upper() == "DATE" or len(value) == _DATE_ONLY_LENGTH:
            # Local midnight, never normalized through UTC
            return from_local_wall_clock(datetime(year, month, day))

        if value.endswith("Z"):
            return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)

        offset = _OFFSET_RE.search(value[15:])
        if offset:
            sign, off_hours, off_minutes = offset.groups()
            minutes = int(off_hours) * 60 + int(off_minutes)
            if sign == "-":
                minutes = -minutes
            wall = datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)
            return wall - timedelta(minutes=minutes)

        return from_local_wall_clock(datetime(year, month, day, hour, minute, second))
    except (ValueError, OverflowError, OSError) as e:
        logger.debug("Ignoring unparseable date value %r: %s", value, e)
        return None


# === LOCAL TIME CONVERSION ===
def from_local_wall_clock(naive):
    """Attach the process' local timezone to a naive wall-clock datetime."""
    return naive.astimezone()


def local_wall_clock(dt):
    """
    Convert an aware datetime to a naive datetime in local wall-clock time.

    Recurrence arithmetic is done on these values so that generated
    occurrences keep the master's local time of day.
    """
    return dt.astimezone().replace(tzinfo=None)


def add_days_overflow(year, month, day):
    """
    Build a date from components, letting an out-of-range day roll forward.

    Day 31 of a 30-day month becomes the 1st of the following month, and
    29 February of a common year becomes 1 March.
    """
    return date(year, month, 1) + timedelta(days=day - 1)


# === COMPARISON & FORMATTING ===
def same_local_date(a, b):
    """Return True if both instants fall on the same local calendar date."""
    return a.astimezone().date() == b.astimezone().date()


def to_iso_utc(dt):
    """Render an aware datetime as a UTC ISO-8601 string, e.g. 2026-03-01T08:00:00Z."""
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
