"""
ICS Calendar Parser

Parses iCalendar (.ics) text into a flat, time-sorted list of concrete
event occurrences for dashboard display.

Features:
- Folded (space/tab continued) line reconstruction
- VEVENT blocks keyed by UID, incomplete blocks dropped silently
- DATE, UTC, fixed-offset and floating DATE-TIME values
- Recurring events (RRULE) with EXDATE, RDATE and RECURRENCE-ID overrides,
  expanded over a bounded window (see icalfeed.recurrence)

Usage:
    from icalfeed.ical_parser import parse_ical

    with open("calendar.ics", encoding="utf-8") as f:
        events = parse_ical(f.read())

    for event in events:
        print(f"{event.title}: {event.start} - {event.end}")

License: GPL v3
Version: 1.0.0
"""

import logging
import re

from .date_lib import parse_ical_date
from .models import WorkingEvent
from .recurrence import (
    DEFAULT_LOOKAHEAD_DAYS,
    DEFAULT_LOOKBACK_DAYS,
    expand_events,
)

logger = logging.getLogger(__name__)

# === CONSTANTS ===
_LINE_SPLIT_RE = re.compile(r"\r?\n")
_ESCAPE_RE = re.compile(r"\\([nN,;\\])")
_ESCAPES = {"n": "\n", "N": "\n", ",": ",", ";": ";", "\\": "\\"}

_BEGIN_EVENT = "BEGIN:VEVENT"
_END_EVENT = "END:VEVENT"


# === TEXT PROCESSING ===
def unescape_text(raw):
    """
    Undo iCalendar TEXT escaping in a single left-to-right pass.

    Args:
        raw: Escaped property value

    Returns:
        Text with \\n, \\, \\; and \\\\ sequences resolved
    """
    return _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(1)], raw)


def split_property_key(compound_key):
    """
    Split ``NAME;PARAM=VAL;...`` into the upper-cased base name and a dict of
    parameters (names upper-cased, surrounding quotes removed).
    """
    parts = compound_key.split(";")
    params = {}
    for part in parts[1:]:
        if "=" in part:
            name, val = part.split("=", 1)
            params[name.strip().upper()] = val.strip().strip('"')
    return parts[0].strip().upper(), params


def _parse_date_list(value, params):
    dates = []
    for date_part in value.split(","):
        date_part = date_part.strip()
        if not date_part:
            continue
        ts = parse_ical_date(date_part, params)
        if ts is not None:
            dates.append(ts)
    return dates


# === PROPERTY INTERPRETATION ===
def apply_property(event, compound_key, value):
    """
    Apply one property line to a working event.

    Args:
        event: WorkingEvent being populated
        compound_key: Property name with parameters, e.g. "DTSTART;VALUE=DATE"
        value: Raw (unfolded) property value
    """
    key, params = split_property_key(compound_key)

    if key == "UID":
        event.id = value
    elif key == "SUMMARY":
        event.title = unescape_text(value)
    elif key == "DTSTART":
        event.start = parse_ical_date(value, params)
    elif key == "DTEND":
        event.end = parse_ical_date(value, params)
    elif key == "RECURRENCE-ID":
        event.recurrence_id = parse_ical_date(value, params)
    elif key == "DESCRIPTION":
        event.description = unescape_text(value)
    elif key == "LOCATION":
        event.location = unescape_text(value)
    elif key == "RRULE":
        event.rrule = value
    elif key == "STATUS":
        event.status = value
    elif key == "EXDATE":
        event.exdates.extend(_parse_date_list(value, params))
    elif key == "RDATE":
        event.rdates.extend(_parse_date_list(value, params))


# === ICS PARSING ===
def iter_working_events(ical_text):
    """
    Tokenize an iCalendar document and yield each complete VEVENT block.

    Blocks lacking UID, DTSTART or DTEND are dropped. Components nested
    inside a VEVENT (VALARM) are skipped.

    Args:
        ical_text: Complete iCalendar document

    Yields:
        WorkingEvent records in document order
    """
    current = None
    nested_depth = 0
    current_key = ""
    current_value = ""

    for line in _LINE_SPLIT_RE.split(ical_text):
        # Continuation of a folded line
        if line.startswith((" ", "\t")):
            if current_key:
                current_value += line.strip()
            continue

        if current_key and current_value:
            if current is not None:
                apply_property(current, current_key, current_value)
            current_key = ""
            current_value = ""

        stripped = line.strip()
        if not stripped:
            continue

        if stripped == _BEGIN_EVENT:
            if current is not None:
                logger.debug("Discarding unterminated VEVENT %r", current.id)
            current = WorkingEvent()
            nested_depth = 0
            continue

        if stripped == _END_EVENT:
            if current is not None:
                if current.id and current.start and current.end:
                    yield current
                else:
                    logger.debug("Dropping incomplete VEVENT (uid=%r)", current.id)
            current = None
            nested_depth = 0
            continue

        if current is not None:
            if stripped.startswith("BEGIN:"):
                nested_depth += 1
                continue
            if nested_depth and stripped.startswith("END:"):
                nested_depth -= 1
                continue
            if nested_depth:
                continue

        colon_pos = line.find(":")
        if colon_pos > 0:
            current_key = line[:colon_pos]
            current_value = line[colon_pos + 1:]

    if current_key and current_value and current is not None:
        apply_property(current, current_key, current_value)


# === PUBLIC API ===
def parse_ical(ical_text, *, now=None, lookback_days=DEFAULT_LOOKBACK_DAYS,
               lookahead_days=DEFAULT_LOOKAHEAD_DAYS):
    """
    Parse an iCalendar document into concrete event occurrences.

    Recurring events are expanded between ``now - lookback_days`` and
    ``now + lookahead_days``.

    Args:
        ical_text: Complete iCalendar document
        now: Reference time for the expansion window (default: current time)
        lookback_days: Days before ``now`` to include
        lookahead_days: Days after ``now`` to include

    Returns:
        List of CalendarEvent sorted by start time
    """
    working_events = list(iter_working_events(ical_text))
    logger.debug("Tokenized %d VEVENT blocks", len(working_events))
    return expand_events(
        working_events,
        now=now,
        lookback_days=lookback_days,
        lookahead_days=lookahead_days,
    )
