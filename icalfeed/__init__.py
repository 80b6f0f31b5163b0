"""iCalendar parsing and recurrence expansion for dashboard calendar widgets."""

__version__ = "1.0.0"

from .fetch import (
    CalendarFetchError,
    HttpError,
    NetworkError,
    canonicalize_url,
    fetch_calendar_events,
    load_calendar_events,
)
from .ical_parser import parse_ical
from .models import CalendarEvent

__all__ = [
    "CalendarEvent",
    "CalendarFetchError",
    "HttpError",
    "NetworkError",
    "canonicalize_url",
    "fetch_calendar_events",
    "load_calendar_events",
    "parse_ical",
]
