"""
Calendar feed retrieval.

Downloads iCalendar documents over HTTP(S) and hands them to the parser.
Each request is bounded by a timeout; failures are raised to the caller and
never retried.

Usage:
    from icalfeed.fetch import fetch_calendar_events, load_calendar_events

    events = fetch_calendar_events("webcal://calendar.example.com/team.ics")

    # Several feeds, a failing feed contributes no events
    events = load_calendar_events([url_a, url_b])

License: GPL v3
"""

import logging

import requests

from .ical_parser import parse_ical
from .recurrence import DEFAULT_LOOKAHEAD_DAYS, DEFAULT_LOOKBACK_DAYS

logger = logging.getLogger(__name__)

# === CONFIGURATION ===
DEFAULT_HTTP_TIMEOUT = 15

_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; icalfeed ICS Parser)",
    "Accept": "text/calendar, text/plain;q=0.9, */*;q=0.8",
}


# === ERRORS ===
class CalendarFetchError(Exception):
    """Base class for failures retrieving a calendar feed."""

    def __init__(self, url, message):
        super().__init__(message)
        self.url = url


class NetworkError(CalendarFetchError):
    """The request could not be completed (connection failure, timeout)."""


class HttpError(CalendarFetchError):
    """The server answered with a non-2xx status."""

    def __init__(self, url, status_code, reason):
        super().__init__(url, f"Failed to fetch calendar: {status_code} {reason}".rstrip())
        self.status_code = status_code
        self.reason = reason


# === HTTP UTILITIES ===
def canonicalize_url(url):
    """
    Turn a subscription link as users paste it into something requests can GET.

    Surrounding whitespace is dropped. Calendar-app schemes (webcal://,
    ical://) and bare host paths are fetched over https; http:// and https://
    links pass through unchanged.
    """
    url = url.strip()
    if url.startswith("webcal://"):
        return url.replace("webcal://", "https://", 1)
    elif url.startswith("ical://"):
        return url.replace("ical://", "https://", 1)
    elif not (url.startswith("http://") or url.startswith("https://")):
        return "https://" + url
    return url


def fetch_calendar_text(url, timeout=DEFAULT_HTTP_TIMEOUT, session=None):
    """
    Download an iCalendar document.

    The body is decoded as UTF-8 whatever charset the server advertises;
    undecodable bytes are replaced.

    Args:
        url: Calendar URL (webcal:// and ical:// are accepted)
        timeout: Request timeout in seconds
        session: Optional requests.Session to issue the request with

    Returns:
        Document text

    Raises:
        NetworkError: Transport failure or timeout
        HttpError: Non-2xx response
    """
    processed_url = canonicalize_url(url)
    http = session or requests
    logger.debug("Fetching calendar %s (timeout %ss)", processed_url, timeout)

    try:
        response = http.get(processed_url, headers=_HEADERS, timeout=timeout)
    except requests.Timeout as e:
        logger.error("Error fetching calendar events from %s: request timeout", processed_url)
        raise NetworkError(processed_url, "Request timeout") from e
    except requests.RequestException as e:
        logger.error("Error fetching calendar events from %s: %s", processed_url, e)
        raise NetworkError(processed_url, str(e)) from e

    try:
        if not 200 <= response.status_code < 300:
            logger.error("Error fetching calendar events from %s: HTTP %s",
                         processed_url, response.status_code)
            raise HttpError(processed_url, response.status_code, response.reason or "")
        return response.content.decode("utf-8", errors="replace")
    finally:
        response.close()


# === PUBLIC API ===
def fetch_calendar_events(url, *, timeout=DEFAULT_HTTP_TIMEOUT, session=None, now=None,
                          lookback_days=DEFAULT_LOOKBACK_DAYS,
                          lookahead_days=DEFAULT_LOOKAHEAD_DAYS):
    """
    Fetch and parse calendar events from an iCal URL.

    Args:
        url: Calendar URL (supports http://, https://, webcal://, ical://)
        timeout: Request timeout in seconds
        session: Optional requests.Session
        now: Reference time for recurrence expansion (default: current time)
        lookback_days: Days before ``now`` to expand
        lookahead_days: Days after ``now`` to expand

    Returns:
        List of CalendarEvent sorted by start time

    Raises:
        NetworkError: Transport failure or timeout
        HttpError: Non-2xx response
    """
    ical_text = fetch_calendar_text(url, timeout=timeout, session=session)
    events = parse_ical(ical_text, now=now, lookback_days=lookback_days,
                        lookahead_days=lookahead_days)
    logger.info("Loaded %d events from %s", len(events), canonicalize_url(url))
    return events


def load_calendar_events(urls, *, timeout=DEFAULT_HTTP_TIMEOUT, session=None, now=None,
                         lookback_days=DEFAULT_LOOKBACK_DAYS,
                         lookahead_days=DEFAULT_LOOKAHEAD_DAYS):
    """
    Fetch several calendars and merge their events.

    Blank URLs are ignored. A feed that fails is logged and contributes no
    events so the remaining feeds still load.

    Args:
        urls: Iterable of calendar URLs
        timeout: Per-request timeout in seconds
        session: Optional requests.Session shared by all requests
        now: Reference time for recurrence expansion
        lookback_days: Days before ``now`` to expand
        lookahead_days: Days after ``now`` to expand

    Returns:
        Merged list of CalendarEvent sorted by start time
    """
    valid_urls = [url.strip() for url in urls if url and url.strip()]
    all_events = []
    for url in valid_urls:
        try:
            all_events.extend(fetch_calendar_events(
                url, timeout=timeout, session=session, now=now,
                lookback_days=lookback_days, lookahead_days=lookahead_days,
            ))
        except CalendarFetchError as e:
            logger.warning("Skipping calendar %s: %s", url, e)

    all_events.sort(key=lambda e: e.start)
    return all_events
