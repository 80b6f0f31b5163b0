#!/usr/bin/env python3
"""
Calendar Event Lister

Prints the upcoming occurrences of one or more iCalendar sources, the same
list a dashboard calendar widget would display.

Usage:
    # Local file
    icalfeed calendar.ics

    # Remote feeds, JSON output
    icalfeed webcal://calendar.example.com/team.ics https://example.org/a.ics --json

    # Feeds from icalfeed.config_data.CONFIG["calendar_urls"]
    icalfeed
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from . import __version__
from .config_data import CONFIG
from .fetch import CalendarFetchError, fetch_calendar_events
from .ical_parser import parse_ical

logger = logging.getLogger(__name__)

_URL_PREFIXES = ("http://", "https://", "webcal://", "ical://")


def load_source(source, args):
    """
    Load the events of one source, a feed URL or a local file path.

    Raises:
        CalendarFetchError: A feed could not be retrieved
        OSError: A local file could not be read
    """
    window = {
        "lookback_days": args.lookback_days,
        "lookahead_days": args.lookahead_days,
    }
    if source.startswith(_URL_PREFIXES):
        return fetch_calendar_events(source, timeout=args.timeout, **window)

    text = Path(source).read_text(encoding="utf-8", errors="replace")
    return parse_ical(text, **window)


def format_event(event):
    """Render one occurrence as a single line of text."""
    start = event.start.astimezone()
    end = event.end.astimezone()
    end_fmt = "%H:%M" if start.date() == end.date() else "%Y-%m-%d %H:%M"
    line = f"{start:%Y-%m-%d %H:%M} - {end.strftime(end_fmt)}  {event.title}"
    if event.location:
        line += f" @ {event.location}"
    return line


def build_parser():
    parser = argparse.ArgumentParser(
        prog="icalfeed",
        description="List the occurrences of iCalendar files and feeds",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Example usage:
  %(prog)s calendar.ics                          # Local file
  %(prog)s webcal://example.com/cal.ics --json   # Remote feed as JSON
  %(prog)s                                       # Feeds from CONFIG
        """
    )

    parser.add_argument(
        "sources",
        nargs="*",
        metavar="SOURCE",
        help="iCalendar file path or feed URL (default: CONFIG['calendar_urls'])"
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Print events as a JSON list"
    )

    parser.add_argument(
        "-n", "--max-events",
        type=int,
        default=CONFIG.get("MAX_EVENTS", 0),
        help="Maximum number of events to print, 0 for all (default: %(default)s)"
    )

    parser.add_argument(
        "--lookback-days",
        type=int,
        default=CONFIG.get("LOOKBACK_DAYS", 14),
        help="Days before now to include (default: %(default)s)"
    )

    parser.add_argument(
        "--lookahead-days",
        type=int,
        default=CONFIG.get("LOOKAHEAD_DAYS", 365),
        help="Days after now to include (default: %(default)s)"
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=CONFIG.get("HTTP_TIMEOUT", 15),
        help="HTTP timeout in seconds (default: %(default)s)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def main(argv=None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else CONFIG.get("LOG_LEVEL", "WARNING"),
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    sources = args.sources or list(CONFIG.get("calendar_urls", []))
    if not sources:
        parser.error("no SOURCE given and CONFIG['calendar_urls'] is empty")

    events = []
    failures = 0
    for source in sources:
        try:
            events.extend(load_source(source, args))
        except (CalendarFetchError, OSError) as e:
            logger.error("Failed to load %s: %s", source, e)
            failures += 1

    if failures == len(sources):
        print("No calendar could be loaded", file=sys.stderr)
        return 1

    events.sort(key=lambda e: e.start)
    if args.max_events > 0:
        events = events[:args.max_events]

    if args.json:
        print(json.dumps([e.as_dict() for e in events], indent=2, ensure_ascii=False))
    else:
        for event in events:
            print(format_event(event))
    return 0


if __name__ == "__main__":
    sys.exit(main())
