"""Shared fixtures and helpers for the icalfeed test suite."""

import os
import time
from datetime import datetime
from pathlib import Path

import pytest

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def local(year, month, day, hour=0, minute=0, second=0):
    """Aware datetime for a local wall-clock time."""
    return datetime(year, month, day, hour, minute, second).astimezone()


def make_calendar(*vevents):
    """Wrap VEVENT property blocks (without BEGIN/END lines) in a VCALENDAR."""
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//icalfeed//tests//EN"]
    for body in vevents:
        lines.append("BEGIN:VEVENT")
        lines.extend(line for line in body.strip().splitlines())
        lines.append("END:VEVENT")
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"


@pytest.fixture
def january_now():
    """Reference time early in January 2026, local."""
    return local(2026, 1, 1, 8, 0)


@pytest.fixture
def team_ics():
    """Contents of the team calendar fixture."""
    return (FIXTURES_DIR / "team.ics").read_text(encoding="utf-8")


@pytest.fixture
def process_timezone():
    """Switch the process timezone (POSIX TZ strings) for one test."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset() not available on this platform")

    original = os.environ.get("TZ")

    def set_tz(name):
        os.environ["TZ"] = name
        time.tzset()

    yield set_tz

    if original is None:
        os.environ.pop("TZ", None)
    else:
        os.environ["TZ"] = original
    time.tzset()
