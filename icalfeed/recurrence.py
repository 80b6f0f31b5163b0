"""
Recurrence expansion for parsed VEVENT records.

Groups working events by UID, picks the recurring master of each group,
expands its RRULE/RDATE occurrences over a bounded window and reconciles
RECURRENCE-ID overrides (moved or cancelled occurrences).

Supported RRULE parts: FREQ (DAILY, WEEKLY, MONTHLY, YEARLY), INTERVAL,
BYDAY (WEEKLY only), BYMONTHDAY (MONTHLY only), COUNT and UNTIL. BYMONTH is
parsed and kept on the rule but does not filter occurrences. Any other FREQ
leaves the master as a single occurrence.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import Dict, List, Optional

from .date_lib import (
    add_days_overflow,
    from_local_wall_clock,
    local_wall_clock,
    parse_ical_date,
    same_local_date,
    to_iso_utc,
)
from .models import CalendarEvent

logger = logging.getLogger(__name__)

# === CONFIGURATION ===
DEFAULT_LOOKBACK_DAYS = 14
DEFAULT_LOOKAHEAD_DAYS = 365
MAX_RECURRENCE_ITERATIONS = 10000

# === CONSTANTS ===
_DAY_MAP = {'MO': 0, 'TU': 1, 'WE': 2, 'TH': 3, 'FR': 4, 'SA': 5, 'SU': 6}
_DAY_CODES = {v: k for k, v in _DAY_MAP.items()}
SUPPORTED_FREQUENCIES = ("DAILY", "WEEKLY", "MONTHLY", "YEARLY")
_CANCELLED = "CANCELLED"


@dataclass
class RRule:
    """Parsed RRULE value."""

    freq: Optional[str] = None
    interval: int = 1
    byday: List[str] = field(default_factory=list)
    bymonthday: List[int] = field(default_factory=list)
    bymonth: List[int] = field(default_factory=list)
    count: Optional[int] = None
    until: Optional[datetime] = None


# === RRULE PARSING ===
def _int_list(raw):
    values = []
    for item in raw.split(","):
        try:
            values.append(int(item))
        except ValueError:
            pass
    return values


def parse_rrule(rrule_str):
    """
    Parse an RRULE value into an RRule.

    Unknown parts and unreadable numbers are ignored rather than raised.

    Args:
        rrule_str: RRULE value (e.g. "FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE")

    Returns:
        RRule with defaults for every part that was absent
    """
    rule = RRule()
    for part in rrule_str.split(";"):
        if "=" not in part:
            continue
        key, val = part.split("=", 1)
        key = key.strip().upper()
        val = val.strip()

        if key == "FREQ":
            rule.freq = val.upper()
        elif key == "INTERVAL":
            try:
                interval = int(val)
            except ValueError:
                interval = 1
            rule.interval = interval if interval > 0 else 1
        elif key == "BYDAY":
            for code in val.split(","):
                # Ordinal prefixes (e.g. "1MO") are not interpreted
                code = code.strip().upper()[-2:]
                if code in _DAY_MAP:
                    rule.byday.append(code)
        elif key == "BYMONTHDAY":
            rule.bymonthday = _int_list(val)
        elif key == "BYMONTH":
            rule.bymonth = _int_list(val)
        elif key == "COUNT":
            try:
                rule.count = int(val)
            except ValueError:
                rule.count = None
        elif key == "UNTIL":
            rule.until = parse_ical_date(val)
    return rule


# === WINDOW ===
def expansion_window(now=None, lookback_days=DEFAULT_LOOKBACK_DAYS,
                     lookahead_days=DEFAULT_LOOKAHEAD_DAYS):
    """
    Return the (start, end) instants occurrences are generated within.

    Args:
        now: Reference time; naive values are read as local time
        lookback_days: Days before ``now``
        lookahead_days: Days after ``now``
    """
    if now is None:
        now = datetime.now().astimezone()
    elif now.tzinfo is None:
        now = from_local_wall_clock(now)
    return now - timedelta(days=lookback_days), now + timedelta(days=lookahead_days)


# === RRULE EXPANSION ===
def _period(rule, master_local, index):
    """
    Return the start of recurrence period ``index`` and the sorted local
    wall-clock candidates it contributes.
    """
    step = index * rule.interval
    time_of_day = master_local.time()

    if rule.freq == "DAILY":
        candidate = master_local + timedelta(days=step)
        return candidate, [candidate]

    if rule.freq == "WEEKLY":
        first_monday = master_local.date() - timedelta(days=master_local.weekday())
        week = first_monday + timedelta(weeks=step)
        codes = rule.byday or [_DAY_CODES[master_local.weekday()]]
        days = sorted({_DAY_MAP[code] for code in codes})
        candidates = [datetime.combine(week + timedelta(days=d), time_of_day) for d in days]
        return datetime.combine(week, time.min), candidates

    if rule.freq == "MONTHLY":
        months = master_local.month - 1 + step
        year = master_local.year + months // 12
        month = months % 12 + 1
        month_days = rule.bymonthday or [master_local.day]
        candidates = sorted({
            datetime.combine(add_days_overflow(year, month, d), time_of_day) for d in month_days
        })
        return datetime(year, month, 1), candidates

    # YEARLY
    year = master_local.year + step
    candidate = datetime.combine(
        add_days_overflow(year, master_local.month, master_local.day), time_of_day
    )
    return datetime(year, master_local.month, 1), [candidate]


def _skip_periods(rule, master_local, window_start):
    """Number of whole periods that end before the window opens."""
    window_local = local_wall_clock(window_start)
    if window_local <= master_local:
        return 0

    if rule.freq == "DAILY":
        span = (window_local - master_local).days
    elif rule.freq == "WEEKLY":
        span = (window_local.date() - master_local.date()).days // 7
    elif rule.freq == "MONTHLY":
        span = (window_local.year - master_local.year) * 12 + window_local.month - master_local.month
    else:
        span = window_local.year - master_local.year

    return max(0, span // rule.interval - 1)


def _skipped_tally(rule, master_local, first_index):
    """
    Return the COUNT tally of the periods before ``first_index`` and the
    candidates of the last of them.

    Only MONTHLY periods can overflow onto a day the next period also
    produces, so those are walked; the other frequencies are counted
    arithmetically.
    """
    if rule.freq != "MONTHLY":
        _, first_period = _period(rule, master_local, 0)
        tally = sum(1 for naive in first_period if naive > master_local)
        tally += (first_index - 1) * len(_period(rule, master_local, 1)[1])
        return tally, set()

    tally = 0
    previous = set()
    for index in range(first_index):
        _, candidates = _period(rule, master_local, index)
        tally += sum(1 for naive in candidates if naive > master_local and naive not in previous)
        previous = set(candidates)
    return tally, previous


def generate_rrule_starts(master, rule, window_start, upper_bound):
    """
    Generate the start times produced by an RRULE after the master's own
    start.

    COUNT includes the master occurrence, so at most ``count - 1`` candidates
    are generated. A day that overflows onto one the next period also
    produces is counted once. Candidates outside ``[window_start, upper_bound]`` or
    listed in the master's EXDATEs are generated (and counted) but not
    returned.

    Args:
        master: WorkingEvent carrying the rule
        rule: Parsed RRule with a supported frequency
        window_start: Earliest start to return
        upper_bound: Latest start to return (window end or UNTIL)

    Returns:
        List of aware start datetimes in chronological order
    """
    master_local = local_wall_clock(master.start)
    excluded = set(master.exdates)
    limit = rule.count - 1 if rule.count is not None else None
    if limit is not None and limit <= 0:
        return []

    first_index = _skip_periods(rule, master_local, window_start)
    generated = 0
    previous = set()
    starts = []
    if first_index:
        # Skipped candidates still count toward COUNT
        generated, previous = _skipped_tally(rule, master_local, first_index)
        if limit is not None and generated >= limit:
            return starts

    for index in range(first_index, first_index + MAX_RECURRENCE_ITERATIONS):
        try:
            period_start, candidates = _period(rule, master_local, index)
            if from_local_wall_clock(period_start) > upper_bound:
                return starts
        except (ValueError, OverflowError, OSError):
            return starts

        for naive in candidates:
            # An overflowed day already produced by the previous period
            if naive <= master_local or naive in previous:
                continue
            generated += 1
            if limit is not None and generated > limit:
                return starts
            candidate = from_local_wall_clock(naive)
            if window_start <= candidate <= upper_bound and candidate not in excluded:
                starts.append(candidate)
        previous = set(candidates)

    logger.debug("Recurrence for %r stopped after %d periods", master.id, MAX_RECURRENCE_ITERATIONS)
    return starts


def _occurrence(uid, source, start, end, fallback=None):
    def pick(name):
        value = getattr(source, name)
        if value is None and fallback is not None:
            value = getattr(fallback, name)
        return value

    return CalendarEvent(
        id=f"{uid}-{to_iso_utc(start)}",
        title=pick("title") or "",
        start=start,
        end=end,
        description=pick("description"),
        location=pick("location"),
    )


def expand_master(master, window_start, window_end):
    """
    Expand a master event into its occurrences within the window.

    The master's own start and every RDATE are included when inside the
    window and not excluded by an EXDATE; RRULE occurrences are added for
    supported frequencies.

    Returns:
        Dict mapping occurrence start to CalendarEvent, in insertion order
    """
    duration = master.end - master.start
    excluded = set(master.exdates)
    occurrences: Dict[datetime, CalendarEvent] = {}

    def add(start):
        if start not in occurrences:
            occurrences[start] = _occurrence(master.id, master, start, start + duration)

    if window_start <= master.start <= window_end and master.start not in excluded:
        add(master.start)

    for rdate in master.rdates:
        if window_start <= rdate <= window_end and rdate not in excluded:
            add(rdate)

    if master.rrule:
        rule = parse_rrule(master.rrule)
        if rule.freq in SUPPORTED_FREQUENCIES:
            upper = min(rule.until, window_end) if rule.until else window_end
            for start in generate_rrule_starts(master, rule, window_start, upper):
                add(start)
        else:
            logger.debug("No expansion for %r: unsupported FREQ %r", master.id, rule.freq)

    return occurrences


def apply_overrides(master, overrides, occurrences):
    """
    Reconcile RECURRENCE-ID overrides with the expanded occurrences.

    An occurrence is replaced when its start equals the override's
    RECURRENCE-ID or falls on the same local date. CANCELLED overrides only
    remove. Title, description and location fall back to the master's.
    """
    for override in overrides:
        rid = override.recurrence_id
        for start in list(occurrences):
            if start == rid or same_local_date(start, rid):
                del occurrences[start]

    for override in overrides:
        if (override.status or "").upper() == _CANCELLED:
            continue
        if override.start is None or override.end is None:
            continue
        occurrences[override.start] = _occurrence(
            master.id, override, override.start, override.end, fallback=master
        )
    return occurrences


def _standalone(uid, records):
    occurrences = {}
    for record in records:
        if record.start not in occurrences:
            occurrences[record.start] = _occurrence(uid, record, record.start, record.end)
    return list(occurrences.values())


def expand_events(working_events, *, now=None, lookback_days=DEFAULT_LOOKBACK_DAYS,
                  lookahead_days=DEFAULT_LOOKAHEAD_DAYS):
    """
    Turn parsed VEVENT records into concrete, time-sorted occurrences.

    Args:
        working_events: WorkingEvent records from one document
        now: Reference time for the expansion window (default: current time)
        lookback_days: Days before ``now`` to expand
        lookahead_days: Days after ``now`` to expand

    Returns:
        List of CalendarEvent sorted by start
    """
    window_start, window_end = expansion_window(now, lookback_days, lookahead_days)

    groups: Dict[str, list] = {}
    for event in working_events:
        groups.setdefault(event.id, []).append(event)

    results = []
    for uid, group in groups.items():
        candidates = [e for e in group if e.rrule or e.recurrence_id is None]
        if not candidates:
            logger.debug("UID %r has only overrides, emitting them as-is", uid)
            results.extend(_standalone(uid, group))
            continue

        master = next((e for e in candidates if e.rrule), None)
        if master is None:
            master = min(candidates, key=lambda e: e.start)
        if len(candidates) > 1:
            logger.debug("UID %r has %d master candidates, using one", uid, len(candidates))

        overrides = [e for e in group if e.recurrence_id is not None and e is not master]
        occurrences = expand_master(master, window_start, window_end)
        apply_overrides(master, overrides, occurrences)
        results.extend(occurrences.values())

    results.sort(key=lambda e: e.start)
    return results
