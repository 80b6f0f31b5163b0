"""Unit tests for the iCalendar tokenizer and property interpreter."""

from datetime import datetime, timezone

from conftest import local, make_calendar
from icalfeed.ical_parser import (
    apply_property,
    iter_working_events,
    parse_ical,
    split_property_key,
    unescape_text,
)
from icalfeed.models import CalendarEvent, WorkingEvent


class TestUnescapeText:
    """Tests for TEXT value unescaping."""

    def test_unescape_sequences(self):
        assert unescape_text("a\\, b\\; c\\nd\\\\e") == "a, b; c\nd\\e"

    def test_uppercase_newline(self):
        assert unescape_text("one\\Ntwo") == "one\ntwo"

    def test_single_pass_is_not_recursive(self):
        """An escaped backslash followed by n stays a literal backslash-n."""
        assert unescape_text("C:\\\\new") == "C:\\new"

    def test_plain_text_unchanged(self):
        assert unescape_text("Quarterly review") == "Quarterly review"


class TestSplitPropertyKey:
    """Tests for separating property names from parameters."""

    def test_plain_key(self):
        assert split_property_key("SUMMARY") == ("SUMMARY", {})

    def test_key_with_params(self):
        key, params = split_property_key("DTSTART;TZID=Europe/Madrid;VALUE=DATE")
        assert key == "DTSTART"
        assert params == {"TZID": "Europe/Madrid", "VALUE": "DATE"}

    def test_quoted_param_and_lowercase_names(self):
        key, params = split_property_key('dtstart;tzid="America/New_York"')
        assert key == "DTSTART"
        assert params == {"TZID": "America/New_York"}


class TestApplyProperty:
    """Tests for mapping single properties onto a working event."""

    def test_text_properties_are_unescaped(self):
        event = WorkingEvent()
        apply_property(event, "SUMMARY", "Lunch\\, then walk")
        apply_property(event, "LOCATION", "Room 1\\; annex")
        apply_property(event, "DESCRIPTION", "line one\\nline two")
        assert event.title == "Lunch, then walk"
        assert event.location == "Room 1; annex"
        assert event.description == "line one\nline two"

    def test_uid_rrule_and_status_are_verbatim(self):
        event = WorkingEvent()
        apply_property(event, "UID", "abc\\,123@example.com")
        apply_property(event, "RRULE", "FREQ=DAILY;COUNT=2")
        apply_property(event, "STATUS", "CANCELLED")
        assert event.id == "abc\\,123@example.com"
        assert event.rrule == "FREQ=DAILY;COUNT=2"
        assert event.status == "CANCELLED"

    def test_dates_use_params(self):
        event = WorkingEvent()
        apply_property(event, "DTSTART;VALUE=DATE", "20260301")
        apply_property(event, "DTEND", "20260301T100000Z")
        apply_property(event, "RECURRENCE-ID;TZID=Europe/Madrid", "20260301T090000")
        assert event.start == local(2026, 3, 1)
        assert event.end == datetime(2026, 3, 1, 10, tzinfo=timezone.utc)
        assert event.recurrence_id == local(2026, 3, 1, 9)

    def test_exdate_and_rdate_lists_accumulate(self):
        event = WorkingEvent()
        apply_property(event, "EXDATE", "20260102T090000,20260103T090000")
        apply_property(event, "EXDATE;TZID=Europe/Madrid", "20260105T090000")
        apply_property(event, "RDATE;VALUE=DATE", "20260110")
        assert event.exdates == [
            local(2026, 1, 2, 9),
            local(2026, 1, 3, 9),
            local(2026, 1, 5, 9),
        ]
        assert event.rdates == [local(2026, 1, 10)]

    def test_bad_list_entries_are_skipped(self):
        event = WorkingEvent()
        apply_property(event, "EXDATE", "20260102T090000,nonsense,")
        assert event.exdates == [local(2026, 1, 2, 9)]

    def test_unknown_property_ignored(self):
        event = WorkingEvent()
        apply_property(event, "X-WR-CALNAME", "Team")
        apply_property(event, "ORGANIZER;CN=Jo", "mailto:jo@example.com")
        assert event == WorkingEvent()


class TestTokenizer:
    """Tests for line handling and VEVENT block boundaries."""

    def test_basic_event(self):
        ics = make_calendar("""
UID:one@example.com
DTSTART:20260110T090000
DTEND:20260110T100000
SUMMARY:Planning
""")
        events = list(iter_working_events(ics))
        assert len(events) == 1
        assert events[0].id == "one@example.com"
        assert events[0].title == "Planning"
        assert events[0].start == local(2026, 1, 10, 9)

    def test_folded_description_is_reassembled(self):
        """A folded value is joined before it is unescaped."""
        ics = make_calendar("""
UID:fold@example.com
DTSTART:20260110T090000
DTEND:20260110T100000
DESCRIPTION:This is a long de
 scription that ends with an escape\\
 nand continues
""")
        event = next(iter_working_events(ics))
        assert event.description == "This is a long description that ends with an escape\nand continues"

    def test_tab_continuation(self):
        ics = make_calendar("UID:tab@example.com\nDTSTART:20260110T090000\nDTEND:20260110T100000\n"
                            "SUMMARY:Weekly\n\tsync")
        assert next(iter_working_events(ics)).title == "Weeklysync"

    def test_lf_only_line_endings(self):
        ics = make_calendar("""
UID:lf@example.com
DTSTART:20260110T090000
DTEND:20260110T100000
""").replace("\r\n", "\n")
        assert [e.id for e in iter_working_events(ics)] == ["lf@example.com"]

    def test_incomplete_events_are_dropped(self):
        """Blocks missing UID, DTSTART or DTEND are discarded silently."""
        ics = make_calendar(
            "DTSTART:20260110T090000\nDTEND:20260110T100000",
            "UID:no-end@example.com\nDTSTART:20260110T090000",
            "UID:no-start@example.com\nDTEND:20260110T090000",
            "UID:bad-date@example.com\nDTSTART:2026011\nDTEND:20260110T100000",
            "UID:ok@example.com\nDTSTART:20260110T090000\nDTEND:20260110T100000",
        )
        assert [e.id for e in iter_working_events(ics)] == ["ok@example.com"]

    def test_line_without_colon_is_inert(self):
        ics = make_calendar("""
UID:inert@example.com
this line has no colon
DTSTART:20260110T090000
DTEND:20260110T100000
SUMMARY:Still parsed
""")
        event = next(iter_working_events(ics))
        assert event.title == "Still parsed"

    def test_properties_outside_events_ignored(self):
        """VTIMEZONE and calendar properties never reach an event."""
        ics = (
            "BEGIN:VCALENDAR\n"
            "SUMMARY:Calendar level\n"
            "BEGIN:VTIMEZONE\nTZID:Europe/Madrid\nBEGIN:STANDARD\n"
            "DTSTART:19701025T030000\nEND:STANDARD\nEND:VTIMEZONE\n"
            "BEGIN:VEVENT\nUID:x@example.com\nDTSTART:20260110T090000\n"
            "DTEND:20260110T100000\nEND:VEVENT\n"
            "END:VCALENDAR\n"
        )
        events = list(iter_working_events(ics))
        assert len(events) == 1
        assert events[0].title is None

    def test_alarm_properties_do_not_leak(self):
        """A VALARM's DESCRIPTION does not replace the event's."""
        ics = make_calendar("""
UID:alarm@example.com
DTSTART:20260110T090000
DTEND:20260110T100000
DESCRIPTION:Real description
BEGIN:VALARM
ACTION:DISPLAY
DESCRIPTION:Reminder
TRIGGER:-PT15M
END:VALARM
SUMMARY:After the alarm
""")
        event = next(iter_working_events(ics))
        assert event.description == "Real description"
        assert event.title == "After the alarm"

    def test_last_property_flushed_without_end(self):
        """A trailing property is applied even at end of input."""
        events = list(iter_working_events(
            "BEGIN:VEVENT\nUID:x\nDTSTART:20260110T090000\nDTEND:20260110T100000\nEND:VEVENT"
        ))
        assert len(events) == 1

    def test_override_record_keeps_recurrence_id(self):
        ics = make_calendar("""
UID:series@example.com
RECURRENCE-ID:20260112T090000
DTSTART:20260112T110000
DTEND:20260112T120000
""")
        event = next(iter_working_events(ics))
        assert event.recurrence_id == local(2026, 1, 12, 9)


class TestParseIcal:
    """Tests for the public parse_ical entry point."""

    def test_single_event(self, january_now):
        ics = make_calendar("""
UID:single@example.com
DTSTART:20260110T090000Z
DTEND:20260110T100000Z
SUMMARY:Planning
LOCATION:HQ
""")
        events = parse_ical(ics, now=january_now)
        assert events == [CalendarEvent(
            id="single@example.com-2026-01-10T09:00:00Z",
            title="Planning",
            start=datetime(2026, 1, 10, 9, tzinfo=timezone.utc),
            end=datetime(2026, 1, 10, 10, tzinfo=timezone.utc),
            description=None,
            location="HQ",
        )]

    def test_missing_summary_gives_empty_title(self, january_now):
        ics = make_calendar("UID:x\nDTSTART:20260110T090000\nDTEND:20260110T100000")
        assert parse_ical(ics, now=january_now)[0].title == ""

    def test_events_outside_window_are_dropped(self, january_now):
        ics = make_calendar(
            "UID:old\nDTSTART:20240110T090000\nDTEND:20240110T100000",
            "UID:far\nDTSTART:20300110T090000\nDTEND:20300110T100000",
        )
        assert parse_ical(ics, now=january_now) == []

    def test_parsing_twice_gives_same_ids(self, team_ics, january_now):
        first = [e.id for e in parse_ical(team_ics, now=january_now)]
        second = [e.id for e in parse_ical(team_ics, now=january_now)]
        assert first == second
        assert len(first) == len(set(first))

    def test_empty_document(self, january_now):
        assert parse_ical("", now=january_now) == []

    def test_team_fixture(self, team_ics, january_now):
        """Recurring standup with a moved and a cancelled occurrence."""
        events = parse_ical(team_ics, now=january_now)
        assert [(e.title, e.start) for e in events] == [
            ("Daily standup", local(2026, 1, 5, 9, 30)),
            ("Standup (moved)", local(2026, 1, 7, 11, 0)),
            ("Team offsite", local(2026, 1, 9)),
            ("Daily standup", local(2026, 1, 9, 9, 30)),
            ("Daily standup", local(2026, 1, 14, 9, 30)),
            ("Daily standup", local(2026, 1, 16, 9, 30)),
        ]
        standup = events[0]
        assert standup.location == "Room 4, second floor"
        assert standup.description is None
        assert events[1].location == "Room 4, second floor"
        assert events[2].description == (
            "Bring laptops, chargers and the quarterly plan.\nLunch is provided."
        )

    def test_as_dict_shape(self, january_now):
        ics = make_calendar("UID:x\nDTSTART:20260110T090000Z\nDTEND:20260110T100000Z\nSUMMARY:A")
        data = parse_ical(ics, now=january_now)[0].as_dict()
        assert data == {
            "id": "x-2026-01-10T09:00:00Z",
            "title": "A",
            "start": "2026-01-10T09:00:00+00:00",
            "end": "2026-01-10T10:00:00+00:00",
        }
