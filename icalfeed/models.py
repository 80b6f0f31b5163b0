"""Event records produced and consumed by the parser and recurrence engine."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from .date_lib import to_iso_utc


@dataclass
class CalendarEvent:
    """One concrete occurrence of a calendar event."""

    id: str
    title: str
    start: datetime
    end: datetime
    description: Optional[str] = None
    location: Optional[str] = None

    def as_dict(self):
        """Return the JSON-ready shape consumed by dashboard widgets."""
        data = {
            "id": self.id,
            "title": self.title,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
        }
        if self.description is not None:
            data["description"] = self.description
        if self.location is not None:
            data["location"] = self.location
        return data

    def __repr__(self):
        return (f"CalendarEvent(id={self.id!r}, start={to_iso_utc(self.start)}, "
                f"end={to_iso_utc(self.end)}, title={self.title!r})")


@dataclass
class WorkingEvent:
    """
    A VEVENT block as read from the document, before grouping by UID.

    A record with ``recurrence_id`` set overrides a single occurrence of the
    recurring master sharing its ``id``.
    """

    id: Optional[str] = None
    title: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    description: Optional[str] = None
    location: Optional[str] = None
    rrule: Optional[str] = None
    exdates: List[datetime] = field(default_factory=list)
    rdates: List[datetime] = field(default_factory=list)
    recurrence_id: Optional[datetime] = None
    status: Optional[str] = None
