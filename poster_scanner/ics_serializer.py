"""
iCalendar export of scan sessions.
"""

import logging
import re
from datetime import date, datetime, time, timezone, tzinfo
from typing import NamedTuple, Optional

from dateutil import tz as dateutil_tz
from icalendar import Calendar
from icalendar import Event as CalendarEvent

from .data_models import (
    Event, MultiSession, Session, SingleSession, is_valid_time, session_events, session_title,
)
from .errors import CalendarExportError


logger = logging.getLogger(__name__)

PRODID = "-//Event Poster Scanner//EN"
UID_DOMAIN = "eventscanner.com"
FILE_EXTENSION = ".ics"


class CalendarExport(NamedTuple):
    """A serialized calendar ready for download."""
    filename: str
    content: str


def _to_utc(event_date: str, clock_time: str, local_tz: tzinfo, label: str) -> datetime:
    """
    Combine a calendar date and wall-clock time into a UTC instant.

    Raises:
        CalendarExportError: If either value is malformed
    """
    try:
        day = date.fromisoformat(event_date)
    except ValueError as e:
        raise CalendarExportError(f"{label}: invalid date {event_date!r}") from e

    if not is_valid_time(clock_time):
        raise CalendarExportError(f"{label}: invalid time {clock_time!r}, expected HH:MM")

    hour, minute = (int(part) for part in clock_time.split(":"))
    local = datetime.combine(day, time(hour, minute)).replace(tzinfo=local_tz)
    return local.astimezone(timezone.utc)


def _build_component(event: Event, index: int, stamp: datetime,
                     local_tz: tzinfo) -> CalendarEvent:
    label = f"Event {index + 1} ({event.title})"
    component = CalendarEvent()
    component.add('uid', f"{int(stamp.timestamp() * 1000)}-{index}@{UID_DOMAIN}")
    component.add('dtstamp', stamp)
    component.add('dtstart', _to_utc(event.date, event.start_time, local_tz, label))
    component.add('dtend', _to_utc(event.date, event.end_time, local_tz, label))
    component.add('summary', event.title)
    component.add('location', event.location)
    component.add('description', event.description)
    return component


def serialize(session: Session, timestamp: Optional[datetime] = None,
              tz: Optional[tzinfo] = None) -> str:
    """
    Serialize a session to iCalendar text.

    Args:
        session: Session to export
        timestamp: Export time, used for UIDs and DTSTAMP (defaults to now)
        tz: Zone the event dates and times are written in (defaults to local)

    Returns:
        Calendar text with one VEVENT per event

    Raises:
        CalendarExportError: If an event has a malformed date or time
    """
    local_tz = tz or dateutil_tz.tzlocal()
    stamp = (timestamp or datetime.now(timezone.utc)).astimezone(timezone.utc)

    cal = Calendar()
    cal.add('prodid', PRODID)
    cal.add('version', '2.0')

    events = session_events(session)
    for index, event in enumerate(events):
        cal.add_component(_build_component(event, index, stamp, local_tz))

    logger.info(f"Serialized {len(events)} events to iCalendar")
    return cal.to_ical().decode('utf-8')


def calendar_filename(session: Session) -> str:
    """File name for a session's export: title with whitespace and slashes as underscores."""
    if isinstance(session, SingleSession):
        fallback = "Event"
    elif isinstance(session, MultiSession):
        fallback = "Multi_Event"
    else:
        raise TypeError(f"Unsupported session type: {type(session).__name__}")

    name = re.sub(r"[\s/\\]+", "_", session_title(session).strip())
    return f"{name or fallback}{FILE_EXTENSION}"


def export_session(session: Session, timestamp: Optional[datetime] = None,
                   tz: Optional[tzinfo] = None) -> CalendarExport:
    """Serialize a session and name the resulting file."""
    return CalendarExport(calendar_filename(session), serialize(session, timestamp, tz))
