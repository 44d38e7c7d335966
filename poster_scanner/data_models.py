"""
Data models for calendar events extracted from event posters.

A scan produces a :data:`Session`, which is either a single event or a
container of sub-events (festival days, conference sessions). The two
variants are told apart by their ``kind`` discriminator, never by probing
which attributes happen to be set.
"""

import re
from datetime import date, datetime
from typing import Annotated, Any, Dict, Literal, Optional, Tuple, Union

from dateutil import parser as dateutil_parser
from pydantic import BaseModel, ConfigDict, Field


DEFAULT_TITLE = "Event Title"
DEFAULT_START_TIME = "19:00"
DEFAULT_END_TIME = "21:00"
DEFAULT_LOCATION = "Event Location"
DEFAULT_DESCRIPTION = "Please edit this event description"
DEFAULT_MAIN_TITLE = "Multi-Day Event"
DEFAULT_VENUE = "Event Venue"
NEW_SUB_EVENT_TITLE = "New Sub-Event"

# "7:00", "19:30", "7:00 PM", "7:00pm", "10:15 a.m."
TIME_PATTERN = r"(\d{1,2}):(\d{2})(?:\s*([ap])\.?\s?m\b\.?)?"

_TIME_RE = re.compile(rf"\s*{TIME_PATTERN}\s*", re.IGNORECASE)
_HHMM_RE = re.compile(r"([01]\d|2[0-3]):[0-5]\d")


def to_24_hour(hour: int, minute: int, meridiem: Optional[str] = None) -> Optional[str]:
    """
    Convert clock components to a 24-hour ``HH:MM`` string.

    Args:
        hour: Hour as written on the poster
        minute: Minute as written on the poster
        meridiem: ``"a"``, ``"p"`` or None for 24-hour input

    Returns:
        Normalized time or None if the components are not a real time
    """
    if not 0 <= minute <= 59:
        return None

    if meridiem:
        if not 1 <= hour <= 12:
            return None
        hour = hour % 12
        if meridiem.lower() == "p":
            hour += 12
    elif not 0 <= hour <= 23:
        return None

    return f"{hour:02d}:{minute:02d}"


def normalize_time(value: Any) -> Optional[str]:
    """Normalize a free-form time string to ``HH:MM`` or return None."""
    if not isinstance(value, str):
        return None
    match = _TIME_RE.fullmatch(value)
    if not match:
        return None
    return to_24_hour(int(match.group(1)), int(match.group(2)), match.group(3))


def is_valid_time(value: str) -> bool:
    """Check for a strict 24-hour ``HH:MM`` value."""
    return bool(_HHMM_RE.fullmatch(value))


def coerce_date(value: Any, today: date) -> str:
    """
    Coerce a date-ish value to an ISO calendar date.

    ISO dates pass through; other textual dates go through dateutil.
    Anything unparseable becomes ``today``.
    """
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return date.fromisoformat(text).isoformat()
        except ValueError:
            pass
        try:
            default = datetime(today.year, today.month, today.day)
            return dateutil_parser.parse(text, default=default).date().isoformat()
        except (ValueError, OverflowError):
            pass
    return today.isoformat()


def _text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _today_iso() -> str:
    return date.today().isoformat()


class Event(BaseModel):
    """One calendar entry."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str = Field(DEFAULT_TITLE, description="Event name")
    date: str = Field(default_factory=_today_iso, description="ISO calendar date")
    start_time: str = Field(DEFAULT_START_TIME, alias="startTime", description="24h HH:MM")
    end_time: str = Field(DEFAULT_END_TIME, alias="endTime", description="24h HH:MM")
    location: str = Field(DEFAULT_LOCATION, description="Venue or address")
    description: str = Field(DEFAULT_DESCRIPTION, description="Free text description")

    @classmethod
    def placeholder(cls, today: 'date', title: str = DEFAULT_TITLE,
                    location: str = DEFAULT_LOCATION) -> 'Event':
        """Event made entirely of placeholders, to be filled in by the user."""
        return cls(title=title, date=today.isoformat(), location=location)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], today: 'date',
                     default_title: str = DEFAULT_TITLE,
                     default_location: str = DEFAULT_LOCATION) -> 'Event':
        """
        Build an event from loosely structured data.

        Missing or malformed fields fall back to placeholders; this never
        fails for a bad leaf value.

        Args:
            payload: Mapping using the camelCase wire names
            today: Date used when no usable date is present
            default_title: Placeholder title
            default_location: Placeholder location

        Returns:
            Event with every field populated
        """
        return cls(
            title=_text(payload.get("title"), default_title),
            date=coerce_date(payload.get("date"), today),
            start_time=normalize_time(payload.get("startTime")) or DEFAULT_START_TIME,
            end_time=normalize_time(payload.get("endTime")) or DEFAULT_END_TIME,
            location=_text(payload.get("location"), default_location),
            description=_text(payload.get("description"), DEFAULT_DESCRIPTION),
        )


class MultiEventContainer(BaseModel):
    """A festival, conference or multi-day programme and its sub-events."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    main_title: str = Field(DEFAULT_MAIN_TITLE, alias="mainTitle")
    venue: str = Field(DEFAULT_VENUE, description="Main venue")
    sub_events: Tuple[Event, ...] = Field(default_factory=tuple, alias="subEvents")


class _SessionBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return self.model_dump(by_alias=True)


class SingleSession(_SessionBase):
    """Session holding exactly one event."""
    kind: Literal["single"] = "single"
    event: Event


class MultiSession(_SessionBase):
    """Session holding a container of sub-events."""
    kind: Literal["multi"] = "multi"
    container: MultiEventContainer


Session = Annotated[Union[SingleSession, MultiSession], Field(discriminator="kind")]


def session_events(session: Session) -> Tuple[Event, ...]:
    """All calendar entries of a session in export order."""
    if isinstance(session, SingleSession):
        return (session.event,)
    if isinstance(session, MultiSession):
        return session.container.sub_events
    raise TypeError(f"Unsupported session type: {type(session).__name__}")


def session_title(session: Session) -> str:
    """Headline of a session: the event title or the container's main title."""
    if isinstance(session, SingleSession):
        return session.event.title
    if isinstance(session, MultiSession):
        return session.container.main_title
    raise TypeError(f"Unsupported session type: {type(session).__name__}")
