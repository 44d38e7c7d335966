"""
Offline pattern-matching extraction of event details from OCR text.

Used when the remote tier is unavailable. Results are rough by nature and
are always presented to the user for review.
"""

import logging
import re
from datetime import date, datetime, timedelta
from typing import List, NamedTuple, Optional

from dateutil import parser as dateutil_parser

from .data_models import (
    DEFAULT_DESCRIPTION, DEFAULT_END_TIME, DEFAULT_LOCATION, DEFAULT_MAIN_TITLE,
    DEFAULT_START_TIME, DEFAULT_TITLE, DEFAULT_VENUE, TIME_PATTERN,
    Event, MultiEventContainer, MultiSession, Session, SingleSession, to_24_hour,
)


logger = logging.getLogger(__name__)

MULTI_EVENT_KEYWORDS = ("day 1", "day 2", "schedule", "lineup", "program", "agenda", "session")
MAX_SYNTHESIZED_EVENTS = 3
MULTI_TITLE_MAX_CHARS = 50
SINGLE_TITLE_MAX_CHARS = 100
MIN_TITLE_CHARS = 3

_WEEKDAYS = r"monday|tuesday|wednesday|thursday|friday|saturday|sunday"
_MONTHS = (
    r"jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?"
)

_DATE_LIKE_RE = re.compile(
    r"\b\d{1,2}[/-]\d{1,2}[/-](?:\d{4}|\d{2})\b"
    rf"|\b(?:{_WEEKDAYS})\b"
    rf"|\b\d{{1,2}}\s+(?:{_MONTHS})\b\.?\s+\d{{4}}\b",
    re.IGNORECASE,
)

# Dates complete enough to put on a calendar without guessing
_EXPLICIT_DATE_RE = re.compile(
    r"\b\d{1,2}[/-]\d{1,2}[/-]\d{4}\b"
    rf"|\b\d{{1,2}}\s+(?:{_MONTHS})\b\.?\s+\d{{4}}\b"
    rf"|\b(?:{_MONTHS})\b\.?\s+\d{{1,2}}(?:st|nd|rd|th)?,?\s+\d{{4}}\b",
    re.IGNORECASE,
)

_TIME_RE = re.compile(rf"\b{TIME_PATTERN}", re.IGNORECASE)


class TextAnalysis(NamedTuple):
    """Pattern matches found in poster text."""
    keywords: List[str]
    dates: List[str]
    times: List[str]

    @property
    def is_multi(self) -> bool:
        return bool(self.keywords) or len(self.dates) > 1


def analyze_text(text: str) -> TextAnalysis:
    """
    Scan poster text for multi-event keywords, dates and times.

    Args:
        text: Raw OCR text

    Returns:
        Matched keywords, distinct date-like substrings (first-seen order)
        and normalized 24-hour times (in order of appearance)
    """
    lowered = text.lower()
    keywords = [keyword for keyword in MULTI_EVENT_KEYWORDS if keyword in lowered]

    dates: List[str] = []
    seen = set()
    for match in _DATE_LIKE_RE.finditer(text):
        key = re.sub(r"\s+", " ", match.group(0).lower())
        if key not in seen:
            seen.add(key)
            dates.append(match.group(0))

    times = []
    for match in _TIME_RE.finditer(text):
        normalized = to_24_hour(int(match.group(1)), int(match.group(2)), match.group(3))
        if normalized:
            times.append(normalized)

    return TextAnalysis(keywords, dates, times)


def extract_heuristically(text: str, today: date) -> Session:
    """
    Build a session from poster text using pattern matching only.

    The same ``text`` and ``today`` always produce the same session.

    Args:
        text: Raw OCR text
        today: Reference date for placeholder dates

    Returns:
        MultiSession if the text looks like a programme of several events,
        SingleSession otherwise
    """
    analysis = analyze_text(text)
    logger.debug(
        f"Heuristic analysis: keywords={analysis.keywords} "
        f"dates={analysis.dates} times={analysis.times}"
    )

    if analysis.is_multi:
        session = _build_multi(text, analysis, today)
        logger.info(f"Heuristic extraction found {len(session.container.sub_events)} sub-events")
        return session

    logger.info("Heuristic extraction found a single event")
    return _build_single(text, analysis, today)


def _build_multi(text: str, analysis: TextAnalysis, today: date) -> MultiSession:
    count = max(1, min(len(analysis.dates), MAX_SYNTHESIZED_EVENTS))

    # Dates and times are paired by position only, which can mismatch them
    sub_events = tuple(
        Event(
            title=f"Event {i + 1}",
            date=(today + timedelta(days=i)).isoformat(),
            start_time=_time_at(analysis.times, i * 2, DEFAULT_START_TIME),
            end_time=_time_at(analysis.times, i * 2 + 1, DEFAULT_END_TIME),
            location=DEFAULT_VENUE,
            description=DEFAULT_DESCRIPTION,
        )
        for i in range(count)
    )

    return MultiSession(container=MultiEventContainer(
        main_title=_first_line(text, MULTI_TITLE_MAX_CHARS) or DEFAULT_MAIN_TITLE,
        venue=DEFAULT_VENUE,
        sub_events=sub_events,
    ))


def _build_single(text: str, analysis: TextAnalysis, today: date) -> SingleSession:
    event_date = _explicit_date(text, today) or today

    return SingleSession(event=Event(
        title=_first_line(text, SINGLE_TITLE_MAX_CHARS) or DEFAULT_TITLE,
        date=event_date.isoformat(),
        start_time=_time_at(analysis.times, 0, DEFAULT_START_TIME),
        end_time=_time_at(analysis.times, 1, DEFAULT_END_TIME),
        location=DEFAULT_LOCATION,
        description=DEFAULT_DESCRIPTION,
    ))


def _first_line(text: str, max_chars: int) -> Optional[str]:
    """First line with enough characters to be a title, truncated."""
    for line in text.splitlines():
        if len(line) < MIN_TITLE_CHARS:
            continue
        candidate = line[:max_chars].strip()
        if candidate:
            return candidate
    return None


def _time_at(times: List[str], index: int, default: str) -> str:
    return times[index] if index < len(times) else default


def _explicit_date(text: str, today: date) -> Optional[date]:
    """First fully specified calendar date in the text, read day-first."""
    default = datetime(today.year, today.month, today.day)
    for match in _EXPLICIT_DATE_RE.finditer(text):
        try:
            return dateutil_parser.parse(match.group(0), dayfirst=True, default=default).date()
        except (ValueError, OverflowError):
            logger.debug(f"Ignoring unparseable date {match.group(0)!r}")
    return None
