"""
Claude API client for structured event extraction from poster text.
"""

import json
import logging
import re
from datetime import date
from typing import Any, Callable, Dict, Optional

import anthropic

from .data_models import (
    DEFAULT_MAIN_TITLE, DEFAULT_TITLE, DEFAULT_VENUE,
    Event, MultiEventContainer, MultiSession, Session, SingleSession,
)
from .errors import RemoteErrorKind, RemoteExtractionError


logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_TOKENS = 2000

_CODE_FENCE_RE = re.compile(r"```(?:json)?\n?")


class ClaudeEventExtractor:
    """Extracts single or multiple events from poster text with Claude."""

    def __init__(self, api_key: Optional[str], model: str = DEFAULT_MODEL,
                 max_tokens: int = DEFAULT_MAX_TOKENS,
                 client: Optional[anthropic.AsyncAnthropic] = None,
                 clock: Optional[Callable[[], date]] = None):
        """
        Initialize Claude client.

        Args:
            api_key: Anthropic API key
            model: Claude model name
            max_tokens: Response token limit
            client: Preconfigured async client, mainly for tests
            clock: Returns today's date for placeholder dates
        """
        self.client = client or anthropic.AsyncAnthropic(api_key=api_key)
        self.model = model
        self.max_tokens = max_tokens
        self.clock = clock or date.today

    async def extract(self, text: str) -> Session:
        """
        Extract event details from poster text.

        Args:
            text: Raw OCR text of the poster

        Returns:
            SingleSession or MultiSession

        Raises:
            RemoteExtractionError: On transport failure, a non-2xx status or
                a response that does not match the expected schema
        """
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{
                    "role": "user",
                    "content": self._create_extraction_prompt(text),
                }]
            )
        except anthropic.APIStatusError as e:
            logger.error(f"Claude API request failed with status {e.status_code}")
            raise RemoteExtractionError(
                RemoteErrorKind.NON_SUCCESS_STATUS, "API request failed", status=e.status_code
            ) from e
        except anthropic.APIConnectionError as e:
            logger.error(f"Could not reach Claude API: {e}")
            raise RemoteExtractionError(RemoteErrorKind.NETWORK_FAILURE, str(e)) from e
        except anthropic.APIResponseValidationError as e:
            logger.error(f"Claude API response did not validate: {e}")
            raise RemoteExtractionError(RemoteErrorKind.SCHEMA_MISMATCH, str(e)) from e
        except anthropic.AnthropicError as e:
            logger.error(f"Claude API call failed: {e}")
            raise RemoteExtractionError(RemoteErrorKind.NETWORK_FAILURE, str(e)) from e

        response_text = self._response_text(response)
        return self._parse_response(response_text)

    def _create_extraction_prompt(self, text: str) -> str:
        """
        Create the extraction instruction for the poster text.

        Args:
            text: Poster text to embed

        Returns:
            Prompt string
        """
        return f"""Analyze this event poster text and determine if it's a single event or multiple events. Respond ONLY with valid JSON in this format:

For SINGLE events:
{{
  "eventType": "single",
  "event": {{
    "title": "event name",
    "date": "YYYY-MM-DD",
    "startTime": "HH:MM",
    "endTime": "HH:MM",
    "location": "venue/address",
    "description": "event description"
  }}
}}

For MULTIPLE events (festivals, conferences, multi-day events):
{{
  "eventType": "multiple",
  "mainTitle": "overall event/festival name",
  "venue": "main venue/location",
  "events": [
    {{
      "title": "sub-event name",
      "date": "YYYY-MM-DD",
      "startTime": "HH:MM",
      "endTime": "HH:MM",
      "location": "specific venue if different from main",
      "description": "sub-event description"
    }}
  ]
}}

Guidelines:
- Look for multiple dates, times, or sub-events
- Check for words like "Day 1", "Schedule", "Lineup", "Sessions"
- For festivals: separate each day/performance
- For conferences: separate each session/talk
- Use 24-hour format for times
- Convert relative dates to actual dates
- If missing info, use reasonable defaults

DO NOT include any text outside the JSON object.

Text to analyze:
{text}"""

    def _response_text(self, response: Any) -> str:
        """Pull the text block out of a Messages API response."""
        try:
            text = response.content[0].text
        except (AttributeError, IndexError, TypeError) as e:
            raise RemoteExtractionError(
                RemoteErrorKind.SCHEMA_MISMATCH, "Response carried no text content"
            ) from e
        if not isinstance(text, str):
            raise RemoteExtractionError(
                RemoteErrorKind.SCHEMA_MISMATCH, "Response carried no text content"
            )
        return text

    def _parse_response(self, response_text: str) -> Session:
        """
        Parse Claude's JSON answer into a session.

        Args:
            response_text: Raw text of the first content block

        Returns:
            SingleSession or MultiSession with missing fields filled in

        Raises:
            RemoteExtractionError: If the payload does not match either shape
        """
        cleaned = _CODE_FENCE_RE.sub("", response_text).strip()

        try:
            payload = json.loads(cleaned)
        except json.JSONDecodeError as e:
            logger.error(f"JSON decode error: {e}")
            logger.debug(f"Raw response: {response_text}")
            raise RemoteExtractionError(
                RemoteErrorKind.SCHEMA_MISMATCH, "Response is not valid JSON"
            ) from e

        if not isinstance(payload, dict):
            raise RemoteExtractionError(
                RemoteErrorKind.SCHEMA_MISMATCH, "Response is not a JSON object"
            )

        event_type = payload.get("eventType")
        today = self.clock()

        if event_type == "single":
            session = self._parse_single(payload, today)
            logger.info(f"Successfully parsed event: {session.event.title}")
            return session

        if event_type == "multiple":
            session = self._parse_multiple(payload, today)
            logger.info(
                f"Successfully parsed {len(session.container.sub_events)} events "
                f"for {session.container.main_title}"
            )
            return session

        raise RemoteExtractionError(
            RemoteErrorKind.SCHEMA_MISMATCH, f"Unknown eventType: {event_type!r}"
        )

    def _parse_single(self, payload: Dict[str, Any], today: date) -> SingleSession:
        event = payload.get("event") or {}
        if not isinstance(event, dict):
            raise RemoteExtractionError(
                RemoteErrorKind.SCHEMA_MISMATCH, "'event' must be an object"
            )
        return SingleSession(event=Event.from_payload(event, today))

    def _parse_multiple(self, payload: Dict[str, Any], today: date) -> MultiSession:
        events = payload.get("events") or []
        if not isinstance(events, list) or not all(isinstance(e, dict) for e in events):
            raise RemoteExtractionError(
                RemoteErrorKind.SCHEMA_MISMATCH, "'events' must be a list of objects"
            )

        main_title = payload.get("mainTitle")
        venue = payload.get("venue")
        main_title = main_title.strip() if isinstance(main_title, str) and main_title.strip() else DEFAULT_MAIN_TITLE
        venue = venue.strip() if isinstance(venue, str) and venue.strip() else DEFAULT_VENUE

        sub_events = tuple(
            Event.from_payload(event, today, default_location=venue) for event in events
        )
        if not sub_events:
            sub_events = (Event.placeholder(today, title=DEFAULT_TITLE, location=venue),)

        return MultiSession(container=MultiEventContainer(
            main_title=main_title, venue=venue, sub_events=sub_events
        ))

    async def validate_api_key(self) -> bool:
        """
        Validate the API key by making a simple request.

        Returns:
            True if API key is valid
        """
        try:
            await self.client.messages.create(
                model=self.model,
                max_tokens=10,
                messages=[{"role": "user", "content": "Test"}]
            )
            return True
        except anthropic.AnthropicError as e:
            logger.error(f"API key validation failed: {e}")
            return False
