"""
Pytest configuration and fixtures for poster scanner tests.
"""

import base64
import io
import os
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, Mock

import pytest
from PIL import Image

from poster_scanner.data_models import Event, MultiEventContainer, MultiSession, SingleSession


TODAY = date(2024, 7, 1)
NOW = datetime(2024, 7, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def today() -> date:
    """Fixed reference date."""
    return TODAY


@pytest.fixture
def now() -> datetime:
    """Fixed reference instant."""
    return NOW


@pytest.fixture
def poster_text() -> str:
    """OCR text of a single-event poster."""
    return """SUMMER MUSIC FESTIVAL
Join us for an amazing night of live music!

Date: Saturday, July 15, 2024
Time: 7:00 PM - 11:00 PM
Venue: Central Park Amphitheater
123 Park Avenue, New York, NY 10001

Tickets: $25 - Available at the door
Food trucks and beverages available"""


@pytest.fixture
def festival_text() -> str:
    """OCR text of a multi-day festival poster."""
    return """JAZZ WEEKEND 2024
Day 1 - 12/07/2024 - 18:00 to 20:00
Day 2 - 13/07/2024 - 19:30 to 22:00
Riverside Stage"""


@pytest.fixture
def sample_event() -> Event:
    """Sample event for testing."""
    return Event(
        title="Rock Concert",
        date="2024-12-15",
        start_time="20:00",
        end_time="23:00",
        location="Olympiahalle",
        description="Eine unvergessliche Rocknacht",
    )


@pytest.fixture
def single_session(sample_event) -> SingleSession:
    """Session with one event."""
    return SingleSession(event=sample_event)


@pytest.fixture
def multi_session() -> MultiSession:
    """Session with three sub-events."""
    return MultiSession(container=MultiEventContainer(
        main_title="Summer Music Festival 2024",
        venue="Central Park Amphitheater",
        sub_events=(
            Event(title="Opening Night", date="2024-07-15", start_time="19:00",
                  end_time="21:00", location="Main Stage", description="Electronic music"),
            Event(title="Jazz Fusion Collective", date="2024-07-16", start_time="20:00",
                  end_time="22:00", location="Jazz Lounge", description="Smooth jazz"),
            Event(title="Local Artist Showcase", date="2024-07-17", start_time="18:00",
                  end_time="23:00", location="Multiple Stages", description="Local talent"),
        ),
    ))


@pytest.fixture
def sample_image() -> Image.Image:
    """A small blank poster image."""
    return Image.new('RGB', (800, 600), color='white')


@pytest.fixture
def sample_data_uri(sample_image) -> str:
    """The sample image as a JPEG data URI."""
    buffer = io.BytesIO()
    sample_image.save(buffer, format='JPEG')
    return "data:image/jpeg;base64," + base64.b64encode(buffer.getvalue()).decode('utf-8')


@pytest.fixture
def sample_image_path(tmp_path, sample_image) -> str:
    """Create a sample image file for testing."""
    image_path = tmp_path / "test_poster.jpg"
    sample_image.save(image_path)
    return str(image_path)


@pytest.fixture
def api_key() -> str:
    """Get API key from environment or return mock key for testing."""
    return os.getenv('CLAUDE_API_KEY', 'mock-api-key-for-testing')


@pytest.fixture
def single_response_text() -> str:
    """Claude answer for a single event, wrapped in a code fence."""
    return '''```json
{
  "eventType": "single",
  "event": {
    "title": "Rock Concert",
    "date": "2024-12-15",
    "startTime": "20:00",
    "endTime": "23:00",
    "location": "Olympiahalle",
    "description": "Eine unvergessliche Rocknacht"
  }
}
```'''


@pytest.fixture
def multiple_response_text() -> str:
    """Claude answer for a festival."""
    return '''
{
  "eventType": "multiple",
  "mainTitle": "Jazz Weekend 2024",
  "venue": "Riverside Stage",
  "events": [
    {"title": "Day 1", "date": "2024-07-12", "startTime": "18:00", "endTime": "20:00",
     "location": "Riverside Stage", "description": "Opening"},
    {"title": "Day 2", "date": "2024-07-13", "startTime": "19:30", "endTime": "22:00"}
  ]
}
'''


@pytest.fixture
def mock_anthropic_client(single_response_text):
    """Mock async Anthropic client."""
    mock_client = Mock()
    mock_response = Mock()
    mock_response.content = [Mock()]
    mock_response.content[0].text = single_response_text
    mock_client.messages.create = AsyncMock(return_value=mock_response)
    return mock_client
