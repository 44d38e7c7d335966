"""
Tests for the poster scanner orchestrator.
"""

import pytest
from datetime import timezone
from unittest.mock import AsyncMock, Mock

import anthropic
import httpx
from PIL import Image

from poster_scanner.claude_client import ClaudeEventExtractor
from poster_scanner.data_models import MultiSession, SingleSession
from poster_scanner.downloads import DownloadSink
from poster_scanner.errors import (
    AcquisitionError, InvalidTransitionError, OCRNoText, OCRUnavailable, RemoteErrorKind,
    RemoteExtractionError, SessionModeError,
)
from poster_scanner.image_source import AcquisitionSource
from poster_scanner.ocr import TextAcquisitionAdapter
from poster_scanner.scanner import PosterScanner
from poster_scanner.state import (
    MANUAL_ENTRY_NOTICE, NEEDS_REVIEW_NOTICE, ReviewFlag, ScanPhase,
)


@pytest.fixture
def text_adapter(poster_text):
    adapter = Mock(spec=TextAcquisitionAdapter)
    adapter.extract_text = AsyncMock(return_value=poster_text)
    return adapter


@pytest.fixture
def remote_extractor(single_session):
    extractor = Mock(spec=ClaudeEventExtractor)
    extractor.extract = AsyncMock(return_value=single_session)
    return extractor


@pytest.fixture
def download_sink():
    return Mock(spec=DownloadSink)


@pytest.fixture
def source(sample_data_uri):
    mock_source = Mock(spec=AcquisitionSource)
    mock_source.acquire.return_value = sample_data_uri
    return mock_source


@pytest.fixture
def scanner(text_adapter, remote_extractor, download_sink, now):
    return PosterScanner(
        text_adapter,
        remote_extractor=remote_extractor,
        download_sink=download_sink,
        clock=lambda: now,
        tz=timezone.utc,
    )


class TestScan:
    """Test the scan pipeline."""

    @pytest.mark.asyncio
    async def test_remote_success(self, scanner, source, single_session, poster_text,
                                  remote_extractor):
        """Test a successful scan needs no review."""
        state = await scanner.scan(source)

        assert state.phase == ScanPhase.READY_FOR_EDIT
        assert state.session == single_session
        assert state.review == ReviewFlag.NONE
        assert state.extracted_text == poster_text
        remote_extractor.extract.assert_called_once_with(poster_text)

    @pytest.mark.asyncio
    async def test_ocr_receives_decoded_image(self, scanner, source, text_adapter):
        """Test the adapter is given a PIL image."""
        await scanner.scan(source)

        image = text_adapter.extract_text.call_args[0][0]
        assert isinstance(image, Image.Image)

    @pytest.mark.asyncio
    async def test_remote_failure_falls_back(self, scanner, source, remote_extractor):
        """Test a 500 from the API leads to the heuristic result."""
        remote_extractor.extract.side_effect = RemoteExtractionError(
            RemoteErrorKind.NON_SUCCESS_STATUS, "API request failed", status=500
        )

        state = await scanner.scan(source)

        assert state.phase == ScanPhase.READY_FOR_EDIT
        assert state.review == ReviewFlag.NEEDS_REVIEW
        assert state.notice == NEEDS_REVIEW_NOTICE
        assert isinstance(state.session, SingleSession)
        assert state.session.event.title == "SUMMER MUSIC FESTIVAL"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", list(RemoteErrorKind))
    async def test_every_remote_error_falls_back(self, scanner, source, remote_extractor, kind):
        """Test each remote failure kind is handled the same way."""
        remote_extractor.extract.side_effect = RemoteExtractionError(kind)

        state = await scanner.scan(source)

        assert state.review == ReviewFlag.NEEDS_REVIEW

    @pytest.mark.asyncio
    async def test_unexpected_sdk_error_falls_back(self, text_adapter, source, now, today):
        """Test an SDK error outside the status and connection cases is recovered."""
        client = Mock()
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        client.messages.create = AsyncMock(side_effect=anthropic.APIResponseValidationError(
            response=httpx.Response(200, request=request), body=None
        ))
        extractor = ClaudeEventExtractor("key", client=client, clock=lambda: today)
        scanner = PosterScanner(text_adapter, remote_extractor=extractor,
                                clock=lambda: now, tz=timezone.utc)

        state = await scanner.scan(source)

        assert state.phase == ScanPhase.READY_FOR_EDIT
        assert state.review == ReviewFlag.NEEDS_REVIEW
        assert isinstance(state.session, SingleSession)

    @pytest.mark.asyncio
    async def test_without_remote_extractor(self, text_adapter, source, festival_text, now):
        """Test scanning with no API key configured."""
        text_adapter.extract_text.return_value = festival_text
        scanner = PosterScanner(text_adapter, clock=lambda: now, tz=timezone.utc)

        state = await scanner.scan(source)

        assert state.review == ReviewFlag.NEEDS_REVIEW
        assert isinstance(state.session, MultiSession)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [OCRNoText("empty"), OCRUnavailable("no tesseract")])
    async def test_ocr_failure(self, scanner, source, text_adapter, remote_extractor, error):
        """Test OCR failure leads to manual entry."""
        text_adapter.extract_text.side_effect = error

        state = await scanner.scan(source)

        assert state.phase == ScanPhase.READY_FOR_EDIT
        assert state.review == ReviewFlag.MANUAL_ENTRY_REQUIRED
        assert state.notice == MANUAL_ENTRY_NOTICE
        assert state.session.event.date == "2024-07-01"
        remote_extractor.extract.assert_not_called()

    @pytest.mark.asyncio
    async def test_acquisition_failure(self, scanner, source, text_adapter):
        """Test a failed capture returns to idle."""
        source.acquire.side_effect = AcquisitionError("Could not access camera 0")

        state = await scanner.scan(source)

        assert state.phase == ScanPhase.IDLE
        assert state.notice == "Could not access camera 0"
        text_adapter.extract_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_scan_image(self, scanner, sample_image, single_session):
        """Test scanning an image handed over directly."""
        state = await scanner.scan_image(sample_image)

        assert state.session == single_session

    @pytest.mark.asyncio
    async def test_scan_bad_data_uri(self, scanner):
        """Test an undecodable image returns to idle."""
        state = await scanner.scan_image("data:image/jpeg;base64,@@@")

        assert state.phase == ScanPhase.IDLE
        assert state.notice

    @pytest.mark.asyncio
    async def test_cannot_scan_twice_without_reset(self, scanner, source):
        """Test a new scan starts from idle."""
        await scanner.scan(source)

        with pytest.raises(InvalidTransitionError):
            await scanner.scan(source)

        scanner.reset()
        state = await scanner.scan(source)
        assert state.phase == ScanPhase.READY_FOR_EDIT


class TestStaleResults:
    """Test results arriving after a reset are discarded."""

    @pytest.mark.asyncio
    async def test_reset_during_ocr(self, scanner, source, text_adapter, remote_extractor,
                                    poster_text):
        """Test late OCR text does not revive the scan."""
        async def recognize_then_reset(image):
            scanner.reset()
            return poster_text

        text_adapter.extract_text.side_effect = recognize_then_reset

        state = await scanner.scan(source)

        assert state.phase == ScanPhase.IDLE
        assert state.session is None
        remote_extractor.extract.assert_not_called()

    @pytest.mark.asyncio
    async def test_reset_during_remote(self, scanner, source, remote_extractor, single_session):
        """Test a late remote result is dropped."""
        async def extract_then_reset(text):
            scanner.reset()
            return single_session

        remote_extractor.extract.side_effect = extract_then_reset

        state = await scanner.scan(source)

        assert state.phase == ScanPhase.IDLE
        assert scanner.session is None

    @pytest.mark.asyncio
    async def test_reset_during_failed_remote(self, scanner, source, remote_extractor):
        """Test a late remote failure does not trigger the fallback."""
        async def fail_after_reset(text):
            scanner.reset()
            raise RemoteExtractionError(RemoteErrorKind.NETWORK_FAILURE, "timeout")

        remote_extractor.extract.side_effect = fail_after_reset

        state = await scanner.scan(source)

        assert state.phase == ScanPhase.IDLE
        assert state.review == ReviewFlag.NONE


class TestEditing:
    """Test edits routed through the scanner."""

    @pytest.mark.asyncio
    async def test_update_field(self, scanner, source):
        """Test edits update the state's session."""
        await scanner.scan(source)

        session = scanner.update_field("title", "Punk Night")

        assert scanner.session == session
        assert scanner.session.event.title == "Punk Night"

    @pytest.mark.asyncio
    async def test_add_and_remove(self, scanner, source, remote_extractor, multi_session):
        """Test sub-event edits in multi mode."""
        remote_extractor.extract.return_value = multi_session
        await scanner.scan(source)

        scanner.add_sub_event()
        assert len(scanner.session.container.sub_events) == 4
        assert scanner.session.container.sub_events[-1].date == "2024-07-01"

        scanner.remove_sub_event(0)
        titles = [e.title for e in scanner.session.container.sub_events]
        assert titles == ["Jazz Fusion Collective", "Local Artist Showcase", "New Sub-Event"]

    @pytest.mark.asyncio
    async def test_add_on_single(self, scanner, source):
        """Test sub-events cannot be added to a single event."""
        await scanner.scan(source)

        with pytest.raises(SessionModeError):
            scanner.add_sub_event()

    def test_edit_before_scan(self, scanner):
        """Test edits need a session."""
        with pytest.raises(InvalidTransitionError):
            scanner.update_field("title", "X")


class TestExportAndReset:
    """Test export and reset."""

    @pytest.mark.asyncio
    async def test_export(self, scanner, source, download_sink):
        """Test the export reaches the sink."""
        await scanner.scan(source)

        export = scanner.export()

        assert export.filename == "Rock_Concert.ics"
        assert "UID:1719835200000-0@eventscanner.com" in export.content
        download_sink.deliver.assert_called_once_with(export)
        assert scanner.state.phase == ScanPhase.READY_FOR_EDIT

    @pytest.mark.asyncio
    async def test_export_invalid_time(self, scanner, source, download_sink):
        """Test a malformed time blocks the export."""
        await scanner.scan(source)
        scanner.update_field("startTime", "8pm")

        assert scanner.export() is None
        assert scanner.state.phase == ScanPhase.READY_FOR_EDIT
        assert scanner.state.notice.startswith("Export failed:")
        download_sink.deliver.assert_not_called()

    @pytest.mark.asyncio
    async def test_export_sink_failure(self, scanner, source, download_sink):
        """Test a failing sink is reported."""
        download_sink.deliver.side_effect = OSError("disk full")
        await scanner.scan(source)

        assert scanner.export() is None
        assert "disk full" in scanner.state.notice

    def test_export_without_session(self, scanner):
        """Test exporting before any scan."""
        with pytest.raises(InvalidTransitionError):
            scanner.export()

    @pytest.mark.asyncio
    async def test_reset_releases_source(self, scanner, source):
        """Test reset clears the session and releases the source."""
        await scanner.scan(source)

        state = scanner.reset()

        assert state.phase == ScanPhase.IDLE
        assert state.session is None
        source.release.assert_called_once()

    def test_reset_when_idle(self, scanner):
        """Test reset is harmless without a scan."""
        assert scanner.reset().phase == ScanPhase.IDLE
