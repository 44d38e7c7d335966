"""
Main poster scanner orchestrator that coordinates all pipeline components.
"""

import logging
import time
from datetime import date, datetime, timezone, tzinfo
from typing import Callable, Optional, Union

from PIL import Image

from . import event_model, state as transitions
from .claude_client import ClaudeEventExtractor
from .data_models import Session, session_events, session_title
from .downloads import DownloadSink
from .errors import (
    AcquisitionError, CalendarExportError, InvalidTransitionError, OCRError, RemoteErrorKind,
    RemoteExtractionError,
)
from .event_model import MAIN_INFO, Target
from .heuristic_extractor import extract_heuristically
from .ics_serializer import CalendarExport, export_session
from .image_source import AcquisitionSource, decode_data_uri
from .ocr import TextAcquisitionAdapter
from .state import ScanPhase, ScanState


logger = logging.getLogger(__name__)


class PosterScanner:
    """Turns poster images into editable, exportable calendar sessions."""

    def __init__(self, text_adapter: TextAcquisitionAdapter,
                 remote_extractor: Optional[ClaudeEventExtractor] = None,
                 download_sink: Optional[DownloadSink] = None,
                 clock: Optional[Callable[[], datetime]] = None,
                 tz: Optional[tzinfo] = None):
        """
        Initialize poster scanner.

        Args:
            text_adapter: OCR front end
            remote_extractor: Claude extractor; without one every scan uses
                the heuristic tier
            download_sink: Receives exported calendar files
            clock: Returns the current time (UTC-aware), injectable for tests
            tz: Zone event times are interpreted in when exporting
        """
        self.text_adapter = text_adapter
        self.remote_extractor = remote_extractor
        self.download_sink = download_sink
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.tz = tz
        self._state = ScanState()
        self._source: Optional[AcquisitionSource] = None

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def session(self) -> Optional[Session]:
        return self._state.session

    def _today(self) -> date:
        return self.clock().astimezone(self.tz).date()

    def _is_current(self, generation: int) -> bool:
        if self._state.generation != generation:
            logger.warning(f"Discarding result of superseded scan {generation}")
            return False
        return True

    async def scan(self, source: AcquisitionSource) -> ScanState:
        """
        Acquire an image from ``source`` and run the full pipeline.

        Args:
            source: Where the poster image comes from

        Returns:
            Resulting state: READY_FOR_EDIT, or IDLE if no image was acquired
        """
        self._state = transitions.begin_acquisition(self._state)
        self._source = source

        try:
            data_uri = source.acquire()
        except AcquisitionError as e:
            logger.error(f"Image acquisition failed: {e}")
            self._source = None
            self._state = transitions.acquisition_failed(self._state, e)
            return self._state

        return await self._process(data_uri, self._state.generation)

    async def scan_image(self, image: Union[str, Image.Image]) -> ScanState:
        """
        Run the pipeline on an already captured image.

        Args:
            image: Base64 data URI or decoded PIL image

        Returns:
            Resulting state: READY_FOR_EDIT, or IDLE if the image is unusable
        """
        self._state = transitions.begin_acquisition(self._state)
        return await self._process(image, self._state.generation)

    async def _process(self, image: Union[str, Image.Image], generation: int) -> ScanState:
        start_time = time.time()

        try:
            if isinstance(image, str):
                image = decode_data_uri(image)
        except AcquisitionError as e:
            logger.error(f"Image acquisition failed: {e}")
            self._state = transitions.acquisition_failed(self._state, e)
            return self._state

        self._state = transitions.image_acquired(self._state)

        logger.info("Phase 1: Recognizing poster text...")
        try:
            text = await self.text_adapter.extract_text(image)
        except OCRError as e:
            if not self._is_current(generation):
                return self._state
            logger.warning(f"OCR failed, manual entry required: {e}")
            self._state = transitions.ocr_failed(self._state, e, self._today())
            return self._state

        if not self._is_current(generation):
            return self._state
        self._state = transitions.text_recognized(self._state, text)

        logger.info("Phase 2: Extracting event details with Claude...")
        try:
            session = await self._extract_remote(text)
        except RemoteExtractionError as e:
            if not self._is_current(generation):
                return self._state
            logger.warning(f"Remote extraction failed ({e.kind.value}): {e}")
            self._state = transitions.remote_failed(self._state, e)

            logger.info("Phase 3: Falling back to heuristic extraction...")
            session = extract_heuristically(text, self._today())
            self._state = transitions.heuristic_completed(self._state, session)
        else:
            if not self._is_current(generation):
                return self._state
            self._state = transitions.remote_succeeded(self._state, session)

        logger.info(
            f"Scan finished in {time.time() - start_time:.2f} seconds: "
            f"{session_title(self._state.session)} "
            f"({len(session_events(self._state.session))} events, review={self._state.review.value})"
        )
        return self._state

    async def _extract_remote(self, text: str) -> Session:
        if self.remote_extractor is None:
            raise RemoteExtractionError(
                RemoteErrorKind.NETWORK_FAILURE, "No remote extractor configured"
            )
        return await self.remote_extractor.extract(text)

    def update_field(self, field: str, value: str, target: Target = MAIN_INFO) -> Session:
        """Replace one field of the current session. See event_model.update_field."""
        session = event_model.update_field(self._require_session(), field, value, target)
        self._state = transitions.session_edited(self._state, session)
        return session

    def add_sub_event(self) -> Session:
        """Append a placeholder sub-event to a multi-event session."""
        session = event_model.add_sub_event(self._require_session(), self._today())
        self._state = transitions.session_edited(self._state, session)
        return session

    def remove_sub_event(self, index: int) -> Session:
        """Remove a sub-event by position; out of range indices are ignored."""
        session = event_model.remove_sub_event(self._require_session(), index)
        self._state = transitions.session_edited(self._state, session)
        return session

    def _require_session(self) -> Session:
        if self._state.phase != ScanPhase.READY_FOR_EDIT or self._state.session is None:
            raise InvalidTransitionError("No session is ready for editing")
        return self._state.session

    def export(self) -> Optional[CalendarExport]:
        """
        Serialize the session and hand it to the download sink.

        Returns:
            The export, or None if the session could not be exported; the
            reason is left in ``state.notice``
        """
        self._state = transitions.begin_export(self._state)

        try:
            export = export_session(self._state.session, self.clock(), self.tz)
            if self.download_sink is not None:
                self.download_sink.deliver(export)
        except (CalendarExportError, OSError) as e:
            logger.error(f"Export failed: {e}")
            self._state = transitions.export_finished(self._state, notice=f"Export failed: {e}")
            return None

        self._state = transitions.export_finished(self._state)
        logger.info(f"Exported {export.filename}")
        return export

    def reset(self) -> ScanState:
        """Drop the session and release the acquisition source."""
        if self._source is not None:
            self._source.release()
            self._source = None
        self._state = transitions.reset(self._state)
        logger.info("Scanner reset")
        return self._state
