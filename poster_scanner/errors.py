"""
Error taxonomy for the poster scanning pipeline.

Pipeline errors are raised by the individual components and recovered by the
scanner, which falls back to the next extraction tier.
"""

from enum import Enum
from typing import Optional


class PosterScannerError(Exception):
    """Base class for all poster scanner errors."""


class AcquisitionError(PosterScannerError):
    """The poster image could not be obtained or decoded."""


class OCRError(PosterScannerError):
    """Base class for text acquisition failures."""


class OCRUnavailable(OCRError):
    """No OCR engine could be loaded, or the engine failed while running."""


class OCRNoText(OCRError):
    """OCR ran but produced too little text to work with."""


class RemoteErrorKind(str, Enum):
    """Ways the remote extraction tier can fail."""
    NETWORK_FAILURE = "network_failure"
    NON_SUCCESS_STATUS = "non_success_status"
    SCHEMA_MISMATCH = "schema_mismatch"


class RemoteExtractionError(PosterScannerError):
    """The remote extractor could not produce a usable session."""

    def __init__(self, kind: RemoteErrorKind, message: str = "",
                 status: Optional[int] = None):
        self.kind = kind
        self.status = status
        detail = message or kind.value
        if status is not None:
            detail = f"{detail} (status {status})"
        super().__init__(detail)


class CalendarExportError(PosterScannerError):
    """The session holds values that cannot be written to a calendar file."""


class InvalidTransitionError(PosterScannerError):
    """A scan state transition was requested from the wrong phase."""


class SessionModeError(PosterScannerError, ValueError):
    """An edit operation does not apply to the current session variant."""
