"""
Scan state record and its transitions.

``ScanState`` is immutable. Each transition is a pure function taking the
current state and returning the next one, and refuses to run from a phase
where it does not apply.
"""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .data_models import Event, Session, SingleSession
from .errors import InvalidTransitionError


MANUAL_ENTRY_NOTICE = "Please fill in the event details manually."
NEEDS_REVIEW_NOTICE = "AI parsing unavailable. Please review and edit the extracted details."


class ScanPhase(str, Enum):
    """Pipeline phases."""
    IDLE = "idle"
    ACQUIRING = "acquiring"
    OCR_RUNNING = "ocr_running"
    REMOTE_EXTRACTING = "remote_extracting"
    FALLBACK_HEURISTIC = "fallback_heuristic"
    READY_FOR_EDIT = "ready_for_edit"
    EXPORTING = "exporting"


class ReviewFlag(str, Enum):
    """How much user attention the extracted session needs."""
    NONE = "none"
    NEEDS_REVIEW = "needs_review"
    MANUAL_ENTRY_REQUIRED = "manual_entry_required"


class ScanState(BaseModel):
    """Everything the scanner knows about the current scan."""
    model_config = ConfigDict(frozen=True)

    phase: ScanPhase = ScanPhase.IDLE
    session: Optional[Session] = None
    review: ReviewFlag = ReviewFlag.NONE
    notice: Optional[str] = None
    extracted_text: str = ""
    generation: int = 0


def _require(state: ScanState, *phases: ScanPhase) -> None:
    if state.phase not in phases:
        expected = ", ".join(phase.value for phase in phases)
        raise InvalidTransitionError(
            f"Cannot leave {state.phase.value} this way (expected {expected})"
        )


def begin_acquisition(state: ScanState) -> ScanState:
    _require(state, ScanPhase.IDLE)
    return ScanState(phase=ScanPhase.ACQUIRING, generation=state.generation + 1)


def acquisition_failed(state: ScanState, error: Exception) -> ScanState:
    _require(state, ScanPhase.ACQUIRING)
    return ScanState(phase=ScanPhase.IDLE, notice=str(error), generation=state.generation)


def image_acquired(state: ScanState) -> ScanState:
    _require(state, ScanPhase.ACQUIRING)
    return state.model_copy(update={"phase": ScanPhase.OCR_RUNNING})


def ocr_failed(state: ScanState, error: Exception, today: date) -> ScanState:
    """OCR gave nothing usable: fall through to manual entry."""
    _require(state, ScanPhase.OCR_RUNNING)
    return state.model_copy(update={
        "phase": ScanPhase.READY_FOR_EDIT,
        "session": SingleSession(event=Event.placeholder(today)),
        "review": ReviewFlag.MANUAL_ENTRY_REQUIRED,
        "notice": MANUAL_ENTRY_NOTICE,
    })


def text_recognized(state: ScanState, text: str) -> ScanState:
    _require(state, ScanPhase.OCR_RUNNING)
    return state.model_copy(update={
        "phase": ScanPhase.REMOTE_EXTRACTING,
        "extracted_text": text,
    })


def remote_succeeded(state: ScanState, session: Session) -> ScanState:
    _require(state, ScanPhase.REMOTE_EXTRACTING)
    return state.model_copy(update={
        "phase": ScanPhase.READY_FOR_EDIT,
        "session": session,
        "review": ReviewFlag.NONE,
        "notice": None,
    })


def remote_failed(state: ScanState, error: Exception) -> ScanState:
    _require(state, ScanPhase.REMOTE_EXTRACTING)
    return state.model_copy(update={"phase": ScanPhase.FALLBACK_HEURISTIC})


def heuristic_completed(state: ScanState, session: Session) -> ScanState:
    _require(state, ScanPhase.FALLBACK_HEURISTIC)
    return state.model_copy(update={
        "phase": ScanPhase.READY_FOR_EDIT,
        "session": session,
        "review": ReviewFlag.NEEDS_REVIEW,
        "notice": NEEDS_REVIEW_NOTICE,
    })


def session_edited(state: ScanState, session: Session) -> ScanState:
    _require(state, ScanPhase.READY_FOR_EDIT)
    return state.model_copy(update={"session": session})


def begin_export(state: ScanState) -> ScanState:
    _require(state, ScanPhase.READY_FOR_EDIT)
    if state.session is None:
        raise InvalidTransitionError("Nothing to export")
    return state.model_copy(update={"phase": ScanPhase.EXPORTING})


def export_finished(state: ScanState, notice: Optional[str] = None) -> ScanState:
    _require(state, ScanPhase.EXPORTING)
    update = {"phase": ScanPhase.READY_FOR_EDIT}
    if notice is not None:
        update["notice"] = notice
    return state.model_copy(update=update)


def reset(state: ScanState) -> ScanState:
    """Back to an empty idle state from anywhere."""
    return ScanState(generation=state.generation + 1)
