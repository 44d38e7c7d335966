"""
Poster Scanner - turns event poster photos into calendar files.

This package provides tools for:
- OCR text acquisition with an ordered engine fallback
- Claude AI-based extraction of single events and multi-event programmes
- Offline heuristic extraction when the AI tier is unavailable
- Editing of the extracted events and iCalendar export
"""

__version__ = "0.1.0"
__author__ = "EventViewer Team"

from .config import ScannerConfig, build_scanner
from .data_models import Event, MultiEventContainer, MultiSession, Session, SingleSession
from .scanner import PosterScanner

__all__ = [
    "PosterScanner",
    "ScannerConfig",
    "build_scanner",
    "Event",
    "MultiEventContainer",
    "MultiSession",
    "Session",
    "SingleSession",
]
