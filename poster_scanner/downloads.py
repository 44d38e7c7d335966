"""
Delivery of exported calendar files.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from .ics_serializer import CalendarExport


logger = logging.getLogger(__name__)


class DownloadSink(ABC):
    """Hands an exported calendar to the user."""

    @abstractmethod
    def deliver(self, export: CalendarExport) -> None:
        """Deliver the export. Raises OSError if delivery fails."""


class DirectoryDownloadSink(DownloadSink):
    """Writes exports as files into a directory."""

    def __init__(self, directory: str):
        self.directory = Path(directory)
        self.last_path = None

    def deliver(self, export: CalendarExport) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        # Titles come from poster text; keep only the final path component
        path = self.directory / Path(export.filename).name
        path.write_bytes(export.content.encode('utf-8'))
        self.last_path = path
        logger.info(f"Calendar file written to: {path}")
