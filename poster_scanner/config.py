"""
Scanner configuration and wiring.
"""

import logging
import os
from datetime import datetime, tzinfo
from typing import List, Optional

from dateutil import tz as dateutil_tz
from pydantic import BaseModel, Field, field_validator

from .claude_client import DEFAULT_MAX_TOKENS, DEFAULT_MODEL, ClaudeEventExtractor
from .downloads import DownloadSink
from .ocr import MIN_TEXT_CHARS, TesseractProvider, TextAcquisitionAdapter
from .scanner import PosterScanner


logger = logging.getLogger(__name__)

DEFAULT_TESSERACT_COMMANDS = [
    "tesseract",
    "/usr/bin/tesseract",
    "/usr/local/bin/tesseract",
    "/opt/homebrew/bin/tesseract",
]


class ScannerConfig(BaseModel):
    """Settings for building a PosterScanner."""
    api_key: Optional[str] = Field(None, description="Anthropic API key")
    model: str = Field(DEFAULT_MODEL, description="Claude model name")
    max_tokens: int = Field(DEFAULT_MAX_TOKENS, gt=0, description="Response token limit")
    tesseract_commands: List[str] = Field(
        default_factory=lambda: list(DEFAULT_TESSERACT_COMMANDS),
        description="Tesseract binaries to try, in order",
    )
    ocr_language: str = Field("eng", description="Tesseract language code")
    min_text_chars: int = Field(MIN_TEXT_CHARS, ge=1, description="Minimum OCR text length")
    timezone: Optional[str] = Field(None, description="IANA zone for event times, local if unset")

    @field_validator('tesseract_commands')
    @classmethod
    def validate_commands(cls, v):
        if not v:
            raise ValueError('At least one Tesseract command is required')
        return v

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v):
        if v and dateutil_tz.gettz(v) is None:
            raise ValueError(f'Unknown time zone: {v}')
        return v

    @classmethod
    def from_env(cls, **overrides) -> 'ScannerConfig':
        """
        Read settings from the environment.

        Explicit keyword overrides that are not None win over the environment.
        """
        values = {
            "api_key": os.getenv('CLAUDE_API_KEY') or os.getenv('ANTHROPIC_API_KEY'),
            "model": os.getenv('POSTER_SCANNER_MODEL'),
            "ocr_language": os.getenv('POSTER_SCANNER_OCR_LANG'),
            "timezone": os.getenv('POSTER_SCANNER_TIMEZONE'),
        }
        commands = os.getenv('POSTER_SCANNER_TESSERACT_CMDS')
        if commands:
            values["tesseract_commands"] = [c for c in commands.split(os.pathsep) if c]

        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**{key: value for key, value in values.items() if value is not None})

    def get_tz(self) -> tzinfo:
        """Zone for event times."""
        if self.timezone:
            return dateutil_tz.gettz(self.timezone)
        return dateutil_tz.tzlocal()


def build_scanner(config: ScannerConfig,
                  download_sink: Optional[DownloadSink] = None) -> PosterScanner:
    """
    Wire a PosterScanner from configuration.

    Args:
        config: Scanner settings
        download_sink: Where exports are delivered

    Returns:
        Ready to use scanner
    """
    providers = [
        TesseractProvider(command, config.ocr_language)
        for command in config.tesseract_commands
    ]
    text_adapter = TextAcquisitionAdapter(providers, min_chars=config.min_text_chars)
    local_tz = config.get_tz()

    remote_extractor = None
    if config.api_key:
        remote_extractor = ClaudeEventExtractor(
            config.api_key, model=config.model, max_tokens=config.max_tokens,
            clock=lambda: datetime.now(local_tz).date(),
        )
    else:
        logger.warning("No Claude API key configured, using heuristic extraction only")

    return PosterScanner(
        text_adapter,
        remote_extractor=remote_extractor,
        download_sink=download_sink,
        tz=local_tz,
    )
