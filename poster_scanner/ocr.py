"""
Text acquisition from poster images via Tesseract OCR.

Engines are obtained from an ordered list of providers; the first provider
that can supply a working engine wins.
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Union

import cv2
import numpy as np
import pytesseract
from PIL import Image

from .errors import OCRNoText, OCRUnavailable
from .image_source import decode_data_uri


logger = logging.getLogger(__name__)

MIN_TEXT_CHARS = 5
# Tesseract reads small poster text poorly below this height
MIN_OCR_HEIGHT = 1000


class OCREngine(ABC):
    """A loaded OCR engine."""

    @abstractmethod
    def recognize(self, image: Image.Image) -> str:
        """Return all text found in the image."""


class OCRProvider(ABC):
    """A source that may or may not be able to supply an OCR engine."""

    name: str = "provider"

    @abstractmethod
    def load(self) -> OCREngine:
        """
        Load the engine.

        Raises:
            OCRUnavailable: If this provider cannot supply an engine
        """


class TesseractEngine(OCREngine):
    """Tesseract bound to one binary and language."""

    def __init__(self, tesseract_cmd: str, lang: str = "eng"):
        self.tesseract_cmd = tesseract_cmd
        self.lang = lang
        self.config = "--psm 3 -c preserve_interword_spaces=1"

    def recognize(self, image: Image.Image) -> str:
        pytesseract.pytesseract.tesseract_cmd = self.tesseract_cmd
        prepared = self._preprocess(image)
        try:
            return pytesseract.image_to_string(prepared, lang=self.lang, config=self.config)
        except (pytesseract.TesseractError, OSError) as e:
            raise OCRUnavailable(f"Tesseract failed: {e}") from e

    def _preprocess(self, image: Image.Image) -> np.ndarray:
        """
        Prepare a poster photo for recognition.

        Args:
            image: Decoded poster image

        Returns:
            Binarized grayscale image
        """
        gray = cv2.cvtColor(np.array(image.convert('RGB')), cv2.COLOR_RGB2GRAY)

        height = gray.shape[0]
        if 0 < height < MIN_OCR_HEIGHT:
            scale = MIN_OCR_HEIGHT / height
            gray = cv2.resize(gray, None, fx=scale, fy=scale, interpolation=cv2.INTER_CUBIC)

        gray = cv2.GaussianBlur(gray, (3, 3), 0)
        _, thresh = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
        return thresh


class TesseractProvider(OCRProvider):
    """Provides a Tesseract engine if the given binary is usable."""

    def __init__(self, tesseract_cmd: str = "tesseract", lang: str = "eng"):
        self.tesseract_cmd = tesseract_cmd
        self.lang = lang
        self.name = f"tesseract:{tesseract_cmd}"

    def load(self) -> OCREngine:
        pytesseract.pytesseract.tesseract_cmd = self.tesseract_cmd
        try:
            version = pytesseract.get_tesseract_version()
        except (pytesseract.TesseractNotFoundError, OSError) as e:
            raise OCRUnavailable(f"{self.name} not usable: {e}") from e

        logger.info(f"Loaded Tesseract {version} from {self.tesseract_cmd}")
        return TesseractEngine(self.tesseract_cmd, self.lang)


class TextAcquisitionAdapter:
    """Turns poster images into raw text."""

    def __init__(self, providers: Sequence[OCRProvider], min_chars: int = MIN_TEXT_CHARS):
        """
        Initialize the adapter.

        Args:
            providers: Engine providers in order of preference
            min_chars: Minimum non-whitespace characters for a usable result
        """
        self.providers: List[OCRProvider] = list(providers)
        self.min_chars = min_chars
        self._engine: Optional[OCREngine] = None

    async def extract_text(self, image: Union[str, Image.Image]) -> str:
        """
        Recognize the text on a poster.

        Args:
            image: Base64 data URI or decoded PIL image

        Returns:
            Recognized text

        Raises:
            OCRUnavailable: If no engine could be loaded or recognition failed
            OCRNoText: If too little text was recognized
        """
        if isinstance(image, str):
            image = decode_data_uri(image)

        engine = await self._get_engine()
        text = await asyncio.to_thread(engine.recognize, image)

        if len(re.sub(r"\s", "", text or "")) < self.min_chars:
            raise OCRNoText("No meaningful text extracted from image")

        logger.info(f"OCR extracted {len(text)} characters")
        logger.debug(f"OCR text: {text}")
        return text

    async def _get_engine(self) -> OCREngine:
        if self._engine is not None:
            return self._engine

        for provider in self.providers:
            try:
                self._engine = await asyncio.to_thread(provider.load)
                return self._engine
            except OCRUnavailable as e:
                logger.warning(f"OCR provider {provider.name} unavailable: {e}")

        raise OCRUnavailable(
            f"Could not load an OCR engine from any of {len(self.providers)} providers"
        )
