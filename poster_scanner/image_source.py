"""
Acquisition of poster images as base64 data URIs.
"""

import base64
import binascii
import io
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import cv2
from PIL import Image, UnidentifiedImageError

from .errors import AcquisitionError


logger = logging.getLogger(__name__)

MAX_IMAGE_DIMENSION = 2400
JPEG_QUALITY = 85

_DATA_URI_RE = re.compile(r"data:(image/[\w.+-]+);base64,(.*)", re.DOTALL)


def image_to_data_uri(img: Image.Image) -> str:
    """
    Encode a PIL image as a JPEG data URI.

    Args:
        img: Image to encode

    Returns:
        ``data:image/jpeg;base64,...`` string
    """
    if img.mode != 'RGB':
        img = img.convert('RGB')

    if max(img.size) > MAX_IMAGE_DIMENSION:
        img.thumbnail((MAX_IMAGE_DIMENSION, MAX_IMAGE_DIMENSION), Image.Resampling.LANCZOS)

    buffer = io.BytesIO()
    img.save(buffer, format='JPEG', quality=JPEG_QUALITY)
    encoded = base64.b64encode(buffer.getvalue()).decode('utf-8')
    return f"data:image/jpeg;base64,{encoded}"


def decode_data_uri(data_uri: str) -> Image.Image:
    """
    Decode a base64 image data URI.

    Args:
        data_uri: ``data:image/<type>;base64,<payload>``

    Returns:
        Loaded PIL image

    Raises:
        AcquisitionError: If the URI is malformed or not an image
    """
    match = _DATA_URI_RE.fullmatch(data_uri.strip()) if isinstance(data_uri, str) else None
    if not match:
        raise AcquisitionError("Image must be a base64 data URI")

    try:
        raw = base64.b64decode(match.group(2), validate=True)
        img = Image.open(io.BytesIO(raw))
        img.load()
    except (binascii.Error, UnidentifiedImageError, OSError) as e:
        raise AcquisitionError(f"Could not decode image data: {e}") from e

    return img


class AcquisitionSource(ABC):
    """Something that can hand over one poster image."""

    @abstractmethod
    def acquire(self) -> str:
        """
        Obtain the poster image.

        Returns:
            Base64 image data URI

        Raises:
            AcquisitionError: If no image could be obtained
        """

    def release(self) -> None:
        """Release any hardware or file handle held by the source."""


class FileImageSource(AcquisitionSource):
    """Poster image read from a file, as with an upload."""

    def __init__(self, image_path: str):
        self.image_path = image_path

    def acquire(self) -> str:
        path = Path(self.image_path)
        if not path.is_file():
            raise AcquisitionError(f"Image file not found: {self.image_path}")

        try:
            with Image.open(path) as img:
                data_uri = image_to_data_uri(img)
        except (UnidentifiedImageError, OSError) as e:
            raise AcquisitionError(f"Could not read image {self.image_path}: {e}") from e

        logger.info(f"Loaded poster image from {self.image_path}")
        return data_uri


class CameraImageSource(AcquisitionSource):
    """Poster image captured as a single frame from a camera."""

    def __init__(self, device_index: int = 0):
        self.device_index = device_index
        self._capture: Optional[cv2.VideoCapture] = None

    def acquire(self) -> str:
        self._capture = cv2.VideoCapture(self.device_index)
        if not self._capture.isOpened():
            self.release()
            raise AcquisitionError(f"Could not access camera {self.device_index}")

        ok, frame = self._capture.read()
        self.release()
        if not ok or frame is None:
            raise AcquisitionError("Camera returned no frame")

        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        logger.info(f"Captured frame {rgb.shape[1]}x{rgb.shape[0]} from camera {self.device_index}")
        return image_to_data_uri(Image.fromarray(rgb))

    def release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.debug(f"Released camera {self.device_index}")
