"""
Image decoding, encoding and EXIF helpers for captured photos and crops.
"""

from __future__ import annotations

import io
import logging
import os
import re
import struct
import tempfile
import time
import uuid
from enum import Enum

import cv2
import numpy as np
import piexif
import PIL.Image
from PIL import Image

from core.errors import CropError
from core.quad_types import BGRImage, Rotation

logger = logging.getLogger(__name__)

# Semantic type aliases
PILImage = PIL.Image.Image

SOFTWARE_NAME = "Document Scanner"


class OutputFormat(Enum):
    JPEG = "jpeg"
    PNG = "png"

    @property
    def extension(self) -> str:
        return ".png" if self == OutputFormat.PNG else ".jpg"

    @property
    def pil_format(self) -> str:
        return "PNG" if self == OutputFormat.PNG else "JPEG"


def read_exif_orientation(data: bytes) -> int | None:
    """Return the EXIF orientation tag (1-8) of an encoded image, if present."""
    try:
        exif_dict = piexif.load(data)
    except (ValueError, KeyError, OSError, struct.error):
        return None
    orientation = exif_dict.get("0th", {}).get(piexif.ImageIFD.Orientation)
    if isinstance(orientation, int) and 1 <= orientation <= 8:
        return orientation
    return None


def rotation_from_exif(data: bytes) -> Rotation:
    """Rotation turning the raw pixels of `data` into its display orientation."""
    return Rotation.from_exif(read_exif_orientation(data))


def pil_to_bgr(image: PILImage) -> BGRImage:
    if image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGB")
    array = np.asarray(image)
    if image.mode == "RGBA":
        return cv2.cvtColor(array, cv2.COLOR_RGBA2BGRA)
    return cv2.cvtColor(array, cv2.COLOR_RGB2BGR)


def bgr_to_pil(image: np.ndarray) -> PILImage:
    if image.ndim == 2:
        return Image.fromarray(image)
    if image.shape[2] == 4:
        return Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA))
    return Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))


def decode_image(data: bytes) -> BGRImage:
    """
    Decode encoded image bytes into raw (not EXIF-rotated) BGR pixels.

    Raises CropError if the bytes are not a readable image.
    """
    if not data:
        raise CropError("Source image is empty.")
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            return pil_to_bgr(image)
    except (OSError, ValueError, PIL.Image.DecompressionBombError) as e:
        raise CropError(f"Could not decode source image: {e}") from e


def load_image_bytes(filepath: str) -> bytes:
    try:
        with open(normalize_path(filepath), "rb") as f:
            return f.read()
    except OSError as e:
        raise CropError(f"Could not read source image {filepath}: {e}") from e


def load_image(filepath: str) -> BGRImage:
    return decode_image(load_image_bytes(filepath))


def encode_image(
    image: np.ndarray, output_format: OutputFormat, jpeg_quality: int = 95
) -> bytes:
    """Encode BGR(A) pixels; JPEG output carries a Software EXIF tag."""
    pil_image = bgr_to_pil(image)
    buffer = io.BytesIO()
    if output_format == OutputFormat.JPEG:
        if pil_image.mode != "RGB" and pil_image.mode != "L":
            pil_image = pil_image.convert("RGB")
        exif_dict = {"0th": {}, "Exif": {}, "GPS": {}, "1st": {}, "thumbnail": None}
        exif_dict["0th"][piexif.ImageIFD.Software] = SOFTWARE_NAME
        exif_bytes = piexif.dump(exif_dict)
        pil_image.save(buffer, "JPEG", quality=jpeg_quality, exif=exif_bytes)
    else:
        pil_image.save(buffer, "PNG")
    return buffer.getvalue()


def normalize_path(path: str) -> str:
    """Accept both plain paths and file:// URIs."""
    if path.startswith("file://"):
        return path[len("file://") :]
    return path


def output_path_for_format(path: str, output_format: OutputFormat) -> str:
    """
    Make the file extension of `path` match the output format.

    A missing extension is appended; a different one is replaced.
    """
    path = normalize_path(path)
    desired = output_format.extension
    if not re.search(r"\.[A-Za-z0-9]+$", os.path.basename(path)):
        return path + desired
    if path.lower().endswith(desired):
        return path
    return re.sub(r"\.[A-Za-z0-9]+$", desired, path)


def make_temp_output_path(output_format: OutputFormat) -> str:
    millis = int(time.time() * 1000)
    name = f"docscan_crop_{millis}_{uuid.uuid4().hex[:12]}{output_format.extension}"
    return os.path.join(tempfile.gettempdir(), name)


def write_image_file(path: str, data: bytes) -> None:
    directory = os.path.dirname(path)
    try:
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)
    except OSError as e:
        raise CropError(f"Could not write {path}: {e}") from e
