"""
Perspective rectification of a document quad into an upright crop.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass

import cv2
import numpy as np

from core import geometry, images
from core.errors import AppError, CropError, CropInProgressError, InvalidQuadError
from core.images import OutputFormat
from core.quad_types import QuadAny, QuadArray, Rotation, TransformMatrix
from core.settings import app_settings

# Allow math variables with uppercase letters.
# ruff: noqa N806

logger = logging.getLogger(__name__)


@dataclass
class CropOptions:
    """How a crop is rotated, encoded and returned."""

    format: OutputFormat = OutputFormat.JPEG
    rotate: Rotation = Rotation.NONE
    return_bytes: bool = False
    output_path: str | None = None
    jpeg_quality: int = 95
    debug: bool = False

    @classmethod
    def from_settings(cls, **overrides) -> CropOptions:
        options = cls(
            format=OutputFormat(app_settings.output_format),
            jpeg_quality=app_settings.jpeg_quality,
        )
        return dataclasses.replace(options, **overrides)


@dataclass
class CropRequest:
    source: bytes | str | np.ndarray
    quad: QuadAny
    options: CropOptions


@dataclass
class CropResult:
    image: np.ndarray
    width: int
    height: int
    path: str | None = None
    data: bytes | None = None


def output_size(quad: QuadArray) -> tuple[int, int]:
    """Rounded output size of an ordered quad, at least one pixel each way."""
    width, height = geometry.dimension_bounds(quad)
    return max(1, int(round(width))), max(1, int(round(height)))


def validate_quad(quad: QuadAny) -> QuadArray:
    """Ordered quad, or InvalidQuadError if the corners are unusable."""
    corners = geometry.order_quad(quad)
    if geometry.polygon_area(corners) <= 0:
        raise InvalidQuadError("Quad corners are collinear.")
    return corners


def perspective_matrix(quad: QuadArray, width: int, height: int) -> TransformMatrix:
    """Matrix mapping the ordered quad onto a width x height rectangle."""
    src = np.asarray(quad, dtype=np.float32)
    dst = np.array(
        [
            [0, 0],
            [width - 1, 0],
            [width - 1, height - 1],
            [0, height - 1],
        ],
        dtype=np.float32,
    )
    return cv2.getPerspectiveTransform(src, dst, solveMethod=cv2.DECOMP_LU)


def rectify(
    image: np.ndarray, quad: QuadAny, rotation: Rotation = Rotation.NONE
) -> np.ndarray:
    """
    Warp the region bounded by `quad` into an upright rectangle.

    The quad is in the pixel space of `image`. Pixels sampled outside the image
    are filled with zeros. A 90 degree `rotation` swaps the output width and
    height.
    """
    corners = geometry.order_quad(quad)
    width, height = output_size(corners)
    M = perspective_matrix(corners, width, height)
    if not np.all(np.isfinite(M)) or abs(np.linalg.det(M)) < 1e-12:
        raise CropError("Perspective transform is degenerate for this quad.")
    with np.errstate(divide="ignore", invalid="ignore"):
        mapped = geometry.apply_transform(M, corners)
    if not np.all(np.isfinite(mapped)):
        raise CropError("Perspective transform sends a corner to infinity.")

    warped = cv2.warpPerspective(
        image,
        M,
        (width, height),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=0,
    )

    code = rotation.cv2_code
    if code is not None:
        warped = cv2.rotate(warped, code)
    return warped


def _load_source(source: bytes | str | np.ndarray) -> np.ndarray:
    if isinstance(source, np.ndarray):
        if source.ndim not in (2, 3) or source.size == 0:
            raise CropError(f"Source image has unusable shape {source.shape}.")
        if source.dtype != np.uint8:
            raise CropError(
                f"Source image must have 8-bit pixels, got {source.dtype}."
            )
        return source
    if isinstance(source, (bytes, bytearray, memoryview)):
        return images.decode_image(bytes(source))
    return images.load_image(source)


def crop_document(request: CropRequest) -> CropResult:
    """
    Rectify a document and encode it according to the request's options.

    When neither `return_bytes` nor `output_path` is set, the crop is written
    to a temporary file. Any failure raises a single CropError (or
    InvalidQuadError for bad corners, before any image work); no partial
    result is ever returned.
    """
    options = request.options
    # Validate corners before touching the image.
    quad = validate_quad(request.quad)

    output_path = options.output_path
    if output_path is None and not options.return_bytes:
        output_path = images.make_temp_output_path(options.format)

    if options.debug:
        logger.info(
            f"Crop start: format={options.format.value} rotate={options.rotate.value} "
            f"return_bytes={options.return_bytes} output_path={output_path}"
        )

    source = None
    try:
        source = _load_source(request.source)
        if options.debug:
            logger.info(f"Source decoded: {source.shape[1]}x{source.shape[0]}")

        warped = rectify(source, quad, options.rotate)
        height, width = warped.shape[:2]
        if options.debug:
            logger.info(f"Warp done: output {width}x{height}")

        data = None
        if options.return_bytes or output_path:
            data = images.encode_image(warped, options.format, options.jpeg_quality)

        path = None
        if output_path:
            path = images.output_path_for_format(output_path, options.format)
            images.write_image_file(path, data)
            if options.debug:
                logger.info(f"Crop written to {path}")

        return CropResult(
            image=warped,
            width=width,
            height=height,
            path=path,
            data=data if options.return_bytes else None,
        )
    except AppError:
        raise
    except (cv2.error, ValueError, TypeError, OSError) as e:
        raise CropError(f"Could not crop document: {e}") from e
    finally:
        # Release the decoded source eagerly.
        del source


class DocumentCropper:
    """Runs crop requests one at a time; concurrent requests are rejected."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def crop(self, request: CropRequest) -> CropResult:
        if not self._lock.acquire(blocking=False):
            raise CropInProgressError()
        try:
            return crop_document(request)
        finally:
            self._lock.release()
