"""
Candidate document detection on a single frame.

The detector turns one pixel buffer into at most one best-guess document quad,
expressed in the pixel space of that buffer. It is cheap enough to run on a
throttled camera stream and never raises on bad frames: any failure inside the
pipeline is treated as "no candidate this frame".
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import cv2
import numpy as np

from core import geometry
from core.quad_types import DetectionResult, PixelSpace, SpaceKind, UInt8Array
from core.settings import AppSettings, app_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectorConfig:
    downscale_factor: float = 0.25
    morph_kernel_size: int = 3
    blur_kernel_size: int = 5
    canny_low: int = 60
    canny_high: int = 140
    min_area_ratio: float = 0.08
    min_aspect_ratio: float = 1.2
    max_aspect_ratio: float = 2.3
    contour_area_weight: float = 0.7
    rect_area_weight: float = 0.3

    @classmethod
    def from_settings(cls, settings: AppSettings) -> DetectorConfig:
        return cls(
            downscale_factor=settings.downscale_factor,
            canny_low=settings.canny_low,
            canny_high=settings.canny_high,
            min_area_ratio=settings.min_area_ratio,
            min_aspect_ratio=settings.min_aspect_ratio,
            max_aspect_ratio=settings.max_aspect_ratio,
            contour_area_weight=settings.contour_area_weight,
            rect_area_weight=settings.rect_area_weight,
        )


@dataclass(frozen=True)
class Candidate:
    """A contour that survived filtering, with its bounding rect (x, y, w, h)."""

    rect: tuple[int, int, int, int]
    contour_area: float
    rect_area: float
    score: float


def as_frame_array(
    buffer, width: int, height: int, channels: int | None = None
) -> UInt8Array | None:
    """
    Interpret a pixel buffer as an (H, W) or (H, W, C) uint8 array.

    Accepts numpy arrays of the right shape or flat byte buffers (bytes,
    bytearray, memoryview, 1-D arrays). A flat buffer shorter than
    `width * height * channels` yields None.
    """
    if isinstance(buffer, np.ndarray) and buffer.ndim in (2, 3):
        if buffer.shape[0] != height or buffer.shape[1] != width:
            logger.debug(
                f"Frame shape {buffer.shape[:2]} does not match {height}x{width}"
            )
            return None
        return np.ascontiguousarray(buffer, dtype=np.uint8)

    if width <= 0 or height <= 0:
        return None
    if isinstance(buffer, np.ndarray):
        flat = buffer.reshape(-1).astype(np.uint8, copy=False)
    else:
        flat = np.frombuffer(buffer, dtype=np.uint8)
    if channels is None:
        # Guess from the buffer size: BGRA, BGR or single-channel.
        channels = max(1, min(4, flat.size // (width * height)))
        if channels == 2:
            channels = 1
    expected = width * height * channels
    if flat.size < expected:
        logger.debug(f"Frame buffer has {flat.size} bytes, expected {expected}")
        return None
    frame = flat[:expected]
    if not frame.flags.writeable:
        frame = frame.copy()
    if channels == 1:
        return frame.reshape(height, width)
    return frame.reshape(height, width, channels)


def to_grayscale(image: UInt8Array) -> UInt8Array:
    if image.ndim == 2:
        return image
    if image.shape[2] == 1:
        return image[:, :, 0]
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


class DocumentDetector:
    """Contour-based detector for a single, roughly rectangular document."""

    def __init__(self, config: DetectorConfig | None = None) -> None:
        self.config = config if config else DetectorConfig.from_settings(app_settings)
        k = self.config.morph_kernel_size
        self._kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (k, k))

    def edge_map(self, small: UInt8Array) -> UInt8Array:
        """Grayscale, equalize, denoise and run Canny on a downscaled frame."""
        gray = to_grayscale(small)
        gray = cv2.equalizeHist(gray)

        # Opening removes speckles, closing fills small gaps in large edges.
        gray = cv2.morphologyEx(gray, cv2.MORPH_OPEN, self._kernel)
        gray = cv2.morphologyEx(gray, cv2.MORPH_CLOSE, self._kernel)

        b = self.config.blur_kernel_size
        blurred = cv2.GaussianBlur(gray, (b, b), 0)
        return cv2.Canny(blurred, self.config.canny_low, self.config.canny_high)

    def select_candidate(
        self, contours: Sequence[np.ndarray], frame_area: float
    ) -> Candidate | None:
        """Pick the best document-like contour, or None if all are rejected."""
        cfg = self.config
        min_rect_area = frame_area * cfg.min_area_ratio
        best: Candidate | None = None

        for contour in contours:
            x, y, w, h = cv2.boundingRect(contour)
            rect_area = float(w * h)
            if rect_area < min_rect_area:
                continue

            short_side = min(w, h)
            if short_side <= 0:
                continue
            aspect = max(w, h) / short_side
            if aspect < cfg.min_aspect_ratio or aspect > cfg.max_aspect_ratio:
                continue

            contour_area = float(cv2.contourArea(contour))
            score = (
                cfg.contour_area_weight * contour_area
                + cfg.rect_area_weight * rect_area
            )
            if best is None or score > best.score:
                best = Candidate(
                    rect=(int(x), int(y), int(w), int(h)),
                    contour_area=contour_area,
                    rect_area=rect_area,
                    score=score,
                )
        return best

    def detect_in_edge_map(self, edges: UInt8Array) -> Candidate | None:
        contours, _ = cv2.findContours(edges, cv2.RETR_LIST, cv2.CHAIN_APPROX_SIMPLE)
        if not contours:
            return None
        height, width = edges.shape[:2]
        return self.select_candidate(contours, float(width * height))

    def detect(
        self,
        buffer,
        width: int,
        height: int,
        channels: int | None = None,
        timestamp: float = 0.0,
        space_kind: SpaceKind = SpaceKind.FRAME,
    ) -> DetectionResult | None:
        """
        Detect the document in one frame.

        Returns a DetectionResult with the quad in the frame's own pixel space,
        or None when no candidate survives or any stage fails.
        """
        frame = as_frame_array(buffer, width, height, channels)
        if frame is None:
            return None

        try:
            factor = self.config.downscale_factor
            scaled_width = max(1, int(round(width * factor)))
            scaled_height = max(1, int(round(height * factor)))
            small = cv2.resize(
                frame, (scaled_width, scaled_height), interpolation=cv2.INTER_AREA
            )
            ratio_x = width / scaled_width
            ratio_y = height / scaled_height

            candidate = self.detect_in_edge_map(self.edge_map(small))
        except Exception as e:
            # Bad frames are expected on a live stream; the next one retries.
            logger.debug(f"Detection failed for {width}x{height} frame: {e}")
            return None

        if candidate is None:
            return None

        quad = geometry.rect_corners(*candidate.rect)
        quad = geometry.scale_points(quad, ratio_x, ratio_y)
        return DetectionResult(
            quad=geometry.order_quad(quad),
            space=PixelSpace(space_kind, width, height),
            timestamp=timestamp,
        )

    def detect_image(
        self, image: UInt8Array, timestamp: float = 0.0, space_kind=SpaceKind.FRAME
    ) -> DetectionResult | None:
        height, width = image.shape[:2]
        return self.detect(
            image, width, height, timestamp=timestamp, space_kind=space_kind
        )
