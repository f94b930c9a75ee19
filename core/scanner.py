"""
Scanner facade used by the UI: live detection, quad mapping, capture and crop.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np

from core import transforms
from core.capture import CaptureSource
from core.detector import DetectorConfig, DocumentDetector, as_frame_array
from core.errors import CaptureUnavailableError
from core.extract import CropOptions, CropRequest, CropResult, DocumentCropper
from core.live import LiveDetectionChannel
from core.overlay_strategies import OverlayRenderer, configure_overlay_renderer
from core.quad_types import (
    DetectionResult,
    FitMode,
    PixelSpace,
    QuadAny,
    QuadArray,
    Rotation,
    SpaceKind,
)
from core.settings import AppSettings, app_settings
from core.stabilizer import TemporalStabilizer

logger = logging.getLogger(__name__)

StableQuadCallback = Callable[[QuadArray | None, PixelSpace | None], None]


@dataclass
class CapturedDocument:
    image: np.ndarray
    space: PixelSpace
    quad: QuadArray | None


class DocumentScanner:
    """Connects detector, stabilizer, transforms and rectifier for one session."""

    def __init__(
        self,
        settings: AppSettings | None = None,
        detector: DocumentDetector | None = None,
        stabilizer: TemporalStabilizer | None = None,
        overlay_renderer: OverlayRenderer | None = None,
        clock: Callable[[], float] = time.monotonic,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        self.settings = settings if settings else app_settings
        self.detector = (
            detector
            if detector
            else DocumentDetector(DetectorConfig.from_settings(self.settings))
        )
        self.stabilizer = (
            stabilizer if stabilizer else TemporalStabilizer.from_settings(self.settings)
        )
        self.overlay_renderer = (
            overlay_renderer
            if overlay_renderer
            else configure_overlay_renderer(self.settings)
        )
        self.channel = LiveDetectionChannel(
            self.detector,
            max_rate=self.settings.max_detections_per_second,
            clock=clock,
            executor=executor,
        )
        self.cropper = DocumentCropper()
        self._clock = clock
        self._detection_enabled = False
        self._listeners: list[StableQuadCallback] = []
        self._last_emitted: DetectionResult | None = None

    # -------------------------------------------------------------------------
    # Live detection
    # -------------------------------------------------------------------------

    @property
    def detection_enabled(self) -> bool:
        return self._detection_enabled

    @property
    def stable_result(self) -> DetectionResult | None:
        return self.stabilizer.current

    def set_detection_enabled(self, enabled: bool) -> None:
        self._detection_enabled = enabled
        self.channel.set_enabled(enabled)
        if not enabled:
            self.stabilizer.update(None, self._clock(), detection_enabled=False)
            self._emit_if_changed(None)

    def on_stable_quad_changed(self, callback: StableQuadCallback) -> Callable[[], None]:
        """Subscribe to stable quad changes. Returns an unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def submit_frame(
        self,
        buffer,
        width: int,
        height: int,
        timestamp: float | None = None,
        channels: int | None = None,
    ) -> bool:
        return self.channel.offer_frame(buffer, width, height, timestamp, channels)

    def poll(self) -> DetectionResult | None:
        """Apply finished detections to the stabilizer and notify listeners."""
        for message in self.channel.drain():
            stable = self.stabilizer.update(
                message.result, message.timestamp, self._detection_enabled
            )
            self._emit_if_changed(stable)
        return self.stabilizer.current

    def process_frame_sync(
        self,
        buffer,
        width: int,
        height: int,
        timestamp: float | None = None,
        channels: int | None = None,
    ) -> DetectionResult | None:
        """Detect and stabilize in the calling thread, without throttling."""
        if timestamp is None:
            timestamp = self._clock()
        result = None
        if self._detection_enabled:
            result = self.detector.detect(
                buffer, width, height, channels=channels, timestamp=timestamp
            )
        stable = self.stabilizer.update(result, timestamp, self._detection_enabled)
        self._emit_if_changed(stable)
        return stable

    def _emit_if_changed(self, stable: DetectionResult | None) -> None:
        last = self._last_emitted
        if stable is None and last is None:
            return
        if (
            stable is not None
            and last is not None
            and stable.space == last.space
            and np.array_equal(stable.quad, last.quad)
        ):
            return
        self._last_emitted = stable
        quad = None if stable is None else stable.quad.copy()
        space = None if stable is None else stable.space
        for listener in list(self._listeners):
            listener(quad, space)

    # -------------------------------------------------------------------------
    # Coordinates and overlay
    # -------------------------------------------------------------------------

    def map_quad(
        self,
        quad: QuadAny,
        from_space: PixelSpace,
        to_space: PixelSpace,
        fit_mode: FitMode = FitMode.CONTAIN,
    ) -> QuadArray:
        return transforms.map_quad(
            quad,
            from_space,
            to_space,
            fit_mode,
            frame_rotation=Rotation(self.settings.frame_rotation),
            exif_rotation=Rotation(self.settings.exif_rotation),
        )

    def stable_quad_in(
        self, space: PixelSpace, fit_mode: FitMode = FitMode.COVER
    ) -> QuadArray | None:
        stable = self.stabilizer.current
        if stable is None:
            return None
        return self.map_quad(stable.quad, stable.space, space, fit_mode)

    def render_overlay(
        self, image, space: PixelSpace | None = None, fit_mode: FitMode = FitMode.COVER
    ):
        """Draw the stable quad on `image`, mapped into `space` if given."""
        stable = self.stabilizer.current
        quad = None
        if stable is not None:
            quad = stable.quad if space is None else self.stable_quad_in(space, fit_mode)
        return self.overlay_renderer.render_overlay(image, quad)

    # -------------------------------------------------------------------------
    # Capture and crop
    # -------------------------------------------------------------------------

    def capture(self, source: CaptureSource) -> CapturedDocument:
        """
        Capture a still and express the current document quad in its pixels.

        Falls back to detecting on the still itself when no quad is stable.
        """
        buffer, width, height = source.capture_still()
        image = as_frame_array(buffer, width, height)
        if image is None:
            raise CaptureUnavailableError(
                f"Captured still does not match its reported size {width}x{height}."
            )
        photo = PixelSpace(SpaceKind.PHOTO, width, height)

        stable = self.stabilizer.current
        if stable is not None:
            quad = self.map_quad(stable.quad, stable.space, photo)
        else:
            result = self.detector.detect(
                image, width, height, space_kind=SpaceKind.PHOTO
            )
            quad = result.quad if result else None
        logger.info(f"Captured {width}x{height} still, document found: {quad is not None}")
        return CapturedDocument(image=image, space=photo, quad=quad)

    def request_crop(
        self, image, quad: QuadAny, options: CropOptions | None = None
    ) -> CropResult:
        if options is None:
            options = CropOptions.from_settings()
        return self.cropper.crop(CropRequest(source=image, quad=quad, options=options))

    def close(self) -> None:
        self.set_detection_enabled(False)
        self.channel.close()
