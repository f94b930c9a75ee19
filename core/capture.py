"""
Camera/video frame sources.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import cv2

from core.errors import CaptureUnavailableError

logger = logging.getLogger(__name__)

Frame = tuple[Any, int, int]  # (pixel buffer, width, height)


class CaptureSource(Protocol):
    def next_frame(self) -> Frame | None:
        """Next preview frame, or None when the stream has ended."""
        ...

    def capture_still(self) -> Frame:
        """Capture a full-resolution still."""
        ...


class VideoCaptureSource:
    """CaptureSource backed by cv2.VideoCapture (camera index or video file)."""

    def __init__(self, source: int | str) -> None:
        self.source = source
        self._capture = cv2.VideoCapture(source)
        if not self._capture.isOpened():
            self._capture.release()
            raise CaptureUnavailableError(
                f"Could not open camera or video '{source}'. "
                "Check that the device is connected and camera access is allowed."
            )
        self._last_frame = None

    @property
    def fps(self) -> float:
        return float(self._capture.get(cv2.CAP_PROP_FPS) or 0.0)

    def next_frame(self) -> Frame | None:
        ok, frame = self._capture.read()
        if not ok or frame is None:
            return None
        self._last_frame = frame
        height, width = frame.shape[:2]
        return frame, width, height

    def capture_still(self) -> Frame:
        frame = self.next_frame()
        if frame is None:
            if self._last_frame is None:
                raise CaptureUnavailableError(f"'{self.source}' returned no image.")
            logger.debug("Stream ended, using last frame as still")
            height, width = self._last_frame.shape[:2]
            return self._last_frame, width, height
        return frame

    def release(self) -> None:
        self._capture.release()

    def __enter__(self) -> VideoCaptureSource:
        return self

    def __exit__(self, *exc) -> None:
        self.release()
