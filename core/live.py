"""
Bounded hand-off of live detections from a worker thread to the UI thread.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable
from concurrent import futures
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np

from core.detector import DocumentDetector
from core.quad_types import DetectionResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectionMessage:
    generation: int
    timestamp: float
    result: DetectionResult | None


class LiveDetectionChannel:
    """
    Runs the detector on a worker thread at a capped rate.

    The producer side (`offer_frame`) drops frames instead of queueing them:
    a frame is rejected while detection is disabled, while another frame is
    still being analyzed, or when its timestamp is less than `1 / max_rate`
    seconds after the last accepted one. The consumer side (`drain`) returns
    finished detections in timestamp order and silently drops results that
    are older than one already delivered or that predate the last
    enable/disable.
    """

    def __init__(
        self,
        detector: DocumentDetector,
        max_rate: float = 8.0,
        clock: Callable[[], float] = time.monotonic,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        self._detector = detector
        self._min_interval = 1.0 / max_rate if max_rate > 0 else 0.0
        self._clock = clock
        self._executor = executor if executor else ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="docscan-detect"
        )
        self._results: queue.Queue[DetectionMessage] = queue.Queue()

        # Guards the fields below. Never held while a frame is analyzed.
        self._lock = threading.Lock()
        self._enabled = False
        self._generation = 0
        self._in_flight: Future | None = None
        self._last_accepted: float | None = None
        self._last_delivered: float | None = None

        self.accepted_frames = 0
        self.dropped_frames = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def busy(self) -> bool:
        future = self._in_flight
        return future is not None and not future.done()

    def set_enabled(self, enabled: bool) -> None:
        with self._lock:
            if enabled == self._enabled:
                return
            self._enabled = enabled
            # Results from before the toggle are stale.
            self._generation += 1
            self._last_accepted = None
            self._last_delivered = None
        if not enabled:
            self._clear_results()
        logger.debug(f"Live detection {'enabled' if enabled else 'disabled'}")

    def offer_frame(
        self,
        buffer,
        width: int,
        height: int,
        timestamp: float | None = None,
        channels: int | None = None,
    ) -> bool:
        """Submit a frame for detection. Returns False if the frame was dropped."""
        frame_time = self._clock() if timestamp is None else timestamp

        with self._lock:
            if (
                not self._enabled
                or (self._in_flight is not None and not self._in_flight.done())
                or (
                    self._last_accepted is not None
                    and frame_time - self._last_accepted < self._min_interval
                )
            ):
                self.dropped_frames += 1
                return False

            self._last_accepted = frame_time
            self.accepted_frames += 1
            # The caller may reuse its buffer once we return.
            frame = buffer.copy() if isinstance(buffer, np.ndarray) else bytes(buffer)
            self._in_flight = self._executor.submit(
                self._analyze,
                frame,
                width,
                height,
                channels,
                frame_time,
                self._generation,
            )
        return True

    def _analyze(
        self,
        frame,
        width: int,
        height: int,
        channels: int | None,
        timestamp: float,
        generation: int,
    ) -> None:
        result = self._detector.detect(
            frame, width, height, channels=channels, timestamp=timestamp
        )
        with self._lock:
            current = generation == self._generation
        if current:
            self._results.put(DetectionMessage(generation, timestamp, result))

    def drain(self) -> list[DetectionMessage]:
        """Collect finished detections, oldest first."""
        pending = []
        while True:
            try:
                pending.append(self._results.get_nowait())
            except queue.Empty:
                break

        with self._lock:
            generation = self._generation
            last_delivered = self._last_delivered

        delivered = []
        for message in sorted(pending, key=lambda m: m.timestamp):
            if message.generation != generation:
                continue
            if last_delivered is not None and message.timestamp <= last_delivered:
                logger.debug(f"Dropping superseded detection at {message.timestamp}")
                continue
            last_delivered = message.timestamp
            delivered.append(message)

        with self._lock:
            if generation == self._generation:
                self._last_delivered = last_delivered
        return delivered

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        """Block until the in-flight detection (if any) has finished."""
        future = self._in_flight
        if future is None:
            return True
        done, _ = futures.wait([future], timeout=timeout)
        return bool(done)

    def _clear_results(self) -> None:
        while True:
            try:
                self._results.get_nowait()
            except queue.Empty:
                return

    def close(self) -> None:
        self.set_enabled(False)
        self._executor.shutdown(wait=True)
