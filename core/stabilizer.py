"""
Temporal smoothing and hysteresis for per-frame document detections.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from core import geometry
from core.quad_types import DetectionResult
from core.settings import AppSettings, app_settings

logger = logging.getLogger(__name__)


class StabilizerState(Enum):
    EMPTY = "empty"  # nothing to show
    HOLDING = "holding"  # detection lost, last good quad still shown
    CONFIRMED = "confirmed"  # last update carried a detection


@dataclass
class StableQuadState:
    last_good_result: DetectionResult | None = None
    last_good_timestamp: float | None = None
    current_stable_result: DetectionResult | None = None


class TemporalStabilizer:
    """
    Turns a stream of per-frame detections (possibly None) into a stable quad.

    Detections in the same frame space are blended corner by corner towards
    the new measurement with factor `alpha`. A missing detection keeps the
    last good quad for up to `hold_window` seconds before clearing, so one or
    two failed frames do not make the overlay flicker.

    The stabilizer owns its state; it is only changed by `update` and `reset`.
    """

    def __init__(self, alpha: float = 0.35, hold_window: float = 0.25) -> None:
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"Smoothing factor must be in (0, 1], got {alpha}")
        self.alpha = alpha
        self.hold_window = hold_window
        self._state = StableQuadState()
        self._phase = StabilizerState.EMPTY

    @classmethod
    def from_settings(cls, settings: AppSettings | None = None) -> TemporalStabilizer:
        settings = settings if settings else app_settings
        return cls(
            alpha=settings.smoothing_alpha,
            hold_window=settings.hold_window_ms / 1000.0,
        )

    @property
    def state(self) -> StabilizerState:
        return self._phase

    @property
    def snapshot(self) -> StableQuadState:
        return StableQuadState(
            last_good_result=self._state.last_good_result,
            last_good_timestamp=self._state.last_good_timestamp,
            current_stable_result=self._state.current_stable_result,
        )

    @property
    def current(self) -> DetectionResult | None:
        return self._state.current_stable_result

    @property
    def is_document_present(self) -> bool:
        return self._state.current_stable_result is not None

    def reset(self) -> None:
        self._state = StableQuadState()
        self._phase = StabilizerState.EMPTY

    def update(
        self,
        result: DetectionResult | None,
        now: float,
        detection_enabled: bool = True,
    ) -> DetectionResult | None:
        """
        Feed one detection (or None) observed at time `now`, in seconds.

        Returns the stable result to present, or None.
        """
        if not detection_enabled:
            if self._phase != StabilizerState.EMPTY:
                logger.debug("Detection disabled, clearing stable quad")
            self.reset()
            return None

        if result is not None:
            return self._accept(result, now)

        last_time = self._state.last_good_timestamp
        if (
            self._state.last_good_result is not None
            and last_time is not None
            and now - last_time < self.hold_window
        ):
            self._phase = StabilizerState.HOLDING
            self._state.current_stable_result = self._state.last_good_result
            return self._state.current_stable_result

        if self._phase != StabilizerState.EMPTY:
            logger.debug("Hold window elapsed, clearing stable quad")
        self._state.current_stable_result = None
        self._phase = StabilizerState.EMPTY
        return None

    def _accept(self, result: DetectionResult, now: float) -> DetectionResult:
        # After expiry there is nothing to blend with; adopt the new quad.
        previous = self._state.current_stable_result

        if previous is not None and previous.space == result.space:
            quad = geometry.lerp_points(previous.quad, result.quad, self.alpha)
            stable = DetectionResult(
                quad=geometry.order_quad(quad),
                space=result.space,
                timestamp=result.timestamp,
            )
        else:
            if previous is not None:
                logger.debug(
                    f"Frame space changed from {previous.space} to {result.space}"
                )
            stable = DetectionResult(
                quad=geometry.order_quad(result.quad),
                space=result.space,
                timestamp=result.timestamp,
            )

        self._state.last_good_result = stable
        self._state.last_good_timestamp = now
        self._state.current_stable_result = stable
        self._phase = StabilizerState.CONFIRMED
        return stable
