"""
Core type definitions for the document scanner.

This module defines semantic type aliases and small value types shared by the
detector, stabilizer, coordinate transforms and rectifier.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

import cv2
import numpy as np
import numpy.typing as npt
from PyQt6.QtCore import QPointF

from core.errors import InvalidQuadError

# =============================================================================
# Array Types with Shape Constraints
# =============================================================================

FloatArray = npt.NDArray[np.floating[Any]]
UInt8Array = npt.NDArray[np.uint8]

QuadArray = npt.NDArray[np.float64]  # Shape: (4, 2) - TL, TR, BR, BL
TransformMatrix = npt.NDArray[np.float64]  # Shape: (3, 3) - perspective transform
BGRImage = npt.NDArray[np.uint8]  # Shape: (H, W, 3) - BGR color image

# =============================================================================
# Pixel spaces
# =============================================================================


class SpaceKind(Enum):
    """Provenance of a pixel coordinate system."""

    FRAME = "frame"  # raw capture-stream buffer
    PREVIEW = "preview"  # on-screen camera preview
    PHOTO = "photo"  # captured still, raw file pixels
    DISPLAY = "display"  # still as rendered after EXIF orientation
    EDIT = "edit"  # edit view showing the still letterboxed


@dataclass(frozen=True)
class PixelSpace:
    kind: SpaceKind
    width: float
    height: float

    @property
    def is_landscape(self) -> bool:
        return self.width > self.height

    @property
    def is_portrait(self) -> bool:
        return self.height > self.width


class FitMode(Enum):
    """Letterboxing policy for mapping a source into a differently shaped view."""

    COVER = "cover"
    CONTAIN = "contain"


# =============================================================================
# Rotations
# =============================================================================


class Rotation(Enum):
    """Fixed right-angle rotation applied to an image or to coordinates."""

    NONE = "none"
    CW = "cw"  # 90 degrees clockwise
    CCW = "ccw"  # 90 degrees counterclockwise
    UPSIDE_DOWN = "180"

    @property
    def degrees(self) -> int:
        """Clockwise rotation in degrees."""
        return {
            Rotation.NONE: 0,
            Rotation.CW: 90,
            Rotation.UPSIDE_DOWN: 180,
            Rotation.CCW: 270,
        }[self]

    @property
    def swaps_dimensions(self) -> bool:
        return self in (Rotation.CW, Rotation.CCW)

    @property
    def cv2_code(self) -> int | None:
        if self == Rotation.NONE:
            return None
        return {
            Rotation.CW: cv2.ROTATE_90_CLOCKWISE,
            Rotation.UPSIDE_DOWN: cv2.ROTATE_180,
            Rotation.CCW: cv2.ROTATE_90_COUNTERCLOCKWISE,
        }[self]

    def inverse(self) -> Rotation:
        return {
            Rotation.NONE: Rotation.NONE,
            Rotation.CW: Rotation.CCW,
            Rotation.CCW: Rotation.CW,
            Rotation.UPSIDE_DOWN: Rotation.UPSIDE_DOWN,
        }[self]

    @classmethod
    def from_exif(cls, orientation: int | None) -> Rotation:
        """Rotation that turns raw pixels into the upright display image.

        Mirrored EXIF orientations (2, 4, 5, 7) are mapped to their
        non-mirrored rotation.
        """
        return {
            3: cls.UPSIDE_DOWN,
            4: cls.UPSIDE_DOWN,
            5: cls.CW,
            6: cls.CW,
            7: cls.CCW,
            8: cls.CCW,
        }.get(orientation or 1, cls.NONE)


# =============================================================================
# Detection results
# =============================================================================


@dataclass(frozen=True)
class DetectionResult:
    """A detected document quad together with the space it was found in."""

    quad: QuadArray
    space: PixelSpace
    timestamp: float = 0.0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DetectionResult):
            return NotImplemented
        return (
            self.space == other.space
            and self.timestamp == other.timestamp
            and bool(np.array_equal(self.quad, other.quad))
        )

    def __hash__(self) -> int:
        corners = tuple((float(c[0]), float(c[1])) for c in self.quad)
        return hash((corners, self.space, self.timestamp))


# =============================================================================
# Quadrilaterals
# =============================================================================

QuadFloatPoints = Sequence[tuple[float, float]]
QuadDictPoints = Sequence[Mapping[str, float]]
QuadQPointF = list[QPointF]

QuadAny = Union[QuadFloatPoints, QuadDictPoints, QuadQPointF, QuadArray]


def quad_as_array(corner_points: QuadAny) -> QuadArray:
    """Convert any supported quad representation into a (4, 2) float array.

    Raises InvalidQuadError for missing points, a wrong point count, or
    coordinates that are not finite numbers.
    """
    if corner_points is None:
        raise InvalidQuadError("Quad is missing.")
    try:
        # Handle arrays and lists-of-tuple-coordinates
        result = np.asarray(corner_points, dtype=float)
    except (TypeError, ValueError):
        result = None

    if result is None or result.ndim != 2:
        try:
            points = list(corner_points)
            if points and isinstance(points[0], QPointF):
                result = np.array([(p.x(), p.y()) for p in points], dtype=float)
            else:
                result = np.array([(p["x"], p["y"]) for p in points], dtype=float)
        except (TypeError, KeyError, ValueError):
            raise InvalidQuadError(
                f"Object {corner_points!r} not interpretable as a quad."
            ) from None

    if result.shape != (4, 2):
        raise InvalidQuadError(
            f"Expected 4 points with 2 coordinates each, got shape {result.shape}."
        )
    if not np.all(np.isfinite(result)):
        raise InvalidQuadError("Quad coordinates must be finite numbers.")
    return result


def quad_as_list_of_qpointfs(corner_points: QuadAny) -> QuadQPointF:
    return [QPointF(float(x), float(y)) for x, y in quad_as_array(corner_points)]
