from __future__ import annotations

import numpy as np
from numpy import ndarray

from core.quad_types import (
    FloatArray,
    QuadAny,
    QuadArray,
    Rotation,
    TransformMatrix,
    quad_as_array,
)

# Suppress lint errors from uppercase variable names
# ruff: noqa N806, N803


def order_quad(quad: QuadAny) -> QuadArray:
    """
    Order four corner points as [top-left, top-right, bottom-right, bottom-left].

    The order is derived from the points themselves using coordinate sums and
    differences: top-left has the smallest x + y, bottom-right the largest,
    top-right the largest x - y and bottom-left the smallest x - y. This is
    stable for convex, roughly axis-aligned quads under moderate perspective
    skew but not for quads rotated by more than 45 degrees.
    """
    pts = quad_as_array(quad)
    point_sum = pts[:, 0] + pts[:, 1]
    point_diff = pts[:, 0] - pts[:, 1]
    return np.array(
        [
            pts[np.argmin(point_sum)],
            pts[np.argmax(point_diff)],
            pts[np.argmax(point_sum)],
            pts[np.argmin(point_diff)],
        ],
        dtype=np.float64,
    )


def distance(p1: FloatArray, p2: FloatArray) -> float:
    return float(np.linalg.norm(np.asarray(p2, dtype=float) - np.asarray(p1, dtype=float)))


def dimension_bounds(rect: QuadAny) -> tuple[float, float]:
    """Width and height of the upright rectangle a quad should rectify into."""
    rect = quad_as_array(rect)
    width1 = distance(rect[0], rect[1])
    width2 = distance(rect[3], rect[2])
    height1 = distance(rect[0], rect[3])
    height2 = distance(rect[1], rect[2])

    return max(width1, width2), max(height1, height2)


def lerp_points(prev: FloatArray, new: FloatArray, alpha: float) -> FloatArray:
    """Linear interpolation from `prev` towards `new`, pointwise."""
    prev = np.asarray(prev, dtype=np.float64)
    new = np.asarray(new, dtype=np.float64)
    return prev + alpha * (new - prev)


def scale_points(
    points: FloatArray, scale_x: float, scale_y: float | None = None
) -> FloatArray:
    if scale_y is None:
        scale_y = scale_x
    return np.asarray(points, dtype=np.float64) * np.array([scale_x, scale_y])


def clamp_points(
    points: FloatArray,
    x_min: float,
    y_min: float,
    x_max: float,
    y_max: float,
) -> FloatArray:
    points = np.asarray(points, dtype=np.float64)
    return np.stack(
        [
            np.clip(points[:, 0], x_min, x_max),
            np.clip(points[:, 1], y_min, y_max),
        ],
        axis=1,
    )


def rect_corners(x: float, y: float, w: float, h: float) -> QuadArray:
    """Corners of an axis-aligned rectangle, in TL, TR, BR, BL order."""
    return np.array(
        [(x, y), (x + w, y), (x + w, y + h), (x, y + h)], dtype=np.float64
    )


def rotate_points(
    points: FloatArray, width: float, height: float, rotation: Rotation
) -> FloatArray:
    """
    Rotate points that live in a `width` x `height` box by a right angle.

    The result lives in the rotated box, which is `height` x `width` for
    90 degree rotations. Image coordinates are used (y grows downwards), so
    a clockwise rotation maps (x, y) to (height - y, x).
    """
    points = np.asarray(points, dtype=np.float64)
    x, y = points[:, 0], points[:, 1]
    if rotation == Rotation.NONE:
        return points.copy()
    if rotation == Rotation.CW:
        return np.stack([height - y, x], axis=1)
    if rotation == Rotation.CCW:
        return np.stack([y, width - x], axis=1)
    if rotation == Rotation.UPSIDE_DOWN:
        return np.stack([width - x, height - y], axis=1)
    raise ValueError(f"Invalid rotation! {rotation}")


def apply_transform(H: TransformMatrix, points: FloatArray) -> FloatArray:
    """
    Apply homography transformation to a set of points.

    Args:
        H: 3x3 homography matrix
        points: List of (x, y) coordinates or numpy array of shape (N, 2)

    Returns:
        Transformed points as numpy array of shape (N, 2)
    """
    points = np.array(points, dtype=np.float64)
    if points.ndim == 1:
        points = points.reshape(1, -1)

    # Convert to homogeneous coordinates
    ones = np.ones((points.shape[0], 1))
    homogeneous_points = np.hstack([points, ones])

    transformed_homogeneous = (H @ homogeneous_points.T).T

    # Convert back to Cartesian coordinates
    return transformed_homogeneous[:, :2] / transformed_homogeneous[:, 2:3]


def get_corner_deviations(rect1: QuadAny, rect2: QuadAny) -> list[float]:
    """Distance between corresponding corners after ordering both quads."""
    rect1 = order_quad(rect1)
    rect2 = order_quad(rect2)
    return [
        distance(corner1, corner2) for corner1, corner2 in zip(rect1, rect2)
    ]


def quads_close(rect1: QuadAny, rect2: QuadAny, atol: float = 1e-3) -> bool:
    return max(get_corner_deviations(rect1, rect2)) <= atol


def polygon_area(points: ndarray) -> float:
    """Shoelace area of a polygon given as an (N, 2) array."""
    points = np.asarray(points, dtype=np.float64)
    x, y = points[:, 0], points[:, 1]
    return float(0.5 * abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))))
