"""
Coordinate transforms between the pixel spaces a document quad passes through.

A quad found by the detector lives in sensor-frame pixels. To draw it, it is
mapped into the on-screen preview; on capture it is mapped into the pixels of
the captured photo, which may be shown rotated (EXIF orientation) and
letterboxed inside an edit view. All functions here are pure: the spaces
involved are passed explicitly and every result is re-ordered as
[top-left, top-right, bottom-right, bottom-left], since a rotation changes
which physical corner is on top.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from core import geometry
from core.quad_types import (
    FitMode,
    FloatArray,
    PixelSpace,
    QuadAny,
    QuadArray,
    Rotation,
    SpaceKind,
    quad_as_array,
)
from core.settings import app_settings

# Order in which spaces are reached by a quad; generic fits go "downstream".
_SPACE_ORDER = [
    SpaceKind.FRAME,
    SpaceKind.PREVIEW,
    SpaceKind.PHOTO,
    SpaceKind.DISPLAY,
    SpaceKind.EDIT,
]


def fit_params(
    src_width: float,
    src_height: float,
    dst_width: float,
    dst_height: float,
    fit_mode: FitMode,
) -> tuple[float, float, float]:
    """Uniform scale and centering offsets placing a source box in a destination."""
    if min(src_width, src_height, dst_width, dst_height) <= 0:
        raise ValueError(
            f"Cannot fit {src_width}x{src_height} into {dst_width}x{dst_height}"
        )
    sx = dst_width / src_width
    sy = dst_height / src_height
    scale = max(sx, sy) if fit_mode == FitMode.COVER else min(sx, sy)
    offset_x = (dst_width - src_width * scale) / 2.0
    offset_y = (dst_height - src_height * scale) / 2.0
    return scale, offset_x, offset_y


def _needs_frame_rotation(frame: PixelSpace, view: PixelSpace) -> bool:
    return frame.is_landscape and view.is_portrait


def frame_to_view(
    quad: QuadAny,
    frame: PixelSpace,
    view: PixelSpace,
    fit_mode: FitMode = FitMode.COVER,
    rotation: Rotation | None = None,
) -> QuadArray:
    """
    Map a quad from camera-frame pixels into preview-view pixels.

    Sensor frames are usually delivered landscape while the preview is shown
    portrait; in that case points are first rotated by `rotation` (defaults to
    the calibrated `frame_rotation` setting).
    """
    if rotation is None:
        rotation = Rotation(app_settings.frame_rotation)
    pts = quad_as_array(quad)
    src_width, src_height = frame.width, frame.height
    if _needs_frame_rotation(frame, view) and rotation != Rotation.NONE:
        pts = geometry.rotate_points(pts, src_width, src_height, rotation)
        if rotation.swaps_dimensions:
            src_width, src_height = src_height, src_width

    scale, offset_x, offset_y = fit_params(
        src_width, src_height, view.width, view.height, fit_mode
    )
    return geometry.order_quad(pts * scale + np.array([offset_x, offset_y]))


def view_to_frame(
    quad: QuadAny,
    frame: PixelSpace,
    view: PixelSpace,
    fit_mode: FitMode = FitMode.COVER,
    rotation: Rotation | None = None,
) -> QuadArray:
    """Inverse of `frame_to_view`."""
    if rotation is None:
        rotation = Rotation(app_settings.frame_rotation)
    pts = quad_as_array(quad)
    rotated = _needs_frame_rotation(frame, view) and rotation != Rotation.NONE
    src_width, src_height = frame.width, frame.height
    if rotated and rotation.swaps_dimensions:
        src_width, src_height = src_height, src_width

    scale, offset_x, offset_y = fit_params(
        src_width, src_height, view.width, view.height, fit_mode
    )
    pts = (pts - np.array([offset_x, offset_y])) / scale
    if rotated:
        pts = geometry.rotate_points(pts, src_width, src_height, rotation.inverse())
    return geometry.order_quad(pts)


def dimensions_swapped(a: PixelSpace, b: PixelSpace, tolerance: float = 2.0) -> bool:
    """
    True if `b` looks like `a` turned by 90 degrees.

    Near-square spaces match both ways and are never treated as swapped.
    """
    swapped = (
        abs(a.width - b.height) <= tolerance and abs(a.height - b.width) <= tolerance
    )
    same = abs(a.width - b.width) <= tolerance and abs(a.height - b.height) <= tolerance
    return swapped and not same


def correct_vertical_flip(
    mapped: FloatArray, top_index: int, bottom_index: int, height: float
) -> FloatArray:
    """
    Reflect all y coordinates if the mapped top corner ended up below the
    mapped bottom corner.
    """
    mapped = np.asarray(mapped, dtype=np.float64).copy()
    if mapped[top_index, 1] > mapped[bottom_index, 1]:
        mapped[:, 1] = height - mapped[:, 1]
    return mapped


def _corner_indices_after(rotation: Rotation) -> tuple[int, int]:
    # Index (in the source's TL, TR, BR, BL order) of the corners that end up
    # top-left and bottom-left after rotating clockwise by quarter turns.
    quarter_turns = rotation.degrees // 90
    return (0 - quarter_turns) % 4, (3 - quarter_turns) % 4


def image_to_display(
    quad: QuadAny,
    image: PixelSpace,
    display: PixelSpace,
    rotation: Rotation | None = None,
    tolerance: float | None = None,
) -> QuadArray:
    """
    Map a quad from raw photo pixels into the pixels of the rendered photo.

    When the rendered size is the raw size with width and height swapped, the
    photo was turned by its EXIF orientation and points are rotated by
    `rotation` (defaults to the `exif_rotation` setting). Otherwise the two
    spaces are related by plain per-axis scaling.
    """
    if rotation is None:
        rotation = Rotation(app_settings.exif_rotation)
    if tolerance is None:
        tolerance = app_settings.swap_tolerance_px

    pts = geometry.order_quad(quad)
    if dimensions_swapped(image, display, tolerance) and rotation.swaps_dimensions:
        mapped = geometry.rotate_points(pts, image.width, image.height, rotation)
        mapped = geometry.scale_points(
            mapped, display.width / image.height, display.height / image.width
        )
        top_index, bottom_index = _corner_indices_after(rotation)
    else:
        mapped = geometry.scale_points(
            pts, display.width / image.width, display.height / image.height
        )
        top_index, bottom_index = 0, 3

    mapped = correct_vertical_flip(mapped, top_index, bottom_index, display.height)
    return geometry.order_quad(mapped)


def display_to_image(
    quad: QuadAny,
    image: PixelSpace,
    display: PixelSpace,
    rotation: Rotation | None = None,
    tolerance: float | None = None,
) -> QuadArray:
    """Inverse of `image_to_display`."""
    if rotation is None:
        rotation = Rotation(app_settings.exif_rotation)
    if tolerance is None:
        tolerance = app_settings.swap_tolerance_px

    pts = geometry.order_quad(quad)
    if dimensions_swapped(image, display, tolerance) and rotation.swaps_dimensions:
        mapped = geometry.scale_points(
            pts, image.height / display.width, image.width / display.height
        )
        inverse = rotation.inverse()
        mapped = geometry.rotate_points(mapped, image.height, image.width, inverse)
        top_index, bottom_index = _corner_indices_after(inverse)
    else:
        mapped = geometry.scale_points(
            pts, image.width / display.width, image.height / display.height
        )
        top_index, bottom_index = 0, 3

    mapped = correct_vertical_flip(mapped, top_index, bottom_index, image.height)
    return geometry.order_quad(mapped)


@dataclass(frozen=True)
class ContentBox:
    """Where a contain-fitted image sits inside a view, in view pixels."""

    scale: float
    offset_x: float
    offset_y: float
    width: float
    height: float

    @property
    def offset(self) -> FloatArray:
        return np.array([self.offset_x, self.offset_y])


def content_box(image: PixelSpace, view: PixelSpace) -> ContentBox:
    scale, offset_x, offset_y = fit_params(
        image.width, image.height, view.width, view.height, FitMode.CONTAIN
    )
    return ContentBox(
        scale=scale,
        offset_x=offset_x,
        offset_y=offset_y,
        width=image.width * scale,
        height=image.height * scale,
    )


def image_to_view(quad: QuadAny, box: ContentBox) -> QuadArray:
    return geometry.order_quad(box.offset + quad_as_array(quad) * box.scale)


def view_to_image(quad: QuadAny, box: ContentBox) -> QuadArray:
    return geometry.order_quad((quad_as_array(quad) - box.offset) / box.scale)


def clamp_to_content(points: FloatArray, box: ContentBox) -> FloatArray:
    return geometry.clamp_points(
        points,
        box.offset_x,
        box.offset_y,
        box.offset_x + box.width,
        box.offset_y + box.height,
    )


def move_corner(
    quad: QuadAny, corner_index: int, position: tuple[float, float], box: ContentBox
) -> QuadArray:
    """Drag one corner of a view-space quad, keeping it inside the image."""
    pts = quad_as_array(quad).copy()
    pts[corner_index] = clamp_to_content(np.array([position], dtype=float), box)[0]
    return geometry.order_quad(pts)


def _fit_forward(
    quad: QuadAny, src: PixelSpace, dst: PixelSpace, fit_mode: FitMode
) -> QuadArray:
    scale, offset_x, offset_y = fit_params(
        src.width, src.height, dst.width, dst.height, fit_mode
    )
    return geometry.order_quad(
        quad_as_array(quad) * scale + np.array([offset_x, offset_y])
    )


def _fit_backward(
    quad: QuadAny, src: PixelSpace, dst: PixelSpace, fit_mode: FitMode
) -> QuadArray:
    scale, offset_x, offset_y = fit_params(
        src.width, src.height, dst.width, dst.height, fit_mode
    )
    return geometry.order_quad(
        (quad_as_array(quad) - np.array([offset_x, offset_y])) / scale
    )


def map_quad(
    quad: QuadAny,
    from_space: PixelSpace,
    to_space: PixelSpace,
    fit_mode: FitMode = FitMode.CONTAIN,
    frame_rotation: Rotation | None = None,
    exif_rotation: Rotation | None = None,
) -> QuadArray:
    """
    Map a quad between any two pixel spaces.

    Each pair of space kinds uses one transform in its natural direction and
    the exact inverse in the other, so mapping there and back returns the
    original quad.
    """
    src, dst = from_space.kind, to_space.kind

    if from_space == to_space:
        return geometry.order_quad(quad)

    if src == dst:
        return geometry.order_quad(
            geometry.scale_points(
                quad_as_array(quad),
                to_space.width / from_space.width,
                to_space.height / from_space.height,
            )
        )

    if (src, dst) == (SpaceKind.FRAME, SpaceKind.PREVIEW):
        return frame_to_view(quad, from_space, to_space, fit_mode, frame_rotation)
    if (src, dst) == (SpaceKind.PREVIEW, SpaceKind.FRAME):
        return view_to_frame(quad, to_space, from_space, fit_mode, frame_rotation)

    if (src, dst) == (SpaceKind.PHOTO, SpaceKind.DISPLAY):
        return image_to_display(quad, from_space, to_space, exif_rotation)
    if (src, dst) == (SpaceKind.DISPLAY, SpaceKind.PHOTO):
        return display_to_image(quad, to_space, from_space, exif_rotation)

    if dst == SpaceKind.EDIT and src in (SpaceKind.PHOTO, SpaceKind.DISPLAY):
        return image_to_view(quad, content_box(from_space, to_space))
    if src == SpaceKind.EDIT and dst in (SpaceKind.PHOTO, SpaceKind.DISPLAY):
        return view_to_image(quad, content_box(to_space, from_space))

    if _SPACE_ORDER.index(src) < _SPACE_ORDER.index(dst):
        return _fit_forward(quad, from_space, to_space, fit_mode)
    return _fit_backward(quad, to_space, from_space, fit_mode)
