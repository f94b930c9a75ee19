"""
Tests for mapping quads between frame, preview, photo, display and edit spaces.
"""

import numpy as np
import pytest

from core import geometry, transforms
from core.quad_types import FitMode, PixelSpace, Rotation, SpaceKind


def space(kind, width, height):
    return PixelSpace(kind, width, height)


class TestFitParams:
    def test_contain_scenario(self):
        """A square frame contained in a square view scales without offset."""
        frame = space(SpaceKind.FRAME, 100, 100)
        preview = space(SpaceKind.PREVIEW, 200, 200)
        quad = [(10, 10), (90, 10), (90, 60), (10, 60)]

        mapped = transforms.map_quad(
            quad, frame, preview, FitMode.CONTAIN, frame_rotation=Rotation.CCW
        )

        np.testing.assert_allclose(mapped, [[20, 20], [180, 20], [180, 120], [20, 120]])

    def test_unit_square_contain(self):
        square = [(0, 0), (10, 0), (10, 10), (0, 10)]

        mapped = transforms.map_quad(
            square,
            space(SpaceKind.FRAME, 100, 100),
            space(SpaceKind.PREVIEW, 200, 200),
            FitMode.CONTAIN,
        )

        np.testing.assert_allclose(mapped, [[0, 0], [20, 0], [20, 20], [0, 20]])
        assert transforms.fit_params(100, 100, 200, 200, FitMode.CONTAIN) == (
            2.0,
            0.0,
            0.0,
        )

    def test_cover_and_contain_pick_different_scales(self):
        assert transforms.fit_params(400, 200, 200, 200, FitMode.CONTAIN) == (
            0.5,
            0.0,
            50.0,
        )
        assert transforms.fit_params(400, 200, 200, 200, FitMode.COVER) == (
            1.0,
            -100.0,
            0.0,
        )

    def test_rejects_empty_spaces(self):
        with pytest.raises(ValueError):
            transforms.fit_params(0, 100, 100, 100, FitMode.COVER)


class TestFramePreview:
    """Test the frame to preview mapping and its inverse."""

    @pytest.fixture
    def frame(self):
        return space(SpaceKind.FRAME, 640, 480)

    @pytest.fixture
    def portrait_preview(self):
        return space(SpaceKind.PREVIEW, 360, 640)

    @pytest.fixture
    def quad(self):
        return np.array([[100, 100], [300, 100], [300, 200], [100, 200]], dtype=float)

    def test_landscape_frame_is_rotated_into_portrait_preview(
        self, frame, portrait_preview, quad
    ):
        mapped = transforms.frame_to_view(
            quad, frame, portrait_preview, FitMode.COVER, Rotation.CCW
        )

        np.testing.assert_allclose(
            mapped, [[40, 340], [140, 340], [140, 540], [40, 540]]
        )

    @pytest.mark.parametrize("rotation", [Rotation.CW, Rotation.CCW, Rotation.NONE])
    @pytest.mark.parametrize("fit_mode", [FitMode.COVER, FitMode.CONTAIN])
    def test_round_trip_portrait(self, frame, portrait_preview, quad, rotation, fit_mode):
        forward = transforms.map_quad(
            quad, frame, portrait_preview, fit_mode, frame_rotation=rotation
        )
        back = transforms.map_quad(
            forward, portrait_preview, frame, fit_mode, frame_rotation=rotation
        )

        assert geometry.quads_close(back, quad)

    def test_round_trip_landscape_preview(self, frame, quad):
        preview = space(SpaceKind.PREVIEW, 1280, 720)

        forward = transforms.map_quad(quad, frame, preview, FitMode.COVER)
        back = transforms.map_quad(forward, preview, frame, FitMode.COVER)

        assert geometry.quads_close(back, quad)
        # No rotation between two landscape spaces: only uniform scaling.
        assert forward[1, 0] - forward[0, 0] == pytest.approx(200 * 2.0)


class TestPhotoDisplay:
    """Test the EXIF-aware photo to display mapping."""

    @pytest.fixture
    def photo(self):
        return space(SpaceKind.PHOTO, 400, 300)

    @pytest.fixture
    def quad(self):
        return np.array([[50, 60], [150, 60], [150, 100], [50, 100]], dtype=float)

    def test_swapped_display_rotates_points(self, photo, quad):
        display = space(SpaceKind.DISPLAY, 300, 400)

        mapped = transforms.image_to_display(quad, photo, display, Rotation.CW, 2.0)

        np.testing.assert_allclose(
            mapped, [[200, 50], [240, 50], [240, 150], [200, 150]]
        )

    def test_same_orientation_only_scales(self, photo, quad):
        display = space(SpaceKind.DISPLAY, 200, 150)

        mapped = transforms.image_to_display(quad, photo, display, Rotation.CW, 2.0)

        np.testing.assert_allclose(mapped, quad * 0.5)

    @pytest.mark.parametrize("rotation", [Rotation.CW, Rotation.CCW])
    @pytest.mark.parametrize("display_size", [(300, 400), (301, 399), (800, 600)])
    def test_round_trip(self, photo, quad, rotation, display_size):
        display = space(SpaceKind.DISPLAY, *display_size)

        forward = transforms.map_quad(quad, photo, display, exif_rotation=rotation)
        back = transforms.map_quad(forward, display, photo, exif_rotation=rotation)

        assert geometry.quads_close(back, quad)

    def test_dimensions_swapped(self):
        a = space(SpaceKind.PHOTO, 400, 300)
        assert transforms.dimensions_swapped(a, space(SpaceKind.DISPLAY, 301, 399))
        assert not transforms.dimensions_swapped(a, space(SpaceKind.DISPLAY, 296, 400))
        assert not transforms.dimensions_swapped(a, space(SpaceKind.DISPLAY, 400, 300))

    def test_near_square_is_never_swapped(self):
        a = space(SpaceKind.PHOTO, 100, 101)
        assert not transforms.dimensions_swapped(a, space(SpaceKind.DISPLAY, 101, 100))

    def test_vertical_flip_correction(self):
        mapped = np.array([[0, 80], [10, 80], [10, 20], [0, 20]], dtype=float)

        corrected = transforms.correct_vertical_flip(mapped, 0, 3, 100)

        np.testing.assert_allclose(corrected[:, 1], [20, 20, 80, 80])


class TestEditView:
    """Test the contain-fitted edit view."""

    @pytest.fixture
    def photo(self):
        return space(SpaceKind.PHOTO, 400, 300)

    @pytest.fixture
    def edit(self):
        return space(SpaceKind.EDIT, 300, 300)

    def test_content_box_letterboxes(self, photo, edit):
        box = transforms.content_box(photo, edit)

        assert box.scale == pytest.approx(0.75)
        assert (box.offset_x, box.offset_y) == pytest.approx((0.0, 37.5))
        assert (box.width, box.height) == pytest.approx((300.0, 225.0))

    def test_full_image_maps_to_content_box(self, photo, edit):
        full = geometry.rect_corners(0, 0, 400, 300)

        mapped = transforms.map_quad(full, photo, edit)

        np.testing.assert_allclose(
            mapped, [[0, 37.5], [300, 37.5], [300, 262.5], [0, 262.5]]
        )
        assert geometry.quads_close(transforms.map_quad(mapped, edit, photo), full)

    def test_move_corner_is_clamped_to_image(self, photo, edit):
        box = transforms.content_box(photo, edit)
        quad = np.array([[50, 80], [250, 80], [250, 200], [50, 200]], dtype=float)

        moved = transforms.move_corner(quad, 3, (-10.0, 500.0), box)

        np.testing.assert_allclose(moved[3], [0, 262.5])
        np.testing.assert_allclose(moved[:3], quad[:3])


class TestMapQuad:
    def test_identical_spaces_only_order(self):
        frame = space(SpaceKind.FRAME, 100, 100)
        quad = [(90, 60), (10, 10), (10, 60), (90, 10)]

        mapped = transforms.map_quad(quad, frame, frame)

        np.testing.assert_array_equal(mapped, geometry.order_quad(quad))

    def test_same_kind_scales_per_axis(self):
        quad = geometry.rect_corners(10, 10, 20, 20)

        mapped = transforms.map_quad(
            quad, space(SpaceKind.FRAME, 100, 100), space(SpaceKind.FRAME, 200, 100)
        )

        np.testing.assert_allclose(mapped, geometry.rect_corners(20, 10, 40, 20))

    def test_frame_to_photo_and_back(self):
        frame = space(SpaceKind.FRAME, 640, 480)
        photo = space(SpaceKind.PHOTO, 1280, 960)
        quad = geometry.rect_corners(100, 100, 200, 100)

        mapped = transforms.map_quad(quad, frame, photo)

        np.testing.assert_allclose(mapped, geometry.rect_corners(200, 200, 400, 200))
        assert geometry.quads_close(transforms.map_quad(mapped, photo, frame), quad)
