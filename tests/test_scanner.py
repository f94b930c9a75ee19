"""
Tests for the scanner facade: callbacks, live polling, capture and crop.
"""

import numpy as np
import pytest

from core import transforms
from core.errors import CaptureUnavailableError
from core.extract import CropOptions
from core.quad_types import FitMode, PixelSpace, Rotation, SpaceKind
from core.scanner import DocumentScanner
from core.settings import AppSettings


class StillSource:
    """CaptureSource returning fixed frames."""

    def __init__(self, still):
        self.still = still

    def next_frame(self):
        height, width = self.still.shape[:2]
        return self.still, width, height

    def capture_still(self):
        return self.next_frame()


@pytest.fixture
def settings():
    return AppSettings()


@pytest.fixture
def scanner(settings):
    scanner = DocumentScanner(settings)
    yield scanner
    scanner.close()


@pytest.fixture
def blank_frame():
    return np.full((600, 800, 3), 20, dtype=np.uint8)


class TestStableQuadCallbacks:
    @pytest.fixture
    def changes(self, scanner):
        received = []
        scanner.on_stable_quad_changed(lambda quad, space: received.append((quad, space)))
        return received

    def test_detection_emits_quad(self, scanner, changes, document_frame):
        scanner.set_detection_enabled(True)

        scanner.process_frame_sync(document_frame, 800, 600, timestamp=0.0)

        assert len(changes) == 1
        quad, space = changes[0]
        assert quad.shape == (4, 2)
        assert space == PixelSpace(SpaceKind.FRAME, 800, 600)

    def test_unchanged_quad_is_not_emitted_again(
        self, scanner, changes, document_frame, blank_frame
    ):
        scanner.set_detection_enabled(True)

        scanner.process_frame_sync(document_frame, 800, 600, timestamp=0.0)
        scanner.process_frame_sync(document_frame, 800, 600, timestamp=0.1)
        # Missing detection inside the hold window keeps the quad.
        scanner.process_frame_sync(blank_frame, 800, 600, timestamp=0.2)

        assert len(changes) == 1

    def test_lost_document_emits_none(self, scanner, changes, document_frame, blank_frame):
        scanner.set_detection_enabled(True)

        scanner.process_frame_sync(document_frame, 800, 600, timestamp=0.0)
        scanner.process_frame_sync(blank_frame, 800, 600, timestamp=1.0)

        assert len(changes) == 2
        assert changes[1] == (None, None)

    def test_disabling_clears_quad(self, scanner, changes, document_frame):
        scanner.set_detection_enabled(True)
        scanner.process_frame_sync(document_frame, 800, 600, timestamp=0.0)

        scanner.set_detection_enabled(False)

        assert changes[-1] == (None, None)
        assert scanner.stable_result is None

    def test_frames_ignored_while_disabled(self, scanner, changes, document_frame):
        assert scanner.process_frame_sync(document_frame, 800, 600, timestamp=0.0) is None
        assert not scanner.submit_frame(document_frame, 800, 600, timestamp=0.0)
        assert changes == []

    def test_unsubscribe(self, scanner, document_frame):
        received = []
        unsubscribe = scanner.on_stable_quad_changed(lambda q, s: received.append(q))
        unsubscribe()
        scanner.set_detection_enabled(True)

        scanner.process_frame_sync(document_frame, 800, 600, timestamp=0.0)

        assert received == []

    def test_live_frames_reach_listeners_after_poll(
        self, scanner, changes, document_frame
    ):
        scanner.set_detection_enabled(True)

        assert scanner.submit_frame(document_frame, 800, 600, timestamp=0.0)
        scanner.channel.wait_until_idle(timeout=5)
        stable = scanner.poll()

        assert stable is not None
        assert len(changes) == 1
        np.testing.assert_allclose(stable.quad, changes[0][0])


class TestMappingAndOverlay:
    def test_map_quad_uses_configured_rotation(self):
        scanner = DocumentScanner(AppSettings(frame_rotation="cw"))
        try:
            frame = PixelSpace(SpaceKind.FRAME, 640, 480)
            preview = PixelSpace(SpaceKind.PREVIEW, 480, 640)
            quad = np.array([[100, 100], [300, 100], [300, 200], [100, 200]], dtype=float)

            mapped = scanner.map_quad(quad, frame, preview, FitMode.COVER)

            expected = transforms.frame_to_view(
                quad, frame, preview, FitMode.COVER, Rotation.CW
            )
            np.testing.assert_allclose(mapped, expected)
        finally:
            scanner.close()

    def test_overlay_without_document_is_unchanged(self, scanner, blank_frame):
        rendered = scanner.render_overlay(blank_frame)

        np.testing.assert_array_equal(rendered, blank_frame)
        assert rendered is not blank_frame

    def test_overlay_draws_stable_quad(self, scanner, document_frame):
        scanner.set_detection_enabled(True)
        scanner.process_frame_sync(document_frame, 800, 600, timestamp=0.0)

        preview = PixelSpace(SpaceKind.PREVIEW, 400, 300)
        canvas = np.zeros((300, 400, 3), dtype=np.uint8)
        rendered = scanner.render_overlay(canvas, preview)

        assert rendered.any()
        assert scanner.stable_quad_in(preview) is not None


class TestCaptureAndCrop:
    def test_capture_maps_stable_quad_into_photo(self, scanner, document_frame):
        scanner.set_detection_enabled(True)
        stable = scanner.process_frame_sync(document_frame, 800, 600, timestamp=0.0)
        still = np.zeros((1200, 1600, 3), dtype=np.uint8)

        captured = scanner.capture(StillSource(still))

        assert captured.space == PixelSpace(SpaceKind.PHOTO, 1600, 1200)
        np.testing.assert_allclose(captured.quad, stable.quad * 2)

    def test_capture_detects_on_still_without_stable_quad(self, scanner, document_frame):
        captured = scanner.capture(StillSource(document_frame))

        assert captured.quad is not None
        np.testing.assert_allclose(
            captured.quad,
            [[160, 150], [640, 150], [640, 450], [160, 450]],
            atol=12,
        )

    def test_capture_without_document(self, scanner, blank_frame):
        assert scanner.capture(StillSource(blank_frame)).quad is None

    def test_capture_with_bad_buffer(self, scanner):
        class BrokenSource:
            def capture_still(self):
                return b"123", 100, 100

        with pytest.raises(CaptureUnavailableError):
            scanner.capture(BrokenSource())

    def test_request_crop(self, scanner, document_frame):
        captured = scanner.capture(StillSource(document_frame))

        result = scanner.request_crop(
            captured.image, captured.quad, CropOptions(return_bytes=True)
        )

        assert result.data is not None
        assert result.width > result.height
        # The crop lies entirely inside the bright document.
        assert result.image[10:-10, 10:-10].mean() > 200
