"""
Tests for the quad overlay renderers.
"""

import numpy as np
import pytest
from PyQt6.QtGui import QColor, QImage

from core.errors import AppError
from core.overlay_strategies import (
    OVERLAY_RENDERERS,
    OpenCVOverlayRenderer,
    QtOverlayRenderer,
    configure_overlay_renderer,
)
from core.settings import AppSettings

QUAD = [(20, 20), (180, 20), (180, 100), (20, 100)]


class TestOpenCVOverlayRenderer:
    def test_draws_quad_outline(self):
        image = np.zeros((120, 200, 3), dtype=np.uint8)

        rendered = OpenCVOverlayRenderer().render_overlay(image, QUAD)

        b, g, r = rendered[20, 100]
        assert r > 200 and b < 50
        assert tuple(rendered[60, 100]) == (0, 0, 0)  # interior untouched
        assert not image.any()  # source untouched

    def test_grayscale_image(self):
        image = np.zeros((120, 200), dtype=np.uint8)

        rendered = OpenCVOverlayRenderer().render_overlay(image, QUAD)

        assert rendered[20, 100] > 0


class TestQtOverlayRenderer:
    def test_draws_quad_outline(self, qapp):
        image = QImage(200, 120, QImage.Format.Format_ARGB32)
        image.fill(QColor(0, 0, 0))

        rendered = QtOverlayRenderer().render_overlay(image, QUAD)

        edge = rendered.pixelColor(100, 20)
        assert edge.red() > 200 and edge.blue() < 50
        assert rendered.pixelColor(100, 60) == QColor(0, 0, 0)
        assert image.pixelColor(100, 20) == QColor(0, 0, 0)

    def test_no_quad_returns_copy(self, qapp):
        image = QImage(20, 20, QImage.Format.Format_RGB32)
        image.fill(QColor(10, 20, 30))

        rendered = QtOverlayRenderer().render_overlay(image, None)

        assert rendered == image


class TestRendererRegistry:
    def test_known_renderers(self):
        assert set(OVERLAY_RENDERERS) == {"opencv", "qt"}

    def test_configure_from_settings(self):
        renderer = configure_overlay_renderer(AppSettings(overlay_renderer="qt"))

        assert renderer.name == "qt"

    def test_unknown_renderer(self):
        with pytest.raises(AppError):
            configure_overlay_renderer(AppSettings(overlay_renderer="vulkan"))
