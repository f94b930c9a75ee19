"""
Overlay renderers that draw the stable document quad on top of a preview image.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import cv2
import numpy as np
from PyQt6.QtCore import Qt
from PyQt6.QtGui import QColor, QImage, QPainter, QPen, QPolygonF

from core.errors import AppError
from core.quad_types import QuadAny, quad_as_array, quad_as_list_of_qpointfs
from core.settings import AppSettings


class OverlayRenderer(ABC):
    """Base class for quad overlay renderers."""

    color: tuple[int, int, int] = (255, 128, 0)  # RGB
    thickness: int = 3

    @property
    @abstractmethod
    def name(self) -> str:
        """Key used to select the renderer in settings."""
        pass

    @abstractmethod
    def render_overlay(self, image, quad: QuadAny | None):
        """
        Draw `quad` on a copy of `image` and return it.

        The quad must already be in the image's pixel space. A None quad
        returns an unmodified copy.
        """
        pass


class OpenCVOverlayRenderer(OverlayRenderer):
    """Draws on BGR numpy arrays with cv2.polylines."""

    @property
    def name(self):
        return "opencv"

    def render_overlay(self, image: np.ndarray, quad: QuadAny | None) -> np.ndarray:
        canvas = image.copy()
        if quad is None:
            return canvas
        points = np.round(quad_as_array(quad)).astype(np.int32).reshape(-1, 1, 2)
        r, g, b = self.color
        color = (b, g, r) if canvas.ndim == 3 else int(0.299 * r + 0.587 * g + 0.114 * b)
        cv2.polylines(
            canvas,
            [points],
            isClosed=True,
            color=color,
            thickness=self.thickness,
            lineType=cv2.LINE_AA,
        )
        return canvas


class QtOverlayRenderer(OverlayRenderer):
    """Paints on a QImage with QPainter, for Qt-based previews."""

    @property
    def name(self):
        return "qt"

    def render_overlay(self, image: QImage, quad: QuadAny | None) -> QImage:
        canvas = image.copy()
        if quad is None:
            return canvas
        if canvas.format() != QImage.Format.Format_ARGB32:
            canvas = canvas.convertToFormat(QImage.Format.Format_ARGB32)

        painter = QPainter(canvas)
        try:
            painter.setRenderHint(QPainter.RenderHint.Antialiasing)
            pen = QPen(QColor(*self.color))
            pen.setWidth(self.thickness)
            pen.setJoinStyle(Qt.PenJoinStyle.RoundJoin)
            painter.setPen(pen)
            painter.drawPolygon(QPolygonF(quad_as_list_of_qpointfs(quad)))
        finally:
            painter.end()
        return canvas


# Registry of all available renderers
_OVERLAY_RENDERERS: list[OverlayRenderer] = [
    OpenCVOverlayRenderer(),
    QtOverlayRenderer(),
]

OVERLAY_RENDERERS: dict[str, OverlayRenderer] = {r.name: r for r in _OVERLAY_RENDERERS}


def configure_overlay_renderer(settings: AppSettings) -> OverlayRenderer:
    renderer = OVERLAY_RENDERERS.get(settings.overlay_renderer)
    if renderer is None:
        raise AppError(
            msg=f"Unknown overlay renderer '{settings.overlay_renderer}'. "
            f"Choose one of: {', '.join(OVERLAY_RENDERERS)}.",
            title="Invalid Setting",
        )
    return renderer
