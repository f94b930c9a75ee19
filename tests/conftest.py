"""
Shared fixtures for the scanner tests.
"""

import os
import sys

import cv2
import numpy as np
import pytest

# Qt widgets and painters need a platform plugin; tests run headless.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

# Add parent directory to path to import app modules
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))


@pytest.fixture
def document_frame():
    """800x600 dark BGR frame with a bright 480x300 document in the middle."""
    frame = np.full((600, 800, 3), 20, dtype=np.uint8)
    cv2.rectangle(frame, (160, 150), (640, 450), (235, 235, 235), thickness=-1)
    return frame


@pytest.fixture
def marked_image():
    """400x300 white BGR image with colored corner markers."""
    image = np.full((300, 400, 3), 255, dtype=np.uint8)
    image[:50, :50] = (0, 0, 255)  # red top-left
    image[:50, 350:] = (0, 255, 0)  # green top-right
    image[250:, :50] = (255, 0, 0)  # blue bottom-left
    image[250:, 350:] = (0, 255, 255)  # yellow bottom-right
    return image
