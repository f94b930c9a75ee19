"""
Detection command implementation for CLI.
"""

from __future__ import annotations

import logging

from cli.utils import format_point_list, get_image_files
from core import images
from core.detector import DetectorConfig, DocumentDetector
from core.errors import CropError
from core.quad_types import SpaceKind
from core.settings import app_settings


def cmd_detect(paths: list[str]) -> int:
    """Run document detection on still images and print the found corners."""
    logger = logging.getLogger(__name__)
    logger.info(f"Starting detection on {len(paths)} path(s)")

    image_files = get_image_files(paths)
    if image_files is None:
        return 1

    if not image_files:
        print("No image files found")
        return 0

    detector = DocumentDetector(DetectorConfig.from_settings(app_settings))
    found_count = 0
    missing_count = 0
    error_count = 0

    for image_path in image_files:
        try:
            logger.info(f"Processing image: {image_path}")
            image = images.load_image(str(image_path))
        except CropError as e:
            print(f"{image_path}: error: {e}")
            error_count += 1
            continue

        result = detector.detect_image(image, space_kind=SpaceKind.PHOTO)
        if result is None:
            print(f"{image_path}: no document found")
            missing_count += 1
        else:
            print(f"{image_path}: {format_point_list(result.quad)}")
            found_count += 1

    print("\nSummary:")
    print(f"  Documents found: {found_count}")
    if missing_count > 0:
        print(f"  No document: {missing_count} images")
    if error_count > 0:
        print(f"  Errors: {error_count} images")

    return 0 if error_count == 0 else 1
