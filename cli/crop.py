"""
Crop command implementation for CLI.
"""

from __future__ import annotations

import logging
from pathlib import Path

from cli.utils import get_image_files
from core import images
from core.detector import DetectorConfig, DocumentDetector
from core.errors import AppError
from core.extract import CropOptions, CropRequest, crop_document
from core.images import OutputFormat
from core.quad_types import QuadArray, Rotation, SpaceKind
from core.settings import app_settings


def cmd_crop(
    paths: list[str],
    output_dir: str,
    output_format: str | None = None,
    rotate: str | None = None,
    quad: QuadArray | None = None,
    use_exif: bool = True,
    debug: bool = False,
) -> int:
    """Detect the document in each image and save a rectified crop."""
    logger = logging.getLogger(__name__)
    logger.info(f"Starting crop for {len(paths)} path(s) to {output_dir}")

    image_files = get_image_files(paths)
    if image_files is None:
        return 1

    if not image_files:
        print("No image files found")
        return 0

    # Validate and create output directory
    try:
        p = Path(output_dir).expanduser()
        p.mkdir(parents=True, exist_ok=True)
        output_dir = str(p)
        print(f"Output directory: {output_dir}")
    except OSError as e:
        print(f"Error creating output directory '{output_dir}': {e}")
        return 1

    fmt = OutputFormat(output_format if output_format else app_settings.output_format)
    detector = DocumentDetector(DetectorConfig.from_settings(app_settings))

    saved_count = 0
    skipped_count = 0
    error_count = 0

    for image_path in image_files:
        try:
            data = images.load_image_bytes(str(image_path))
            image = images.decode_image(data)

            corners = quad
            if corners is None:
                result = detector.detect_image(image, space_kind=SpaceKind.PHOTO)
                if result is None:
                    print(f"Skipping {image_path} (no document found)")
                    skipped_count += 1
                    continue
                corners = result.quad

            if rotate:
                rotation = Rotation(rotate)
            elif use_exif:
                rotation = images.rotation_from_exif(data)
            else:
                rotation = Rotation.NONE

            options = CropOptions(
                format=fmt,
                rotate=rotation,
                output_path=str(Path(output_dir) / f"{image_path.stem}_crop"),
                jpeg_quality=app_settings.jpeg_quality,
                debug=debug,
            )
            cropped = crop_document(CropRequest(source=image, quad=corners, options=options))
            print(f"Saved {cropped.path} ({cropped.width}x{cropped.height})")
            saved_count += 1
        except AppError as e:
            print(f"  Error processing {image_path}: {e.msg}")
            error_count += 1

    print("\nSummary:")
    print(f"  Crops saved: {saved_count}")
    if skipped_count > 0:
        print(f"  Skipped: {skipped_count} images (no document found)")
    if error_count > 0:
        print(f"  Errors: {error_count} images")

    return 0 if error_count == 0 else 1
