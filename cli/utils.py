"""
Shared utilities for CLI commands.
"""

from __future__ import annotations

from pathlib import Path

from core.quad_types import QuadArray, quad_as_array

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".tiff", ".tif", ".bmp", ".webp"}


def get_image_files(paths: list[str]) -> list[Path] | None:
    """Get list of image files from input paths (files or directories).

    Returns None if any path does not exist.
    """
    image_files = []

    for path_str in paths:
        path = Path(path_str)
        if path.is_file():
            if path.suffix.lower() in IMAGE_EXTENSIONS:
                image_files.append(path)
            else:
                print(f"Warning: {path} is not a supported image file")
        elif path.is_dir():
            image_files.extend(
                p
                for p in path.iterdir()
                if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS
            )
        else:
            print(f"Error: Path not found: {path}")
            return None

    return sorted(set(image_files))


def parse_quad(text: str) -> QuadArray:
    """Parse 'x1,y1,x2,y2,x3,y3,x4,y4' into a quad."""
    try:
        values = [float(v) for v in text.replace(" ", "").split(",") if v]
    except ValueError:
        raise ValueError(f"Quad '{text}' must be 8 comma-separated numbers") from None
    if len(values) != 8:
        raise ValueError(f"Quad '{text}' must be 8 comma-separated numbers")
    return quad_as_array([(values[i], values[i + 1]) for i in range(0, 8, 2)])


def format_point_list(quad: QuadArray) -> str:
    return " ".join(f"{x:.1f},{y:.1f}" for x, y in quad)
