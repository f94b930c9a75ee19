"""
Stream command implementation for CLI: live detection over a video source.
"""

from __future__ import annotations

import logging
from pathlib import Path

from cli.utils import format_point_list
from core.capture import VideoCaptureSource
from core.errors import AppError
from core.extract import CropOptions
from core.images import OutputFormat
from core.scanner import DocumentScanner
from core.settings import app_settings


def _parse_source(source: str) -> int | str:
    return int(source) if source.isdigit() else source


def cmd_stream(
    source: str,
    max_frames: int | None = None,
    capture_dir: str | None = None,
) -> int:
    """
    Run throttled detection and stabilization over a camera or video file.

    Prints every change of the stable quad. With `capture_dir`, the last frame
    is captured and cropped at the end of the stream.
    """
    logger = logging.getLogger(__name__)

    try:
        capture = VideoCaptureSource(_parse_source(source))
    except AppError as e:
        print(f"Error: {e.msg}")
        return 1

    fps = capture.fps if capture.fps > 0 else 30.0
    frame_interval = 1.0 / fps
    logger.info(f"Streaming from {source} at {fps:.1f} fps")

    scanner = DocumentScanner(app_settings)
    changes = 0

    def on_change(quad, space):
        nonlocal changes
        changes += 1
        if quad is None:
            print("document lost")
        else:
            print(f"document: {format_point_list(quad)} ({space.width}x{space.height})")

    scanner.on_stable_quad_changed(on_change)
    scanner.set_detection_enabled(True)

    frame_count = 0
    analyzed = 0
    try:
        with capture:
            while max_frames is None or frame_count < max_frames:
                frame = capture.next_frame()
                if frame is None:
                    break
                buffer, width, height = frame
                # Use media time so a file plays back at its own pace.
                timestamp = frame_count * frame_interval
                if scanner.submit_frame(buffer, width, height, timestamp=timestamp):
                    analyzed += 1
                    scanner.channel.wait_until_idle()
                scanner.poll()
                frame_count += 1

            scanner.channel.wait_until_idle()
            scanner.poll()

            if capture_dir:
                captured = scanner.capture(capture)
                if captured.quad is None:
                    print("No document to capture")
                else:
                    output_path = Path(capture_dir).expanduser() / "capture"
                    result = scanner.request_crop(
                        captured.image,
                        captured.quad,
                        CropOptions(
                            format=OutputFormat(app_settings.output_format),
                            output_path=str(output_path),
                            jpeg_quality=app_settings.jpeg_quality,
                        ),
                    )
                    print(f"Saved {result.path} ({result.width}x{result.height})")
    except AppError as e:
        print(f"Error: {e.msg}")
        return 1
    finally:
        scanner.close()

    print("\nSummary:")
    print(f"  Frames read: {frame_count}")
    print(f"  Frames analyzed: {analyzed}")
    print(f"  Stable quad changes: {changes}")
    return 0
