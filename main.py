#!/usr/bin/env python3
"""
Document Scanner
Main entry point for the command line tools.
"""

from __future__ import annotations

import argparse
import logging
import sys

from cli.crop import cmd_crop
from cli.detect import cmd_detect
from cli.stream import cmd_stream
from cli.utils import parse_quad
from core.quad_types import Rotation


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Document Scanner")

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="WARNING",
        help="Set the logging level (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    detect_parser = subparsers.add_parser(
        "detect", help="Find the document corners in still images"
    )
    detect_parser.add_argument("paths", nargs="+", help="Image files or directories")

    crop_parser = subparsers.add_parser(
        "crop", help="Detect and save a perspective-corrected crop of each image"
    )
    crop_parser.add_argument("paths", nargs="+", help="Image files or directories")
    crop_parser.add_argument(
        "-o", "--output-dir", required=True, help="Directory for cropped images"
    )
    crop_parser.add_argument(
        "--format", choices=["jpeg", "png"], default=None, help="Output encoding"
    )
    crop_parser.add_argument(
        "--rotate",
        choices=[r.value for r in Rotation],
        default=None,
        help="Rotate the crop; overrides EXIF orientation",
    )
    crop_parser.add_argument(
        "--quad",
        type=parse_quad,
        default=None,
        help="Corners 'x1,y1,x2,y2,x3,y3,x4,y4' to use instead of detection",
    )
    crop_parser.add_argument(
        "--ignore-exif",
        action="store_true",
        help="Do not rotate crops according to EXIF orientation",
    )
    crop_parser.add_argument(
        "--debug", action="store_true", help="Log every crop pipeline step"
    )

    stream_parser = subparsers.add_parser(
        "stream", help="Run live detection over a camera index or video file"
    )
    stream_parser.add_argument("source", help="Camera index (e.g. 0) or video path")
    stream_parser.add_argument(
        "--max-frames", type=int, default=None, help="Stop after this many frames"
    )
    stream_parser.add_argument(
        "--capture-dir",
        default=None,
        help="Capture and crop the last frame into this directory",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging based on command line argument
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if args.command == "detect":
        return cmd_detect(args.paths)
    if args.command == "crop":
        return cmd_crop(
            args.paths,
            args.output_dir,
            output_format=args.format,
            rotate=args.rotate,
            quad=args.quad,
            use_exif=not args.ignore_exif,
            debug=args.debug,
        )
    if args.command == "stream":
        return cmd_stream(
            args.source, max_frames=args.max_frames, capture_dir=args.capture_dir
        )
    parser.error(f"Unknown command {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
