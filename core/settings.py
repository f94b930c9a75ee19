import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = Path.home() / ".docscan_settings.json"


@dataclass
class AppSettings:
    """Scanner settings."""

    # Candidate detection
    downscale_factor: float = 0.25
    canny_low: int = 60
    canny_high: int = 140
    min_area_ratio: float = 0.08
    min_aspect_ratio: float = 1.2
    max_aspect_ratio: float = 2.3
    contour_area_weight: float = 0.7
    rect_area_weight: float = 0.3

    # Temporal stabilization
    smoothing_alpha: float = 0.35
    hold_window_ms: float = 250.0
    max_detections_per_second: float = 8.0

    # Coordinate transforms. Rotation directions were calibrated on devices
    # and are only used when no orientation metadata is available.
    frame_rotation: str = "ccw"
    exif_rotation: str = "cw"
    swap_tolerance_px: float = 2.0

    # Output
    output_format: str = "jpeg"
    jpeg_quality: int = 95
    overlay_renderer: str = "opencv"

    def __setattr__(self, name: str, value: Any) -> None:
        """Override setattr to prevent setting non-existent attributes."""
        if not hasattr(self, name) and name not in self.__dataclass_fields__:
            raise AttributeError(f"Setting '{name}' does not exist")
        super().__setattr__(name, value)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppSettings":
        """Create AppSettings from dictionary, handling missing or invalid keys."""
        defaults = cls()
        return cls(
            downscale_factor=float(data.get("downscale_factor", defaults.downscale_factor)),
            canny_low=int(data.get("canny_low", defaults.canny_low)),
            canny_high=int(data.get("canny_high", defaults.canny_high)),
            min_area_ratio=float(data.get("min_area_ratio", defaults.min_area_ratio)),
            min_aspect_ratio=float(data.get("min_aspect_ratio", defaults.min_aspect_ratio)),
            max_aspect_ratio=float(data.get("max_aspect_ratio", defaults.max_aspect_ratio)),
            contour_area_weight=float(
                data.get("contour_area_weight", defaults.contour_area_weight)
            ),
            rect_area_weight=float(data.get("rect_area_weight", defaults.rect_area_weight)),
            smoothing_alpha=float(data.get("smoothing_alpha", defaults.smoothing_alpha)),
            hold_window_ms=float(data.get("hold_window_ms", defaults.hold_window_ms)),
            max_detections_per_second=float(
                data.get("max_detections_per_second", defaults.max_detections_per_second)
            ),
            frame_rotation=str(data.get("frame_rotation", defaults.frame_rotation)),
            exif_rotation=str(data.get("exif_rotation", defaults.exif_rotation)),
            swap_tolerance_px=float(data.get("swap_tolerance_px", defaults.swap_tolerance_px)),
            output_format=str(data.get("output_format", defaults.output_format)),
            jpeg_quality=int(data.get("jpeg_quality", defaults.jpeg_quality)),
            overlay_renderer=str(data.get("overlay_renderer", defaults.overlay_renderer)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert AppSettings to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def load_from_file(cls, file_path: Optional[str] = None) -> "AppSettings":
        """Load settings from JSON file."""
        file_path_obj = DEFAULT_SETTINGS_PATH if file_path is None else Path(file_path)

        if file_path_obj.exists():
            try:
                with open(file_path_obj) as f:
                    data = json.load(f)
                return cls.from_dict(data)
            except (OSError, json.JSONDecodeError, TypeError, ValueError) as e:
                logger.warning(f"Could not read settings from {file_path_obj}: {e}")
                return cls()
        return cls()

    def save_to_file(self, file_path: Optional[str] = None) -> None:
        """Save settings to JSON file."""
        file_path_obj = DEFAULT_SETTINGS_PATH if file_path is None else Path(file_path)

        try:
            with open(file_path_obj, "w") as f:
                json.dump(self.to_dict(), f, indent=2)
        except OSError:
            logger.warning(f"Could not save settings to {file_path_obj}")


# Global settings instance - loaded once on import
app_settings = AppSettings.load_from_file()
