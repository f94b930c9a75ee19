"""
Tests for loading and saving scanner settings.
"""

import json

import pytest

from core.settings import AppSettings


class TestAppSettings:
    def test_defaults(self):
        settings = AppSettings()

        assert settings.canny_low == 60
        assert settings.canny_high == 140
        assert settings.min_area_ratio == 0.08
        assert settings.smoothing_alpha == 0.35
        assert settings.hold_window_ms == 250.0
        assert settings.frame_rotation == "ccw"
        assert settings.exif_rotation == "cw"

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "settings.json"
        AppSettings(jpeg_quality=80, output_format="png").save_to_file(str(path))

        loaded = AppSettings.load_from_file(str(path))

        assert loaded.jpeg_quality == 80
        assert loaded.output_format == "png"
        assert loaded == AppSettings(jpeg_quality=80, output_format="png")

    def test_missing_keys_use_defaults(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"canny_low": "40"}))

        loaded = AppSettings.load_from_file(str(path))

        assert loaded.canny_low == 40
        assert loaded.canny_high == 140

    def test_corrupt_file_falls_back_to_defaults(self, tmp_path, caplog):
        path = tmp_path / "settings.json"
        path.write_text("{not json")

        assert AppSettings.load_from_file(str(path)) == AppSettings()
        assert "Could not read settings" in caplog.text

    def test_missing_file(self, tmp_path):
        assert AppSettings.load_from_file(str(tmp_path / "none.json")) == AppSettings()

    def test_unknown_setting_is_rejected(self):
        settings = AppSettings()

        with pytest.raises(AttributeError):
            settings.no_such_setting = 1
