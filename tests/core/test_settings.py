"""
Unit tests for user settings (settings.yaml).
"""

import pytest

from zigkit.core.settings import (
    ZIG_COMMUNITY_MIRRORS_URL,
    ZIG_DOWNLOAD_INDEX_URL,
    ZigkitSettings,
    load_settings,
    parse_settings,
)


class TestParseSettings:
    """Test parse_settings function."""

    def test_defaults(self):
        settings = parse_settings(None)
        assert settings.max_mirrors == 3
        assert settings.download_timeout == 30
        assert settings.sync_threshold_hours == 24
        assert settings.index_url == ZIG_DOWNLOAD_INDEX_URL
        assert settings.mirrors_url == ZIG_COMMUNITY_MIRRORS_URL
        assert settings.source_tag == "zigkit"

    def test_valid_values(self):
        settings = parse_settings(
            {"max_mirrors": 0, "download_timeout": 5.5, "source_tag": "my-tool"}
        )
        assert settings.max_mirrors == 0
        assert settings.download_timeout == 5.5
        assert settings.source_tag == "my-tool"

    @pytest.mark.parametrize(
        "key,value",
        [
            ("max_mirrors", -1),
            ("max_mirrors", True),
            ("max_mirrors", "3"),
            ("download_timeout", 0),
            ("index_url", "http://ziglang.org/download/index.json"),
            ("source_tag", "has space"),
        ],
    )
    def test_invalid_value_falls_back_to_default(self, key, value, caplog):
        settings = parse_settings({key: value})
        assert getattr(settings, key) == getattr(ZigkitSettings(), key)
        assert f"Invalid value for setting '{key}'" in caplog.text

    def test_unknown_key_ignored(self, caplog):
        settings = parse_settings({"skip_signature": True})
        assert settings == ZigkitSettings()
        assert "Ignoring unknown setting: skip_signature" in caplog.text

    def test_non_mapping(self):
        assert parse_settings(["a", "b"]) == ZigkitSettings()


class TestLoadSettings:
    """Test load_settings function."""

    def test_missing_file(self, temp_dir):
        assert load_settings(temp_dir / "settings.yaml") == ZigkitSettings()

    def test_yaml_file(self, temp_dir):
        path = temp_dir / "settings.yaml"
        path.write_text("max_mirrors: 5\nsync_threshold_hours: 1\n", encoding="utf-8")

        settings = load_settings(path)

        assert settings.max_mirrors == 5
        assert settings.sync_threshold_hours == 1

    def test_malformed_yaml(self, temp_dir, caplog):
        path = temp_dir / "settings.yaml"
        path.write_text("max_mirrors: [unclosed\n", encoding="utf-8")

        assert load_settings(path) == ZigkitSettings()
        assert "Using defaults" in caplog.text

    def test_to_dict(self):
        assert ZigkitSettings().to_dict()["max_mirrors"] == 3
