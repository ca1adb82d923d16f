"""Tests for configuration module."""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from distro_rootfs.config import Settings, get_settings, print_settings_json
from distro_rootfs.types import Source


class TestSettings:
    """Test Settings class."""

    def test_default_settings(self, monkeypatch):
        """Settings should have sensible defaults."""
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        settings = Settings()

        assert settings.cache_dir == Path.home() / ".local" / "share" / "distro-rootfs" / "rootfs"
        assert settings.mirror == "official"
        assert settings.source is Source.INDEX
        assert settings.offline is False
        assert settings.log_level == "INFO"
        assert settings.keep_latest == 2
        assert settings.download_timeout == 3600
        assert settings.index_timeout == 30
        assert settings.lock_timeout is None

    def test_xdg_data_home(self, monkeypatch, tmp_path):
        """Default cache dir should follow XDG_DATA_HOME."""
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
        assert Settings().cache_dir == tmp_path / "distro-rootfs" / "rootfs"

    def test_settings_from_env(self) -> None:
        """Settings should be loadable from environment variables."""
        with patch.dict(
            os.environ,
            {
                "DISTRO_ROOTFS_OFFLINE": "true",
                "DISTRO_ROOTFS_LOG_LEVEL": "DEBUG",
                "DISTRO_ROOTFS_SOURCE": "official",
                "DISTRO_ROOTFS_MIRROR": "tuna",
                "DISTRO_ROOTFS_KEEP_LATEST": "5",
            },
        ):
            settings = Settings()
            assert settings.offline is True
            assert settings.log_level == "DEBUG"
            assert settings.source is Source.OFFICIAL
            assert settings.get_mirror().name == "tuna"
            assert settings.keep_latest == 5

    def test_settings_cache_dir_from_env(self) -> None:
        """Cache dir should be configurable via env."""
        with patch.dict(os.environ, {"DISTRO_ROOTFS_CACHE_DIR": "/tmp/test-cache"}):
            settings = Settings()
            assert settings.cache_dir == Path("/tmp/test-cache")

    def test_custom_mirror_url(self):
        settings = Settings(mirror="https://cdn.example.com/lxc/")
        assert settings.get_mirror().base_url == "https://cdn.example.com/lxc"

    def test_invalid_mirror(self):
        with pytest.raises(ValidationError):
            Settings(mirror="nowhere")

    def test_invalid_source(self):
        with pytest.raises(ValidationError):
            Settings(source="torrent")

    def test_timeout_minimum(self):
        with pytest.raises(ValidationError):
            Settings(download_timeout=10)

    def test_negative_keep_latest(self):
        with pytest.raises(ValidationError):
            Settings(keep_latest=-1)


class TestGetSettings:
    """Test get_settings function."""

    def test_get_settings_returns_settings(self) -> None:
        """get_settings should return a Settings instance."""
        settings = get_settings()
        assert isinstance(settings, Settings)


class TestPrintSettingsJson:
    """Test print_settings_json function."""

    def test_print_settings_json(self) -> None:
        """print_settings_json should return valid JSON."""
        settings = Settings()
        parsed = json.loads(print_settings_json(settings))

        assert "cache_dir" in parsed
        assert "mirror" in parsed
        assert parsed["source"] == "index"
        assert "offline" in parsed

    def test_print_settings_json_default(self) -> None:
        """print_settings_json without args should use default settings."""
        parsed = json.loads(print_settings_json())
        assert "cache_dir" in parsed
