"""Tests for configuration module."""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from gadget_flash.config import Settings, get_settings, print_settings_json


class TestSettings:
    """Test Settings class."""

    def test_default_settings(self) -> None:
        """Settings should have sensible defaults."""
        settings = Settings()

        assert settings.host == "192.168.81.1"
        assert settings.user == "root"
        assert settings.port == 22
        assert settings.identity_file == Path.home() / ".ssh" / "gadget_default_rsa"
        assert settings.strict_host_key_checking is False
        assert settings.block_size == 1024 * 1024
        assert settings.log_level == "INFO"

    def test_settings_from_env(self) -> None:
        """Settings should be loadable from environment variables."""
        with patch.dict(
            os.environ,
            {
                "GADGET_HOST": "10.1.1.1",
                "GADGET_PORT": "2222",
                "GADGET_LOG_LEVEL": "DEBUG",
                "GADGET_STRICT_HOST_KEY_CHECKING": "true",
            },
        ):
            settings = Settings()
            assert settings.host == "10.1.1.1"
            assert settings.port == 2222
            assert settings.log_level == "DEBUG"
            assert settings.strict_host_key_checking is True

    def test_identity_file_from_env(self) -> None:
        """Identity file should be configurable via env."""
        with patch.dict(os.environ, {"GADGET_IDENTITY_FILE": "/tmp/key"}):
            settings = Settings()
            assert settings.identity_file == Path("/tmp/key")

    def test_block_size_bounds(self) -> None:
        """Block size outside its range is rejected."""
        with pytest.raises(ValidationError):
            Settings(block_size=16)


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
        json_str = print_settings_json(settings)

        parsed = json.loads(json_str)

        assert parsed["host"] == "192.168.81.1"
        assert "identity_file" in parsed
        assert "transfer_timeout" in parsed
        assert "command_timeout" in parsed

    def test_print_settings_json_default(self) -> None:
        """print_settings_json without args should use default settings."""
        json_str = print_settings_json()
        parsed = json.loads(json_str)
        assert "host" in parsed
