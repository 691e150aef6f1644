"""Unit tests for configuration system."""
import pytest
import os
from pathlib import Path
from unittest.mock import patch

import yaml
from pydantic import ValidationError

from bookstudio.config import Settings, get_settings, constants


class TestSettings:
    """Test Settings configuration."""

    def test_defaults(self, temp_dir):
        """Test default values mirror the constants."""
        settings = Settings(exports_dir=temp_dir / "exports")

        assert settings.backend_url == constants.DEFAULT_BACKEND_URL
        assert settings.api_prefix == "/api"
        assert settings.request_timeout == 120
        assert settings.default_pages == 100
        assert settings.default_chapters == 10
        assert settings.default_language == "English"
        assert settings.default_writing_style == "story"

    def test_backend_url_from_environment(self, temp_dir):
        """Test backend URL is read from BOOKSTUDIO_BACKEND_URL."""
        with patch.dict(os.environ, {'BOOKSTUDIO_BACKEND_URL': 'https://books.example.com/'}):
            settings = Settings(exports_dir=temp_dir)

        assert settings.backend_url == 'https://books.example.com'
        assert settings.api_base_url == 'https://books.example.com/api'

    def test_backend_url_validation_invalid(self, temp_dir):
        """Test non-http URL raises error."""
        with patch.dict(os.environ, {'BOOKSTUDIO_BACKEND_URL': 'ftp://books.example.com'}):
            with pytest.raises(ValueError, match="must start with"):
                Settings(exports_dir=temp_dir)

    def test_api_prefix_normalized(self, temp_dir):
        settings = Settings(exports_dir=temp_dir, api_prefix="v2/")
        assert settings.api_prefix == "/v2"
        assert settings.api_base_url.endswith("/v2")

    def test_timeout_must_be_positive(self, temp_dir):
        with pytest.raises(ValueError, match="positive"):
            Settings(exports_dir=temp_dir, request_timeout=0)

    def test_directory_creation(self, temp_dir):
        """Test that the exports directory is created if it doesn't exist."""
        exports_dir = temp_dir / "nested" / "exports"
        settings = Settings(exports_dir=exports_dir)

        assert exports_dir.exists()
        assert settings.exports_dir == exports_dir.resolve()

    def test_load_config_file(self, temp_dir):
        """Test loading configuration from YAML file."""
        config_file = temp_dir / "config.yaml"
        config_file.write_text("""
backend_url: https://writer.example.com
default_chapters: 12
credit_cache_ttl: 60
unknown_key: ignored
""")

        settings = Settings(exports_dir=temp_dir)
        settings.load_config_file(config_file)

        assert settings.backend_url == 'https://writer.example.com'
        assert settings.default_chapters == 12
        assert settings.credit_cache_ttl == 60
        assert not hasattr(settings, 'unknown_key')

    def test_load_missing_config_file(self, temp_dir):
        settings = Settings(exports_dir=temp_dir)
        settings.load_config_file(temp_dir / "missing.yaml")
        assert settings.default_chapters == 10

    def test_assignment_is_validated(self, temp_dir):
        settings = Settings(exports_dir=temp_dir)

        with pytest.raises(ValidationError, match="positive"):
            settings.request_timeout = 0
        with pytest.raises(ValidationError, match="must start with"):
            settings.backend_url = "ftp://nowhere"

        assert settings.request_timeout == 120
        assert settings.backend_url == constants.DEFAULT_BACKEND_URL

    @pytest.mark.parametrize("content, message", [
        ("request_timeout: 0\n", "positive"),
        ("backend_url: ftp://nowhere\n", "must start with"),
    ])
    def test_load_config_file_rejects_invalid_values(self, temp_dir, content, message):
        config_file = temp_dir / "config.yaml"
        config_file.write_text(content)
        settings = Settings(exports_dir=temp_dir)

        with pytest.raises(ValidationError, match=message):
            settings.load_config_file(config_file)

    def test_get_settings_rejects_invalid_project_config(self, temp_dir, monkeypatch):
        (temp_dir / "config.yaml").write_text("request_timeout: 0\n")
        monkeypatch.chdir(temp_dir)
        get_settings.cache_clear()

        with pytest.raises(ValidationError):
            get_settings()

    def test_load_config_file_normalizes_values(self, temp_dir):
        config_file = temp_dir / "config.yaml"
        config_file.write_text("backend_url: https://writer.example.com/\napi_prefix: v2/\n")
        settings = Settings(exports_dir=temp_dir)

        settings.load_config_file(config_file)

        assert settings.backend_url == 'https://writer.example.com'
        assert settings.api_prefix == '/v2'

    def test_save_config_file(self, temp_dir):
        """Test saving configuration to YAML file."""
        config_file = temp_dir / "config.yaml"

        settings = Settings(exports_dir=temp_dir)
        settings.default_language = 'German'
        settings.verbose = True
        settings.save_config_file(config_file)

        with open(config_file) as f:
            saved = yaml.safe_load(f)

        assert saved['default_language'] == 'German'
        assert saved['verbose'] is True
        assert 'api_token' not in saved

    def test_get_settings_cached(self):
        assert get_settings() is get_settings()

    def test_get_settings_reads_project_config(self, temp_dir, monkeypatch):
        (temp_dir / "config.yaml").write_text("default_pages: 250\n")
        monkeypatch.chdir(temp_dir)
        get_settings.cache_clear()

        assert get_settings().default_pages == 250

    def test_project_config_overrides_user_config(self, temp_dir, monkeypatch, isolated_home):
        user_dir = isolated_home / ".bookstudio"
        user_dir.mkdir()
        (user_dir / "config.yaml").write_text("default_pages: 150\ndefault_language: French\n")
        (temp_dir / "config.yaml").write_text("default_pages: 300\n")
        monkeypatch.chdir(temp_dir)
        get_settings.cache_clear()

        settings = get_settings()
        assert settings.default_pages == 300
        assert settings.default_language == "French"


class TestConstants:
    """Test configuration constants."""

    def test_export_media_types(self):
        assert constants.EXPORT_MEDIA_TYPES['pdf'] == 'application/pdf'
        assert constants.EXPORT_MEDIA_TYPES['html'] == 'text/html'
        assert constants.EXPORT_MEDIA_TYPES['docx'].endswith('wordprocessingml.document')

    def test_writing_styles(self):
        assert constants.WRITING_STYLES['self_help'] == 'Self-Help'
        assert constants.WRITING_STYLES['children'] == "Children's"

    def test_timeout_is_two_minutes(self):
        assert constants.REQUEST_TIMEOUT_SECONDS == 120
