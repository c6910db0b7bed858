"""Unit tests for Settings."""

import pytest
from pydantic import ValidationError

from notesync.config import Settings


class TestSettings:
    """Tests for configuration loading."""

    def test_defaults(self, monkeypatch):
        """Test default values."""
        monkeypatch.delenv("NOTESYNC_API_TOKEN", raising=False)
        settings = Settings(_env_file=None)
        assert settings.backend_url == "http://localhost:8080/api"
        assert settings.max_workers == 4
        assert settings.is_authenticated is False

    def test_env_prefix(self, monkeypatch):
        """Test that values come from NOTESYNC_ variables."""
        monkeypatch.setenv("NOTESYNC_API_TOKEN", "abc")
        monkeypatch.setenv("NOTESYNC_MAX_WORKERS", "8")
        settings = Settings(_env_file=None)
        assert settings.api_token == "abc"
        assert settings.max_workers == 8
        assert settings.is_authenticated is True

    def test_worker_bounds(self):
        """Test that the worker pool size is validated."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, max_workers=0)
