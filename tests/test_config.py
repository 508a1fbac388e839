"""Tests for settings loading."""

import pytest
from pydantic import ValidationError

from quizgen.config import Settings


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, monkeypatch):
        """Test default values when nothing is configured."""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("RATE_LIMIT_PER_HOUR", raising=False)

        config = Settings(_env_file=None)

        assert config.openai_api_key is None
        assert config.openai_model == "gpt-4"
        assert config.api_timeout == 300.0
        assert config.max_retries == 2
        assert config.retry_delay == 5.0
        assert config.max_completion_tokens == 16000
        assert config.max_content_length == 100_000
        assert config.rate_limit_per_hour == 30
        assert config.rate_limit_window == 3600
        assert config.rate_limit_storage == "memory"

    def test_environment_overrides(self, monkeypatch):
        """Test that environment variables override defaults."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")
        monkeypatch.setenv("OPENAI_MODEL", "gpt-4o-mini")
        monkeypatch.setenv("RATE_LIMIT_PER_HOUR", "5")
        monkeypatch.setenv("RATE_LIMIT_STORAGE", "redis")

        config = Settings(_env_file=None)

        assert config.openai_api_key == "sk-from-env"
        assert config.openai_model == "gpt-4o-mini"
        assert config.rate_limit_per_hour == 5
        assert config.rate_limit_storage == "redis"

    def test_invalid_storage_rejected(self, monkeypatch):
        """Test that unknown rate-limit backends are rejected."""
        monkeypatch.setenv("RATE_LIMIT_STORAGE", "memcached")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)
