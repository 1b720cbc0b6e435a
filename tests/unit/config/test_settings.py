"""
Unit tests for settings loading.

Settings come from environment variables (FOUNDRY_*, SEARCH_*) and from a
.env file with ``__`` as the nested delimiter.
"""

import pytest
from pydantic import ValidationError

from foundrybridge.config.settings import FoundrySettings, SearchSettings, Settings, load_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate tests from the developer's environment and .env file."""
    for name in ("URL", "USERNAME", "USER_ID", "PASSWORD", "API_KEY", "TIMEOUT", "RETRY_ATTEMPTS"):
        monkeypatch.delenv(f"FOUNDRY_{name}", raising=False)
        monkeypatch.delenv(f"FOUNDRY__{name}", raising=False)
    monkeypatch.chdir(tmp_path)


class TestFoundrySettings:
    """Connection settings defaults and env overrides."""

    def test_defaults(self):
        settings = FoundrySettings()
        assert settings.url == ""
        assert settings.timeout == 10.0
        assert settings.retry_attempts == 3
        assert settings.retry_delay == 1.0
        assert settings.socket_path == "/socket.io/"
        assert settings.join_timeout == 10.0
        assert settings.world_timeout == 15.0
        assert settings.user_id_pattern == r"^[a-zA-Z0-9]{16}$"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("FOUNDRY_URL", "http://localhost:30000")
        monkeypatch.setenv("FOUNDRY_USERNAME", "Gamemaster")
        monkeypatch.setenv("FOUNDRY_RETRY_ATTEMPTS", "5")

        settings = FoundrySettings()

        assert settings.url == "http://localhost:30000"
        assert settings.username == "Gamemaster"
        assert settings.retry_attempts == 5

    def test_negative_retry_attempts_rejected(self):
        with pytest.raises(ValidationError):
            FoundrySettings(retry_attempts=-1)

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            FoundrySettings(timeout=0)


class TestSearchSettings:
    """Result limit settings."""

    def test_defaults(self):
        settings = SearchSettings()
        assert settings.default_limit == 10
        assert settings.max_limit == 50
        assert settings.chat_limit == 20

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("SEARCH_MAX_LIMIT", "25")
        assert SearchSettings().max_limit == 25


class TestLoadSettings:
    """Top-level settings and .env loading."""

    def test_defaults(self):
        settings = load_settings()
        assert settings.environment == "development"
        assert settings.log_level == "INFO"
        assert settings.log_file is None
        assert isinstance(settings.foundry, FoundrySettings)

    def test_env_file_with_nested_delimiter(self, tmp_path):
        env_file = tmp_path / "custom.env"
        env_file.write_text(
            "LOG_LEVEL=DEBUG\n"
            "FOUNDRY__URL=http://vtt.example.com\n"
            "FOUNDRY__PASSWORD=mellon\n"
            "SEARCH__DEFAULT_LIMIT=5\n"
        )

        settings = load_settings(env_file=env_file)

        assert settings.log_level == "DEBUG"
        assert settings.foundry.url == "http://vtt.example.com"
        assert settings.foundry.password == "mellon"
        assert settings.search.default_limit == 5

    def test_each_call_builds_new_settings(self):
        assert load_settings() is not load_settings()

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            Settings(log_level="LOUD")
