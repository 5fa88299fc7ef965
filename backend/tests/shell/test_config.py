"""Unit tests for environment-driven configuration."""

from unittest.mock import patch

from nutrilog.shell.config import DEFAULT_CORS_ORIGINS, AppConfig


class TestAppConfig:
    """Tests for AppConfig.from_env."""

    def test_defaults(self, monkeypatch):
        """Unset variables fall back to defaults."""
        for name in ("NUTRILOG_STORE", "FIRESTORE_PROJECT", "FIRESTORE_DATABASE",
                     "OPENAI_API_KEY", "OPENAI_MODEL", "CORS_ORIGINS", "PORT", "LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)

        with patch("nutrilog.shell.config.load_dotenv"):
            config = AppConfig.from_env()

        assert config.store_backend == "firestore"
        assert config.firestore_database == "nutrilog"
        assert config.openai_api_key is None
        assert config.cors_origins == list(DEFAULT_CORS_ORIGINS)
        assert config.port == 8080

    def test_overrides(self, monkeypatch):
        """Variables override defaults."""
        monkeypatch.setenv("NUTRILOG_STORE", "Memory")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")
        monkeypatch.setenv("PORT", "9000")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        with patch("nutrilog.shell.config.load_dotenv"):
            config = AppConfig.from_env()

        assert config.store_backend == "memory"
        assert config.openai_api_key == "sk-test"
        assert config.cors_origins == ["https://a.example", "https://b.example"]
        assert config.port == 9000
        assert config.log_level == "DEBUG"
