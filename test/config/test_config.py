"""Tests for environment-driven configuration."""

from mongoload.config import (
    DEFAULT_COLLECTION,
    DEFAULT_DATABASE,
    DEFAULT_GRACE_PERIOD,
    DEFAULT_MONGO_URI,
    Config,
)


class TestDefaults:
    def test_defaults_without_env(self, monkeypatch):
        for name in ("MONGO_URI", "DATABASE", "COLLECTION", "LOG_JSON", "GRACE_PERIOD"):
            monkeypatch.delenv(f"MONGOLOAD_{name}", raising=False)

        assert Config.mongo_uri() == DEFAULT_MONGO_URI
        assert Config.database() == DEFAULT_DATABASE
        assert Config.collection() == DEFAULT_COLLECTION
        assert Config.grace_period() == DEFAULT_GRACE_PERIOD
        assert Config.log_json() is False

    def test_blank_values_use_default(self, monkeypatch):
        monkeypatch.setenv("MONGOLOAD_DATABASE", "   ")
        assert Config.database() == DEFAULT_DATABASE


class TestOverrides:
    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("MONGOLOAD_MONGO_URI", "mongodb://db:27017/")
        monkeypatch.setenv("MONGOLOAD_DATABASE", "history")
        monkeypatch.setenv("MONGOLOAD_COLLECTION", "history-post")
        monkeypatch.setenv("MONGOLOAD_LOG_JSON", "YES")

        assert Config.mongo_uri() == "mongodb://db:27017/"
        assert Config.database() == "history"
        assert Config.collection() == "history-post"
        assert Config.log_json() is True


class TestTestMode:
    def test_test_mode_forces_debug(self, monkeypatch):
        monkeypatch.setenv("MONGOLOAD_LOG_LEVEL", "error")

        assert Config.is_test_mode() is True
        assert Config.log_level() == "DEBUG"

    def test_clear_test_mode(self, monkeypatch):
        monkeypatch.setenv("MONGOLOAD_LOG_LEVEL", "warning")
        Config.clear_test_mode()

        assert Config.is_test_mode() is False
        assert Config.log_level() == "WARNING"
