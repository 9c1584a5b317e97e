import logging

import pytest
from fastapi.testclient import TestClient

from src.api.logging_setup import setup_logging
from src.api.main import create_app
from src.api.settings import get_settings


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    level = root.level
    yield
    for h in list(root.handlers):
        if h.get_name() == "task-backend-console":
            root.removeHandler(h)
    root.setLevel(level)


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in [
            "PERSISTENCE_BACKEND",
            "SQLITE_DB_PATH",
            "CORS_ALLOW_ORIGINS",
            "LOG_LEVEL",
            "SESSION_COOKIE_NAME",
            "SESSION_COOKIE_SECURE",
            "SESSION_IDLE_TIMEOUT_SECONDS",
            "SESSION_ABSOLUTE_TIMEOUT_SECONDS",
            "SESSION_PURGE_INTERVAL_SECONDS",
            "PASSWORD_HASH_METHOD",
            "OPENAI_API_KEY",
            "OPENAI_MODEL",
            "OPENAI_BASE_URL",
            "SUGGESTION_TIMEOUT_SECONDS",
        ]:
            monkeypatch.delenv(name, raising=False)
        s = get_settings()
        assert s.persistence_backend == "memory"
        assert s.cors_allow_origins == ["*"]
        assert s.log_level == "INFO"
        assert s.session_cookie_name == "session_id"
        assert s.session_cookie_secure is False
        assert s.session_idle_timeout_seconds == 86400
        assert s.session_absolute_timeout_seconds == 604800
        assert s.session_purge_interval_seconds == 86400
        assert s.password_hash_method == "pbkdf2:sha256:600000"
        assert s.openai_api_key is None
        assert s.openai_model == "gpt-4o"
        assert s.openai_base_url is None
        assert s.suggestion_timeout_seconds == 20.0

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("PERSISTENCE_BACKEND", "SQLite")
        monkeypatch.setenv("CORS_ALLOW_ORIGINS", "http://a.test, http://b.test,")
        monkeypatch.setenv("SESSION_COOKIE_SECURE", "yes")
        monkeypatch.setenv("SESSION_IDLE_TIMEOUT_SECONDS", "600")
        monkeypatch.setenv("PASSWORD_HASH_METHOD", "scrypt")
        monkeypatch.setenv("OPENAI_API_KEY", "  sk-live  ")
        monkeypatch.setenv("SUGGESTION_TIMEOUT_SECONDS", "12.5")
        s = get_settings()
        assert s.persistence_backend == "sqlite"
        assert s.cors_allow_origins == ["http://a.test", "http://b.test"]
        assert s.session_cookie_secure is True
        assert s.session_idle_timeout_seconds == 600
        assert s.password_hash_method == "scrypt"
        assert s.openai_api_key == "sk-live"
        assert s.suggestion_timeout_seconds == 12.5

    def test_invalid_values_fall_back_to_defaults(self, monkeypatch):
        monkeypatch.setenv("PERSISTENCE_BACKEND", "postgres")
        monkeypatch.setenv("SESSION_IDLE_TIMEOUT_SECONDS", "soon")
        monkeypatch.setenv("SESSION_PURGE_INTERVAL_SECONDS", "-5")
        monkeypatch.setenv("SUGGESTION_TIMEOUT_SECONDS", "0")
        monkeypatch.setenv("OPENAI_API_KEY", "   ")
        s = get_settings()
        assert s.persistence_backend == "memory"
        assert s.session_idle_timeout_seconds == 86400
        assert s.session_purge_interval_seconds == 86400
        assert s.suggestion_timeout_seconds == 20.0
        assert s.openai_api_key is None


class TestLoggingSetup:
    def test_setup_is_idempotent(self):
        root = logging.getLogger()
        setup_logging("DEBUG")
        setup_logging("INFO")
        ours = [h for h in root.handlers if h.get_name() == "task-backend-console"]
        assert len(ours) == 1
        assert root.level == logging.INFO

    def test_third_party_noise_is_filtered(self):
        setup_logging(logging.INFO)
        (handler,) = [h for h in logging.getLogger().handlers if h.get_name() == "task-backend-console"]

        def record(name, level):
            return logging.LogRecord(name, level, __file__, 1, "msg", None, None)

        assert handler.filter(record("src.api.suggestions", logging.INFO))
        assert not handler.filter(record("httpx", logging.INFO))
        assert handler.filter(record("httpx", logging.WARNING))

    def test_app_startup_configures_logging(self, services):
        with TestClient(create_app(services=services)) as c:
            assert c.get("/").status_code == 200
            names = [h.get_name() for h in logging.getLogger().handlers]
            assert "task-backend-console" in names
