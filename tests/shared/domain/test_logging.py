import logging

import pytest
import structlog
from shared.config import Settings
from shared.logging import bind_request_context, clear_request_context, configure_logging, resolve_log_level


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv("ENV", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)


class TestResolveLogLevel:
    @pytest.mark.parametrize(
        "environment,expected",
        [("production", "INFO"), ("staging", "INFO"), ("development", "DEBUG"), ("test", "WARNING"), ("qa", "INFO")],
    )
    def test_by_environment(self, environment, expected):
        assert resolve_log_level(Settings(environment=environment)) == expected

    def test_explicit_level_wins(self):
        assert resolve_log_level(Settings(environment="production", log_level="debug")) == "DEBUG"

    def test_log_level_variable(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "error")
        assert resolve_log_level(Settings(environment="development")) == "ERROR"


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def _restore(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        audit_handlers = logging.getLogger("audit").handlers[:]
        yield
        for handler in root.handlers + logging.getLogger("audit").handlers:
            if handler not in handlers and handler not in audit_handlers:
                handler.close()
        root.handlers, root.level = handlers, level
        logging.getLogger("audit").handlers = audit_handlers
        structlog.reset_defaults()

    def test_creates_log_files(self, tmp_path):
        configure_logging(tmp_path / "logs", settings=Settings(environment="production"))
        structlog.get_logger("audit").info("Audit: log_rotation_check")

        assert (tmp_path / "logs" / "pawpantry.log").exists()
        assert (tmp_path / "logs" / "pawpantry_audit.log").exists()

    def test_root_level_follows_environment(self, tmp_path):
        configure_logging(tmp_path, settings=Settings(environment="test"))
        assert logging.getLogger().level == logging.WARNING


class TestRequestContext:
    def test_bind_and_clear(self):
        bind_request_context(request_id="abc")
        assert structlog.contextvars.get_contextvars() == {"request_id": "abc"}
        clear_request_context()
        assert structlog.contextvars.get_contextvars() == {}
