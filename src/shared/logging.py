"""Logging for PawPantry.

stdlib ``logging`` owns the handlers (stdout plus rotating files under
``logs/``); structlog renders every event on top of it. Development gets a
coloured console, staging and production get one JSON object per line.
Audit entries (``shared.audit``) additionally land in their own file.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path

import structlog

from shared.config import Settings, get_settings

_LEVELS_BY_ENV = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}
_JSON_ENVIRONMENTS = ("production", "staging")
_MAX_BYTES = 10 * 1024 * 1024


def resolve_log_level(settings: Settings | None = None) -> str:
    """Explicit level if configured, otherwise the environment's default."""
    settings = settings or get_settings()
    if settings.log_level:
        return settings.log_level.upper()
    env = (os.getenv("ENV") or settings.environment).lower()
    return os.getenv("LOG_LEVEL", _LEVELS_BY_ENV.get(env, "INFO")).upper()


def _rotating(path: Path, level, backups: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(path, maxBytes=_MAX_BYTES, backupCount=backups, encoding="utf-8")
    handler.setLevel(level)
    return handler


def _install_handlers(level: str, log_dir: Path) -> None:
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [
        logging.StreamHandler(sys.stdout),
        _rotating(log_dir / "pawpantry.log", level, backups=5),
        _rotating(log_dir / "pawpantry_error.log", logging.ERROR, backups=5),
    ]

    audit_logger = logging.getLogger("audit")
    audit_logger.handlers = [_rotating(log_dir / "pawpantry_audit.log", logging.INFO, backups=10)]

    # Statement echo is controlled by PAWPANTRY_DATABASE_ECHO, not the log level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def _renderer(environment: str):
    if environment in _JSON_ENVIRONMENTS:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=True,
        exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=True, max_frames=2),
    )


def configure_logging(log_dir: Path | None = None, settings: Settings | None = None) -> None:
    """Configure stdlib handlers and the structlog pipeline once per process."""
    settings = settings or get_settings()
    _install_handlers(resolve_log_level(settings), log_dir or Path("logs"))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            ),
            _renderer(settings.environment.lower()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_request_context(**values) -> None:
    """Attach ``values`` to every event logged by the current request."""
    structlog.contextvars.bind_contextvars(**values)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
