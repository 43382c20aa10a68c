"""Logging setup: structlog events rendered as JSON lines by stdlib handlers.

Every record carries the agent's username so output from several agents
sharing a console or log directory can be told apart.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars, merge_contextvars

from Blockwright.config import Settings

# Client libraries whose records should reach our handlers instead of their own
LIBRARY_LOGGERS = ("httpx", "httpcore", "openai", "asyncio")

_SECRET_SUFFIXES = ("_key", "_token", "_secret")


def _level(name: str | None, default: int) -> int | None:
    """Map a configured level name to a stdlib level; None means the handler is off."""
    if not name or name.upper() == "NONE":
        return None
    return logging.getLevelNamesMapping().get(name.upper(), default)


def _json_formatter() -> structlog.stdlib.ProcessorFormatter:
    shared = [structlog.processors.add_log_level, merge_contextvars]
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(),
        ],
        foreign_pre_chain=shared,
    )


def _handlers(settings: Settings, overall: int) -> list[logging.Handler]:
    if not settings.logging_enabled:
        return []
    handlers: list[logging.Handler] = []

    console_level = _level(settings.logging_console, overall)
    if console_level is not None:
        console = logging.StreamHandler()
        console.setLevel(console_level)
        handlers.append(console)

    file_level = _level(settings.logging_file, overall)
    if file_level is not None:
        path = Path(settings.logging_file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        rotating = RotatingFileHandler(
            path,
            maxBytes=settings.logging_max_bytes,
            backupCount=settings.logging_backup_count,
        )
        rotating.setLevel(file_level)
        handlers.append(rotating)

    formatter = _json_formatter()
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(settings: Settings | None = None) -> None:
    """Route structlog and library records to the configured JSON handlers.

    ``logging_console`` and ``logging_file`` hold per-handler levels, where
    ``NONE`` turns that handler off. ``logging_enabled=False`` installs no
    handlers at all.
    """
    if settings is None:
        settings = Settings()
    overall = _level(settings.logging_level, logging.INFO) or logging.INFO

    logging.captureWarnings(True)
    # force=True replaces any prior configuration
    logging.basicConfig(level=overall, handlers=_handlers(settings, overall), force=True)

    for name in LIBRARY_LOGGERS:
        lg = logging.getLogger(name)
        lg.handlers = []
        lg.propagate = True

    clear_contextvars()
    bind_contextvars(agent=settings.agent_username)

    structlog.configure(
        processors=[
            merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def redact_settings(settings: Settings) -> dict[str, Any]:
    """Settings as a dict safe for logging; key, token and secret fields are masked."""
    data = settings.model_dump()
    for key in data:
        if key.endswith(_SECRET_SUFFIXES):
            data[key] = "[REDACTED]"
    return data
