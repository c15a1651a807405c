"""Structured logging for wabot.

Configured from the environment at import time (``LOG_LEVEL``, ``LOG_FORMAT``)
because config.py itself logs. ``set_level`` applies the Settings level once
it is loaded.

Session lifecycle code binds the current generation with ``bind_session``;
``merge_contextvars`` then stamps it on every line logged from that task and
the tasks it spawns.
"""

from __future__ import annotations

import logging
import os
import sys

import structlog

_RENDERERS = {
    "console": lambda: structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
    "json": structlog.processors.JSONRenderer,
}


def _setup_logging() -> structlog.stdlib.BoundLogger:
    level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
    fmt = os.environ.get("LOG_FORMAT", "console").lower()
    renderer = _RENDERERS.get(fmt, _RENDERERS["console"])

    # filter_by_level reads the stdlib root level
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            renderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger()


logger = _setup_logging()


def set_level(level_name: str) -> None:
    """Apply the configured level once Settings are available."""
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.getLogger().setLevel(level)


def bind_session(generation: int) -> None:
    structlog.contextvars.bind_contextvars(session_generation=generation)


def _uncaught_exception_handler(
    exc_type: type[BaseException],
    exc_value: BaseException,
    exc_tb: object,
) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_tb)  # type: ignore[arg-type]
        return
    logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_tb))
    sys.exit(1)


sys.excepthook = _uncaught_exception_handler
