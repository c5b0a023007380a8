"""
📋 Structured logging configuration
Centralized logging setup with JSON formatting
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, ContextManager, Optional, TextIO

import structlog
from structlog.processors import JSONRenderer

from fieldmap.core.config import Settings, settings as default_settings


def setup_logging(settings: Optional[Settings] = None, stream: TextIO = sys.stdout) -> None:
    """
    Configure structured logging with structlog
    """
    settings = settings or default_settings
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer() if settings.LOG_FORMAT != "json" else JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.WriteLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=stream,
        level=level,
    )

    if settings.LOG_FILE_PATH:
        setup_file_logging(settings)

    # Silence noisy loggers
    logging.getLogger("asyncpg").setLevel(logging.WARNING)


def setup_file_logging(settings: Optional[Settings] = None) -> None:
    """
    Setup rotating file handler for logs
    """
    settings = settings or default_settings
    if not settings.LOG_FILE_PATH:
        return

    log_file = Path(settings.LOG_FILE_PATH)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=settings.LOG_MAX_SIZE_MB * 1024 * 1024,
        backupCount=settings.LOG_BACKUP_COUNT,
    )

    if settings.LOG_FORMAT == "json":
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
        )

    logging.getLogger().addHandler(handler)


class LoggerMixin:
    """
    Mixin to add structured logger to classes
    """

    @property
    def logger(self):
        """Get structured logger for this class"""
        return structlog.get_logger(self.__class__.__name__)


def get_logger(name: str = None) -> structlog.BoundLogger:
    """
    Get structured logger instance
    """
    return structlog.get_logger(name)


def log_context(**kwargs: Any) -> ContextManager[None]:
    """
    Bind values (integration_key, actor, ...) to log lines emitted inside the
    ``with`` block; previous values are restored on exit
    """
    return structlog.contextvars.bound_contextvars(**kwargs)
