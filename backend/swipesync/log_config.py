"""
Structured logging configuration using loguru and structlog.

Provides consistent logging across the sync engine, API and jobs, with
secret redaction for the shared-secret and admin-key surfaces.
"""

import sys
import logging
from datetime import datetime, timezone
from typing import Any
from pathlib import Path

from loguru import logger
import structlog
from structlog.typing import EventDict, WrappedLogger

from swipesync.config import settings


class SecretFilter:
    """Redact shared secrets and admin keys from structured log events."""

    SECRET_FIELDS = {"secret", "admin_key", "api_key", "token", "password", "authorization"}

    def __call__(self, logger: WrappedLogger, name: str, event_dict: EventDict) -> EventDict:
        for key in list(event_dict.keys()):
            if any(field in key.lower() for field in self.SECRET_FIELDS):
                event_dict[key] = "[REDACTED]"
        return event_dict


def add_log_level(logger: WrappedLogger, name: str, event_dict: EventDict) -> EventDict:
    """Add log level to event dict."""
    event_dict["level"] = name.upper()
    return event_dict


def add_timestamp(logger: WrappedLogger, name: str, event_dict: EventDict) -> EventDict:
    """Add ISO timestamp to event dict."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


class InterceptHandler(logging.Handler):
    """
    Intercept standard logging calls and route them through loguru.
    Keeps uvicorn, apscheduler and web3 output in the same sinks.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def configure_logging() -> None:
    """Configure structured logging for the application."""

    logger.remove()

    if settings.log_format == "json":
        log_format = "{message}"
        serialize = True
    else:
        log_format = (
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        )
        serialize = False

    logger.add(
        sys.stderr,
        format=log_format,
        level=settings.log_level,
        serialize=serialize,
        backtrace=True,
        diagnose=settings.is_development,
    )

    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            settings.log_file,
            format=log_format,
            level=settings.log_level,
            serialize=serialize,
            rotation="100 MB",
            retention="10 days",
            compression="zip",
            backtrace=True,
            diagnose=settings.is_development,
        )

    processors = [
        structlog.contextvars.merge_contextvars,
        add_timestamp,
        add_log_level,
        SecretFilter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    # Silence noisy loggers
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("web3").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    logger.debug(
        f"Logging configured level={settings.log_level} "
        f"format={settings.log_format} environment={settings.app_env}"
    )


def get_logger(name: str) -> Any:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


# Configure logging on module import
configure_logging()
