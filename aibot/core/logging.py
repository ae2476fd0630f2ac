"""
aibot/core/logging.py
Structured logging setup using structlog
"""

import logging
import sys
from typing import Optional
import structlog
from structlog.stdlib import BoundLogger
from .config import Settings, get_settings
from .loaders import json_default


def setup_logging(settings: Optional[Settings] = None) -> BoundLogger:
    """
    Configure structured logging for the application
    Returns configured logger instance
    """
    settings = settings or get_settings()

    # Configure stdlib logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL),
    )

    # Shared processors for all logs
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    # Output format based on environment
    if settings.LOG_FORMAT == "json":
        # JSON format for production (easy to parse)
        processors = shared_processors + [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(default=json_default)
        ]
    else:
        # Console format for development (human-readable)
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True)
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logger = get_logger()
    logger.info(
        "logging_configured",
        level=settings.LOG_LEVEL,
        format=settings.LOG_FORMAT,
        environment=settings.ENVIRONMENT
    )

    return logger


def get_logger(name: Optional[str] = None) -> BoundLogger:
    """
    Get a logger instance

    Args:
        name: Logger name (e.g., "lifespan", "account")

    Returns:
        Configured structlog logger
    """
    if name:
        return structlog.get_logger(f"aibot.{name}")
    return structlog.get_logger("aibot")


# ============================================================================
# Context Manager for Scoped Logging
# ============================================================================

class LogContext:
    """
    Context manager for adding scoped context to logs

    Usage:
        with LogContext(phase="startup", attempt=2):
            logger.info("creating_bot_account")
    """

    def __init__(self, **kwargs):
        self.context = kwargs

    def __enter__(self):
        structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        structlog.contextvars.unbind_contextvars(*self.context)
        return False


# ============================================================================
# Export
# ============================================================================

__all__ = ["setup_logging", "get_logger", "LogContext"]
