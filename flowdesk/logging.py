"""
Standardized Logging Configuration

Structured logging for the flow editor engine. Modules log through
``structlog.get_logger(__name__)``; ``setup_logging`` routes those events
through the stdlib root logger with JSON or console rendering.
"""

import logging
import sys
from enum import Enum
from typing import Optional

import structlog

from flowdesk.config import FlowDeskSettings, get_settings


# =============================================================================
# Configuration
# =============================================================================


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    CONSOLE = "console"


# =============================================================================
# Logger Setup
# =============================================================================


def setup_logging(
    level: Optional[str] = None,
    format: Optional[str] = None,
    stream: Optional[object] = None,
    settings: Optional[FlowDeskSettings] = None,
) -> None:
    """
    Configure logging for the engine.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL);
            defaults to ``FLOWDESK_LOG_LEVEL``
        format: Log format (json, console); defaults to ``FLOWDESK_LOG_FORMAT``
        stream: Output stream, defaults to stdout
        settings: Settings to read defaults from, defaults to ``get_settings()``
    """
    if level is None or format is None:
        settings = settings or get_settings()
        level = level or settings.log_level
        format = format or settings.log_format

    numeric_level = getattr(logging, str(level).upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)

    if str(format).lower() == LogFormat.JSON.value:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    structlog.get_logger(__name__).info("logging_configured", level=level, format=format)


__all__ = [
    "LogLevel",
    "LogFormat",
    "setup_logging",
]
