"""Structured logging configuration."""

import logging
import sys
from typing import Optional

import structlog

from interviewprep_core.config import get_settings


def configure_logging(level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    """Install the structlog processor chain on top of stdlib logging.

    Args:
        level: Log level name, defaults to the configured level
        json_logs: Render JSON instead of console output
    """
    settings = get_settings()
    level_name = (level or settings.log_level).upper()
    if json_logs is None:
        json_logs = settings.log_json

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

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
