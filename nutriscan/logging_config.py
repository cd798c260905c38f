"""Logging setup (stdlib logging + structlog console output)."""

import logging
import os
import sys
from typing import Optional

import structlog

_configured = False


def configure_logging(level: Optional[str] = None, *, force: bool = False) -> None:
    """
    Configure logging once per process.

    Args:
        level: Log level name, defaults to LOG_LEVEL env var (INFO)
        force: Reconfigure even if already configured
    """
    global _configured
    if _configured and not force:
        return

    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format="%(message)s",
        stream=sys.stdout,
        force=force,
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        cache_logger_on_first_use=False,
    )
    _configured = True
