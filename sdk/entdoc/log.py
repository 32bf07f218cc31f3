"""
Logging setup for applications embedding EntDoc.

The library itself only emits records through module-level loggers;
call setup_logging() once at process start to route them somewhere.
"""

from __future__ import annotations

import logging

import json_log_formatter

from .config import Settings, get_settings


def setup_logging(settings: Settings | None = None) -> None:
    """Configure logging based on configuration.

    Args:
        settings: Settings to use (defaults to the cached environment settings)
    """
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]
