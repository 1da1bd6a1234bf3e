"""Centralized logging configuration for imgpipel."""

import os
import sys
import logging
from typing import Optional

# Set by ``--debug``; wins over LOG_LEVEL for every logger handed out afterwards.
_level_override: Optional[str] = None


def setup_logger(
    name: str = "imgpipel",
    level: Optional[str] = None,
    format_type: str = "simple",
) -> logging.Logger:
    """
    Setup centralized logging with environment variable configuration.

    Args:
        name: Logger name (defaults to "imgpipel")
        level: Log level override (defaults to env var or INFO)
        format_type: Logging format ("structured" or "simple")

    Returns:
        Configured logger instance

    Environment Variables:
        LOG_LEVEL: Set logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_FORMAT: Set format type ("structured" or "simple")
    """
    logger = logging.getLogger(name)

    if level:
        log_level = getattr(logging, level.upper(), logging.INFO)
    elif _level_override:
        log_level = getattr(logging, _level_override, logging.INFO)
    else:
        env_level = os.getenv("LOG_LEVEL", "INFO").upper()
        log_level = getattr(logging, env_level, logging.INFO)

    logger.setLevel(log_level)

    # Avoid duplicate handlers
    if not logger.handlers:
        # stdout is left to the results table
        handler = logging.StreamHandler(sys.stderr)

        env_format = os.getenv("LOG_FORMAT", format_type).lower()

        if env_format == "structured":
            formatter = logging.Formatter(
                "%(asctime)s | %(name)s | %(levelname)-8s | "
                "%(filename)s:%(lineno)d | %(funcName)s() | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        else:
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )

        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_logger(name: str = "imgpipel") -> logging.Logger:
    """
    Get a logger instance with consistent configuration.

    Component loggers are namespaced under ``imgpipel.``.

    Args:
        name: Logger name, e.g. "planner"

    Returns:
        Configured logger instance
    """
    if name != "imgpipel" and not name.startswith("imgpipel."):
        name = f"imgpipel.{name}"
    return setup_logger(name)


def set_debug(enabled: bool = True) -> None:
    """Switch every imgpipel logger, existing and future, to DEBUG (or back)."""
    global _level_override
    _level_override = "DEBUG" if enabled else None
    level = logging.DEBUG if enabled else logging.INFO
    for name, candidate in list(logging.Logger.manager.loggerDict.items()):
        if isinstance(candidate, logging.Logger) and (
            name == "imgpipel" or name.startswith("imgpipel.")
        ):
            candidate.setLevel(level)


# Create default logger instance
logger = setup_logger()
