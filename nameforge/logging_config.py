"""Centralized logging configuration for nameforge."""

import logging
import os
import sys
from typing import Optional

ROOT_LOGGER_NAME = "nameforge"


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: Optional[str] = None,
    format_type: str = "simple",
) -> logging.Logger:
    """
    Setup the console logger used for warnings and progress messages.

    Args:
        name: Logger name (defaults to "nameforge")
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
    else:
        env_level = os.getenv("LOG_LEVEL", "INFO").upper()
        log_level = getattr(logging, env_level, logging.INFO)

    logger.setLevel(log_level)

    # Warnings go to stderr so they stay apart from the rename report on stdout
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)

        env_format = os.getenv("LOG_FORMAT", format_type).lower()

        if env_format == "structured":
            formatter = logging.Formatter(
                "%(asctime)s | %(name)s | %(levelname)-8s | "
                "%(filename)s:%(lineno)d | %(funcName)s() | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        else:
            formatter = logging.Formatter("%(levelname)s: %(message)s")

        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Get a logger inside the nameforge hierarchy.

    Module names such as "nameforge.cache" are returned as-is; anything else
    is nested under the root "nameforge" logger so it shares its handler.
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
