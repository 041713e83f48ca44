"""Logging setup for pageprobe.

This module provides a configured logger with a console handler and an
optional rotating file handler. Logs are human-readable with timestamp, level,
module, and message.

Examples:
    >>> from pageprobe.core.logger import get_logger
    >>> logger = get_logger("pageprobe")
    >>> logger.info("Starting crawl")
    2026-10-19 10:45:00,123 | INFO | pageprobe | Starting crawl
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Rotating file handler limits (10MB max file size, 3 backup files)
MAX_LOG_SIZE_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 3


def get_logger(
    name: str = "pageprobe",
    log_level: str = "INFO",
    log_file: Path | None = None,
) -> logging.Logger:
    """Create and configure a logger.

    Library modules log through ``logging.getLogger(__name__)``; configuring
    the ``pageprobe`` logger here makes their records visible.

    Args:
        name: Logger name (typically the package name)
        log_level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to a rotating log file. Parent directories are
            created automatically. No file handler is added when None.

    Returns:
        Configured logging.Logger instance. Calling again reconfigures it.

    Raises:
        ValueError: If log_level is not a valid logging level name.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Clear existing handlers to allow reconfiguration
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=MAX_LOG_SIZE_BYTES,
            backupCount=BACKUP_COUNT,
        )
        file_handler.setLevel(logging.DEBUG)  # File captures all log levels
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
