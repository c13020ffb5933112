"""Logging setup for timebill.

stdout carries the JSON result of every CLI command, so log records only
ever go to stderr or to the configured log file.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TextIO

from .config import Config, LoggingConfig

_initialized = False

LOG_FORMAT = "%(asctime)s %(levelname)-5s [%(name)-16s] %(message)s"
CONSOLE_FORMAT = "%(levelname)-5s [%(name)-16s] %(message)s"

# Libraries whose warnings matter when rendering PDFs
LIBRARY_LOGGERS = ("weasyprint", "fontTools")


def _file_handler(log_config: LoggingConfig) -> logging.Handler:
    file_path = Path(log_config.file)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if log_config.rotate:
        return RotatingFileHandler(
            file_path,
            maxBytes=log_config.max_size_mb * 1024 * 1024,
            backupCount=log_config.backup_count,
        )
    return logging.FileHandler(file_path)


def setup_logging(config: Config, verbose: bool = False, stream: TextIO | None = None) -> None:
    """
    Configure the timebill logger once per process.

    Args:
        config: Application configuration with logging settings
        verbose: Log at DEBUG and always echo to the console, even when
            the config only logs to a file
        stream: Console stream, stderr by default. stdout is refused.
    """
    global _initialized
    if _initialized:
        return

    stream = stream or sys.stderr
    if stream is sys.stdout:
        raise ValueError("Console logging cannot use stdout; it carries command output")
    _initialized = True

    log_config = config.logging
    level_str = "DEBUG" if verbose else log_config.level.upper()
    level = getattr(logging, level_str, logging.INFO)

    logger = logging.getLogger("timebill")
    logger.setLevel(level)
    logger.handlers.clear()

    handlers = []
    if verbose or log_config.output in ("console", "both"):
        console_handler = logging.StreamHandler(stream)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        handlers.append(console_handler)

    if log_config.output in ("file", "both") and log_config.file:
        file_handler = _file_handler(log_config)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        handlers.append(file_handler)

    for handler in handlers:
        handler.setLevel(level)
        logger.addHandler(handler)

    # Library warnings share our handlers instead of Python's last-resort stderr printer
    for name in LIBRARY_LOGGERS:
        lib_logger = logging.getLogger(name)
        lib_logger.setLevel(logging.WARNING)
        lib_logger.handlers.clear()
        lib_logger.propagate = False
        for handler in handlers:
            lib_logger.addHandler(handler)


def reset_logging() -> None:
    """Reset logging state for testing purposes."""
    global _initialized
    _initialized = False
    logger = logging.getLogger("timebill")
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    for name in LIBRARY_LOGGERS:
        lib_logger = logging.getLogger(name)
        lib_logger.handlers.clear()
        lib_logger.propagate = True
