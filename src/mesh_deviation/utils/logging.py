"""
Logging Utilities

This module sets up logging for the project and applies the logging section
of the configuration to every logger the package has created.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .config import LoggingConfig

PACKAGE_LOGGER_PREFIX = "mesh_deviation"

_CONSOLE_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
_FILE_FORMAT = '%(asctime)s | %(levelname)s | %(processName)s[%(process)d] | %(threadName)s | %(name)s | %(message)s'
_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _file_handler(log_file: str, level: int) -> logging.FileHandler:
    # Create parent directories if they don't exist
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(log_file)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))
    return handler


def setup_logger(name: str,
                 level: int = logging.INFO,
                 log_file: Optional[str] = None) -> logging.Logger:
    """
    Set up a logger with consistent formatting.

    Args:
        name: Logger name (usually __name__)
        level: Logging level (default: logging.INFO)
        log_file: Optional log file path. If provided, logs will be written to this file

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding multiple handlers
    if logger.handlers:
        return logger

    logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(console_handler)

    if log_file:
        logger.addHandler(_file_handler(log_file, level))

    return logger


def configure_from_config(cfg: "LoggingConfig") -> None:
    """
    Apply a LoggingConfig to all package loggers created so far.

    Sets the level on every ``mesh_deviation.*`` logger and its handlers, and
    attaches a file handler when ``cfg.file`` is set (once per logger).

    Args:
        cfg: Logging section of the application config
    """
    level = getattr(logging, cfg.level)
    manager = logging.Logger.manager
    names = [
        n for n in list(manager.loggerDict)
        if n == PACKAGE_LOGGER_PREFIX or n.startswith(PACKAGE_LOGGER_PREFIX + ".")
    ]
    for name in names:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)
        if cfg.file:
            target = os.path.abspath(cfg.file)
            has_file = any(
                isinstance(h, logging.FileHandler) and h.baseFilename == target
                for h in logger.handlers
            )
            if not has_file:
                logger.addHandler(_file_handler(cfg.file, level))
