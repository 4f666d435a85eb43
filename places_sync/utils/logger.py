"""
Logging utility for Places Sync.

Provides multi-destination logging with:
- Daily rotating file logs (YYYYMMDD_<name>.log)
- Colorized console output
- Size-based rotation with backup retention
- Module-specific logger instances with caching
"""

import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional

import colorlog

from places_sync.config import LoggingConfig


# Global logger cache to prevent duplicate logger creation
_LOGGER_CACHE: Dict[str, logging.Logger] = {}

_LOG_COLORS = {
    "DEBUG": "white",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}


class LoggerConfig:
    """
    Centralized logger configuration manager.

    Manages log directories, file naming conventions, and formatting rules.
    """

    def __init__(self, log_dir: Optional[Path] = None):
        """Initialize logger configuration from application settings."""
        self.log_dir = log_dir or LoggingConfig.LOG_DIR
        self.log_level = getattr(logging, LoggingConfig.LOG_LEVEL.upper(), logging.INFO)
        self.max_bytes = LoggingConfig.MAX_LOG_SIZE
        self.backup_count = LoggingConfig.BACKUP_COUNT

        # File format (detailed)
        self.file_format = LoggingConfig.LOG_FORMAT
        self.date_format = LoggingConfig.DATE_FORMAT

        # Console format (colorized and simplified)
        self.console_format = (
            "%(log_color)s%(levelname)-8s%(reset)s "
            "%(cyan)s%(name)s%(reset)s - %(message)s"
        )

        self.log_dir.mkdir(parents=True, exist_ok=True)

    def get_daily_log_filename(self, logger_name: str) -> str:
        """
        Generate daily log filename with YYYYMMDD prefix.

        Args:
            logger_name: Name of the logger

        Returns:
            Formatted log filename (e.g., '20260107_places_sync.log')
        """
        date_prefix = datetime.now().strftime("%Y%m%d")
        base_name = logger_name.replace(".", "_").lower()
        return f"{date_prefix}_{base_name}.log"

    def get_log_file_path(self, logger_name: str) -> Path:
        """Get full path to log file for given logger."""
        return self.log_dir / self.get_daily_log_filename(logger_name)


def setup_logger(
    name: str,
    level: Optional[int] = None,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    Create and configure a logger instance with file and console handlers.

    Features:
    - Daily rotating file logs with date prefix
    - Size-based rotation (10MB default) with 5 backups
    - Colorized console output
    - Detailed file logs, simplified console logs

    Args:
        name: Logger name (typically __name__ of calling module)
        level: Optional custom log level (defaults to config setting)
        log_dir: Optional directory override for the file handler

    Returns:
        Configured logger instance

    Example:
        >>> logger = setup_logger(__name__)
        >>> logger.info("Sync started")
    """
    if name in _LOGGER_CACHE:
        return _LOGGER_CACHE[name]

    config = LoggerConfig(log_dir)
    logger = logging.getLogger(name)
    logger.setLevel(level or config.log_level)

    # Prevent duplicate handlers on repeated calls
    if logger.handlers:
        return logger

    file_handler = RotatingFileHandler(
        filename=config.get_log_file_path(name),
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)  # Capture all levels in file
    file_handler.setFormatter(
        logging.Formatter(fmt=config.file_format, datefmt=config.date_format)
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(config.log_level)
    console_handler.setFormatter(
        colorlog.ColoredFormatter(
            fmt=config.console_format,
            datefmt=config.date_format,
            log_colors=_LOG_COLORS,
        )
    )

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    _LOGGER_CACHE[name] = logger
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Retrieve cached logger instance or create new one.

    Args:
        name: Logger name (typically __name__ of calling module)

    Returns:
        Cached or newly created logger instance
    """
    if name in _LOGGER_CACHE:
        return _LOGGER_CACHE[name]
    return setup_logger(name)
