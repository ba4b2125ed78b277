"""
Centralized logging configuration for the application.

The API and the booking service log through setup_logging() with their own
files. The pure scheduling modules only call logging.getLogger(__name__);
configure_engine_logging() attaches handlers to their parent "scheduling"
logger once the process starts.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

DEFAULT_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - "
    "[%(filename)s:%(lineno)d] - %(message)s"
)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ENGINE_LOGGER_NAME = "scheduling"


def _build_handlers(
    level: int,
    formatter: logging.Formatter,
    log_file: Optional[str],
    log_dir: str,
    max_bytes: int,
    backup_count: int,
) -> List[logging.Handler]:
    console_handler = logging.StreamHandler(sys.stdout)
    handlers: List[logging.Handler] = [console_handler]

    if log_file:
        log_dir_path = Path(log_dir)
        log_dir_path.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_dir_path / log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
        )

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    return handlers


def setup_logging(
    name: str,
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    log_dir: str = "logs",
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """
    Setup structured logging for a module.

    Args:
        name: Logger name (typically __name__)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file name inside log_dir
        log_dir: Directory for log files
        max_bytes: Maximum log file size before rotation
        backup_count: Number of rotated files to keep
        format_string: Custom format string (optional)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Already configured by an earlier import
    if logger.handlers:
        return logger

    level = getattr(logging, log_level.upper(), logging.INFO)
    logger.setLevel(level)

    formatter = logging.Formatter(format_string or DEFAULT_FORMAT, datefmt=DATE_FORMAT)
    for handler in _build_handlers(level, formatter, log_file, log_dir, max_bytes, backup_count):
        logger.addHandler(handler)

    # Records of a configured child must not be written again by "scheduling"
    logger.propagate = False

    return logger


def configure_engine_logging(
    log_level: str = "INFO", log_dir: str = "logs"
) -> logging.Logger:
    """
    Route logs of the scheduling engine modules to scheduling.log.

    Args:
        log_level: Logging level for the engine
        log_dir: Directory for log files

    Returns:
        The "scheduling" parent logger
    """
    return setup_logging(
        ENGINE_LOGGER_NAME,
        log_level=log_level,
        log_file="scheduling.log",
        log_dir=log_dir,
    )


def get_logger(name: str, log_file: Optional[str] = None) -> logging.Logger:
    """
    Get or create a logger configured from application settings.

    Settings are imported lazily so modules that config.py itself depends on
    can still log.
    """
    from config import settings

    return setup_logging(
        name,
        log_level=settings.log_level,
        log_file=log_file,
        log_dir=settings.log_dir,
    )
